# tests/test_alert_driver.py

from __future__ import annotations

from datetime import datetime, timedelta

from task_countdown.countdown.alerts import AlertDriver, CountdownSnapshot, NOTIFICATION_TITLE
from task_countdown.countdown.selector import select_target
from task_countdown.countdown.zones import Color, Zone
from task_countdown.tasks.task_models import Task

from .conftest import T0
from .fakes import FakeAudio, FakeNotifier, FakeView, make_task


def step(driver: AlertDriver, tasks: list[Task], now: datetime) -> CountdownSnapshot | None:
    return driver.process(select_target(tasks, now), now)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def test_alarm_starts_once_per_critical_entry(driver: AlertDriver, audio: FakeAudio) -> None:
    task = make_task("A", end=at(60))

    for i in range(10):
        snap = step(driver, [task], at(i))
        assert snap is not None and snap.zone is Zone.CRITICAL

    assert audio.count("alarm") == 1
    assert audio.count("stop") == 0
    assert driver.state.alarm_active is True


def test_alarm_stops_outside_critical_and_restarts_on_reentry(driver: AlertDriver, audio: FakeAudio) -> None:
    task = make_task("A", end=at(120))

    step(driver, [task], at(70))  # critical
    step(driver, [task], at(71))
    # Clock stepped back (e.g. system time adjusted): imminent again.
    step(driver, [task], at(0))
    assert audio.calls.count("stop") == 1
    assert driver.state.alarm_active is False

    step(driver, [task], at(80))
    step(driver, [task], at(81))
    assert audio.count("alarm") == 2


def test_alarm_stops_when_target_changes(driver: AlertDriver, audio: FakeAudio) -> None:
    a = make_task("A", end=at(30))
    b = make_task("B", end=at(40))

    step(driver, [a, b], at(0))
    assert audio.calls == ["alarm"]

    a.completed = True
    snap = step(driver, [a, b], at(1))

    # Reset stops A's alarm, then B (also critical) starts its own.
    assert audio.calls == ["alarm", "stop", "alarm"]
    assert snap is not None and snap.title == "task B"


def test_alarm_stops_when_task_reaches_done(driver: AlertDriver, audio: FakeAudio) -> None:
    task = make_task("A", end=at(10))

    step(driver, [task], at(0))
    snap = step(driver, [task], at(10))

    assert snap == CountdownSnapshot(title="task A", time="Done", color=Color.NEUTRAL, zone=Zone.DONE, task_id="A")
    assert audio.calls == ["alarm", "stop"]
    assert driver.state.alarm_active is False


def test_alarm_stops_when_all_tasks_completed(driver: AlertDriver, audio: FakeAudio) -> None:
    task = make_task("A", end=at(10))
    step(driver, [task], at(0))

    task.completed = True
    assert step(driver, [task], at(1)) is None
    assert audio.calls == ["alarm", "stop"]
    assert driver.state.selected_key == ""
    assert driver.state.last_zone is None


def test_notification_fires_once_per_task_and_due(driver: AlertDriver, notifier: FakeNotifier) -> None:
    task = make_task("A", title="Report", end=at(301))

    step(driver, [task], at(0))  # warning: nothing yet
    assert notifier.sent == []

    for i in range(2, 300):
        step(driver, [task], at(i))

    assert len(notifier.sent) == 1
    sent = notifier.sent[0]
    assert sent.title == NOTIFICATION_TITLE
    assert sent.body == "Report - 4m 59s left"
    assert sent.dedupe_key == f"A-{at(301).isoformat()}"


def test_notification_is_per_occurrence(driver: AlertDriver, notifier: FakeNotifier) -> None:
    first = make_task("A", end=at(100))
    step(driver, [first], at(0))

    moved = make_task("A", end=at(200))  # same task, new deadline
    step(driver, [moved], at(1))
    step(driver, [first], at(2))  # back to the first deadline: already notified

    assert [n.dedupe_key for n in notifier.sent] == [
        f"A-{at(100).isoformat()}",
        f"A-{at(200).isoformat()}",
    ]


def test_unavailable_notifier_is_not_retried(audio: FakeAudio, view: FakeView) -> None:
    notifier = FakeNotifier(available=False)
    driver = AlertDriver(audio, notifier, on_audio_lock_changed=view.on_audio_lock_changed)
    task = make_task("A", end=at(200))

    for i in range(5):
        snap = step(driver, [task], at(i))
        assert snap is not None and snap.zone is Zone.IMMINENT

    assert notifier.attempts == 1
    assert notifier.sent == []


def test_chime_on_escalation_but_not_on_first_tick_or_critical(driver: AlertDriver, audio: FakeAudio) -> None:
    # No start: WARNING inside 24h, then IMMINENT, then CRITICAL.
    task = make_task("A", end=at(90000))

    step(driver, [task], at(0))  # normal, first tick
    step(driver, [task], at(1))  # normal
    assert audio.calls == []

    step(driver, [task], at(90000 - 86400))  # warning
    assert audio.calls == ["chime"]

    step(driver, [task], at(90000 - 300))  # imminent
    assert audio.calls == ["chime", "chime"]

    step(driver, [task], at(90000 - 60))  # critical: alarm only
    assert audio.calls == ["chime", "chime", "alarm"]
    assert driver.state.last_zone is Zone.CRITICAL


def test_new_target_does_not_chime_on_first_tick(driver: AlertDriver, audio: FakeAudio) -> None:
    a = make_task("A", end=at(1000))  # warning
    b = make_task("B", end=at(100))  # imminent, appears later

    step(driver, [a], at(0))
    step(driver, [a, b], at(1))

    assert audio.count("chime") == 0
    assert driver.state.last_zone is Zone.IMMINENT
    assert driver.state.selected_key.startswith("B-")


def test_done_keeps_last_zone(driver: AlertDriver) -> None:
    task = make_task("A", end=at(200))
    step(driver, [task], at(0))
    step(driver, [task], at(201))

    assert driver.state.last_zone is Zone.IMMINENT


def test_display_only_states(driver: AlertDriver, audio: FakeAudio, notifier: FakeNotifier) -> None:
    not_started = make_task("A", start=at(60), end=at(120))
    snap = step(driver, [not_started], at(0))
    assert snap is not None
    assert snap.title == "No tasks started yet"
    assert snap.time == ""
    assert snap.zone is Zone.NONE_STARTED_YET

    undated = make_task("U")
    snap = step(driver, [undated], at(0))
    assert snap is not None
    assert snap.title == "Set an end date/time to enable countdown"
    assert snap.zone is Zone.NO_DEADLINE_SET

    assert step(driver, [], at(0)) is None
    assert audio.calls == []
    assert notifier.sent == []


def test_display_only_state_silences_alarm(driver: AlertDriver, audio: FakeAudio) -> None:
    a = make_task("A", end=at(30))
    step(driver, [a], at(0))

    # The only active task is replaced by one that has not started yet.
    a.completed = True
    later = make_task("L", start=at(100), end=at(200))
    step(driver, [a, later], at(1))

    assert audio.calls == ["alarm", "stop"]


def test_countdown_text(driver: AlertDriver) -> None:
    task = make_task("A", title="Write", end=at(2 * 86400 + 3725))
    snap = step(driver, [task], at(0))

    assert snap is not None
    assert snap.time == "49h 02m 05s left"
    assert snap.color is Color.NEUTRAL


def test_locked_audio_is_reported_and_not_retried(notifier: FakeNotifier, view: FakeView) -> None:
    audio = FakeAudio(locked=True)
    driver = AlertDriver(audio, notifier, on_audio_lock_changed=view.on_audio_lock_changed)
    task = make_task("A", end=at(30))

    for i in range(5):
        step(driver, [task], at(i))

    assert audio.count("alarm") == 1
    assert view.lock_changes == [True]
    assert driver.state.audio_locked is True
    # The tick kept working: notification still sent.
    assert len(notifier.sent) == 1


def test_unlock_clears_flag_and_resumes_alarm(notifier: FakeNotifier, view: FakeView) -> None:
    audio = FakeAudio(locked=True)
    driver = AlertDriver(audio, notifier, on_audio_lock_changed=view.on_audio_lock_changed)
    task = make_task("A", end=at(30))
    step(driver, [task], at(0))

    assert driver.unlock_audio() is True
    assert view.lock_changes == [True, False]
    assert audio.calls == ["alarm", "unlock", "alarm"]


def test_failed_unlock_keeps_lock(notifier: FakeNotifier, view: FakeView) -> None:
    audio = FakeAudio(locked=True, unlock_ok=False)
    driver = AlertDriver(audio, notifier, on_audio_lock_changed=view.on_audio_lock_changed)

    assert driver.unlock_audio() is False
    assert driver.state.audio_locked is True
    assert view.lock_changes == [True]


def test_locked_chime_sets_flag(notifier: FakeNotifier, view: FakeView) -> None:
    audio = FakeAudio(locked=True)
    driver = AlertDriver(audio, notifier, on_audio_lock_changed=view.on_audio_lock_changed)
    task = make_task("A", end=at(1000))

    step(driver, [task], at(0))  # warning
    step(driver, [task], at(800))  # imminent -> chime fails

    assert audio.calls == ["chime"]
    assert view.lock_changes == [True]


def test_shutdown_stops_alarm(driver: AlertDriver, audio: FakeAudio) -> None:
    step(driver, [make_task("A", end=at(5))], at(0))
    driver.shutdown()
    driver.shutdown()

    assert audio.calls == ["alarm", "stop"]
