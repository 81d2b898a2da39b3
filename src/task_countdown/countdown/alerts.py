# src/task_countdown/countdown/alerts.py

"""
Alert driver.

Turns one (selection, classification) result per tick into side effects:
- looping alarm while the target is CRITICAL (started once per entry),
- a short chime when the zone escalates (never on top of the alarm),
- a one-shot "5 minutes left" notification per (task, due) occurrence,
and produces the display snapshot.

All mutable state lives in EngineState, owned by one AlertDriver instance.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from ..core.ports import AudioLocked, AudioPort, NotificationUnavailable, Notifier
from .selector import Selection, SelectionStatus, Target
from .zones import Classification, Color, Zone, ZONE_COLORS, classify, format_remaining

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "5 minutes left"

DISPLAY_MESSAGES: dict[SelectionStatus, str] = {
    SelectionStatus.NONE_STARTED_YET: "No tasks started yet",
    SelectionStatus.NO_DEADLINE_SET: "Set an end date/time to enable countdown",
}

_DISPLAY_ZONES: dict[SelectionStatus, Zone] = {
    SelectionStatus.NO_ACTIVE_TASKS: Zone.NO_ACTIVE_TASKS,
    SelectionStatus.NONE_STARTED_YET: Zone.NONE_STARTED_YET,
    SelectionStatus.NO_DEADLINE_SET: Zone.NO_DEADLINE_SET,
}


@dataclass(slots=True, frozen=True)
class CountdownSnapshot:
    """What the UI shows: a title, a time string and a color tag."""

    title: str
    time: str
    color: Color
    zone: Zone
    task_id: str | None = None


@dataclass(slots=True)
class EngineState:
    selected_key: str = ""
    last_zone: Zone | None = None
    alarm_active: bool = False
    audio_locked: bool = False
    # Grows for the whole session; bounded by live tasks x their due instants.
    notified_keys: set[str] = field(default_factory=set)


class AlertDriver:
    def __init__(
        self,
        audio: AudioPort,
        notifier: Notifier,
        *,
        on_audio_lock_changed: Callable[[bool], None] | None = None,
        state: EngineState | None = None,
    ) -> None:
        self.audio = audio
        self.notifier = notifier
        self.state = state or EngineState()
        self._on_audio_lock_changed = on_audio_lock_changed

    # ---- per-tick entry point ----

    def process(self, selection: Selection, now: datetime) -> CountdownSnapshot | None:
        target = selection.target
        st = self.state

        if selection.status is SelectionStatus.NO_ACTIVE_TASKS:
            self._reset("")
        elif target is not None and target.key != st.selected_key:
            self._reset(target.key)

        if selection.status is not SelectionStatus.SELECTED or target is None:
            self._stop_alarm()
            return self._display_only(selection.status)

        result = classify(target, now)

        if result.zone is Zone.DONE:
            self._stop_alarm()
            return CountdownSnapshot(
                title=target.task.title,
                time="Done",
                color=result.color,
                zone=result.zone,
                task_id=target.task.id,
            )

        if result.zone in (Zone.IMMINENT, Zone.CRITICAL):
            self._notify_once(target, result)

        if result.zone is Zone.CRITICAL:
            if not st.alarm_active:
                st.alarm_active = True
                logger.info("Alarm started for task %s (%r)", target.task.id, target.task.title)
                self._play(self.audio.play_alarm_loop)
        else:
            self._stop_alarm()

        if st.last_zone is not None and result.zone is not st.last_zone and result.zone is not Zone.CRITICAL:
            logger.info("Zone %s -> %s for task %s", st.last_zone.value, result.zone.value, target.task.id)
            self._play(self.audio.play_chime_once)
        st.last_zone = result.zone

        return CountdownSnapshot(
            title=target.task.title,
            time=format_remaining(result.remaining),
            color=result.color,
            zone=result.zone,
            task_id=target.task.id,
        )

    # ---- lifecycle ----

    def shutdown(self) -> None:
        """Teardown: the alarm must not outlive the engine."""
        self._stop_alarm()

    def unlock_audio(self) -> bool:
        """
        Explicit user action to re-enable sound.

        On success the lock flag is cleared and, if the alarm should be playing,
        it is started again.
        """
        try:
            ok = bool(self.audio.unlock())
        except AudioLocked:
            ok = False

        if not ok:
            self._set_audio_locked(True)
            return False

        self._set_audio_locked(False)
        if self.state.alarm_active:
            self._play(self.audio.play_alarm_loop)
        return not self.state.audio_locked

    # ---- helpers ----

    def _reset(self, new_key: str) -> None:
        st = self.state
        if st.selected_key != new_key:
            logger.info("Countdown target changed: %r -> %r", st.selected_key, new_key)
        self._stop_alarm()
        st.last_zone = None
        st.selected_key = new_key

    def _display_only(self, status: SelectionStatus) -> CountdownSnapshot | None:
        if status is SelectionStatus.NO_ACTIVE_TASKS:
            return None
        zone = _DISPLAY_ZONES[status]
        return CountdownSnapshot(
            title=DISPLAY_MESSAGES[status],
            time="",
            color=ZONE_COLORS[zone],
            zone=zone,
        )

    def _stop_alarm(self) -> None:
        if not self.state.alarm_active:
            return
        self.state.alarm_active = False
        self.audio.stop_alarm()
        logger.info("Alarm stopped.")

    def _play(self, play: Callable[[], None]) -> None:
        try:
            play()
        except AudioLocked:
            logger.info("Audio playback blocked; waiting for an explicit unlock.")
            self._set_audio_locked(True)

    def _set_audio_locked(self, locked: bool) -> None:
        if self.state.audio_locked == locked:
            return
        self.state.audio_locked = locked
        if self._on_audio_lock_changed is not None:
            self._on_audio_lock_changed(locked)

    def _notify_once(self, target: Target, result: Classification) -> None:
        key = target.key
        if key in self.state.notified_keys:
            return
        self.state.notified_keys.add(key)

        total = max(0, int(result.remaining.total_seconds()))
        mins, secs = divmod(total, 60)
        body = f"{target.task.title} - {mins}m {secs:02d}s left"

        try:
            self.notifier.fire_notification(NOTIFICATION_TITLE, body, key)
            logger.info("Notification fired for %s", key)
        except NotificationUnavailable:
            logger.debug("Notifications unavailable; skipped %s", key)
