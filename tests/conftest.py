# tests/conftest.py

from __future__ import annotations

import threading
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from task_countdown.core.state import AppState
from task_countdown.countdown.alerts import AlertDriver
from task_countdown.countdown.engine import CountdownEngine
from task_countdown.tasks.task_store import TaskStore

from .fakes import FakeAudio, FakeClock, FakeNotifier, FakeView, InMemoryTaskRepo

T0 = datetime(2024, 3, 10, 12, 0, 0)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="task-countdown-test",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        tick_interval_seconds=1.0,
        sound_enabled=True,
        matrix_enabled=False,
        console_notifications=True,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(T0)


@pytest.fixture()
def audio() -> FakeAudio:
    return FakeAudio()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def view() -> FakeView:
    return FakeView()


@pytest.fixture()
def driver(audio: FakeAudio, notifier: FakeNotifier, view: FakeView) -> AlertDriver:
    return AlertDriver(audio, notifier, on_audio_lock_changed=view.on_audio_lock_changed)


@pytest.fixture()
def repo() -> InMemoryTaskRepo:
    return InMemoryTaskRepo()


@pytest.fixture()
def engine(repo: InMemoryTaskRepo, driver: AlertDriver, view: FakeView, clock: FakeClock) -> CountdownEngine:
    return CountdownEngine(repo, driver, view, clock=clock)


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore, driver: AlertDriver, view: FakeView, clock: FakeClock) -> AppState:
    """
    AppState wired with deterministic fakes.

    NOTE: We keep the real SQLite TaskStore here because
    its correctness is part of what we want to test.
    """
    lock = threading.RLock()
    engine = CountdownEngine(store, driver, view, clock=clock, lock=lock)
    return AppState(settings=settings, task_store=store, engine=engine, lock=lock)
