# tests/test_config.py

from __future__ import annotations

from pathlib import Path

import pytest

from task_countdown.config import (
    MAX_TICK_INTERVAL_SECONDS,
    MIN_TICK_INTERVAL_SECONDS,
    Settings,
    clamp_tick_interval,
)

_KEYS = (
    "TASKCD_APP_NAME",
    "TASKCD_LOG_LEVEL",
    "TASKCD_TICK_INTERVAL_SECONDS",
    "TASKCD_SOUND_ENABLED",
    "TASKCD_CONSOLE_ENABLED",
    "TASKCD_CONSOLE_NOTIFICATIONS",
    "TASKCD_MATRIX_ENABLED",
    "TASKCD_MATRIX_HOMESERVER",
    "TASKCD_MATRIX_USER_ID",
    "TASKCD_MATRIX_PASSWORD",
    "TASKCD_MATRIX_NOTIFY_ROOM",
    "TASKCD_DATA_DIR",
    "TASKCD_TASKS_DB_PATH",
    "TASKCD_MATRIX_STORE_PATH",
    "MATRIX_HOMESERVER",
    "MATRIX_USER_ID",
    "MATRIX_PASSWORD",
)


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for key in _KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_defaults(clean_env) -> None:
    s = Settings.from_env()

    assert s.app_name == "task-countdown"
    assert s.tick_interval_seconds == MAX_TICK_INTERVAL_SECONDS
    assert s.sound_enabled is True
    assert s.console_enabled is True
    assert s.matrix_enabled is False
    assert s.matrix_notify_room is None
    assert s.data_dir == Path(".local/task_countdown")
    assert s.tasks_db_path == s.data_dir / "tasks.sqlite3"
    assert s.matrix_store_path == s.data_dir / "matrix_store"


def test_env_overrides(clean_env, tmp_path: Path) -> None:
    clean_env.setenv("TASKCD_SOUND_ENABLED", "off")
    clean_env.setenv("TASKCD_MATRIX_ENABLED", "yes")
    clean_env.setenv("TASKCD_MATRIX_NOTIFY_ROOM", "  !r:example.org ")
    clean_env.setenv("TASKCD_DATA_DIR", str(tmp_path))
    clean_env.setenv("MATRIX_HOMESERVER", "https://matrix.example.org")

    s = Settings.from_env()

    assert s.sound_enabled is False
    assert s.matrix_enabled is True
    assert s.matrix_notify_room == "!r:example.org"
    assert s.matrix_homeserver == "https://matrix.example.org"
    assert s.tasks_db_path == tmp_path / "tasks.sqlite3"


def test_prefixed_matrix_keys_win(clean_env) -> None:
    clean_env.setenv("MATRIX_USER_ID", "@plain:example.org")
    clean_env.setenv("TASKCD_MATRIX_USER_ID", "@prefixed:example.org")

    assert Settings.from_env().matrix_user_id == "@prefixed:example.org"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("0.25", 0.25),
        ("5", MAX_TICK_INTERVAL_SECONDS),
        ("0", MIN_TICK_INTERVAL_SECONDS),
        ("fast", MAX_TICK_INTERVAL_SECONDS),
    ],
)
def test_tick_interval_is_clamped(clean_env, raw: str, expected: float) -> None:
    clean_env.setenv("TASKCD_TICK_INTERVAL_SECONDS", raw)
    assert Settings.from_env().tick_interval_seconds == expected


def test_clamp_tick_interval() -> None:
    assert clamp_tick_interval(1.0) == 1.0
    assert clamp_tick_interval(60) == MAX_TICK_INTERVAL_SECONDS
    assert clamp_tick_interval(-1) == MIN_TICK_INTERVAL_SECONDS


def test_unrecognized_bool_keeps_default(clean_env) -> None:
    clean_env.setenv("TASKCD_SOUND_ENABLED", "maybe")
    clean_env.setenv("TASKCD_MATRIX_ENABLED", "maybe")

    s = Settings.from_env()
    assert s.sound_enabled is True
    assert s.matrix_enabled is False
