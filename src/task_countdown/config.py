# src/task_countdown/config.py

"""Settings for the countdown app, read from TASKCD_* environment variables.

A local .env file is loaded first (python-dotenv, never overriding the real
environment). Nothing here needs secrets at import time; Matrix delivery stays
off unless enabled and configured.
"""

from __future__ import annotations

import functools
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ENV_PREFIX = "TASKCD"

# Display seconds must stay accurate, so the tick may never be slower than 1s.
MAX_TICK_INTERVAL_SECONDS = 1.0
MIN_TICK_INTERVAL_SECONDS = 0.05

DEFAULT_DATA_DIR = Path(".local/task_countdown")

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


def _raw(suffix: str, *fallbacks: str) -> str | None:
    """Stripped value of TASKCD_<suffix> (then of any unprefixed fallback names), or None if unset/blank."""
    for name in (f"{ENV_PREFIX}_{suffix}", *fallbacks):
        value = os.getenv(name)
        if value is not None and value.strip():
            return value.strip()
    return None


def _str(suffix: str, default: str = "", *fallbacks: str) -> str:
    value = _raw(suffix, *fallbacks)
    return default if value is None else value


def _bool(suffix: str, default: bool) -> bool:
    value = (_raw(suffix) or "").lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    return default


def _float(suffix: str, default: float) -> float:
    value = _raw(suffix)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _path(suffix: str, default: Path) -> Path:
    value = _raw(suffix)
    return default if value is None else Path(value).expanduser()


def clamp_tick_interval(value: float) -> float:
    return max(MIN_TICK_INTERVAL_SECONDS, min(MAX_TICK_INTERVAL_SECONDS, float(value)))


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Countdown engine ----
    tick_interval_seconds: float
    sound_enabled: bool

    # ---- Connectors ----
    console_enabled: bool
    console_notifications: bool
    matrix_enabled: bool

    # ---- Matrix notifications ----
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_notify_room: Optional[str]

    # ---- Local data (gitignored) ----
    data_dir: Path
    tasks_db_path: Path
    matrix_store_path: Path

    @staticmethod
    def from_env() -> "Settings":
        """Build settings from the current process environment (no .env loading)."""
        data_dir = _path("DATA_DIR", DEFAULT_DATA_DIR)

        return Settings(
            app_name=_str("APP_NAME", "task-countdown"),
            log_level=_str("LOG_LEVEL", "INFO").upper(),
            tick_interval_seconds=clamp_tick_interval(_float("TICK_INTERVAL_SECONDS", MAX_TICK_INTERVAL_SECONDS)),
            sound_enabled=_bool("SOUND_ENABLED", True),
            console_enabled=_bool("CONSOLE_ENABLED", True),
            console_notifications=_bool("CONSOLE_NOTIFICATIONS", True),
            matrix_enabled=_bool("MATRIX_ENABLED", False),
            # Plain MATRIX_* names are accepted so one .env can serve several Matrix tools.
            matrix_homeserver=_str("MATRIX_HOMESERVER", "", "MATRIX_HOMESERVER"),
            matrix_user_id=_str("MATRIX_USER_ID", "", "MATRIX_USER_ID"),
            matrix_password=_str("MATRIX_PASSWORD", "", "MATRIX_PASSWORD"),
            matrix_notify_room=_raw("MATRIX_NOTIFY_ROOM"),
            data_dir=data_dir,
            tasks_db_path=_path("TASKS_DB_PATH", data_dir / "tasks.sqlite3"),
            matrix_store_path=_path("MATRIX_STORE_PATH", data_dir / "matrix_store"),
        )


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings: .env (if present) merged under the real environment."""
    load_dotenv(override=False)
    return Settings.from_env()
