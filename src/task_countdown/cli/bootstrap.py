# src/task_countdown/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations (store/audio/notifiers/view) into the engine and AppState.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence

from ..audio.player import SoundDeviceAudio
from ..config import get_settings
from ..connectors.console_connector import ConsoleCountdownView, ConsoleNotifier
from ..core.ports import CountdownView, NotificationUnavailable, Notifier
from ..core.state import AppState
from ..countdown.alerts import AlertDriver
from ..countdown.engine import CountdownEngine
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


class FanoutNotifier:
    """
    Deliver one notification through several notifiers.

    Raises NotificationUnavailable only if none of them could take it.
    """

    def __init__(self, notifiers: Sequence[Notifier]) -> None:
        self.notifiers = list(notifiers)

    def fire_notification(self, title: str, body: str, dedupe_key: str) -> None:
        delivered = False
        for notifier in self.notifiers:
            try:
                notifier.fire_notification(title, body, dedupe_key)
                delivered = True
            except NotificationUnavailable:
                logger.debug("%s unavailable for %s", type(notifier).__name__, dedupe_key)
        if not delivered:
            raise NotificationUnavailable("no notifier available")


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)
    if settings.matrix_enabled:
        settings.matrix_store_path.mkdir(parents=True, exist_ok=True)


def create_initial_state(
    *,
    settings=None,
    view: CountdownView | None = None,
    extra_notifiers: Sequence[Notifier] = (),
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    lock = threading.RLock()
    view = view or ConsoleCountdownView()
    notifier = FanoutNotifier(
        [ConsoleNotifier(enabled=settings.console_notifications), *extra_notifiers]
    )

    task_store = TaskStore(settings.tasks_db_path)
    driver = AlertDriver(
        SoundDeviceAudio(enabled=settings.sound_enabled),
        notifier,
        on_audio_lock_changed=view.on_audio_lock_changed,
    )
    engine = CountdownEngine(task_store, driver, view, lock=lock)

    return AppState(settings=settings, task_store=task_store, engine=engine, lock=lock)
