# src/task_countdown/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the countdown engine.

The engine depends on Protocols instead of concrete implementations.
This keeps storage/audio/notification providers swappable and makes testing easier:
tests plug in recording fakes instead of producing sound or popups.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol

Clock = Callable[[], datetime]
# Returns the current local time (naive datetime).


class AudioLocked(RuntimeError):
    """Playback is blocked until the user explicitly unlocks audio."""


class NotificationUnavailable(RuntimeError):
    """The host has no way to show a notification right now."""


class TaskRepo(Protocol):
    """Persistence collaborator: owns the authoritative, ordered task collection."""

    def get_task_snapshot(self) -> list[Any]: ...
    def request_complete(self, task_id: str) -> None: ...
    def request_create(self, task: Any) -> None: ...


class CountdownView(Protocol):
    """
    UI-side port: where the engine publishes its results.

    snapshot is a CountdownSnapshot, or None when there are no active tasks.
    """

    def on_tick(self, snapshot: Any | None) -> None: ...
    def on_audio_lock_changed(self, locked: bool) -> None: ...


class AudioPort(Protocol):
    """
    Sound effects used by the alert driver.

    play_* methods raise AudioLocked when playback is blocked.
    unlock() is the explicit user action that may clear the lock; returns True on success.
    """

    def play_alarm_loop(self) -> None: ...
    def stop_alarm(self) -> None: ...
    def play_chime_once(self) -> None: ...
    def unlock(self) -> bool: ...


class Notifier(Protocol):
    """
    System-notification port.

    Implementations no-op when permission was never granted and raise
    NotificationUnavailable when the host cannot notify at all.
    Dedup is the engine's job; dedupe_key is passed through for implementations
    that can replace an existing notification.
    """

    def fire_notification(self, title: str, body: str, dedupe_key: str) -> None: ...
