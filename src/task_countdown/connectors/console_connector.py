# src/task_countdown/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
import threading
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..cli.commands import render_snapshot
from ..core.ports import NotificationUnavailable
from ..core.state import AppState
from ..countdown.alerts import CountdownSnapshot

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class ConsoleCountdownView:
    """
    CountdownView for a line-based terminal.

    Printing every second would flood the REPL, so a line is printed only when
    the tracked task or its zone changes; /now shows the latest snapshot.
    """

    def __init__(self, *, out=None) -> None:
        self._out = out or sys.stdout
        self._last_shown: tuple[str | None, str | None] | None = None
        self._lock = threading.Lock()

    def _write(self, line: str) -> None:
        self._out.write(f"\n[{_ts_local()}] {line}\n")
        self._out.flush()

    def on_tick(self, snapshot: CountdownSnapshot | None) -> None:
        with self._lock:
            marker = (None, None) if snapshot is None else (snapshot.title, snapshot.zone.value)
            if marker == self._last_shown:
                return
            self._last_shown = marker
        self._write(render_snapshot(snapshot))

    def on_audio_lock_changed(self, locked: bool) -> None:
        if locked:
            self._write("[SOUND] Playback is blocked. Type /sound to enable sound.")
        else:
            self._write("[SOUND] Sound enabled.")


class ConsoleNotifier:
    """Notifier that prints notifications to the terminal (with a bell)."""

    def __init__(self, *, enabled: bool = True, out=None) -> None:
        self.enabled = bool(enabled)
        self._out = out or sys.stdout

    def fire_notification(self, title: str, body: str, dedupe_key: str) -> None:
        if not self.enabled:
            raise NotificationUnavailable("console notifications are disabled")
        self._out.write(f"\a\n[{_ts_local()}] [NOTIFY] {title}: {body}\n")
        self._out.flush()


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Manage tasks with slash commands. Use /help for commands. Use /exit to quit.\n")

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            user_input = input(">>> ").strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            with state.lock:
                response = command_registry.handle(state, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is None:
            response = "Commands start with '/'. Use /help to list available commands."
        print(f"[{_ts_local()}] {response}")

    logger.info("Console connector finished.")
