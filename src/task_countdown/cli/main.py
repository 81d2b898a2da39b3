# src/task_countdown/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- the countdown engine (and optional Matrix notifier) in a background thread,
- the console REPL in the main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..countdown.engine import start_countdown_in_background
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logging.getLogger("nio").setLevel(max(console_level, logging.INFO))
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    logger.info("Starting %s...", settings.app_name)

    companions = []
    extra_notifiers = []
    if settings.matrix_enabled:
        from ..connectors.matrix_notifier import MatrixNotifier

        matrix_notifier = MatrixNotifier(settings)
        extra_notifiers.append(matrix_notifier)
        companions.append(matrix_notifier.run)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings, extra_notifiers=extra_notifiers)

    runner = start_countdown_in_background(
        state.engine,
        interval_seconds=settings.tick_interval_seconds,
        companions=companions,
    )
    if runner is None:
        logger.error("Countdown engine failed to start.")
        return

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    # The console REPL relies on KeyboardInterrupt from input(), so signals are
    # only routed to the event when there is no console.
    if not settings.console_enabled:
        try:
            signal.signal(signal.SIGINT, _handle_signal)
            signal.signal(signal.SIGTERM, _handle_signal)
        except (ValueError, OSError, AttributeError):
            # Some platforms may not support SIGTERM, etc.
            pass

    try:
        if settings.console_enabled:
            run_console_loop(state)
            stop_main.set()
        else:
            logger.info("Console disabled. Running the countdown only. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        runner.stop()
        runner.join(timeout=10.0)
        # The loop stops the alarm on cancel; repeat in case the thread did not finish in time.
        state.engine.shutdown()
        logger.info("Bye.")


if __name__ == "__main__":
    main()
