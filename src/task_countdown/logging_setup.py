# src/task_countdown/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "task_countdown.log"

# The engine logs every tick at DEBUG; rotate so a long session stays bounded.
LOG_FILE_MAX_BYTES = 2_000_000
LOG_FILE_BACKUPS = 3

# Minimum console level per logger-name prefix (first match wins).
_CONSOLE_RULES: tuple[tuple[str, int], ...] = (
    ("task_countdown.countdown.engine", logging.WARNING),
    ("task_countdown.connectors.matrix_", logging.WARNING),
    ("task_countdown.", logging.NOTSET),
    ("py.warnings", logging.ERROR),
)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the REPL readable while the countdown runs in the background:
    tick chatter and Matrix delivery only reach the console at WARNING+,
    third-party libraries (nio, aiohttp, ...) only at ERROR+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for prefix, min_level in _CONSOLE_RULES:
            if record.name == prefix or record.name.startswith(prefix):
                return record.levelno >= min_level
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/task_countdown",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Install a filtered stderr handler and a rotating file handler on the root logger.

    Call once at startup; handlers installed earlier are replaced.
    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%H:%M:%S"))
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        str(log_file),
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
