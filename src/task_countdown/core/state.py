# src/task_countdown/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..countdown.engine import CountdownEngine
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    task_store: TaskStore
    engine: CountdownEngine

    # Serializes engine ticks with task mutations coming from connectors.
    lock: threading.RLock = field(default_factory=threading.RLock)
