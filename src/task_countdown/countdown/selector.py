# src/task_countdown/countdown/selector.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from ..tasks.task_models import Task


class SelectionStatus(StrEnum):
    SELECTED = "selected"
    NO_ACTIVE_TASKS = "no_active_tasks"
    NONE_STARTED_YET = "none_started_yet"
    NO_DEADLINE_SET = "no_deadline_set"


@dataclass(slots=True, frozen=True)
class Target:
    task: Task
    due: datetime
    start: datetime | None

    @property
    def key(self) -> str:
        """Identity of one occurrence: the same task with a moved deadline is a new target."""
        return f"{self.task.id}-{self.due.isoformat()}"


@dataclass(slots=True, frozen=True)
class Selection:
    status: SelectionStatus
    target: Target | None = None


def is_started(task: Task, now: datetime) -> bool:
    start = task.start_at()
    return start is None or start <= now


def select_target(tasks: Iterable[Task], now: datetime) -> Selection:
    """
    Pick the task to count down to: among active, started tasks, the one with
    the earliest due instant (ties keep list order).

    Tasks without any date are started but never win the ranking.
    """
    active = [t for t in tasks if not t.completed]
    if not active:
        return Selection(SelectionStatus.NO_ACTIVE_TASKS)

    started = [t for t in active if is_started(t, now)]
    if not started:
        return Selection(SelectionStatus.NONE_STARTED_YET)

    candidates: list[Target] = []
    for t in started:
        due = t.due_at()
        if due is None:
            continue
        candidates.append(Target(task=t, due=due, start=t.start_at()))

    if not candidates:
        return Selection(SelectionStatus.NO_DEADLINE_SET)

    # min() returns the first of equal items, which keeps list order on ties.
    return Selection(SelectionStatus.SELECTED, min(candidates, key=lambda c: c.due))
