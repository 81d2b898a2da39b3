# src/task_countdown/tasks/task_api.py

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable
from datetime import date, datetime, time
from pathlib import Path

from .recurrence import next_occurrence
from .task_models import Recurrence, Task, ValidationError, new_task_id, validate_window
from .task_store import TaskStore

logger = logging.getLogger(__name__)

FILTERS = ("all", "active", "completed")
SORTS = ("end", "start", "created", "title")


def create_task(
    store: TaskStore,
    *,
    title: str,
    start_date: date | None = None,
    start_time: time | None = None,
    end_date: date | None = None,
    end_time: time | None = None,
    recurrence: Recurrence | str = Recurrence.NONE,
    now: datetime | None = None,
) -> Task:
    """
    Validate and store a new task.

    end_date defaults to start_date. Raises ValidationError (nothing stored)
    if the title is blank or the task ends before it starts.
    """
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required.")

    task = Task(
        id=new_task_id(),
        title=title,
        completed=False,
        start_date=start_date,
        start_time=start_time,
        end_date=end_date or start_date,
        end_time=end_time,
        recurrence=Recurrence.from_db(recurrence),
        created_at=now or datetime.now(),
    )
    validate_window(task)

    store.request_create(task)
    logger.info("Task created id=%s title=%r due=%s", task.id, task.title, task.due_at())
    return task


def edit_task(
    store: TaskStore,
    task_id: str,
    *,
    title: str | None = None,
    start_date: date | None = None,
    start_time: time | None = None,
    end_date: date | None = None,
    end_time: time | None = None,
    recurrence: Recurrence | str = Recurrence.NONE,
) -> Task:
    """
    Replace the schedule of an existing task.

    Date/time fields are taken as given (None clears them); a blank title keeps
    the current one. The stored task is unchanged if validation fails.
    """
    current = store.get_task(task_id)

    updated = Task(
        id=current.id,
        title=(title or "").strip() or current.title,
        completed=current.completed,
        start_date=start_date,
        start_time=start_time,
        end_date=end_date or start_date,
        end_time=end_time,
        recurrence=Recurrence.from_db(recurrence),
        created_at=current.created_at,
    )
    validate_window(updated)

    store.update_task(updated)
    logger.info("Task edited id=%s due=%s", updated.id, updated.due_at())
    return updated


def toggle_complete(store: TaskStore, task_id: str, *, now: datetime | None = None) -> Task | None:
    """
    Flip the completed flag of a task.

    Completing a recurring task appends its next occurrence (same title, times
    and recurrence; fresh id). Returns the spawned task, or None.
    """
    task = store.get_task(task_id)

    if task.completed:
        store.set_completed(task.id, False)
        logger.info("Task reopened id=%s", task.id)
        return None

    store.request_complete(task.id)
    logger.info("Task completed id=%s", task.id)

    if task.recurrence is Recurrence.NONE:
        return None

    next_start = next_occurrence(task.start_date, task.recurrence)
    next_end = next_occurrence(task.end_date or task.start_date, task.recurrence)
    if next_start is None and next_end is None:
        return None

    successor = Task(
        id=new_task_id(),
        title=task.title,
        completed=False,
        start_date=next_start,
        start_time=task.start_time,
        end_date=next_end,
        end_time=task.end_time,
        recurrence=task.recurrence,
        created_at=now or datetime.now(),
    )
    store.request_create(successor)
    logger.info(
        "Recurring task %s spawned successor id=%s start=%s end=%s",
        task.id,
        successor.id,
        next_start,
        next_end,
    )
    return successor


def delete_task(store: TaskStore, task_id: str) -> None:
    store.delete_task(task_id)
    logger.info("Task deleted id=%s", task_id)


def visible_tasks(
    tasks: Iterable[Task],
    *,
    filter_by: str = "all",
    sort_by: str = "end",
    query: str = "",
) -> list[Task]:
    """
    Filter / search / sort a task list for display.

    Missing instants sort last. Active tasks always come before completed ones.
    """
    items = list(tasks)
    if filter_by == "active":
        items = [t for t in items if not t.completed]
    elif filter_by == "completed":
        items = [t for t in items if t.completed]

    q = (query or "").strip().lower()
    if q:
        items = [t for t in items if q in t.title.lower()]

    if sort_by == "title":
        items.sort(key=lambda t: t.title.lower())
    elif sort_by == "created":
        items.sort(key=lambda t: t.created_at or datetime.min)
    elif sort_by == "start":
        items.sort(key=lambda t: (t.start_at() is None, t.start_at() or datetime.min))
    else:
        items.sort(key=lambda t: (t.due_at() is None, t.due_at() or datetime.min))

    items.sort(key=lambda t: t.completed)
    return items


def export_tasks(store: TaskStore, path: str | Path) -> int:
    """Write all tasks as a JSON array. Returns the number of exported tasks."""
    path = Path(path)
    tasks = store.list_tasks()
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps([t.to_dict() for t in tasks], ensure_ascii=False, indent=2), "utf-8")
    os.replace(tmp, path)
    logger.info("Exported %d task(s) to %s", len(tasks), path)
    return len(tasks)


def import_tasks(store: TaskStore, path: str | Path) -> int:
    """
    Merge tasks from a JSON array (by id). The whole file is parsed before
    anything is written; a malformed file raises ValidationError.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text("utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationError(f"Cannot read {path}: {e}") from e

    if not isinstance(data, list):
        raise ValidationError("Import file must contain a JSON array of tasks.")

    tasks: list[Task] = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise ValidationError(f"Item #{i} is not an object.")
        try:
            tasks.append(Task.from_dict(item))
        except ValueError as e:
            raise ValidationError(f"Item #{i}: {e}") from e

    n = store.upsert_tasks(tasks)
    logger.info("Imported %d task(s) from %s", n, path)
    return n
