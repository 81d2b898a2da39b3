# src/task_countdown/tasks/task_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import StrEnum
from typing import Any

# Time-of-day used when a date is given without a time.
DEFAULT_START_TIME = time(0, 0)
DEFAULT_DUE_TIME = time(23, 59)


class ValidationError(ValueError):
    """Task input rejected before the collection is touched."""


class Recurrence(StrEnum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def from_db(cls, raw: str | None) -> Recurrence:
        if not raw:
            return cls.NONE
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.NONE


def new_task_id() -> str:
    return uuid.uuid4().hex


def _combine(d: date | None, t: time | None, fallback: time) -> datetime | None:
    if d is None:
        return None
    return datetime.combine(d, t or fallback)


def format_time(t: time) -> str:
    """HH:MM, or HH:MM:SS when seconds are set."""
    return t.strftime("%H:%M:%S" if t.second else "%H:%M")


def _parse_bool(raw: Any) -> bool:
    if raw is None or raw == "":
        return False
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int) and raw in (0, 1):
        return bool(raw)
    text = str(raw).strip().lower()
    if text in ("true", "1"):
        return True
    if text in ("false", "0"):
        return False
    raise ValueError(f"invalid completed flag: {raw!r}")


def _parse_date(raw: Any) -> date | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    return date.fromisoformat(str(raw)[:10])


def _parse_time(raw: Any) -> time | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, time):
        return raw
    return time.fromisoformat(str(raw))


def _parse_datetime(raw: Any) -> datetime | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw
    text = str(raw).strip()
    # JS-style ISO timestamps end with "Z".
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    value = datetime.fromisoformat(text)
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


@dataclass(slots=True)
class Task:
    """
    A tracked task.

    Start and end are stored as separate date/time parts so a task can carry
    a date without a time (or no dates at all). Instants are derived:

    - start_at(): start_date at start_time (00:00 if no time)
    - due_at():   (end_date or start_date) at (end_time or start_time or 23:59)
    """

    id: str
    title: str
    completed: bool = False

    start_date: date | None = None
    start_time: time | None = None
    end_date: date | None = None
    end_time: time | None = None

    recurrence: Recurrence = Recurrence.NONE
    created_at: datetime | None = None

    def start_at(self) -> datetime | None:
        return _combine(self.start_date, self.start_time, DEFAULT_START_TIME)

    def due_at(self) -> datetime | None:
        return _combine(
            self.end_date or self.start_date,
            self.end_time or self.start_time,
            DEFAULT_DUE_TIME,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "completed": self.completed,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "startTime": format_time(self.start_time) if self.start_time else None,
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "endTime": format_time(self.end_time) if self.end_time else None,
            "recurrence": self.recurrence.value,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        """
        Build a Task from an exported record.

        Absent fields fall back to defaults (completed=False, recurrence=none,
        no dates). Malformed values raise ValueError.
        """
        task_id = str(data.get("id") or "").strip()
        if not task_id:
            raise ValueError("task record is missing 'id'")
        title = str(data.get("title") or "").strip()
        if not title:
            raise ValueError(f"task {task_id} has an empty title")

        return cls(
            id=task_id,
            title=title,
            completed=_parse_bool(data.get("completed")),
            start_date=_parse_date(data.get("startDate")),
            start_time=_parse_time(data.get("startTime")),
            end_date=_parse_date(data.get("endDate")),
            end_time=_parse_time(data.get("endTime")),
            recurrence=Recurrence.from_db(data.get("recurrence")),
            created_at=_parse_datetime(data.get("createdAt")),
        )


def validate_window(task: Task) -> None:
    """Raise ValidationError if the task ends before it starts."""
    start = task.start_at()
    due = task.due_at()
    if start is not None and due is not None and due < start:
        raise ValidationError("End date/time cannot be earlier than start date/time.")
