# src/task_countdown/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterable, Iterator
from datetime import date, datetime, time
from pathlib import Path
from typing import Any

from .task_models import Recurrence, Task, format_time

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id",
    "title",
    "completed",
    "start_date",
    "start_time",
    "end_date",
    "end_time",
    "recurrence",
    "created_at",
)

_INSERT_SQL = "INSERT INTO tasks({cols}) VALUES ({params})".format(
    cols=", ".join(_COLUMNS),
    params=", ".join(f":{c}" for c in _COLUMNS),
)

# Columns added after the first release, with the declaration used to backfill old files.
_MIGRATED_COLUMNS = (
    ("completed", "INTEGER NOT NULL DEFAULT 0"),
    ("start_date", "TEXT"),
    ("start_time", "TEXT"),
    ("end_date", "TEXT"),
    ("end_time", "TEXT"),
    ("recurrence", "TEXT NOT NULL DEFAULT 'none'"),
    ("created_at", "TEXT"),
)


class TaskStore:
    """
    The ordered task collection, persisted in one SQLite table.

    Order is insertion order (autoincrement `seq`); editing, completing or
    re-importing a task keeps its place. Old database files are upgraded in
    place by adding missing columns; NULLs read back as defaults.

    Every call opens and closes its own connection, so the store can be used
    from the console thread and the engine thread alike.
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("TaskStore ready db=%s total=%s", self._db_path, self.count_tasks())

    # ---- low-level helpers ----

    @contextlib.contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")
        try:
            yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    title TEXT NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    start_date TEXT,
                    start_time TEXT,
                    end_date TEXT,
                    end_time TEXT,
                    recurrence TEXT NOT NULL DEFAULT 'none',
                    created_at TEXT
                )
                """
            )
            present = {row["name"] for row in conn.execute("PRAGMA table_info(tasks)")}
            for name, decl in _MIGRATED_COLUMNS:
                if name not in present:
                    conn.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                    logger.info("TaskStore migration: added column %s", name)
            conn.commit()

    @staticmethod
    def _task_params(task: Task) -> dict[str, Any]:
        return {
            "id": task.id,
            "title": task.title,
            "completed": 1 if task.completed else 0,
            "start_date": task.start_date.isoformat() if task.start_date else None,
            "start_time": format_time(task.start_time) if task.start_time else None,
            "end_date": task.end_date.isoformat() if task.end_date else None,
            "end_time": format_time(task.end_time) if task.end_time else None,
            "recurrence": task.recurrence.value,
            "created_at": task.created_at.isoformat() if task.created_at else None,
        }

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        def _d(raw: str | None) -> date | None:
            return date.fromisoformat(raw) if raw else None

        def _t(raw: str | None) -> time | None:
            return time.fromisoformat(raw) if raw else None

        created = row["created_at"]
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            completed=bool(row["completed"] or 0),
            start_date=_d(row["start_date"]),
            start_time=_t(row["start_time"]),
            end_date=_d(row["end_date"]),
            end_time=_t(row["end_time"]),
            recurrence=Recurrence.from_db(row["recurrence"]),
            created_at=datetime.fromisoformat(created) if created else None,
        )

    def _select(self, where: str = "", params: tuple[Any, ...] = ()) -> list[Task]:
        with self._connect() as conn:
            rows = conn.execute(f"SELECT * FROM tasks {where} ORDER BY seq ASC", params).fetchall()
        return [self._row_to_task(r) for r in rows]

    def _write_one(self, sql: str, params: Any, task_id: str) -> None:
        """Run a single-row UPDATE/DELETE; KeyError if no row has this id."""
        with self._connect() as conn:
            changed = conn.execute(sql, params).rowcount
            conn.commit()
        if changed != 1:
            raise KeyError(task_id)

    # ---- public API ----

    def count_tasks(self) -> int:
        with self._connect() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
        return int(n)

    def list_tasks(self) -> list[Task]:
        return self._select()

    def get_task(self, task_id: str) -> Task:
        found = self._select("WHERE id = ?", (task_id,))
        if not found:
            raise KeyError(task_id)
        return found[0]

    def find_by_prefix(self, prefix: str) -> list[Task]:
        """Tasks whose id starts with `prefix` (for abbreviated ids typed by a user)."""
        prefix = (prefix or "").strip()
        if not prefix:
            return []
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        return self._select("WHERE id LIKE ? ESCAPE '\\'", (escaped + "%",))

    def add_task(self, task: Task) -> None:
        if not task.title or not task.title.strip():
            raise ValueError("title is required")

        with self._connect() as conn:
            conn.execute(_INSERT_SQL, self._task_params(task))
            conn.commit()
        logger.debug("Task added id=%s title=%r recurrence=%s", task.id, task.title, task.recurrence.value)

    def update_task(self, task: Task) -> None:
        """Overwrite everything but id, position and created_at."""
        self._write_one(
            """
            UPDATE tasks
            SET title = :title,
                completed = :completed,
                start_date = :start_date,
                start_time = :start_time,
                end_date = :end_date,
                end_time = :end_time,
                recurrence = :recurrence
            WHERE id = :id
            """,
            self._task_params(task),
            task.id,
        )

    def set_completed(self, task_id: str, completed: bool) -> None:
        self._write_one("UPDATE tasks SET completed = ? WHERE id = ?", (1 if completed else 0, task_id), task_id)

    def delete_task(self, task_id: str) -> None:
        self._write_one("DELETE FROM tasks WHERE id = ?", (task_id,), task_id)

    def upsert_tasks(self, tasks: Iterable[Task]) -> int:
        """
        Merge tasks by id: existing ids are overwritten in place (position kept),
        new ids are appended in the given order. All-or-nothing; returns the number
        of records written.
        """
        updates = ", ".join(f"{c} = excluded.{c}" for c in _COLUMNS if c != "id")
        sql = f"{_INSERT_SQL} ON CONFLICT(id) DO UPDATE SET {updates}"

        rows = [self._task_params(t) for t in tasks]
        with self._connect() as conn:
            conn.executemany(sql, rows)
            conn.commit()
        logger.info("TaskStore upserted %d task(s)", len(rows))
        return len(rows)

    # ---- TaskRepo port (used by the countdown engine) ----

    def get_task_snapshot(self) -> list[Task]:
        return self.list_tasks()

    def request_complete(self, task_id: str) -> None:
        self.set_completed(task_id, True)

    def request_create(self, task: Task) -> None:
        self.add_task(task)
