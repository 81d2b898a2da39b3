# tests/test_task_store.py

from __future__ import annotations

import sqlite3
from datetime import date, datetime, time
from pathlib import Path

import pytest

from task_countdown.tasks.task_models import Recurrence, Task
from task_countdown.tasks.task_store import TaskStore


def _task(task_id: str, title: str | None = None, **kwargs) -> Task:
    return Task(id=task_id, title=title or f"task {task_id}", created_at=datetime(2024, 1, 1), **kwargs)


def test_store_roundtrip_keeps_parts(store: TaskStore) -> None:
    task = _task(
        "a",
        start_date=date(2024, 3, 10),
        start_time=time(9, 30),
        end_date=date(2024, 3, 11),
        end_time=time(17, 0, 15),
        recurrence=Recurrence.MONTHLY,
    )
    store.add_task(task)

    assert store.get_task("a") == task
    assert store.count_tasks() == 1


def test_list_is_in_insertion_order(store: TaskStore) -> None:
    for task_id in ("c", "a", "b"):
        store.add_task(_task(task_id))

    assert [t.id for t in store.list_tasks()] == ["c", "a", "b"]


def test_update_and_complete_keep_position(store: TaskStore) -> None:
    for task_id in ("a", "b", "c"):
        store.add_task(_task(task_id))

    store.update_task(_task("a", "renamed", end_date=date(2024, 5, 1)))
    store.set_completed("b", True)

    tasks = store.list_tasks()
    assert [t.id for t in tasks] == ["a", "b", "c"]
    assert tasks[0].title == "renamed"
    assert tasks[1].completed is True


def test_missing_ids_raise_key_error(store: TaskStore) -> None:
    with pytest.raises(KeyError):
        store.get_task("nope")
    with pytest.raises(KeyError):
        store.update_task(_task("nope"))
    with pytest.raises(KeyError):
        store.set_completed("nope", True)
    with pytest.raises(KeyError):
        store.delete_task("nope")


def test_add_requires_title(store: TaskStore) -> None:
    with pytest.raises(ValueError):
        store.add_task(Task(id="x", title="  "))


def test_duplicate_id_is_rejected(store: TaskStore) -> None:
    store.add_task(_task("a"))
    with pytest.raises(sqlite3.IntegrityError):
        store.add_task(_task("a"))


def test_upsert_overwrites_in_place_and_appends_new(store: TaskStore) -> None:
    for task_id in ("a", "b"):
        store.add_task(_task(task_id))

    n = store.upsert_tasks([_task("new"), _task("a", "A2", completed=True)])

    assert n == 2
    tasks = store.list_tasks()
    assert [t.id for t in tasks] == ["a", "b", "new"]
    assert tasks[0].title == "A2"
    assert tasks[0].completed is True


def test_find_by_prefix_escapes_wildcards(store: TaskStore) -> None:
    store.add_task(_task("abc123"))
    store.add_task(_task("abd456"))
    store.add_task(_task("a_c789"))

    assert [t.id for t in store.find_by_prefix("ab")] == ["abc123", "abd456"]
    assert [t.id for t in store.find_by_prefix("a_")] == ["a_c789"]
    assert store.find_by_prefix("") == []


def test_task_repo_port(store: TaskStore) -> None:
    store.request_create(_task("a"))
    store.request_complete("a")

    assert [t.completed for t in store.get_task_snapshot()] == [True]


def test_migrates_old_schema(tmp_path: Path) -> None:
    db = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(db)
    conn.execute(
        "CREATE TABLE tasks (seq INTEGER PRIMARY KEY AUTOINCREMENT, id TEXT NOT NULL UNIQUE, title TEXT NOT NULL)"
    )
    conn.execute("INSERT INTO tasks(id, title) VALUES ('legacy', 'Old task')")
    conn.commit()
    conn.close()

    store = TaskStore(db)
    task = store.get_task("legacy")

    assert task.title == "Old task"
    assert task.completed is False
    assert task.recurrence is Recurrence.NONE
    assert task.due_at() is None
    assert task.created_at is None
