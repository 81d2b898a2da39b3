# src/task_countdown/tasks/recurrence.py

from __future__ import annotations

from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from .task_models import Recurrence


def next_occurrence(day: date | None, rule: Recurrence | str | None) -> date | None:
    """
    Date of the next occurrence after `day` for a recurrence rule.

    Monthly steps clamp to the last day of the target month
    (2024-01-31 -> 2024-02-29) instead of rolling into the following month.
    Returns None for Recurrence.NONE or a missing date.
    """
    if day is None:
        return None

    rule = Recurrence.from_db(rule)
    if rule is Recurrence.DAILY:
        return day + timedelta(days=1)
    if rule is Recurrence.WEEKLY:
        return day + timedelta(days=7)
    if rule is Recurrence.MONTHLY:
        return day + relativedelta(months=1)
    return None
