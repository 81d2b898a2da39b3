# src/task_countdown/countdown/zones.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

from .selector import Target

CRITICAL_WINDOW = timedelta(seconds=60)
IMMINENT_WINDOW = timedelta(minutes=5)
WARNING_WINDOW = timedelta(hours=24)


class Zone(StrEnum):
    """
    Escalation zone of the countdown.

    The last three are display-only states (no target to count down to).
    """

    NORMAL = "normal"
    WARNING = "warning"
    IMMINENT = "imminent"
    CRITICAL = "critical"
    DONE = "done"

    NO_ACTIVE_TASKS = "no_active_tasks"
    NONE_STARTED_YET = "none_started_yet"
    NO_DEADLINE_SET = "no_deadline_set"


class Color(StrEnum):
    NEUTRAL = "blue"
    CAUTION = "yellow"
    ALERT = "red"
    ALERT_PULSE = "red-pulse"


ZONE_COLORS: dict[Zone, Color] = {
    Zone.NORMAL: Color.NEUTRAL,
    Zone.WARNING: Color.CAUTION,
    Zone.IMMINENT: Color.ALERT,
    Zone.CRITICAL: Color.ALERT_PULSE,
    Zone.DONE: Color.NEUTRAL,
    Zone.NO_ACTIVE_TASKS: Color.NEUTRAL,
    Zone.NONE_STARTED_YET: Color.NEUTRAL,
    Zone.NO_DEADLINE_SET: Color.NEUTRAL,
}


@dataclass(slots=True, frozen=True)
class Classification:
    zone: Zone
    color: Color
    remaining: timedelta


def classify(target: Target, now: datetime) -> Classification:
    """
    Classify the time left until target.due.

    Thresholds are inclusive: exactly 60s is CRITICAL, exactly 5m is IMMINENT.
    Above 5 minutes, a task with a known start turns WARNING once half of its
    start..due window has elapsed; a task without a start turns WARNING in its
    last 24 hours.
    """
    remaining = target.due - now

    if remaining <= timedelta(0):
        zone = Zone.DONE
    elif remaining <= CRITICAL_WINDOW:
        zone = Zone.CRITICAL
    elif remaining <= IMMINENT_WINDOW:
        zone = Zone.IMMINENT
    elif target.start is not None:
        halfway = target.start + (target.due - target.start) / 2
        zone = Zone.WARNING if now >= halfway else Zone.NORMAL
    elif remaining <= WARNING_WINDOW:
        zone = Zone.WARNING
    else:
        zone = Zone.NORMAL

    return Classification(zone=zone, color=ZONE_COLORS[zone], remaining=remaining)


def format_remaining(remaining: timedelta) -> str:
    """'<H>h <MM>m <SS>s left' with unbounded hours (no day rollover)."""
    total = max(0, int(remaining.total_seconds()))
    h, rest = divmod(total, 3600)
    m, s = divmod(rest, 60)
    return f"{h}h {m:02d}m {s:02d}s left"
