"""
Derived task attributes.

These are computed on every read and never stored, so they cannot go stale.
All datetimes are compared in UTC; naive values (SQLite drops tzinfo) are
treated as UTC.
"""
import math
from datetime import datetime, timezone
from typing import Optional

SECONDS_PER_DAY = 24 * 60 * 60


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_overdue(due_date: Optional[datetime], completed: bool, now: Optional[datetime] = None) -> bool:
    if due_date is None or completed:
        return False
    now = ensure_utc(now) if now is not None else utcnow()
    return ensure_utc(due_date) < now


def days_until_due(due_date: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    """Whole days left until the due date, rounded up; negative once it has passed."""
    if due_date is None:
        return None
    now = ensure_utc(now) if now is not None else utcnow()
    delta = ensure_utc(due_date) - now
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)
