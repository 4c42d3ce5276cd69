"""Date helpers for loan periods and derived loan values.

Everything here is a pure function of its arguments. ``now`` is always passed
in by the caller so a fixed clock can be substituted in tests.
"""
import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]

SECONDS_PER_DAY = 24 * 60 * 60


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalise a datetime to aware UTC.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
    columns; those are stored as UTC, so they are tagged rather than shifted.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def compute_due_date(issue_date: datetime, loan_period_days: int = 14) -> datetime:
    """Due date for a loan issued at ``issue_date``."""
    return as_utc(issue_date) + timedelta(days=loan_period_days)


def days_between(start: datetime, end: datetime) -> int:
    """Whole days between two instants, rounded up."""
    seconds = abs((as_utc(end) - as_utc(start)).total_seconds())
    return math.ceil(seconds / SECONDS_PER_DAY)


def is_overdue(due_date: datetime, *, active: bool, now: datetime) -> bool:
    """An active loan is overdue once ``now`` passes its due date."""
    return active and as_utc(now) > as_utc(due_date)


def days_overdue(due_date: datetime, *, active: bool, now: datetime) -> int:
    if not is_overdue(due_date, active=active, now=now):
        return 0
    return days_between(due_date, now)


def loan_duration(
    issue_date: datetime,
    return_date: Optional[datetime],
    *,
    now: datetime,
) -> int:
    """Days a loan has run, up to its return or up to ``now``."""
    return days_between(issue_date, return_date or now)
