"""
Week arithmetic shared by check-ins, streaks and Fog Checks.

Weeks are ISO weeks (Monday start). A "week_of" value is the date of that
Monday. All timestamps are handled in UTC.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps (SQLite returns naive values)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_week_of(moment: Optional[Union[datetime, date]] = None) -> date:
    """Monday of the ISO week containing `moment` (default: now)."""
    if moment is None:
        moment = utcnow()
    if isinstance(moment, datetime):
        moment = as_utc(moment).date()
    return moment - timedelta(days=moment.weekday())


def days_between(start: datetime, end: datetime) -> int:
    """Whole days elapsed from start to end (floored, may be negative)."""
    elapsed = as_utc(end) - as_utc(start)
    return int(elapsed.total_seconds() // 86400)


def get_week_number(started_at: datetime, now: Optional[datetime] = None) -> int:
    """
    1-indexed week counter since `started_at`.

    Days 0-6 are week 1, days 7-13 week 2, and so on. Never below 1.
    """
    days = days_between(started_at, now or utcnow())
    return max(1, days // 7 + 1)


def weeks_between(earlier_week_of: date, later_week_of: date) -> int:
    """Number of whole weeks separating two week_of dates."""
    return (later_week_of - earlier_week_of).days // 7
