"""Time and timezone utilities."""

import math
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(ZoneInfo("UTC"))


def to_utc(dt: datetime, tz: str) -> datetime:
    """Convert a timezone-aware datetime to UTC."""
    if dt.tzinfo is None:
        # Assume it's in the given timezone
        dt = dt.replace(tzinfo=ZoneInfo(tz))
    return dt.astimezone(ZoneInfo("UTC"))


def from_utc(dt: datetime, tz: str) -> datetime:
    """Convert a UTC datetime to the given timezone."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo("UTC"))
    return dt.astimezone(ZoneInfo(tz))


def local_midnight(now: datetime, tz: str) -> datetime:
    """Midnight at the start of the local day containing ``now``.

    Returns:
        The local midnight expressed in UTC
    """
    local_now = from_utc(now, tz)
    midnight = datetime.combine(local_now.date(), time(0, 0), tzinfo=ZoneInfo(tz))
    return to_utc(midnight, tz)


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from start to end, rounding partial days up.

    Examples:
        end = start + 7 days       -> 7
        end = start + 6 days 1 hour -> 7
        end = start                 -> 0
    """
    return math.ceil((end - start) / timedelta(days=1))


def add_months(dt: datetime, months: int) -> datetime:
    """Add calendar months, clamping to the end of shorter months."""
    return dt + relativedelta(months=months)


def format_days_left(days: int) -> str:
    """Format a lead time for notification text.

    Examples:
        0 -> "today"
        1 -> "1 day left"
        7 -> "7 days left"
    """
    if days <= 0:
        return "today"
    return f"{days} day{'s' if days != 1 else ''} left"
