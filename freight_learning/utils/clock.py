"""Clock and timezone helpers.

Learning components never call ``datetime.now()`` directly; they take a
``clock`` callable so tests can pin time. Stored timestamps are naive UTC
(SQLite keeps naive datetimes), while hour-of-day / day-of-week buckets are
computed in the customer's configured timezone.
"""

from datetime import datetime
from typing import Callable

import pytz

Clock = Callable[[], datetime]

DAY_NAMES = [
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
]


def now_utc() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(pytz.utc)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert any datetime to naive UTC for storage.

    Naive inputs are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(pytz.utc).replace(tzinfo=None)


def to_local(dt: datetime, tz_name: str) -> datetime:
    """Convert a datetime into the named timezone.

    Args:
        dt: Aware datetime, or naive datetime interpreted as UTC.
        tz_name: IANA timezone name (e.g. "America/Chicago").

    Returns:
        Timezone-aware datetime in ``tz_name``.
    """
    tz = pytz.timezone(tz_name)
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt.astimezone(tz)


def js_day_of_week(dt: datetime) -> int:
    """Day of week with Sunday = 0 ... Saturday = 6."""
    return (dt.weekday() + 1) % 7


def epoch_millis(dt: datetime) -> int:
    """Milliseconds since the Unix epoch; naive values are treated as UTC."""
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return int(dt.timestamp() * 1000)
