"""
Timezone utilities for the dance school platform.

All timestamps are stored in UTC. Class schedules are entered as local
wall-clock times in the template's timezone and converted here.
"""

from datetime import date, datetime, time, timezone

import pytz


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Return ``dt`` as an aware UTC datetime.

    SQLite drops tzinfo on round-trip, so naive values read back from the
    store are treated as UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def get_timezone(name: str) -> pytz.BaseTzInfo:
    return pytz.timezone(name)


def local_to_utc(day: date, at: time, tz_name: str) -> datetime:
    """Resolve a local date and wall-clock time in ``tz_name`` to UTC."""
    tz = get_timezone(tz_name)
    local_dt = tz.localize(datetime.combine(day, at), is_dst=False)
    return local_dt.astimezone(pytz.utc)

