"""Date arithmetic over local day keys ("YYYY-MM-DD").

A day key names a civil date in some athlete's timezone. The helpers here
never convert a key to an instant; that is the job of ``local_day``.
"""

import re
from datetime import date, datetime, timedelta

from ..errors import InvalidTimeError

DAY_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Upper bound for range expansion
MAX_RANGE_DAYS = 366


def is_day_key(value: object) -> bool:
    """Check whether a value is a well-formed, real calendar day key."""
    if not isinstance(value, str) or not DAY_KEY_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_day_key(day_key: str) -> date:
    """Parse a day key into a calendar date."""
    if not is_day_key(day_key):
        raise InvalidTimeError(f"Invalid day key: {day_key!r}")
    return date.fromisoformat(day_key)


def format_day_key(value: date) -> str:
    """Format a calendar date as a day key."""
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def add_days_to_day_key(day_key: str, days: int) -> str:
    return format_day_key(parse_day_key(day_key) + timedelta(days=days))


def day_key_diff(later: str, earlier: str) -> int:
    """Signed number of calendar days from ``earlier`` to ``later``."""
    return (parse_day_key(later) - parse_day_key(earlier)).days


def is_day_key_in_range(day_key: str, from_day_key: str, to_day_key: str) -> bool:
    """Inclusive range membership. Keys sort lexically in date order."""
    return from_day_key <= day_key <= to_day_key


def day_keys_inclusive(from_day_key: str, to_day_key: str) -> list[str]:
    """List every day key from ``from_day_key`` to ``to_day_key`` inclusive."""
    start = parse_day_key(from_day_key)
    end = parse_day_key(to_day_key)
    keys = []
    cursor = start
    while cursor <= end and len(keys) < MAX_RANGE_DAYS:
        keys.append(format_day_key(cursor))
        cursor += timedelta(days=1)
    return keys


def start_of_week_day_key(day_key: str) -> str:
    """Return the Monday on or before the given day."""
    day = parse_day_key(day_key)
    return format_day_key(day - timedelta(days=day.weekday()))
