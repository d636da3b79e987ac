"""Local-day resolution between instants, IANA-zone day keys and UTC ranges.

Rules:
- A value that is already a day key ("YYYY-MM-DD") is a local calendar date
  and is returned unchanged. It is never re-parsed as UTC midnight.
- Instants are projected with the zone's real rules (DST included), not a
  fixed offset.
- An unknown timezone falls back to UTC so read paths keep working.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger

from ..errors import InvalidTimeError
from .day_keys import add_days_to_day_key, format_day_key, is_day_key, parse_day_key

UTC = timezone.utc
DEFAULT_TIME_ZONE = "UTC"

# Intended start used for planned entries without a local start time
MIDDAY = "12:00"

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


@dataclass(frozen=True)
class UtcRange:
    """Half-open UTC interval ``[start_utc, end_utc)``."""

    start_utc: datetime
    end_utc: datetime

    def contains(self, instant: datetime) -> bool:
        instant = ensure_utc(instant)
        return self.start_utc <= instant < self.end_utc

    def to_dict(self) -> dict:
        return {
            "start_utc": self.start_utc.isoformat(),
            "end_utc": self.end_utc.isoformat(),
        }


@lru_cache(maxsize=256)
def _load_zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def is_valid_time_zone(name: str | None) -> bool:
    """Check whether a string names a loadable IANA timezone."""
    if not name or not isinstance(name, str) or len(name) > 64:
        return False
    try:
        _load_zone(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def resolve_time_zone(name: str | ZoneInfo | None, fallback: str = DEFAULT_TIME_ZONE) -> ZoneInfo:
    """Load a timezone, falling back (with a warning) when it is unknown."""
    if isinstance(name, ZoneInfo):
        return name
    if is_valid_time_zone(name):
        return _load_zone(name)
    logger.warning(f"[TZ] Unrecognized timezone {name!r}, falling back to {fallback}")
    return _load_zone(fallback)


def ensure_utc(instant: datetime) -> datetime:
    """Normalize an instant to aware UTC. Naive values are taken as UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)


def parse_instant(value: str) -> datetime:
    """Parse an ISO-8601 instant such as ``2026-02-05T13:10:00Z``."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def local_day_key(instant: datetime | date | str, time_zone: str | ZoneInfo | None) -> str:
    """Project an instant into the civil date of the given zone."""
    if isinstance(instant, str):
        if is_day_key(instant):
            return instant
        try:
            instant = parse_instant(instant)
        except ValueError:
            if "T" in instant:
                return instant.split("T", 1)[0]
            raise InvalidTimeError(f"Cannot resolve a local day from {instant!r}")
    elif not isinstance(instant, datetime):
        # A bare date is already a local calendar date
        return format_day_key(instant)

    zone = resolve_time_zone(time_zone)
    return format_day_key(ensure_utc(instant).astimezone(zone).date())


def parse_local_time(value: str) -> tuple[int, int]:
    """Parse a 24h "HH:MM" string into (hours, minutes)."""
    match = _TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise InvalidTimeError("Time must be HH:MM (24h).")
    return int(match.group(1)), int(match.group(2))


def format_local_time(total_minutes: int) -> str:
    """Format minutes since local midnight as "HH:MM", clamped to the day."""
    safe = max(0, min(23 * 60 + 59, int(total_minutes)))
    return f"{safe // 60:02d}:{safe % 60:02d}"


def zoned_day_time_to_utc(day_key: str, time: str, time_zone: str | ZoneInfo | None) -> datetime:
    """Convert a local day + "HH:MM" in a zone into a UTC instant.

    Wall times skipped by a DST gap resolve with the pre-transition offset.
    """
    day = parse_day_key(day_key)
    hours, minutes = parse_local_time(time)
    zone = resolve_time_zone(time_zone)
    local = datetime(day.year, day.month, day.day, hours, minutes, tzinfo=zone)
    return local.astimezone(UTC)


def local_minutes_of_day(instant: datetime, time_zone: str | ZoneInfo | None) -> int:
    """Minutes since local midnight for an instant in the given zone."""
    local = ensure_utc(instant).astimezone(resolve_time_zone(time_zone))
    return local.hour * 60 + local.minute


def utc_range_for_local_day(day_key: str, time_zone: str | ZoneInfo | None) -> UtcRange:
    """UTC interval whose local representation is exactly ``day_key``."""
    return utc_range_for_local_day_range(day_key, day_key, time_zone)


def utc_range_for_local_day_range(
    from_day_key: str, to_day_key: str, time_zone: str | ZoneInfo | None
) -> UtcRange:
    """UTC interval covering every local day from ``from_day_key`` to ``to_day_key``."""
    zone = resolve_time_zone(time_zone)
    start_utc = zoned_day_time_to_utc(from_day_key, "00:00", zone)
    end_utc = zoned_day_time_to_utc(add_days_to_day_key(to_day_key, 1), "00:00", zone)
    return UtcRange(start_utc=start_utc, end_utc=end_utc)


def is_instant_within_local_range(instant: datetime, utc_range: UtcRange) -> bool:
    return utc_range.contains(instant)


def is_past_end_of_local_day(day_key: str, time_zone: str | ZoneInfo | None, now: datetime) -> bool:
    """True once ``now`` has reached the end of ``day_key`` in the zone."""
    return ensure_utc(now) >= utc_range_for_local_day(day_key, time_zone).end_utc


def today_day_key(time_zone: str | ZoneInfo | None, now: datetime) -> str:
    return local_day_key(now, time_zone)


def shift_local_days(instant: datetime, days: int, time_zone: str | ZoneInfo | None) -> datetime:
    """Move an instant by whole local calendar days, keeping its wall time.

    Unlike a 24h step this keeps the local time of day across DST changes.
    """
    zone = resolve_time_zone(time_zone)
    local = ensure_utc(instant).astimezone(zone)
    shifted = (local.replace(tzinfo=None) + timedelta(days=days)).replace(tzinfo=zone)
    return shifted.astimezone(UTC)
