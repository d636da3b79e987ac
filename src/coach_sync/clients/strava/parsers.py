"""Parsers for Strava activity payloads."""

from datetime import datetime, timezone

from ...models.calendar import Discipline
from ...models.metrics import StravaMetrics
from ...utils.local_day import parse_instant
from ..base import ExternalActivity, TokenGrant

# Substrings of sport_type/type that mark gym-style sessions
STRENGTH_KEYWORDS = ("workout", "weight", "strength", "training", "crossfit", "yoga", "pilates")


class SkipReason:
    """Reasons a raw payload cannot become a completion."""

    MISSING_ID = "missing_id"
    INVALID_START = "invalid_start"
    NO_DURATION = "no_duration"


def map_discipline(raw: dict) -> Discipline:
    """Map Strava's sport_type (or legacy type) onto a discipline."""
    value = str(raw.get("sport_type") or raw.get("type") or "").lower()

    if "run" in value:
        return Discipline.RUN
    if "ride" in value or "bike" in value:
        return Discipline.BIKE
    if "swim" in value:
        return Discipline.SWIM
    if any(keyword in value for keyword in STRENGTH_KEYWORDS):
        return Discipline.STRENGTH
    return Discipline.OTHER


def seconds_to_minutes(seconds: float) -> int:
    """Round to whole minutes, never below one."""
    return max(1, round(seconds / 60))


def _number(value) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def parse_metrics(raw: dict, activity_id: str) -> StravaMetrics:
    """Extract the figures kept in the metrics blob."""
    summary_map = raw.get("map") or {}
    polyline = summary_map.get("summary_polyline") if isinstance(summary_map, dict) else None

    return StravaMetrics(
        activity_id=activity_id,
        start_date_utc=raw.get("start_date"),
        start_date_local=raw.get("start_date_local"),
        timezone=raw.get("timezone"),
        name=raw.get("name"),
        sport_type=raw.get("sport_type"),
        type=raw.get("type"),
        distance_meters=_number(raw.get("distance")),
        moving_time_sec=_number(raw.get("moving_time")),
        elapsed_time_sec=_number(raw.get("elapsed_time")),
        total_elevation_gain_m=_number(raw.get("total_elevation_gain")),
        average_speed_mps=_number(raw.get("average_speed")),
        max_speed_mps=_number(raw.get("max_speed")),
        average_heartrate_bpm=_number(raw.get("average_heartrate")),
        max_heartrate_bpm=_number(raw.get("max_heartrate")),
        average_cadence_rpm=_number(raw.get("average_cadence")),
        average_watts=_number(raw.get("average_watts")),
        calories_kcal=_number(raw.get("calories")),
        summary_polyline=polyline if isinstance(polyline, str) else None,
    )


def parse_activity(raw: dict) -> tuple[ExternalActivity | None, str | None]:
    """Normalize one raw Strava activity.

    Returns:
        ``(activity, None)`` on success, ``(None, skip_reason)`` otherwise.
    """
    external_id = str(raw.get("id") or "").strip()
    if not external_id:
        return None, SkipReason.MISSING_ID

    start_raw = raw.get("start_date")
    if not isinstance(start_raw, str):
        return None, SkipReason.INVALID_START
    try:
        start_time = parse_instant(start_raw)
    except ValueError:
        return None, SkipReason.INVALID_START

    moving_seconds = _number(raw.get("moving_time")) or _number(raw.get("elapsed_time")) or 0
    if moving_seconds <= 0:
        return None, SkipReason.NO_DURATION

    distance_meters = _number(raw.get("distance")) or 0
    discipline = map_discipline(raw)

    return (
        ExternalActivity(
            external_activity_id=external_id,
            start_time=start_time,
            discipline=discipline,
            duration_minutes=seconds_to_minutes(moving_seconds),
            distance_km=distance_meters / 1000 if distance_meters > 0 else None,
            title=(raw.get("name") or "").strip() or discipline.value.title(),
            metrics=parse_metrics(raw, external_id),
        ),
        None,
    )


def parse_token_grant(payload: dict) -> TokenGrant | None:
    """Read an OAuth refresh response; None if required fields are missing."""
    access_token = payload.get("access_token")
    refresh_token = payload.get("refresh_token")
    expires_at = payload.get("expires_at")
    if not access_token or not refresh_token or not expires_at:
        return None

    return TokenGrant(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=datetime.fromtimestamp(int(expires_at), tz=timezone.utc),
        scope=payload.get("scope"),
    )
