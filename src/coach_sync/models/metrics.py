"""Provider metrics attached to a completed activity.

Metrics are a tagged union keyed by ``kind``. Call sites read values through
the extraction functions at the bottom of this module instead of probing
provider-specific keys.
"""

from dataclasses import asdict, dataclass, field, fields
from typing import Literal


@dataclass
class StravaMetrics:
    """Figures reported by Strava for one activity."""

    activity_id: str
    start_date_utc: str | None = None
    start_date_local: str | None = None
    timezone: str | None = None
    name: str | None = None
    sport_type: str | None = None
    type: str | None = None
    distance_meters: float | None = None
    moving_time_sec: int | None = None
    elapsed_time_sec: int | None = None
    total_elevation_gain_m: float | None = None
    average_speed_mps: float | None = None
    max_speed_mps: float | None = None
    average_heartrate_bpm: float | None = None
    max_heartrate_bpm: float | None = None
    average_cadence_rpm: float | None = None
    average_watts: float | None = None
    calories_kcal: float | None = None
    summary_polyline: str | None = None
    kind: Literal["strava"] = "strava"

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict) -> "StravaMetrics":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and k != "kind"}
        return cls(**values)


@dataclass
class UnknownMetrics:
    """Metrics from a source this service does not interpret."""

    raw: dict = field(default_factory=dict)
    kind: Literal["unknown"] = "unknown"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "raw": self.raw}


Metrics = StravaMetrics | UnknownMetrics


def metrics_from_dict(data: dict | None) -> Metrics:
    """Rebuild metrics from their stored form."""
    if not data:
        return UnknownMetrics()
    if data.get("kind") == "strava":
        return StravaMetrics.from_dict(data)
    return UnknownMetrics(raw=data.get("raw", data))


def pace_sec_per_km(metrics: Metrics) -> int | None:
    """Average pace in seconds per km, from average speed."""
    if isinstance(metrics, StravaMetrics):
        speed = metrics.average_speed_mps
        if speed and speed > 0:
            return round(1000 / speed)
    return None


def average_power_watts(metrics: Metrics) -> float | None:
    if isinstance(metrics, StravaMetrics) and metrics.average_watts:
        return metrics.average_watts
    return None


def calories_kcal(metrics: Metrics) -> float | None:
    if isinstance(metrics, StravaMetrics) and metrics.calories_kcal and metrics.calories_kcal > 0:
        return metrics.calories_kcal
    return None


def average_heart_rate(metrics: Metrics) -> int | None:
    if isinstance(metrics, StravaMetrics) and metrics.average_heartrate_bpm:
        return round(metrics.average_heartrate_bpm)
    return None
