"""Completed activity model."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ..utils.local_day import shift_local_days
from .calendar import Discipline
from .metrics import Metrics, UnknownMetrics, metrics_from_dict


class CompletionSource(str, Enum):
    """Where a completion came from."""

    MANUAL = "MANUAL"
    STRAVA = "STRAVA"


class UpsertOutcome(str, Enum):
    """Result of an idempotent upsert keyed by external identity."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass
class CompletedActivity:
    """One synced or manually logged completion.

    ``match_day_diff`` is the signed number of local days from the
    activity's own local day to the day of the planned entry it matched.
    Unmatched and manual completions leave it unset.
    """

    athlete_id: int
    source: CompletionSource
    start_time: datetime
    duration_minutes: int | None = None
    distance_km: float | None = None
    discipline: Discipline | None = None
    external_activity_id: str | None = None
    planned_entry_id: int | None = None
    metrics: Metrics = field(default_factory=UnknownMetrics)
    match_day_diff: int | None = None
    activity_day_key: str | None = None
    confirmed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: int | None = None

    @property
    def is_linked(self) -> bool:
        return self.planned_entry_id is not None

    def effective_start_utc(self, time_zone: str) -> datetime:
        """Start instant moved onto the matched entry's local day."""
        if self.source == CompletionSource.STRAVA and self.match_day_diff:
            return shift_local_days(self.start_time, self.match_day_diff, time_zone)
        return self.start_time

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "athlete_id": self.athlete_id,
            "source": self.source.value,
            "external_activity_id": self.external_activity_id,
            "planned_entry_id": self.planned_entry_id,
            "start_time": self.start_time.isoformat(),
            "duration_minutes": self.duration_minutes,
            "distance_km": self.distance_km,
            "discipline": self.discipline.value if self.discipline else None,
            "metrics": self.metrics.to_dict(),
            "match_day_diff": self.match_day_diff,
            "activity_day_key": self.activity_day_key,
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict, id: int | None = None) -> "CompletedActivity":
        confirmed_at = None
        if data.get("confirmed_at"):
            confirmed_at = datetime.fromisoformat(data["confirmed_at"])

        return cls(
            id=id if id is not None else data.get("id"),
            athlete_id=data["athlete_id"],
            source=CompletionSource(data["source"]),
            external_activity_id=data.get("external_activity_id"),
            planned_entry_id=data.get("planned_entry_id"),
            start_time=datetime.fromisoformat(data["start_time"]),
            duration_minutes=data.get("duration_minutes"),
            distance_km=data.get("distance_km"),
            discipline=Discipline(data["discipline"]) if data.get("discipline") else None,
            metrics=metrics_from_dict(data.get("metrics")),
            match_day_diff=data.get("match_day_diff"),
            activity_day_key=data.get("activity_day_key"),
            confirmed_at=confirmed_at,
        )
