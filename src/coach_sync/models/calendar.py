"""Planned calendar entry model."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from ..utils.local_day import MIDDAY, zoned_day_time_to_utc


class Discipline(str, Enum):
    """Training discipline shared by planned entries and synced activities."""

    RUN = "RUN"
    BIKE = "BIKE"
    SWIM = "SWIM"
    STRENGTH = "STRENGTH"
    OTHER = "OTHER"

    @classmethod
    def normalize(cls, value: "str | Discipline | None") -> "Discipline":
        """Map free-form input onto a discipline, defaulting to OTHER."""
        if isinstance(value, cls):
            return value
        raw = (value or "").strip().upper()
        try:
            return cls(raw)
        except ValueError:
            return cls.OTHER


class EntryStatus(str, Enum):
    """Lifecycle status of a planned entry."""

    PLANNED = "PLANNED"
    MODIFIED = "MODIFIED"
    COMPLETED_MANUAL = "COMPLETED_MANUAL"
    COMPLETED_SYNCED = "COMPLETED_SYNCED"
    COMPLETED_SYNCED_DRAFT = "COMPLETED_SYNCED_DRAFT"
    SKIPPED = "SKIPPED"

    @property
    def is_open(self) -> bool:
        """Whether a synced activity may still be matched to this entry."""
        return self in (EntryStatus.PLANNED, EntryStatus.MODIFIED)

    @property
    def is_completed(self) -> bool:
        """Completed for summaries. A synced draft awaits athlete confirmation."""
        return self in (EntryStatus.COMPLETED_MANUAL, EntryStatus.COMPLETED_SYNCED)


@dataclass
class PlannedEntry:
    """A coach-authored session on one local calendar day.

    ``date`` is a local day key, not an instant. Together with
    ``planned_start_time_local`` and the athlete's timezone it fixes the
    intended instant used for matching.
    """

    athlete_id: int
    date: str
    discipline: Discipline | None = None
    title: str = ""
    planned_start_time_local: str | None = None
    planned_duration_minutes: int | None = None
    planned_distance_km: float | None = None
    planned_calories_kcal: float | None = None
    status: EntryStatus = EntryStatus.PLANNED
    deleted_at: datetime | None = None
    id: int | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def intended_start_utc(self, time_zone: str) -> datetime:
        """Planned start as an instant; midday when no start time is set."""
        return zoned_day_time_to_utc(self.date, self.planned_start_time_local or MIDDAY, time_zone)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "athlete_id": self.athlete_id,
            "date": self.date,
            "discipline": self.discipline.value if self.discipline else None,
            "title": self.title,
            "planned_start_time_local": self.planned_start_time_local,
            "planned_duration_minutes": self.planned_duration_minutes,
            "planned_distance_km": self.planned_distance_km,
            "planned_calories_kcal": self.planned_calories_kcal,
            "status": self.status.value,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict, id: int | None = None) -> "PlannedEntry":
        deleted_at = None
        if data.get("deleted_at"):
            deleted_at = datetime.fromisoformat(data["deleted_at"])

        return cls(
            id=id if id is not None else data.get("id"),
            athlete_id=data["athlete_id"],
            date=data["date"],
            discipline=Discipline(data["discipline"]) if data.get("discipline") else None,
            title=data.get("title", ""),
            planned_start_time_local=data.get("planned_start_time_local"),
            planned_duration_minutes=data.get("planned_duration_minutes"),
            planned_distance_km=data.get("planned_distance_km"),
            planned_calories_kcal=data.get("planned_calories_kcal"),
            status=EntryStatus(data.get("status", "PLANNED")),
            deleted_at=deleted_at,
        )
