"""Range summary over resolved calendar entries.

Contract:
- Completed means COMPLETED_MANUAL or COMPLETED_SYNCED. A synced draft is
  awaiting athlete confirmation and is not completed.
- Completed figures prefer the latest completion and fall back to the
  planned figure for completed items only.
- Each item counts once, on the local day of its effective instant.
- No clock access: "missed" needs an explicit ``today_day_key``.
"""

from dataclasses import dataclass, field
from datetime import datetime

from ..models.calendar import EntryStatus
from ..utils.day_keys import day_keys_inclusive
from ..utils.local_day import local_day_key


@dataclass
class CompletionFigures:
    """The latest completion attached to a calendar item."""

    activity_id: int | None = None
    source: str | None = None
    start_time: datetime | None = None
    duration_minutes: int | None = None
    distance_km: float | None = None
    calories_kcal: float | None = None
    confirmed_at: datetime | None = None
    match_day_diff: int | None = None

    def to_dict(self) -> dict:
        return {
            "activity_id": self.activity_id,
            "source": self.source,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "duration_minutes": self.duration_minutes,
            "distance_km": self.distance_km,
            "calories_kcal": self.calories_kcal,
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
            "match_day_diff": self.match_day_diff,
        }


@dataclass
class ResolvedCalendarEntry:
    """A calendar item with its effective instant already resolved.

    ``entry_id`` is None for an unplanned completion shown on its own day.
    """

    date: str
    status: EntryStatus
    effective_start_utc: datetime | None = None
    entry_id: int | None = None
    discipline: str | None = None
    title: str = ""
    planned_start_time_local: str | None = None
    planned_duration_minutes: int | None = None
    planned_distance_km: float | None = None
    planned_calories_kcal: float | None = None
    completion: CompletionFigures | None = None

    @property
    def is_unplanned(self) -> bool:
        return self.entry_id is None

    def to_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "date": self.date,
            "status": self.status.value,
            "effective_start_utc": (
                self.effective_start_utc.isoformat() if self.effective_start_utc else None
            ),
            "discipline": self.discipline,
            "title": self.title,
            "planned_start_time_local": self.planned_start_time_local,
            "planned_duration_minutes": self.planned_duration_minutes,
            "planned_distance_km": self.planned_distance_km,
            "planned_calories_kcal": self.planned_calories_kcal,
            "unplanned": self.is_unplanned,
            "completion": self.completion.to_dict() if self.completion else None,
        }


@dataclass
class DisciplineRow:
    discipline: str
    planned_minutes: float = 0
    completed_minutes: float = 0
    planned_distance_km: float = 0
    completed_distance_km: float = 0
    planned_calories_kcal: float | None = None
    completed_calories_kcal: float = 0

    @property
    def average_pace_sec_per_km(self) -> int | None:
        """Average pace over completed distance, when there is any."""
        if self.completed_distance_km > 0 and self.completed_minutes > 0:
            return round(self.completed_minutes * 60 / self.completed_distance_km)
        return None

    def to_dict(self) -> dict:
        return {
            "discipline": self.discipline,
            "planned_minutes": self.planned_minutes,
            "completed_minutes": self.completed_minutes,
            "planned_distance_km": self.planned_distance_km,
            "completed_distance_km": self.completed_distance_km,
            "planned_calories_kcal": self.planned_calories_kcal,
            "completed_calories_kcal": self.completed_calories_kcal,
            "average_pace_sec_per_km": self.average_pace_sec_per_km,
        }


@dataclass
class RangeTotals:
    planned_minutes: float = 0
    completed_minutes: float = 0
    planned_distance_km: float = 0
    completed_distance_km: float = 0
    planned_calories_kcal: float | None = None
    completed_calories_kcal: float = 0
    workouts_planned: int = 0
    workouts_completed: int = 0
    workouts_skipped: int = 0
    workouts_missed: int = 0

    def to_dict(self) -> dict:
        return dict(self.__dict__)


@dataclass
class RangeSummary:
    from_day_key: str
    to_day_key: str
    time_zone: str
    totals: RangeTotals = field(default_factory=RangeTotals)
    by_discipline: list[DisciplineRow] = field(default_factory=list)
    calories_by_day: list[dict] = field(default_factory=list)
    item_count: int = 0
    counted_item_count: int = 0

    @property
    def planned_total_minutes(self) -> float:
        return self.totals.planned_minutes

    @property
    def completed_total_minutes(self) -> float:
        return self.totals.completed_minutes

    def to_dict(self) -> dict:
        return {
            "from_day_key": self.from_day_key,
            "to_day_key": self.to_day_key,
            "planned_total_minutes": self.totals.planned_minutes,
            "completed_total_minutes": self.totals.completed_minutes,
            "totals": self.totals.to_dict(),
            "by_discipline": [row.to_dict() for row in self.by_discipline],
            "calories_by_day": self.calories_by_day,
            "meta": {
                "time_zone": self.time_zone,
                "item_count": self.item_count,
                "counted_item_count": self.counted_item_count,
                "planned_item_count": self.totals.workouts_planned,
                "completed_item_count": self.totals.workouts_completed,
                "skipped_item_count": self.totals.workouts_skipped,
            },
        }


def _positive(value) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value != value or value <= 0:  # NaN or non-positive
        return None
    return value


def is_completed(item: ResolvedCalendarEntry) -> bool:
    return item.status.is_completed


def completed_minutes(item: ResolvedCalendarEntry) -> float | None:
    if not is_completed(item):
        return None
    if item.completion is not None:
        value = _positive(item.completion.duration_minutes)
        if value:
            return value
    return _positive(item.planned_duration_minutes)


def completed_distance_km(item: ResolvedCalendarEntry) -> float | None:
    if not is_completed(item):
        return None
    if item.completion is not None:
        value = _positive(item.completion.distance_km)
        if value:
            return value
    return _positive(item.planned_distance_km)


def completed_calories_kcal(item: ResolvedCalendarEntry) -> float | None:
    if not is_completed(item) or item.completion is None:
        return None
    return _positive(item.completion.calories_kcal)


def effective_day_key(item: ResolvedCalendarEntry, time_zone: str) -> str:
    """Local day an item counts on."""
    if item.effective_start_utc is not None:
        return local_day_key(item.effective_start_utc, time_zone)
    return item.date


def summarize(
    items: list[ResolvedCalendarEntry],
    time_zone: str,
    from_day_key: str,
    to_day_key: str,
    today_day_key: str | None = None,
) -> RangeSummary:
    """Roll resolved entries up into totals, per-discipline rows and calories by day."""
    summary = RangeSummary(
        from_day_key=from_day_key,
        to_day_key=to_day_key,
        time_zone=time_zone,
        item_count=len(items),
    )
    totals = summary.totals
    rows: dict[str, DisciplineRow] = {}
    calories: dict[str, dict] = {}

    for item in items:
        day_key = effective_day_key(item, time_zone)
        if day_key < from_day_key or day_key > to_day_key:
            continue
        summary.counted_item_count += 1

        planned_minutes = _positive(item.planned_duration_minutes) or 0
        planned_distance = _positive(item.planned_distance_km) or 0
        planned_calories = _positive(item.planned_calories_kcal)
        done_minutes = completed_minutes(item) or 0
        done_distance = completed_distance_km(item) or 0
        done_calories = completed_calories_kcal(item) or 0

        is_planned = not item.is_unplanned and (
            planned_minutes > 0
            or planned_distance > 0
            or planned_calories is not None
            or item.status.is_open
        )
        if is_planned:
            totals.workouts_planned += 1
            if item.status.is_open and today_day_key is not None and day_key < today_day_key:
                totals.workouts_missed += 1
        if is_completed(item):
            totals.workouts_completed += 1
        if item.status == EntryStatus.SKIPPED:
            totals.workouts_skipped += 1

        totals.planned_minutes += planned_minutes
        totals.planned_distance_km += planned_distance
        totals.completed_minutes += done_minutes
        totals.completed_distance_km += done_distance
        totals.completed_calories_kcal += done_calories
        if planned_calories is not None:
            totals.planned_calories_kcal = (totals.planned_calories_kcal or 0) + planned_calories

        if done_calories > 0 or planned_calories is not None:
            day = calories.setdefault(day_key, {"completed": 0, "planned": None})
            day["completed"] += done_calories
            if planned_calories is not None:
                day["planned"] = (day["planned"] or 0) + planned_calories

        if not (planned_minutes or planned_distance or done_minutes or done_distance or done_calories):
            continue

        discipline = (item.discipline or "").strip().upper() or "OTHER"
        row = rows.setdefault(discipline, DisciplineRow(discipline=discipline))
        row.planned_minutes += planned_minutes
        row.completed_minutes += done_minutes
        row.planned_distance_km += planned_distance
        row.completed_distance_km += done_distance
        row.completed_calories_kcal += done_calories
        if planned_calories is not None:
            row.planned_calories_kcal = (row.planned_calories_kcal or 0) + planned_calories

    summary.by_discipline = sorted(
        rows.values(),
        key=lambda r: (
            -max(r.planned_minutes, r.completed_minutes),
            -r.planned_minutes,
            -r.completed_minutes,
            r.discipline,
        ),
    )
    summary.calories_by_day = [
        {
            "day_key": day_key,
            "completed_calories_kcal": calories.get(day_key, {}).get("completed", 0),
            "planned_calories_kcal": calories.get(day_key, {}).get("planned"),
        }
        for day_key in day_keys_inclusive(from_day_key, to_day_key)
    ]
    return summary
