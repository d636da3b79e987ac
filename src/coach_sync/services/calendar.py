"""Calendar reads and athlete/coach actions on planned entries."""

from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from ..db.repositories import (
    AthleteRepository,
    CompletedActivityRepository,
    PlannedEntryRepository,
)
from ..errors import ConflictError, InvalidTimeError, NotFoundError
from ..models.activity import CompletedActivity, CompletionSource
from ..models.calendar import EntryStatus, PlannedEntry
from ..models.metrics import calories_kcal
from ..utils.day_keys import MAX_RANGE_DAYS, day_key_diff, parse_day_key
from ..utils.local_day import (
    ensure_utc,
    local_day_key,
    today_day_key,
    utc_range_for_local_day_range,
)
from .summary import CompletionFigures, RangeSummary, ResolvedCalendarEntry, summarize


def validate_range(from_day_key: str, to_day_key: str) -> None:
    """Raise InvalidTimeError for malformed, reversed or oversized ranges."""
    parse_day_key(from_day_key)
    parse_day_key(to_day_key)
    span = day_key_diff(to_day_key, from_day_key)
    if span < 0:
        raise InvalidTimeError("'from' must not be after 'to'.")
    if span >= MAX_RANGE_DAYS:
        raise InvalidTimeError(f"Range must be at most {MAX_RANGE_DAYS} days.")


def effective_start_for_completion(activity: CompletedActivity, time_zone: str) -> datetime:
    return activity.effective_start_utc(time_zone)


def completion_figures(activity: CompletedActivity) -> CompletionFigures:
    return CompletionFigures(
        activity_id=activity.id,
        source=activity.source.value,
        start_time=activity.start_time,
        duration_minutes=activity.duration_minutes,
        distance_km=activity.distance_km,
        calories_kcal=calories_kcal(activity.metrics),
        confirmed_at=activity.confirmed_at,
        match_day_diff=activity.match_day_diff,
    )


def resolve_entry(
    entry: PlannedEntry, completion: CompletedActivity | None, time_zone: str
) -> ResolvedCalendarEntry:
    """Attach the latest completion and the effective instant to an entry."""
    if completion is not None:
        effective = effective_start_for_completion(completion, time_zone)
    else:
        effective = entry.intended_start_utc(time_zone)

    return ResolvedCalendarEntry(
        entry_id=entry.id,
        date=entry.date,
        status=entry.status,
        effective_start_utc=effective,
        discipline=entry.discipline.value if entry.discipline else None,
        title=entry.title,
        planned_start_time_local=entry.planned_start_time_local,
        planned_duration_minutes=entry.planned_duration_minutes,
        planned_distance_km=entry.planned_distance_km,
        planned_calories_kcal=entry.planned_calories_kcal,
        completion=completion_figures(completion) if completion is not None else None,
    )


def resolve_unplanned(activity: CompletedActivity, time_zone: str) -> ResolvedCalendarEntry:
    """An unlinked completion shown on its own local day."""
    if activity.source == CompletionSource.MANUAL:
        status = EntryStatus.COMPLETED_MANUAL
    elif activity.confirmed_at is not None:
        status = EntryStatus.COMPLETED_SYNCED
    else:
        status = EntryStatus.COMPLETED_SYNCED_DRAFT

    return ResolvedCalendarEntry(
        entry_id=None,
        date=local_day_key(activity.start_time, time_zone),
        status=status,
        effective_start_utc=activity.start_time,
        discipline=activity.discipline.value if activity.discipline else None,
        title=getattr(activity.metrics, "name", None) or "Recorded activity",
        completion=completion_figures(activity),
    )


class CalendarService:
    """Range reads (already effective-instant adjusted) and entry actions."""

    def __init__(self, db_path: Path | None = None):
        self.athletes = AthleteRepository(db_path)
        self.entries = PlannedEntryRepository(db_path)
        self.activities = CompletedActivityRepository(db_path)

    async def athlete_time_zone(self, athlete_id: int) -> str:
        athlete = await self.athletes.get(athlete_id)
        if athlete is None:
            raise NotFoundError(f"Athlete {athlete_id} not found")
        return athlete.timezone

    async def resolve_range(
        self, athlete_id: int, from_day_key: str, to_day_key: str
    ) -> list[ResolvedCalendarEntry]:
        """Entries and unplanned completions for a local day range."""
        validate_range(from_day_key, to_day_key)
        time_zone = await self.athlete_time_zone(athlete_id)

        entries = await self.entries.list_in_range(athlete_id, from_day_key, to_day_key)
        latest = await self.activities.latest_for_entries([e.id for e in entries])
        items = [resolve_entry(entry, latest.get(entry.id), time_zone) for entry in entries]

        utc_range = utc_range_for_local_day_range(from_day_key, to_day_key, time_zone)
        unlinked = await self.activities.list_unlinked_between(
            athlete_id, utc_range.start_utc, utc_range.end_utc
        )
        items.extend(resolve_unplanned(activity, time_zone) for activity in unlinked)

        items.sort(key=lambda item: (item.effective_start_utc, item.entry_id or 0))
        return items

    async def summarize_range(
        self,
        athlete_id: int,
        from_day_key: str,
        to_day_key: str,
        now: datetime | None = None,
    ) -> RangeSummary:
        time_zone = await self.athlete_time_zone(athlete_id)
        items = await self.resolve_range(athlete_id, from_day_key, to_day_key)
        today = today_day_key(time_zone, ensure_utc(now or datetime.now(timezone.utc)))
        return summarize(items, time_zone, from_day_key, to_day_key, today_day_key=today)

    async def _get_live_entry(self, entry_id: int) -> PlannedEntry:
        entry = await self.entries.get(entry_id)
        if entry is None or entry.is_deleted:
            raise NotFoundError(f"Calendar entry {entry_id} not found")
        return entry

    async def complete_manual(
        self,
        entry_id: int,
        duration_minutes: int | None = None,
        distance_km: float | None = None,
        now: datetime | None = None,
    ) -> CompletedActivity:
        """Log a manual completion against an open entry."""
        now = ensure_utc(now or datetime.now(timezone.utc))
        entry = await self._get_live_entry(entry_id)
        if not entry.status.is_open:
            raise ConflictError(f"Calendar entry {entry_id} is already {entry.status.value}")

        time_zone = await self.athlete_time_zone(entry.athlete_id)
        start_time = entry.intended_start_utc(time_zone)
        activity = CompletedActivity(
            athlete_id=entry.athlete_id,
            source=CompletionSource.MANUAL,
            start_time=start_time,
            duration_minutes=duration_minutes,
            distance_km=distance_km,
            discipline=entry.discipline,
            planned_entry_id=entry.id,
            match_day_diff=0,
            activity_day_key=entry.date,
            confirmed_at=now,
        )
        activity_id = await self.activities.create_linked_manual(
            activity, entry.id, EntryStatus.COMPLETED_MANUAL, now
        )
        if activity_id is None:
            raise ConflictError(f"Calendar entry {entry_id} changed while completing")
        activity.id = activity_id
        logger.info(f"[CALENDAR] Entry {entry_id} completed manually")
        return activity

    async def skip(self, entry_id: int) -> PlannedEntry:
        entry = await self._get_live_entry(entry_id)
        if entry.status.is_completed:
            raise ConflictError(f"Calendar entry {entry_id} is already completed")
        await self.entries.set_status(entry_id, EntryStatus.SKIPPED)
        entry.status = EntryStatus.SKIPPED
        return entry

    async def delete(self, entry_id: int, now: datetime | None = None) -> PlannedEntry:
        """Soft delete; the row stays for audit."""
        now = ensure_utc(now or datetime.now(timezone.utc))
        entry = await self._get_live_entry(entry_id)
        if not await self.entries.soft_delete(entry_id, now):
            raise NotFoundError(f"Calendar entry {entry_id} not found")
        entry.deleted_at = now
        return entry

    async def confirm_synced(self, entry_id: int, now: datetime | None = None) -> PlannedEntry:
        """Athlete accepts a synced draft; the entry becomes COMPLETED_SYNCED."""
        now = ensure_utc(now or datetime.now(timezone.utc))
        entry = await self._get_live_entry(entry_id)
        if entry.status != EntryStatus.COMPLETED_SYNCED_DRAFT:
            raise ConflictError(f"Calendar entry {entry_id} has no synced draft to confirm")

        latest = await self.activities.latest_for_entries([entry_id])
        if entry_id in latest:
            await self.activities.mark_confirmed(latest[entry_id].id, now)
        await self.entries.set_status(entry_id, EntryStatus.COMPLETED_SYNCED)
        entry.status = EntryStatus.COMPLETED_SYNCED
        return entry

    async def confirm_activity(self, activity_id: int, now: datetime | None = None) -> CompletedActivity:
        """Confirm a synced completion directly (used for unplanned activities)."""
        now = ensure_utc(now or datetime.now(timezone.utc))
        activity = await self.activities.get(activity_id)
        if activity is None:
            raise NotFoundError(f"Activity {activity_id} not found")

        if activity.is_linked:
            entry = await self.entries.get(activity.planned_entry_id)
            if entry is not None and entry.status == EntryStatus.COMPLETED_SYNCED_DRAFT:
                await self.entries.set_status(entry.id, EntryStatus.COMPLETED_SYNCED)

        await self.activities.mark_confirmed(activity_id, now)
        activity.confirmed_at = now
        return activity
