"""Match synced activities to planned calendar entries."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

from loguru import logger

from ..db.repositories import CompletedActivityRepository, PlannedEntryRepository
from ..models.activity import CompletedActivity
from ..models.calendar import Discipline, EntryStatus, PlannedEntry
from ..utils.day_keys import add_days_to_day_key, day_key_diff
from ..utils.local_day import ensure_utc, local_day_key

# An entry on the neighbouring local day is only accepted this close to
# its intended start.
NEAR_MIDNIGHT_TOLERANCE = timedelta(minutes=90)

# Candidate entries are looked up this many days either side of the activity
CANDIDATE_DAY_WINDOW = 1


@dataclass
class MatchDecision:
    """The entry chosen for an activity and the day offset to record."""

    entry: PlannedEntry
    match_day_diff: int
    delta: timedelta


def candidate_day_range(activity_day: str) -> tuple[str, str]:
    return (
        add_days_to_day_key(activity_day, -CANDIDATE_DAY_WINDOW),
        add_days_to_day_key(activity_day, CANDIDATE_DAY_WINDOW),
    )


def is_candidate(entry: PlannedEntry, activity_day: str, discipline: Discipline) -> bool:
    """Open, not deleted, within one day, discipline equal or unset."""
    if entry.is_deleted or not entry.status.is_open:
        return False
    if abs(day_key_diff(entry.date, activity_day)) > CANDIDATE_DAY_WINDOW:
        return False
    return entry.discipline is None or entry.discipline == discipline


def select_match(
    start_time: datetime,
    discipline: Discipline,
    time_zone: str,
    candidates: list[PlannedEntry],
) -> MatchDecision | None:
    """Pick the planned entry for one activity, or None.

    Same-day entries are always acceptable. Adjacent-day entries only
    within NEAR_MIDNIGHT_TOLERANCE of their intended start. The smallest
    delta wins; ties go to an exact discipline match, then the lowest id.
    """
    start_time = ensure_utc(start_time)
    activity_day = local_day_key(start_time, time_zone)

    scored: list[tuple[timedelta, int, int, PlannedEntry, int]] = []
    for entry in candidates:
        if not is_candidate(entry, activity_day, discipline):
            continue

        delta = abs(entry.intended_start_utc(time_zone) - start_time)
        day_diff = day_key_diff(entry.date, activity_day)
        if day_diff != 0 and delta > NEAR_MIDNIGHT_TOLERANCE:
            continue

        discipline_rank = 0 if entry.discipline == discipline else 1
        scored.append((delta, discipline_rank, entry.id or 0, entry, day_diff))

    if not scored:
        return None

    scored.sort(key=lambda item: (item[0], item[1], item[2]))
    delta, _, _, entry, day_diff = scored[0]
    return MatchDecision(entry=entry, match_day_diff=day_diff, delta=delta)


def synced_status(confirmed: bool) -> EntryStatus:
    return EntryStatus.COMPLETED_SYNCED if confirmed else EntryStatus.COMPLETED_SYNCED_DRAFT


class MatchService:
    """Applies match decisions to stored completions.

    A completion that is already linked keeps its entry (first match wins);
    re-syncs only re-assert the entry's synced status.
    """

    def __init__(self, db_path: Path | None = None, auto_confirm: bool = False):
        self.entries = PlannedEntryRepository(db_path)
        self.activities = CompletedActivityRepository(db_path)
        self.auto_confirm = auto_confirm

    def _is_confirmed(self, activity: CompletedActivity) -> bool:
        return self.auto_confirm or activity.confirmed_at is not None

    async def reconcile(
        self, activity: CompletedActivity, discipline: Discipline, time_zone: str
    ) -> bool:
        """Link an unlinked completion if a planned entry fits.

        Returns:
            True if a new link was written.
        """
        if activity.is_linked:
            await self.ensure_linked_status(activity)
            return False

        activity_day = local_day_key(activity.start_time, time_zone)
        from_day, to_day = candidate_day_range(activity_day)
        candidates = await self.entries.list_match_candidates(activity.athlete_id, from_day, to_day)

        decision = select_match(activity.start_time, discipline, time_zone, candidates)
        if decision is None:
            logger.debug(
                f"[MATCH] No planned entry for activity {activity.external_activity_id} "
                f"on {activity_day} ({discipline.value})"
            )
            return False

        status = synced_status(self._is_confirmed(activity))
        linked = await self.activities.link_to_entry(
            activity.id, decision.entry.id, decision.match_day_diff, status
        )
        if not linked:
            logger.info(
                f"[MATCH] Entry {decision.entry.id} or activity {activity.id} changed "
                f"concurrently; leaving activity unlinked"
            )
            return False

        activity.planned_entry_id = decision.entry.id
        activity.match_day_diff = decision.match_day_diff
        logger.info(
            f"[MATCH] Linked activity {activity.external_activity_id} to entry "
            f"{decision.entry.id} (day diff {decision.match_day_diff}, "
            f"delta {int(decision.delta.total_seconds() // 60)} min)"
        )
        return True

    async def ensure_linked_status(self, activity: CompletedActivity) -> None:
        """Keep a linked entry's status in step with the completion's confirmation."""
        entry = await self.entries.get(activity.planned_entry_id)
        if entry is None or entry.is_deleted:
            return

        if self._is_confirmed(activity):
            if entry.status == EntryStatus.COMPLETED_SYNCED_DRAFT:
                await self.entries.set_status(entry.id, EntryStatus.COMPLETED_SYNCED)
            return

        if entry.status in (EntryStatus.PLANNED, EntryStatus.MODIFIED, EntryStatus.COMPLETED_SYNCED):
            await self.entries.set_status(entry.id, EntryStatus.COMPLETED_SYNCED_DRAFT)
