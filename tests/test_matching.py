"""Tests for matching activities to planned entries."""

from datetime import datetime, timedelta, timezone

import pytest

from coach_sync.db import CompletedActivityRepository, PlannedEntryRepository
from coach_sync.models.activity import CompletedActivity, CompletionSource
from coach_sync.models.calendar import Discipline, EntryStatus, PlannedEntry
from coach_sync.services.matching import (
    NEAR_MIDNIGHT_TOLERANCE,
    MatchService,
    candidate_day_range,
    select_match,
)

UTC = timezone.utc
BRISBANE = "Australia/Brisbane"


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


def entry(id, date, start=None, discipline=Discipline.RUN, status=EntryStatus.PLANNED, **kwargs):
    return PlannedEntry(
        id=id,
        athlete_id=1,
        date=date,
        planned_start_time_local=start,
        discipline=discipline,
        status=status,
        **kwargs,
    )


class TestSelectMatch:
    """Tests for the pure match decision."""

    def test_near_midnight_matches_previous_day(self):
        """An activity just after local midnight claims the late entry of the day before."""
        late_run = entry(1, "2026-02-05", "23:00")
        decision = select_match(utc(2026, 2, 5, 14, 10), Discipline.RUN, BRISBANE, [late_run])

        assert decision is not None
        assert decision.entry.id == 1
        assert decision.match_day_diff == -1
        assert decision.delta == timedelta(minutes=70)

    def test_same_day_before_midnight(self):
        late_run = entry(1, "2026-02-05", "23:00")
        decision = select_match(utc(2026, 2, 5, 13, 10), Discipline.RUN, BRISBANE, [late_run])

        assert decision is not None
        assert decision.match_day_diff == 0

    def test_adjacent_day_beyond_tolerance_is_rejected(self):
        late_run = entry(1, "2026-02-05", "23:00")
        # 01:00 local on 02-06, two hours after the intended start
        assert select_match(utc(2026, 2, 5, 15, 0), Discipline.RUN, BRISBANE, [late_run]) is None

    def test_adjacent_day_at_tolerance_is_accepted(self):
        late_run = entry(1, "2026-02-05", "23:00")
        start = late_run.intended_start_utc(BRISBANE) + NEAR_MIDNIGHT_TOLERANCE
        assert select_match(start, Discipline.RUN, BRISBANE, [late_run]) is not None

    def test_same_day_matches_regardless_of_delta(self):
        morning = entry(1, "2026-02-05", "06:00")
        # 20:00 local the same day
        decision = select_match(utc(2026, 2, 5, 10, 0), Discipline.RUN, BRISBANE, [morning])
        assert decision is not None
        assert decision.match_day_diff == 0

    def test_two_days_away_is_never_a_candidate(self):
        far = entry(1, "2026-02-03", "23:59")
        assert select_match(utc(2026, 2, 5, 2, 0), Discipline.RUN, BRISBANE, [far]) is None

    def test_discipline_mismatch_is_rejected(self):
        ride = entry(1, "2026-02-05", "06:00", discipline=Discipline.BIKE)
        assert select_match(utc(2026, 2, 4, 20, 0), Discipline.RUN, BRISBANE, [ride]) is None

    def test_entry_without_discipline_accepts_any(self):
        anything = entry(1, "2026-02-05", "06:00", discipline=None)
        decision = select_match(utc(2026, 2, 4, 20, 0), Discipline.SWIM, BRISBANE, [anything])
        assert decision is not None

    def test_smallest_delta_wins(self):
        early = entry(1, "2026-02-05", "06:00")
        close = entry(2, "2026-02-05", "17:00")
        # 17:30 local
        decision = select_match(utc(2026, 2, 5, 7, 30), Discipline.RUN, BRISBANE, [early, close])
        assert decision.entry.id == 2

    def test_tie_prefers_exact_discipline(self):
        generic = entry(1, "2026-02-05", "06:00", discipline=None)
        exact = entry(2, "2026-02-05", "06:00", discipline=Discipline.RUN)
        decision = select_match(utc(2026, 2, 4, 20, 0), Discipline.RUN, BRISBANE, [generic, exact])
        assert decision.entry.id == 2

    def test_full_tie_prefers_lowest_id(self):
        second = entry(5, "2026-02-05", "06:00")
        first = entry(3, "2026-02-05", "06:00")
        decision = select_match(utc(2026, 2, 4, 20, 0), Discipline.RUN, BRISBANE, [second, first])
        assert decision.entry.id == 3

    @pytest.mark.parametrize(
        "status",
        [
            EntryStatus.SKIPPED,
            EntryStatus.COMPLETED_MANUAL,
            EntryStatus.COMPLETED_SYNCED,
            EntryStatus.COMPLETED_SYNCED_DRAFT,
        ],
    )
    def test_closed_entries_are_skipped(self, status):
        closed = entry(1, "2026-02-05", "06:00", status=status)
        assert select_match(utc(2026, 2, 4, 20, 0), Discipline.RUN, BRISBANE, [closed]) is None

    def test_modified_entry_is_open(self):
        modified = entry(1, "2026-02-05", "06:00", status=EntryStatus.MODIFIED)
        assert select_match(utc(2026, 2, 4, 20, 0), Discipline.RUN, BRISBANE, [modified]) is not None

    def test_deleted_entry_is_skipped(self):
        gone = entry(1, "2026-02-05", "06:00", deleted_at=utc(2026, 2, 1))
        assert select_match(utc(2026, 2, 4, 20, 0), Discipline.RUN, BRISBANE, [gone]) is None

    def test_no_start_time_uses_midday(self):
        untimed = entry(1, "2026-02-05")
        decision = select_match(utc(2026, 2, 5, 2, 30), Discipline.RUN, BRISBANE, [untimed])
        assert decision.delta == timedelta(minutes=30)

    def test_candidate_day_range(self):
        assert candidate_day_range("2026-03-01") == ("2026-02-28", "2026-03-02")


class TestMatchService:
    """Tests for applying matches against the database."""

    async def _store(self, db_path, athlete_id, start, external_id="100", now=None):
        activity = CompletedActivity(
            athlete_id=athlete_id,
            source=CompletionSource.STRAVA,
            external_activity_id=external_id,
            start_time=start,
            duration_minutes=40,
            discipline=Discipline.RUN,
        )
        activity.id = await CompletedActivityRepository(db_path).create(activity, now or utc(2026, 2, 6))
        return activity

    @pytest.mark.asyncio
    async def test_reconcile_links_as_draft(self, db_path, add_athlete, add_entry):
        """Matched entries await athlete confirmation by default."""
        connection = await add_athlete()
        planned = await add_entry(connection.athlete_id, "2026-02-05", "23:00")
        activity = await self._store(db_path, connection.athlete_id, utc(2026, 2, 5, 14, 10))

        service = MatchService(db_path, auto_confirm=False)
        assert await service.reconcile(activity, Discipline.RUN, BRISBANE)

        stored = await CompletedActivityRepository(db_path).get(activity.id)
        assert stored.planned_entry_id == planned.id
        assert stored.match_day_diff == -1
        refreshed = await PlannedEntryRepository(db_path).get(planned.id)
        assert refreshed.status == EntryStatus.COMPLETED_SYNCED_DRAFT

    @pytest.mark.asyncio
    async def test_reconcile_auto_confirm(self, db_path, add_athlete, add_entry):
        connection = await add_athlete()
        planned = await add_entry(connection.athlete_id, "2026-02-05", "23:00")
        activity = await self._store(db_path, connection.athlete_id, utc(2026, 2, 5, 13, 10))

        assert await MatchService(db_path, auto_confirm=True).reconcile(activity, Discipline.RUN, BRISBANE)
        refreshed = await PlannedEntryRepository(db_path).get(planned.id)
        assert refreshed.status == EntryStatus.COMPLETED_SYNCED

    @pytest.mark.asyncio
    async def test_first_match_wins(self, db_path, add_athlete, add_entry):
        """A linked activity never moves to a better entry planned later."""
        connection = await add_athlete()
        first = await add_entry(connection.athlete_id, "2026-02-05", "06:00")
        activity = await self._store(db_path, connection.athlete_id, utc(2026, 2, 5, 7, 0))

        service = MatchService(db_path)
        assert await service.reconcile(activity, Discipline.RUN, BRISBANE)

        better = await add_entry(connection.athlete_id, "2026-02-05", "17:00")
        stored = await CompletedActivityRepository(db_path).get(activity.id)
        assert not await service.reconcile(stored, Discipline.RUN, BRISBANE)

        stored = await CompletedActivityRepository(db_path).get(activity.id)
        assert stored.planned_entry_id == first.id
        untouched = await PlannedEntryRepository(db_path).get(better.id)
        assert untouched.status == EntryStatus.PLANNED

    @pytest.mark.asyncio
    async def test_one_entry_takes_one_activity(self, db_path, add_athlete, add_entry):
        connection = await add_athlete()
        await add_entry(connection.athlete_id, "2026-02-05", "06:00")
        first = await self._store(db_path, connection.athlete_id, utc(2026, 2, 4, 20, 0), "1")
        second = await self._store(db_path, connection.athlete_id, utc(2026, 2, 4, 20, 5), "2")

        service = MatchService(db_path)
        assert await service.reconcile(first, Discipline.RUN, BRISBANE)
        assert not await service.reconcile(second, Discipline.RUN, BRISBANE)

        stored = await CompletedActivityRepository(db_path).get(second.id)
        assert stored.planned_entry_id is None

    @pytest.mark.asyncio
    async def test_confirmed_activity_promotes_draft(self, db_path, add_athlete, add_entry):
        connection = await add_athlete()
        planned = await add_entry(connection.athlete_id, "2026-02-05", "06:00")
        activity = await self._store(db_path, connection.athlete_id, utc(2026, 2, 4, 20, 0))

        service = MatchService(db_path)
        await service.reconcile(activity, Discipline.RUN, BRISBANE)
        repo = CompletedActivityRepository(db_path)
        await repo.mark_confirmed(activity.id, utc(2026, 2, 6))

        await service.reconcile(await repo.get(activity.id), Discipline.RUN, BRISBANE)
        refreshed = await PlannedEntryRepository(db_path).get(planned.id)
        assert refreshed.status == EntryStatus.COMPLETED_SYNCED
