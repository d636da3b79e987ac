"""Tests for the per-athlete sync ledger."""

import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio

from coach_sync.db import AthleteRepository
from coach_sync.errors import RateLimitedError, UpstreamError
from coach_sync.models.connection import Athlete
from coach_sync.models.sync_intent import SyncIntentState
from coach_sync.services.sync_ledger import SyncLedger

DEBOUNCE = timedelta(minutes=2)
LEASE = timedelta(minutes=5)
RETRY = timedelta(minutes=15)
RATE_LIMIT = timedelta(minutes=30)


@pytest.fixture
def ledger(db_path):
    return SyncLedger(
        db_path,
        debounce_window=DEBOUNCE,
        lease_duration=LEASE,
        retry_backoff=RETRY,
        rate_limit_backoff=RATE_LIMIT,
    )


@pytest_asyncio.fixture
async def athlete_id(db_path):
    return await AthleteRepository(db_path).create(Athlete(name="Sam"))


class TestRecordEvent:
    """Tests for recording webhook events."""

    @pytest.mark.asyncio
    async def test_first_event_creates_pending_row(self, ledger, athlete_id, now):
        await ledger.record_event(athlete_id, now, "111")

        intent = await ledger.get(athlete_id)
        assert intent.pending
        assert intent.last_event_at == now
        assert intent.last_activity_id == "111"
        assert intent.event_count == 1
        assert intent.state_at(now) == SyncIntentState.PENDING

    @pytest.mark.asyncio
    async def test_event_time_never_moves_backwards(self, ledger, athlete_id, now):
        await ledger.record_event(athlete_id, now, "222")
        await ledger.record_event(athlete_id, now - timedelta(minutes=10), "111")

        intent = await ledger.get(athlete_id)
        assert intent.last_event_at == now
        assert intent.last_activity_id == "222"
        assert intent.event_count == 2

    @pytest.mark.asyncio
    async def test_ensure_creates_idle_row(self, ledger, athlete_id, now):
        await ledger.ensure(athlete_id)
        await ledger.ensure(athlete_id)

        intent = await ledger.get(athlete_id)
        assert not intent.pending
        assert intent.state_at(now) == SyncIntentState.IDLE


class TestLease:
    """Tests for lease acquisition."""

    @pytest.mark.asyncio
    async def test_lease_is_exclusive(self, ledger, athlete_id, now):
        await ledger.record_event(athlete_id, now)

        assert await ledger.try_acquire_lease(athlete_id, now)
        assert not await ledger.try_acquire_lease(athlete_id, now + timedelta(minutes=3))

        intent = await ledger.get(athlete_id)
        assert intent.locked_until == now + LEASE
        assert intent.attempts == 1
        assert intent.state_at(now) == SyncIntentState.LOCKED

    @pytest.mark.asyncio
    async def test_concurrent_callers_get_one_lease(self, ledger, athlete_id, now):
        """Exactly one of many simultaneous callers wins."""
        await ledger.record_event(athlete_id, now)

        results = await asyncio.gather(
            *(ledger.try_acquire_lease(athlete_id, now) for _ in range(8))
        )
        assert results.count(True) == 1

    @pytest.mark.asyncio
    async def test_expired_lease_can_be_taken_over(self, ledger, athlete_id, now):
        """A crashed run's lease lapses on its own."""
        await ledger.record_event(athlete_id, now)
        assert await ledger.try_acquire_lease(athlete_id, now)

        assert await ledger.try_acquire_lease(athlete_id, now + LEASE)

    @pytest.mark.asyncio
    async def test_debounce_after_recent_attempt(self, ledger, athlete_id, now):
        await ledger.record_event(athlete_id, now)
        assert await ledger.try_acquire_lease(athlete_id, now)
        await ledger.release_success(athlete_id, now)

        await ledger.record_event(athlete_id, now + timedelta(seconds=30))
        assert not await ledger.try_acquire_lease(athlete_id, now + timedelta(seconds=60))
        assert await ledger.try_acquire_lease(athlete_id, now + DEBOUNCE)

    @pytest.mark.asyncio
    async def test_debounce_override(self, ledger, athlete_id, now):
        await ledger.record_event(athlete_id, now)
        assert await ledger.try_acquire_lease(athlete_id, now)
        await ledger.release_success(athlete_id, now)

        assert await ledger.try_acquire_lease(
            athlete_id, now + timedelta(seconds=1), debounce_window=timedelta(0)
        )

    @pytest.mark.asyncio
    async def test_no_row_no_lease(self, ledger, athlete_id, now):
        assert not await ledger.try_acquire_lease(athlete_id, now)


class TestRelease:
    """Tests for releasing leases."""

    @pytest.mark.asyncio
    async def test_success_clears_pending(self, ledger, athlete_id, now):
        await ledger.record_event(athlete_id, now)
        await ledger.try_acquire_lease(athlete_id, now)
        await ledger.release_success(athlete_id, now + timedelta(seconds=5))

        intent = await ledger.get(athlete_id)
        assert not intent.pending
        assert intent.locked_until is None
        assert intent.attempts == 0
        assert intent.last_error is None
        assert intent.last_success_at == now + timedelta(seconds=5)

    @pytest.mark.asyncio
    async def test_event_during_run_stays_pending(self, ledger, athlete_id, now):
        """An event recorded while the lease is held is not lost."""
        await ledger.record_event(athlete_id, now)
        await ledger.try_acquire_lease(athlete_id, now)
        await ledger.record_event(athlete_id, now + timedelta(seconds=10), "333")
        await ledger.release_success(athlete_id, now + timedelta(seconds=20))

        intent = await ledger.get(athlete_id)
        assert intent.pending
        assert intent.locked_until is None

    @pytest.mark.asyncio
    async def test_generic_failure_backs_off(self, ledger, athlete_id, now):
        await ledger.record_event(athlete_id, now)
        await ledger.try_acquire_lease(athlete_id, now)
        await ledger.release_failure(athlete_id, now, UpstreamError("boom", status_code=500))

        intent = await ledger.get(athlete_id)
        assert intent.pending
        assert intent.next_attempt_at == now + RETRY
        assert intent.last_error == "boom"
        assert intent.state_at(now) == SyncIntentState.BACKOFF

    @pytest.mark.asyncio
    async def test_rate_limit_backs_off_longer(self, ledger, athlete_id, now):
        await ledger.record_event(athlete_id, now)
        await ledger.try_acquire_lease(athlete_id, now)
        await ledger.release_failure(athlete_id, now, RateLimitedError())

        intent = await ledger.get(athlete_id)
        assert intent.next_attempt_at == now + RATE_LIMIT
        assert ledger.backoff_for(True) > ledger.backoff_for(False)

    @pytest.mark.asyncio
    async def test_rate_limit_detected_from_message(self, ledger, athlete_id, now):
        await ledger.record_event(athlete_id, now)
        await ledger.try_acquire_lease(athlete_id, now)
        await ledger.release_failure(athlete_id, now, "Strava rate limit hit. Try again later.")

        intent = await ledger.get(athlete_id)
        assert intent.next_attempt_at == now + RATE_LIMIT

    @pytest.mark.asyncio
    async def test_backoff_blocks_lease_until_due(self, ledger, athlete_id, now):
        await ledger.record_event(athlete_id, now)
        await ledger.try_acquire_lease(athlete_id, now)
        await ledger.release_failure(athlete_id, now, "boom")

        assert not await ledger.try_acquire_lease(athlete_id, now + RETRY - timedelta(seconds=1))
        assert await ledger.try_acquire_lease(athlete_id, now + RETRY)
        intent = await ledger.get(athlete_id)
        assert intent.attempts == 2

    @pytest.mark.asyncio
    async def test_error_is_truncated(self, ledger, athlete_id, now):
        await ledger.record_event(athlete_id, now)
        await ledger.try_acquire_lease(athlete_id, now)
        await ledger.release_failure(athlete_id, now, "x" * 2000)

        intent = await ledger.get(athlete_id)
        assert len(intent.last_error) == 500


class TestListDue:
    """Tests for selecting rows for the drain job."""

    @pytest.mark.asyncio
    async def test_due_respects_debounce_and_backoff(self, ledger, db_path, now):
        repo = AthleteRepository(db_path)
        fresh = await repo.create(Athlete(name="Fresh"))
        waiting = await repo.create(Athlete(name="Waiting"))
        idle = await repo.create(Athlete(name="Idle"))

        await ledger.record_event(fresh, now)
        await ledger.record_event(waiting, now)
        await ledger.try_acquire_lease(waiting, now)
        await ledger.release_failure(waiting, now, "boom")
        await ledger.ensure(idle)

        due = await ledger.list_due(now + DEBOUNCE)
        assert [intent.athlete_id for intent in due] == [fresh]

        due = await ledger.list_due(now + RETRY)
        assert {intent.athlete_id for intent in due} == {fresh, waiting}
