"""Per-athlete sync ledger: debounce, lease and backoff.

Transitions (``now`` is always passed in):

    record_event       IDLE/PENDING/BACKOFF -> PENDING (pending set)
    try_acquire_lease  PENDING -> LOCKED, only if unlocked, outside the
                       debounce window and past any scheduled retry
    release_success    LOCKED -> IDLE (or PENDING if an event arrived mid-run)
    release_retryable  LOCKED -> BACKOFF until now + backoff delay

The lease is a single conditional UPDATE in SQLite, so it holds across
processes. A crashed run simply lets ``locked_until`` lapse.
"""

from datetime import datetime, timedelta
from pathlib import Path

from loguru import logger

from ..config import settings
from ..db.repositories import SyncIntentRepository
from ..errors import is_rate_limit_error
from ..models.sync_intent import SyncIntent


class SyncLedger:
    """Ledger operations with the configured timing."""

    def __init__(
        self,
        db_path: Path | None = None,
        debounce_window: timedelta | None = None,
        lease_duration: timedelta | None = None,
        retry_backoff: timedelta | None = None,
        rate_limit_backoff: timedelta | None = None,
    ):
        self.repo = SyncIntentRepository(db_path)
        self.debounce_window = debounce_window if debounce_window is not None else settings.debounce_window
        self.lease_duration = lease_duration if lease_duration is not None else settings.lease_duration
        self.retry_backoff = retry_backoff if retry_backoff is not None else settings.retry_backoff
        self.rate_limit_backoff = (
            rate_limit_backoff if rate_limit_backoff is not None else settings.rate_limit_backoff
        )

    async def get(self, athlete_id: int) -> SyncIntent | None:
        return await self.repo.get(athlete_id)

    async def record_event(
        self, athlete_id: int, event_at: datetime, activity_id_hint: str | None = None
    ) -> None:
        await self.repo.record_event(athlete_id, event_at, activity_id_hint)
        logger.debug(f"[LEDGER] Event recorded for athlete {athlete_id} (hint={activity_id_hint})")

    async def try_acquire_lease(
        self,
        athlete_id: int,
        now: datetime,
        lease_duration: timedelta | None = None,
        debounce_window: timedelta | None = None,
    ) -> bool:
        acquired = await self.repo.try_acquire_lease(
            athlete_id,
            now,
            lease_duration if lease_duration is not None else self.lease_duration,
            debounce_window if debounce_window is not None else self.debounce_window,
        )
        logger.debug(f"[LEDGER] Lease for athlete {athlete_id}: {'acquired' if acquired else 'busy'}")
        return acquired

    async def release_success(self, athlete_id: int, now: datetime) -> None:
        await self.repo.release_success(athlete_id, now)

    async def release_retryable(
        self, athlete_id: int, now: datetime, backoff_delay: timedelta, error_message: str
    ) -> None:
        await self.repo.release_retryable(athlete_id, now, backoff_delay, error_message)
        logger.warning(
            f"[LEDGER] Athlete {athlete_id} retry scheduled in "
            f"{int(backoff_delay.total_seconds())}s: {error_message}"
        )

    def backoff_for(self, rate_limited: bool) -> timedelta:
        """Rate-limited failures wait longer than generic ones."""
        return self.rate_limit_backoff if rate_limited else self.retry_backoff

    async def release_failure(
        self, athlete_id: int, now: datetime, error: BaseException | str, rate_limited: bool | None = None
    ) -> None:
        """Release with the backoff matching the error class."""
        if rate_limited is None:
            rate_limited = is_rate_limit_error(error)
        await self.release_retryable(athlete_id, now, self.backoff_for(rate_limited), str(error))

    async def ensure(self, athlete_id: int) -> None:
        await self.repo.ensure(athlete_id)

    async def list_due(self, now: datetime, limit: int = 25) -> list[SyncIntent]:
        return await self.repo.list_due(now, self.debounce_window, limit)

    async def list_all(self) -> list[SyncIntent]:
        return await self.repo.list_all()
