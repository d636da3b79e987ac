"""Pull provider activities for connections and reconcile them with the plan."""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

from loguru import logger

from ..clients.base import BaseProviderClient, ExternalActivity
from ..clients.strava.parsers import parse_activity
from ..config import settings
from ..db.repositories import CompletedActivityRepository, ConnectionRepository
from ..errors import is_rate_limit_error
from ..models.activity import CompletedActivity, CompletionSource, UpsertOutcome
from ..models.connection import ConnectionEntry
from ..utils.local_day import ensure_utc, local_day_key
from .matching import MatchService

MAX_FORCE_DAYS = 14

# Seconds before expiry at which a token is refreshed ahead of use
TOKEN_REFRESH_SKEW_SECONDS = 60


@dataclass
class SyncError:
    """A failure isolated to one connection."""

    athlete_id: int
    message: str
    rate_limited: bool = False

    def to_dict(self) -> dict:
        return {
            "athlete_id": self.athlete_id,
            "message": self.message,
            "rate_limited": self.rate_limited,
        }


@dataclass
class SyncSummary:
    """Counters for one orchestrator batch."""

    polled: int = 0
    fetched: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    matched: int = 0
    skipped_by_reason: Counter = field(default_factory=Counter)
    errors: list[SyncError] = field(default_factory=list)

    @property
    def rate_limited(self) -> bool:
        return any(error.rate_limited for error in self.errors)

    @property
    def ok(self) -> bool:
        return not self.errors

    def skip(self, reason: str, count: int = 1) -> None:
        self.skipped_by_reason[reason] += count

    def to_dict(self) -> dict:
        return {
            "polled": self.polled,
            "fetched": self.fetched,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "matched": self.matched,
            "skipped_by_reason": dict(self.skipped_by_reason),
            "errors": [error.to_dict() for error in self.errors],
            "rate_limited": self.rate_limited,
        }


class SyncOrchestrator:
    """Fetches, stores and matches activities connection by connection.

    Errors never escape ``sync_for_connections``; each one is recorded
    against its athlete in the summary. A rate limit stops all further
    upstream calls in the batch because the quota is shared by the whole
    application.
    """

    def __init__(
        self,
        client: BaseProviderClient,
        db_path: Path | None = None,
        auto_confirm: bool | None = None,
        lookback_days: int | None = None,
        buffer_minutes: int | None = None,
        page_size: int | None = None,
        max_pages: int | None = None,
    ):
        self.client = client
        self.connections = ConnectionRepository(db_path)
        self.activities = CompletedActivityRepository(db_path)
        self.matcher = MatchService(
            db_path,
            auto_confirm=settings.auto_confirm_synced if auto_confirm is None else auto_confirm,
        )
        self.lookback = timedelta(days=lookback_days or settings.sync_lookback_days)
        self.buffer = timedelta(
            minutes=settings.sync_buffer_minutes if buffer_minutes is None else buffer_minutes
        )
        self.page_size = page_size or settings.sync_page_size
        self.max_pages = max_pages or settings.sync_max_pages

    async def sync_for_connections(
        self,
        connections: list[ConnectionEntry],
        force_window_days: int | None = None,
        single_activity_id: str | None = None,
        now: datetime | None = None,
    ) -> SyncSummary:
        """Sync each connection in turn.

        Args:
            connections: Connections to process, in order
            force_window_days: Look back this many days (1..14) instead of
                using the watermark; the watermark is left untouched
            single_activity_id: Fetch only this activity; the watermark is
                left untouched
            now: Clock for windows, token expiry and the watermark

        Returns:
            Summary with counters and per-connection errors
        """
        if force_window_days is not None and not 1 <= force_window_days <= MAX_FORCE_DAYS:
            raise ValueError(f"force_window_days must be between 1 and {MAX_FORCE_DAYS}")

        now = ensure_utc(now or datetime.now(timezone.utc))
        summary = SyncSummary()

        for index, connection in enumerate(connections):
            summary.polled += 1
            try:
                await self._sync_connection(
                    connection, summary, force_window_days, single_activity_id, now
                )
            except Exception as e:
                rate_limited = is_rate_limit_error(e)
                summary.errors.append(
                    SyncError(
                        athlete_id=connection.athlete_id,
                        message=str(e) or "Strava sync failed.",
                        rate_limited=rate_limited,
                    )
                )
                logger.warning(f"[SYNC] Athlete {connection.athlete_id} failed: {e}")

                if rate_limited:
                    remaining = len(connections) - index - 1
                    if remaining:
                        summary.skip("rate_limited", remaining)
                        logger.warning(f"[SYNC] Rate limited; skipping {remaining} remaining connection(s)")
                    break

        logger.info(
            f"[SYNC] Batch done: polled={summary.polled} fetched={summary.fetched} "
            f"created={summary.created} updated={summary.updated} matched={summary.matched} "
            f"errors={len(summary.errors)}"
        )
        return summary

    def window_start(
        self, connection: ConnectionEntry, now: datetime, force_window_days: int | None = None
    ) -> datetime:
        """Earliest start time to request, buffer included."""
        if force_window_days:
            base = now - timedelta(days=force_window_days)
        elif connection.last_sync_at is not None:
            base = ensure_utc(connection.last_sync_at)
        else:
            base = now - self.lookback
        return max(base - self.buffer, datetime.fromtimestamp(0, tz=timezone.utc))

    async def _sync_connection(
        self,
        connection: ConnectionEntry,
        summary: SyncSummary,
        force_window_days: int | None,
        single_activity_id: str | None,
        now: datetime,
    ) -> None:
        connection = await self._ensure_fresh_token(connection, now)

        if single_activity_id:
            raw_activities = [await self.client.get_activity(connection.access_token, single_activity_id)]
        else:
            after = self.window_start(connection, now, force_window_days)
            raw_activities = await self.client.list_all_activities(
                connection.access_token, after, per_page=self.page_size, max_pages=self.max_pages
            )

        await self.ingest(connection, raw_activities, summary, now)

        if force_window_days is None and single_activity_id is None and connection.id is not None:
            await self.connections.update_last_sync(connection.id, now)

    async def _ensure_fresh_token(self, connection: ConnectionEntry, now: datetime) -> ConnectionEntry:
        if not connection.needs_refresh(now, TOKEN_REFRESH_SKEW_SECONDS):
            return connection

        grant = await self.client.refresh_token(connection.refresh_token)
        refreshed = connection.with_tokens(
            grant.access_token, grant.refresh_token, grant.expires_at, grant.scope
        )
        if refreshed.id is not None:
            await self.connections.update_tokens(refreshed)
        logger.info(f"[SYNC] Refreshed token for athlete {connection.athlete_id}")
        return refreshed

    async def ingest(
        self,
        connection: ConnectionEntry,
        raw_activities: list[dict],
        summary: SyncSummary,
        now: datetime,
    ) -> None:
        """Store and match a batch of raw provider activities."""
        summary.fetched += len(raw_activities)

        for raw in raw_activities:
            external, reason = parse_activity(raw)
            if external is None:
                summary.skip(reason)
                continue
            await self._ingest_one(connection, external, summary, now)

    async def _ingest_one(
        self,
        connection: ConnectionEntry,
        external: ExternalActivity,
        summary: SyncSummary,
        now: datetime,
    ) -> None:
        time_zone = connection.athlete_timezone
        activity = CompletedActivity(
            athlete_id=connection.athlete_id,
            source=CompletionSource.STRAVA,
            external_activity_id=external.external_activity_id,
            start_time=external.start_time,
            duration_minutes=external.duration_minutes,
            distance_km=external.distance_km,
            discipline=external.discipline,
            metrics=external.metrics,
            activity_day_key=local_day_key(external.start_time, time_zone),
        )

        outcome, stored = await self.activities.upsert_external(activity, now)
        if outcome == UpsertOutcome.CREATED:
            summary.created += 1
        elif outcome == UpsertOutcome.UPDATED:
            summary.updated += 1
        else:
            summary.unchanged += 1

        if await self.matcher.reconcile(stored, external.discipline, time_zone):
            summary.matched += 1
