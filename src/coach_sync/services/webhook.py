"""Provider webhook ingestion and ledger-driven sync runs."""

import hmac
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

from loguru import logger

from ..clients.base import BaseProviderClient
from ..clients.strava.client import StravaClient
from ..config import settings
from ..db.repositories import ConnectionRepository
from ..errors import is_rate_limit_error
from ..models.connection import ConnectionEntry
from ..utils.local_day import ensure_utc
from .sync import SyncError, SyncOrchestrator, SyncSummary
from .sync_ledger import SyncLedger

ACTIVITY_OBJECT = "activity"
SCOPED_ASPECTS = {"create", "update"}


def default_client_factory() -> BaseProviderClient:
    client_id, client_secret = settings.require_strava_credentials()
    return StravaClient(client_id, client_secret, timeout=settings.strava_api_timeout_seconds)


def verify_subscription(
    mode: str | None, challenge: str | None, verify_token: str | None, expected_token: str
) -> str | None:
    """Return the challenge to echo, or None if the handshake is rejected."""
    if mode != "subscribe" or not challenge or not verify_token:
        return None
    if not hmac.compare_digest(verify_token, expected_token):
        return None
    return challenge


@dataclass
class WebhookEvent:
    """One provider event delivery."""

    object_type: str
    aspect_type: str
    object_id: str
    owner_id: str
    event_time: datetime
    subscription_id: str | None = None
    updates: dict = field(default_factory=dict)

    @property
    def is_activity(self) -> bool:
        return self.object_type == ACTIVITY_OBJECT

    @classmethod
    def from_payload(cls, payload: dict) -> "WebhookEvent":
        """Parse a delivery body. Raises ValueError when malformed."""
        if not isinstance(payload, dict):
            raise ValueError("Webhook payload must be an object")

        missing = [
            key
            for key in ("object_type", "aspect_type", "object_id", "owner_id", "event_time")
            if payload.get(key) in (None, "")
        ]
        if missing:
            raise ValueError(f"Webhook payload missing {', '.join(missing)}")

        try:
            event_time = datetime.fromtimestamp(int(payload["event_time"]), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError) as e:
            raise ValueError(f"Invalid event_time {payload['event_time']!r}") from e

        subscription_id = payload.get("subscription_id")
        updates = payload.get("updates")
        return cls(
            object_type=str(payload["object_type"]).lower(),
            aspect_type=str(payload["aspect_type"]).lower(),
            object_id=str(payload["object_id"]),
            owner_id=str(payload["owner_id"]),
            event_time=event_time,
            subscription_id=str(subscription_id) if subscription_id is not None else None,
            updates=updates if isinstance(updates, dict) else {},
        )


class WebhookIngestionService:
    """Turns provider events into ledger entries and lease-guarded sync runs.

    Nothing here raises toward the provider: every outcome becomes an
    acknowledgement body, and failures land in the ledger row.
    """

    def __init__(
        self,
        db_path: Path | None = None,
        ledger: SyncLedger | None = None,
        client_factory: Callable[[], BaseProviderClient] | None = None,
        auto_confirm: bool | None = None,
    ):
        self.db_path = db_path
        self.connections = ConnectionRepository(db_path)
        self.ledger = ledger or SyncLedger(db_path)
        self.client_factory = client_factory or default_client_factory
        self.auto_confirm = auto_confirm

    async def handle_event(self, payload: dict, now: datetime | None = None) -> dict:
        """Process one delivery and return the acknowledgement body."""
        now = ensure_utc(now or datetime.now(timezone.utc))

        try:
            event = WebhookEvent.from_payload(payload)
        except ValueError as e:
            logger.warning(f"[WEBHOOK] Malformed event acknowledged: {e}")
            return {"ok": True, "status": "ignored", "reason": "malformed"}

        if not event.is_activity:
            logger.debug(f"[WEBHOOK] Ignoring {event.object_type} event")
            return {"ok": True, "status": "ignored", "reason": "not_activity"}

        connection = await self.connections.get_by_external_athlete_id(event.owner_id)
        if connection is None:
            logger.info(f"[WEBHOOK] No connection for owner_id={event.owner_id}")
            return {"ok": True, "status": "ignored", "reason": "unknown_owner"}

        athlete_id = connection.athlete_id
        await self.ledger.record_event(athlete_id, event.event_time, event.object_id)

        if not await self.ledger.try_acquire_lease(athlete_id, now):
            logger.info(f"[WEBHOOK] Sync for athlete {athlete_id} debounced")
            return {"ok": True, "status": "debounced", "athlete_id": athlete_id}

        single_activity_id = event.object_id if event.aspect_type in SCOPED_ASPECTS else None
        logger.info(
            f"[WEBHOOK] Running sync for athlete {athlete_id} "
            f"({event.aspect_type} activity {event.object_id})"
        )
        summary = await self._run_leased(connection, now, single_activity_id=single_activity_id)
        return {
            "ok": True,
            "status": "synced" if summary.ok else "failed",
            "athlete_id": athlete_id,
            "summary": summary.to_dict(),
        }

    async def drain_pending(self, now: datetime | None = None, limit: int = 25) -> dict:
        """Run due ledger rows with watermark syncs (cron path)."""
        now = ensure_utc(now or datetime.now(timezone.utc))
        due = await self.ledger.list_due(now, limit)
        result = {"due": len(due), "succeeded": 0, "failed": 0, "skipped": 0, "rate_limited": False}

        for intent in due:
            connection = await self.connections.get_by_athlete(intent.athlete_id)
            if not await self.ledger.try_acquire_lease(intent.athlete_id, now):
                result["skipped"] += 1
                continue

            if connection is None:
                logger.info(f"[LEDGER] Athlete {intent.athlete_id} has no connection; clearing intent")
                await self.ledger.release_success(intent.athlete_id, now)
                result["skipped"] += 1
                continue

            summary = await self._run_leased(connection, now)
            if summary.ok:
                result["succeeded"] += 1
            else:
                result["failed"] += 1
            if summary.rate_limited:
                result["rate_limited"] = True
                break

        logger.info(f"[LEDGER] Drain finished: {result}")
        return result

    async def resync_athlete(
        self, athlete_id: int, force_days: int | None = None, now: datetime | None = None
    ) -> dict:
        """Manual resync. Respects an active lease but not the debounce window."""
        now = ensure_utc(now or datetime.now(timezone.utc))
        connection = await self.connections.get_by_athlete(athlete_id)
        if connection is None:
            return {"ok": False, "status": "no_connection", "athlete_id": athlete_id}

        await self.ledger.ensure(athlete_id)
        if not await self.ledger.try_acquire_lease(athlete_id, now, debounce_window=timedelta(0)):
            return {"ok": False, "status": "busy", "athlete_id": athlete_id}

        summary = await self._run_leased(connection, now, force_window_days=force_days)
        return {
            "ok": summary.ok,
            "status": "synced" if summary.ok else "failed",
            "athlete_id": athlete_id,
            "summary": summary.to_dict(),
        }

    async def _run_leased(
        self,
        connection: ConnectionEntry,
        now: datetime,
        force_window_days: int | None = None,
        single_activity_id: str | None = None,
    ) -> SyncSummary:
        """Run the orchestrator for a connection whose lease we hold, then release."""
        athlete_id = connection.athlete_id
        client = None
        try:
            client = self.client_factory()
            orchestrator = SyncOrchestrator(client, self.db_path, auto_confirm=self.auto_confirm)
            summary = await orchestrator.sync_for_connections(
                [connection],
                force_window_days=force_window_days,
                single_activity_id=single_activity_id,
                now=now,
            )
        except Exception as e:
            logger.error(f"[SYNC] Run for athlete {athlete_id} could not start: {e}")
            await self.ledger.release_failure(athlete_id, now, e)
            summary = SyncSummary(polled=1)
            summary.errors.append(
                SyncError(athlete_id=athlete_id, message=str(e), rate_limited=is_rate_limit_error(e))
            )
            return summary
        finally:
            if client is not None:
                await client.aclose()

        if summary.errors:
            error = summary.errors[0]
            await self.ledger.release_failure(
                athlete_id, now, error.message, rate_limited=error.rate_limited
            )
        else:
            await self.ledger.release_success(athlete_id, now)
        return summary

