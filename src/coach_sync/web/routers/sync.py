"""Manual sync and ledger routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from ...models.sync_intent import SyncIntent
from ...services.sync import MAX_FORCE_DAYS
from ...services.sync_ledger import SyncLedger
from ...services.webhook import WebhookIngestionService

router = APIRouter(prefix="/sync", tags=["sync"])


class ResyncRequest(BaseModel):
    force_days: int | None = Field(default=None, ge=1, le=MAX_FORCE_DAYS)


class DrainRequest(BaseModel):
    limit: int = Field(default=25, ge=1, le=500)


def get_webhook_service(request: Request) -> WebhookIngestionService:
    return WebhookIngestionService(
        request.app.state.db_path,
        client_factory=request.app.state.client_factory,
    )


@router.post("/athletes/{athlete_id}")
async def resync_athlete(request: Request, athlete_id: int, body: ResyncRequest | None = None):
    """Run a sync now for one athlete, optionally over a forced window."""
    service = get_webhook_service(request)
    force_days = body.force_days if body else None
    result = await service.resync_athlete(athlete_id, force_days=force_days)

    if result["status"] == "no_connection":
        raise HTTPException(status_code=404, detail="Athlete has no provider connection")
    if result["status"] == "busy":
        raise HTTPException(status_code=409, detail="A sync is already running for this athlete")

    request.app.state.summary_cache.invalidate_prefix(f"summary:{athlete_id}:")
    return result


@router.post("/drain")
async def drain(request: Request, body: DrainRequest | None = None):
    """Process due ledger rows (cron entry point)."""
    service = get_webhook_service(request)
    result = await service.drain_pending(limit=body.limit if body else 25)
    if result["succeeded"] or result["failed"]:
        request.app.state.summary_cache.clear()
    return result


@router.get("/athletes/{athlete_id}/status")
async def sync_status(request: Request, athlete_id: int):
    """Current ledger row for an athlete; idle when none exists yet."""
    ledger = SyncLedger(request.app.state.db_path)
    intent = await ledger.get(athlete_id) or SyncIntent(athlete_id=athlete_id)
    return intent.to_dict(now=datetime.now(timezone.utc))
