"""Strava webhook routes."""

from fastapi import APIRouter, HTTPException, Query, Request
from loguru import logger

from ...config import settings
from ...errors import ConfigurationError
from ...services.webhook import WebhookIngestionService, verify_subscription

router = APIRouter(prefix="/integrations/strava", tags=["webhook"])


def get_webhook_service(request: Request) -> WebhookIngestionService:
    """Build the ingestion service from app state."""
    return WebhookIngestionService(
        request.app.state.db_path,
        client_factory=request.app.state.client_factory,
    )


@router.get("/webhook")
async def verify_webhook(
    mode: str | None = Query(default=None, alias="hub.mode"),
    challenge: str | None = Query(default=None, alias="hub.challenge"),
    verify_token: str | None = Query(default=None, alias="hub.verify_token"),
):
    """Subscription handshake: echo the challenge when the token matches."""
    try:
        expected = settings.require_webhook_verify_token()
    except ConfigurationError as e:
        logger.error(f"[WEBHOOK] {e}")
        raise HTTPException(status_code=500, detail=str(e))

    echoed = verify_subscription(mode, challenge, verify_token, expected)
    if echoed is None:
        logger.warning("[WEBHOOK] Subscription handshake rejected")
        raise HTTPException(status_code=403, detail="Verification failed")
    return {"hub.challenge": echoed}


@router.post("/webhook")
async def receive_event(request: Request):
    """Acknowledge every delivery with 200 so the provider does not retry."""
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("[WEBHOOK] Non-JSON delivery acknowledged")
        return {"ok": True, "status": "ignored", "reason": "malformed"}

    service = get_webhook_service(request)
    try:
        result = await service.handle_event(payload)
    except Exception as e:
        logger.exception(f"[WEBHOOK] Event handling failed: {e}")
        return {"ok": True, "status": "error"}

    if result.get("status") in ("synced", "failed"):
        request.app.state.summary_cache.invalidate_prefix(f"summary:{result['athlete_id']}:")
    return result
