"""Calendar routes: resolved ranges, summaries and entry actions."""

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from ...services.calendar import CalendarService, validate_range

router = APIRouter(prefix="/calendar", tags=["calendar"])


class CompleteRequest(BaseModel):
    duration_minutes: int | None = Field(default=None, ge=0)
    distance_km: float | None = Field(default=None, ge=0)


def get_calendar_service(request: Request) -> CalendarService:
    return CalendarService(request.app.state.db_path)


def invalidate_summaries(request: Request, athlete_id: int) -> None:
    request.app.state.summary_cache.invalidate_prefix(f"summary:{athlete_id}:")


@router.get("/athletes/{athlete_id}/entries")
async def list_entries(
    request: Request,
    athlete_id: int,
    from_day: str = Query(alias="from"),
    to_day: str = Query(alias="to"),
):
    """Entries and unplanned completions with effective instants resolved."""
    service = get_calendar_service(request)
    items = await service.resolve_range(athlete_id, from_day, to_day)
    return {"entries": [item.to_dict() for item in items]}


@router.get("/athletes/{athlete_id}/summary")
async def range_summary(
    request: Request,
    athlete_id: int,
    from_day: str = Query(alias="from"),
    to_day: str = Query(alias="to"),
):
    """Totals, per-discipline rows and calories by day for a range."""
    validate_range(from_day, to_day)
    service = get_calendar_service(request)
    cache = request.app.state.summary_cache

    async def compute() -> dict:
        summary = await service.summarize_range(athlete_id, from_day, to_day)
        return summary.to_dict()

    return await cache.get_or_compute(f"summary:{athlete_id}:{from_day}:{to_day}", compute)


@router.post("/entries/{entry_id}/complete")
async def complete_entry(request: Request, entry_id: int, body: CompleteRequest | None = None):
    """Log a manual completion."""
    body = body or CompleteRequest()
    service = get_calendar_service(request)
    activity = await service.complete_manual(
        entry_id, duration_minutes=body.duration_minutes, distance_km=body.distance_km
    )
    invalidate_summaries(request, activity.athlete_id)
    return {"status": "completed", "activity": activity.to_dict()}


@router.post("/entries/{entry_id}/skip")
async def skip_entry(request: Request, entry_id: int):
    service = get_calendar_service(request)
    entry = await service.skip(entry_id)
    invalidate_summaries(request, entry.athlete_id)
    return {"status": "skipped", "entry": entry.to_dict()}


@router.post("/entries/{entry_id}/confirm-synced")
async def confirm_synced(request: Request, entry_id: int):
    """Accept a synced draft."""
    service = get_calendar_service(request)
    entry = await service.confirm_synced(entry_id)
    invalidate_summaries(request, entry.athlete_id)
    return {"status": "confirmed", "entry": entry.to_dict()}


@router.delete("/entries/{entry_id}")
async def delete_entry(request: Request, entry_id: int):
    service = get_calendar_service(request)
    entry = await service.delete(entry_id)
    invalidate_summaries(request, entry.athlete_id)
    return {"status": "deleted", "entry_id": entry_id}


@router.post("/activities/{activity_id}/confirm")
async def confirm_activity(request: Request, activity_id: int):
    """Confirm a synced completion, planned or not."""
    service = get_calendar_service(request)
    activity = await service.confirm_activity(activity_id)
    invalidate_summaries(request, activity.athlete_id)
    return {"status": "confirmed", "activity": activity.to_dict()}
