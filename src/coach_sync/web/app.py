"""FastAPI application for coach-sync."""

from collections.abc import Callable
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from ..clients.base import BaseProviderClient
from ..config import settings
from ..db.engine import get_db_path, init_db
from ..errors import ConflictError, InvalidTimeError, NotFoundError
from ..logger import setup_logger
from .cache import TTLCache
from .routers import calendar, sync, webhook


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - runs on startup and shutdown."""
    setup_logger(settings.log_level)
    await init_db(app.state.db_path)
    logger.info(f"[WEB] Database ready at {app.state.db_path}")
    yield


def create_app(
    db_path: Path | None = None,
    client_factory: Callable[[], BaseProviderClient] | None = None,
    summary_cache_seconds: float | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        db_path: SQLite file; defaults to the configured path
        client_factory: Builds a provider client per sync run (tests inject fakes)
        summary_cache_seconds: TTL for cached range summaries
    """
    app = FastAPI(
        title="coach-sync",
        description="Reconciles provider activities with a coach's training plan",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Shared state read by the routers
    app.state.db_path = db_path or get_db_path()
    app.state.client_factory = client_factory
    app.state.summary_cache = TTLCache(
        settings.summary_cache_seconds if summary_cache_seconds is None else summary_cache_seconds
    )

    app.include_router(webhook.router)
    app.include_router(sync.router)
    app.include_router(calendar.router)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError):
        return JSONResponse(status_code=409, content={"error": str(exc)})

    @app.exception_handler(InvalidTimeError)
    async def invalid_time_handler(request: Request, exc: InvalidTimeError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "version": "0.1.0"}

    return app
