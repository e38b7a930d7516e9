"""Application entry point for the PawSquare FastAPI backend."""
from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import get_settings
from .constants import ASSISTANT_FUNCTION_PATH
from .database import create_session, init_db
from .middleware import OriginPolicyMiddleware
from .routers import assistant_router, realtime_router
from .services import AssistantProxyError, UsageCleanupError, run_usage_cleanup

logger = logging.getLogger(__name__)

settings = get_settings()
APP_NAME = settings.app_name
API_VERSION = settings.api_version
DISABLE_CLEANUP = os.getenv("DISABLE_CLEANUP", "").lower() == "true" or os.getenv("PYTEST_CURRENT_TEST") is not None

_CLEANUP_INTERVAL = timedelta(minutes=settings.usage_cleanup_interval_minutes)
_CLEANUP_RETENTION = timedelta(hours=settings.usage_retention_hours)
_cleanup_stop = asyncio.Event()


async def _run_cleanup_once() -> None:
    """Execute a single usage-log cleanup pass in a worker thread."""

    try:
        deleted = await asyncio.to_thread(run_usage_cleanup, create_session, retention=_CLEANUP_RETENTION)
        logger.info("Usage cleanup summary (deleted=%d)", deleted)
    except UsageCleanupError:
        logger.exception("Scheduled usage cleanup failed")


async def _cleanup_loop() -> None:
    """Background task that prunes the usage log on a fixed interval."""

    while not _cleanup_stop.is_set():
        await _run_cleanup_once()
        try:
            await asyncio.wait_for(_cleanup_stop.wait(), timeout=_CLEANUP_INTERVAL.total_seconds())
        except asyncio.TimeoutError:
            continue


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the schema and run the usage cleanup loop for the app's lifetime."""

    try:
        init_db()
    except Exception:  # pragma: no cover - best effort logging
        logger.exception("Database initialisation failed")
        raise

    if DISABLE_CLEANUP:
        logger.info("Background usage cleanup disabled (testing mode)")
        yield
        return

    _cleanup_stop.clear()
    cleanup_task = asyncio.create_task(_cleanup_loop())
    try:
        yield
    finally:
        _cleanup_stop.set()
        await cleanup_task


app = FastAPI(title=APP_NAME, version=API_VERSION, lifespan=lifespan)

app.add_middleware(OriginPolicyMiddleware, paths=[ASSISTANT_FUNCTION_PATH])

app.include_router(assistant_router)
app.include_router(realtime_router)


@app.exception_handler(AssistantProxyError)
async def _assistant_error_handler(request: Request, exc: AssistantProxyError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.get("/api", tags=["system"])
def api_info() -> dict[str, str]:
    return {"service": APP_NAME, "version": API_VERSION}


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
