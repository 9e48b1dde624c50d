"""
FastAPI Application Entry Point.

This is the main application file for the ChargePal Backend.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from chargepal.app.core.config import settings
from chargepal.app.api.v1.router import router as api_v1_router
from chargepal.app.core.observability import ObservabilityMiddleware, configure_logging
from chargepal.app.core.redis_client import close_redis, ping_redis, redis_client
from chargepal.app.db.session import init_db
from chargepal.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from chargepal.app.services.sync_service import run_periodic_sync

# Import models to ensure they are registered with Base
from chargepal.app.models.state_snapshot import StateSnapshot

logger = logging.getLogger("chargepal")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates the state table on startup.
    2. Starts the auto-sync loop when enabled and stops it on shutdown.
    """
    configure_logging(settings.log_level)

    await init_db()

    auto_sync = None
    if settings.auto_sync:
        logger.info("Auto sync enabled", extra={"interval_seconds": settings.sync_interval_seconds})
        auto_sync = asyncio.create_task(run_periodic_sync(redis_client, settings.sync_interval_seconds))
    yield

    if auto_sync is not None:
        auto_sync.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await auto_sync
    await close_redis()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="EV charging ledger with bidirectional remote sync",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status, application information and Redis reachability
    """
    redis_ok = await ping_redis()
    return {
        "status": "healthy" if redis_ok else "degraded",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if redis_ok else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to ChargePal Backend API",
        "docs": "/docs",
        "health": "/health",
    }
