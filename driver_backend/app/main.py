"""
FastAPI Application Entry Point.

This is the main application file for the CCT Driver Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from driver_backend.app.core.config import settings
from driver_backend.app.api.v1.router import router as api_v1_router
from driver_backend.app.core.dependencies import drain_trip_events
from driver_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from driver_backend.app.core.redis_client import ping_redis
from driver_backend.app.db.session import engine, Base
from driver_backend.app.domain.ports import StoreError
from driver_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler,
    store_error_handler
)

# Import models to ensure they are registered with Base
from driver_backend.app.models.user import User  # noqa: F401
from driver_backend.app.models.trip import Trip  # noqa: F401
from driver_backend.app.models.driver_location import DriverLocation  # noqa: F401
from driver_backend.app.models.notification import Notification, PushToken  # noqa: F401
from driver_backend.app.models.driver_shift import DriverShift, VehicleCheckoff  # noqa: F401
from driver_backend.app.models.audit_log import AuditLog  # noqa: F401

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Configures logging and creates database tables on startup.
    2. Waits for pending trip notifications on shutdown.
    """
    configure_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s started (change feed: %s)", settings.app_name, settings.change_feed_backend)
    yield
    await drain_trip_events()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Driver trip lifecycle, GPS tracking and dispatch backend",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StoreError, store_error_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": await ping_redis(),
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
        "message": "Welcome to the CCT Driver Backend API",
        "docs": "/docs",
        "health": "/health",
    }
