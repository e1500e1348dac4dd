"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from driver_backend.app.api.v1.endpoints import (
    auth, admin, dispatcher, driver_trips, notifications, shifts
)

router = APIRouter()

# Authentication
router.include_router(auth.router)

# Driver app
router.include_router(driver_trips.router)
router.include_router(shifts.router)
router.include_router(notifications.router)

# Dispatch console
router.include_router(dispatcher.router)

# Admin
router.include_router(admin.router)
