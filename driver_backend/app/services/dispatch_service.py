"""
Dispatcher-side trip operations.

Writes go through the record store so drivers watching a trip see
assignment and cancellation on the change feed.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from driver_backend.app.core.clock import utcnow
from driver_backend.app.core.config import settings
from driver_backend.app.core.exceptions import ResourceNotFoundError, TripTransitionError
from driver_backend.app.domain.ports import NotificationSender, Record, RecordStore, StoreError
from driver_backend.app.domain.tracking.location_reporter import LOCATION_TABLE
from driver_backend.app.domain.trips.controller import TRIPS_TABLE
from driver_backend.app.domain.trips.notifier import client_name, short_address
from driver_backend.app.models.driver_location import DriverLocation
from driver_backend.app.models.enums import AppScope
from driver_backend.app.models.trip_enums import (
    TERMINAL_STATUSES,
    DriverAcceptanceStatus,
    TripPhase,
    TripStatus,
)

logger = logging.getLogger(__name__)


class DispatchService:

    def __init__(self, store: RecordStore, sender: NotificationSender):
        self._store = store
        self._sender = sender

    async def create_trip(self, fields: Record) -> Record:
        now = utcnow()
        values = dict(fields)
        values.setdefault("status", TripStatus.UPCOMING)
        values.setdefault("trip_phase", TripPhase.WAITING)
        values["created_at"] = now
        values["updated_at"] = now
        return await self._store.insert(TRIPS_TABLE, values)

    async def assign(self, trip_id: int, driver_id: int) -> Record:
        """
        Assign (or reassign) a driver. Resets acceptance so the new driver
        has to accept before starting.
        """
        trip = await self._load(trip_id)
        status = TripStatus(trip["status"])
        if status in TERMINAL_STATUSES or status == TripStatus.IN_PROGRESS:
            raise TripTransitionError("precondition", f"Cannot assign a trip that is {status.value}", trip_id)

        updated = await self._store.update(TRIPS_TABLE, trip_id, {
            "assigned_driver_id": driver_id,
            "driver_id": None,
            "status": TripStatus.ASSIGNED,
            "driver_acceptance_status": DriverAcceptanceStatus.ASSIGNED_WAITING,
            "trip_phase": TripPhase.WAITING,
            "updated_at": utcnow(),
        })

        client = await client_name(self._store, updated)
        await self._notify(
            driver_id, "trip_assigned", "🚗 New Trip Assigned",
            f"You have been assigned a trip to {short_address(updated.get('pickup_address'))} for {client}",
            {
                "tripId": trip_id,
                "pickupTime": updated["pickup_time"].isoformat() if updated.get("pickup_time") else None,
                "pickupAddress": updated.get("pickup_address"),
                "destinationAddress": updated.get("destination_address"),
                "status": updated.get("status"),
            },
        )
        return updated

    async def cancel(self, trip_id: int) -> Record:
        trip = await self._load(trip_id)
        status = TripStatus(trip["status"])
        if status in TERMINAL_STATUSES:
            raise TripTransitionError("precondition", f"Trip is already {status.value}", trip_id)

        updated = await self._store.update(TRIPS_TABLE, trip_id, {
            "status": TripStatus.CANCELLED,
            "updated_at": utcnow(),
        })

        driver_id = trip.get("driver_id") or trip.get("assigned_driver_id")
        if driver_id is not None:
            await self._notify(
                driver_id, "trip_cancelled", "❌ Trip Cancelled",
                f"Your trip to {short_address(trip.get('pickup_address'))} has been cancelled.",
                {"tripId": trip_id, "status": updated.get("status")},
            )
        return updated

    async def live(self, trip_id: int, limit: int = 100) -> Dict[str, Any]:
        """Trip plus its most recent location samples, newest first."""
        trip = await self._load(trip_id)
        locations = await self._store.select(
            LOCATION_TABLE, {"trip_id": trip_id}, order_by="timestamp", descending=True, limit=limit
        )
        return {"trip": trip, "locations": locations}

    async def _load(self, trip_id: int) -> Record:
        trip = await self._store.get(TRIPS_TABLE, trip_id)
        if trip is None:
            raise ResourceNotFoundError("Trip", trip_id)
        return trip

    async def _notify(self, user_id: Any, notification_type: str, title: str, body: str, payload: Record) -> None:
        try:
            await self._sender.notify(user_id, AppScope.DRIVER.value, notification_type, title, body, payload)
        except StoreError as exc:
            logger.error("Notification %s to driver %s failed: %s", notification_type, user_id, exc)


async def purge_old_locations(db: AsyncSession, retention_days: Optional[int] = None) -> int:
    """
    Delete location samples older than the retention window.

    Returns:
        Number of samples removed
    """
    days = settings.location_retention_days if retention_days is None else retention_days
    cutoff = utcnow() - timedelta(days=days)
    result = await db.execute(delete(DriverLocation).where(DriverLocation.timestamp < cutoff))
    await db.commit()
    logger.info("Purged %s location samples older than %s", result.rowcount, cutoff.isoformat())
    return result.rowcount
