"""Maps trip events to notification sends for dispatchers, drivers, facilities and clients."""

import logging
from typing import Any, List, Optional

from driver_backend.app.domain.ports import NotificationSender, Record, RecordStore, StoreError
from driver_backend.app.domain.trips.events import TripEvent, TripEventType
from driver_backend.app.models.enums import AppScope, UserRole

logger = logging.getLogger(__name__)


def short_address(address: Optional[str]) -> str:
    """First comma-separated part of an address."""
    if not address:
        return "pickup"
    return address.split(",")[0].strip()


async def client_name(store: RecordStore, trip: Record) -> str:
    """Booking client's display name, "Client" when unknown."""
    user_id = trip.get("user_id")
    if user_id is None:
        return "Client"
    try:
        profile = await store.get("profiles", user_id)
    except StoreError as exc:
        logger.warning("Could not load client profile %s: %s", user_id, exc)
        return "Client"
    if not profile:
        return "Client"
    name = f"{profile.get('first_name') or ''} {profile.get('last_name') or ''}".strip()
    return name or profile.get("email") or "Client"


class TripNotifier:
    """
    Event handler for `TripEventDispatcher`.

    Every recipient is sent to independently; one failed send does not stop
    the others.
    """

    def __init__(self, store: RecordStore, sender: NotificationSender):
        self._store = store
        self._sender = sender

    async def __call__(self, event: TripEvent) -> None:
        handler = getattr(self, f"_on_{event.event_type.value}", None)
        if handler is None:
            return
        await handler(event)

    async def _on_accepted(self, event: TripEvent) -> None:
        trip = event.trip
        client = await self._client_name(trip)
        pickup = short_address(trip.get("pickup_address"))
        await self._notify_dispatchers(
            event, "driver_accepted", "✅ Driver Accepted Trip",
            f"Driver accepted trip for {client} to {pickup}",
            {"pickupAddress": trip.get("pickup_address")},
        )
        if trip.get("facility_id") is not None and trip.get("booked_by") is not None:
            await self._send(
                trip["booked_by"], AppScope.FACILITY, "driver_accepted", "✅ Driver Accepted Trip",
                f"Driver accepted trip for {client}",
                {"tripId": event.trip_id, "facilityId": trip.get("facility_id")},
            )
        if trip.get("user_id") is not None:
            await self._send(
                trip["user_id"], AppScope.BOOKING, "driver_accepted", "✅ Driver Confirmed",
                "Your driver has confirmed and is getting ready!",
                {"tripId": event.trip_id, "status": trip.get("status")},
            )

    async def _on_rejected(self, event: TripEvent) -> None:
        trip = event.trip
        client = await self._client_name(trip)
        await self._notify_dispatchers(
            event, "driver_rejected", "❌ Driver Rejected Trip",
            f"Driver rejected trip for {client} to {short_address(trip.get('pickup_address'))}",
            {"pickupAddress": trip.get("pickup_address")},
        )

    async def _on_started(self, event: TripEvent) -> None:
        trip = event.trip
        client = await self._client_name(trip)
        await self._notify_dispatchers(
            event, "trip_started", "🛣️ Trip Started",
            f"Driver started trip for {client} to {short_address(trip.get('pickup_address'))}",
        )

    async def _on_arrived_at_pickup(self, event: TripEvent) -> None:
        trip = event.trip
        client = await self._client_name(trip)
        await self._notify_dispatchers(
            event, "driver_arrived", "📍 Driver Arrived",
            f"Driver arrived at pickup for {client}",
        )
        if trip.get("user_id") is not None:
            await self._send(
                trip["user_id"], AppScope.BOOKING, "driver_arrived", "📍 Your Driver Has Arrived",
                f"Your driver is waiting at {short_address(trip.get('pickup_address'))}",
                {"tripId": event.trip_id},
            )

    async def _on_ride_started(self, event: TripEvent) -> None:
        client = await self._client_name(event.trip)
        await self._notify_dispatchers(
            event, "ride_started", "🚐 Ride Started",
            f"Driver is en route to destination with {client}",
        )

    async def _on_completed(self, event: TripEvent) -> None:
        trip = event.trip
        client = await self._client_name(trip)
        await self._notify_dispatchers(
            event, "trip_completed", "✅ Trip Completed",
            f"Driver completed trip for {client}",
        )
        if event.driver_id is not None:
            await self._send(
                event.driver_id, AppScope.DRIVER, "trip_completed", "✅ Trip Completed",
                f"Great job! Trip for {client} completed successfully.",
                {"tripId": event.trip_id, "status": trip.get("status")},
            )

    async def _notify_dispatchers(
        self,
        event: TripEvent,
        notification_type: str,
        title: str,
        body: str,
        extra: Optional[Record] = None,
    ) -> None:
        payload = {
            "tripId": event.trip_id,
            "driverId": event.driver_id,
            "status": event.trip.get("status"),
            "tripPhase": event.trip.get("trip_phase"),
        }
        payload.update(extra or {})
        for dispatcher_id in await self._dispatcher_ids():
            await self._send(dispatcher_id, AppScope.DISPATCHER, notification_type, title, body, payload)

    async def _dispatcher_ids(self) -> List[Any]:
        try:
            profiles = await self._store.select("profiles", {"role": UserRole.DISPATCHER})
        except StoreError as exc:
            logger.warning("Could not load dispatchers: %s", exc)
            return []
        return [profile["id"] for profile in profiles]

    async def _client_name(self, trip: Record) -> str:
        return await client_name(self._store, trip)

    async def _send(
        self,
        user_id: Any,
        scope: AppScope,
        notification_type: str,
        title: str,
        body: str,
        payload: Record,
    ) -> None:
        try:
            await self._sender.notify(user_id, scope.value, notification_type, title, body, payload)
        except Exception:
            logger.exception("Notification %s to user %s failed", notification_type, user_id)
