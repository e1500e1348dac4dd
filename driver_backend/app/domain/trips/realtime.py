"""
Live view of a single trip.

Subscribes to committed updates from the change feed, then fetches the trip,
so that dispatcher-side changes (cancellation, reassignment) reach the driver
without polling.
"""

import logging
from typing import Any, Awaitable, Callable, List, Optional

from driver_backend.app.domain.ports import ChangeEvent, ChangeFeed, Record, RecordStore, StoreError, Subscription
from driver_backend.app.domain.trips.controller import TRIPS_TABLE

logger = logging.getLogger(__name__)

MAX_READ_ATTEMPTS = 3

TripListener = Callable[[Optional[Record]], Awaitable[None]]


def merge_update(local: Optional[Record], incoming: Record) -> Record:
    """Shallow-merge an UPDATE payload; a missing or null trip_phase keeps the local one."""
    merged = dict(local or {})
    for key, value in incoming.items():
        if key == "trip_phase" and value is None:
            continue
        merged[key] = value
    return merged


class RealtimeSync:

    def __init__(self, store: RecordStore, feed: ChangeFeed, trip_id: Any):
        self._store = store
        self._feed = feed
        self.trip_id = trip_id
        self.trip: Optional[Record] = None
        self.error: Optional[str] = None
        self._subscription: Optional[Subscription] = None
        self._listeners: List[TripListener] = []
        self._updates_seen = 0

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None

    def add_listener(self, listener: TripListener) -> None:
        self._listeners.append(listener)

    async def start(self) -> Optional[Record]:
        # Subscribe before the first read so no update can fall between the two.
        if self._subscription is None:
            self._subscription = await self._feed.subscribe(TRIPS_TABLE, self.trip_id, self._on_change)
            logger.debug("Subscribed to trip %s", self.trip_id)
        return await self.refresh()

    async def stop(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.unsubscribe()
            logger.debug("Unsubscribed from trip %s", self.trip_id)

    async def refresh(self) -> Optional[Record]:
        """Re-read the trip. A failed read keeps the last known record."""
        for _ in range(MAX_READ_ATTEMPTS):
            seen = self._updates_seen
            try:
                trip = await self._store.get(TRIPS_TABLE, self.trip_id)
            except StoreError as exc:
                logger.error("Error fetching trip %s: %s", self.trip_id, exc)
                self.error = str(exc)
                return self.trip
            # An update delivered during the read may be newer than what it returned.
            if self._updates_seen == seen:
                break

        self.error = None
        self.trip = trip
        await self._notify()
        return self.trip

    async def apply(self, trip: Optional[Record]) -> None:
        """Adopt a record obtained elsewhere, e.g. the result of a transition."""
        if trip is None:
            return
        self.trip = trip
        await self._notify()

    async def _on_change(self, event: ChangeEvent) -> None:
        if event.event_type != "UPDATE" or event.table != TRIPS_TABLE:
            return
        if str(event.record_id) != str(self.trip_id):
            return
        self._updates_seen += 1
        self.trip = merge_update(self.trip, event.new_record)
        await self._notify()

    async def _notify(self) -> None:
        for listener in list(self._listeners):
            await listener(self.trip)

    async def __aenter__(self) -> "RealtimeSync":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
