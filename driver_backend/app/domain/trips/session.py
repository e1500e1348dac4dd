"""
One driver working one trip.

Ties the live trip view, permission negotiation and location reporting
together, and routes driver actions through the phase controller. Use it as
an async context manager so the location watch and the change subscription
are released on every exit path.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from driver_backend.app.core.clock import utcnow
from driver_backend.app.domain.ports import Record
from driver_backend.app.domain.tracking.location_reporter import LocationReporter
from driver_backend.app.domain.tracking.permissions import PermissionNegotiator
from driver_backend.app.domain.trips.controller import TransitionResult, TripPhaseController
from driver_backend.app.domain.trips.phases import is_tracking_active
from driver_backend.app.domain.trips.realtime import RealtimeSync

logger = logging.getLogger(__name__)


class TripSession:

    def __init__(
        self,
        trip_id: Any,
        driver_id: Any,
        controller: TripPhaseController,
        sync: RealtimeSync,
        reporter: LocationReporter,
        negotiator: PermissionNegotiator,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.trip_id = trip_id
        self.driver_id = driver_id
        self.controller = controller
        self.sync = sync
        self.reporter = reporter
        self.negotiator = negotiator
        self._clock = clock
        self._tracking_requested = False
        self._opened = False

    @property
    def trip(self) -> Optional[Record]:
        return self.sync.trip

    async def open(self) -> Optional[Record]:
        await self.negotiator.initialize()
        if not self._opened:
            self.sync.add_listener(self._on_trip)
            self._opened = True
        return await self.sync.start()

    async def close(self) -> None:
        try:
            await self.reporter.disable()
        finally:
            await self.sync.stop()

    async def __aenter__(self) -> "TripSession":
        try:
            await self.open()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def accept(self) -> TransitionResult:
        return await self._apply(await self.controller.accept(self.trip_id, self.driver_id))

    async def reject(self) -> TransitionResult:
        return await self._apply(await self.controller.reject(self.trip_id, self.driver_id))

    async def start(self) -> TransitionResult:
        return await self._apply(await self.controller.start(self.trip_id, self.driver_id))

    async def arrived_at_pickup(self) -> TransitionResult:
        return await self._apply(await self.controller.arrived_at_pickup(self.trip_id, self.driver_id))

    async def start_ride(self) -> TransitionResult:
        return await self._apply(await self.controller.start_ride(self.trip_id, self.driver_id))

    async def complete(self) -> TransitionResult:
        # Fixes stamped after this instant never land, even while the write is in flight.
        self.reporter.hold_after(self._clock())
        result = await self.controller.complete(self.trip_id, self.driver_id)
        if not result.ok:
            self.reporter.release_hold()
            await self._on_trip(self.sync.trip)
            return result
        return await self._apply(result)

    async def accept_disclosure(self) -> bool:
        granted = await self.negotiator.accept_disclosure()
        await self._on_trip(self.sync.trip)
        return granted

    async def _apply(self, result: TransitionResult) -> TransitionResult:
        if result.ok:
            await self.sync.apply(result.trip)
        return result

    async def _on_trip(self, trip: Optional[Record]) -> None:
        active = is_tracking_active(trip, self.driver_id)
        if active and not self._tracking_requested:
            self._tracking_requested = True
            await self.negotiator.request_tracking()
        if not active:
            self._tracking_requested = False

        if active and not self.negotiator.has_foreground_permission:
            logger.warning("No location permission, trip %s runs without tracking", self.trip_id)
            await self.reporter.disable()
            return
        await self.reporter.evaluate(trip, self.driver_id)
