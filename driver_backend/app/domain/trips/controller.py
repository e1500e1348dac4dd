"""
Trip phase controller.

Validates and executes one forward transition per driver action:
read the trip, check the precondition, write the new phase and timestamps,
emit a domain event, then re-read the trip. Failures come back as values;
nothing here raises for a failed precondition or a failed write.
"""

import asyncio
import enum
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from pydantic import BaseModel

from driver_backend.app.core.clock import utcnow
from driver_backend.app.domain.ports import Record, RecordStore, StoreError
from driver_backend.app.domain.trips import phases
from driver_backend.app.domain.trips.events import TripEvent, TripEventDispatcher, TripEventType
from driver_backend.app.models.trip_enums import DriverAcceptanceStatus, TripPhase, TripStatus

logger = logging.getLogger(__name__)

TRIPS_TABLE = "trips"


class TransitionErrorKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    PRECONDITION = "precondition"
    BUSY = "busy"
    STORE = "store"


class TransitionError(BaseModel):
    kind: TransitionErrorKind
    message: str


class TransitionResult(BaseModel):
    ok: bool
    trip: Optional[Dict[str, Any]] = None
    event: Optional[TripEvent] = None
    error: Optional[TransitionError] = None

    @classmethod
    def failure(cls, kind: TransitionErrorKind, message: str, trip: Optional[Record] = None) -> "TransitionResult":
        return cls(ok=False, trip=trip, error=TransitionError(kind=kind, message=message))


class InFlightRegistry:
    """
    Single-flight guard keyed by trip id.

    A repeat of the action already running for a trip joins it and gets the
    same result. Any other action on that trip is refused until it finishes.
    """

    def __init__(self):
        self._calls: Dict[Any, Tuple[str, asyncio.Task]] = {}

    def __contains__(self, key: Any) -> bool:
        return key in self._calls

    async def run(
        self,
        key: Any,
        action: str,
        factory: Callable[[], Awaitable[TransitionResult]],
    ) -> TransitionResult:
        existing = self._calls.get(key)
        if existing is not None:
            running_action, task = existing
            if running_action == action:
                return await asyncio.shield(task)
            return TransitionResult.failure(
                TransitionErrorKind.BUSY,
                f"Another action ({running_action.split(':')[0]}) is still in progress for this trip",
            )

        task = asyncio.ensure_future(factory())
        self._calls[key] = (action, task)
        task.add_done_callback(lambda _: self._release(key, task))
        return await asyncio.shield(task)

    def _release(self, key: Any, task: asyncio.Task) -> None:
        current = self._calls.get(key)
        if current is not None and current[1] is task:
            del self._calls[key]


# One registry per process: every controller instance shares it.
in_flight_registry = InFlightRegistry()


def _accept_fields(driver_id: Any, now: datetime) -> Record:
    return {
        "driver_id": driver_id,
        "driver_acceptance_status": DriverAcceptanceStatus.ACCEPTED,
    }


def _reject_fields(driver_id: Any, now: datetime) -> Record:
    return {"driver_acceptance_status": DriverAcceptanceStatus.REJECTED}


def _start_fields(driver_id: Any, now: datetime) -> Record:
    return {
        "status": TripStatus.IN_PROGRESS,
        "driver_acceptance_status": DriverAcceptanceStatus.STARTED,
        "trip_phase": TripPhase.EN_ROUTE_TO_PICKUP,
    }


def _arrived_fields(driver_id: Any, now: datetime) -> Record:
    return {"trip_phase": TripPhase.ARRIVED_AT_PICKUP, "pickup_arrival_time": now}


def _ride_fields(driver_id: Any, now: datetime) -> Record:
    return {"trip_phase": TripPhase.EN_ROUTE_TO_DESTINATION, "ride_start_time": now}


def _complete_fields(driver_id: Any, now: datetime) -> Record:
    return {
        "status": TripStatus.COMPLETED,
        "driver_acceptance_status": DriverAcceptanceStatus.COMPLETED,
        "trip_phase": TripPhase.COMPLETED,
        "completed_at": now,
    }


_RULES = {
    TripEventType.ACCEPTED: (phases.check_can_accept, _accept_fields),
    TripEventType.REJECTED: (phases.check_can_accept, _reject_fields),
    TripEventType.STARTED: (phases.check_can_start, _start_fields),
    TripEventType.ARRIVED_AT_PICKUP: (
        lambda trip, driver_id: phases.check_can_advance(
            trip, driver_id, TripPhase.EN_ROUTE_TO_PICKUP, TripPhase.ARRIVED_AT_PICKUP
        ),
        _arrived_fields,
    ),
    TripEventType.RIDE_STARTED: (
        lambda trip, driver_id: phases.check_can_advance(
            trip, driver_id, TripPhase.ARRIVED_AT_PICKUP, TripPhase.EN_ROUTE_TO_DESTINATION
        ),
        _ride_fields,
    ),
    TripEventType.COMPLETED: (phases.check_can_complete, _complete_fields),
}


class TripPhaseController:
    """Driver-side trip lifecycle operations."""

    def __init__(
        self,
        store: RecordStore,
        events: Optional[TripEventDispatcher] = None,
        in_flight: Optional[InFlightRegistry] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._events = events
        self._in_flight = in_flight if in_flight is not None else in_flight_registry
        self._clock = clock

    async def accept(self, trip_id: Any, driver_id: Any) -> TransitionResult:
        return await self._transition(trip_id, driver_id, TripEventType.ACCEPTED)

    async def reject(self, trip_id: Any, driver_id: Any) -> TransitionResult:
        return await self._transition(trip_id, driver_id, TripEventType.REJECTED)

    async def start(self, trip_id: Any, driver_id: Any) -> TransitionResult:
        return await self._transition(trip_id, driver_id, TripEventType.STARTED)

    async def arrived_at_pickup(self, trip_id: Any, driver_id: Any) -> TransitionResult:
        return await self._transition(trip_id, driver_id, TripEventType.ARRIVED_AT_PICKUP)

    async def start_ride(self, trip_id: Any, driver_id: Any) -> TransitionResult:
        return await self._transition(trip_id, driver_id, TripEventType.RIDE_STARTED)

    async def complete(self, trip_id: Any, driver_id: Any) -> TransitionResult:
        return await self._transition(trip_id, driver_id, TripEventType.COMPLETED)

    def is_busy(self, trip_id: Any) -> bool:
        return trip_id in self._in_flight

    async def refresh(self, trip_id: Any) -> Optional[Record]:
        """Re-read the trip. Raises StoreError."""
        return await self._store.get(TRIPS_TABLE, trip_id)

    async def _transition(self, trip_id: Any, driver_id: Any, event_type: TripEventType) -> TransitionResult:
        return await self._in_flight.run(
            trip_id,
            f"{event_type.value}:{driver_id}",
            lambda: self._execute(trip_id, driver_id, event_type),
        )

    async def _execute(self, trip_id: Any, driver_id: Any, event_type: TripEventType) -> TransitionResult:
        check, effect = _RULES[event_type]

        try:
            trip = await self._store.get(TRIPS_TABLE, trip_id)
        except StoreError as exc:
            logger.warning("Could not load trip %s for %s: %s", trip_id, event_type.value, exc)
            return TransitionResult.failure(TransitionErrorKind.STORE, f"Failed to load trip: {exc}")

        if trip is None:
            return TransitionResult.failure(TransitionErrorKind.NOT_FOUND, "Trip not found")

        reason = check(trip, driver_id)
        if reason:
            logger.info("Rejected %s on trip %s by driver %s: %s", event_type.value, trip_id, driver_id, reason)
            return TransitionResult.failure(TransitionErrorKind.PRECONDITION, reason, trip=trip)

        now = self._clock()
        fields = effect(driver_id, now)
        fields["updated_at"] = now

        try:
            written = await self._store.update(TRIPS_TABLE, trip_id, fields)
        except StoreError as exc:
            logger.warning("Write failed for %s on trip %s: %s", event_type.value, trip_id, exc)
            return TransitionResult.failure(TransitionErrorKind.STORE, f"Failed to update trip: {exc}", trip=trip)

        logger.info("Trip %s: %s by driver %s", trip_id, event_type.value, driver_id)

        event = TripEvent(
            event_type=event_type,
            trip_id=trip_id,
            driver_id=driver_id,
            occurred_at=now,
            trip=written,
        )
        if self._events is not None:
            self._events.emit(event)

        return TransitionResult(ok=True, trip=await self._refresh_after_write(trip_id, written), event=event)

    async def _refresh_after_write(self, trip_id: Any, written: Record) -> Record:
        try:
            refreshed = await self.refresh(trip_id)
        except StoreError as exc:
            logger.warning("Refresh after write failed for trip %s: %s", trip_id, exc)
            return written
        return refreshed if refreshed is not None else written
