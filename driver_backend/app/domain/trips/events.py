"""Domain events emitted by trip transitions and their fire-and-forget dispatch."""

import asyncio
import enum
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class TripEventType(str, enum.Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    STARTED = "started"
    ARRIVED_AT_PICKUP = "arrived_at_pickup"
    RIDE_STARTED = "ride_started"
    COMPLETED = "completed"


class TripEvent(BaseModel):
    """A transition that was written to the trip record."""
    event_type: TripEventType
    trip_id: Any
    driver_id: Any
    occurred_at: datetime
    trip: Dict[str, Any]


TripEventHandler = Callable[[TripEvent], Awaitable[None]]


class TripEventDispatcher:
    """
    Runs event handlers in the background.

    Handlers never block or roll back the transition that produced the event;
    their failures are logged and dropped.
    """

    def __init__(
        self,
        handlers: List[TripEventHandler] = None,
        pending: Optional[Set[asyncio.Task]] = None,
    ):
        self._handlers: List[TripEventHandler] = list(handlers or [])
        # Dispatchers built per request share one set so shutdown can drain them all.
        self._pending: Set[asyncio.Task] = pending if pending is not None else set()

    def subscribe(self, handler: TripEventHandler) -> None:
        self._handlers.append(handler)

    def emit(self, event: TripEvent) -> None:
        for handler in self._handlers:
            task = asyncio.create_task(self._run(handler, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _run(self, handler: TripEventHandler, event: TripEvent) -> None:
        try:
            await handler(event)
        except Exception:
            logger.exception(
                "Trip event handler failed for %s on trip %s", event.event_type.value, event.trip_id
            )

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every handler scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
