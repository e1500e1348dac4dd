"""
Capability interfaces the driver trip core depends on.

The core never talks to a concrete database, broker or device API. Adapters
in `driver_backend.app.services` implement these for the server; tests use
in-process fakes.
"""

import enum
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from pydantic import BaseModel


class StoreError(Exception):
    """An external read or write failed (network, constraint, unavailable)."""


class RecordNotFoundError(StoreError):
    """The record addressed by an update does not exist."""


Record = Dict[str, Any]


class RecordStore(Protocol):
    async def get(self, table: str, record_id: Any) -> Optional[Record]: ...

    async def update(self, table: str, record_id: Any, fields: Record) -> Record: ...

    async def insert(self, table: str, fields: Record) -> Record: ...

    async def select(
        self,
        table: str,
        filters: Optional[Record] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Record]: ...


class ChangeEvent(BaseModel):
    """One committed change to a record, as delivered by the change feed."""
    event_type: str  # INSERT, UPDATE, DELETE
    table: str
    record_id: Any
    new_record: Record = {}
    old_record: Record = {}


ChangeCallback = Callable[[ChangeEvent], Awaitable[None]]


class Subscription(Protocol):
    async def unsubscribe(self) -> None: ...


class ChangeFeed(Protocol):
    async def subscribe(self, table: str, record_id: Any, callback: ChangeCallback) -> Subscription: ...

    async def publish(self, event: ChangeEvent) -> None: ...


class Position(BaseModel):
    """A device location fix."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    heading: Optional[float] = None
    speed: Optional[float] = None
    timestamp: datetime


class WatchOptions(BaseModel):
    time_interval_seconds: float = 5.0
    distance_interval_meters: float = 10.0


PositionCallback = Callable[[Position], Awaitable[None]]


class GeolocationProvider(Protocol):
    async def get_current_position(self) -> Position: ...

    async def watch_position(self, options: WatchOptions, callback: PositionCallback) -> Any: ...

    async def stop_watching(self, handle: Any) -> None: ...


class PermissionStatus(str, enum.Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"


class PermissionProvider(Protocol):
    async def query_foreground_permission(self) -> PermissionStatus: ...

    async def request_foreground_permission(self) -> PermissionStatus: ...

    async def query_background_permission(self) -> PermissionStatus: ...

    async def request_background_permission(self) -> PermissionStatus: ...


class FlagStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class NotificationSender(Protocol):
    async def notify(
        self,
        target_user_id: Any,
        app_scope: str,
        notification_type: str,
        title: str,
        body: str,
        payload: Optional[Record] = None,
    ) -> None: ...
