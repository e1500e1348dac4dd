"""
Location reporter.

While a trip is in progress for the current driver, watches the device
position and appends fixes to the `driver_location` log. Fixes are coalesced
so at most one is written per time interval unless the driver moved at least
the distance interval since the last written fix. Fixes posted by the driver
app go through the same rules via `record`.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel

from driver_backend.app.core.clock import as_utc
from driver_backend.app.core.config import settings
from driver_backend.app.domain.ports import (
    GeolocationProvider,
    Position,
    Record,
    RecordStore,
    StoreError,
    WatchOptions,
)
from driver_backend.app.domain.tracking.geo import haversine_distance_m, is_valid_coordinate
from driver_backend.app.domain.trips.phases import is_tracking_active

logger = logging.getLogger(__name__)

LOCATION_TABLE = "driver_location"

NOT_TRACKING = "Trip is not in progress"
INVALID_FIX = "Invalid coordinates"
AFTER_CUTOFF = "Fix was taken after the trip completed"
COALESCED = "Too close to the previous fix"
NOT_SAVED = "Location could not be saved"


class FixOutcome(BaseModel):
    recorded: bool
    reason: Optional[str] = None
    sample: Optional[Dict[str, Any]] = None


class LocationReporter:

    def __init__(
        self,
        geolocation: Optional[GeolocationProvider],
        store: RecordStore,
        time_interval_seconds: float = None,
        distance_interval_meters: float = None,
    ):
        self._geolocation = geolocation
        self._store = store
        self._options = WatchOptions(
            time_interval_seconds=(
                settings.location_time_interval_seconds
                if time_interval_seconds is None else time_interval_seconds
            ),
            distance_interval_meters=(
                settings.location_distance_interval_meters
                if distance_interval_meters is None else distance_interval_meters
            ),
        )
        self._handle: Any = None
        self._enabled = False
        self._trip_id: Any = None
        self._driver_id: Any = None
        self._cutoff: Optional[datetime] = None
        self._last_written: Optional[Tuple[float, float, datetime]] = None
        self.samples_written = 0

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def trip_id(self) -> Any:
        return self._trip_id

    @property
    def cutoff(self) -> Optional[datetime]:
        return self._cutoff

    async def enable(self, trip_id: Any, driver_id: Any) -> bool:
        """
        Start sampling for this trip and driver. Returns False if the watch could not start.

        Without a geolocation provider the reporter only accepts fixes handed
        to `record`, e.g. fixes posted by the driver app.
        """
        if self._enabled and (self._trip_id, self._driver_id) == (trip_id, driver_id):
            return True

        await self.disable()
        self._trip_id = trip_id
        self._driver_id = driver_id
        self._cutoff = None
        self._last_written = None
        self._enabled = True

        if self._geolocation is not None:
            try:
                self._handle = await self._geolocation.watch_position(self._options, self._on_position)
            except Exception:
                logger.exception("Could not start location tracking for trip %s", trip_id)
                self._enabled = False
                self._handle = None
                return False

        logger.info("Location tracking enabled for trip %s (driver %s)", trip_id, driver_id)
        return True

    async def disable(self, cutoff: Optional[datetime] = None) -> None:
        """Stop sampling. Fixes stamped after `cutoff` are never written."""
        was_enabled = self._enabled
        self._enabled = False
        if cutoff is not None:
            self._cutoff = as_utc(cutoff)

        handle, self._handle = self._handle, None
        if handle is not None:
            try:
                await self._geolocation.stop_watching(handle)
            except Exception:
                logger.exception("Failed to stop location watch for trip %s", self._trip_id)

        if was_enabled:
            logger.info("Location tracking disabled for trip %s", self._trip_id)

    def hold_after(self, cutoff: datetime) -> None:
        """Keep sampling but drop fixes stamped after `cutoff`, e.g. while completion is being written."""
        self._cutoff = as_utc(cutoff)

    def release_hold(self) -> None:
        self._cutoff = None

    async def evaluate(self, trip: Optional[Record], driver_id: Any) -> bool:
        """Apply the enablement predicate to the latest view of the trip."""
        if is_tracking_active(trip, driver_id):
            await self.enable(trip["id"], driver_id)
        elif self._enabled:
            await self.disable(cutoff=trip.get("completed_at") if trip else None)
        return self._enabled

    async def resume_from_last_sample(self) -> None:
        """Coalesce against the newest stored fix of the trip instead of starting fresh."""
        if not self._enabled:
            return
        try:
            rows = await self._store.select(
                LOCATION_TABLE,
                filters={"trip_id": self._trip_id, "driver_id": self._driver_id},
                order_by="timestamp",
                descending=True,
                limit=1,
            )
        except StoreError as exc:
            logger.error("Error reading last location for trip %s: %s", self._trip_id, exc)
            return
        if rows:
            last = rows[0]
            self._last_written = (last["latitude"], last["longitude"], as_utc(last["timestamp"]))

    async def record(self, position: Position) -> FixOutcome:
        """Write one fix if tracking is on and it passes validation, the cutoff and coalescing."""
        timestamp = as_utc(position.timestamp)
        if self._cutoff is not None and timestamp > self._cutoff:
            logger.debug("Dropping fix for trip %s stamped after %s", self._trip_id, self._cutoff.isoformat())
            return FixOutcome(recorded=False, reason=AFTER_CUTOFF)

        if not self._enabled:
            return FixOutcome(recorded=False, reason=NOT_TRACKING)

        if not is_valid_coordinate(position.latitude, position.longitude):
            logger.warning("Invalid location data for trip %s, skipping update", self._trip_id)
            return FixOutcome(recorded=False, reason=INVALID_FIX)

        if not self._should_write(position.latitude, position.longitude, timestamp):
            return FixOutcome(recorded=False, reason=COALESCED)

        sample = {
            "trip_id": self._trip_id,
            "driver_id": self._driver_id,
            "latitude": position.latitude,
            "longitude": position.longitude,
            "heading": position.heading,
            "speed": position.speed,
            "timestamp": timestamp,
        }
        try:
            sample = await self._store.insert(LOCATION_TABLE, sample)
        except StoreError as exc:
            logger.error("Error saving location for trip %s: %s", self._trip_id, exc)
            return FixOutcome(recorded=False, reason=NOT_SAVED)

        self._last_written = (position.latitude, position.longitude, timestamp)
        self.samples_written += 1
        return FixOutcome(recorded=True, sample=sample)

    async def _on_position(self, position: Position) -> None:
        await self.record(position)

    def _should_write(self, latitude: float, longitude: float, timestamp: datetime) -> bool:
        if self._last_written is None:
            return True
        last_lat, last_lng, last_ts = self._last_written
        elapsed = (timestamp - last_ts).total_seconds()
        if elapsed >= self._options.time_interval_seconds:
            return True
        moved = haversine_distance_m(last_lat, last_lng, latitude, longitude)
        return moved >= self._options.distance_interval_meters
