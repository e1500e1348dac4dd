"""
Location and disclosure schemas.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from driver_backend.app.schemas.trip import TripResponse


class LocationRecord(BaseModel):
    """A GPS fix posted by the driver app. Missing or out-of-range coordinates are dropped, not rejected."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    heading: Optional[float] = None
    speed: Optional[float] = None
    timestamp: Optional[datetime] = Field(default=None, description="When the fix was taken; defaults to now")


class LocationRecordResponse(BaseModel):
    trip_id: int
    recorded: bool
    location_id: Optional[int] = None
    reason: Optional[str] = None


class LocationSample(BaseModel):
    id: int
    trip_id: int
    driver_id: int
    latitude: float
    longitude: float
    heading: Optional[float] = None
    speed: Optional[float] = None
    timestamp: datetime

    class Config:
        from_attributes = True


class LiveTripResponse(BaseModel):
    trip: TripResponse
    locations: List[LocationSample]
    latest: Optional[LocationSample] = None


class DisclosureStatusResponse(BaseModel):
    accepted: bool


class LocationPurgeResponse(BaseModel):
    deleted: int
    retention_days: int
