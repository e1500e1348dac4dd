"""
Trip schemas.

Driver-facing trip views, transition results and dispatcher requests.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from driver_backend.app.models.trip_enums import DriverAcceptanceStatus, TripPhase, TripStatus


class TripResponse(BaseModel):
    """Schema for trip response."""
    id: int
    user_id: Optional[int] = None
    facility_id: Optional[int] = None
    booked_by: Optional[int] = None
    pickup_address: Optional[str] = None
    destination_address: Optional[str] = None
    pickup_time: Optional[datetime] = None
    assigned_driver_id: Optional[int] = None
    driver_id: Optional[int] = None
    status: TripStatus
    driver_acceptance_status: Optional[DriverAcceptanceStatus] = None
    trip_phase: Optional[TripPhase] = None
    pickup_arrival_time: Optional[datetime] = None
    ride_start_time: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TripListResponse(BaseModel):
    trips: List[TripResponse]
    total: int


class TripTransitionResponse(BaseModel):
    """Outcome of a driver action."""
    trip: TripResponse
    event: str
    occurred_at: datetime


class TripCreateRequest(BaseModel):
    user_id: Optional[int] = None
    facility_id: Optional[int] = None
    booked_by: Optional[int] = None
    pickup_address: str = Field(..., min_length=1, max_length=500)
    destination_address: str = Field(..., min_length=1, max_length=500)
    pickup_time: Optional[datetime] = None


class TripAssignRequest(BaseModel):
    driver_id: int = Field(..., description="Driver to assign")
