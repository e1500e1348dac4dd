"""
Shift and vehicle inspection schemas.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Any, Dict, List, Optional


class InspectionRequest(BaseModel):
    vehicle_id: Optional[str] = Field(default=None, max_length=50)
    items: Dict[str, Any] = Field(..., description="Checklist answers keyed by item name")
    issues_found: Optional[str] = None
    signature_url: Optional[str] = Field(default=None, max_length=500)


class InspectionResponse(BaseModel):
    id: int
    driver_id: int
    shift_id: Optional[int] = None
    vehicle_id: Optional[str] = None
    checkoff_date: date
    items: Dict[str, Any]
    issues_found: Optional[str] = None
    signed_at: datetime

    class Config:
        from_attributes = True


class ClockInRequest(BaseModel):
    vehicle_id: str = Field(..., max_length=50)
    odometer_start: int = Field(..., ge=0)


class ClockOutRequest(BaseModel):
    odometer_end: int = Field(..., ge=0)
    notes: Optional[str] = None


class ShiftResponse(BaseModel):
    id: int
    driver_id: int
    vehicle_id: Optional[str] = None
    clock_in: datetime
    clock_out: Optional[datetime] = None
    total_hours: Optional[float] = None
    odometer_start: Optional[int] = None
    odometer_end: Optional[int] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class CurrentShiftResponse(BaseModel):
    shift: Optional[ShiftResponse] = None
    inspection_required: bool


class ShiftHistoryResponse(BaseModel):
    shifts: List[ShiftResponse]
