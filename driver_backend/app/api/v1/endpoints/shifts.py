"""
Driver Shift API Endpoints.

Daily vehicle inspection, clock-in and clock-out.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from driver_backend.app.core.config import settings
from driver_backend.app.core.guards import require_role
from driver_backend.app.db.session import get_db
from driver_backend.app.models.enums import UserRole
from driver_backend.app.schemas.shift import (
    ClockInRequest, ClockOutRequest, CurrentShiftResponse, InspectionRequest,
    InspectionResponse, ShiftHistoryResponse, ShiftResponse
)
from driver_backend.app.services import shift_service
from driver_backend.app.services.audit import log_event, AuditAction

router = APIRouter(prefix="/driver", tags=["Driver - Shifts"])

driver_only = require_role([UserRole.DRIVER])


@router.post("/inspections", response_model=InspectionResponse, status_code=status.HTTP_201_CREATED)
async def submit_inspection(
    payload: InspectionRequest,
    current_user: dict = Depends(driver_only),
    db: AsyncSession = Depends(get_db)
):
    """Submit today's pre-trip vehicle inspection."""
    checkoff = await shift_service.save_inspection(
        db,
        driver_id=current_user["user_id"],
        items=payload.items,
        vehicle_id=payload.vehicle_id,
        issues_found=payload.issues_found,
        signature_url=payload.signature_url,
    )
    await log_event(
        db=db,
        action=AuditAction.INSPECTION_SUBMITTED,
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        metadata={"vehicle_id": payload.vehicle_id, "issues_found": bool(payload.issues_found)}
    )
    return InspectionResponse.model_validate(checkoff)


@router.post("/shifts/clock-in", response_model=ShiftResponse, status_code=status.HTTP_201_CREATED)
async def clock_in(
    payload: ClockInRequest,
    current_user: dict = Depends(driver_only),
    db: AsyncSession = Depends(get_db)
):
    """
    Start a shift.

    Requires today's vehicle inspection and no shift already open.
    """
    shift = await shift_service.clock_in(
        db, current_user["user_id"], payload.vehicle_id, payload.odometer_start
    )
    await log_event(
        db=db,
        action=AuditAction.SHIFT_CLOCK_IN,
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        metadata={"shift_id": shift.id, "vehicle_id": shift.vehicle_id}
    )
    return ShiftResponse.model_validate(shift)


@router.post("/shifts/clock-out", response_model=ShiftResponse)
async def clock_out(
    payload: ClockOutRequest,
    current_user: dict = Depends(driver_only),
    db: AsyncSession = Depends(get_db)
):
    shift = await shift_service.clock_out(
        db, current_user["user_id"], payload.odometer_end, payload.notes
    )
    await log_event(
        db=db,
        action=AuditAction.SHIFT_CLOCK_OUT,
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        metadata={"shift_id": shift.id, "total_hours": float(shift.total_hours)}
    )
    return ShiftResponse.model_validate(shift)


@router.get("/shifts/current", response_model=CurrentShiftResponse)
async def current_shift(
    current_user: dict = Depends(driver_only),
    db: AsyncSession = Depends(get_db)
):
    driver_id = current_user["user_id"]
    shift = await shift_service.get_current_shift(db, driver_id)
    inspection = await shift_service.get_today_inspection(db, driver_id)

    return CurrentShiftResponse(
        shift=ShiftResponse.model_validate(shift) if shift else None,
        inspection_required=settings.require_inspection_before_clock_in and inspection is None
    )


@router.get("/shifts/history", response_model=ShiftHistoryResponse)
async def shift_history(
    limit: int = Query(30, ge=1, le=200),
    current_user: dict = Depends(driver_only),
    db: AsyncSession = Depends(get_db)
):
    shifts = await shift_service.get_shift_history(db, current_user["user_id"], limit=limit)
    return ShiftHistoryResponse(shifts=[ShiftResponse.model_validate(s) for s in shifts])
