"""
Driver shift service.

Clock-in/clock-out and the daily pre-trip vehicle inspection that gates
clock-in.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from driver_backend.app.core.clock import as_utc, utcnow
from driver_backend.app.core.config import settings
from driver_backend.app.core.exceptions import ShiftError
from driver_backend.app.models.driver_shift import DriverShift, VehicleCheckoff


async def get_current_shift(db: AsyncSession, driver_id: int) -> Optional[DriverShift]:
    """The driver's open shift (clocked in, not clocked out), if any."""
    result = await db.execute(
        select(DriverShift).where(
            DriverShift.driver_id == driver_id,
            DriverShift.clock_out.is_(None)
        ).order_by(DriverShift.clock_in.desc()).limit(1)
    )
    return result.scalar_one_or_none()


async def get_today_inspection(db: AsyncSession, driver_id: int, now: Optional[datetime] = None) -> Optional[VehicleCheckoff]:
    today = (now or utcnow()).date()
    result = await db.execute(
        select(VehicleCheckoff).where(
            VehicleCheckoff.driver_id == driver_id,
            VehicleCheckoff.checkoff_date == today
        ).order_by(VehicleCheckoff.created_at.desc(), VehicleCheckoff.id.desc()).limit(1)
    )
    return result.scalar_one_or_none()


async def save_inspection(
    db: AsyncSession,
    driver_id: int,
    items: Dict[str, Any],
    vehicle_id: Optional[str] = None,
    issues_found: Optional[str] = None,
    signature_url: Optional[str] = None,
) -> VehicleCheckoff:
    """
    Record today's vehicle inspection, linked to the open shift if there is one.

    Args:
        db: Database session
        driver_id: Inspecting driver
        items: Checklist answers keyed by item name
        vehicle_id: Vehicle inspected
        issues_found: Free-text description of defects
        signature_url: Where the driver's signature image is stored
    """
    now = utcnow()
    shift = await get_current_shift(db, driver_id)
    checkoff = VehicleCheckoff(
        driver_id=driver_id,
        shift_id=shift.id if shift else None,
        vehicle_id=vehicle_id,
        checkoff_date=now.date(),
        items=items,
        issues_found=issues_found,
        signature_url=signature_url,
        signed_at=now,
    )
    db.add(checkoff)
    await db.commit()
    await db.refresh(checkoff)
    return checkoff


async def clock_in(db: AsyncSession, driver_id: int, vehicle_id: str, odometer_start: int) -> DriverShift:
    """
    Open a shift.

    Raises:
        ShiftError: no vehicle or odometer given, already clocked in, or no
            inspection submitted today
    """
    if not vehicle_id or not vehicle_id.strip():
        raise ShiftError("Please enter a vehicle ID")
    if odometer_start is None or odometer_start < 0:
        raise ShiftError("Please enter the starting odometer reading")

    if await get_current_shift(db, driver_id) is not None:
        raise ShiftError("You are already clocked in")

    if settings.require_inspection_before_clock_in and await get_today_inspection(db, driver_id) is None:
        raise ShiftError("Complete today's vehicle inspection before clocking in")

    shift = DriverShift(
        driver_id=driver_id,
        vehicle_id=vehicle_id.strip(),
        odometer_start=odometer_start,
        clock_in=utcnow(),
    )
    db.add(shift)
    await db.commit()
    await db.refresh(shift)
    return shift


def compute_total_hours(clock_in_at: datetime, clock_out_at: datetime) -> Decimal:
    seconds = (as_utc(clock_out_at) - as_utc(clock_in_at)).total_seconds()
    return (Decimal(seconds) / Decimal(3600)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


async def clock_out(db: AsyncSession, driver_id: int, odometer_end: int, notes: Optional[str] = None) -> DriverShift:
    """
    Close the open shift.

    Raises:
        ShiftError: no open shift, or the ending odometer is not past the start
    """
    shift = await get_current_shift(db, driver_id)
    if shift is None:
        raise ShiftError("No active shift")

    if odometer_end is None:
        raise ShiftError("Please enter the ending odometer reading")
    if shift.odometer_start is not None and odometer_end <= shift.odometer_start:
        raise ShiftError("Ending odometer must be greater than starting odometer")

    now = utcnow()
    shift.clock_out = now
    shift.odometer_end = odometer_end
    shift.notes = notes
    shift.total_hours = compute_total_hours(shift.clock_in, now)

    await db.commit()
    await db.refresh(shift)
    return shift


async def get_shift_history(db: AsyncSession, driver_id: int, limit: int = 30) -> List[DriverShift]:
    result = await db.execute(
        select(DriverShift).where(
            DriverShift.driver_id == driver_id
        ).order_by(DriverShift.clock_in.desc()).limit(limit)
    )
    return list(result.scalars().all())
