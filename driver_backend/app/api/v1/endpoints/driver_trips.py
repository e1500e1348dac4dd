"""
Driver Trip API Endpoints.

Drivers list their trips, move them through the trip phases and post GPS
fixes while a trip is in progress.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Path, Body, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from typing import Optional

from driver_backend.app.core.clock import utcnow
from driver_backend.app.core.config import settings
from driver_backend.app.core.dependencies import get_record_store, get_trip_controller
from driver_backend.app.core.exceptions import TripTransitionError
from driver_backend.app.core.guards import require_role
from driver_backend.app.core.redis_client import get_redis
from driver_backend.app.db.session import get_db
from driver_backend.app.domain.ports import Position, RecordStore
from driver_backend.app.domain.tracking.location_reporter import NOT_TRACKING, LocationReporter
from driver_backend.app.domain.trips.controller import TransitionResult, TripPhaseController
from driver_backend.app.domain.trips.events import TripEventType
from driver_backend.app.models.enums import UserRole
from driver_backend.app.models.trip import Trip
from driver_backend.app.models.trip_enums import TripStatus
from driver_backend.app.schemas.location import (
    DisclosureStatusResponse, LocationRecord, LocationRecordResponse
)
from driver_backend.app.schemas.trip import TripListResponse, TripResponse, TripTransitionResponse
from driver_backend.app.services.audit import log_event, AuditAction
from driver_backend.app.services.flag_store import RedisFlagStore

router = APIRouter(prefix="/driver", tags=["Driver - Trips"])

driver_only = require_role([UserRole.DRIVER])

AUDIT_ACTIONS = {
    TripEventType.ACCEPTED: AuditAction.TRIP_ACCEPTED,
    TripEventType.REJECTED: AuditAction.TRIP_REJECTED,
    TripEventType.STARTED: AuditAction.TRIP_STARTED,
    TripEventType.ARRIVED_AT_PICKUP: AuditAction.ARRIVED_AT_PICKUP,
    TripEventType.RIDE_STARTED: AuditAction.RIDE_STARTED,
    TripEventType.COMPLETED: AuditAction.TRIP_COMPLETED,
}


async def _finish_transition(
    result: TransitionResult,
    trip_id: int,
    current_user: dict,
    request: Request,
    db: AsyncSession,
) -> TripTransitionResponse:
    """Turn a controller result into a response, or raise the matching HTTP error."""
    if not result.ok:
        raise TripTransitionError(result.error.kind.value, result.error.message, trip_id)

    event = result.event
    await log_event(
        db=db,
        action=AUDIT_ACTIONS[event.event_type],
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        trip_id=trip_id,
        metadata={
            "status": result.trip.get("status"),
            "trip_phase": result.trip.get("trip_phase"),
        },
        ip_address=request.client.host if request.client else None
    )

    return TripTransitionResponse(
        trip=TripResponse.model_validate(result.trip),
        event=event.event_type.value,
        occurred_at=event.occurred_at,
    )


@router.get("/trips", response_model=TripListResponse)
async def list_my_trips(
    status_filter: Optional[TripStatus] = Query(None, alias="status", description="Filter by trip status"),
    current_user: dict = Depends(driver_only),
    db: AsyncSession = Depends(get_db)
):
    """
    Trips assigned to or accepted by the current driver, soonest pickup first.
    """
    driver_id = current_user["user_id"]
    query = select(Trip).where(
        or_(Trip.driver_id == driver_id, Trip.assigned_driver_id == driver_id)
    )
    if status_filter is not None:
        query = query.where(Trip.status == status_filter)
    query = query.order_by(Trip.pickup_time.asc(), Trip.id.asc())

    result = await db.execute(query)
    trips = result.scalars().all()

    return TripListResponse(
        trips=[TripResponse.model_validate(trip) for trip in trips],
        total=len(trips)
    )


@router.get("/trips/{trip_id}", response_model=TripResponse)
async def get_my_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(driver_only),
    db: AsyncSession = Depends(get_db)
):
    driver_id = current_user["user_id"]
    result = await db.execute(select(Trip).where(Trip.id == trip_id))
    trip = result.scalar_one_or_none()

    if not trip:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trip not found"
        )

    if driver_id not in (trip.driver_id, trip.assigned_driver_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This trip is not assigned to you"
        )

    return TripResponse.model_validate(trip)


@router.post("/trips/{trip_id}/accept", response_model=TripTransitionResponse)
async def accept_trip(
    request: Request,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(driver_only),
    controller: TripPhaseController = Depends(get_trip_controller),
    db: AsyncSession = Depends(get_db)
):
    """Accept an assigned trip."""
    result = await controller.accept(trip_id, current_user["user_id"])
    return await _finish_transition(result, trip_id, current_user, request, db)


@router.post("/trips/{trip_id}/reject", response_model=TripTransitionResponse)
async def reject_trip(
    request: Request,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(driver_only),
    controller: TripPhaseController = Depends(get_trip_controller),
    db: AsyncSession = Depends(get_db)
):
    """Decline an assigned trip. Dispatch is notified to reassign it."""
    result = await controller.reject(trip_id, current_user["user_id"])
    return await _finish_transition(result, trip_id, current_user, request, db)


@router.post("/trips/{trip_id}/start", response_model=TripTransitionResponse)
async def start_trip(
    request: Request,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(driver_only),
    controller: TripPhaseController = Depends(get_trip_controller),
    db: AsyncSession = Depends(get_db)
):
    """
    Start an accepted trip.

    Moves the trip to in_progress / en_route_to_pickup.
    """
    result = await controller.start(trip_id, current_user["user_id"])
    return await _finish_transition(result, trip_id, current_user, request, db)


@router.post("/trips/{trip_id}/arrive", response_model=TripTransitionResponse)
async def arrive_at_pickup(
    request: Request,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(driver_only),
    controller: TripPhaseController = Depends(get_trip_controller),
    db: AsyncSession = Depends(get_db)
):
    result = await controller.arrived_at_pickup(trip_id, current_user["user_id"])
    return await _finish_transition(result, trip_id, current_user, request, db)


@router.post("/trips/{trip_id}/start-ride", response_model=TripTransitionResponse)
async def start_ride(
    request: Request,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(driver_only),
    controller: TripPhaseController = Depends(get_trip_controller),
    db: AsyncSession = Depends(get_db)
):
    result = await controller.start_ride(trip_id, current_user["user_id"])
    return await _finish_transition(result, trip_id, current_user, request, db)


@router.post("/trips/{trip_id}/complete", response_model=TripTransitionResponse)
async def complete_trip(
    request: Request,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(driver_only),
    controller: TripPhaseController = Depends(get_trip_controller),
    db: AsyncSession = Depends(get_db)
):
    result = await controller.complete(trip_id, current_user["user_id"])
    return await _finish_transition(result, trip_id, current_user, request, db)


@router.post("/trips/{trip_id}/location", response_model=LocationRecordResponse)
async def record_location(
    trip_id: int = Path(..., description="Trip ID"),
    location: LocationRecord = Body(...),
    current_user: dict = Depends(driver_only),
    store: RecordStore = Depends(get_record_store)
):
    """
    Record a GPS fix for the driver's in-progress trip.

    Fixes follow the same rules as on-device tracking: invalid coordinates are
    dropped, and a fix within the time interval of the trip's newest sample is
    only kept if the driver moved at least the distance interval.
    """
    driver_id = current_user["user_id"]
    trip = await store.get("trips", trip_id)

    if not trip:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trip not found"
        )

    if trip.get("driver_id") != driver_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This trip is not assigned to you"
        )

    reporter = LocationReporter(None, store)
    if not await reporter.evaluate(trip, driver_id):
        return LocationRecordResponse(trip_id=trip_id, recorded=False, reason=NOT_TRACKING)
    await reporter.resume_from_last_sample()

    outcome = await reporter.record(Position(
        latitude=location.latitude,
        longitude=location.longitude,
        heading=location.heading,
        speed=location.speed,
        timestamp=location.timestamp or utcnow(),
    ))

    return LocationRecordResponse(
        trip_id=trip_id,
        recorded=outcome.recorded,
        location_id=outcome.sample["id"] if outcome.sample else None,
        reason=outcome.reason,
    )

def _disclosure_flags(redis_client, current_user: dict) -> RedisFlagStore:
    return RedisFlagStore(redis_client, namespace=f"driver:{current_user['user_id']}")


@router.get("/location-disclosure", response_model=DisclosureStatusResponse)
async def get_location_disclosure(
    current_user: dict = Depends(driver_only),
    redis_client=Depends(get_redis)
):
    """Whether this driver has accepted the background location disclosure."""
    flags = _disclosure_flags(redis_client, current_user)
    return DisclosureStatusResponse(accepted=await flags.get(settings.disclosure_flag_key) == "true")


@router.post("/location-disclosure", response_model=DisclosureStatusResponse)
async def accept_location_disclosure(
    current_user: dict = Depends(driver_only),
    redis_client=Depends(get_redis)
):
    flags = _disclosure_flags(redis_client, current_user)
    await flags.set(settings.disclosure_flag_key, "true")
    return DisclosureStatusResponse(accepted=True)


@router.delete("/location-disclosure", response_model=DisclosureStatusResponse)
async def reset_location_disclosure(
    current_user: dict = Depends(driver_only),
    redis_client=Depends(get_redis)
):
    flags = _disclosure_flags(redis_client, current_user)
    await flags.remove(settings.disclosure_flag_key)
    return DisclosureStatusResponse(accepted=False)
