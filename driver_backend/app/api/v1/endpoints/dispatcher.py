"""
Dispatcher API Endpoints.

Create trips, assign or cancel them, and watch a trip's live location.
"""

from fastapi import APIRouter, Depends, Path, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from driver_backend.app.core.dependencies import get_dispatch_service
from driver_backend.app.core.guards import require_role
from driver_backend.app.db.session import get_db
from driver_backend.app.models.enums import UserRole
from driver_backend.app.schemas.location import LiveTripResponse, LocationSample
from driver_backend.app.schemas.trip import TripAssignRequest, TripCreateRequest, TripResponse
from driver_backend.app.services.audit import log_event, AuditAction
from driver_backend.app.services.dispatch_service import DispatchService

router = APIRouter(prefix="/dispatcher", tags=["Dispatcher"])

dispatch_roles = require_role([UserRole.DISPATCHER, UserRole.ADMIN])


def _client_ip(request: Request):
    return request.client.host if request.client else None


@router.post("/trips", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    request: Request,
    payload: TripCreateRequest,
    current_user: dict = Depends(dispatch_roles),
    service: DispatchService = Depends(get_dispatch_service),
    db: AsyncSession = Depends(get_db)
):
    trip = await service.create_trip(payload.model_dump())

    await log_event(
        db=db,
        action=AuditAction.TRIP_CREATED,
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        trip_id=trip["id"],
        ip_address=_client_ip(request)
    )
    return TripResponse.model_validate(trip)


@router.post("/trips/{trip_id}/assign", response_model=TripResponse)
async def assign_trip(
    request: Request,
    payload: TripAssignRequest,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(dispatch_roles),
    service: DispatchService = Depends(get_dispatch_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Assign a driver. The driver must accept before starting.
    """
    trip = await service.assign(trip_id, payload.driver_id)

    await log_event(
        db=db,
        action=AuditAction.TRIP_ASSIGNED,
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        trip_id=trip_id,
        metadata={"driver_id": payload.driver_id},
        ip_address=_client_ip(request)
    )
    return TripResponse.model_validate(trip)


@router.post("/trips/{trip_id}/cancel", response_model=TripResponse)
async def cancel_trip(
    request: Request,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(dispatch_roles),
    service: DispatchService = Depends(get_dispatch_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Cancel a trip. A driver working it sees the cancellation on their live
    trip view and stops tracking.
    """
    trip = await service.cancel(trip_id)

    await log_event(
        db=db,
        action=AuditAction.TRIP_CANCELLED,
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        trip_id=trip_id,
        ip_address=_client_ip(request)
    )
    return TripResponse.model_validate(trip)


@router.get("/trips/{trip_id}/live", response_model=LiveTripResponse)
async def get_live_trip(
    trip_id: int = Path(..., description="Trip ID"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum location samples"),
    current_user: dict = Depends(dispatch_roles),
    service: DispatchService = Depends(get_dispatch_service)
):
    """Trip and its recent location samples, newest first."""
    live = await service.live(trip_id, limit=limit)
    locations = [LocationSample.model_validate(sample) for sample in live["locations"]]

    return LiveTripResponse(
        trip=TripResponse.model_validate(live["trip"]),
        locations=locations,
        latest=locations[0] if locations else None
    )
