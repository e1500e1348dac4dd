"""
Admin API Endpoints.

Location retention and trip audit trails.
"""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from driver_backend.app.core.config import settings
from driver_backend.app.core.guards import require_admin, require_role
from driver_backend.app.db.session import get_db
from driver_backend.app.models.enums import UserRole
from driver_backend.app.schemas.admin import AuditLogResponse, AuditTrailResponse
from driver_backend.app.schemas.location import LocationPurgeResponse
from driver_backend.app.services.audit import log_event, AuditAction, get_trip_audit_trail
from driver_backend.app.services.dispatch_service import purge_old_locations

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/locations/purge", response_model=LocationPurgeResponse)
async def purge_locations(
    retention_days: int = Query(None, ge=1, description="Defaults to the configured retention window"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete GPS samples older than the retention window (7 days by default).
    """
    days = retention_days or settings.location_retention_days
    deleted = await purge_old_locations(db, days)

    await log_event(
        db=db,
        action=AuditAction.LOCATIONS_PURGED,
        actor_id=admin["user_id"],
        actor_username=admin.get("sub"),
        metadata={"deleted": deleted, "retention_days": days}
    )
    return LocationPurgeResponse(deleted=deleted, retention_days=days)


@router.get("/trips/{trip_id}/audit", response_model=AuditTrailResponse)
async def trip_audit_trail(
    trip_id: int = Path(..., description="Trip ID"),
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.DISPATCHER])),
    db: AsyncSession = Depends(get_db)
):
    """Audit entries for one trip, most recent first."""
    logs = await get_trip_audit_trail(db, trip_id, limit)
    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )
