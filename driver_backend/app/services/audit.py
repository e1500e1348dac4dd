"""
Audit logging service for trip lifecycle and authentication events.
"""

from typing import Optional, Dict, Any, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from driver_backend.app.models.audit_log import AuditLog


class AuditAction:
    """Standardized audit action constants."""
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    USER_CREATED = "USER_CREATED"

    # Dispatch
    TRIP_CREATED = "TRIP_CREATED"
    TRIP_ASSIGNED = "TRIP_ASSIGNED"
    TRIP_CANCELLED = "TRIP_CANCELLED"

    # Driver execution
    TRIP_ACCEPTED = "TRIP_ACCEPTED"
    TRIP_REJECTED = "TRIP_REJECTED"
    TRIP_STARTED = "TRIP_STARTED"
    ARRIVED_AT_PICKUP = "ARRIVED_AT_PICKUP"
    RIDE_STARTED = "RIDE_STARTED"
    TRIP_COMPLETED = "TRIP_COMPLETED"

    # Shifts
    SHIFT_CLOCK_IN = "SHIFT_CLOCK_IN"
    SHIFT_CLOCK_OUT = "SHIFT_CLOCK_OUT"
    INSPECTION_SUBMITTED = "INSPECTION_SUBMITTED"

    LOCATIONS_PURGED = "LOCATIONS_PURGED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    trip_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Write one audit log entry and commit it.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        actor_username: Username of actor
        trip_id: Trip the action applied to
        metadata: Additional context as JSON
        ip_address: IP address of the request
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        action=action,
        trip_id=trip_id,
        meta_data=metadata,
        ip_address=ip_address
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log


async def get_trip_audit_trail(
    db: AsyncSession,
    trip_id: int,
    limit: int = 100
) -> List[AuditLog]:
    """Audit entries for one trip, most recent first."""
    query = select(AuditLog).where(
        AuditLog.trip_id == trip_id
    ).order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())
