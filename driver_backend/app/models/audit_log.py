"""
Audit Log Database Model.

Tracks trip lifecycle actions and authentication events.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from driver_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log entry.

    Events logged:
    - TRIP_ACCEPTED / TRIP_REJECTED / TRIP_STARTED / TRIP_COMPLETED and phase changes
    - TRIP_ASSIGNED / TRIP_CANCELLED by dispatch
    - LOGIN_SUCCESS / LOGIN_FAILED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    action = Column(String(100), nullable=False, index=True)

    # Trip the action applied to, if any
    trip_id = Column(Integer, index=True, nullable=True)

    meta_data = Column(JSON, nullable=True)
    ip_address = Column(String(50), nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_username}, trip={self.trip_id})>"
