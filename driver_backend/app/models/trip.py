"""
Trip database model.

Trips are booked by clients or facilities and assigned to drivers by dispatch.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum
from sqlalchemy.sql import func
from driver_backend.app.db.session import Base
from driver_backend.app.models.enums import enum_values
from driver_backend.app.models.trip_enums import TripStatus, DriverAcceptanceStatus, TripPhase


class Trip(Base):
    """
    Trip model.

    `status` is the authoritative lifecycle flag, `driver_acceptance_status`
    tracks the driver's acknowledgment and `trip_phase` the driver's progress
    between pickup and destination.
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Booking
    user_id = Column(Integer, ForeignKey('profiles.id'), nullable=True, index=True)
    facility_id = Column(Integer, nullable=True, index=True)
    booked_by = Column(Integer, ForeignKey('profiles.id'), nullable=True)

    pickup_address = Column(String(500), nullable=True)
    destination_address = Column(String(500), nullable=True)
    pickup_time = Column(DateTime(timezone=True), nullable=True)

    # Driver ownership
    assigned_driver_id = Column(Integer, ForeignKey('profiles.id'), nullable=True, index=True)
    driver_id = Column(Integer, ForeignKey('profiles.id'), nullable=True, index=True)

    # Lifecycle
    status = Column(
        Enum(TripStatus, values_callable=enum_values),
        default=TripStatus.UPCOMING, nullable=False, index=True
    )
    driver_acceptance_status = Column(
        Enum(DriverAcceptanceStatus, values_callable=enum_values), nullable=True
    )
    trip_phase = Column(
        Enum(TripPhase, values_callable=enum_values), default=TripPhase.WAITING, nullable=True
    )

    # Set exactly once, on the matching transition
    pickup_arrival_time = Column(DateTime(timezone=True), nullable=True)
    ride_start_time = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Trip(id={self.id}, status='{self.status.value}', phase='{self.trip_phase}')>"
