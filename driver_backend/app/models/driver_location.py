"""
Driver location database model.

Stores the GPS breadcrumb trail of an active trip.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime
from sqlalchemy.sql import func
from driver_backend.app.db.session import Base


class DriverLocation(Base):
    """
    One location sample. Append-only; purged after the retention window.
    """
    __tablename__ = "driver_location"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    trip_id = Column(Integer, ForeignKey('trips.id', ondelete="CASCADE"), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey('profiles.id', ondelete="CASCADE"), nullable=False, index=True)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    heading = Column(Float, nullable=True)  # null when the device did not report it
    speed = Column(Float, nullable=True)

    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)  # When the fix was taken
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<DriverLocation(trip_id={self.trip_id}, lat={self.latitude}, lng={self.longitude})>"
