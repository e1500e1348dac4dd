"""
Driver shift and daily vehicle inspection models.
"""

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, JSON, Numeric
from sqlalchemy.sql import func
from driver_backend.app.db.session import Base


class DriverShift(Base):
    """
    A clock-in/clock-out period. `clock_out` is null while the shift is open.
    """
    __tablename__ = "driver_shifts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    vehicle_id = Column(String(50), nullable=True)

    clock_in = Column(DateTime(timezone=True), nullable=False, index=True)
    clock_out = Column(DateTime(timezone=True), nullable=True)
    total_hours = Column(Numeric(5, 2), nullable=True)

    odometer_start = Column(Integer, nullable=True)
    odometer_end = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class VehicleCheckoff(Base):
    """
    Daily pre-trip vehicle inspection. `items` holds the checklist answers.
    """
    __tablename__ = "vehicle_checkoffs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    shift_id = Column(Integer, ForeignKey("driver_shifts.id", ondelete="SET NULL"), nullable=True)
    vehicle_id = Column(String(50), nullable=True)

    checkoff_date = Column(Date, nullable=False, index=True)
    items = Column(JSON, nullable=False)
    issues_found = Column(Text, nullable=True)
    signature_url = Column(String(500), nullable=True)
    signed_at = Column(DateTime(timezone=True), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
