"""
Trip-related enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """Authoritative trip lifecycle flag."""
    UPCOMING = "upcoming"  # Booked, not yet assigned
    ASSIGNED = "assigned"  # Dispatcher assigned a driver
    IN_PROGRESS = "in_progress"  # Driver has started
    COMPLETED = "completed"  # Drop-off done
    CANCELLED = "cancelled"  # Cancelled by dispatch


class DriverAcceptanceStatus(str, enum.Enum):
    """Driver's acknowledgment of an assignment, tracked apart from status."""
    ASSIGNED_WAITING = "assigned_waiting"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    STARTED = "started"
    COMPLETED = "completed"


class TripPhase(str, enum.Enum):
    """Fine-grained phase within an active trip."""
    WAITING = "waiting"
    EN_ROUTE_TO_PICKUP = "en_route_to_pickup"
    ARRIVED_AT_PICKUP = "arrived_at_pickup"
    EN_ROUTE_TO_DESTINATION = "en_route_to_destination"
    COMPLETED = "completed"


TERMINAL_STATUSES = frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED})
