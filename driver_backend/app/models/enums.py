"""
User roles enumeration.

Defines the role types for the driver platform.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: System-level access
        DISPATCHER: Assigns and monitors trips
        DRIVER: Accepts and executes trips (default role)
        FACILITY: Books trips on behalf of managed clients
        CLIENT: Books their own trips
    """
    ADMIN = "ADMIN"
    DISPATCHER = "DISPATCHER"
    DRIVER = "DRIVER"
    FACILITY = "FACILITY"
    CLIENT = "CLIENT"


class AppScope(str, enum.Enum):
    """Which client app a notification belongs to."""
    DRIVER = "driver"
    DISPATCHER = "dispatcher"
    FACILITY = "facility"
    BOOKING = "booking"


def enum_values(enum_cls):
    """Persist enum values (not member names) in SQLAlchemy Enum columns."""
    return [member.value for member in enum_cls]
