"""Trip phase ordering and the driver-facing transition rules."""

from typing import Any, Dict, Optional, Set

from driver_backend.app.models.trip_enums import (
    TERMINAL_STATUSES,
    DriverAcceptanceStatus,
    TripPhase,
    TripStatus,
)

PHASE_ORDER = (
    TripPhase.WAITING,
    TripPhase.EN_ROUTE_TO_PICKUP,
    TripPhase.ARRIVED_AT_PICKUP,
    TripPhase.EN_ROUTE_TO_DESTINATION,
    TripPhase.COMPLETED,
)

PHASE_TRANSITIONS: Dict[TripPhase, Set[TripPhase]] = {
    TripPhase.WAITING: {TripPhase.EN_ROUTE_TO_PICKUP, TripPhase.COMPLETED},
    TripPhase.EN_ROUTE_TO_PICKUP: {TripPhase.ARRIVED_AT_PICKUP, TripPhase.COMPLETED},
    TripPhase.ARRIVED_AT_PICKUP: {TripPhase.EN_ROUTE_TO_DESTINATION, TripPhase.COMPLETED},
    TripPhase.EN_ROUTE_TO_DESTINATION: {TripPhase.COMPLETED},
    TripPhase.COMPLETED: set(),
}


def phase_index(phase: TripPhase) -> int:
    return PHASE_ORDER.index(phase)


def is_forward(current: TripPhase, target: TripPhase) -> bool:
    """True when `target` is reachable from `current` without moving backward."""
    return target in PHASE_TRANSITIONS[current] and phase_index(target) > phase_index(current)


def trip_status(trip: Dict[str, Any]) -> Optional[TripStatus]:
    value = trip.get("status")
    return TripStatus(value) if value else None


def acceptance_status(trip: Dict[str, Any]) -> Optional[DriverAcceptanceStatus]:
    value = trip.get("driver_acceptance_status")
    return DriverAcceptanceStatus(value) if value else None


def current_phase(trip: Dict[str, Any]) -> TripPhase:
    """Phase of a trip record; legacy records without one are still waiting."""
    value = trip.get("trip_phase")
    return TripPhase(value) if value else TripPhase.WAITING


def is_terminal(trip: Dict[str, Any]) -> bool:
    return trip_status(trip) in TERMINAL_STATUSES


def is_tracking_active(trip: Optional[Dict[str, Any]], driver_id: Any) -> bool:
    """The trip is in progress and owned by this driver."""
    if not trip or driver_id is None:
        return False
    return trip_status(trip) == TripStatus.IN_PROGRESS and trip.get("driver_id") == driver_id


# Precondition checks return None when satisfied, otherwise the reason.

def check_can_accept(trip: Dict[str, Any], driver_id: Any) -> Optional[str]:
    if is_terminal(trip):
        return f"Trip is already {trip_status(trip).value}"
    if trip.get("assigned_driver_id") != driver_id:
        return "This trip is not assigned to you"
    if trip.get("driver_id") is not None:
        return "Trip has already been accepted"
    if acceptance_status(trip) not in (None, DriverAcceptanceStatus.ASSIGNED_WAITING):
        return f"Trip is not awaiting acceptance (acceptance: {acceptance_status(trip).value})"
    return None


def check_can_start(trip: Dict[str, Any], driver_id: Any) -> Optional[str]:
    status = trip_status(trip)
    if trip.get("driver_id") != driver_id:
        return "This trip is not assigned to you"
    if status in TERMINAL_STATUSES or status == TripStatus.IN_PROGRESS:
        return f"Can only start a trip that has not started, current status: {status.value}"
    acceptance = acceptance_status(trip)
    legacy_unaccepted = acceptance is None and status == TripStatus.UPCOMING
    if acceptance != DriverAcceptanceStatus.ACCEPTED and not legacy_unaccepted:
        return "Trip must be accepted before it can be started"
    if not is_forward(current_phase(trip), TripPhase.EN_ROUTE_TO_PICKUP):
        return f"Trip phase {current_phase(trip).value} cannot move to en_route_to_pickup"
    return None


def check_can_advance(trip: Dict[str, Any], driver_id: Any, required: TripPhase, target: TripPhase) -> Optional[str]:
    """Owner of an in-progress trip moving from exactly `required` to `target`."""
    reason = _check_in_progress_owner(trip, driver_id)
    if reason:
        return reason
    phase = current_phase(trip)
    if phase != required or not is_forward(phase, target):
        return f"Trip phase must be {required.value} (current: {phase.value})"
    return None


def check_can_complete(trip: Dict[str, Any], driver_id: Any) -> Optional[str]:
    reason = _check_in_progress_owner(trip, driver_id)
    if reason:
        return reason
    phase = current_phase(trip)
    if not is_forward(phase, TripPhase.COMPLETED):
        return f"Trip phase {phase.value} cannot move to completed"
    return None


def _check_in_progress_owner(trip: Dict[str, Any], driver_id: Any) -> Optional[str]:
    if trip.get("driver_id") != driver_id:
        return "This trip is not assigned to you"
    status = trip_status(trip)
    if status != TripStatus.IN_PROGRESS:
        return f"Trip must be in_progress, current status: {status.value if status else 'unknown'}"
    return None
