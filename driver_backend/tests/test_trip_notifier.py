"""
Trip notification fan-out tests.
"""

from datetime import datetime, timezone

import pytest

from driver_backend.app.domain.trips.events import TripEvent, TripEventDispatcher, TripEventType
from driver_backend.app.domain.trips.notifier import TripNotifier, client_name, short_address
from driver_backend.tests.fakes import FakeRecordStore, RecordingSender

DRIVER = 7
CLIENT = 20
FACILITY_STAFF = 30


@pytest.fixture
def store():
    store = FakeRecordStore()
    store.add("profiles", {"id": 100, "role": "DISPATCHER"})
    store.add("profiles", {"id": 101, "role": "DISPATCHER"})
    store.add("profiles", {"id": CLIENT, "role": "CLIENT", "first_name": "Ada", "last_name": "Lovelace"})
    return store


@pytest.fixture
def sender():
    return RecordingSender()


def make_event(event_type, **trip_fields):
    trip = {
        "id": 1,
        "status": "in_progress",
        "trip_phase": "arrived_at_pickup",
        "pickup_address": "100 Main St, Springfield",
        "user_id": CLIENT,
    }
    trip.update(trip_fields)
    return TripEvent(
        event_type=event_type,
        trip_id=1,
        driver_id=DRIVER,
        occurred_at=datetime.now(timezone.utc),
        trip=trip,
    )


def test_short_address():
    assert short_address("100 Main St, Springfield, IL") == "100 Main St"
    assert short_address(None) == "pickup"


@pytest.mark.asyncio
async def test_client_name_falls_back(store):
    assert await client_name(store, {"user_id": CLIENT}) == "Ada Lovelace"
    assert await client_name(store, {"user_id": None}) == "Client"
    assert await client_name(store, {"user_id": 999}) == "Client"

    store.fail("get")
    assert await client_name(store, {"user_id": CLIENT}) == "Client"


@pytest.mark.asyncio
async def test_accepted_reaches_dispatchers_facility_and_client(store, sender):
    notifier = TripNotifier(store, sender)

    await notifier(make_event(TripEventType.ACCEPTED, facility_id=5, booked_by=FACILITY_STAFF))

    assert [n["user_id"] for n in sender.sent] == [100, 101, FACILITY_STAFF, CLIENT]
    dispatcher_note = sender.to(100)[0]
    assert dispatcher_note["body"] == "Driver accepted trip for Ada Lovelace to 100 Main St"
    assert dispatcher_note["payload"]["tripId"] == 1
    assert dispatcher_note["payload"]["driverId"] == DRIVER
    assert sender.to(FACILITY_STAFF)[0]["app_scope"] == "facility"
    assert sender.to(CLIENT)[0]["app_scope"] == "booking"


@pytest.mark.asyncio
async def test_arrival_tells_the_client(store, sender):
    await TripNotifier(store, sender)(make_event(TripEventType.ARRIVED_AT_PICKUP))

    client_note = sender.to(CLIENT)[0]
    assert client_note["type"] == "driver_arrived"
    assert client_note["body"] == "Your driver is waiting at 100 Main St"


@pytest.mark.asyncio
async def test_completion_thanks_the_driver(store, sender):
    await TripNotifier(store, sender)(make_event(TripEventType.COMPLETED, status="completed"))

    driver_note = sender.to(DRIVER)[0]
    assert driver_note["app_scope"] == "driver"
    assert "completed successfully" in driver_note["body"]
    assert len(sender.to(100)) == 1


@pytest.mark.asyncio
async def test_one_failed_recipient_does_not_stop_others(store, sender):
    sender.fail_for.add(100)

    await TripNotifier(store, sender)(make_event(TripEventType.STARTED))

    assert sender.to(100) == []
    assert len(sender.to(101)) == 1


@pytest.mark.asyncio
async def test_dispatcher_lookup_failure_is_contained(store, sender):
    store.fail("select")

    await TripNotifier(store, sender)(make_event(TripEventType.REJECTED))

    assert sender.sent == []


@pytest.mark.asyncio
async def test_dispatcher_swallows_handler_errors():
    calls = []

    async def broken(event):
        raise RuntimeError("boom")

    async def recording(event):
        calls.append(event.event_type)

    dispatcher = TripEventDispatcher([broken, recording])
    dispatcher.emit(make_event(TripEventType.STARTED))
    assert dispatcher.pending == 2

    await dispatcher.drain()

    assert calls == [TripEventType.STARTED]
    assert dispatcher.pending == 0
