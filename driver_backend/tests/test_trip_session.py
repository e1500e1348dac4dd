"""
Trip session tests: a driver working one trip end to end with in-process
adapters for the store, change feed, device location and permissions.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from driver_backend.app.domain.ports import PermissionStatus
from driver_backend.app.domain.tracking.location_reporter import LOCATION_TABLE, LocationReporter
from driver_backend.app.domain.tracking.permissions import PermissionNegotiator, PermissionState
from driver_backend.app.domain.trips.controller import InFlightRegistry, TripPhaseController
from driver_backend.app.domain.trips.realtime import RealtimeSync
from driver_backend.app.domain.trips.session import TripSession
from driver_backend.app.services.change_feed import InMemoryChangeFeed
from driver_backend.tests.fakes import FakeFlagStore, FakeGeolocation, FakePermissions, FakeRecordStore

DRIVER = 7
KEY = "disclosure"
LAT, LNG = 39.7817, -89.6501


class Harness:

    def __init__(self, trip, permissions=None, disclosure_accepted=True):
        self.feed = InMemoryChangeFeed()
        self.store = FakeRecordStore(feed=self.feed)
        self.store.add("trips", trip)
        self.geolocation = FakeGeolocation()
        self.permissions = permissions or FakePermissions()
        self.flags = FakeFlagStore({KEY: "true"} if disclosure_accepted else {})
        self.reporter = LocationReporter(self.geolocation, self.store, 5, 10)
        self.session = TripSession(
            trip_id=trip["id"],
            driver_id=DRIVER,
            controller=TripPhaseController(self.store, in_flight=InFlightRegistry()),
            sync=RealtimeSync(self.store, self.feed, trip["id"]),
            reporter=self.reporter,
            negotiator=PermissionNegotiator(self.permissions, self.flags, disclosure_key=KEY),
        )

    def samples(self):
        return list(self.store.tables[LOCATION_TABLE].values())


def trip_record(**fields):
    trip = {
        "id": 1,
        "status": "assigned",
        "assigned_driver_id": DRIVER,
        "driver_id": None,
        "driver_acceptance_status": "assigned_waiting",
        "trip_phase": "waiting",
    }
    trip.update(fields)
    return trip


def in_progress(**fields):
    return trip_record(**{"status": "in_progress", "driver_id": DRIVER, "driver_acceptance_status": "started",
                          "trip_phase": "en_route_to_pickup", **fields})


def now():
    return datetime.now(timezone.utc)


@pytest.mark.asyncio
async def test_tracking_follows_the_trip_lifecycle():
    harness = Harness(trip_record())

    async with harness.session as session:
        assert not harness.reporter.is_enabled

        assert (await session.accept()).ok
        assert not harness.reporter.is_enabled

        assert (await session.start()).ok
        assert harness.reporter.is_enabled
        assert harness.permissions.calls.count("request_background") == 1

        await harness.geolocation.emit(LAT, LNG, now())
        assert (await session.arrived_at_pickup()).ok
        assert (await session.start_ride()).ok
        assert session.trip["trip_phase"] == "en_route_to_destination"

        result = await session.complete()
        assert result.ok
        assert not harness.reporter.is_enabled

        await harness.geolocation.emit(LAT + 0.01, LNG, now() + timedelta(seconds=10))

    completed_at = result.trip["completed_at"]
    assert len(harness.samples()) == 1
    assert all(sample["timestamp"] <= completed_at for sample in harness.samples())


@pytest.mark.asyncio
async def test_open_with_active_trip_starts_tracking():
    harness = Harness(in_progress())

    async with harness.session:
        assert harness.reporter.is_enabled
        assert harness.session.negotiator.state == PermissionState.BACKGROUND_GRANTED

    assert not harness.geolocation.watching
    assert harness.feed.subscriber_count("trips", 1) == 0


@pytest.mark.asyncio
async def test_remote_cancellation_stops_tracking():
    harness = Harness(in_progress())

    async with harness.session as session:
        assert harness.reporter.is_enabled

        await harness.store.update("trips", 1, {"status": "cancelled"})
        await harness.feed.flush()

        assert session.trip["status"] == "cancelled"
        assert not harness.reporter.is_enabled


@pytest.mark.asyncio
async def test_cancellation_during_first_fetch_stops_tracking():
    harness = Harness(in_progress())
    read = harness.store.get
    pending = [{"status": "cancelled"}]

    async def read_then_cancel(table, record_id):
        record = await read(table, record_id)
        if pending:
            await harness.store.update(table, record_id, pending.pop())
        return record

    harness.store.get = read_then_cancel

    async with harness.session as session:
        await harness.feed.flush()

        assert session.trip["status"] == "cancelled"
        assert not harness.reporter.is_enabled
        assert not harness.geolocation.watching


@pytest.mark.asyncio
async def test_fixes_during_completion_write_respect_the_completion_instant():
    harness = Harness(in_progress(trip_phase="en_route_to_destination"))
    taken_before = now() - timedelta(seconds=30)

    async def fixes_in_flight():
        await asyncio.sleep(0)
        await harness.geolocation.emit(LAT, LNG, taken_before)
        await harness.geolocation.emit(LAT + 0.01, LNG, now() + timedelta(seconds=30))

    async with harness.session as session:
        harness.store.delay = 0.01
        result, _ = await asyncio.gather(session.complete(), fixes_in_flight())

        assert result.ok
        assert not harness.reporter.is_enabled

    assert [sample["timestamp"] for sample in harness.samples()] == [taken_before]


@pytest.mark.asyncio
async def test_failed_complete_resumes_tracking():
    harness = Harness(in_progress(trip_phase="en_route_to_destination"))

    async with harness.session as session:
        harness.store.fail("update")

        result = await session.complete()

        assert not result.ok
        assert harness.reporter.is_enabled
        assert session.trip["status"] == "in_progress"


@pytest.mark.asyncio
async def test_without_foreground_permission_trip_runs_untracked():
    permissions = FakePermissions(
        foreground=PermissionStatus.DENIED,
        grant_foreground=PermissionStatus.DENIED,
    )
    harness = Harness(in_progress(), permissions=permissions)

    async with harness.session as session:
        assert session.trip["status"] == "in_progress"
        assert not harness.reporter.is_enabled
        assert "request_background" not in permissions.calls


@pytest.mark.asyncio
async def test_disclosure_gates_background_but_not_tracking():
    harness = Harness(in_progress(), disclosure_accepted=False)

    async with harness.session as session:
        assert harness.reporter.is_enabled
        assert session.negotiator.needs_disclosure
        assert "request_background" not in harness.permissions.calls

        assert await session.accept_disclosure()

        assert harness.permissions.calls.count("request_background") == 1
        assert harness.flags.values[KEY] == "true"
        assert harness.reporter.is_enabled
