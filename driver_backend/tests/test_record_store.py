"""
SQLAlchemy record store tests against the in-memory SQLite database.
"""

from datetime import datetime, timedelta, timezone

import pytest

from driver_backend.app.domain.ports import RecordNotFoundError, StoreError
from driver_backend.app.models.enums import UserRole
from driver_backend.app.services.change_feed import InMemoryChangeFeed
from driver_backend.app.services.record_store import SqlAlchemyRecordStore

T0 = datetime(2026, 3, 1, 14, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def feed():
    return InMemoryChangeFeed()


@pytest.fixture
def store(session_factory, feed):
    return SqlAlchemyRecordStore(session_factory, feed)


@pytest.mark.asyncio
async def test_get_returns_plain_record(store, driver, create_trip):
    trip = await create_trip(assigned_driver_id=driver.id)

    record = await store.get("trips", trip.id)

    assert record["id"] == trip.id
    assert record["status"] == "assigned"
    assert record["trip_phase"] == "waiting"
    assert record["assigned_driver_id"] == driver.id
    assert record["created_at"].tzinfo is not None


@pytest.mark.asyncio
async def test_profiles_hide_password_hash(store, driver):
    record = await store.get("profiles", driver.id)

    assert record["username"] == "driver1"
    assert "hashed_password" not in record


@pytest.mark.asyncio
async def test_get_missing_record_is_none(store):
    assert await store.get("trips", 999) is None


@pytest.mark.asyncio
async def test_update_coerces_enums_and_publishes(store, feed, driver, create_trip):
    trip = await create_trip(assigned_driver_id=driver.id)
    received = []

    async def on_change(event):
        received.append(event)

    subscription = await feed.subscribe("trips", trip.id, on_change)

    updated = await store.update("trips", trip.id, {"driver_id": driver.id, "driver_acceptance_status": "accepted"})
    await feed.flush()
    await subscription.unsubscribe()

    assert updated["driver_acceptance_status"] == "accepted"
    [event] = received
    assert event.event_type == "UPDATE"
    assert event.old_record["driver_id"] is None
    assert event.new_record["driver_id"] == driver.id


@pytest.mark.asyncio
async def test_update_missing_record_raises(store):
    with pytest.raises(RecordNotFoundError):
        await store.update("trips", 999, {"status": "cancelled"})


@pytest.mark.asyncio
async def test_unknown_table_or_column_raises(store):
    with pytest.raises(StoreError):
        await store.get("parcels", 1)
    with pytest.raises(StoreError):
        await store.select("trips", {"no_such_column": 1})


@pytest.mark.asyncio
async def test_location_round_trip_keeps_null_heading_and_speed(store, driver, create_trip):
    trip = await create_trip(assigned_driver_id=driver.id, driver_id=driver.id)

    inserted = await store.insert("driver_location", {
        "trip_id": trip.id,
        "driver_id": driver.id,
        "latitude": 39.7817,
        "longitude": -89.6501,
        "heading": None,
        "speed": None,
        "timestamp": T0,
    })
    [read_back] = await store.select("driver_location", {"trip_id": trip.id})

    assert read_back["id"] == inserted["id"]
    assert (read_back["latitude"], read_back["longitude"]) == (39.7817, -89.6501)
    assert read_back["heading"] is None
    assert read_back["speed"] is None
    assert read_back["timestamp"] == T0


@pytest.mark.asyncio
async def test_select_filters_orders_and_limits(store, driver, create_trip):
    trip = await create_trip(assigned_driver_id=driver.id, driver_id=driver.id)
    for offset in range(3):
        await store.insert("driver_location", {
            "trip_id": trip.id,
            "driver_id": driver.id,
            "latitude": 39.78 + offset / 1000,
            "longitude": -89.65,
            "timestamp": T0 + timedelta(seconds=5 * offset),
        })

    newest = await store.select("driver_location", {"trip_id": trip.id}, order_by="timestamp", descending=True, limit=2)

    assert [row["timestamp"] for row in newest] == [T0 + timedelta(seconds=10), T0 + timedelta(seconds=5)]


@pytest.mark.asyncio
async def test_select_by_role_and_null(store, create_user, dispatcher):
    await create_user("driver2", UserRole.DRIVER)

    dispatchers = await store.select("profiles", {"role": UserRole.DISPATCHER})
    unassigned = await store.select("trips", {"driver_id": None})

    assert [row["id"] for row in dispatchers] == [dispatcher.id]
    assert unassigned == []
