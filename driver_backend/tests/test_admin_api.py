"""
Integration tests for location retention and trip audit trails.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from driver_backend.app.models.driver_location import DriverLocation
from driver_backend.app.models.trip_enums import TripStatus
from driver_backend.app.services.audit import AuditAction, log_event


@pytest.fixture
async def tracked_trip(driver, create_trip, db_session):
    trip = await create_trip(assigned_driver_id=driver.id, driver_id=driver.id, status=TripStatus.COMPLETED)
    now = datetime.now(timezone.utc)
    for age_days in (30, 8, 1):
        db_session.add(DriverLocation(
            trip_id=trip.id,
            driver_id=driver.id,
            latitude=39.78,
            longitude=-89.65,
            timestamp=now - timedelta(days=age_days),
        ))
    await db_session.commit()
    return trip


async def remaining_samples(db_session):
    result = await db_session.execute(select(func.count(DriverLocation.id)))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_purge_uses_default_retention(client, admin_headers, tracked_trip, db_session):
    response = await client.post("/v1/admin/locations/purge", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"deleted": 2, "retention_days": 7}
    assert await remaining_samples(db_session) == 1


@pytest.mark.asyncio
async def test_purge_with_custom_retention(client, admin_headers, tracked_trip, db_session):
    response = await client.post("/v1/admin/locations/purge", params={"retention_days": 10}, headers=admin_headers)

    assert response.json() == {"deleted": 1, "retention_days": 10}
    assert await remaining_samples(db_session) == 2


@pytest.mark.asyncio
async def test_purge_is_admin_only(client, dispatcher_headers, tracked_trip):
    response = await client.post("/v1/admin/locations/purge", headers=dispatcher_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_trip_audit_trail_newest_first(client, admin_headers, driver, create_trip, db_session):
    trip = await create_trip(assigned_driver_id=driver.id)
    await log_event(db_session, AuditAction.TRIP_ASSIGNED, actor_id=1, trip_id=trip.id)
    await log_event(db_session, AuditAction.TRIP_ACCEPTED, actor_id=driver.id, trip_id=trip.id)
    await log_event(db_session, AuditAction.LOGIN_SUCCESS, actor_id=driver.id)

    response = await client.get(f"/v1/admin/trips/{trip.id}/audit", headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert [entry["action"] for entry in body["logs"]] == ["TRIP_ACCEPTED", "TRIP_ASSIGNED"]


@pytest.mark.asyncio
async def test_audit_trail_hidden_from_drivers(client, driver_headers):
    response = await client.get("/v1/admin/trips/1/audit", headers=driver_headers)

    assert response.status_code == 403
