"""
Integration tests for in-app notifications and push token registration.
"""

import pytest

from driver_backend.app.services.notification_service import NotificationService, StoreNotificationSender


@pytest.fixture
def seed_notifications(db_session):
    async def _seed(user_id, count=2, app_type="driver"):
        for index in range(count):
            await NotificationService.create_notification(
                db_session, user_id, app_type, "trip_assigned", f"Trip {index}", "You have a new trip",
                {"tripId": index},
            )
        await db_session.commit()
    return _seed


@pytest.mark.asyncio
async def test_list_is_scoped_by_user_and_app(client, driver, driver_headers, dispatcher, seed_notifications):
    await seed_notifications(driver.id, count=2)
    await seed_notifications(driver.id, count=1, app_type="dispatcher")
    await seed_notifications(dispatcher.id, count=3)

    response = await client.get("/v1/notifications", headers=driver_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["unread_count"] == 2
    assert [n["title"] for n in body["notifications"]] == ["Trip 1", "Trip 0"]


@pytest.mark.asyncio
async def test_mark_read_and_read_all(client, driver, driver_headers, seed_notifications):
    await seed_notifications(driver.id, count=3)
    listing = (await client.get("/v1/notifications", headers=driver_headers)).json()
    first_id = listing["notifications"][0]["id"]

    marked = await client.patch(f"/v1/notifications/{first_id}/read", headers=driver_headers)
    assert marked.status_code == 200
    assert (await client.get("/v1/notifications", headers=driver_headers)).json()["unread_count"] == 2

    read_all = await client.patch("/v1/notifications/read-all", headers=driver_headers)
    assert read_all.json() == {"status": "success", "count": 2}
    assert (await client.get("/v1/notifications", headers=driver_headers)).json()["unread_count"] == 0


@pytest.mark.asyncio
async def test_cannot_touch_someone_elses_notification(client, dispatcher, driver_headers, seed_notifications):
    await seed_notifications(dispatcher.id, count=1)

    read = await client.patch("/v1/notifications/1/read", headers=driver_headers)
    delete = await client.delete("/v1/notifications/1", headers=driver_headers)

    assert read.status_code == 404
    assert delete.status_code == 404


@pytest.mark.asyncio
async def test_delete_notification(client, driver, driver_headers, seed_notifications):
    await seed_notifications(driver.id, count=1)
    [note] = (await client.get("/v1/notifications", headers=driver_headers)).json()["notifications"]

    response = await client.delete(f"/v1/notifications/{note['id']}", headers=driver_headers)

    assert response.status_code == 200
    assert (await client.get("/v1/notifications", headers=driver_headers)).json()["notifications"] == []


@pytest.mark.asyncio
async def test_push_token_upsert(client, driver, driver_headers):
    first = await client.put("/v1/notifications/push-token", headers=driver_headers, json={
        "push_token": "ExponentPushToken[aaa]", "platform": "ios",
    })
    second = await client.put("/v1/notifications/push-token", headers=driver_headers, json={
        "push_token": "ExponentPushToken[bbb]", "platform": "android",
    })

    assert first.status_code == 200
    assert second.json()["platform"] == "android"
    assert second.json()["user_id"] == driver.id


@pytest.mark.asyncio
async def test_push_token_platform_validated(client, driver_headers):
    response = await client.put("/v1/notifications/push-token", headers=driver_headers, json={
        "push_token": "token", "platform": "blackberry",
    })

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_store_sender_commits_row(client, driver, driver_headers, session_factory):
    sender = StoreNotificationSender(session_factory)

    await sender.notify(driver.id, "driver", "trip_completed", "✅ Trip Completed", "Great job!", {"tripId": 1})

    [note] = (await client.get("/v1/notifications", headers=driver_headers)).json()["notifications"]
    assert note["notification_type"] == "trip_completed"
    assert note["data"] == {"tripId": 1}


@pytest.mark.asyncio
async def test_notifications_require_auth(client):
    response = await client.get("/v1/notifications")

    assert response.status_code in (401, 403)
