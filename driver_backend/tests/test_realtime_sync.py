"""
Realtime trip view and change feed tests.
"""

import pytest

from driver_backend.app.domain.ports import ChangeEvent
from driver_backend.app.domain.trips.realtime import RealtimeSync, merge_update
from driver_backend.app.services.change_feed import InMemoryChangeFeed, RedisChangeFeed, channel_name
from driver_backend.tests.fakes import FakeRecordStore


@pytest.fixture
def feed():
    return InMemoryChangeFeed()


@pytest.fixture
def store(feed):
    store = FakeRecordStore(feed=feed)
    store.add("trips", {"id": 1, "status": "in_progress", "driver_id": 7, "trip_phase": "en_route_to_pickup"})
    store.add("trips", {"id": 2, "status": "assigned", "driver_id": None, "trip_phase": "waiting"})
    return store


class CommitsDuringRead(FakeRecordStore):
    """Commits `pending` on the trip right after serving a read of it."""

    def __init__(self, feed, deliver_before_return=False):
        super().__init__(feed=feed)
        self.pending = None
        self.deliver_before_return = deliver_before_return

    async def get(self, table, record_id):
        record = await super().get(table, record_id)
        if self.pending is not None:
            fields, self.pending = self.pending, None
            await self.update(table, record_id, fields)
            if self.deliver_before_return:
                await self.feed.flush()
        return record


def test_merge_keeps_local_phase_on_null():
    local = {"id": 1, "status": "in_progress", "trip_phase": "arrived_at_pickup"}

    merged = merge_update(local, {"status": "cancelled", "trip_phase": None})

    assert merged == {"id": 1, "status": "cancelled", "trip_phase": "arrived_at_pickup"}
    assert local["status"] == "in_progress"


@pytest.mark.asyncio
async def test_start_fetches_and_subscribes(store, feed):
    sync = RealtimeSync(store, feed, 1)

    trip = await sync.start()

    assert trip["status"] == "in_progress"
    assert sync.is_subscribed
    assert feed.subscriber_count("trips", 1) == 1
    await sync.stop()
    assert feed.subscriber_count("trips", 1) == 0


@pytest.mark.asyncio
async def test_remote_update_reaches_listeners(store, feed):
    seen = []

    async def listener(trip):
        seen.append(trip["status"])

    async with RealtimeSync(store, feed, 1) as sync:
        sync.add_listener(listener)
        await store.update("trips", 1, {"status": "cancelled"})
        await feed.flush()

        assert sync.trip["status"] == "cancelled"
        assert sync.trip["trip_phase"] == "en_route_to_pickup"

    assert seen == ["cancelled"]
    assert not sync.is_subscribed


@pytest.mark.asyncio
async def test_updates_for_other_trips_are_ignored(store, feed):
    async with RealtimeSync(store, feed, 1) as sync:
        await store.update("trips", 2, {"status": "cancelled"})
        await feed.publish(ChangeEvent(event_type="INSERT", table="trips", record_id=1, new_record={"status": "x"}))
        await feed.flush()

        assert sync.trip["status"] == "in_progress"


@pytest.mark.asyncio
async def test_failed_refresh_keeps_last_record(store, feed):
    sync = RealtimeSync(store, feed, 1)
    await sync.refresh()
    store.fail("get")

    trip = await sync.refresh()

    assert trip["status"] == "in_progress"
    assert sync.error is not None

    await sync.refresh()
    assert sync.error is None


@pytest.mark.asyncio
async def test_listener_errors_do_not_break_the_feed(store, feed):
    calls = []

    async def broken(trip):
        calls.append(trip["status"])
        raise RuntimeError("listener failed")

    sync = RealtimeSync(store, feed, 1)
    sync.trip = await store.get("trips", 1)
    subscription = await feed.subscribe("trips", 1, sync._on_change)
    sync.add_listener(broken)

    await store.update("trips", 1, {"status": "cancelled"})
    await store.update("trips", 1, {"status": "completed"})
    await feed.flush()
    await subscription.unsubscribe()

    assert calls == ["cancelled", "completed"]


@pytest.mark.asyncio
async def test_redis_feed_publishes_json_per_record(mocker):
    redis_client = mocker.Mock()
    redis_client.publish = mocker.AsyncMock(return_value=1)
    feed = RedisChangeFeed(redis_client)
    event = ChangeEvent(event_type="UPDATE", table="trips", record_id=5, new_record={"status": "cancelled"})

    await feed.publish(event)

    channel, payload = redis_client.publish.call_args.args
    assert channel == channel_name("trips", 5) == "changes:trips:5"
    assert ChangeEvent.model_validate_json(payload) == event


@pytest.mark.asyncio
async def test_update_committed_during_first_read_is_delivered(feed):
    store = CommitsDuringRead(feed)
    store.add("trips", {"id": 1, "status": "in_progress", "driver_id": 7, "trip_phase": "en_route_to_pickup"})
    store.pending = {"status": "cancelled"}

    async with RealtimeSync(store, feed, 1) as sync:
        await feed.flush()

        assert sync.trip["status"] == "cancelled"
        assert sync.trip["trip_phase"] == "en_route_to_pickup"


@pytest.mark.asyncio
async def test_update_delivered_during_read_triggers_reread(feed):
    store = CommitsDuringRead(feed, deliver_before_return=True)
    store.add("trips", {"id": 1, "status": "in_progress", "driver_id": 7, "trip_phase": "en_route_to_pickup"})
    store.pending = {"status": "cancelled"}

    async with RealtimeSync(store, feed, 1) as sync:
        assert sync.trip["status"] == "cancelled"
        assert store.calls.count(("get", "trips")) == 2
