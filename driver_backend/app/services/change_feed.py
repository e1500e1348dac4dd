"""
Change feeds delivering committed record changes to subscribers.

`InMemoryChangeFeed` serves a single process (and the tests).
`RedisChangeFeed` fans changes out over Redis pub/sub so every API worker
sees them.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

import redis.asyncio as redis

from driver_backend.app.core.config import settings
from driver_backend.app.domain.ports import ChangeCallback, ChangeEvent

logger = logging.getLogger(__name__)


def channel_name(table: str, record_id: Any) -> str:
    return f"changes:{table}:{record_id}"


class _QueuedSubscription:
    """Delivers events to one callback in publish order, off the publisher's task."""

    def __init__(self, feed: "InMemoryChangeFeed", key: Tuple[str, str], callback: ChangeCallback):
        self._feed = feed
        self._key = key
        self._callback = callback
        self.queue: asyncio.Queue = asyncio.Queue()
        self._task = asyncio.create_task(self._deliver())

    async def _deliver(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                await self._callback(event)
            except Exception:
                logger.exception("Change subscriber failed for %s", channel_name(*self._key))
            finally:
                self.queue.task_done()

    async def unsubscribe(self) -> None:
        self._feed._remove(self._key, self)
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class InMemoryChangeFeed:

    def __init__(self):
        self._subscribers: Dict[Tuple[str, str], List[_QueuedSubscription]] = {}

    async def subscribe(self, table: str, record_id: Any, callback: ChangeCallback) -> _QueuedSubscription:
        key = (table, str(record_id))
        subscription = _QueuedSubscription(self, key, callback)
        self._subscribers.setdefault(key, []).append(subscription)
        return subscription

    async def publish(self, event: ChangeEvent) -> None:
        for subscription in list(self._subscribers.get((event.table, str(event.record_id)), [])):
            subscription.queue.put_nowait(event)

    async def flush(self) -> None:
        """Wait until every published event has been handled."""
        for subscriptions in list(self._subscribers.values()):
            for subscription in list(subscriptions):
                await subscription.queue.join()

    def subscriber_count(self, table: str, record_id: Any) -> int:
        return len(self._subscribers.get((table, str(record_id)), []))

    def _remove(self, key: Tuple[str, str], subscription: _QueuedSubscription) -> None:
        subscriptions = self._subscribers.get(key, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)
        if not subscriptions:
            self._subscribers.pop(key, None)


class _RedisSubscription:

    def __init__(self, pubsub, task: asyncio.Task):
        self._pubsub = pubsub
        self._task = task

    async def unsubscribe(self) -> None:
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        await self._pubsub.unsubscribe()
        await self._pubsub.aclose()


class RedisChangeFeed:

    def __init__(self, redis_client):
        self.redis_client = redis_client

    async def subscribe(self, table: str, record_id: Any, callback: ChangeCallback) -> _RedisSubscription:
        channel = channel_name(table, record_id)
        pubsub = self.redis_client.pubsub()
        await pubsub.subscribe(channel)
        task = asyncio.create_task(self._listen(pubsub, channel, callback))
        return _RedisSubscription(pubsub, task)

    async def publish(self, event: ChangeEvent) -> None:
        await self.redis_client.publish(channel_name(event.table, event.record_id), event.model_dump_json())

    async def _listen(self, pubsub, channel: str, callback: ChangeCallback) -> None:
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    event = ChangeEvent.model_validate_json(message["data"])
                except ValueError:
                    logger.warning("Invalid change event on %s: %s", channel, message["data"])
                    continue
                try:
                    await callback(event)
                except Exception:
                    logger.exception("Change subscriber failed for %s", channel)
        except redis.ConnectionError:
            logger.error("Redis disconnected, stopped listening on %s", channel)


_change_feed: Optional[Any] = None


def get_change_feed():
    """Process-wide change feed, chosen by `settings.change_feed_backend`."""
    global _change_feed
    if _change_feed is None:
        if settings.change_feed_backend == "redis":
            from driver_backend.app.core.redis_client import redis_client
            _change_feed = RedisChangeFeed(redis_client)
        else:
            _change_feed = InMemoryChangeFeed()
    return _change_feed
