"""
Durable key/value flags kept in Redis.
"""

from typing import Optional

from redis.exceptions import RedisError

from driver_backend.app.domain.ports import StoreError


class RedisFlagStore:
    """
    Flag store for consent flags such as the location disclosure.

    `namespace` scopes keys, e.g. per driver, so one Redis serves every device.
    """

    def __init__(self, redis_client, namespace: Optional[str] = None):
        self.redis_client = redis_client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await self.redis_client.get(self._key(key))
        except RedisError as exc:
            raise StoreError(f"Could not read flag {key}: {exc}") from exc
        if isinstance(value, bytes):
            value = value.decode()
        return value

    async def set(self, key: str, value: str) -> None:
        try:
            await self.redis_client.set(self._key(key), value)
        except RedisError as exc:
            raise StoreError(f"Could not write flag {key}: {exc}") from exc

    async def remove(self, key: str) -> None:
        try:
            await self.redis_client.delete(self._key(key))
        except RedisError as exc:
            raise StoreError(f"Could not remove flag {key}: {exc}") from exc
