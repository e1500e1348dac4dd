"""
Redis client initialization and connection management.

Redis backs the per-driver location disclosure flag and, when enabled,
the cross-worker change feed.
"""

import logging

import redis.asyncio as redis
from driver_backend.app.core.config import settings

logger = logging.getLogger(__name__)

# Create async Redis client
redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """
    Get Redis client instance.

    Used as a FastAPI dependency so tests can swap in a double.
    """
    return redis_client


async def ping_redis() -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return await redis_client.ping()
    except redis.RedisError as exc:
        logger.warning("Redis ping failed: %s", exc)
        return False
