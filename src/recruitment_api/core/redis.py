"""
Redis Configuration

Async Redis client backing the shared submission throttle. Redis is
optional: when it is unreachable the rate limiter stays process-local.
"""

import logging

from redis.asyncio import Redis, from_url

from recruitment_api.core.config import settings

logger = logging.getLogger(__name__)

redis_client: Redis | None = None


async def init_redis() -> Redis:
    """
    Open the Redis connection and verify it with a PING.

    Call this on application startup.
    """
    global redis_client
    redis_client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    try:
        await redis_client.ping()
    except Exception:
        redis_client = None
        raise
    logger.info(f"Redis connected at {settings.redis_url}")
    return redis_client


async def get_redis() -> Redis | None:
    """
    Get the Redis client, or None when Redis is not connected.
    """
    return redis_client


def is_redis_available() -> bool:
    return redis_client is not None


async def close_redis() -> None:
    """Close the Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
