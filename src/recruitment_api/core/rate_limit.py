"""
Rate Limiting Module

Fixed-window request counter keyed by client address. Guards the public
submission endpoint against abuse; it is a best-effort throttle, not a
correctness boundary.

Algorithm (per key):
- if now - window_start > window: window_start = now, count = 0
- count += 1
- reject when count > limit (the rejected request still counts)

Backends:
- memory (default): process-local dict guarded by a lock
- redis: INCR + EXPIRE per key, shared across workers
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Request

from recruitment_api.core.config import settings
from recruitment_api.core.redis import get_redis

logger = logging.getLogger(__name__)


@dataclass
class RateBucket:
    window_start: float
    count: int = 0


class FixedWindowRateLimiter:
    """
    In-memory fixed-window counter.

    Buckets are created lazily and reset in place when their window has
    passed. They are only removed by evict_stale().
    """

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._buckets: dict[str, RateBucket] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        """Count one request for `key`. Returns False when over the limit."""
        now = self._clock()
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = RateBucket(window_start=now)
                self._buckets[key] = bucket
            if now - bucket.window_start > self.window_seconds:
                bucket.window_start = now
                bucket.count = 0
            bucket.count += 1
            return bucket.count <= self.limit

    def evict_stale(self) -> int:
        """Drop buckets whose window has ended. Returns how many were dropped."""
        now = self._clock()
        with self._lock:
            stale = [
                key
                for key, bucket in self._buckets.items()
                if now - bucket.window_start > self.window_seconds
            ]
            for key in stale:
                del self._buckets[key]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()

    def __len__(self) -> int:
        return len(self._buckets)


_memory_limiter = FixedWindowRateLimiter(
    limit=settings.rate_limit_requests,
    window_seconds=settings.rate_limit_window_seconds,
)


def get_memory_limiter() -> FixedWindowRateLimiter:
    return _memory_limiter


async def _check_rate_limit_redis(client, key: str, limit: int, window_seconds: int) -> bool:
    """
    Fixed-window check using Redis.

    The first INCR of a window creates the key; EXPIRE is only set then so
    later hits do not extend the window.
    """
    pipe = client.pipeline()
    pipe.incr(key)
    pipe.ttl(key)
    count, ttl = await pipe.execute()

    if ttl is None or ttl < 0:
        await client.expire(key, window_seconds)

    return int(count) <= limit


async def check_rate_limit(key: str) -> bool:
    """
    Count a request for `key` against the configured window.

    Uses Redis when RATE_LIMIT_BACKEND=redis and a client is available,
    otherwise the process-local limiter.

    Returns:
        True if the request is allowed, False if the limit is exceeded
    """
    limit = settings.rate_limit_requests
    window_seconds = settings.rate_limit_window_seconds

    if settings.rate_limit_backend == "redis":
        client = await get_redis()
        if client is not None:
            try:
                return await _check_rate_limit_redis(
                    client, f"rate_limit:{key}", limit, window_seconds
                )
            except Exception as e:
                logger.warning(f"Redis rate limit check failed, using memory: {e}")
        else:
            logger.warning("Redis unavailable for rate limiting, using memory")

    return _memory_limiter.hit(key)


def client_key(request: Request) -> str:
    """
    Identify the client for throttling.

    Prefers the first X-Forwarded-For entry (set by the proxy in front of
    the API), then the connection address.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "local"


async def evict_stale_rate_buckets() -> dict[str, int]:
    """Scheduled sweep dropping expired in-memory buckets."""
    evicted = _memory_limiter.evict_stale()
    if evicted:
        logger.info(f"Evicted {evicted} stale rate limit bucket(s)")
    return {"evicted": evicted, "remaining": len(_memory_limiter)}


__all__ = [
    "FixedWindowRateLimiter",
    "check_rate_limit",
    "client_key",
    "evict_stale_rate_buckets",
    "get_memory_limiter",
]
