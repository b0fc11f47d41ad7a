"""Redis-backed quota counters and sliding-window rate limiter.

Counters use the INCR + EXPIRE pattern: ``INCR`` is atomic across every
worker sharing the Redis instance, and the expiry is set when the counter
is first created so the key disappears when its window ends.

The rate limiter keeps one sorted set per key holding request timestamps;
entries older than the window are trimmed before counting.

Every Redis failure is raised as :class:`QuotaBackendError` so the quota
gate can fail open.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from lectern.interfaces.quota_provider import ICounterStore, IRateLimiter
from lectern.models.quota import RateLimitResult
from lectern.utils.errors import QuotaBackendError

logger = structlog.get_logger(logger_name=__name__)


class RedisCounterStore(ICounterStore):
    """Windowed counters stored as plain Redis integers."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._redis = client

    async def increment(self, key: str, window_seconds: int) -> int:
        try:
            count = int(await self._redis.incr(key))
            if count == 1:
                await self._redis.expire(key, window_seconds)
        except RedisError as exc:
            raise QuotaBackendError(
                message=f"Counter increment failed for {key}: {exc}",
                provider_name="redis",
            ) from exc
        return count

    async def get(self, key: str) -> int:
        try:
            value = await self._redis.get(key)
        except RedisError as exc:
            raise QuotaBackendError(
                message=f"Counter read failed for {key}: {exc}",
                provider_name="redis",
            ) from exc
        return int(value) if value is not None else 0


class RedisSlidingWindowLimiter(IRateLimiter):
    """Sliding-log limiter on a Redis sorted set per key."""

    def __init__(
        self,
        client: aioredis.Redis,
        max_requests: int,
        window_seconds: float,
        prefix: str = "ratelimit",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = client
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._prefix = prefix
        self._clock = clock

    async def limit(self, key: str) -> RateLimitResult:
        now = self._clock()
        redis_key = f"{self._prefix}:{key}"
        member = f"{now:.6f}:{uuid.uuid4().hex}"
        window_ms = max(1, int(self._window_seconds * 1000))

        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(redis_key, 0, now - self._window_seconds)
                pipe.zadd(redis_key, {member: now})
                pipe.zcard(redis_key)
                pipe.pexpire(redis_key, window_ms)
                _, _, count, _ = await pipe.execute()

            allowed = int(count) <= self._max_requests
            if not allowed:
                await self._redis.zrem(redis_key, member)
            oldest = await self._redis.zrange(redis_key, 0, 0, withscores=True)
        except RedisError as exc:
            raise QuotaBackendError(
                message=f"Rate limit check failed for {key}: {exc}",
                provider_name="redis",
            ) from exc

        reset_at = (oldest[0][1] if oldest else now) + self._window_seconds
        used = min(int(count), self._max_requests)
        return RateLimitResult(
            success=allowed,
            limit=self._max_requests,
            remaining=max(0, self._max_requests - used),
            reset_at=reset_at,
        )
