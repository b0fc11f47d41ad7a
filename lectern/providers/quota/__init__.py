"""Quota counter stores and rate limiters.

MemoryCounterStore / MemorySlidingWindowLimiter serve single-process
deployments and tests; RedisCounterStore / RedisSlidingWindowLimiter share
counts across workers when ``REDIS_URL`` is set.
"""

from lectern.providers.quota.memory_counter_store import (
    MemoryCounterStore,
    MemorySlidingWindowLimiter,
)
from lectern.providers.quota.redis_counter_store import (
    RedisCounterStore,
    RedisSlidingWindowLimiter,
)

__all__ = [
    "MemoryCounterStore",
    "MemorySlidingWindowLimiter",
    "RedisCounterStore",
    "RedisSlidingWindowLimiter",
]
