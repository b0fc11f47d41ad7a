"""Read-through cache for list-style reference data.

The cache is never the source of truth.  A failing cache read falls
through to the fetcher; a failing write or invalidation is logged and
otherwise ignored, so callers always get fresh data from the store when
the cache misbehaves.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from lectern.interfaces.cache_provider import ICacheProvider
from lectern.utils.logging import get_logger

T = TypeVar("T")

COURSES_LIST_KEY = "cache:courses:list"
UNIVERSITIES_LIST_KEY = "cache:universities:list"

COURSES_LIST_TTL = 600
UNIVERSITIES_LIST_TTL = 1800


class CacheLayer:
    """Best-effort read-through cache over an :class:`ICacheProvider`."""

    def __init__(self, cache_provider: ICacheProvider) -> None:
        self._cache = cache_provider
        self._logger = get_logger(__name__)

    async def get_or_fetch(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl: int,
    ) -> T:
        """Return the cached value for *key*, or call *fetcher* and cache its result.

        Parameters
        ----------
        key:
            Cache key, e.g. :data:`COURSES_LIST_KEY`.
        fetcher:
            Zero-argument coroutine function reading from the store.
            Its exceptions propagate.
        ttl:
            Seconds the fetched value stays cached.
        """
        cached: Any = None
        try:
            cached = await self._cache.get(key)
        except Exception as exc:
            self._logger.warning("cache_read_failed", key=key, error=str(exc))

        if cached is not None:
            self._logger.debug("cache_hit", key=key)
            return cached

        value = await fetcher()
        try:
            await self._cache.set(key, value, ttl=ttl)
        except Exception as exc:
            self._logger.warning("cache_write_failed", key=key, error=str(exc))
        return value

    async def invalidate(self, *keys: str) -> None:
        """Drop *keys* from the cache."""
        for key in keys:
            try:
                await self._cache.delete(key)
            except Exception as exc:
                self._logger.warning("cache_invalidate_failed", key=key, error=str(exc))
            else:
                self._logger.debug("cache_invalidated", key=key)
