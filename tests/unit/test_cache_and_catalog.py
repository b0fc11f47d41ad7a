"""Unit tests for MemoryCacheProvider, CacheLayer and CatalogService."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from lectern.interfaces.cache_provider import ICacheProvider
from lectern.interfaces.storage_provider import ICatalogStore
from lectern.models.catalog import Course, University
from lectern.providers.cache.memory_cache import MemoryCacheProvider
from lectern.services.cache_layer import COURSES_LIST_KEY, UNIVERSITIES_LIST_KEY, CacheLayer
from lectern.services.catalog_service import CatalogService


class _FakeTimer:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


# ======================================================================
# MemoryCacheProvider
# ======================================================================


class TestMemoryCacheProvider:
    @pytest.fixture()
    def cache(self) -> MemoryCacheProvider:
        return MemoryCacheProvider(max_size=100, ttl=3600)

    @pytest.mark.asyncio
    async def test_get_missing_key_returns_none(self, cache: MemoryCacheProvider) -> None:
        assert await cache.get("nonexistent") is None

    @pytest.mark.asyncio
    async def test_set_and_get(self, cache: MemoryCacheProvider) -> None:
        await cache.set("key1", ["value1"])
        assert await cache.get("key1") == ["value1"]

    @pytest.mark.asyncio
    async def test_delete_removes_key(self, cache: MemoryCacheProvider) -> None:
        await cache.set("key1", "value1")
        await cache.delete("key1")
        assert await cache.exists("key1") is False

    @pytest.mark.asyncio
    async def test_delete_nonexistent_is_noop(self, cache: MemoryCacheProvider) -> None:
        await cache.delete("nonexistent")

    @pytest.mark.asyncio
    async def test_per_entry_ttl(self) -> None:
        timer = _FakeTimer()
        cache = MemoryCacheProvider(max_size=10, ttl=3600, timer=timer)
        await cache.set("short", "a", ttl=10)
        await cache.set("long", "b", ttl=100)

        timer.now = 50
        assert await cache.get("short") is None
        assert await cache.get("long") == "b"

    @pytest.mark.asyncio
    async def test_lru_eviction(self) -> None:
        cache = MemoryCacheProvider(max_size=2, ttl=3600)
        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.set("c", 3)
        assert await cache.exists("a") is False
        assert await cache.get("c") == 3


# ======================================================================
# CacheLayer
# ======================================================================


class TestCacheLayer:
    @pytest.mark.asyncio
    async def test_miss_fetches_and_stores(self) -> None:
        layer = CacheLayer(MemoryCacheProvider())
        fetcher = AsyncMock(return_value=["x"])

        first = await layer.get_or_fetch("k", fetcher, ttl=60)
        second = await layer.get_or_fetch("k", fetcher, ttl=60)

        assert first == second == ["x"]
        fetcher.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self) -> None:
        layer = CacheLayer(MemoryCacheProvider())
        fetcher = AsyncMock(side_effect=[["old"], ["new"]])

        await layer.get_or_fetch("k", fetcher, ttl=60)
        await layer.invalidate("k")

        assert await layer.get_or_fetch("k", fetcher, ttl=60) == ["new"]

    @pytest.mark.asyncio
    async def test_cache_read_failure_falls_through(self) -> None:
        cache = MagicMock(spec=ICacheProvider)
        cache.get = AsyncMock(side_effect=ConnectionError("cache down"))
        cache.set = AsyncMock(side_effect=ConnectionError("cache down"))
        layer = CacheLayer(cache)

        assert await layer.get_or_fetch("k", AsyncMock(return_value=[1]), ttl=60) == [1]

    @pytest.mark.asyncio
    async def test_invalidate_failure_is_swallowed(self) -> None:
        cache = MagicMock(spec=ICacheProvider)
        cache.delete = AsyncMock(side_effect=ConnectionError("cache down"))

        await CacheLayer(cache).invalidate("a", "b")

        assert cache.delete.await_count == 2

    @pytest.mark.asyncio
    async def test_fetcher_error_propagates(self) -> None:
        layer = CacheLayer(MemoryCacheProvider())
        with pytest.raises(RuntimeError):
            await layer.get_or_fetch("k", AsyncMock(side_effect=RuntimeError("db")), ttl=60)


# ======================================================================
# CatalogService
# ======================================================================


def _catalog_store() -> ICatalogStore:
    store = MagicMock(spec=ICatalogStore)
    store.list_courses = AsyncMock(
        return_value=[Course(id="c1", university_id="u1", code="MATH101", name="Calculus I")]
    )
    store.list_universities = AsyncMock(
        return_value=[University(id="u1", name="Example University", short_name="EU")]
    )
    store.create_course = AsyncMock(side_effect=lambda course: course)
    store.create_university = AsyncMock(side_effect=lambda university: university)
    store.delete_university = AsyncMock()
    store.delete_course = AsyncMock()
    return store


class TestCatalogService:
    @pytest.mark.asyncio
    async def test_course_list_is_cached(self) -> None:
        store = _catalog_store()
        service = CatalogService(store, CacheLayer(MemoryCacheProvider()))

        await service.get_all_courses()
        courses = await service.get_all_courses()

        assert [c.code for c in courses] == ["MATH101"]
        store.list_courses.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_create_course_invalidates_course_list(self) -> None:
        store = _catalog_store()
        cache = MemoryCacheProvider()
        service = CatalogService(store, CacheLayer(cache))
        await service.get_all_courses()

        course = await service.create_course("u1", "MATH102", "Calculus II")

        assert course.code == "MATH102"
        assert await cache.exists(COURSES_LIST_KEY) is False
        await service.get_all_courses()
        assert store.list_courses.await_count == 2

    @pytest.mark.asyncio
    async def test_create_university_leaves_course_list_cached(self) -> None:
        cache = MemoryCacheProvider()
        service = CatalogService(_catalog_store(), CacheLayer(cache))
        await service.get_all_courses()
        await service.get_all_universities()

        await service.create_university("Another University", "AU")

        assert await cache.exists(UNIVERSITIES_LIST_KEY) is False
        assert await cache.exists(COURSES_LIST_KEY) is True

    @pytest.mark.asyncio
    async def test_delete_university_invalidates_both_lists(self) -> None:
        cache = MemoryCacheProvider()
        service = CatalogService(_catalog_store(), CacheLayer(cache))
        await service.get_all_courses()
        await service.get_all_universities()

        await service.delete_university("u1")

        assert await cache.exists(UNIVERSITIES_LIST_KEY) is False
        assert await cache.exists(COURSES_LIST_KEY) is False
