"""Unit tests for quota counters, rate limiters and the QuotaGate."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from lectern.config.settings import Settings
from lectern.interfaces.quota_provider import ICounterStore, IRateLimiter
from lectern.interfaces.storage_provider import IProfileStore
from lectern.models.quota import RateLimitResult
from lectern.providers.quota.memory_counter_store import (
    MemoryCounterStore,
    MemorySlidingWindowLimiter,
)
from lectern.providers.quota.redis_counter_store import (
    RedisCounterStore,
    RedisSlidingWindowLimiter,
)
from lectern.services.quota_gate import QuotaGate, usage_key
from lectern.utils.errors import QuotaBackendError, QuotaExceededError

_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)  # noqa: UP017


class _FakeClock:
    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


# ======================================================================
# In-memory backends
# ======================================================================


class TestMemoryCounterStore:
    @pytest.mark.asyncio
    async def test_increment_counts_up(self) -> None:
        store = MemoryCounterStore()
        assert await store.increment("k", 60) == 1
        assert await store.increment("k", 60) == 2
        assert await store.get("k") == 2

    @pytest.mark.asyncio
    async def test_get_missing_is_zero(self) -> None:
        assert await MemoryCounterStore().get("missing") == 0

    @pytest.mark.asyncio
    async def test_window_expiry_resets(self) -> None:
        clock = _FakeClock()
        store = MemoryCounterStore(clock=clock)
        await store.increment("k", 60)
        await store.increment("k", 60)

        clock.now += 60
        assert await store.get("k") == 0
        assert await store.increment("k", 60) == 1

    @pytest.mark.asyncio
    async def test_record_keeps_window(self) -> None:
        clock = _FakeClock()
        store = MemoryCounterStore(clock=clock)
        await store.increment("k", 86400)

        record = store.get_record("k")
        assert record is not None
        assert record.count == 1
        assert record.window_seconds == 86400
        assert record.window_start.timestamp() == pytest.approx(clock.now)


class TestMemorySlidingWindowLimiter:
    @pytest.mark.asyncio
    async def test_allows_up_to_max_then_blocks(self) -> None:
        clock = _FakeClock()
        limiter = MemorySlidingWindowLimiter(max_requests=2, window_seconds=60, clock=clock)

        first = await limiter.limit("u")
        second = await limiter.limit("u")
        third = await limiter.limit("u")

        assert first.success and first.remaining == 1
        assert second.success and second.remaining == 0
        assert not third.success
        assert third.reset_at == pytest.approx(clock.now + 60)

    @pytest.mark.asyncio
    async def test_window_slides(self) -> None:
        clock = _FakeClock()
        limiter = MemorySlidingWindowLimiter(max_requests=1, window_seconds=10, clock=clock)
        assert (await limiter.limit("u")).success
        clock.now += 5
        assert not (await limiter.limit("u")).success
        clock.now += 5
        assert (await limiter.limit("u")).success

    @pytest.mark.asyncio
    async def test_keys_are_independent(self) -> None:
        limiter = MemorySlidingWindowLimiter(max_requests=1, window_seconds=60)
        assert (await limiter.limit("a")).success
        assert (await limiter.limit("b")).success

    @pytest.mark.asyncio
    async def test_zero_budget_keeps_no_state(self) -> None:
        clock = _FakeClock()
        limiter = MemorySlidingWindowLimiter(max_requests=0, window_seconds=60, clock=clock)

        result = await limiter.limit("u")

        assert not result.success
        assert result.remaining == 0
        assert result.reset_at == pytest.approx(clock.now + 60)
        assert limiter.tracked_keys() == []

    @pytest.mark.asyncio
    async def test_idle_keys_are_swept(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("lectern.providers.quota.memory_counter_store._SWEEP_THRESHOLD", 1)
        clock = _FakeClock()
        limiter = MemorySlidingWindowLimiter(max_requests=5, window_seconds=60, clock=clock)

        await limiter.limit("a")
        clock.now += 61
        await limiter.limit("b")

        assert limiter.tracked_keys() == ["b"]

    @pytest.mark.asyncio
    async def test_expired_hits_are_trimmed_on_access(self) -> None:
        clock = _FakeClock()
        limiter = MemorySlidingWindowLimiter(max_requests=2, window_seconds=10, clock=clock)
        await limiter.limit("u")
        await limiter.limit("u")
        clock.now += 11

        result = await limiter.limit("u")

        assert result.success
        assert result.remaining == 1
        assert limiter.tracked_keys() == ["u"]


# ======================================================================
# Redis backends (client mocked)
# ======================================================================


class TestRedisCounterStore:
    @pytest.mark.asyncio
    async def test_first_increment_sets_expiry(self) -> None:
        client = MagicMock()
        client.incr = AsyncMock(return_value=1)
        client.expire = AsyncMock(return_value=True)

        count = await RedisCounterStore(client).increment("usage:llm:u1:2026-10-19", 86400)

        assert count == 1
        client.expire.assert_awaited_once_with("usage:llm:u1:2026-10-19", 86400)

    @pytest.mark.asyncio
    async def test_later_increment_keeps_expiry(self) -> None:
        client = MagicMock()
        client.incr = AsyncMock(return_value=3)
        client.expire = AsyncMock()

        assert await RedisCounterStore(client).increment("k", 60) == 3
        client.expire.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_parses_value(self) -> None:
        client = MagicMock()
        client.get = AsyncMock(side_effect=["4", None])
        store = RedisCounterStore(client)
        assert await store.get("k") == 4
        assert await store.get("k") == 0

    @pytest.mark.asyncio
    async def test_redis_error_becomes_backend_error(self) -> None:
        client = MagicMock()
        client.incr = AsyncMock(side_effect=RedisConnectionError("refused"))

        with pytest.raises(QuotaBackendError) as exc_info:
            await RedisCounterStore(client).increment("k", 60)
        assert exc_info.value.provider_name == "redis"


class TestRedisSlidingWindowLimiter:
    @pytest.mark.asyncio
    async def test_redis_error_becomes_backend_error(self) -> None:
        client = MagicMock()
        client.pipeline.side_effect = RedisConnectionError("refused")
        limiter = RedisSlidingWindowLimiter(client, max_requests=3, window_seconds=60)

        with pytest.raises(QuotaBackendError):
            await limiter.limit("llm:u1")


# ======================================================================
# QuotaGate
# ======================================================================


def _profiles(status: str | None = None) -> IProfileStore:
    mock = MagicMock(spec=IProfileStore)
    mock.get_subscription_status = AsyncMock(return_value=status)
    return mock


def _gate(
    settings: Settings,
    *,
    counter_store: ICounterStore | None = None,
    limiter_free: IRateLimiter | None = None,
    limiter_pro: IRateLimiter | None = None,
    profile_status: str | None = None,
    profiles: IProfileStore | None = None,
) -> QuotaGate:
    return QuotaGate(
        counter_store or MemoryCounterStore(),
        limiter_free or MemorySlidingWindowLimiter(100, 60),
        limiter_pro or MemorySlidingWindowLimiter(100, 60),
        profiles or _profiles(profile_status),
        settings,
        clock=lambda: _NOW,
    )


class TestQuotaGate:
    def test_usage_key_is_per_day(self) -> None:
        assert usage_key("u1", _NOW) == "usage:llm:u1:2026-10-19"

    @pytest.mark.asyncio
    async def test_bypassed_when_not_enforced(self, settings: Settings) -> None:
        counters = MagicMock(spec=ICounterStore)
        counters.increment = AsyncMock()
        gate = _gate(settings, counter_store=counters)

        result = await gate.check_and_consume("u1")

        assert result.allowed
        assert result.limit == 999
        counters.increment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_limit_boundary(self, enforced_settings: Settings) -> None:
        gate = _gate(enforced_settings)

        results = [await gate.check_and_consume("u1") for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.usage for r in results] == [1, 2, 3, 4]
        assert [r.remaining for r in results] == [2, 1, 0, 0]
        assert all(r.limit == 3 for r in results)

    @pytest.mark.asyncio
    async def test_concurrent_calls_at_boundary(self, enforced_settings: Settings) -> None:
        gate = _gate(enforced_settings)

        results = await asyncio.gather(*(gate.check_and_consume("u1") for _ in range(5)))

        assert sum(r.allowed for r in results) == 3
        assert sorted(r.usage for r in results) == [1, 2, 3, 4, 5]
        assert {r.usage for r in results if r.allowed} == {1, 2, 3}

    @pytest.mark.asyncio
    async def test_users_counted_separately(self, enforced_settings: Settings) -> None:
        gate = _gate(enforced_settings)
        for _ in range(3):
            await gate.check_and_consume("u1")
        assert (await gate.check_and_consume("u2")).allowed

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["active", "trialing"])
    async def test_pro_users_get_pro_limit(self, enforced_settings: Settings, status: str) -> None:
        result = await _gate(enforced_settings, profile_status=status).check_and_consume("u1")
        assert result.is_pro
        assert result.limit == 30

    @pytest.mark.asyncio
    async def test_cancelled_subscription_is_free(self, enforced_settings: Settings) -> None:
        result = await _gate(enforced_settings, profile_status="canceled").check_and_consume("u1")
        assert not result.is_pro
        assert result.limit == 3

    @pytest.mark.asyncio
    async def test_rate_limit_denies_within_daily_quota(self, enforced_settings: Settings) -> None:
        limiter = MagicMock(spec=IRateLimiter)
        limiter.limit = AsyncMock(
            return_value=RateLimitResult(success=False, limit=3, remaining=0, reset_at=0.0)
        )
        result = await _gate(enforced_settings, limiter_free=limiter).check_and_consume("u1")

        assert not result.allowed
        assert result.usage == 1
        limiter.limit.assert_awaited_once_with("llm:u1")

    @pytest.mark.asyncio
    async def test_rate_limiter_skipped_when_daily_quota_exhausted(
        self, enforced_settings: Settings
    ) -> None:
        limiter = MagicMock(spec=IRateLimiter)
        limiter.limit = AsyncMock(
            return_value=RateLimitResult(success=True, limit=100, remaining=99)
        )
        gate = _gate(enforced_settings, limiter_free=limiter)
        for _ in range(4):
            await gate.check_and_consume("u1")
        assert limiter.limit.await_count == 3

    @pytest.mark.asyncio
    async def test_counter_failure_fails_open(self, enforced_settings: Settings) -> None:
        counters = MagicMock(spec=ICounterStore)
        counters.increment = AsyncMock(side_effect=QuotaBackendError("down", provider_name="redis"))

        result = await _gate(enforced_settings, counter_store=counters).check_and_consume("u1")

        assert result.allowed
        assert result.usage == 0
        assert result.limit == 999

    @pytest.mark.asyncio
    async def test_profile_failure_fails_open(self, enforced_settings: Settings) -> None:
        profiles = MagicMock(spec=IProfileStore)
        profiles.get_subscription_status = AsyncMock(side_effect=RuntimeError("db gone"))

        result = await _gate(enforced_settings, profiles=profiles).check_and_consume("u1")

        assert result.allowed

    @pytest.mark.asyncio
    async def test_enforce_raises_with_usage_and_limit(self, enforced_settings: Settings) -> None:
        gate = _gate(enforced_settings)
        for _ in range(3):
            await gate.enforce("u1")

        with pytest.raises(QuotaExceededError) as exc_info:
            await gate.enforce("u1")
        assert exc_info.value.usage == 4
        assert exc_info.value.limit == 3

    @pytest.mark.asyncio
    async def test_check_status_does_not_consume(self, enforced_settings: Settings) -> None:
        gate = _gate(enforced_settings)
        await gate.check_and_consume("u1")

        first = await gate.check_status("u1")
        second = await gate.check_status("u1")

        assert first == second
        assert first.usage == 1
        assert first.remaining == 2
        assert first.can_send

    @pytest.mark.asyncio
    async def test_check_status_at_limit(self, enforced_settings: Settings) -> None:
        gate = _gate(enforced_settings)
        for _ in range(3):
            await gate.check_and_consume("u1")

        status = await gate.check_status("u1")

        assert not status.can_send
        assert status.remaining == 0

    def test_system_limits(self, enforced_settings: Settings) -> None:
        limits = _gate(enforced_settings).get_system_limits()
        assert limits.daily_limit_free == 3
        assert limits.daily_limit_pro == 30
        assert limits.rate_limit_free_window == "60 s"
        assert limits.max_file_size_mb == 10
