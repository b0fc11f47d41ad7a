"""In-process quota counters and sliding-window rate limiter.

Used when no ``REDIS_URL`` is configured.  State lives in plain dicts on
the event loop thread; every mutation happens without an ``await`` in
between, which makes ``increment`` atomic with respect to concurrent
requests in the same process.  Counts are not shared between workers.
"""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from lectern.interfaces.quota_provider import ICounterStore, IRateLimiter
from lectern.models.quota import QuotaRecord, RateLimitResult

logger = structlog.get_logger(logger_name=__name__)

# Sweep expired records once the table grows past this size.
_SWEEP_THRESHOLD = 10_000


class MemoryCounterStore(ICounterStore):
    """Fixed-window counters keyed by string.

    Parameters
    ----------
    clock:
        Wall-clock seconds; tests pass a fake to roll windows over.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._records: dict[str, QuotaRecord] = {}

    async def increment(self, key: str, window_seconds: int) -> int:
        now = self._clock()
        record = self._live_record(key, now)
        if record is None:
            record = QuotaRecord(
                key=key,
                window_start=datetime.fromtimestamp(now, tz=timezone.utc),  # noqa: UP017
                window_seconds=window_seconds,
                count=1,
            )
        else:
            record = record.model_copy(update={"count": record.count + 1})
        self._records[key] = record

        if len(self._records) > _SWEEP_THRESHOLD:
            self._sweep(now)
        return record.count

    async def get(self, key: str) -> int:
        record = self._live_record(key, self._clock())
        return record.count if record else 0

    def get_record(self, key: str) -> QuotaRecord | None:
        """Return the live record for *key* (for diagnostics and tests)."""
        return self._live_record(key, self._clock())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _live_record(self, key: str, now: float) -> QuotaRecord | None:
        record = self._records.get(key)
        if record is None:
            return None
        if now >= record.window_start.timestamp() + record.window_seconds:
            del self._records[key]
            return None
        return record

    def _sweep(self, now: float) -> None:
        expired = [
            key
            for key, record in self._records.items()
            if now >= record.window_start.timestamp() + record.window_seconds
        ]
        for key in expired:
            del self._records[key]
        logger.debug("counter_sweep", removed=len(expired), remaining=len(self._records))


class MemorySlidingWindowLimiter(IRateLimiter):
    """Sliding-log limiter: at most ``max_requests`` in any ``window_seconds`` span."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}

    async def limit(self, key: str) -> RateLimitResult:
        now = self._clock()
        cutoff = now - self._window_seconds
        hits = self._hits.get(key, deque())
        while hits and hits[0] <= cutoff:
            hits.popleft()

        success = len(hits) < self._max_requests
        if success:
            hits.append(now)
        if hits:
            self._hits[key] = hits
        else:
            self._hits.pop(key, None)
        if len(self._hits) > _SWEEP_THRESHOLD:
            self._sweep(cutoff)

        return RateLimitResult(
            success=success,
            limit=self._max_requests,
            remaining=max(0, self._max_requests - len(hits)),
            reset_at=(hits[0] if hits else now) + self._window_seconds,
        )

    def tracked_keys(self) -> list[str]:
        """Keys with hits inside the current window (for diagnostics and tests)."""
        return list(self._hits)

    def _sweep(self, cutoff: float) -> None:
        idle = [key for key, hits in self._hits.items() if hits[-1] <= cutoff]
        for key in idle:
            del self._hits[key]
        logger.debug("limiter_sweep", removed=len(idle), remaining=len(self._hits))
