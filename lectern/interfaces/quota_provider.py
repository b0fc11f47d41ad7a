"""Abstract base classes for quota counters and rate limiters.

Both contracts sit behind :class:`~lectern.services.quota_gate.QuotaGate`.
Implementations raise :class:`~lectern.utils.errors.QuotaBackendError`
when their backend cannot be reached; the gate turns that into a
fail-open decision.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from lectern.models.quota import RateLimitResult


class ICounterStore(ABC):
    """Windowed counters with atomic increment."""

    @abstractmethod
    async def increment(self, key: str, window_seconds: int) -> int:
        """Atomically add one to *key* and return the post-increment count.

        The counter is created with an expiry of *window_seconds* on its
        first increment and resets once that window has elapsed.
        """

    @abstractmethod
    async def get(self, key: str) -> int:
        """Return the current count for *key* without changing it (0 if absent)."""


class IRateLimiter(ABC):
    """Sliding-window request limiter."""

    @abstractmethod
    async def limit(self, key: str) -> RateLimitResult:
        """Record one request for *key* and report whether it fits the window."""
