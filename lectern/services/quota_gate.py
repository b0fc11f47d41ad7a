"""Per-user daily LLM quota plus sliding-window rate limiting.

The gate sits in front of the single billable model call of an ingestion
run.  It combines two checks:

1. **Daily quota** -- a counter per user per UTC day, incremented on every
   check.  Free users get ``llm_limit_daily_free`` calls, pro users (profile
   subscription ``active`` or ``trialing``) get ``llm_limit_daily_pro``.
2. **Rate limit** -- a sliding window per plan tier, consulted only when
   the daily check passed.

Both backends fail open: if the counter store, the limiter or the profile
store raises, the call is allowed and a warning is logged.  Outside
production the gate is bypassed unless ``ENABLE_RATELIMIT=true``.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from lectern.config.settings import Settings
from lectern.interfaces.quota_provider import ICounterStore, IRateLimiter
from lectern.interfaces.storage_provider import IProfileStore
from lectern.models.base import utc_now
from lectern.models.quota import QuotaCheckResult, QuotaStatus, SystemLimits
from lectern.utils.errors import QuotaExceededError
from lectern.utils.logging import get_logger

_DAY_SECONDS = 86400
_PRO_STATUSES = frozenset({"active", "trialing"})
_UNLIMITED = 999


def usage_key(user_id: str, now: datetime) -> str:
    """Daily counter key, e.g. ``usage:llm:u1:2026-10-19``."""
    return f"usage:llm:{user_id}:{now.date().isoformat()}"


class QuotaGate:
    """Checks and consumes LLM quota for a user.

    Parameters
    ----------
    counter_store:
        Daily counters (in-memory or Redis).
    rate_limiter_free, rate_limiter_pro:
        Sliding-window limiters for each plan tier.
    profile_store:
        Source of the user's subscription status.
    settings:
        Limits and the enforcement switch.
    clock:
        Returns the current UTC time; tests pass a fixed one.
    """

    def __init__(
        self,
        counter_store: ICounterStore,
        rate_limiter_free: IRateLimiter,
        rate_limiter_pro: IRateLimiter,
        profile_store: IProfileStore,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._counters = counter_store
        self._limiter_free = rate_limiter_free
        self._limiter_pro = rate_limiter_pro
        self._profiles = profile_store
        self._settings = settings
        self._clock = clock
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def check_and_consume(self, user_id: str) -> QuotaCheckResult:
        """Consume one unit of the user's daily quota and report the outcome.

        Calls ``1..limit`` of a day are allowed; call ``limit + 1`` is not.
        """
        if not self._settings.quota_enforced:
            return QuotaCheckResult(
                allowed=True, usage=0, limit=_UNLIMITED, remaining=_UNLIMITED, is_pro=True
            )

        try:
            is_pro = await self._is_pro(user_id)
            limit = self._daily_limit(is_pro)
            count = await self._counters.increment(
                usage_key(user_id, self._clock()), _DAY_SECONDS
            )
            allowed = count <= limit
            result = QuotaCheckResult(
                allowed=allowed,
                usage=count,
                limit=limit,
                remaining=max(0, limit - count),
                is_pro=is_pro,
            )
            if not allowed:
                self._logger.info("daily_quota_exhausted", user_id=user_id, usage=count, limit=limit)
                return result

            limiter = self._limiter_pro if is_pro else self._limiter_free
            rate = await limiter.limit(f"llm:{user_id}")
            if not rate.success:
                self._logger.info(
                    "rate_limited",
                    user_id=user_id,
                    window_limit=rate.limit,
                    reset_at=rate.reset_at,
                )
                return result.model_copy(update={"allowed": False})
            return result
        except Exception as exc:
            self._logger.warning(
                "quota_backend_unavailable",
                user_id=user_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return QuotaCheckResult(
                allowed=True, usage=0, limit=_UNLIMITED, remaining=_UNLIMITED, is_pro=False
            )

    async def enforce(self, user_id: str) -> QuotaCheckResult:
        """Like :meth:`check_and_consume` but raise when the call is not allowed.

        Raises
        ------
        QuotaExceededError
            Carrying the usage and limit of the failed check.
        """
        result = await self.check_and_consume(user_id)
        if not result.allowed:
            raise QuotaExceededError(usage=result.usage, limit=result.limit)
        return result

    async def check_status(self, user_id: str) -> QuotaStatus:
        """Read the user's quota without consuming any of it."""
        try:
            is_pro = await self._is_pro(user_id)
            limit = self._daily_limit(is_pro)
            usage = await self._counters.get(usage_key(user_id, self._clock()))
        except Exception as exc:
            self._logger.warning(
                "quota_backend_unavailable",
                user_id=user_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return QuotaStatus(
                can_send=True, usage=0, limit=_UNLIMITED, remaining=_UNLIMITED, is_pro=False
            )

        return QuotaStatus(
            can_send=usage < limit,
            usage=usage,
            limit=limit,
            remaining=max(0, limit - usage),
            is_pro=is_pro,
        )

    def get_system_limits(self) -> SystemLimits:
        s = self._settings
        return SystemLimits(
            daily_limit_free=s.llm_limit_daily_free,
            daily_limit_pro=s.llm_limit_daily_pro,
            rate_limit_free_requests=s.rate_limit_llm_free_requests,
            rate_limit_free_window=s.rate_limit_llm_free_window,
            rate_limit_pro_requests=s.rate_limit_llm_pro_requests,
            rate_limit_pro_window=s.rate_limit_llm_pro_window,
            max_file_size_mb=s.max_file_size_mb,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _is_pro(self, user_id: str) -> bool:
        status = await self._profiles.get_subscription_status(user_id)
        return status in _PRO_STATUSES

    def _daily_limit(self, is_pro: bool) -> int:
        if is_pro:
            return self._settings.llm_limit_daily_pro
        return self._settings.llm_limit_daily_free
