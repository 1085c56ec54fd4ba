"""
Rate Limiter - sliding window admission control for the parse endpoint.

Every client IP gets its own window; one client exhausting its budget never
affects another. Counters live behind a RateLimitStore so the same limiter
runs against process memory (single instance) or Redis (shared across
instances).

Usage:
    from syllabus_sync.middleware.rate_limiter import rate_limiter

    allowed, info = await rate_limiter.check_ip_rate_limit("1.2.3.4")
    if not allowed:
        raise HTTPException(429, detail="Rate limit exceeded")
"""

import math
import time
from collections.abc import Callable

from syllabus_sync.config import settings
from syllabus_sync.infrastructure.observability.logging import get_logger
from syllabus_sync.services.rate_limit_store import (
    InMemoryRateLimitStore,
    RateLimitStore,
    RedisRateLimitStore,
)
from syllabus_sync.services.redis_client import fast_redis

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"


class RateLimiter:
    """
    Sliding window rate limiter.

    Example:
        With a limit of 100 requests per hour and 100 requests made at 10:00:00,
        the next request is admitted at 11:00:00 when the first hit ages out.
    """

    def __init__(
        self,
        store: RateLimitStore,
        default_limit: int = 100,
        window_seconds: int = 3600,
        fail_open: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            store: Counter backend
            default_limit: Default requests per window
            window_seconds: Time window in seconds
            fail_open: If True, allow requests when the store fails
            clock: Source of the current time in seconds
        """
        self.store = store
        self.default_limit = default_limit
        self.window_seconds = window_seconds
        self.fail_open = fail_open
        self.clock = clock

    async def check_rate_limit(
        self,
        key: str,
        limit: int | None = None,
        window_seconds: int | None = None,
    ) -> tuple[bool, dict]:
        """
        Check and record one request for ``key``.

        Returns:
            Tuple of (allowed, info) where info carries limit, remaining and
            retry_after (seconds, positive when denied).
        """
        limit = limit or self.default_limit
        window_seconds = window_seconds or self.window_seconds
        now = self.clock()

        try:
            window = await self.store.hit(key, limit, window_seconds, now)
        except Exception as e:
            logger.error(
                "Rate limiter store error",
                error=str(e),
                error_type=type(e).__name__,
                key=key,
                limit=limit,
            )
            if self.fail_open:
                return True, self._create_info_dict(
                    allowed=True, limit=limit, remaining=limit, error="rate_limiter_error"
                )
            return False, self._create_info_dict(
                allowed=False,
                limit=limit,
                remaining=0,
                retry_after=window_seconds,
                error="rate_limiter_error",
            )

        if not window.allowed:
            if window.oldest > 0:
                retry_after = max(1, math.ceil(window.oldest + window_seconds - now))
            else:
                retry_after = window_seconds

            return False, self._create_info_dict(
                allowed=False,
                limit=limit,
                remaining=0,
                retry_after=retry_after,
                window_seconds=window_seconds,
            )

        return True, self._create_info_dict(
            allowed=True,
            limit=limit,
            remaining=max(0, limit - window.count),
            window_seconds=window_seconds,
        )

    async def check_ip_rate_limit(
        self,
        ip_address: str | None,
        limit: int | None = None,
    ) -> tuple[bool, dict]:
        """Per-IP check. Requests without a resolvable IP share one bucket."""
        return await self.check_rate_limit(
            key=f"ip:{ip_address or UNKNOWN_CLIENT}",
            limit=limit,
        )

    def _create_info_dict(
        self,
        allowed: bool,
        limit: int,
        remaining: int,
        retry_after: int | None = None,
        window_seconds: int | None = None,
        error: str | None = None,
    ) -> dict:
        info = {
            "allowed": allowed,
            "limit": limit,
            "remaining": remaining,
            "retry_after": retry_after,
        }

        if window_seconds is not None:
            info["window_seconds"] = window_seconds

        if error:
            info["error"] = error

        return info


def build_rate_limiter() -> RateLimiter:
    """Create the limiter for the configured backend."""
    if settings.RATE_LIMIT_BACKEND == "redis":
        store: RateLimitStore = RedisRateLimitStore(fast_redis)
    else:
        store = InMemoryRateLimitStore()

    rate_limits = settings.get_rate_limits()
    return RateLimiter(
        store=store,
        default_limit=rate_limits["ip_per_window"],
        window_seconds=rate_limits["window_seconds"],
        fail_open=settings.RATE_LIMIT_FAIL_OPEN,
    )


# Global singleton
rate_limiter = build_rate_limiter()
