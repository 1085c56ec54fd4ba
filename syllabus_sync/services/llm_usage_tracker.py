# syllabus_sync/services/llm_usage_tracker.py
"""
LLM Usage Tracker
Caps paid LLM calls per client IP per UTC day and against a daily cost budget.
A denied client is served by the heuristic extractor instead.

The memory tracker counts inside this process. With the Redis rate-limit
backend the counters live in Redis, so every instance draws on the same cap
and budget.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from typing import Any

from syllabus_sync.config import settings
from syllabus_sync.infrastructure.observability.logging import get_logger
from syllabus_sync.services.redis_client import FastRedisClient, fast_redis

logger = get_logger(__name__)

DENIED_PER_IP_CAP = "per_ip_cap"
DENIED_BUDGET = "budget_exceeded"
DENIED_UNAVAILABLE = "usage_unavailable"


@dataclass
class DailyUsage:
    day: date
    total_calls: int = 0
    total_cost: float = 0.0
    per_ip_calls: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class UsageDecision:
    allowed: bool
    denied_reason: str | None = None
    used_by_ip: int = 0
    per_ip_limit: int = 0
    spent: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "denied_reason": self.denied_reason,
            "used_by_ip": self.used_by_ip,
            "per_ip_limit": self.per_ip_limit,
            "spent": round(self.spent, 4),
        }


class UsageTracker:
    """Limits and UTC day handling shared by the memory and Redis trackers."""

    backend = "memory"

    def __init__(
        self,
        per_ip_limit: int = 10,
        daily_budget: float = 0.0,
        cost_per_call: float = 0.02,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self.per_ip_limit = per_ip_limit
        self.daily_budget = daily_budget
        self.cost_per_call = cost_per_call
        self.clock = clock

    def _today(self) -> date:
        return self.clock().astimezone(UTC).date()

    def _over_budget(self, calls: int) -> bool:
        return self.daily_budget > 0 and calls * self.cost_per_call > self.daily_budget

    def _deny(self, reason: str, used: int, spent: float, **log_fields) -> UsageDecision:
        logger.warning(
            "LLM usage denied", reason=reason, used=used, spent=round(spent, 4), **log_fields
        )
        return UsageDecision(
            allowed=False,
            denied_reason=reason,
            used_by_ip=used,
            per_ip_limit=self.per_ip_limit,
            spent=spent,
        )

    async def try_acquire(self, ip_address: str | None) -> UsageDecision:
        """Reserve one LLM call for ``ip_address`` if the caps allow it."""
        raise NotImplementedError

    async def release(self, ip_address: str | None) -> None:
        """Give back a reservation whose LLM call never produced a result."""
        raise NotImplementedError

    async def snapshot(self) -> dict[str, Any]:
        raise NotImplementedError


class LLMUsageTracker(UsageTracker):
    """
    Process-local daily counters. Check and reservation happen under one
    lock, so concurrent requests from the same IP cannot overshoot the cap.
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._lock = asyncio.Lock()
        self._usage = DailyUsage(day=self._today())

    def _roll_over(self) -> None:
        today = self._today()
        if self._usage.day != today:
            logger.info(
                "LLM usage reset for new day",
                previous_day=self._usage.day.isoformat(),
                calls=self._usage.total_calls,
                cost=round(self._usage.total_cost, 4),
            )
            self._usage = DailyUsage(day=today)

    async def try_acquire(self, ip_address: str | None) -> UsageDecision:
        key = ip_address or "unknown"
        async with self._lock:
            self._roll_over()
            usage = self._usage
            used = usage.per_ip_calls.get(key, 0)

            if used >= self.per_ip_limit:
                return self._deny(DENIED_PER_IP_CAP, used, usage.total_cost, ip_address=key)

            if self._over_budget(usage.total_calls + 1):
                return self._deny(
                    DENIED_BUDGET,
                    used,
                    usage.total_cost,
                    daily_budget=self.daily_budget,
                )

            usage.per_ip_calls[key] = used + 1
            usage.total_calls += 1
            usage.total_cost += self.cost_per_call
            return UsageDecision(
                allowed=True,
                used_by_ip=used + 1,
                per_ip_limit=self.per_ip_limit,
                spent=usage.total_cost,
            )

    async def release(self, ip_address: str | None) -> None:
        key = ip_address or "unknown"
        async with self._lock:
            usage = self._usage
            used = usage.per_ip_calls.get(key, 0)
            if used <= 0:
                return
            usage.per_ip_calls[key] = used - 1
            usage.total_calls = max(0, usage.total_calls - 1)
            usage.total_cost = max(0.0, usage.total_cost - self.cost_per_call)

    async def snapshot(self) -> dict[str, Any]:
        return {
            "backend": self.backend,
            "day": self._usage.day.isoformat(),
            "total_calls": self._usage.total_calls,
            "total_cost": round(self._usage.total_cost, 4),
            "clients": len(self._usage.per_ip_calls),
        }


class RedisLLMUsageTracker(UsageTracker):
    """
    Daily counters in Redis, one key per IP and one for the day's total.

    Keys carry the UTC date and expire at the next UTC midnight. A call is
    reserved by incrementing first and backing the increment out when a
    limit is crossed, so concurrent instances never overshoot either cap.
    """

    backend = "redis"

    def __init__(self, redis_client: FastRedisClient, prefix: str = "llm_usage", **kwargs):
        super().__init__(**kwargs)
        self.redis_client = redis_client
        self.prefix = prefix

    def _day_stamp(self) -> str:
        return self._today().strftime("%Y%m%d")

    def _ip_key(self, ip_address: str) -> str:
        return f"{self.prefix}:ip:{ip_address}:{self._day_stamp()}"

    def _total_key(self) -> str:
        return f"{self.prefix}:total:{self._day_stamp()}"

    def _seconds_until_midnight_utc(self) -> int:
        now = self.clock().astimezone(UTC)
        tomorrow = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
        return max(1, int((tomorrow - now).total_seconds()))

    async def _count(self, key: str) -> int:
        value = await self.redis_client.get(key)
        if value is None:
            return 0
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning("Invalid usage value in Redis", key=key, value=value)
            return 0

    async def try_acquire(self, ip_address: str | None) -> UsageDecision:
        key = ip_address or "unknown"
        ip_key = self._ip_key(key)
        total_key = self._total_key()
        ttl = self._seconds_until_midnight_utc()

        used = await self.redis_client.incr_with_ttl(ip_key, ttl)
        if used is None:
            return self._deny(DENIED_UNAVAILABLE, 0, 0.0, ip_address=key)

        if used > self.per_ip_limit:
            await self.redis_client.decr(ip_key)
            spent = await self._count(total_key) * self.cost_per_call
            return self._deny(DENIED_PER_IP_CAP, used - 1, spent, ip_address=key)

        total = await self.redis_client.incr_with_ttl(total_key, ttl)
        if total is None:
            await self.redis_client.decr(ip_key)
            return self._deny(DENIED_UNAVAILABLE, used - 1, 0.0, ip_address=key)

        if self._over_budget(total):
            await self.redis_client.decr(total_key)
            await self.redis_client.decr(ip_key)
            spent = (total - 1) * self.cost_per_call
            return self._deny(
                DENIED_BUDGET,
                used - 1,
                spent,
                daily_budget=self.daily_budget,
            )

        return UsageDecision(
            allowed=True,
            used_by_ip=used,
            per_ip_limit=self.per_ip_limit,
            spent=total * self.cost_per_call,
        )

    async def release(self, ip_address: str | None) -> None:
        ip_key = self._ip_key(ip_address or "unknown")
        if await self._count(ip_key) <= 0:
            return
        await self.redis_client.decr(ip_key)
        await self.redis_client.decr(self._total_key())

    async def snapshot(self) -> dict[str, Any]:
        calls = await self._count(self._total_key())
        return {
            "backend": self.backend,
            "day": self._today().isoformat(),
            "total_calls": calls,
            "total_cost": round(calls * self.cost_per_call, 4),
        }


def build_usage_tracker() -> UsageTracker:
    """Create the tracker matching the configured rate-limit backend."""
    limits = {
        "per_ip_limit": settings.LLM_PER_IP_DAILY_LIMIT,
        "daily_budget": settings.LLM_DAILY_BUDGET,
        "cost_per_call": settings.LLM_COST_PER_CALL,
    }
    if settings.RATE_LIMIT_BACKEND == "redis":
        return RedisLLMUsageTracker(fast_redis, **limits)
    return LLMUsageTracker(**limits)


# Global singleton
llm_usage_tracker = build_usage_tracker()
