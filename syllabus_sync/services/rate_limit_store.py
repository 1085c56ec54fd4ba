# syllabus_sync/services/rate_limit_store.py
"""
Counter stores for the sliding-window rate limiter.

Both stores answer the same question atomically: "record a hit for this
key unless it already has ``limit`` hits inside the window". The memory
store keeps counters inside this process; the Redis store shares them
across every instance pointed at the same Redis.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass

from syllabus_sync.services.redis_client import FastRedisClient


@dataclass(frozen=True)
class WindowHit:
    allowed: bool
    count: int
    oldest: float  # timestamp of the oldest hit in the window, 0 when allowed


class RateLimitStore(ABC):
    @abstractmethod
    async def hit(self, key: str, limit: int, window_seconds: int, now: float) -> WindowHit:
        """Atomically check and record one request for ``key``."""

    async def ping(self) -> bool:
        return True

    async def reset(self) -> None:
        """Forget all counters. Only meaningful for process-local stores."""


class InMemoryRateLimitStore(RateLimitStore):
    """
    Per-key deques of hit timestamps guarded by one asyncio.Lock.

    A key is removed once its window holds no hits, and keys no client has
    touched within their window are swept every ``sweep_interval`` seconds.
    """

    def __init__(self, sweep_interval: float = 60.0):
        self._hits: dict[str, deque[float]] = {}
        self._windows: dict[str, int] = {}
        self._lock = asyncio.Lock()
        self.sweep_interval = sweep_interval
        self._last_sweep: float | None = None

    @property
    def tracked_keys(self) -> int:
        return len(self._hits)

    def _sweep(self, now: float) -> None:
        if self._last_sweep is not None and now - self._last_sweep < self.sweep_interval:
            return
        self._last_sweep = now
        stale = [
            key
            for key, hits in self._hits.items()
            if not hits or hits[-1] <= now - self._windows.get(key, 0)
        ]
        for key in stale:
            del self._hits[key]
            self._windows.pop(key, None)

    async def hit(self, key: str, limit: int, window_seconds: int, now: float) -> WindowHit:
        async with self._lock:
            self._sweep(now)

            hits = self._hits.get(key) or deque()
            window_start = now - window_seconds
            while hits and hits[0] <= window_start:
                hits.popleft()

            if len(hits) >= limit:
                if hits:
                    self._hits[key] = hits
                    self._windows[key] = window_seconds
                else:
                    self._hits.pop(key, None)
                    self._windows.pop(key, None)
                return WindowHit(allowed=False, count=len(hits), oldest=hits[0] if hits else 0.0)

            hits.append(now)
            self._hits[key] = hits
            self._windows[key] = window_seconds
            return WindowHit(allowed=True, count=len(hits), oldest=0.0)

    async def reset(self) -> None:
        async with self._lock:
            self._hits.clear()
            self._windows.clear()
            self._last_sweep = None


class RedisRateLimitStore(RateLimitStore):
    """Sorted set per key, checked and updated in a single Lua script."""

    # Returns: {allowed (0 or 1), current_count, oldest_timestamp or 0}
    RATE_LIMIT_LUA_SCRIPT = """
    local key = KEYS[1]
    local limit = tonumber(ARGV[1])
    local window_seconds = tonumber(ARGV[2])
    local current_time = tonumber(ARGV[3])
    local unique_id = ARGV[4]

    local window_start = current_time - window_seconds
    redis.call('ZREMRANGEBYSCORE', key, 0, window_start)

    local current_count = redis.call('ZCARD', key)

    if current_count >= limit then
        local oldest_entries = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
        local oldest_timestamp = 0
        if #oldest_entries > 0 then
            oldest_timestamp = tonumber(oldest_entries[2])
        end
        return {0, current_count, tostring(oldest_timestamp)}
    end

    redis.call('ZADD', key, current_time, unique_id)
    redis.call('EXPIRE', key, window_seconds * 2)

    return {1, current_count + 1, '0'}
    """

    def __init__(self, redis_client: FastRedisClient, prefix: str = "ratelimit"):
        self.redis_client = redis_client
        self.prefix = prefix

    async def hit(self, key: str, limit: int, window_seconds: int, now: float) -> WindowHit:
        if not self.redis_client.client:
            raise ConnectionError("Redis client not initialized")

        unique_id = f"{now}:{time.time_ns()}"
        result = await self.redis_client.client.eval(
            self.RATE_LIMIT_LUA_SCRIPT,
            1,
            f"{self.prefix}:{key}",
            limit,
            window_seconds,
            now,
            unique_id,
        )
        return WindowHit(
            allowed=bool(int(result[0])),
            count=int(result[1]),
            oldest=float(result[2] or 0),
        )

    async def ping(self) -> bool:
        return await self.redis_client.ping()
