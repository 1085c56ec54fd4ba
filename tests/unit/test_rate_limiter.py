"""
Tests for the sliding window rate limiter and its stores.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from syllabus_sync.middleware.rate_limiter import RateLimiter
from syllabus_sync.services.rate_limit_store import (
    InMemoryRateLimitStore,
    RedisRateLimitStore,
)


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_limiter(limit=2, window_seconds=60, **kwargs):
    clock = FakeClock()
    limiter = RateLimiter(
        store=InMemoryRateLimitStore(),
        default_limit=limit,
        window_seconds=window_seconds,
        clock=clock,
        **kwargs,
    )
    return limiter, clock


@pytest.mark.asyncio
async def test_third_request_is_denied_with_retry_after():
    limiter, _ = make_limiter()

    first = await limiter.check_ip_rate_limit("1.2.3.4")
    second = await limiter.check_ip_rate_limit("1.2.3.4")
    allowed, info = await limiter.check_ip_rate_limit("1.2.3.4")

    assert first[0] is True and first[1]["remaining"] == 1
    assert second[0] is True and second[1]["remaining"] == 0
    assert allowed is False
    assert info["remaining"] == 0
    assert info["retry_after"] > 0


@pytest.mark.asyncio
async def test_other_clients_are_unaffected():
    limiter, _ = make_limiter()

    await limiter.check_ip_rate_limit("1.2.3.4")
    await limiter.check_ip_rate_limit("1.2.3.4")
    allowed, info = await limiter.check_ip_rate_limit("5.6.7.8")

    assert allowed is True
    assert info["remaining"] == 1


@pytest.mark.asyncio
async def test_window_slides():
    limiter, clock = make_limiter()

    await limiter.check_ip_rate_limit("1.2.3.4")
    clock.now += 30
    await limiter.check_ip_rate_limit("1.2.3.4")

    allowed, info = await limiter.check_ip_rate_limit("1.2.3.4")
    assert allowed is False
    assert info["retry_after"] == 30

    # First hit ages out
    clock.now += 31
    allowed, _ = await limiter.check_ip_rate_limit("1.2.3.4")
    assert allowed is True


@pytest.mark.asyncio
async def test_missing_ip_uses_shared_bucket():
    limiter, _ = make_limiter(limit=1)

    await limiter.check_ip_rate_limit(None)
    allowed, _ = await limiter.check_ip_rate_limit(None)

    assert allowed is False


@pytest.mark.asyncio
async def test_store_failure_fails_open():
    store = MagicMock()
    store.hit = AsyncMock(side_effect=ConnectionError("down"))
    limiter = RateLimiter(store=store, default_limit=5, fail_open=True)

    allowed, info = await limiter.check_ip_rate_limit("1.2.3.4")

    assert allowed is True
    assert info["error"] == "rate_limiter_error"


@pytest.mark.asyncio
async def test_store_failure_fails_closed_when_configured():
    store = MagicMock()
    store.hit = AsyncMock(side_effect=ConnectionError("down"))
    limiter = RateLimiter(store=store, default_limit=5, window_seconds=60, fail_open=False)

    allowed, info = await limiter.check_ip_rate_limit("1.2.3.4")

    assert allowed is False
    assert info["retry_after"] == 60


@pytest.mark.asyncio
async def test_memory_store_reset():
    store = InMemoryRateLimitStore()

    await store.hit("ip:a", 1, 60, 100.0)
    denied = await store.hit("ip:a", 1, 60, 101.0)
    await store.reset()
    after_reset = await store.hit("ip:a", 1, 60, 102.0)

    assert denied.allowed is False
    assert denied.oldest == 100.0
    assert after_reset.allowed is True


@pytest.mark.asyncio
async def test_memory_store_forgets_clients_whose_window_expired():
    store = InMemoryRateLimitStore(sweep_interval=60)

    for i in range(1000):
        await store.hit(f"ip:10.0.{i // 256}.{i % 256}", 5, 60, 0.0)
    assert store.tracked_keys == 1000

    await store.hit("ip:192.168.1.1", 5, 60, 10_000.0)

    assert store.tracked_keys == 1


@pytest.mark.asyncio
async def test_memory_store_keeps_clients_inside_their_window():
    store = InMemoryRateLimitStore(sweep_interval=0)

    await store.hit("ip:a", 1, 600, 0.0)
    await store.hit("ip:b", 1, 60, 0.0)
    denied = await store.hit("ip:a", 1, 600, 120.0)

    assert denied.allowed is False
    assert store.tracked_keys == 1


@pytest.mark.asyncio
async def test_memory_store_drops_key_emptied_by_pruning():
    store = InMemoryRateLimitStore(sweep_interval=3600)

    await store.hit("ip:a", 1, 60, 0.0)
    # A zero limit denies without recording, and the pruned key is not kept
    denied = await store.hit("ip:a", 0, 60, 100.0)

    assert denied.allowed is False
    assert denied.oldest == 0.0
    assert store.tracked_keys == 0


@pytest.mark.asyncio
async def test_redis_store_runs_script_and_parses_result():
    redis_client = MagicMock()
    redis_client.client.eval = AsyncMock(return_value=[0, 2, "1000.5"])
    store = RedisRateLimitStore(redis_client)

    window = await store.hit("ip:1.2.3.4", 2, 60, 1010.0)

    assert window.allowed is False
    assert window.count == 2
    assert window.oldest == 1000.5
    args = redis_client.client.eval.await_args.args
    assert args[1] == 1
    assert args[2] == "ratelimit:ip:1.2.3.4"


@pytest.mark.asyncio
async def test_redis_store_without_client_raises():
    redis_client = MagicMock()
    redis_client.client = None
    store = RedisRateLimitStore(redis_client)

    with pytest.raises(ConnectionError):
        await store.hit("ip:a", 1, 60, 1.0)
