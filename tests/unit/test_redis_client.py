"""
Tests for the counter helpers on the pooled Redis client.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from syllabus_sync.services.redis_client import FastRedisClient


class FakePipeline:
    def __init__(self, results):
        self.results = results
        self.commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def incr(self, key):
        self.commands.append(("incr", key))

    def expire(self, key, ttl):
        self.commands.append(("expire", key, ttl))

    async def execute(self):
        return self.results


def make_client():
    client = FastRedisClient()
    client.client = MagicMock()
    client._initialized = True
    return client


@pytest.mark.asyncio
async def test_incr_with_ttl_sets_expiry_in_one_transaction():
    client = make_client()
    pipeline = FakePipeline([3, True])
    client.client.pipeline.return_value = pipeline

    value = await client.incr_with_ttl("llm_usage:total:20250902", 3600)

    assert value == 3
    client.client.pipeline.assert_called_once_with(transaction=True)
    assert pipeline.commands == [
        ("incr", "llm_usage:total:20250902"),
        ("expire", "llm_usage:total:20250902", 3600),
    ]


@pytest.mark.asyncio
async def test_decr_returns_new_value():
    client = make_client()
    client.client.decr = AsyncMock(return_value=4)

    assert await client.decr("counter") == 4
    client.client.decr.assert_awaited_once_with("counter", 1)


@pytest.mark.asyncio
async def test_get_returns_none_on_error():
    client = make_client()
    client.client.get = AsyncMock(side_effect=ConnectionError("Connection refused"))

    assert await client.get("counter") is None


@pytest.mark.asyncio
async def test_counters_return_none_without_redis(monkeypatch):
    monkeypatch.setattr("syllabus_sync.services.redis_client.settings.REDIS_URL", None)
    client = FastRedisClient()

    assert await client.incr_with_ttl("counter", 60) is None
    assert await client.decr("counter") is None
