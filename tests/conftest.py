from types import SimpleNamespace

import httpx
import pytest

from syllabus_sync.config import settings
from syllabus_sync.middleware.rate_limiter import rate_limiter
from syllabus_sync.services.llm_usage_tracker import DailyUsage, llm_usage_tracker
from syllabus_sync.services.rate_limit_store import InMemoryRateLimitStore

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


@pytest.fixture(autouse=True)
def isolated_state(monkeypatch):
    """No real LLM calls, fresh rate-limit counters and LLM usage per test."""
    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
    monkeypatch.setattr(settings, "LLM_ENABLED", True)
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(rate_limiter, "store", InMemoryRateLimitStore())
    monkeypatch.setattr(llm_usage_tracker, "_usage", DailyUsage(day=llm_usage_tracker._today()))


def chat_reply(content: str | None):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=42),
    )


class FakeCompletions:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return chat_reply(reply)


class FakeOpenAI:
    """Stands in for AsyncOpenAI: replays strings as replies, raises exceptions."""

    def __init__(self, replies):
        self.completions = FakeCompletions(replies)
        self.chat = SimpleNamespace(completions=self.completions)


@pytest.fixture
def fake_openai():
    return FakeOpenAI


@pytest.fixture
def openai_request():
    return httpx.Request("POST", OPENAI_URL)
