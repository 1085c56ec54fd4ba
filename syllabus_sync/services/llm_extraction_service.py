# syllabus_sync/services/llm_extraction_service.py
"""
LLM Extraction Service
Sends the syllabus prompt to the OpenAI chat completions API and parses the
reply into untrusted event candidates. Every candidate still goes through
the validator before it reaches a client.
"""

import asyncio
import json
import random
import time
from typing import Any

import openai
from openai import AsyncOpenAI

from syllabus_sync.config import settings
from syllabus_sync.infrastructure.observability.logging import get_logger
from syllabus_sync.prompts.parse_syllabus import ParsePromptRequest

logger = get_logger(__name__)

# Error codes surfaced to API clients
CONFIG_MISSING = "CONFIG_MISSING"
LLM_TIMEOUT = "LLM_TIMEOUT"
LLM_HTTP = "LLM_HTTP"
LLM_CONNECTION = "LLM_CONNECTION"
LLM_EMPTY = "LLM_EMPTY"
INVALID_JSON = "INVALID_JSON"
INVALID_SHAPE = "INVALID_SHAPE"

RETRIABLE_STATUS = frozenset({408, 429})


class LLMExtractionError(Exception):
    """Raised when the LLM call or its reply cannot be used."""

    def __init__(
        self,
        message: str,
        code: str = LLM_HTTP,
        api_error: str | None = None,
        recoverable: bool = True,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.api_error = api_error
        self.recoverable = recoverable
        self.status_code = status_code

    @property
    def http_status(self) -> int:
        """Status the API answers with: 504 for timeouts, 502 otherwise."""
        return 504 if self.code == LLM_TIMEOUT else 502


def _is_retriable_status(status: int | None) -> bool:
    return status is not None and (status in RETRIABLE_STATUS or 500 <= status < 600)


def parse_events_reply(raw: str) -> list[Any]:
    """Strictly parse ``{"events": [...]}``; anything else is an error."""
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise LLMExtractionError("Invalid JSON from LLM", code=INVALID_JSON, api_error=raw[:300]) from e

    if not isinstance(payload, dict) or not isinstance(payload.get("events"), list):
        raise LLMExtractionError(
            'Expected a JSON object with an "events" array', code=INVALID_SHAPE
        )

    return payload["events"]


class LLMExtractionService:
    """
    Thin adapter over AsyncOpenAI.

    Timeouts, connection errors, 408/429 and 5xx responses are retried with
    exponential backoff; other 4xx responses fail immediately. Malformed
    replies are retried too, since a second sample usually parses.
    """

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        timeout_seconds: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
    ):
        self.timeout_seconds = timeout_seconds or settings.LLM_TIMEOUT_SECONDS
        self.max_retries = settings.LLM_MAX_RETRIES if max_retries is None else max_retries
        self.backoff_seconds = (
            settings.LLM_RETRY_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        )
        self.client = client

    def _get_client(self) -> AsyncOpenAI:
        if self.client is None:
            if not settings.OPENAI_API_KEY:
                raise LLMExtractionError(
                    "OPENAI_API_KEY not configured", code=CONFIG_MISSING, recoverable=False
                )
            # Retries are handled here so backoff and logging stay in one place
            self.client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=self.timeout_seconds,
                max_retries=0,
            )
            logger.info("OpenAI client initialized", timeout=self.timeout_seconds)
        return self.client

    def _backoff(self, attempt: int) -> float:
        return self.backoff_seconds * (2**attempt) + random.uniform(0, self.backoff_seconds / 1.5)

    async def extract(self, prompt: ParsePromptRequest) -> list[Any]:
        """
        Run the prompt and return the raw ``events`` list.

        Raises:
            LLMExtractionError: after the last failed attempt, or immediately
            for non-retriable client errors
        """
        client = self._get_client()
        attempts = self.max_retries + 1
        started = time.perf_counter()
        last_error: LLMExtractionError | None = None

        for attempt in range(attempts):
            try:
                logger.debug(
                    "Calling LLM for syllabus extraction",
                    attempt=attempt + 1,
                    max_attempts=attempts,
                    model=prompt.model,
                )
                response = await client.chat.completions.create(**prompt.to_create_kwargs())

                if not response.choices or not response.choices[0].message.content:
                    raise LLMExtractionError("LLM returned empty content", code=LLM_EMPTY)

                events = parse_events_reply(response.choices[0].message.content.strip())

                logger.info(
                    "LLM extraction succeeded",
                    attempt=attempt + 1,
                    events=len(events),
                    usage_tokens=response.usage.total_tokens if response.usage else 0,
                    duration_ms=round((time.perf_counter() - started) * 1000, 1),
                )
                return events

            except LLMExtractionError as e:
                last_error = e
                logger.warning(
                    "LLM reply unusable, retrying", attempt=attempt + 1, code=e.code, error=str(e)
                )

            except openai.APITimeoutError as e:
                last_error = LLMExtractionError(
                    "LLM request timed out", code=LLM_TIMEOUT, api_error=str(e)
                )
                logger.warning(
                    "LLM timeout, retrying", attempt=attempt + 1, timeout=self.timeout_seconds
                )

            except openai.APIConnectionError as e:
                last_error = LLMExtractionError(
                    "Could not reach LLM service", code=LLM_CONNECTION, api_error=str(e)
                )
                logger.warning("LLM connection error, retrying", attempt=attempt + 1, error=str(e))

            except openai.APIStatusError as e:
                retriable = _is_retriable_status(e.status_code)
                last_error = LLMExtractionError(
                    f"LLM HTTP {e.status_code}",
                    code=LLM_HTTP,
                    api_error=str(e)[:300],
                    recoverable=retriable,
                    status_code=e.status_code,
                )
                if not retriable:
                    logger.error(
                        "LLM client error (not retrying)", status_code=e.status_code, error=str(e)
                    )
                    break
                logger.warning(
                    "LLM API error, retrying",
                    attempt=attempt + 1,
                    status_code=e.status_code,
                    error=str(e),
                )

            if attempt < attempts - 1:
                await asyncio.sleep(self._backoff(attempt))

        logger.error(
            "LLM extraction failed",
            attempts=attempts,
            code=last_error.code if last_error else None,
            final_error=str(last_error),
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        raise last_error or LLMExtractionError("LLM call failed")


llm_extraction_service = LLMExtractionService()
