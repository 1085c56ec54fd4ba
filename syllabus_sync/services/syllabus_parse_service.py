# syllabus_sync/services/syllabus_parse_service.py
"""
Syllabus Parse Service
Runs one parse request end to end: course code, extractor choice (LLM or
heuristics), validation, recurrence splitting and the response envelope.
"""

import time
from datetime import date
from typing import Any

from syllabus_sync.config import settings
from syllabus_sync.infrastructure.observability.logging import get_logger
from syllabus_sync.models.api.parse_request import ParseRequest
from syllabus_sync.models.api.parse_response import LLMDiagnostics, ParseDiagnostics, ParseResponse
from syllabus_sync.models.domain.event_domain import EventItem, ValidationConfig
from syllabus_sync.parsing.course_code import detect_course_code
from syllabus_sync.parsing.event_builder import build_events
from syllabus_sync.prompts.parse_syllabus import build_parse_request
from syllabus_sync.services.llm_extraction_service import (
    LLMExtractionError,
    LLMExtractionService,
    llm_extraction_service,
)
from syllabus_sync.services.llm_usage_tracker import UsageTracker, llm_usage_tracker
from syllabus_sync.utils.dates import LocalDateTime
from syllabus_sync.utils.recurrence import split_multi_day_recurrence
from syllabus_sync.validation.event_validation import drop_events_after_term, validate_events

logger = get_logger(__name__)


class CourseCodeNotFoundError(Exception):
    """No course code was supplied and none could be found in the text."""

    code = "COURSE_CODE_NOT_FOUND"
    recoverable = False


def average_confidence(events: list[EventItem]) -> float:
    """Mean confidence, counting a missing confidence as 0, rounded to 3 places."""
    if not events:
        return 0.0
    return round(sum(event.confidence or 0.0 for event in events) / len(events), 3)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class SyllabusParseService:
    def __init__(
        self,
        extraction_service: LLMExtractionService | None = None,
        usage_tracker: UsageTracker | None = None,
        model: str | None = None,
    ):
        self.extraction_service = extraction_service or llm_extraction_service
        self.usage_tracker = usage_tracker or llm_usage_tracker
        self.model = model or settings.OPENAI_MODEL

    async def parse(self, request: ParseRequest, client_ip: str | None = None) -> ParseResponse:
        """
        Extract, validate and normalize events for one request.

        Raises:
            CourseCodeNotFoundError: no course code given or detected
            LLMExtractionError: the LLM call failed after its retries
        """
        started = time.perf_counter()

        course_code = request.course_code
        detected = False
        if not course_code:
            course_code = detect_course_code(request.text)
            detected = course_code is not None
        if not course_code:
            raise CourseCodeNotFoundError(
                "No course code found in the syllabus text; provide courseCode"
            )

        llm: LLMDiagnostics | None = None
        heuristic: dict[str, Any] | None = None
        candidates: list[Any] | None = None

        if settings.llm_configured():
            decision = await self.usage_tracker.try_acquire(client_ip)
            if decision.allowed:
                candidates, llm = await self._extract_with_llm(request, course_code, client_ip)
            else:
                llm = LLMDiagnostics(model=self.model, denied=decision.denied_reason)

        source = "llm" if candidates is not None else "heuristic"
        if candidates is None:
            extraction = build_events(
                request.text,
                course_code=course_code,
                timezone=request.timezone,
                default_year=self._default_year(request),
            )
            candidates = extraction.candidates
            heuristic = extraction.stats.to_dict()

        config = ValidationConfig(
            term_start=request.term_start,
            term_end=request.term_end,
            default_course_code=course_code,
            timezone=request.timezone,
        )
        result = validate_events(candidates, config)
        events, term_warnings = drop_events_after_term(
            split_multi_day_recurrence(result.events), config
        )

        diagnostics = ParseDiagnostics(
            processing_time_ms=_elapsed_ms(started),
            text_length=len(request.text),
            course_code=course_code,
            course_code_detected=detected,
            warnings=[*result.warnings, *term_warnings, *result.errors],
            validation=result.stats.to_dict(),
            llm=llm,
            heuristic=heuristic,
        )

        logger.info(
            "Syllabus parsed",
            source=source,
            course_code=course_code,
            events=len(events),
            invalid=result.stats.invalid_events,
            llm_denied=llm.denied if llm else None,
            duration_ms=diagnostics.processing_time_ms,
        )
        return ParseResponse(
            events=events,
            source=source,
            confidence=average_confidence(events),
            diagnostics=diagnostics,
        )

    async def _extract_with_llm(
        self, request: ParseRequest, course_code: str, client_ip: str | None
    ) -> tuple[list[Any], LLMDiagnostics]:
        prompt = build_parse_request(
            request.text,
            course_code=course_code,
            term_start=request.term_start,
            term_end=request.term_end,
            timezone=request.timezone,
            model=self.model,
            max_tokens=settings.OPENAI_MAX_TOKENS,
        )
        started = time.perf_counter()
        try:
            candidates = await self.extraction_service.extract(prompt)
        except LLMExtractionError:
            # The call produced nothing, so it does not count against the client
            await self.usage_tracker.release(client_ip)
            raise
        return candidates, LLMDiagnostics(model=self.model, processing_time_ms=_elapsed_ms(started))

    @staticmethod
    def _default_year(request: ParseRequest) -> int:
        if request.term_start:
            return LocalDateTime.parse(request.term_start).year
        return date.today().year


syllabus_parse_service = SyllabusParseService()
