"""
Tests for the end-to-end parse service.
"""

import json

import httpx
import openai
import pytest

from syllabus_sync.config import settings
from syllabus_sync.models.api.parse_request import ParseRequest
from syllabus_sync.models.domain.event_domain import EventItem, EventType
from syllabus_sync.services.llm_extraction_service import LLMExtractionError, LLMExtractionService
from syllabus_sync.services.llm_usage_tracker import DENIED_PER_IP_CAP, LLMUsageTracker
from syllabus_sync.services.syllabus_parse_service import (
    CourseCodeNotFoundError,
    SyllabusParseService,
    average_confidence,
)

LLM_REPLY = json.dumps(
    {
        "events": [
            {
                "id": "assignment-1",
                "courseCode": "CS101",
                "type": "ASSIGNMENT",
                "title": "Assignment 1",
                "start": "2025-09-12T23:59:00.000-04:00",
                "allDay": False,
                "confidence": 0.9,
            },
            {
                "id": "lecture",
                "courseCode": "CS101",
                "type": "LECTURE",
                "title": "Lecture",
                "start": "2025-09-02T10:00:00.000-04:00",
                "end": "2025-09-02T11:20:00.000-04:00",
                "allDay": False,
                "recurrenceRule": "FREQ=WEEKLY;BYDAY=TU,TH",
                "confidence": 0.8,
            },
        ]
    }
)

SYLLABUS = "CS101 Introduction\nAssignment 1 due Sept 12 at 11:59 PM"


@pytest.fixture
def llm_enabled(monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test")


def make_service(fake_openai, replies, tracker=None):
    extraction = LLMExtractionService(
        client=fake_openai(replies), max_retries=0, backoff_seconds=0
    )
    return SyllabusParseService(
        extraction_service=extraction,
        usage_tracker=tracker or LLMUsageTracker(),
        model="gpt-4o-mini",
    )


@pytest.mark.asyncio
async def test_heuristic_path_when_llm_not_configured(fake_openai):
    service = make_service(fake_openai, [])
    request = ParseRequest(text=SYLLABUS, term_start="2025-09-01", timezone="America/Toronto")

    response = await service.parse(request, client_ip="1.2.3.4")

    assert response.source == "heuristic"
    assert response.diagnostics.course_code == "CS101"
    assert response.diagnostics.course_code_detected is True
    assert response.diagnostics.llm is None
    assert response.diagnostics.heuristic["candidatesGenerated"] == 1
    assert len(response.events) == 1
    event = response.events[0]
    assert event.type == EventType.ASSIGNMENT
    assert event.course_code == "CS101"
    assert event.start == "2025-09-12T23:59:00.000-04:00"
    assert response.confidence == round(event.confidence, 3)


@pytest.mark.asyncio
async def test_given_course_code_is_not_marked_detected(fake_openai):
    service = make_service(fake_openai, [])

    response = await service.parse(
        ParseRequest(text="Quiz 1 on Oct 3, 2025", course_code=" MATH-151 ")
    )

    assert response.diagnostics.course_code == "MATH-151"
    assert response.diagnostics.course_code_detected is False
    assert response.events[0].course_code == "MATH-151"


@pytest.mark.asyncio
async def test_missing_course_code(fake_openai):
    service = make_service(fake_openai, [])

    with pytest.raises(CourseCodeNotFoundError):
        await service.parse(ParseRequest(text="Assignment 1 due Sept 12"))


@pytest.mark.asyncio
async def test_llm_path_validates_and_splits(fake_openai, llm_enabled):
    service = make_service(fake_openai, [LLM_REPLY])

    response = await service.parse(
        ParseRequest(text=SYLLABUS, term_start="2025-09-01", term_end="2025-12-15"),
        client_ip="1.2.3.4",
    )

    assert response.source == "llm"
    assert [e.id for e in response.events] == ["assignment-1", "lecture-tu", "lecture-th"]
    assert response.events[2].start == "2025-09-04T10:00:00.000-04:00"
    assert response.confidence == pytest.approx(0.833)
    assert response.diagnostics.llm.model == "gpt-4o-mini"
    assert response.diagnostics.llm.denied is None
    assert response.diagnostics.heuristic is None
    assert response.diagnostics.validation["validEvents"] == 2

    call = service.extraction_service.client.completions.calls[0]
    assert call["max_tokens"] == settings.OPENAI_MAX_TOKENS
    assert '"courseCode":"CS101"' in call["messages"][-1]["content"]


@pytest.mark.asyncio
async def test_split_occurrence_past_term_end_is_dropped(fake_openai, llm_enabled):
    reply = json.dumps(
        {
            "events": [
                {
                    "id": "lecture",
                    "courseCode": "CS101",
                    "type": "LECTURE",
                    "title": "Lecture",
                    "start": "2025-12-15T10:00:00.000-05:00",
                    "allDay": False,
                    "recurrenceRule": "FREQ=WEEKLY;BYDAY=MO,FR",
                    "confidence": 0.8,
                }
            ]
        }
    )
    service = make_service(fake_openai, [reply])

    response = await service.parse(
        ParseRequest(
            text=SYLLABUS,
            term_start="2025-09-01",
            term_end="2025-12-15",
            timezone="America/Toronto",
        )
    )

    assert [e.id for e in response.events] == ["lecture-mo"]
    assert response.events[0].start == "2025-12-15T10:00:00.000-05:00"
    assert 'Event "Lecture (Fri)" starts after the term window and was dropped' in (
        response.diagnostics.warnings
    )


@pytest.mark.asyncio
async def test_invalid_llm_events_are_reported(fake_openai, llm_enabled):
    reply = json.dumps(
        {
            "events": [
                {"id": "x", "courseCode": "CS101", "type": "EXAM", "title": "Exam", "start": "2025-10-01"},
            ]
        }
    )
    service = make_service(fake_openai, [reply])

    response = await service.parse(ParseRequest(text=SYLLABUS))

    assert response.events == []
    assert response.confidence == 0.0
    assert response.diagnostics.validation["invalidEvents"] == 1
    assert any(w.startswith("Event 1: type") for w in response.diagnostics.warnings)


@pytest.mark.asyncio
async def test_denied_llm_falls_back_to_heuristics(fake_openai, llm_enabled):
    service = make_service(fake_openai, [LLM_REPLY], tracker=LLMUsageTracker(per_ip_limit=0))

    response = await service.parse(ParseRequest(text=SYLLABUS, term_start="2025-09-01"), "1.2.3.4")

    assert response.source == "heuristic"
    assert response.diagnostics.llm.denied == DENIED_PER_IP_CAP
    assert service.extraction_service.client.completions.calls == []


@pytest.mark.asyncio
async def test_llm_failure_propagates_and_releases_reservation(
    fake_openai, llm_enabled, openai_request
):
    tracker = LLMUsageTracker(per_ip_limit=1)
    bad_request = openai.APIStatusError(
        "bad request", response=httpx.Response(400, request=openai_request), body=None
    )
    service = make_service(fake_openai, [bad_request], tracker=tracker)

    with pytest.raises(LLMExtractionError):
        await service.parse(ParseRequest(text=SYLLABUS), "1.2.3.4")

    assert (await tracker.snapshot())["total_calls"] == 0
    assert (await tracker.try_acquire("1.2.3.4")).allowed is True


@pytest.mark.asyncio
async def test_disabled_llm_uses_heuristics(fake_openai, llm_enabled, monkeypatch):
    monkeypatch.setattr(settings, "LLM_ENABLED", False)
    service = make_service(fake_openai, [LLM_REPLY])

    response = await service.parse(ParseRequest(text=SYLLABUS, term_start="2025-09-01"))

    assert response.source == "heuristic"
    assert response.diagnostics.llm is None


def test_average_confidence():
    def event(event_id, confidence):
        return EventItem(
            id=event_id,
            course_code="CS101",
            type=EventType.QUIZ,
            title="Quiz",
            start="2025-10-03T00:00:00.000+00:00",
            all_day=True,
            confidence=confidence,
        )

    assert average_confidence([]) == 0.0
    assert average_confidence([event("a", 0.9), event("b", None), event("c", 0.5)]) == 0.467
