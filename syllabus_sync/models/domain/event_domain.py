# syllabus_sync/models/domain/event_domain.py
"""
Event Domain Models
Types shared by the classifier, validator, splitter and parse service.

EventCandidate is the untrusted shape coming back from the LLM or the
heuristic extractor. Only after the validator has applied defaults,
clamping and canonical formatting does a record become an EventItem.
"""

import math
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from syllabus_sync.utils.dates import LocalDateTime


class EventType(StrEnum):
    ASSIGNMENT = "ASSIGNMENT"
    QUIZ = "QUIZ"
    MIDTERM = "MIDTERM"
    FINAL = "FINAL"
    LAB = "LAB"
    LECTURE = "LECTURE"
    OTHER = "OTHER"


# Fallback titles for events that arrive without one
TYPE_LABELS: dict[EventType, str] = {
    EventType.ASSIGNMENT: "Assignment",
    EventType.QUIZ: "Quiz",
    EventType.MIDTERM: "Midterm Exam",
    EventType.FINAL: "Final Exam",
    EventType.LAB: "Lab Session",
    EventType.LECTURE: "Lecture",
    EventType.OTHER: "Event",
}

# Accepted in non-strict mode only; anything else outside EventType is rejected
TYPE_SYNONYMS: dict[str, EventType] = {
    "PROJECT": EventType.ASSIGNMENT,
    "HOMEWORK": EventType.ASSIGNMENT,
    "TEST": EventType.QUIZ,
    "CLASS": EventType.LECTURE,
    "SESSION": EventType.LECTURE,
}

DAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")
RRULE_FREQUENCIES = ("DAILY", "WEEKLY", "MONTHLY", "YEARLY")

ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
_BYDAY_ITEM = re.compile(r"^([+-]?\d{1,2})?(MO|TU|WE|TH|FR|SA|SU)$")

TITLE_MAX = 200
LOCATION_MAX = 100
NOTES_MAX = 1000
REMINDER_MAX_MINUTES = 43200  # 30 days


def normalize_rrule(value: str) -> str:
    """Uppercase an RRULE body, drop an ``RRULE:`` prefix and check FREQ/BYDAY."""
    rule = value.strip()
    if rule.upper().startswith("RRULE:"):
        rule = rule[len("RRULE:"):]
    rule = rule.upper().strip().strip(";")
    if not rule:
        raise ValueError("recurrence rule is empty")

    parts: dict[str, str] = {}
    for chunk in rule.split(";"):
        key, sep, val = chunk.partition("=")
        if not sep or not key or not val:
            raise ValueError(f"malformed recurrence rule part: {chunk!r}")
        parts[key] = val

    if parts.get("FREQ") not in RRULE_FREQUENCIES:
        raise ValueError(f"FREQ must be one of: {', '.join(RRULE_FREQUENCIES)}")

    if "BYDAY" in parts:
        codes = parts["BYDAY"].split(",")
        for code in codes:
            if not _BYDAY_ITEM.match(code):
                raise ValueError(f"invalid BYDAY code: {code!r}")
        unique_codes = list(dict.fromkeys(codes))
        if len(unique_codes) != len(codes):
            parts["BYDAY"] = ",".join(unique_codes)
            rule = ";".join(f"{key}={val}" for key, val in parts.items())

    return rule


def unique_event_id(event_id: str, used_ids: set[str]) -> str:
    """Return ``event_id``, or the first free ``event_id-2``, ``-3``, ... form."""
    if event_id not in used_ids:
        return event_id
    suffix = 2
    while f"{event_id}-{suffix}" in used_ids:
        suffix += 1
    return f"{event_id}-{suffix}"


def rrule_byday(rule: str | None) -> list[str]:
    """Return the BYDAY codes of a rule, in order, or an empty list."""
    if not rule:
        return []
    for chunk in rule.split(";"):
        key, _, val = chunk.partition("=")
        if key.strip().upper() == "BYDAY":
            return [code for code in val.split(",") if code]
    return []


class EventCandidate(BaseModel):
    """
    Structural check for an untrusted event record.

    Strict types: numbers must be numbers, booleans must be booleans.
    Pass ``context={"strict": True}`` to reject type synonyms; in lax mode
    synonyms are mapped and noted in ``context["notes"]``.
    """

    model_config = ConfigDict(
        strict=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: str
    course_code: str | None = None
    type: EventType
    title: str | None = None
    start: str
    end: str | None = None
    all_day: bool | None = None
    location: str | None = None
    notes: str | None = None
    recurrence_rule: str | None = None
    reminder_minutes: int | None = Field(default=None, ge=0, le=REMINDER_MAX_MINUTES)
    confidence: float | None = None

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("id must be a non-empty string")
        if not ID_PATTERN.match(value):
            raise ValueError("id may only contain letters, digits, '_' and '-'")
        return value

    @field_validator("type", mode="before")
    @classmethod
    def _check_type(cls, value: Any, info: ValidationInfo) -> EventType:
        if isinstance(value, EventType):
            return value
        if not isinstance(value, str):
            raise ValueError("type must be a string")

        context = info.context or {}
        strict = context.get("strict", False)
        allowed = ", ".join(t.value for t in EventType)

        if value in EventType.__members__:
            return EventType(value)
        if strict:
            raise ValueError(f"type must be one of: {allowed}")

        key = value.strip().upper()
        if key in EventType.__members__:
            mapped = EventType(key)
        elif key in TYPE_SYNONYMS:
            mapped = TYPE_SYNONYMS[key]
        else:
            raise ValueError(f"type must be one of: {allowed}")

        notes = context.get("notes")
        if notes is not None:
            notes.append(f"type '{value}' mapped to {mapped.value}")
        return mapped

    @field_validator("course_code", "location", "notes", "title")
    @classmethod
    def _trim(cls, value: str | None, info: ValidationInfo) -> str | None:
        if value is None:
            return None
        value = value.strip()
        limits = {"title": TITLE_MAX, "location": LOCATION_MAX, "notes": NOTES_MAX}
        limit = limits.get(info.field_name)
        if limit is not None and len(value) > limit:
            raise ValueError(f"must not exceed {limit} characters")
        return value or None

    @field_validator("start", "end")
    @classmethod
    def _check_iso(cls, value: str | None) -> str | None:
        if value is None:
            return None
        try:
            LocalDateTime.parse(value)
        except ValueError as e:
            raise ValueError("must be a valid ISO 8601 date-time string") from e
        return value.strip()

    @field_validator("recurrence_rule")
    @classmethod
    def _check_rrule(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return normalize_rrule(value)

    @field_validator("confidence")
    @classmethod
    def _check_confidence(cls, value: float | None) -> float | None:
        if value is not None and not math.isfinite(value):
            raise ValueError("confidence must be a finite number")
        return value


class StrictEventCandidate(EventCandidate):
    """Strict mode additionally rejects fields outside the event contract."""

    model_config = ConfigDict(extra="forbid")


class EventItem(BaseModel):
    """A validated, canonical, calendar-ready event."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str
    course_code: str
    type: EventType
    title: str
    start: str
    end: str | None = None
    all_day: bool
    location: str | None = None
    notes: str | None = None
    recurrence_rule: str | None = None
    reminder_minutes: int | None = None
    confidence: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


@dataclass
class ClassificationContext:
    has_due_date: bool = False
    has_weight: bool = False
    has_negation: bool = False
    has_numbering: bool = False


@dataclass
class ClassificationResult:
    type: EventType
    confidence: float
    matched_keywords: list[str] = field(default_factory=list)
    context: ClassificationContext = field(default_factory=ClassificationContext)


@dataclass
class ValidationConfig:
    """Per-request validator settings. Term bounds are ISO date or date-time strings."""

    term_start: str | None = None
    term_end: str | None = None
    default_course_code: str | None = None
    strict: bool = False
    timezone: str = "UTC"


@dataclass
class ValidationStats:
    total_events: int = 0
    valid_events: int = 0
    invalid_events: int = 0
    clamped_events: int = 0
    defaults_applied: int = 0
    duplicate_events: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "totalEvents": self.total_events,
            "validEvents": self.valid_events,
            "invalidEvents": self.invalid_events,
            "clampedEvents": self.clamped_events,
            "defaultsApplied": self.defaults_applied,
            "duplicateEvents": self.duplicate_events,
        }


@dataclass
class ValidationResult:
    valid: bool = True
    events: list[EventItem] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    stats: ValidationStats = field(default_factory=ValidationStats)
