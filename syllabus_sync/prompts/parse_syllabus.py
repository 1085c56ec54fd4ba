# syllabus_sync/prompts/parse_syllabus.py
"""
Prompt builder for LLM syllabus parsing.

Produces a chat-completions request with a fixed ``{"events": [...]}``
reply contract, enforced through a JSON-schema response format, plus
few-shot pairs that pin the output shape and the closed type list.
"""

import json
from dataclasses import dataclass, field
from typing import Any

from syllabus_sync.models.domain.event_domain import DAY_CODES, EventType
from syllabus_sync.parsing.text_preprocessor import preprocess_text_for_ai

RESPONSE_SCHEMA_NAME = "parse_syllabus_events"

EVENT_ITEM_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["id", "courseCode", "type", "title", "start"],
    "properties": {
        "id": {"type": "string", "pattern": "^[A-Za-z0-9_-]+$"},
        "courseCode": {"type": "string", "minLength": 1},
        "type": {"type": "string", "enum": [t.value for t in EventType]},
        "title": {"type": "string", "minLength": 1, "maxLength": 200},
        "start": {"type": "string"},
        "end": {"type": "string"},
        "allDay": {"type": "boolean"},
        "location": {"type": "string", "maxLength": 100},
        "notes": {"type": "string", "maxLength": 1000},
        "recurrenceRule": {"type": "string"},
        "reminderMinutes": {"type": "integer", "minimum": 0, "maximum": 43200},
        "confidence": {"type": "number", "minimum": 0, "maximum": 1},
    },
}

EVENTS_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "required": ["events"],
    "properties": {"events": {"type": "array", "items": EVENT_ITEM_SCHEMA}},
}

_TYPES = "|".join(t.value for t in EventType)

SYSTEM_PROMPT = f"""# SYLLABUS TO CALENDAR PARSER

You extract academic events from preprocessed syllabus text into structured JSON.

## CORE MISSION
- Prioritize lines tagged with [EVENT:*] and their weight marked as "— WEIGHT".
- Still capture critical untagged items (Final Exam, Midterm, Projects, Labs, major deadlines).
- Return ONLY valid JSON matching the schema. No prose, no markdown.

## JSON OUTPUT FORMAT
{{
  "events": [
    {{
      "id": "string (letters, digits, '-' or '_')",
      "courseCode": "string",
      "type": "{_TYPES}",
      "title": "string",
      "start": "ISO8601 datetime with offset",
      "end": "ISO8601 datetime with offset (optional)",
      "allDay": "boolean",
      "location": "string (optional)",
      "recurrenceRule": "RRULE string (optional)",
      "notes": "string (optional)",
      "confidence": "number 0-1"
    }}
  ]
}}

## TYPE RESTRICTION
The "type" field MUST be exactly one of: {", ".join(t.value for t in EventType)}.
NEVER use "PROJECT", "EXAM", "HOMEWORK", "TEST", "CLASS", "SESSION" or any other value.
- Projects (Mini Project, Final Project, Term Project) -> "ASSIGNMENT"
- Homework and assignments -> "ASSIGNMENT"
- Quizzes -> "QUIZ"
- Midterm exams -> "MIDTERM"; final exams -> "FINAL"
- Labs -> "LAB"; lectures and class meetings -> "LECTURE"
- Administrative dates (drop/add, withdrawal, holidays) -> "OTHER"

## DATES AND TIMES
- Format: YYYY-MM-DDTHH:MM:SS.mmm±HH:MM, using the UTC offset of the given timezone on that date.
- Events without a time: midnight local time and "allDay": true.
- Events with a time: "allDay": false; add "end" when a time range is given.
- Relative dates ("Week 5 Friday") are resolved from termStart.

## WEIGHTS
- Put the weight of graded items in notes, e.g. "Weight: 10%".
- When a category total is given and the number of items is known, divide it evenly,
  e.g. "Weight: 15% (30% total for assignments, 2 assignments)".

## RECURRENCE RULES
- Weekly meetings: "FREQ=WEEKLY;BYDAY=TU,TH;UNTIL=2025-12-12".
- Day codes: {",".join(DAY_CODES)}.
- start/end describe the first occurrence on or after termStart.
- If the schedule is incomplete, output the lecture without recurrenceRule.

## COURSE CODE
- Accept shapes like "ENGG*3390", "CS 101", "MATH-151", "PHYSICS 201".
- Use the courseCode from the context. Never invent a course code.

## ADDITIONAL RULES
- Notes: max 200 characters; always include weight or submission details if present.
- Ignore office hours, tutorials, grading policies and generic information.
- confidence: your 0-1 certainty for each event.
"""


def _example(user: str, events: list[dict[str, Any]]) -> list[dict[str, str]]:
    return [
        {"role": "user", "content": user},
        {"role": "assistant", "content": json.dumps({"events": events})},
    ]


FEW_SHOT_MESSAGES: list[dict[str, str]] = [
    *_example(
        "Example 1 - Explicit date/time with weight.\n"
        "Context: courseCode=CS101, timezone=America/Los_Angeles.\n"
        "Text:\n"
        "Assignment 1 due Sept 12, 2025 at 11:59 PM PST. Submit on Canvas. Weight: 10%.",
        [
            {
                "id": "assignment-1",
                "courseCode": "CS101",
                "type": "ASSIGNMENT",
                "title": "Assignment 1",
                "start": "2025-09-12T23:59:00.000-07:00",
                "allDay": False,
                "notes": "Submit on Canvas. Weight: 10%.",
                "confidence": 0.95,
            }
        ],
    ),
    *_example(
        "Example 2 - Category weight distribution.\n"
        "Context: courseCode=CS101, timezone=America/Los_Angeles.\n"
        "Text:\n"
        "Grading: Assignments (30% total), Labs (20% total), Midterm (25%), Final (25%).\n"
        "Assignment 1 due Sept 12, 2025. Assignment 2 due Oct 3, 2025.",
        [
            {
                "id": "assignment-1",
                "courseCode": "CS101",
                "type": "ASSIGNMENT",
                "title": "Assignment 1",
                "start": "2025-09-12T00:00:00.000-07:00",
                "allDay": True,
                "notes": "Weight: 15% (30% total for assignments, 2 assignments)",
                "confidence": 0.9,
            },
            {
                "id": "assignment-2",
                "courseCode": "CS101",
                "type": "ASSIGNMENT",
                "title": "Assignment 2",
                "start": "2025-10-03T00:00:00.000-07:00",
                "allDay": True,
                "notes": "Weight: 15% (30% total for assignments, 2 assignments)",
                "confidence": 0.9,
            },
        ],
    ),
    *_example(
        "Example 3 - Relative week reference.\n"
        "Context: courseCode=HIST200, timezone=America/New_York, termStart=2025-08-26.\n"
        "Text:\n"
        "Week 5: Midterm on Friday during lecture.",
        [
            {
                "id": "midterm",
                "courseCode": "HIST200",
                "type": "MIDTERM",
                "title": "Midterm",
                "start": "2025-09-26T00:00:00.000-04:00",
                "allDay": True,
                "notes": "During lecture.",
                "confidence": 0.7,
            }
        ],
    ),
    *_example(
        "Example 4 - Lecture recurrence (TuTh).\n"
        "Context: courseCode=CS2750, timezone=America/Toronto, termStart=2025-09-04, termEnd=2025-12-12.\n"
        "Text:\n"
        "Lecture: TuTh 10:00-11:20 AM in Room 204 from Sept 4 through Dec 12.",
        [
            {
                "id": "lecture-series",
                "courseCode": "CS2750",
                "type": "LECTURE",
                "title": "Lecture",
                "start": "2025-09-04T10:00:00.000-04:00",
                "end": "2025-09-04T11:20:00.000-04:00",
                "allDay": False,
                "location": "Room 204",
                "recurrenceRule": "FREQ=WEEKLY;BYDAY=TU,TH;UNTIL=2025-12-12",
                "confidence": 0.9,
            }
        ],
    ),
    *_example(
        "Example 5 - Lecture recurrence (MWF).\n"
        "Context: courseCode=MATH101, timezone=America/New_York, termStart=2025-08-26, termEnd=2025-12-15.\n"
        "Text:\n"
        "Classes meet Monday, Wednesday, Friday 2:00-2:50 PM in Lecture Hall A.",
        [
            {
                "id": "math-lecture-series",
                "courseCode": "MATH101",
                "type": "LECTURE",
                "title": "Lecture",
                "start": "2025-08-27T14:00:00.000-04:00",
                "end": "2025-08-27T14:50:00.000-04:00",
                "allDay": False,
                "location": "Lecture Hall A",
                "recurrenceRule": "FREQ=WEEKLY;BYDAY=MO,WE,FR;UNTIL=2025-12-15",
                "confidence": 0.95,
            }
        ],
    ),
    *_example(
        "Example 6 - Lecture recurrence (T/Th).\n"
        "Context: courseCode=PHYS201, timezone=America/Los_Angeles, termStart=2025-09-03, termEnd=2025-12-13.\n"
        "Text:\n"
        "T/Th 1:00-2:15 PM in Room 101. Lab follows immediately after.",
        [
            {
                "id": "physics-lecture-series",
                "courseCode": "PHYS201",
                "type": "LECTURE",
                "title": "Lecture",
                "start": "2025-09-04T13:00:00.000-07:00",
                "end": "2025-09-04T14:15:00.000-07:00",
                "allDay": False,
                "location": "Room 101",
                "recurrenceRule": "FREQ=WEEKLY;BYDAY=TU,TH;UNTIL=2025-12-13",
                "confidence": 0.9,
            }
        ],
    ),
    *_example(
        "Example 7 - Type mapping mistakes to avoid.\n"
        "Context: courseCode=CS101, timezone=America/New_York.\n"
        "Text:\n"
        "Project 1 due Oct 15, 2025. Homework 2 due Oct 20, 2025.",
        [
            {
                "id": "project-1",
                "courseCode": "CS101",
                "type": "ASSIGNMENT",
                "title": "Project 1",
                "start": "2025-10-15T00:00:00.000-04:00",
                "allDay": True,
                "confidence": 0.9,
            },
            {
                "id": "homework-2",
                "courseCode": "CS101",
                "type": "ASSIGNMENT",
                "title": "Homework 2",
                "start": "2025-10-20T00:00:00.000-04:00",
                "allDay": True,
                "confidence": 0.9,
            },
        ],
    ),
]


@dataclass
class ParsePromptRequest:
    model: str
    messages: list[dict[str, str]]
    processed_text: str
    temperature: float = 0.0
    max_tokens: int | None = None
    response_format: dict[str, Any] = field(
        default_factory=lambda: {
            "type": "json_schema",
            "json_schema": {
                "name": RESPONSE_SCHEMA_NAME,
                "schema": EVENTS_RESPONSE_SCHEMA,
                "strict": False,
            },
        }
    )

    def to_create_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``client.chat.completions.create``."""
        kwargs = {
            "model": self.model,
            "messages": self.messages,
            "temperature": self.temperature,
            "response_format": self.response_format,
        }
        if self.max_tokens:
            kwargs["max_tokens"] = self.max_tokens
        return kwargs


def build_context_block(
    course_code: str | None,
    term_start: str | None,
    term_end: str | None,
    timezone: str,
) -> str:
    context = {
        "courseCode": course_code,
        "termStart": term_start,
        "termEnd": term_end,
        "timezone": timezone,
    }
    return json.dumps({k: v for k, v in context.items() if v is not None}, separators=(",", ":"))


def build_parse_request(
    text: str,
    course_code: str | None = None,
    term_start: str | None = None,
    term_end: str | None = None,
    timezone: str = "UTC",
    model: str = "gpt-4o-mini",
    max_tokens: int | None = None,
) -> ParsePromptRequest:
    processed_text = preprocess_text_for_ai(text)
    context_block = build_context_block(course_code, term_start, term_end, timezone)

    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        *FEW_SHOT_MESSAGES,
        {"role": "user", "content": f"Context: {context_block}\nSyllabus Text:\n{processed_text}"},
    ]
    return ParsePromptRequest(
        model=model, messages=messages, processed_text=processed_text, max_tokens=max_tokens
    )
