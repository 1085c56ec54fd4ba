# syllabus_sync/parsing/event_builder.py
"""
Heuristic event builder.

Combines text normalization, date extraction and the keyword classifier
to turn raw syllabus text into event candidates without an LLM. Used when
no model is configured or a client has used up its daily LLM allowance.
The output has the same camelCase shape as an LLM reply, so both sources
go through the same validator.
"""

import re
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from difflib import SequenceMatcher
from typing import Any

from syllabus_sync.infrastructure.observability.logging import get_logger
from syllabus_sync.models.domain.event_domain import TYPE_LABELS, EventType
from syllabus_sync.parsing.date_extraction import DateMatch, TimeMatch, extract_dates, extract_time
from syllabus_sync.parsing.keyword_classifier import LineClassification, classify_lines
from syllabus_sync.parsing.text_normalization import normalize_text, split_into_lines
from syllabus_sync.utils.dates import LocalDateTime, resolve_timezone

logger = get_logger(__name__)

DEFAULT_MIN_CONFIDENCE = 0.3
CONTEXT_WINDOW_LINES = 2
DEFAULT_SESSION_MINUTES = 90
TITLE_LIMIT = 100
SESSION_TYPES = (EventType.LAB, EventType.LECTURE)

_TITLE_PREFIX = re.compile(r"^(due|deadline|submit|turn in|hand in)[\s:]+", re.I)
_TITLE_DUE_TAIL = re.compile(r"\s*[-:]\s*due\s+.*", re.I)
_PARENTHETICAL = re.compile(r"\s*\(.*?\)\s*")
_ITEM_NUMBER = re.compile(
    r"\b(?:assignment|hw|quiz|lab|project|exam|test)\s*#?\s*(\d+|[ivx]+|[a-z])\b", re.I
)

LOCATION_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"\blocation:\s*([A-Za-z0-9][A-Za-z0-9 \-]{0,48}[A-Za-z0-9])", re.I),
    re.compile(r"\b((?:room|rm\.?|classroom)\s+[A-Za-z]?\d+[A-Za-z]?)\b", re.I),
    re.compile(r"\b([A-Z][A-Za-z]*\s+(?:Hall|Building|Auditorium|Centre|Center)(?:\s+[A-Z0-9]\w*)?)\b"),
)

_NOTES_SEPARATOR = re.compile(r"(?:\s[-–—]\s|(?<!\d):\s*)(.+)")
_NOTES_DUE_TAIL = re.compile(r"\s*[-:]\s*due.*$", re.I)
_NOTES_PARENS = re.compile(r"\(([^)]+)\)")
_NOTES_CONTEXT = re.compile(
    r"\b(?:include|with|about|covering?s?)\s+(.+?)(?:\s*[-:]\s*due|\s*$)", re.I
)


@dataclass
class HeuristicEvent:
    id: str
    type: EventType
    title: str
    start: datetime
    all_day: bool
    confidence: float
    source_line_index: int
    source_text: str
    course_code: str | None = None
    end: datetime | None = None
    location: str | None = None
    notes: str | None = None
    matched_keywords: list[str] = field(default_factory=list)
    date_match: DateMatch | None = None


@dataclass
class EventBuildingStats:
    total_lines: int = 0
    lines_with_dates: int = 0
    lines_with_types: int = 0
    candidates_generated: int = 0
    candidates_after_dedup: int = 0
    average_confidence: float = 0.0
    processing_time_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalLines": self.total_lines,
            "linesWithDates": self.lines_with_dates,
            "linesWithTypes": self.lines_with_types,
            "candidatesGenerated": self.candidates_generated,
            "candidatesAfterDedup": self.candidates_after_dedup,
            "averageConfidence": round(self.average_confidence, 3),
            "processingTimeMs": self.processing_time_ms,
        }


@dataclass
class HeuristicExtraction:
    events: list[HeuristicEvent]
    candidates: list[dict[str, Any]]
    stats: EventBuildingStats


def _context_dates(index: int, line_dates: list[list[DateMatch]]) -> list[DateMatch]:
    """Dates from up to CONTEXT_WINDOW_LINES lines on either side."""
    found: list[DateMatch] = []
    seen: set[str] = set()
    low = max(0, index - CONTEXT_WINDOW_LINES)
    high = min(len(line_dates) - 1, index + CONTEXT_WINDOW_LINES)
    for neighbour in range(low, high + 1):
        if neighbour == index:
            continue
        for match in line_dates[neighbour]:
            if match.text not in seen:
                seen.add(match.text)
                found.append(match)
    return found


def generate_title(line: str, event_type: EventType, keywords: list[str]) -> str:
    title = _TITLE_PREFIX.sub("", line.strip())
    title = _TITLE_DUE_TAIL.sub("", title)
    title = _PARENTHETICAL.sub(" ", title)
    title = re.sub(r"\s+", " ", title).strip()

    lowered = title.lower()
    if len(title) < 3 or not any(kw.lower() in lowered for kw in keywords):
        title = default_title(event_type, line)

    if len(title) > TITLE_LIMIT:
        title = title[: TITLE_LIMIT - 3] + "..."
    return title or TYPE_LABELS[event_type]


def default_title(event_type: EventType, line: str) -> str:
    label = TYPE_LABELS[event_type]
    match = _ITEM_NUMBER.search(line)
    if match:
        return f"{label} {match.group(1).upper()}"
    return label


def extract_location(line: str) -> str | None:
    for pattern in LOCATION_PATTERNS:
        match = pattern.search(line)
        if match:
            location = match.group(1).strip()
            if len(location) <= 50:
                return location
    return None


def _without_dates(text: str) -> str:
    for match in reversed(extract_dates(text, 2000)):
        text = text[: match.start_index] + text[match.end_index :]
    return text


def _meaningful(candidate: str) -> bool:
    return len(re.sub(r"[\W_]+", "", _without_dates(candidate))) > 3


def extract_notes(line: str) -> str | None:
    """Text after a separator, inside parentheses, or after "covering"/"with"."""
    match = _NOTES_SEPARATOR.search(line)
    if match:
        candidate = _NOTES_DUE_TAIL.sub("", match.group(1).strip())
        if 3 < len(candidate) < 200 and _meaningful(candidate):
            return candidate

    match = _NOTES_PARENS.search(line)
    if match:
        candidate = match.group(1).strip()
        if 3 < len(candidate) < 100 and _meaningful(candidate):
            return candidate

    match = _NOTES_CONTEXT.search(line)
    if match:
        candidate = match.group(1).strip()
        if 3 < len(candidate) < 200 and _meaningful(candidate):
            return candidate

    return None


def event_confidence(classification: LineClassification, date_match: DateMatch) -> float:
    result = classification.result
    confidence = result.confidence * 0.6 + date_match.confidence * 0.3

    if result.confidence > 0.7 and date_match.confidence > 0.7:
        confidence += 0.1
    if result.context.has_due_date:
        confidence += 0.05
    if result.context.has_weight:
        confidence += 0.05
    if result.context.has_numbering:
        confidence += 0.05

    if len(classification.original_text) < 20:
        confidence *= 0.9
    if result.context.has_negation:
        confidence *= 0.5

    return min(confidence, 1.0)


def _at(day: date, clock) -> datetime:
    return datetime(day.year, day.month, day.day, clock.hour, clock.minute)


def _timing(
    event_type: EventType, date_match: DateMatch, time_match: TimeMatch | None
) -> tuple[datetime, datetime | None, bool]:
    if time_match is None:
        start = datetime(date_match.date.year, date_match.date.month, date_match.date.day)
        end = None
        if date_match.end_date is not None:
            end = datetime(date_match.end_date.year, date_match.end_date.month, date_match.end_date.day)
        return start, end, True

    start = _at(date_match.date, time_match.start)
    if time_match.end is not None:
        end = _at(date_match.date, time_match.end)
    elif date_match.end_date is not None:
        end = _at(date_match.end_date, time_match.start)
    elif event_type in SESSION_TYPES:
        end = start + timedelta(minutes=DEFAULT_SESSION_MINUTES)
    else:
        end = None
    return start, end, False


def _normalized_title(title: str) -> str:
    return re.sub(r"[^a-z0-9]+", " ", title.lower()).strip()


def _titles_roughly_match(a: HeuristicEvent, b: HeuristicEvent, same_day: bool) -> bool:
    threshold = 0.5 if same_day else 0.85
    if SequenceMatcher(None, a.title, b.title).ratio() >= threshold:
        return True
    keywords_b = {kw.lower() for kw in b.matched_keywords}
    return any(kw.lower() in keywords_b for kw in a.matched_keywords)


def events_are_similar(a: HeuristicEvent, b: HeuristicEvent) -> bool:
    if a.type != b.type:
        return False

    gap = abs(a.start - b.start)
    title_a, title_b = _normalized_title(a.title), _normalized_title(b.title)

    if a.source_text == b.source_text and title_a == title_b:
        return True
    if gap <= timedelta(days=1):
        return _titles_roughly_match(a, b, same_day=True)
    if gap <= timedelta(days=7):
        # Same title within a week is usually a repeated table row (lab sections)
        return title_a == title_b or _titles_roughly_match(a, b, same_day=False)
    return False


def deduplicate_events(events: list[HeuristicEvent]) -> list[HeuristicEvent]:
    """Collapse near-duplicates, keeping the more confident of each pair."""
    kept: list[HeuristicEvent] = []
    for event in events:
        index = next((i for i, existing in enumerate(kept) if events_are_similar(event, existing)), None)
        if index is None:
            kept.append(event)
        elif event.confidence > kept[index].confidence:
            kept[index] = event
    return kept


def _to_candidate(event: HeuristicEvent, tz) -> dict[str, Any]:
    def render(value: datetime) -> str:
        return LocalDateTime.from_datetime(value).resolve_offset(tz).isoformat()

    candidate: dict[str, Any] = {
        "id": event.id,
        "type": event.type.value,
        "title": event.title,
        "start": render(event.start),
        "allDay": event.all_day,
        "confidence": round(event.confidence, 3),
    }
    optional = {
        "courseCode": event.course_code,
        "end": render(event.end) if event.end else None,
        "location": event.location,
        "notes": event.notes,
    }
    candidate.update({key: value for key, value in optional.items() if value is not None})
    return candidate


def build_events(
    text: str,
    course_code: str | None = None,
    timezone: str = "UTC",
    default_year: int | None = None,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    deduplicate: bool = True,
) -> HeuristicExtraction:
    """
    Build event candidates from raw syllabus text.

    Every classified line (type other than OTHER, confidence at or above
    ``min_confidence``) becomes one candidate per date on that line. Lines
    without a date borrow dates from the two lines on either side.

    Raises:
        TypeError: if ``text`` is not a string
        ValueError: if ``timezone`` is not a known IANA zone
    """
    if not isinstance(text, str):
        raise TypeError("build_events expects a string input")

    started = time.perf_counter()
    tz = resolve_timezone(timezone)
    stats = EventBuildingStats()

    lines = split_into_lines(normalize_text(text)) if text.strip() else []
    stats.total_lines = len(lines)
    if not lines:
        stats.processing_time_ms = round((time.perf_counter() - started) * 1000, 2)
        return HeuristicExtraction(events=[], candidates=[], stats=stats)

    year = default_year or date.today().year
    line_dates = [extract_dates(line, year) for line in lines]
    classifications = classify_lines(lines)
    stats.lines_with_dates = sum(1 for dates in line_dates if dates)
    stats.lines_with_types = sum(1 for c in classifications if c.result.type != EventType.OTHER)

    events: list[HeuristicEvent] = []
    for classification in classifications:
        result = classification.result
        if result.type == EventType.OTHER or result.confidence < min_confidence:
            continue

        index = classification.line_index
        line = classification.original_text
        dates = line_dates[index] or _context_dates(index, line_dates)
        time_match = extract_time(line)

        for position, date_match in enumerate(dates):
            confidence = event_confidence(classification, date_match)
            if confidence < min_confidence:
                continue

            start, end, all_day = _timing(result.type, date_match, time_match)
            event_id = f"{result.type.value.lower()}-line{index + 1}"
            if position:
                event_id = f"{event_id}-{position + 1}"
            title = generate_title(line, result.type, result.matched_keywords)

            events.append(
                HeuristicEvent(
                    id=event_id,
                    type=result.type,
                    title=title,
                    start=start,
                    end=end,
                    all_day=all_day,
                    confidence=confidence,
                    source_line_index=index,
                    source_text=line,
                    course_code=course_code,
                    location=extract_location(line),
                    notes=extract_notes(line),
                    matched_keywords=list(result.matched_keywords),
                    date_match=date_match,
                )
            )

    stats.candidates_generated = len(events)
    if deduplicate:
        events = deduplicate_events(events)
    stats.candidates_after_dedup = len(events)
    if events:
        stats.average_confidence = sum(e.confidence for e in events) / len(events)
    stats.processing_time_ms = round((time.perf_counter() - started) * 1000, 2)

    logger.debug(
        "Heuristic events built",
        lines=stats.total_lines,
        generated=stats.candidates_generated,
        kept=stats.candidates_after_dedup,
    )
    return HeuristicExtraction(
        events=events,
        candidates=[_to_candidate(event, tz) for event in events],
        stats=stats,
    )


def analyze_event_building(events: list[HeuristicEvent], stats: EventBuildingStats) -> dict[str, Any]:
    analysis: dict[str, Any] = {
        **stats.to_dict(),
        "typeDistribution": {event_type.value: 0 for event_type in EventType},
        "confidenceDistribution": {"high": 0, "medium": 0, "low": 0},
        "monthlyDistribution": {},
        "averageEventsPerLine": 0.0,
    }
    for event in events:
        analysis["typeDistribution"][event.type.value] += 1
        if event.confidence >= 0.8:
            analysis["confidenceDistribution"]["high"] += 1
        elif event.confidence >= 0.5:
            analysis["confidenceDistribution"]["medium"] += 1
        else:
            analysis["confidenceDistribution"]["low"] += 1
        month = event.start.strftime("%Y-%m")
        analysis["monthlyDistribution"][month] = analysis["monthlyDistribution"].get(month, 0) + 1

    if stats.total_lines:
        analysis["averageEventsPerLine"] = len(events) / stats.total_lines
    return analysis
