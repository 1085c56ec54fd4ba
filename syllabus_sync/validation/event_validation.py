# syllabus_sync/validation/event_validation.py
"""
Event validation and normalization.

Turns untrusted candidates (LLM or heuristic output) into EventItems:
structural check, defaults, term-window clamping, canonical timestamps and
duplicate removal. One bad record never aborts the batch; it is reported in
``errors`` and dropped while the rest continue.
"""

from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from syllabus_sync.infrastructure.observability.logging import get_logger
from syllabus_sync.models.domain.event_domain import (
    TYPE_LABELS,
    EventCandidate,
    EventItem,
    StrictEventCandidate,
    ValidationConfig,
    ValidationResult,
    unique_event_id,
)
from syllabus_sync.utils.dates import LocalDateTime, parse_term_bound, resolve_timezone

logger = get_logger(__name__)

# month, day pairs
TERM_WINDOWS: dict[str, tuple[tuple[int, int], tuple[int, int]]] = {
    "fall": ((8, 15), (12, 20)),
    "spring": ((1, 10), (5, 15)),
    "summer": ((5, 20), (8, 10)),
}


@dataclass
class TermBounds:
    start: LocalDateTime | None = None
    end: LocalDateTime | None = None

    @property
    def configured(self) -> bool:
        return self.start is not None or self.end is not None


@dataclass
class SingleEventValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)
    event: EventCandidate | None = None


def _format_errors(error: ValidationError) -> list[str]:
    messages = []
    for item in error.errors():
        loc = ".".join(str(part) for part in item["loc"]) or "event"
        messages.append(f"{loc}: {item['msg']}")
    return messages


def _check_candidate(raw: Any, strict: bool, notes: list[str]) -> EventCandidate:
    model = StrictEventCandidate if strict else EventCandidate
    return model.model_validate(raw, context={"strict": strict, "notes": notes})


def _term_bounds(config: ValidationConfig, tz) -> TermBounds:
    bounds = TermBounds(
        start=parse_term_bound(config.term_start, tz) if config.term_start else None,
        end=parse_term_bound(config.term_end, tz, end_of_day=True) if config.term_end else None,
    )
    if bounds.start and bounds.end and bounds.start.to_datetime() > bounds.end.to_datetime():
        raise ValueError("termStart must not be after termEnd")
    return bounds


def _clamp(value: LocalDateTime, bounds: TermBounds, all_day: bool) -> tuple[LocalDateTime, bool]:
    instant = value.to_datetime()
    if bounds.start and instant < bounds.start.to_datetime():
        target = bounds.start
    elif bounds.end and instant > bounds.end.to_datetime():
        target = bounds.end
    else:
        return value, False
    return (target.at_midnight() if all_day else target), True


def validate_events(candidates: Any, config: ValidationConfig | None = None) -> ValidationResult:
    """
    Validate and normalize a batch of event candidates.

    ``valid`` is False when any candidate failed the structural check, but
    every candidate that passed is still returned in ``events``.
    """
    config = config or ValidationConfig()
    result = ValidationResult()

    if not isinstance(candidates, list):
        return result

    result.stats.total_events = len(candidates)
    if not candidates:
        return result

    tz = resolve_timezone(config.timezone)
    bounds = _term_bounds(config, tz)
    default_course_code = (config.default_course_code or "").strip() or None

    seen_keys: set[tuple] = set()
    used_ids: set[str] = set()

    for index, raw in enumerate(candidates, start=1):
        notes: list[str] = []
        try:
            candidate = _check_candidate(raw, config.strict, notes)
        except ValidationError as e:
            result.valid = False
            result.stats.invalid_events += 1
            result.errors.extend(f"Event {index}: {message}" for message in _format_errors(e))
            continue

        defaults_applied = bool(notes)
        result.warnings.extend(f"Event {index}: {note}" for note in notes)

        course_code = candidate.course_code
        if not course_code:
            if not default_course_code:
                result.valid = False
                result.stats.invalid_events += 1
                result.errors.append(f"Event {index}: courseCode: required and no default is configured")
                continue
            course_code = default_course_code
            defaults_applied = True

        start = LocalDateTime.parse(candidate.start).resolve_offset(tz)
        end = LocalDateTime.parse(candidate.end).resolve_offset(tz) if candidate.end else None

        all_day = candidate.all_day
        if all_day is None:
            all_day = start.is_midnight()
            defaults_applied = True

        title = candidate.title
        if not title:
            title = TYPE_LABELS[candidate.type]
            defaults_applied = True

        confidence = candidate.confidence
        if confidence is not None:
            clamped_confidence = max(0.0, min(1.0, confidence))
            if clamped_confidence != confidence:
                defaults_applied = True
            confidence = clamped_confidence

        term_clamped = False
        if bounds.configured:
            start, start_changed = _clamp(start, bounds, all_day)
            term_clamped = start_changed
            if end is not None:
                end, end_changed = _clamp(end, bounds, all_day)
                term_clamped = term_clamped or end_changed

        range_corrected = False
        if end is not None and end.to_datetime() <= start.to_datetime():
            end = None if all_day else start.add_hours(1)
            range_corrected = True

        if term_clamped:
            result.warnings.append(f'Event "{title}" had dates clamped to term window')
        if range_corrected:
            result.warnings.append(f'Event "{title}" had invalid date range corrected')
        if term_clamped or range_corrected:
            result.stats.clamped_events += 1
        if defaults_applied:
            result.stats.defaults_applied += 1

        start_iso = start.isoformat()
        key = (course_code.lower(), candidate.type, title.lower(), start_iso)
        if key in seen_keys:
            result.stats.duplicate_events += 1
            result.warnings.append(f'Event "{title}" duplicates an earlier event and was dropped')
            continue
        seen_keys.add(key)

        event_id = unique_event_id(candidate.id, used_ids)
        used_ids.add(event_id)

        result.events.append(
            EventItem(
                id=event_id,
                course_code=course_code,
                type=candidate.type,
                title=title,
                start=start_iso,
                end=end.isoformat() if end else None,
                all_day=all_day,
                location=candidate.location,
                notes=candidate.notes,
                recurrence_rule=candidate.recurrence_rule,
                reminder_minutes=candidate.reminder_minutes,
                confidence=confidence,
            )
        )
        result.stats.valid_events += 1

    logger.debug(
        "Events validated",
        total=result.stats.total_events,
        valid=result.stats.valid_events,
        invalid=result.stats.invalid_events,
        clamped=result.stats.clamped_events,
        duplicates=result.stats.duplicate_events,
    )
    return result


def drop_events_after_term(
    events: list[EventItem], config: ValidationConfig | None = None
) -> tuple[list[EventItem], list[str]]:
    """
    Drop events that start after the configured term end.

    Recurrence splitting moves starts forward after clamping has run, so a
    split series can begin past ``term_end``. Moving it back would put it on
    a weekday its rule does not name, so it is dropped with a warning.
    """
    config = config or ValidationConfig()
    if not config.term_end:
        return events, []

    tz = resolve_timezone(config.timezone)
    term_end = parse_term_bound(config.term_end, tz, end_of_day=True).to_datetime()

    kept: list[EventItem] = []
    warnings: list[str] = []
    for event in events:
        if LocalDateTime.parse(event.start).to_datetime() > term_end:
            warnings.append(f'Event "{event.title}" starts after the term window and was dropped')
            continue
        kept.append(event)
    return kept, warnings


def validate_single_event(raw: Any, strict: bool = False) -> SingleEventValidation:
    """Structural check of one candidate, without defaults or clamping."""
    try:
        candidate = _check_candidate(raw, strict, [])
    except ValidationError as e:
        return SingleEventValidation(valid=False, errors=_format_errors(e))
    return SingleEventValidation(valid=True, event=candidate)


def create_term_window(year: int, semester: str) -> tuple[str, str]:
    """
    Conventional term bounds as ISO dates.

    >>> create_term_window(2025, "fall")
    ('2025-08-15', '2025-12-20')
    """
    window = TERM_WINDOWS.get(semester.lower())
    if window is None:
        raise ValueError(f"Invalid semester: {semester}. Must be 'fall', 'spring', or 'summer'")
    (start_month, start_day), (end_month, end_day) = window
    return (
        f"{year:04d}-{start_month:02d}-{start_day:02d}",
        f"{year:04d}-{end_month:02d}-{end_day:02d}",
    )
