"""
Tests for event validation and normalization.
"""

import pytest

from syllabus_sync.models.domain.event_domain import EventItem, EventType, ValidationConfig
from syllabus_sync.validation.event_validation import (
    create_term_window,
    drop_events_after_term,
    validate_events,
    validate_single_event,
)


def make_event(**overrides):
    event = {
        "id": "a1",
        "courseCode": "CS101",
        "type": "ASSIGNMENT",
        "title": "Assignment 1",
        "start": "2025-09-12T23:59:00.000-04:00",
        "allDay": False,
    }
    event.update(overrides)
    return event


def test_valid_event_passes_through_in_canonical_form():
    result = validate_events([make_event(start="2025-09-12T23:59-04:00")])

    assert result.valid is True
    assert result.errors == []
    assert len(result.events) == 1
    event = result.events[0]
    assert event.start == "2025-09-12T23:59:00.000-04:00"
    assert event.type == EventType.ASSIGNMENT
    assert result.stats.valid_events == 1


def test_start_before_term_is_clamped():
    config = ValidationConfig(term_start="2025-09-01", term_end="2025-12-15")

    result = validate_events([make_event(start="2025-08-01T00:00:00.000Z", allDay=None)], config)

    assert result.events[0].start == "2025-09-01T00:00:00.000+00:00"
    assert result.events[0].all_day is True
    assert result.stats.clamped_events == 1
    assert 'Event "Assignment 1" had dates clamped to term window' in result.warnings


def test_timed_event_after_term_clamps_to_term_end():
    config = ValidationConfig(term_start="2025-09-01", term_end="2025-12-15")

    result = validate_events([make_event(start="2026-01-10T10:00:00.000Z")], config)

    assert result.events[0].start == "2025-12-15T23:59:59.999+00:00"
    assert result.stats.clamped_events == 1


def test_event_on_last_term_day_is_not_clamped():
    config = ValidationConfig(term_start="2025-09-01", term_end="2025-12-15")

    result = validate_events([make_event(start="2025-12-15T14:00:00.000Z")], config)

    assert result.events[0].start == "2025-12-15T14:00:00.000+00:00"
    assert result.stats.clamped_events == 0


def test_all_day_defaults_from_start_time():
    result = validate_events(
        [
            make_event(id="a", start="2025-09-12T00:00:00.000Z", allDay=None),
            make_event(id="b", title="Assignment 2", start="2025-09-12T09:30:00.000Z", allDay=None),
        ]
    )

    assert [e.all_day for e in result.events] == [True, False]
    assert result.stats.defaults_applied == 2


def test_invalid_event_is_dropped_with_itemized_error():
    result = validate_events(
        [make_event(), make_event(id="b", start="next tuesday"), make_event(id="c", title="Assignment 3")]
    )

    assert result.valid is False
    assert [e.id for e in result.events] == ["a1", "c"]
    assert result.stats.invalid_events == 1
    assert any(
        error.startswith("Event 2: start:") and "ISO 8601" in error for error in result.errors
    )


def test_wrong_field_types_are_errors():
    result = validate_events([make_event(confidence="high"), make_event(id="b", allDay="yes")])

    assert result.valid is False
    assert result.events == []
    assert any(error.startswith("Event 1: confidence") for error in result.errors)
    assert any(error.startswith("Event 2: allDay") for error in result.errors)


def test_synonym_types_are_mapped_in_lax_mode():
    result = validate_events([make_event(type="project"), make_event(id="b", title="Quiz", type="TEST")])

    assert [e.type for e in result.events] == [EventType.ASSIGNMENT, EventType.QUIZ]
    assert any("mapped to ASSIGNMENT" in warning for warning in result.warnings)


def test_unknown_type_is_an_error():
    result = validate_events([make_event(type="EXAM")])

    assert result.valid is False
    assert result.events == []


def test_strict_mode_rejects_synonyms_and_unknown_fields():
    config = ValidationConfig(strict=True)

    result = validate_events(
        [make_event(type="PROJECT"), make_event(id="b", extra="field")], config
    )

    assert result.valid is False
    assert result.events == []
    assert len(result.errors) == 2


def test_missing_course_code_uses_default():
    event = make_event()
    del event["courseCode"]

    with_default = validate_events([event], ValidationConfig(default_course_code="CS101"))
    without_default = validate_events([event])

    assert with_default.events[0].course_code == "CS101"
    assert with_default.stats.defaults_applied == 1
    assert without_default.valid is False
    assert "courseCode: required" in without_default.errors[0]


def test_empty_title_falls_back_to_type_label():
    result = validate_events([make_event(title="   ", type="MIDTERM")])

    assert result.events[0].title == "Midterm Exam"


def test_confidence_is_clamped():
    result = validate_events([make_event(confidence=1.7), make_event(id="b", title="B", confidence=-0.2)])

    assert [e.confidence for e in result.events] == [1.0, 0.0]


def test_timed_end_before_start_is_corrected():
    result = validate_events(
        [make_event(start="2025-09-12T10:00:00.000Z", end="2025-09-12T09:00:00.000Z")]
    )

    assert result.events[0].end == "2025-09-12T11:00:00.000+00:00"
    assert result.stats.clamped_events == 1
    assert 'Event "Assignment 1" had invalid date range corrected' in result.warnings


def test_all_day_end_not_after_start_is_dropped():
    result = validate_events(
        [make_event(start="2025-09-12", end="2025-09-12", allDay=True)]
    )

    assert result.events[0].end is None


def test_offset_less_times_use_configured_timezone():
    config = ValidationConfig(timezone="America/New_York")

    result = validate_events([make_event(start="2025-09-12T14:00:00")], config)

    assert result.events[0].start == "2025-09-12T14:00:00.000-04:00"


def test_duplicates_dropped_and_repeated_ids_suffixed():
    result = validate_events(
        [
            make_event(),
            make_event(),
            make_event(title="Assignment 2", start="2025-09-19T23:59:00.000-04:00"),
        ]
    )

    assert [e.id for e in result.events] == ["a1", "a1-2"]
    assert result.stats.duplicate_events == 1


def test_recurrence_rule_is_normalized():
    result = validate_events(
        [make_event(type="LECTURE", title="Lecture", recurrenceRule="rrule:freq=weekly;byday=tu,th")]
    )

    assert result.events[0].recurrence_rule == "FREQ=WEEKLY;BYDAY=TU,TH"


def test_repeated_byday_codes_are_collapsed():
    result = validate_events(
        [make_event(type="LECTURE", title="Lecture", recurrenceRule="FREQ=WEEKLY;BYDAY=TU,TU,TH;COUNT=12")]
    )

    assert result.events[0].recurrence_rule == "FREQ=WEEKLY;BYDAY=TU,TH;COUNT=12"


def test_reminder_minutes_range():
    result = validate_events([make_event(reminderMinutes=50000)])

    assert result.valid is False


@pytest.mark.parametrize("payload", [None, "events", {"events": []}, 42])
def test_non_list_input_yields_empty_result(payload):
    result = validate_events(payload)

    assert result.valid is True
    assert result.events == []
    assert result.stats.total_events == 0


def test_term_start_after_term_end_is_rejected():
    with pytest.raises(ValueError):
        validate_events([make_event()], ValidationConfig(term_start="2025-12-15", term_end="2025-09-01"))


def test_stats_to_dict_uses_camel_case():
    stats = validate_events([make_event()]).stats.to_dict()

    assert stats["totalEvents"] == 1
    assert stats["validEvents"] == 1
    assert "duplicateEvents" in stats


def test_validate_single_event():
    ok = validate_single_event(make_event())
    bad = validate_single_event({"id": "x"})

    assert ok.valid is True
    assert ok.event.id == "a1"
    assert bad.valid is False
    assert any(error.startswith("type") for error in bad.errors)
    assert any(error.startswith("start") for error in bad.errors)


def test_create_term_window():
    assert create_term_window(2025, "fall") == ("2025-08-15", "2025-12-20")
    assert create_term_window(2026, "Spring") == ("2026-01-10", "2026-05-15")
    assert create_term_window(2026, "summer") == ("2026-05-20", "2026-08-10")
    with pytest.raises(ValueError):
        create_term_window(2025, "winter")


def make_item(event_id, start):
    return EventItem(
        id=event_id,
        course_code="CS101",
        type=EventType.LECTURE,
        title=f"Lecture {event_id}",
        start=start,
        all_day=False,
        recurrence_rule="FREQ=WEEKLY",
    )


def test_events_starting_after_term_end_are_dropped():
    monday = make_item("lec-mo", "2025-12-15T10:00:00.000-05:00")
    friday = make_item("lec-fr", "2025-12-19T10:00:00.000-05:00")
    config = ValidationConfig(term_end="2025-12-15", timezone="America/Toronto")

    kept, warnings = drop_events_after_term([monday, friday], config)

    assert kept == [monday]
    assert warnings == ['Event "Lecture lec-fr" starts after the term window and was dropped']


def test_last_moment_of_term_is_kept():
    late = make_item("late", "2025-12-15T23:59:00.000-05:00")
    config = ValidationConfig(term_end="2025-12-15", timezone="America/Toronto")

    kept, warnings = drop_events_after_term([late], config)

    assert kept == [late]
    assert warnings == []


def test_no_term_end_keeps_everything():
    events = [make_item("a", "2030-01-01T10:00:00.000+00:00")]

    assert drop_events_after_term(events, ValidationConfig()) == (events, [])
