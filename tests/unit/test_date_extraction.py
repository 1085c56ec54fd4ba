"""
Tests for date and time extraction.
"""

from datetime import date, time

import pytest

from syllabus_sync.parsing.date_extraction import (
    DatePatternType,
    analyze_date_extraction,
    extract_dates,
    extract_time,
    parse_relative_date,
)


def test_full_date_wins_over_embedded_month_day():
    matches = extract_dates("Assignment due September 15, 2025", year=2024)

    assert len(matches) == 1
    assert matches[0].type == DatePatternType.FULL_DATE
    assert matches[0].date == date(2025, 9, 15)
    assert matches[0].confidence == pytest.approx(0.95)
    assert matches[0].text == "September 15, 2025"


def test_short_month_with_year():
    matches = extract_dates("Quiz on Oct. 3rd, 2025")

    assert matches[0].type == DatePatternType.SHORT_DATE
    assert matches[0].date == date(2025, 10, 3)


def test_month_day_uses_given_year_and_lower_confidence():
    matches = extract_dates("Quiz 1 on Sept 15", year=2025)

    assert matches[0].type == DatePatternType.MONTH_DAY
    assert matches[0].date == date(2025, 9, 15)
    assert matches[0].confidence == pytest.approx(0.70 * 0.9)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Due 9/15/25", date(2025, 9, 15)),
        ("Due 15/9/2025", date(2025, 9, 15)),
        ("Due 03/04/2026", date(2026, 3, 4)),
    ],
)
def test_numeric_dates_prefer_month_first(text, expected):
    matches = extract_dates(text)

    assert matches[0].type == DatePatternType.NUMERIC_DATE
    assert matches[0].date == expected
    assert matches[0].confidence == pytest.approx(0.80 * 0.9)


def test_iso_date():
    matches = extract_dates("Project due 2025-11-30")

    assert matches[0].type == DatePatternType.ISO_DATE
    assert matches[0].date == date(2025, 11, 30)


def test_weekday_date_matching_weekday():
    # 2025-09-15 is a Monday
    matches = extract_dates("Lab 2 Monday, Sept 15", year=2025)

    assert len(matches) == 1
    assert matches[0].type == DatePatternType.WEEKDAY_DATE
    assert matches[0].confidence == pytest.approx(0.85)


def test_weekday_mismatch_lowers_confidence():
    matches = extract_dates("Lab 2 Tuesday, Sept 15", year=2025)

    assert len(matches) == 1
    assert matches[0].date == date(2025, 9, 15)
    assert matches[0].confidence < 0.85


def test_week_of():
    matches = extract_dates("Week of Oct 6: project demos", year=2025)

    assert len(matches) == 1
    assert matches[0].type == DatePatternType.WEEK_OF
    assert matches[0].date == date(2025, 10, 6)


def test_date_range_within_month():
    matches = extract_dates("Reading week Oct 13 - 17", year=2025)

    assert len(matches) == 1
    assert matches[0].is_range is True
    assert matches[0].date == date(2025, 10, 13)
    assert matches[0].end_date == date(2025, 10, 17)


def test_date_range_wrapping_into_next_year():
    matches = extract_dates("Winter break Dec 20 - Jan 5", year=2025)

    assert matches[0].date == date(2025, 12, 20)
    assert matches[0].end_date == date(2026, 1, 5)


def test_time_after_dash_is_not_a_range():
    matches = extract_dates("Assignment 1 due Sept 12 - 11:59 PM", year=2025)

    assert len(matches) == 1
    assert matches[0].is_range is False
    assert matches[0].date == date(2025, 9, 12)


def test_impossible_dates_are_skipped():
    assert extract_dates("Due Feb 30", year=2025) == []
    assert extract_dates("Due 2025-13-01") == []


def test_matches_are_ordered_by_position():
    matches = extract_dates("Quiz 1 on Oct 17 and Quiz 2 on Oct 3", year=2025)

    assert [m.date for m in matches] == [date(2025, 10, 17), date(2025, 10, 3)]


def test_extract_dates_rejects_non_string():
    with pytest.raises(TypeError):
        extract_dates(None)


@pytest.mark.parametrize(
    "line,start,end",
    [
        ("Lecture 10:00-11:20 AM", time(10, 0), time(11, 20)),
        ("Lab 1-3pm", time(13, 0), time(15, 0)),
        ("Seminar 11 - 1 pm", time(11, 0), time(13, 0)),
        ("Tutorial 2:30 pm to 4:00 pm", time(14, 30), time(16, 0)),
        ("Assignment 1 due 11:59 PM", time(23, 59), None),
        ("Quiz at 5pm", time(17, 0), None),
        ("Office hours 14:00", time(14, 0), None),
        ("Essay due by midnight", time(23, 59), None),
        ("Presentation at noon", time(12, 0), None),
    ],
)
def test_extract_time(line, start, end):
    found = extract_time(line)

    assert found is not None
    assert found.start == start
    assert found.end == end


def test_day_after_month_is_not_a_time_range_start():
    found = extract_time("Assignment 1 due Sept 12 - 11:59 PM")

    assert found.start == time(23, 59)
    assert found.end is None


@pytest.mark.parametrize("line", ["Reading week Oct 15-22", "Chapter 3 summary", ""])
def test_no_time(line):
    assert extract_time(line) is None


def test_earliest_time_mention_wins():
    assert extract_time("Due 5pm, late until 11:59 pm").start == time(17, 0)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("next Friday", date(2025, 9, 5)),
        ("next Wednesday", date(2025, 9, 10)),
        ("this Wednesday", date(2025, 9, 3)),
        ("this Monday", date(2025, 9, 8)),
        ("tomorrow", None),
    ],
)
def test_parse_relative_date(text, expected):
    # 2025-09-03 is a Wednesday
    assert parse_relative_date(date(2025, 9, 3), text) == expected


def test_analyze_date_extraction():
    matches = extract_dates("Quiz Oct 3, 2025; break Oct 13 - 17", year=2025)

    stats = analyze_date_extraction(matches)

    assert stats["total_dates"] == 2
    assert stats["ranges"] == 1
    assert stats["earliest_date"] == "2025-10-03"
    assert stats["latest_date"] == "2025-10-13"
    assert analyze_date_extraction([])["average_confidence"] == 0.0
