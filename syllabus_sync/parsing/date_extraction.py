# syllabus_sync/parsing/date_extraction.py
"""
Date and time extraction for the heuristic extractor.

Finds the date shapes that syllabi actually use ("September 15, 2025",
"Sept 15", "9/15/25", "2025-09-15", "Monday, Sept 15", "Week of Oct 6",
"Oct 1 - Nov 15") and scores each match. When two matches overlap the
more confident one wins, so "Sept 15, 2025" is never also reported as a
year-less "Sept 15".
"""

import re
from dataclasses import dataclass
from datetime import date, time, timedelta
from enum import StrEnum
from typing import Any

MONTHS: dict[str, int] = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "jun": 6, "jul": 7, "aug": 8,
    "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}

# Monday = 0, matching date.weekday()
WEEKDAYS: dict[str, int] = {
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3,
    "friday": 4, "saturday": 5, "sunday": 6,
    "mon": 0, "tue": 1, "wed": 2, "thu": 3, "fri": 4, "sat": 5, "sun": 6,
}

_FULL_MONTH = "january|february|march|april|may|june|july|august|september|october|november|december"
_SHORT_MONTH = "jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec"
_ANY_MONTH = f"{_FULL_MONTH}|{_SHORT_MONTH}"
_WEEKDAY = "sunday|monday|tuesday|wednesday|thursday|friday|saturday|sun|mon|tue|wed|thu|fri|sat"
_ORDINAL = r"(?:st|nd|rd|th)?"


class DatePatternType(StrEnum):
    FULL_DATE = "full_date"
    SHORT_DATE = "short_date"
    NUMERIC_DATE = "numeric_date"
    ISO_DATE = "iso_date"
    WEEKDAY_DATE = "weekday_date"
    MONTH_DAY = "month_day"
    WEEK_OF = "week_of"
    DATE_RANGE = "date_range"


@dataclass(frozen=True)
class DatePattern:
    pattern: re.Pattern
    type: DatePatternType
    confidence: float


@dataclass
class DateMatch:
    text: str
    start_index: int
    end_index: int
    date: date
    confidence: float
    type: DatePatternType
    is_range: bool = False
    end_date: date | None = None


@dataclass(frozen=True)
class TimeMatch:
    text: str
    start: time
    end: time | None = None


DATE_PATTERNS: tuple[DatePattern, ...] = (
    DatePattern(
        re.compile(rf"\b({_FULL_MONTH})\s+(\d{{1,2}}){_ORDINAL},?\s+(\d{{4}})\b", re.I),
        DatePatternType.FULL_DATE,
        0.95,
    ),
    DatePattern(
        re.compile(rf"\b({_SHORT_MONTH})\.?\s+(\d{{1,2}}){_ORDINAL},?\s+(\d{{4}})\b", re.I),
        DatePatternType.SHORT_DATE,
        0.90,
    ),
    DatePattern(
        re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{2,4})\b"),
        DatePatternType.NUMERIC_DATE,
        0.80,
    ),
    DatePattern(
        re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b"),
        DatePatternType.ISO_DATE,
        0.95,
    ),
    DatePattern(
        re.compile(rf"\b({_WEEKDAY}),?\s+({_ANY_MONTH})\.?\s+(\d{{1,2}}){_ORDINAL}\b", re.I),
        DatePatternType.WEEKDAY_DATE,
        0.85,
    ),
    DatePattern(
        re.compile(rf"\b({_ANY_MONTH})\.?\s+(\d{{1,2}}){_ORDINAL}\b", re.I),
        DatePatternType.MONTH_DAY,
        0.70,
    ),
    DatePattern(
        re.compile(rf"\bweek\s+of\s+({_ANY_MONTH})\.?\s+(\d{{1,2}}){_ORDINAL}\b", re.I),
        DatePatternType.WEEK_OF,
        0.75,
    ),
    DatePattern(
        re.compile(
            rf"\b({_ANY_MONTH})\.?\s+(\d{{1,2}}){_ORDINAL}\s*[-–—]\s*"
            rf"(?:({_ANY_MONTH})\.?\s+)?(\d{{1,2}}){_ORDINAL}\b(?!:|\s*[ap]\.?m\b)",
            re.I,
        ),
        DatePatternType.DATE_RANGE,
        0.80,
    ),
)

# Confidence multipliers
NO_YEAR_FACTOR = 0.9
AMBIGUOUS_NUMERIC_FACTOR = 0.9
WEEKDAY_MISMATCH_FACTOR = 0.7

_MERIDIEM = r"(a\.?m\.?|p\.?m\.?)"
_TIME_RANGE = re.compile(
    rf"\b(\d{{1,2}})(?::(\d{{2}}))?\s*{_MERIDIEM}?\s*(?:-|–|—|to)\s*"
    rf"(\d{{1,2}})(?::(\d{{2}}))?\s*{_MERIDIEM}?(?![a-z])",
    re.I,
)
_CLOCK_TIME = re.compile(rf"\b(\d{{1,2}}):(\d{{2}})(?:\s*{_MERIDIEM}(?![a-z]))?", re.I)
_HOUR_TIME = re.compile(rf"\b(\d{{1,2}})\s*{_MERIDIEM}(?![a-z])", re.I)
_NAMED_TIME = re.compile(r"\b(noon|midnight)\b", re.I)
_MONTH_BEFORE = re.compile(rf"\b(?:{_ANY_MONTH})\.?\s*$", re.I)


def _month_day(month_name: str, day: str, year: int) -> date | None:
    month = MONTHS.get(month_name.lower())
    if month is None:
        return None
    try:
        return date(year, month, int(day))
    except ValueError:
        return None


def _parse_match(match: re.Match, pattern_type: DatePatternType, confidence: float, year: int):
    if pattern_type in (
        DatePatternType.FULL_DATE,
        DatePatternType.SHORT_DATE,
        DatePatternType.MONTH_DAY,
        DatePatternType.WEEK_OF,
    ):
        has_year = match.lastindex is not None and match.lastindex >= 3
        parsed = _month_day(match.group(1), match.group(2), int(match.group(3)) if has_year else year)
        if parsed is None:
            return None
        if pattern_type == DatePatternType.MONTH_DAY:
            confidence *= NO_YEAR_FACTOR
        return parsed, confidence, None

    if pattern_type == DatePatternType.WEEKDAY_DATE:
        parsed = _month_day(match.group(2), match.group(3), year)
        weekday = WEEKDAYS.get(match.group(1).lower())
        if parsed is None or weekday is None:
            return None
        if parsed.weekday() != weekday:
            confidence *= WEEKDAY_MISMATCH_FACTOR
        return parsed, confidence, None

    if pattern_type == DatePatternType.NUMERIC_DATE:
        first, second, full_year = (int(g) for g in match.groups())
        if full_year < 100:
            full_year += 2000 if full_year < 50 else 1900
        # US order first, then day/month
        for month, day in ((first, second), (second, first)):
            try:
                return date(full_year, month, day), confidence * AMBIGUOUS_NUMERIC_FACTOR, None
            except ValueError:
                continue
        return None

    if pattern_type == DatePatternType.ISO_DATE:
        try:
            parsed = date(*(int(g) for g in match.groups()))
        except ValueError:
            return None
        return parsed, confidence, None

    if pattern_type == DatePatternType.DATE_RANGE:
        start = _month_day(match.group(1), match.group(2), year)
        end = _month_day(match.group(3) or match.group(1), match.group(4), year)
        if start is None or end is None:
            return None
        if end < start:
            # "Dec 20 - Jan 5" wraps into the next year
            end = _month_day(match.group(3) or match.group(1), match.group(4), year + 1)
            if end is None:
                return None
        return start, confidence, end

    return None


def _overlaps(a: DateMatch, b: DateMatch) -> bool:
    return a.start_index < b.end_index and b.start_index < a.end_index


def _deduplicate(matches: list[DateMatch]) -> list[DateMatch]:
    accepted: list[DateMatch] = []
    for current in matches:
        rival = next((m for m in accepted if _overlaps(current, m)), None)
        if rival is None:
            accepted.append(current)
        elif current.confidence > rival.confidence:
            accepted.remove(rival)
            accepted.append(current)
    return sorted(accepted, key=lambda m: m.start_index)


def extract_dates(text: str, year: int | None = None) -> list[DateMatch]:
    """
    Find every date reference in ``text``, ordered by position.

    Year-less dates are placed in ``year`` (default: the current year).
    """
    if not isinstance(text, str):
        raise TypeError("extract_dates expects a string input")

    year = year or date.today().year
    matches: list[DateMatch] = []
    seen_spans: set[tuple[int, int]] = set()

    for date_pattern in DATE_PATTERNS:
        for match in date_pattern.pattern.finditer(text):
            span = match.span()
            if span in seen_spans:
                continue
            parsed = _parse_match(match, date_pattern.type, date_pattern.confidence, year)
            if parsed is None:
                continue
            start, confidence, end = parsed
            matches.append(
                DateMatch(
                    text=match.group(0),
                    start_index=span[0],
                    end_index=span[1],
                    date=start,
                    confidence=confidence,
                    type=date_pattern.type,
                    is_range=end is not None,
                    end_date=end,
                )
            )
            seen_spans.add(span)

    matches.sort(key=lambda m: m.start_index)
    return _deduplicate(matches)


def _to_24h(hour: int, minute: int, meridiem: str | None) -> time | None:
    if minute > 59:
        return None
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        is_pm = meridiem.lower().startswith("p")
        hour = hour % 12 + (12 if is_pm else 0)
    elif hour > 23:
        return None
    return time(hour, minute)


def extract_time(line: str) -> TimeMatch | None:
    """
    First time of day (or time range) mentioned in ``line``.

    "10:00-11:20 AM" yields 10:00 and 11:20; a trailing meridiem applies to
    both ends unless that would put the start after the end. "midnight"
    means the end of the day (23:59) since that is how deadlines use it.
    """
    for match in _TIME_RANGE.finditer(line):
        start_h, start_m, start_mer, end_h, end_m, end_mer = match.groups()
        # Bare "15-22" is a day range, not a time range
        if not (start_m or end_m or start_mer or end_mer):
            continue
        # "Sept 12 - 11:59 PM" starts with a day of month
        if not (start_m or start_mer) and _MONTH_BEFORE.search(line, 0, match.start()):
            continue
        end = _to_24h(int(end_h), int(end_m or 0), end_mer)
        start = _to_24h(int(start_h), int(start_m or 0), start_mer or end_mer)
        if start is not None and end is not None and not start_mer and start > end:
            start = _to_24h(int(start_h), int(start_m or 0), "am")
        if start is not None and end is not None and end > start:
            return TimeMatch(text=match.group(0), start=start, end=end)

    found: list[tuple[int, TimeMatch]] = []
    for match in _CLOCK_TIME.finditer(line):
        parsed = _to_24h(int(match.group(1)), int(match.group(2)), match.group(3))
        if parsed is not None:
            found.append((match.start(), TimeMatch(text=match.group(0), start=parsed)))
            break
    for match in _HOUR_TIME.finditer(line):
        parsed = _to_24h(int(match.group(1)), 0, match.group(2))
        if parsed is not None:
            found.append((match.start(), TimeMatch(text=match.group(0), start=parsed)))
            break
    for match in _NAMED_TIME.finditer(line):
        named = time(12, 0) if match.group(1).lower() == "noon" else time(23, 59)
        found.append((match.start(), TimeMatch(text=match.group(0), start=named)))
        break

    if not found:
        return None
    return min(found, key=lambda item: item[0])[1]


def parse_relative_date(base: date, text: str) -> date | None:
    """Resolve "next Friday" / "this Monday" against ``base``."""
    match = re.match(rf"^(next|this)\s+({_WEEKDAY})$", text.strip().lower())
    if not match:
        return None

    target = WEEKDAYS[match.group(2)]
    days = target - base.weekday()
    if match.group(1) == "next":
        if days <= 0:
            days += 7
    elif days < 0:
        days += 7
    return base + timedelta(days=days)


def analyze_date_extraction(matches: list[DateMatch]) -> dict[str, Any]:
    stats: dict[str, Any] = {
        "total_dates": len(matches),
        "ranges": sum(1 for m in matches if m.is_range),
        "average_confidence": 0.0,
        "type_distribution": {},
        "earliest_date": None,
        "latest_date": None,
    }
    if not matches:
        return stats

    stats["average_confidence"] = sum(m.confidence for m in matches) / len(matches)
    for m in matches:
        stats["type_distribution"][m.type.value] = stats["type_distribution"].get(m.type.value, 0) + 1
    stats["earliest_date"] = min(m.date for m in matches).isoformat()
    stats["latest_date"] = max(m.date for m in matches).isoformat()
    return stats
