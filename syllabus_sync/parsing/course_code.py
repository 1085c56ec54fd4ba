# syllabus_sync/parsing/course_code.py
"""Course code detection for syllabus text."""

import re

# Ordered: earlier patterns win ties at the same text offset
COURSE_CODE_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"\b([A-Z]{2,4}\s?[*\-]?\s?\d{3,4}[A-Z]?)\b"),  # CS101, ENGG*3390, MATH-151
    re.compile(r"\b([A-Z]{2,4}\s?\d{2}[A-Z]?\s?\d{2})\b"),  # ENGG 33 90
    re.compile(r"\b([A-Z]{2,4}\s?[A-Z]\s?\d{3})\b"),  # PSY C 101
    re.compile(r"\b([A-Z]{6,12}\s+\d{1,2}[A-Z]{1,2}\d{1,2})\b"),  # COMMERCE 4BB3
)


def normalize_course_code(value: str) -> str:
    """Collapse whitespace, drop spaces around '*' and '-', uppercase."""
    value = re.sub(r"\s+", " ", value)
    value = re.sub(r"\s*([*\-])\s*", r"\1", value)
    return value.upper().strip()


def detect_course_code(text: str | None) -> str | None:
    """
    Return the earliest-mentioned course code in ``text``, or None.

    Callers must handle a missing code; nothing is invented here.
    """
    if not text:
        return None

    first_seen: dict[str, int] = {}
    for pattern in COURSE_CODE_PATTERNS:
        for match in pattern.finditer(text):
            value = normalize_course_code(match.group(1))
            if len(value) < 2:
                continue
            offset = match.start(1)
            if value not in first_seen or offset < first_seen[value]:
                first_seen[value] = offset

    if not first_seen:
        return None

    return min(first_seen.items(), key=lambda item: item[1])[0]
