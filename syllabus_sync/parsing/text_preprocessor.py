# syllabus_sync/parsing/text_preprocessor.py
"""
Annotate syllabus text before it is sent to the LLM.

Lines that look like event sources get an ``[EVENT:TYPE]`` tag and the
first ``%`` on a line gets a weight marker, so the model's attention lands
on graded items. Line count and order never change.
"""

import re
from dataclasses import dataclass

WEIGHT_SUFFIX = " — WEIGHT"
TAG_PREFIX = "[EVENT:"


@dataclass(frozen=True)
class MarkerRule:
    tag: str
    pattern: re.Pattern


# Evaluated in order, first match wins
MARKER_RULES: tuple[MarkerRule, ...] = (
    MarkerRule("IMPORTANT", re.compile(r"\bimportant\s+dates\b", re.I)),
    MarkerRule("FINAL", re.compile(r"\bfinal\s+exam\b", re.I)),
    MarkerRule("FINAL", re.compile(r"\bfinals?\b", re.I)),
    MarkerRule("MIDTERM", re.compile(r"\bmidterm\b", re.I)),
    MarkerRule("PROJECT", re.compile(r"\bmini[-\s]?project\b", re.I)),
    MarkerRule("PROJECT", re.compile(r"\bproject\b", re.I)),
    MarkerRule("ASSIGNMENT", re.compile(r"\bassignment\b", re.I)),
    MarkerRule("LECTURE", re.compile(r"\blectures?\b", re.I)),
    MarkerRule("LECTURE", re.compile(r"\bclass(?:es)?\s+meet(?:ings)?\b", re.I)),
    MarkerRule("LECTURE", re.compile(r"\bmeeting\s+times?\b", re.I)),
    MarkerRule("EXAM", re.compile(r"\bexam\b", re.I)),
)

_LINE_SPLIT = re.compile(r"\r?\n")


def find_marker(line: str) -> str | None:
    for rule in MARKER_RULES:
        if rule.pattern.search(line):
            return f"{TAG_PREFIX}{rule.tag}]"
    return None


def _mark_weight(line: str) -> str:
    index = line.find("%")
    if index == -1:
        return line
    after = index + 1
    if line[after:after + len(WEIGHT_SUFFIX)] == WEIGHT_SUFFIX:
        return line
    return f"{line[:after]}{WEIGHT_SUFFIX}{line[after:]}"


def preprocess_line(line: str) -> str:
    if not line:
        return line

    if not line.lstrip().startswith(TAG_PREFIX):
        marker = find_marker(line)
        if marker:
            line = f"{marker} {line}"

    return _mark_weight(line)


def preprocess_text_for_ai(text: str) -> str:
    return "\n".join(preprocess_line(line) for line in _LINE_SPLIT.split(text))
