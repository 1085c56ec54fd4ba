# syllabus_sync/parsing/keyword_classifier.py
"""
Keyword line classifier.

Scores a single syllabus line against per-type keyword sets and returns
the most likely EventType with a confidence in [0, 1]. Deterministic and
free of I/O so it can run on every line before (or instead of) an LLM call.
"""

import re
from collections import Counter
from dataclasses import dataclass
from typing import Any

from syllabus_sync.models.domain.event_domain import (
    ClassificationContext,
    ClassificationResult,
    EventType,
)


@dataclass(frozen=True)
class KeywordSet:
    primary: tuple[str, ...]
    secondary: tuple[str, ...]
    weight: float


EVENT_KEYWORDS: dict[EventType, KeywordSet] = {
    EventType.ASSIGNMENT: KeywordSet(
        primary=(
            "assignment", "homework", "hw", "project", "paper", "essay", "report",
            "case study", "problem set", "problem sets", "pset", "exercise", "task", "work",
            "coursework", "classwork", "written assignment", "take-home", "takehome",
            "individual project", "group project", "team project", "final project",
            "research paper", "term paper", "research project", "thesis",
            "assgn", "assn", "assign", "proj", "hmwk",
        ),
        secondary=(
            "deliverable", "submission", "writeup", "write-up", "analysis",
            "reflection", "response", "review", "summary", "critique",
            "portfolio", "journal", "blog post", "discussion post",
        ),
        weight=0.9,
    ),
    EventType.QUIZ: KeywordSet(
        primary=(
            "quiz", "pop quiz", "surprise quiz", "quick quiz", "mini quiz",
            "checkpoint", "check", "evaluation", "review",
            "quiz bowl", "knowledge check", "comprehension check", "quick check",
            "spot quiz", "unannounced quiz", "reading quiz", "concept check",
            "qz", "q", "pop-quiz",
        ),
        secondary=(
            "short test", "mini test", "brief assessment", "quick assessment",
            "participation check", "attendance quiz", "prep quiz",
        ),
        weight=0.88,
    ),
    EventType.MIDTERM: KeywordSet(
        primary=(
            "midterm", "mid-term", "mid term", "midterm exam", "midterm test",
            "middle exam", "halfway exam", "semester exam", "mid-semester exam",
            "midterm assessment", "midterm evaluation", "interim exam",
            "mid-quarter exam", "mid-session exam", "progress exam",
        ),
        secondary=("comprehensive exam", "major test", "significant assessment"),
        weight=0.95,
    ),
    EventType.FINAL: KeywordSet(
        primary=(
            "final", "final exam", "final test", "final assessment",
            "final evaluation", "comprehensive final", "cumulative final",
            "end-of-term exam", "semester final", "course final",
            "final examination", "terminal exam", "culminating exam",
            "capstone exam", "exit exam",
        ),
        secondary=(
            "comprehensive exam", "cumulative test", "course conclusion",
            "end assessment", "closing exam",
        ),
        weight=0.95,
    ),
    EventType.LAB: KeywordSet(
        primary=(
            "lab", "laboratory", "lab session", "lab work", "lab report",
            "lab exercise", "practical", "practicum",
            "hands-on", "hands on", "workshop", "studio", "fieldwork",
            "field work", "experiment", "demonstration", "demo",
            "computer lab", "coding lab", "programming lab",
            "wet lab", "dry lab", "virtual lab", "simulation",
        ),
        secondary=(
            "practice session", "applied work", "implementation",
            "technical session", "skill building",
        ),
        weight=0.85,
    ),
    EventType.LECTURE: KeywordSet(
        primary=(
            "lecture", "class", "meeting", "seminar",
            "presentation", "lesson", "instruction", "teaching",
            "class session", "course meeting", "academic session",
            "educational session", "learning session", "study session",
            "discussion", "symposium", "colloquium",
            "webinar", "online session", "virtual class", "zoom session",
            "video conference", "live stream",
        ),
        secondary=(
            "tutorial", "review session", "office hours", "consultation",
            "guest speaker", "guest lecture", "special session",
        ),
        weight=0.75,
    ),
}

DUE_DATE_KEYWORDS = (
    "due", "deadline", "submit", "submission", "turn in", "hand in",
    "deliver", "complete by", "finish by", "must be completed",
    "expected", "required by", "needed by", "should be submitted",
    "upload by", "post by", "send by", "email by",
)

WEIGHT_KEYWORDS = (
    "worth", "weight", "weighted", "percent", "%", "points", "pts",
    "grade", "graded", "scored", "marks", "credit", "credits",
    "counts for", "contributes", "portion", "percentage",
    "out of", "total points", "possible points",
)

NEGATION_KEYWORDS = (
    "no", "not", "cancel", "cancelled", "postpone", "postponed",
    "skip", "skipped", "omit", "omitted", "exclude", "excluded",
    "except", "unless", "without", "instead of", "rather than",
)

NUMBERING_PATTERNS = (
    re.compile(r"\b(?:assignment|homework|hw|quiz|lab|project|paper|exam|test)\s*#?\s*\d+\b", re.I),
    re.compile(r"\b(?:assignment|homework|hw|quiz|lab|project|paper|exam|test)\s*#?\s*(?:\d+|[ivx]+|[a-z])\b", re.I),
    re.compile(
        r"\b(?:first|second|third|fourth|fifth|sixth|seventh|eighth|ninth|tenth)\s+"
        r"(?:assignment|homework|quiz|lab|project|exam|test)\b",
        re.I,
    ),
    re.compile(
        r"\b(?:assignment|homework|quiz|lab|project|exam|test)\s+"
        r"(?:one|two|three|four|five|six|seven|eight|nine|ten)\b",
        re.I,
    ),
)

# A syntactically certain graded deliverable survives negation words
STRONG_PATTERNS = (
    re.compile(r"\b(?:assignment|quiz|exam|test|lab)\s*#?\s*\d+\b", re.I),
    re.compile(r"\bdue\s+(?:date|by|on)\b", re.I),
    re.compile(r"\bworth\s+\d+(?:%|\s*percent|\s*points)", re.I),
)

DUE_DATE_BONUS = 0.15
WEIGHT_BONUS = 0.10
NUMBERING_BONUS = 0.10
NEGATION_CONFIDENCE = 0.1
SECONDARY_FACTOR = 0.7
SECONDARY_IMPACT = 0.5
EXTRA_MATCH_FACTOR = 0.3


def _is_phrase(keyword: str) -> bool:
    return " " in keyword or "-" in keyword


def _keyword_body(keyword: str) -> str:
    """Escaped keyword; phrase parts may be joined by any run of '-' or whitespace."""
    words = [re.escape(w) for w in re.split(r"[-\s]+", keyword.lower()) if w]
    return r"[-\s]*".join(words)


def _compile(keyword: str) -> tuple[re.Pattern, re.Pattern]:
    body = _keyword_body(keyword)
    return (
        re.compile(rf"\b{body}\b", re.I),
        re.compile(rf"^\s*\b{body}\b", re.I),
    )


_PATTERNS: dict[str, tuple[re.Pattern, re.Pattern]] = {}
for _keywords in EVENT_KEYWORDS.values():
    for _kw in _keywords.primary + _keywords.secondary:
        _PATTERNS.setdefault(_kw, _compile(_kw))

_NEGATION_PATTERNS = tuple(_compile(kw)[0] for kw in NEGATION_KEYWORDS)


def _keyword_score(keyword: str, line: str) -> float:
    score = 0.6

    if len(keyword) > 8:
        score += 0.3
    elif len(keyword) > 5:
        score += 0.2
    elif len(keyword) > 3:
        score += 0.1

    if _is_phrase(keyword):
        score += 0.2

    if _PATTERNS[keyword][1].search(line):
        score += 0.1

    return min(score, 1.0)


def _score_type(line: str, keywords: KeywordSet) -> tuple[float, list[str]]:
    matched: list[str] = []
    total = 0.0
    best = 0.0

    for keyword in keywords.primary:
        if _PATTERNS[keyword][0].search(line):
            matched.append(keyword)
            score = _keyword_score(keyword, line) * keywords.weight
            total += score
            best = max(best, score)

    for keyword in keywords.secondary:
        if _PATTERNS[keyword][0].search(line):
            matched.append(keyword)
            score = _keyword_score(keyword, line) * keywords.weight * SECONDARY_FACTOR
            total += score * SECONDARY_IMPACT

    return min(best + (total - best) * EXTRA_MATCH_FACTOR, 1.0), matched


def _analyze_context(line: str) -> ClassificationContext:
    return ClassificationContext(
        has_due_date=any(keyword in line for keyword in DUE_DATE_KEYWORDS),
        has_weight=any(keyword in line for keyword in WEIGHT_KEYWORDS),
        has_negation=any(pattern.search(line) for pattern in _NEGATION_PATTERNS),
        has_numbering=any(pattern.search(line) for pattern in NUMBERING_PATTERNS),
    )


def _has_strong_indicators(line: str) -> bool:
    return any(pattern.search(line) for pattern in STRONG_PATTERNS)


def _apply_bonuses(confidence: float, context: ClassificationContext, line: str) -> float:
    if context.has_due_date:
        confidence += DUE_DATE_BONUS
    if context.has_weight:
        confidence += WEIGHT_BONUS
    if context.has_numbering:
        confidence += NUMBERING_BONUS

    # Very short lines rarely carry a complete event
    if len(line) < 5:
        confidence *= 0.5
    elif len(line) < 10:
        confidence *= 0.8

    return confidence


def classify_line(line: str) -> ClassificationResult:
    """
    Classify one line of syllabus text.

    Returns OTHER with confidence 0 for empty lines or lines without any
    event keyword. Negation words ("cancelled", "no class") force OTHER at
    0.1 unless the line also has a numbered item, an explicit due phrase or
    an explicit percentage/points value.
    """
    if not isinstance(line, str):
        raise TypeError("classify_line expects a string input")

    normalized = line.lower().strip()
    if not normalized:
        return ClassificationResult(type=EventType.OTHER, confidence=0.0)

    context = _analyze_context(normalized)

    if context.has_negation and not _has_strong_indicators(normalized):
        return ClassificationResult(
            type=EventType.OTHER,
            confidence=NEGATION_CONFIDENCE,
            context=context,
        )

    best_type = EventType.OTHER
    best_confidence = 0.0
    best_keywords: list[str] = []
    for event_type, keywords in EVENT_KEYWORDS.items():
        confidence, matched = _score_type(normalized, keywords)
        if confidence > best_confidence:
            best_type, best_confidence, best_keywords = event_type, confidence, matched

    if best_confidence == 0:
        return ClassificationResult(type=EventType.OTHER, confidence=0.0, context=context)

    final = _apply_bonuses(best_confidence, context, normalized)
    return ClassificationResult(
        type=best_type,
        confidence=min(final, 1.0),
        matched_keywords=best_keywords,
        context=context,
    )


@dataclass
class LineClassification:
    line_index: int
    original_text: str
    result: ClassificationResult


def classify_lines(lines: list[str]) -> list[LineClassification]:
    return [
        LineClassification(line_index=i, original_text=line, result=classify_line(line))
        for i, line in enumerate(lines)
    ]


def analyze_classification_results(results: list[ClassificationResult]) -> dict[str, Any]:
    """Aggregate statistics over a batch of classifications."""
    stats: dict[str, Any] = {
        "total_lines": len(results),
        "type_distribution": {event_type.value: 0 for event_type in EventType},
        "average_confidence": 0.0,
        "high_confidence_lines": 0,
        "low_confidence_lines": 0,
        "top_keywords": [],
    }
    if not results:
        return stats

    keyword_counts: Counter[str] = Counter()
    total_confidence = 0.0
    for result in results:
        stats["type_distribution"][result.type.value] += 1
        total_confidence += result.confidence
        if result.confidence >= 0.7:
            stats["high_confidence_lines"] += 1
        if result.confidence <= 0.3:
            stats["low_confidence_lines"] += 1
        keyword_counts.update(result.matched_keywords)

    stats["average_confidence"] = total_confidence / len(results)
    stats["top_keywords"] = [
        {"keyword": keyword, "count": count} for keyword, count in keyword_counts.most_common(10)
    ]
    return stats
