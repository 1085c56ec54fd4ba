# syllabus_sync/parsing/text_normalization.py
"""
Text normalization for the heuristic extractor.

Syllabus text usually arrives pasted from a PDF: lines broken mid-word,
Windows line endings, runs of spaces. normalize_text() repairs the common
cases so that date and keyword matching see one logical line per item.
"""

import re
import unicodedata

COMMON_WORDS = frozenset(
    {
        "the", "that", "this", "and", "but", "for", "with", "from", "are", "were",
        "was", "has", "have", "can", "will", "may", "should", "could", "would",
        "here", "there", "when", "where", "what", "how", "why", "who",
    }
)

_HYPHEN_BREAK = re.compile(r"([a-zA-Z])-\s*\n\s*([a-z])")
_WORD_BREAK = re.compile(r"\b([a-z]{2,})\s*\n\s*([a-z]{2,})\b")
_FUNCTION_WORD_BREAK = re.compile(
    r"\b(to|the|a|an|in|on|at|of|for|with|from|by|and|or)\s*\n\s*([A-Z]\S*)"
)
_CONTINUATION = re.compile(r"(\S+)\s*\n\s*([a-z]\S*)")
_LABEL = re.compile(r"^[a-z]+[0-9]+$", re.I)
_LABEL_FOLLOWER = re.compile(r"^[a-z]+[0-9]*$")


def _join_broken_word(match: re.Match) -> str:
    first, second = match.group(1), match.group(2)
    combined = len(first) + len(second)
    if 6 <= combined <= 15 and second.lower() not in COMMON_WORDS:
        return first + second
    return match.group(0)


def _join_continuation(match: re.Match) -> str:
    last_word, next_word = match.group(1), match.group(2)
    # "item1\nitem2" are separate labels, not a wrapped sentence
    if _LABEL.match(last_word) and _LABEL_FOLLOWER.match(next_word):
        return match.group(0)
    return f"{last_word} {next_word}"


def normalize_text(text: str) -> str:
    """
    Clean raw syllabus text.

    NFC normalization, ``\\n`` line endings, re-joined hyphenated and
    wrapped lines, collapsed spaces, at most one blank line in a row,
    trimmed lines.
    """
    if not isinstance(text, str):
        raise TypeError("normalize_text expects a string input")

    normalized = unicodedata.normalize("NFC", text)
    normalized = normalized.replace("\r\n", "\n").replace("\r", "\n")

    # Order matters: hyphen breaks first, sentence continuations last
    normalized = _HYPHEN_BREAK.sub(r"\1\2", normalized)
    normalized = _WORD_BREAK.sub(_join_broken_word, normalized)
    normalized = _FUNCTION_WORD_BREAK.sub(r"\1 \2", normalized)
    normalized = _CONTINUATION.sub(_join_continuation, normalized)

    normalized = re.sub(r"[ \t]+", " ", normalized)
    normalized = re.sub(r"\n{3,}", "\n\n", normalized)
    normalized = re.sub(r"[ \t]+\n", "\n", normalized)
    normalized = re.sub(r"\n[ \t]+", "\n", normalized)

    return normalized.strip()


def split_into_lines(text: str) -> list[str]:
    return [line.strip() for line in text.split("\n") if line.strip()]


def extract_text_blocks(text: str) -> list[str]:
    """Paragraphs separated by blank lines."""
    return [block.strip() for block in re.split(r"\n\s*\n", text) if block.strip()]


def analyze_text(text: str) -> dict[str, float | int | str]:
    lines = split_into_lines(text)
    line_count = len(lines)
    avg_chars_per_line = len(text) / line_count if line_count else 0.0

    if avg_chars_per_line < 40:
        complexity = "low"
    elif avg_chars_per_line < 80:
        complexity = "medium"
    else:
        complexity = "high"

    return {
        "character_count": len(text),
        "line_count": line_count,
        "block_count": len(extract_text_blocks(text)),
        "avg_chars_per_line": round(avg_chars_per_line, 2),
        "complexity": complexity,
    }
