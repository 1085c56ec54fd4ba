import pytest

from syllabus_sync.parsing.text_normalization import (
    analyze_text,
    extract_text_blocks,
    normalize_text,
    split_into_lines,
)


def test_hyphenated_line_break_is_joined():
    assert normalize_text("The assign-\nment is due Friday") == "The assignment is due Friday"


def test_word_broken_across_lines_is_joined():
    assert normalize_text("Final proj\nect report") == "Final project report"


def test_common_word_on_next_line_is_not_glued():
    assert normalize_text("Complete reading\nthe chapter") == "Complete reading the chapter"


def test_break_after_function_word():
    assert normalize_text("Moved to\nMonday, Oct 6") == "Moved to Monday, Oct 6"


def test_wrapped_sentence_continues():
    assert normalize_text("Submit\nit online") == "Submit it online"


def test_label_pairs_stay_on_separate_lines():
    assert normalize_text("item1\nitem2") == "item1\nitem2"


def test_capitalized_lines_are_kept_apart():
    assert normalize_text("Quiz 1\nQuiz 2") == "Quiz 1\nQuiz 2"


def test_line_endings_blank_lines_and_spaces():
    text = "  Midterm   exam\t\tOct 15  \r\n\r\n\r\n\r\nFinal exam Dec 12\r\n"

    assert normalize_text(text) == "Midterm exam Oct 15\n\nFinal exam Dec 12"


def test_unicode_is_composed():
    assert normalize_text("Cafe\u0301 social") == "Caf\u00e9 social"


def test_rejects_non_string():
    with pytest.raises(TypeError):
        normalize_text(None)


def test_split_into_lines_drops_blank_lines():
    assert split_into_lines("Quiz 1\n\n  \n  Quiz 2  ") == ["Quiz 1", "Quiz 2"]


def test_extract_text_blocks():
    assert extract_text_blocks("Schedule\n\nQuiz 1\nQuiz 2\n \nEnd") == [
        "Schedule",
        "Quiz 1\nQuiz 2",
        "End",
    ]


def test_analyze_text():
    stats = analyze_text("Quiz 1\n\nQuiz 2")

    assert stats["line_count"] == 2
    assert stats["block_count"] == 2
    assert stats["character_count"] == 14
    assert stats["complexity"] == "low"
