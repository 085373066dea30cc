"""Unit tests for provider output parsing."""

import json

import pytest

from autoquiz.errors import QuestionParseError
from autoquiz.llm.parsing import clean_option, parse_questions, resolve_correct_index


def _question(answer="A", options=None, text="Which planet is known as the Red Planet?"):
    return {
        "question": text,
        "options": options or ["Mars", "Venus", "Jupiter", "Saturn"],
        "correctAnswer": answer,
        "explanation": "Iron oxide gives Mars its colour.",
    }


class TestAnswerMapping:
    """Tests for correct-answer resolution."""

    OPTIONS = ["Mars", "Venus", "Jupiter", "Saturn"]

    def test_letter_c_maps_to_index_2(self):
        assert resolve_correct_index({"correctAnswer": "C"}, self.OPTIONS) == (2, False)

    def test_lowercase_and_decorated_letters(self):
        assert resolve_correct_index({"correctAnswer": "b"}, self.OPTIONS) == (1, False)
        assert resolve_correct_index({"correctAnswer": "D)"}, self.OPTIONS) == (3, False)
        assert resolve_correct_index({"correctAnswer": "Option C"}, self.OPTIONS) == (2, False)

    def test_out_of_range_letter_falls_back_to_zero(self):
        assert resolve_correct_index({"correctAnswer": "E"}, self.OPTIONS) == (0, True)

    def test_missing_answer_falls_back_to_zero(self):
        assert resolve_correct_index({}, self.OPTIONS) == (0, True)

    def test_option_text_answer(self):
        assert resolve_correct_index({"correctAnswer": "Jupiter"}, self.OPTIONS) == (2, False)

    def test_option_text_starting_with_letter(self):
        options = ["A triangle", "A square", "A circle", "A line"]
        assert resolve_correct_index({"correctAnswer": "A circle"}, options) == (2, False)

    def test_numeric_index(self):
        assert resolve_correct_index({"correctOptionIndex": 3}, self.OPTIONS) == (3, False)


class TestCleanOption:
    """Tests for option prefix stripping."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("A) Mars", "Mars"),
            ("b. Venus", "Venus"),
            ("C - Jupiter", "Jupiter"),
            ("(D) Saturn", "Saturn"),
            ("Mars", "Mars"),
            ("C-section", "C-section"),
        ],
    )
    def test_prefixes(self, raw, expected):
        assert clean_option(raw) == expected


class TestParseQuestions:
    """Tests for parse_questions."""

    def test_bare_array(self):
        batch = parse_questions(json.dumps([_question("C")]))
        assert len(batch.questions) == 1
        assert batch.questions[0].correct_option_index == 2

    def test_fenced_json_with_preamble(self):
        raw = "Here are your questions:\n```json\n" + json.dumps([_question()]) + "\n```\nEnjoy!"
        batch = parse_questions(raw)
        assert batch.questions[0].options[0] == "Mars"

    def test_reasoning_block_is_ignored(self):
        raw = "<think>Let me consider [the options] carefully.</think>\n" + json.dumps([_question("B")])
        batch = parse_questions(raw)
        assert batch.questions[0].correct_option_index == 1

    def test_trailing_commas_repaired(self):
        raw = '[{"question": "Which planet is the largest one?", "options": ["Mars", "Venus", "Jupiter", "Saturn",], "correctAnswer": "C",},]'
        batch = parse_questions(raw)
        assert batch.questions[0].correct_option == "Jupiter"

    def test_array_found_after_prose_with_brackets(self):
        raw = "Notes [draft] follow. " + json.dumps([_question("D")]) + " That is all."
        batch = parse_questions(raw)
        assert batch.questions[0].correct_option_index == 3

    def test_brackets_inside_strings(self):
        q = _question(text="Which value completes the list [1, 2, ?] in this pattern?")
        batch = parse_questions("Output: " + json.dumps([q]))
        assert "[1, 2, ?]" in batch.questions[0].text

    def test_wrapped_in_object(self):
        batch = parse_questions(json.dumps({"questions": [_question()]}))
        assert len(batch.questions) == 1

    def test_option_prefixes_removed(self):
        q = _question(options=["A) Mars", "B) Venus", "C) Jupiter", "D) Saturn"])
        batch = parse_questions(json.dumps([q]))
        assert batch.questions[0].options == ["Mars", "Venus", "Jupiter", "Saturn"]

    def test_invalid_letter_kept_with_fallback(self):
        batch = parse_questions(json.dumps([_question("E")]))
        assert batch.questions[0].correct_option_index == 0
        assert batch.answer_fallbacks == 1

    def test_malformed_entries_dropped(self):
        items = [
            _question(),
            _question(options=["Mars", "Venus", "Jupiter"], text="Which planet has three options only?"),
            _question(options=["Mars", "Mars", "Venus", "Saturn"], text="Which planet has a duplicate option?"),
            _question(text="Short?"),
            "not an object",
        ]
        batch = parse_questions(json.dumps(items))
        assert len(batch.questions) == 1
        assert batch.dropped == 4

    def test_duplicate_questions_dropped(self):
        batch = parse_questions(json.dumps([_question(), _question()]))
        assert len(batch.questions) == 1
        assert batch.dropped == 1

    def test_all_invalid_raises(self):
        with pytest.raises(QuestionParseError):
            parse_questions(json.dumps([_question(options=["only", "two"])]))

    def test_no_json_raises(self):
        with pytest.raises(QuestionParseError):
            parse_questions("I'm sorry, I cannot help with that.")

    def test_empty_raises(self):
        with pytest.raises(QuestionParseError):
            parse_questions("   ")

    def test_every_question_has_four_options_and_valid_index(self, question_dicts):
        batch = parse_questions(json.dumps(question_dicts(12)))
        for q in batch.questions:
            assert len(q.options) == 4
            assert 0 <= q.correct_option_index <= 3
