"""Unit tests for the answer-variety policy."""

import random
from collections import Counter

import pytest

from autoquiz.llm.variety import enforce_variety, max_share, required_distinct, satisfies_policy
from autoquiz.models import GeneratedQuestion


def _batch(indices):
    return [
        GeneratedQuestion(
            text=f"Question number {i}?",
            options=[f"q{i} opt0", f"q{i} opt1", f"q{i} opt2", f"q{i} opt3"],
            correct_option_index=idx,
        )
        for i, idx in enumerate(indices)
    ]


class TestPolicyBounds:
    """Tests for the policy thresholds."""

    def test_max_share_is_sixty_percent(self):
        assert max_share(10) == 6
        assert max_share(5) == 3
        assert max_share(8) == 4

    def test_required_distinct(self):
        assert required_distinct(10) == 3
        assert required_distinct(2) == 2


class TestEnforceVariety:
    """Tests for redistribution."""

    def test_compliant_batch_untouched(self):
        questions = _batch([0, 1, 2, 3, 0, 1, 2, 3])
        result, adjusted = enforce_variety(questions, rng=random.Random(1))
        assert adjusted is False
        assert result == questions

    def test_all_same_answer_redistributed(self):
        questions = _batch([0] * 10)
        result, adjusted = enforce_variety(questions, rng=random.Random(3))

        assert adjusted is True
        assert satisfies_policy(result)
        counts = Counter(q.correct_option_index for q in result)
        assert max(counts.values()) <= 6
        assert len(counts) >= 3

    def test_correct_text_preserved(self):
        questions = _batch([2] * 12)
        result, _ = enforce_variety(questions, rng=random.Random(5))
        for before, after in zip(questions, result):
            assert after.correct_option == before.correct_option
            assert sorted(after.options) == sorted(before.options)

    def test_input_not_mutated(self):
        questions = _batch([1] * 9)
        enforce_variety(questions, rng=random.Random(2))
        assert all(q.correct_option_index == 1 for q in questions)

    def test_missing_third_index_filled(self):
        questions = _batch([0, 1, 0, 1, 0, 1, 0, 1])
        result, adjusted = enforce_variety(questions, rng=random.Random(4))
        assert adjusted is True
        assert len({q.correct_option_index for q in result}) >= 3

    @pytest.mark.parametrize("size", [8, 9, 13, 20, 37, 50])
    def test_large_batches_never_exceed_share(self, size):
        rng = random.Random(size)
        skewed = [0 if rng.random() < 0.85 else rng.randrange(4) for _ in range(size)]
        result, _ = enforce_variety(_batch(skewed), rng=random.Random(size))
        counts = Counter(q.correct_option_index for q in result)
        assert max(counts.values()) / size <= 0.6
