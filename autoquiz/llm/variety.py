"""Answer-position variety policy for a batch of questions."""

import random
from collections import Counter

import structlog

from autoquiz.models import GeneratedQuestion

logger = structlog.get_logger(__name__)

OPTION_COUNT = 4


def max_share(batch_size: int) -> int:
    """Largest number of questions that may share one correct index (60%)."""
    return max(1, (batch_size * 3) // 5)


def required_distinct(batch_size: int) -> int:
    """Number of distinct correct indices the batch must use."""
    return min(3, batch_size)


def satisfies_policy(questions: list[GeneratedQuestion]) -> bool:
    """Check the batch against the variety policy."""
    if not questions:
        return True
    counts = Counter(q.correct_option_index for q in questions)
    n = len(questions)
    return max(counts.values()) <= max_share(n) and len(counts) >= required_distinct(n)


def enforce_variety(
    questions: list[GeneratedQuestion],
    rng: random.Random | None = None,
) -> tuple[list[GeneratedQuestion], bool]:
    """Redistribute correct answers when the batch violates the policy.

    A question whose answer sits on the most common index has its correct
    option swapped with the option on the least common index. The correct
    text stays marked correct; only positions change.

    Args:
        questions: Validated questions.
        rng: Random source, injectable for deterministic tests.

    Returns:
        Tuple of (questions, adjusted). The input list is not modified.
    """
    if satisfies_policy(questions):
        return list(questions), False

    rng = rng or random.Random()
    result = list(questions)
    moves = 0

    # Each move lowers the largest bucket or fills an empty one
    while not satisfies_policy(result) and moves < len(result) * OPTION_COUNT:
        counts = Counter(q.correct_option_index for q in result)
        most = max(counts.values())
        source_index = rng.choice([i for i, c in counts.items() if c == most])
        fewest = min(counts.get(i, 0) for i in range(OPTION_COUNT))
        target_index = rng.choice([i for i in range(OPTION_COUNT) if counts.get(i, 0) == fewest])

        candidates = [pos for pos, q in enumerate(result) if q.correct_option_index == source_index]
        pos = rng.choice(candidates)
        result[pos] = _move_answer(result[pos], target_index)
        moves += 1

    logger.info(
        "answer_variety_adjusted",
        moves=moves,
        distribution=dict(sorted(Counter(q.correct_option_index for q in result).items())),
    )
    return result, True


def _move_answer(question: GeneratedQuestion, target_index: int) -> GeneratedQuestion:
    options = list(question.options)
    current = question.correct_option_index
    options[current], options[target_index] = options[target_index], options[current]
    return question.model_copy(update={"options": options, "correct_option_index": target_index})
