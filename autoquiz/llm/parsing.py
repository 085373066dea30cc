"""Defensive parsing of provider output into validated questions.

Provider text is untrusted: it may contain reasoning blocks, markdown
fences, prose around the JSON, trailing commas or lettered option
prefixes. Each question is validated on its own and unrecoverable
entries are dropped rather than failing the batch.
"""

import json
import re
from dataclasses import dataclass, field

import structlog
from pydantic import ValidationError

from autoquiz.errors import QuestionParseError, QuestionValidationError
from autoquiz.models import OPTION_LETTERS, GeneratedQuestion

logger = structlog.get_logger(__name__)

MIN_QUESTION_CHARS = 10
MAX_QUESTION_CHARS = 500
MAX_OPTION_CHARS = 200

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
_CODE_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_OPTION_PREFIXES = (
    re.compile(r"^[A-Da-d]\)\s*"),
    re.compile(r"^\([A-Da-d]\)\s*"),
    re.compile(r"^[A-Da-d]\.\s+"),
    re.compile(r"^[A-Da-d]\s*[-:]\s+"),
)
_ANSWER_LETTER = re.compile(r"^(?:option\s+|answer\s*:?\s*)?\(?([A-Da-d])\)?(?:[).:\s]|$)", re.IGNORECASE)


@dataclass
class ParsedBatch:
    """Questions recovered from one provider response."""

    questions: list[GeneratedQuestion]
    dropped: int = 0
    answer_fallbacks: int = 0
    drop_reasons: list[str] = field(default_factory=list)


def parse_questions(raw: str) -> ParsedBatch:
    """Parse and validate a provider response.

    Args:
        raw: Raw provider text.

    Returns:
        ParsedBatch with at least one question.

    Raises:
        QuestionParseError: If no JSON array can be found or no question
            survives validation.
    """
    items = _parse_question_array(raw)

    batch = ParsedBatch(questions=[])
    seen_texts = set()
    for index, item in enumerate(items):
        try:
            question, used_fallback = coerce_question(item)
        except QuestionValidationError as e:
            batch.dropped += 1
            batch.drop_reasons.append(f"#{index + 1}: {e.message}")
            continue

        key = question.text.strip().lower()
        if key in seen_texts:
            batch.dropped += 1
            batch.drop_reasons.append(f"#{index + 1}: duplicate question")
            continue
        seen_texts.add(key)

        if used_fallback:
            batch.answer_fallbacks += 1
        batch.questions.append(question)

    if batch.dropped:
        logger.warning("questions_dropped", dropped=batch.dropped, reasons=batch.drop_reasons[:5])

    if not batch.questions:
        raise QuestionParseError(f"No valid questions in response ({batch.dropped} dropped)")

    return batch


def coerce_question(item) -> tuple[GeneratedQuestion, bool]:
    """Repair one parsed entry into a GeneratedQuestion.

    Returns:
        Tuple of (question, used_answer_fallback).

    Raises:
        QuestionValidationError: If the entry cannot be repaired.
    """
    if not isinstance(item, dict):
        raise QuestionValidationError("entry is not an object")

    text = _first_str(item, "question", "text", "prompt", "questionText")
    if not text:
        raise QuestionValidationError("missing question text")
    if not MIN_QUESTION_CHARS <= len(text) <= MAX_QUESTION_CHARS:
        raise QuestionValidationError(f"question length {len(text)} out of range")

    options = _extract_options(item)
    if len(options) != 4:
        raise QuestionValidationError(f"expected 4 options, got {len(options)}")
    if any(not o or len(o) > MAX_OPTION_CHARS for o in options):
        raise QuestionValidationError("option text empty or too long")

    index, used_fallback = resolve_correct_index(item, options)
    if used_fallback:
        logger.warning(
            "answer_fallback_to_first_option",
            question_preview=text[:80],
            correct_answer=str(item.get("correctAnswer", item.get("correct_answer")))[:20],
        )

    explanation = _first_str(item, "explanation", "rationale")
    topic = _first_str(item, "topic", "category")

    try:
        question = GeneratedQuestion(
            text=text,
            options=options,
            correct_option_index=index,
            explanation=explanation or None,
            topic=topic or None,
        )
    except ValidationError as e:
        raise QuestionValidationError(e.errors()[0].get("msg", "invalid question")) from e

    return question, used_fallback


def resolve_correct_index(item: dict, options: list[str]) -> tuple[int, bool]:
    """Map the provider's answer field to an option index.

    Accepts a letter ("C", "c", "C)", "Option C"), a 0-based index, or the
    exact text of one of the options. Anything else falls back to 0.

    Returns:
        Tuple of (index, used_fallback).
    """
    for key in ("correctOptionIndex", "correct_option_index", "correctIndex"):
        value = item.get(key)
        if isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 3:
            return value, False

    answer = None
    for key in ("correctAnswer", "correct_answer", "answer", "correct"):
        if key in item and item[key] is not None:
            answer = item[key]
            break

    if isinstance(answer, int) and not isinstance(answer, bool):
        if 0 <= answer <= 3:
            return answer, False
        return 0, True

    if isinstance(answer, str):
        candidate = answer.strip()
        # Option text first, so an answer like "A triangle" is not read as letter A
        lowered = clean_option(candidate).lower()
        for i, option in enumerate(options):
            if option.lower() == lowered or option.lower() == candidate.lower():
                return i, False

        match = _ANSWER_LETTER.match(candidate)
        if match:
            return OPTION_LETTERS.index(match.group(1).upper()), False

    return 0, True


def clean_option(option: str) -> str:
    """Strip list prefixes such as "A) ", "B. " or "C - "."""
    option = option.strip()
    for pattern in _OPTION_PREFIXES:
        stripped = pattern.sub("", option, count=1)
        if stripped != option:
            return stripped.strip()
    return option


def _extract_options(item: dict) -> list[str]:
    raw = None
    for key in ("options", "choices", "answers"):
        if key in item:
            raw = item[key]
            break

    if isinstance(raw, dict):
        # {"A": "...", "B": "..."}
        if all(letter in raw for letter in OPTION_LETTERS):
            raw = [raw[letter] for letter in OPTION_LETTERS]
        else:
            raw = list(raw.values())

    if not isinstance(raw, list):
        return []

    return [clean_option(str(o)) for o in raw if o is not None]


def _first_str(item: dict, *keys: str) -> str:
    for key in keys:
        value = item.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _parse_question_array(raw: str) -> list:
    """Locate and decode the question array in a provider response."""
    if not raw or not raw.strip():
        raise QuestionParseError("Empty response from provider")

    text = _THINK_BLOCK.sub("", raw)
    # A reasoning block left open by a truncated response
    if "</think>" in text:
        text = text.split("</think>", 1)[1]
    text = text.strip()

    logger.debug("raw_provider_response", response_length=len(text), preview=text[:300])

    block = _CODE_BLOCK.search(text)
    if block and block.group(1).strip()[:1] in ("[", "{"):
        candidates = [block.group(1).strip(), text]
    else:
        candidates = [text]

    for candidate in candidates:
        parsed = _loads_lenient(candidate)
        if parsed is None:
            parsed = _scan_for_array(candidate)
        if parsed is not None:
            items = _unwrap(parsed)
            if items is not None:
                return items

    logger.error("question_parse_error", response_preview=text[:300])
    raise QuestionParseError(f"No JSON question array found. Response preview: {text[:150]}")


def _unwrap(parsed) -> list | None:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in ("questions", "quiz", "items", "data"):
            if isinstance(parsed.get(key), list):
                return parsed[key]
        if "question" in parsed:
            return [parsed]
    return None


def _loads_lenient(text: str):
    try:
        return json.loads(_clean_json_string(text))
    except json.JSONDecodeError:
        return None


def _scan_for_array(text: str):
    """Try each '[' in turn until a balanced, decodable array is found."""
    start = text.find("[")
    while start != -1:
        extracted = _extract_balanced(text, start)
        if extracted:
            parsed = _loads_lenient(extracted)
            if isinstance(parsed, list) and parsed:
                return parsed
        start = text.find("[", start + 1)

    # An object wrapping the array, e.g. {"questions": [...]}
    start = text.find("{")
    if start != -1:
        extracted = _extract_balanced(text, start)
        if extracted:
            return _loads_lenient(extracted)
    return None


def _extract_balanced(text: str, start: int) -> str | None:
    """Return the bracketed substring starting at ``start``.

    Brackets inside JSON strings are ignored.
    """
    opener = text[start]
    closer = "]" if opener == "[" else "}"
    depth = 0
    in_string = False
    escape_next = False

    for i in range(start, len(text)):
        char = text[i]
        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    return None


def _clean_json_string(text: str) -> str:
    """Clean common issues in JSON strings from LLM output.

    Args:
        text: Raw JSON string.

    Returns:
        Cleaned JSON string.
    """
    # Remove any BOM or zero-width characters
    text = text.strip("\ufeff\u200b\u200c\u200d").strip()

    # Remove trailing commas before } or ] (invalid JSON but common LLM mistake)
    text = re.sub(r",(\s*[}\]])", r"\1", text)

    return text
