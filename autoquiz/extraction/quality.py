"""Heuristic 1..10 quality score for extracted text.

The score is a pure function of ``(text, confidence)`` so it can be
recomputed anywhere and compared across adapters.
"""

import re

MIN_QUALITY = 1
MAX_QUALITY = 10

# A "word" made only of letters, digits and ordinary punctuation
_WORD_SHAPE = re.compile(r"^[\w.,!?;:'\"()\-]+$")
_SENTENCE = re.compile(r"\w[^.!?]{4,}[.!?]")

# Artifacts typical of OCR or binary salvage
_CORRUPTION_PATTERNS = (
    re.compile(r"[|]{2,}"),
    re.compile(r"_{3,}"),
    # isolated single letters other than the words "a" and "i"
    re.compile(r"\s[b-hj-z]\s"),
    re.compile(r"\d{10,}"),
)


def clamp_quality(value: float) -> int:
    """Round and clamp a raw score into [1, 10]."""
    return max(MIN_QUALITY, min(MAX_QUALITY, int(round(value))))


def score(text: str, confidence: float) -> int:
    """Score extracted text for usefulness in question generation.

    Args:
        text: Extracted text.
        confidence: Extraction confidence on a 0..1 scale. Values outside
            the range are clamped.

    Returns:
        Integer quality in [1, 10].
    """
    confidence = max(0.0, min(1.0, confidence))
    quality = round(confidence * 10)

    text = text or ""
    stripped = text.strip()

    if len(stripped) < 50:
        quality -= 3
    elif len(stripped) < 200:
        quality -= 1

    words = stripped.split()
    if words:
        valid_ratio = sum(1 for w in words if _WORD_SHAPE.match(w)) / len(words)
        if valid_ratio < 0.5:
            quality -= 3
        elif valid_ratio < 0.7:
            quality -= 2
        elif valid_ratio < 0.9:
            quality -= 1
    else:
        quality -= 3

    if not _SENTENCE.search(stripped):
        quality -= 2

    padded = f" {stripped} "
    for pattern in _CORRUPTION_PATTERNS:
        if pattern.search(padded):
            quality -= 1

    return clamp_quality(quality)
