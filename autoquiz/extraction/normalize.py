"""Text normalisation and merging of extraction results."""

import re
import unicodedata

import structlog

from autoquiz.errors import ExtractionError
from autoquiz.models import ContentType, ExtractionResult, NormalizedContent, SourceKind

logger = structlog.get_logger(__name__)

_WHITESPACE_RE = re.compile(r"[ \t\u00a0]+")
_MULTIPLE_NEWLINES_RE = re.compile(r"\n{3,}")
_TRAILING_SPACE_RE = re.compile(r"[ \t]+\n")
_URL_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")

_SOURCE_LABELS = {
    SourceKind.FILE: "document",
    SourceKind.LINK: "link",
    SourceKind.TOPIC: "topic",
}

_KIND_CONTENT_TYPES = {
    SourceKind.FILE: ContentType.DOCUMENT,
    SourceKind.LINK: ContentType.LINK,
    SourceKind.TOPIC: ContentType.TOPIC,
}


def normalize_text(text: str) -> str:
    """Normalise whitespace and Unicode representation."""
    normalized = unicodedata.normalize("NFC", text)
    normalized = normalized.replace("\r\n", "\n").replace("\r", "\n")
    normalized = _WHITESPACE_RE.sub(" ", normalized)
    normalized = _TRAILING_SPACE_RE.sub("\n", normalized)
    normalized = _MULTIPLE_NEWLINES_RE.sub("\n\n", normalized)
    return normalized.strip()


def normalize_url(url: str) -> str:
    """Strip the link and prefix ``https://`` when it was pasted without a scheme."""
    url = url.strip()
    if url and not _URL_SCHEME_RE.match(url):
        return f"https://{url}"
    return url


def source_label(result: ExtractionResult) -> str:
    """Fenced label marking where a block of merged text came from."""
    return f"--- [{_SOURCE_LABELS[result.source_kind]}: {result.source_ref}] ---"


def derive_content_type(results: list[ExtractionResult]) -> ContentType:
    """Content type from the kinds of the successful sources."""
    kinds = {r.source_kind for r in results if r.success}
    if len(kinds) == 1:
        return _KIND_CONTENT_TYPES[kinds.pop()]
    return ContentType.MIXED


def merge_results(results: list[ExtractionResult], max_chars: int) -> NormalizedContent:
    """Merge successful extraction results in submission order.

    Args:
        results: One result per submitted source, in submission order.
        max_chars: Upper bound on the merged text length.

    Returns:
        NormalizedContent with all results attached for diagnostics.

    Raises:
        ExtractionError: If no source produced usable text.
    """
    successful = [r for r in results if r.success and r.text.strip()]
    if not successful:
        reasons = {r.source_ref: r.error or "no text" for r in results}
        logger.warning("extraction_all_failed", sources=len(results))
        raise ExtractionError(
            "Could not extract usable content from any of the provided sources",
            details={"sources": reasons},
        )

    blocks = [f"{source_label(r)}\n{r.text.strip()}" for r in successful]
    text = "\n\n".join(blocks)

    truncated = len(text) > max_chars
    if truncated:
        text = text[:max_chars].rstrip()
        logger.info("content_truncated", max_chars=max_chars)

    overall_quality = sum(r.quality for r in successful) / len(successful)

    return NormalizedContent(
        text=text,
        overall_quality=round(overall_quality, 2),
        content_type=derive_content_type(successful),
        results=list(results),
        truncated=truncated,
    )
