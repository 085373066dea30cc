"""Common interface shared by all extractor adapters."""

import asyncio
import functools
import time
from abc import ABC, abstractmethod

import structlog

from autoquiz.models import ExtractionMethod, ExtractionResult, SourceKind

from . import quality

logger = structlog.get_logger(__name__)


class ExtractorFailure(Exception):
    """Expected extraction failure with a user-presentable reason."""

    def __init__(self, message: str, method: ExtractionMethod | None = None):
        super().__init__(message)
        self.method = method


class Extractor(ABC):
    """Adapter turning one content source into an ExtractionResult.

    ``extract`` never raises past its boundary except for cancellation:
    every failure becomes a result with ``success=False``.
    """

    #: Method reported when the adapter fails before choosing one
    default_method: ExtractionMethod

    async def extract(self, source) -> ExtractionResult:
        start = time.perf_counter()
        try:
            result = await self._extract(source)
        except asyncio.CancelledError:
            raise
        except ExtractorFailure as e:
            result = failure_result(source, e.method or self.default_method, str(e))
        except Exception as e:
            logger.warning(
                "extractor_error",
                extractor=type(self).__name__,
                source=source.source_ref,
                error=str(e),
            )
            result = failure_result(source, self.default_method, f"Extraction failed: {e}")

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        return result.model_copy(update={"processing_time_ms": elapsed_ms})

    @abstractmethod
    async def _extract(self, source) -> ExtractionResult:
        """Adapter-specific extraction. May raise ExtractorFailure."""


def success_result(
    source,
    text: str,
    confidence: float,
    method: ExtractionMethod,
    quality_score: int | None = None,
    details: dict | None = None,
) -> ExtractionResult:
    """Build a successful result, scoring the text unless a score is given."""
    text = text.strip()
    if not text:
        return failure_result(source, method, "No text found")

    confidence = max(0.0, min(1.0, confidence))
    if quality_score is None:
        quality_score = quality.score(text, confidence)

    return ExtractionResult(
        source_ref=source.source_ref,
        source_kind=SourceKind(source.kind),
        success=True,
        text=text,
        confidence=confidence,
        quality=quality.clamp_quality(quality_score),
        method=method,
        details=details or {},
    )


def failure_result(source, method: ExtractionMethod, error: str, details: dict | None = None) -> ExtractionResult:
    """Build a failed result carrying the error message."""
    return ExtractionResult(
        source_ref=source.source_ref,
        source_kind=SourceKind(source.kind),
        success=False,
        method=method,
        error=error,
        details=details or {},
    )


async def run_blocking(func, *args, **kwargs):
    """Run a blocking library call in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
