"""Routes content sources to extractors and gathers their results."""

import asyncio

import structlog

from autoquiz.config import Settings, get_settings
from autoquiz.models import (
    ExtractionMethod,
    ExtractionResult,
    FileSource,
    LinkSource,
    TopicSource,
)

from .base import Extractor, failure_result
from .document import DocumentExtractor
from .formats import FileFormat, detect_format, has_image_signature, has_pdf_signature, is_allowed
from .ocr import OcrExtractor
from .pdf_extractor import PDFExtractor
from .topic import TopicExtractor
from .video import VideoTranscriptExtractor, is_video_url
from .web import WebPageExtractor

logger = structlog.get_logger(__name__)


class ExtractionCoordinator:
    """Fan out extraction over all submitted sources.

    File sources share a bounded worker pool; link and topic sources run
    without the limit. Results come back in submission order and a failure
    of one source never affects its siblings.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        ocr: Extractor | None = None,
        pdf: Extractor | None = None,
        document: Extractor | None = None,
        web: Extractor | None = None,
        video: Extractor | None = None,
        topic: Extractor | None = None,
    ):
        self.settings = settings or get_settings()
        self.ocr = ocr or OcrExtractor(settings=self.settings)
        self.pdf = pdf or PDFExtractor(settings=self.settings)
        self.document = document or DocumentExtractor()
        self.web = web or WebPageExtractor(settings=self.settings)
        self.video = video or VideoTranscriptExtractor(settings=self.settings)
        self.topic = topic or TopicExtractor()

    async def extract(self, sources: list) -> list[ExtractionResult]:
        """Extract every source.

        Args:
            sources: Content sources in submission order.

        Returns:
            One ExtractionResult per source, in the same order.
        """
        semaphore = asyncio.Semaphore(self.settings.extraction_concurrency)
        results = await asyncio.gather(*(self._extract_one(source, semaphore) for source in sources))

        succeeded = sum(1 for r in results if r.success)
        logger.info("extraction_complete", sources=len(results), succeeded=succeeded, failed=len(results) - succeeded)
        return list(results)

    async def _extract_one(self, source, semaphore: asyncio.Semaphore) -> ExtractionResult:
        if isinstance(source, FileSource):
            error = self.preflight(source)
            if error:
                logger.info("file_rejected", source=source.source_ref, reason=error)
                return failure_result(source, ExtractionMethod.PREFLIGHT, error)
            async with semaphore:
                return await self._with_timeout(self._extractor_for_file(source), source)

        if isinstance(source, LinkSource):
            extractor = self.video if is_video_url(source.url) else self.web
            return await self._with_timeout(extractor, source)

        if isinstance(source, TopicSource):
            return await self._with_timeout(self.topic, source)

        raise TypeError(f"Unknown content source: {type(source).__name__}")

    async def _with_timeout(self, extractor: Extractor, source) -> ExtractionResult:
        try:
            return await asyncio.wait_for(
                extractor.extract(source),
                timeout=self.settings.extraction_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("extraction_timeout", source=source.source_ref)
            return failure_result(source, extractor.default_method, "Extraction timed out")

    def _extractor_for_file(self, source: FileSource) -> Extractor:
        file_format = detect_format(source.filename, source.mime_hint)
        if file_format == FileFormat.PDF:
            return self.pdf
        if file_format == FileFormat.IMAGE:
            return self.ocr
        return self.document

    def preflight(self, source: FileSource) -> str | None:
        """Check size and type constraints before dispatch.

        Returns:
            An error message for a rejected file, or None.
        """
        settings = self.settings
        if source.size > settings.max_file_size_bytes:
            limit_mb = settings.max_file_size_bytes / (1024 * 1024)
            return f"File too large. Maximum size is {limit_mb:g}MB"

        if source.size < settings.min_file_size_bytes:
            return "File is empty"

        if not is_allowed(source.filename, settings.supported_file_extensions):
            return f"Unsupported file type: {source.filename}"

        file_format = detect_format(source.filename, source.mime_hint)
        if file_format is None:
            return f"Unsupported file type: {source.filename}"

        if file_format == FileFormat.IMAGE:
            if source.size < settings.min_image_size_bytes:
                return "Image file is too small to contain readable text"
            if not has_image_signature(source.data):
                return "File content is not a valid image"

        if file_format == FileFormat.PDF and not has_pdf_signature(source.data):
            return "Invalid PDF file"

        return None
