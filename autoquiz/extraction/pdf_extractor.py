"""PDF text extraction using pdfplumber, with a raw-stream salvage fallback."""

import io
import re
import zlib

import pdfplumber
import structlog

from autoquiz.config import Settings, get_settings
from autoquiz.models import ExtractionMethod, ExtractionResult, FileSource

from .base import Extractor, ExtractorFailure, run_blocking, success_result

logger = structlog.get_logger(__name__)

TEXT_LAYER_CONFIDENCE = 0.9
SALVAGE_CONFIDENCE = 0.3


class PDFExtractor(Extractor):
    """Extract text from PDF uploads.

    The text layer is read page by page first. When it is empty or the
    document cannot be parsed, ``PdfRawTextSalvager`` scans the raw bytes
    and the result is reported at low confidence.
    """

    default_method = ExtractionMethod.PDF_TEXT_LAYER

    def __init__(self, settings: Settings | None = None, salvager: "PdfRawTextSalvager | None" = None):
        settings = settings or get_settings()
        self.max_pages = settings.max_pdf_pages
        self.salvager = salvager or PdfRawTextSalvager()

    async def _extract(self, source: FileSource) -> ExtractionResult:
        logger.info("extracting_pdf", source=source.source_ref, size=source.size)

        primary_error = None
        try:
            text, pages_read, total_pages = await run_blocking(self._read_text_layer, source.data)
        except Exception as e:
            logger.warning("pdf_text_layer_failed", source=source.source_ref, error=str(e))
            primary_error = str(e)
            text, pages_read, total_pages = "", 0, 0

        if text.strip():
            logger.info(
                "pdf_extraction_complete",
                source=source.source_ref,
                pages=pages_read,
                total_pages=total_pages,
                total_chars=len(text),
            )
            return success_result(
                source,
                text,
                TEXT_LAYER_CONFIDENCE,
                ExtractionMethod.PDF_TEXT_LAYER,
                details={"pages_read": pages_read, "total_pages": total_pages},
            )

        salvaged = self.salvager.salvage(source.data)
        if not salvaged:
            raise ExtractorFailure(
                "No readable text found in PDF",
                method=ExtractionMethod.PDF_RAW_SALVAGE,
            )

        logger.info("pdf_salvage_complete", source=source.source_ref, total_chars=len(salvaged))
        return success_result(
            source,
            salvaged,
            SALVAGE_CONFIDENCE,
            ExtractionMethod.PDF_RAW_SALVAGE,
            details={"text_layer_error": primary_error, "total_pages": total_pages},
        )

    def _read_text_layer(self, data: bytes) -> tuple[str, int, int]:
        """Read up to ``max_pages`` pages of text. Unreadable pages are skipped."""
        page_texts = []
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            total_pages = len(pdf.pages)
            for page_num, page in enumerate(pdf.pages[: self.max_pages], start=1):
                try:
                    text = page.extract_text() or ""
                except Exception as e:
                    logger.debug("pdf_page_failed", page=page_num, error=str(e))
                    continue

                text = _clean_page_text(text)
                if text:
                    page_texts.append(text)
                logger.debug("page_extracted", page=page_num, chars=len(text))

        return "\n\n".join(page_texts), len(page_texts), total_pages


def _clean_page_text(text: str) -> str:
    """Clean extracted page text.

    - Normalizes multiple spaces to single space
    - Strips trailing whitespace from lines
    - Collapses runs of blank lines into one paragraph break

    Args:
        text: Raw extracted text.

    Returns:
        Cleaned text.
    """
    if not text:
        return ""

    cleaned_lines = []
    for line in text.split("\n"):
        line = line.rstrip()
        while "  " in line:
            line = line.replace("  ", " ")
        cleaned_lines.append(line)

    result = "\n".join(cleaned_lines)
    while "\n\n\n" in result:
        result = result.replace("\n\n\n", "\n\n")

    return result.strip()


class PdfRawTextSalvager:
    """Last-resort recovery of readable text from raw PDF bytes.

    Looks for string operands of text-showing operators (``(..) Tj`` and
    ``[..] TJ``) in plain and Flate-compressed content streams, then for
    long printable runs. PDF structural tokens are filtered out before the
    fragments are joined.
    """

    _STREAM = re.compile(rb"stream\r?\n(.*?)\r?\nendstream", re.DOTALL)
    _TJ_STRING = re.compile(rb"\(((?:\\.|[^\\)])*)\)\s*Tj")
    _TJ_ARRAY = re.compile(rb"\[((?:\\.|[^\]])*)\]\s*TJ")
    _ARRAY_STRING = re.compile(rb"\(((?:\\.|[^\\)])*)\)")
    _PRINTABLE_RUN = re.compile(r"[A-Za-z0-9\s.,!?;:\-()\[\]\"']{20,}")
    _STRUCTURAL = re.compile(
        r"\b(?:obj|endobj|stream|endstream|xref|trailer|startxref|FlateDecode|"
        r"Filter|Length|Type|Catalog|Pages|Page|MediaBox|Resources|Font|XObject|"
        r"ProcSet|Encoding|BaseFont|Subtype)\b"
    )

    max_fragments = 50
    min_fragment_chars = 10

    def salvage(self, data: bytes) -> str:
        """Return the best-effort text, or an empty string."""
        fragments = self._text_operands(data)
        if not fragments:
            fragments = self._printable_runs(data)

        fragments = [f for f in fragments if not self._looks_structural(f)]
        return " ".join(fragments[: self.max_fragments]).strip()

    def _text_operands(self, data: bytes) -> list[str]:
        chunks = [data]
        for match in self._STREAM.finditer(data):
            try:
                chunks.append(zlib.decompress(match.group(1)))
            except zlib.error:
                continue

        fragments = []
        for chunk in chunks:
            for match in self._TJ_STRING.finditer(chunk):
                fragments.append(_decode_pdf_string(match.group(1)))
            for match in self._TJ_ARRAY.finditer(chunk):
                parts = self._ARRAY_STRING.findall(match.group(1))
                fragments.append("".join(_decode_pdf_string(p) for p in parts))

        return [f.strip() for f in fragments if len(f.strip()) >= 2]

    def _printable_runs(self, data: bytes) -> list[str]:
        text = data.decode("latin-1")
        runs = (" ".join(m.split()) for m in self._PRINTABLE_RUN.findall(text))
        return [r for r in runs if len(r) > self.min_fragment_chars]

    def _looks_structural(self, fragment: str) -> bool:
        tokens = fragment.split()
        if not tokens:
            return True
        hits = len(self._STRUCTURAL.findall(fragment))
        return hits / len(tokens) > 0.3 or not re.search(r"[A-Za-z]{2,}", fragment)


def _decode_pdf_string(raw: bytes) -> str:
    """Decode a literal PDF string, resolving the common escapes."""
    text = raw.decode("latin-1")
    text = re.sub(r"\\([nrtbf])", " ", text)
    text = re.sub(r"\\([()\\])", r"\1", text)
    text = re.sub(r"\\\d{1,3}", "", text)
    return text
