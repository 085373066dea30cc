"""Extraction for pre-formatted text documents (.txt, .docx, .doc)."""

import io
import re

import structlog
from docx import Document as DocxDocument

from autoquiz.models import ExtractionMethod, ExtractionResult, FileSource

from .base import Extractor, ExtractorFailure, run_blocking, success_result
from .formats import FileFormat, detect_format
from .normalize import normalize_text

logger = structlog.get_logger(__name__)

DOCUMENT_CONFIDENCE = 0.95
# Legacy .doc files are binary; the salvaged text is much less reliable
DOC_SALVAGE_CONFIDENCE = 0.5

_PRINTABLE_RUN = re.compile(r"[^\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufffd]{20,}")


class DocumentExtractor(Extractor):
    """Near-deterministic extraction for text and word-processor files."""

    default_method = ExtractionMethod.PLAIN_TEXT

    async def _extract(self, source: FileSource) -> ExtractionResult:
        file_format = detect_format(source.filename, source.mime_hint)

        if file_format == FileFormat.TXT:
            text = normalize_text(_decode_text(source.data))
            return success_result(source, text, DOCUMENT_CONFIDENCE, ExtractionMethod.PLAIN_TEXT)

        if file_format == FileFormat.DOCX:
            text = await run_blocking(_read_docx, source.data)
            return success_result(source, normalize_text(text), DOCUMENT_CONFIDENCE, ExtractionMethod.DOCX)

        if file_format == FileFormat.DOC:
            return await self._extract_legacy_doc(source)

        raise ExtractorFailure(f"Unsupported document type: {source.filename}")

    async def _extract_legacy_doc(self, source: FileSource) -> ExtractionResult:
        # Some ".doc" uploads are really DOCX archives
        if source.data.startswith(b"PK"):
            try:
                text = await run_blocking(_read_docx, source.data)
            except Exception as e:
                logger.debug("doc_as_docx_failed", source=source.source_ref, error=str(e))
            else:
                return success_result(source, normalize_text(text), DOCUMENT_CONFIDENCE, ExtractionMethod.DOCX)

        text = _salvage_printable(source.data)
        if not text:
            raise ExtractorFailure("No readable text found in document", method=ExtractionMethod.DOC_SALVAGE)
        return success_result(source, text, DOC_SALVAGE_CONFIDENCE, ExtractionMethod.DOC_SALVAGE)


def _decode_text(data: bytes) -> str:
    """Decode text bytes as UTF-8 (with or without BOM), else Latin-1."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def _read_docx(data: bytes) -> str:
    """Read paragraphs and table cells from a DOCX file."""
    document = DocxDocument(io.BytesIO(data))
    parts = [p.text for p in document.paragraphs if p.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                parts.append(" | ".join(cells))
    return "\n".join(parts)


def _salvage_printable(data: bytes) -> str:
    """Collect long printable runs from a binary word-processor file."""
    runs = []
    # Word 97-2003 stores body text as UTF-16LE or as 8-bit text
    for encoding in ("utf-16-le", "latin-1"):
        decoded = data.decode(encoding, errors="replace")
        runs.extend(m.strip() for m in _PRINTABLE_RUN.findall(decoded))
    words_only = [r for r in runs if re.search(r"[A-Za-z]{3,}", r)]
    return normalize_text("\n".join(dict.fromkeys(words_only)))
