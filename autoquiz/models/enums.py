"""Enumeration types for the pipeline models."""

from enum import Enum


class SourceKind(str, Enum):
    """Kind of a submitted content source."""

    FILE = "file"
    LINK = "link"
    TOPIC = "topic"


class ContentType(str, Enum):
    """Content type of merged content, derived from contributing sources."""

    DOCUMENT = "document"
    TOPIC = "topic"
    MIXED = "mixed"
    LINK = "link"


class ExtractionMethod(str, Enum):
    """Method that produced an extraction result."""

    OCR = "ocr"
    PDF_TEXT_LAYER = "pdf_text_layer"
    PDF_RAW_SALVAGE = "pdf_raw_salvage"
    PLAIN_TEXT = "plain_text"
    DOCX = "docx"
    DOC_SALVAGE = "doc_salvage"
    WEB_PAGE = "web_page"
    VIDEO_TRANSCRIPT = "video_transcript"
    VIDEO_METADATA = "video_metadata"
    TOPIC = "topic"
    PREFLIGHT = "preflight"


class Difficulty(str, Enum):
    """Requested question difficulty."""

    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class AttemptState(str, Enum):
    """States of a single provider generation attempt."""

    PENDING = "pending"
    PROMPT_BUILT = "prompt_built"
    PROVIDER_CALLED = "provider_called"
    PARSE_OK = "parse_ok"
    PARSE_FAILED = "parse_failed"
    PROVIDER_FAILED = "provider_failed"
    VALIDATED = "validated"
    EXHAUSTED = "exhausted"


class ErrorKind(str, Enum):
    """User-facing error categories."""

    INPUT = "input"
    EXTRACTION = "extraction"
    QUOTA = "quota"
    GENERATION = "generation"
    VALIDATION = "validation"
