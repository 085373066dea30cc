"""File format detection and byte-level sanity checks for uploads."""

import mimetypes
from enum import Enum
from pathlib import Path


class FileFormat(str, Enum):
    """File formats routed to a dedicated extractor."""

    PDF = "pdf"
    DOCX = "docx"
    DOC = "doc"
    TXT = "txt"
    IMAGE = "image"


IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tif", ".tiff", ".webp"}

_EXTENSION_MAP = {
    ".pdf": FileFormat.PDF,
    ".docx": FileFormat.DOCX,
    ".doc": FileFormat.DOC,
    ".txt": FileFormat.TXT,
    **{ext: FileFormat.IMAGE for ext in IMAGE_EXTENSIONS},
}

_MIME_MAP = {
    "application/pdf": FileFormat.PDF,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": FileFormat.DOCX,
    "application/msword": FileFormat.DOC,
    "text/plain": FileFormat.TXT,
}

# Leading signatures of the image formats the OCR engine accepts
_IMAGE_SIGNATURES = (
    b"\xff\xd8\xff",  # JPEG
    b"\x89PNG\r\n\x1a\n",  # PNG
    b"GIF87a",
    b"GIF89a",
    b"BM",  # BMP
    b"II*\x00",  # TIFF little-endian
    b"MM\x00*",  # TIFF big-endian
)


def file_extension(filename: str) -> str:
    """Lower-cased extension including the dot, or an empty string."""
    return Path(filename).suffix.lower()


def detect_format(filename: str, mime_hint: str | None = None) -> FileFormat | None:
    """Detect the format of an uploaded file.

    The extension wins when it is recognised; otherwise the client's MIME
    hint and then ``mimetypes.guess_type`` are consulted.

    Args:
        filename: Original filename.
        mime_hint: Content type reported by the client, if any.

    Returns:
        The detected format, or None when the file type is unknown.
    """
    ext = file_extension(filename)
    if ext in _EXTENSION_MAP:
        return _EXTENSION_MAP[ext]

    for mime in (mime_hint, mimetypes.guess_type(filename)[0]):
        if not mime:
            continue
        if mime in _MIME_MAP:
            return _MIME_MAP[mime]
        if mime.startswith("image/"):
            return FileFormat.IMAGE

    return None


def is_allowed(filename: str, allowed_extensions: list[str]) -> bool:
    """Check the filename against the configured extension allow-list."""
    allowed = {e.lower() if e.startswith(".") else f".{e.lower()}" for e in allowed_extensions}
    return file_extension(filename) in allowed


def has_image_signature(data: bytes) -> bool:
    """True when the bytes start with a known image signature."""
    if data.startswith(b"RIFF") and data[8:12] == b"WEBP":
        return True
    return any(data.startswith(sig) for sig in _IMAGE_SIGNATURES)


def has_pdf_signature(data: bytes) -> bool:
    """True when the bytes look like a PDF file."""
    return data[:1024].lstrip().startswith(b"%PDF")
