"""Image text recognition using Tesseract."""

import io

import pytesseract
import structlog
from PIL import Image, ImageOps, UnidentifiedImageError

from autoquiz.config import Settings, get_settings
from autoquiz.models import ExtractionMethod, ExtractionResult, FileSource

from .base import Extractor, ExtractorFailure, run_blocking, success_result

logger = structlog.get_logger(__name__)

# Below this mean word confidence the output is treated as noise
MIN_OCR_CONFIDENCE = 0.01


class TesseractEngine:
    """Recognize text in an image with pytesseract."""

    def __init__(self, language: str = "eng"):
        self.language = language

    def recognize(self, data: bytes) -> tuple[str, float]:
        """Run OCR on raw image bytes.

        Args:
            data: Encoded image bytes.

        Returns:
            Tuple of (text, confidence) with confidence on a 0..1 scale.
        """
        image = _prepare_image(data)
        ocr = pytesseract.image_to_data(image, lang=self.language, output_type=pytesseract.Output.DICT)

        lines: dict[tuple[int, int, int], list[str]] = {}
        confidences = []
        for idx, token in enumerate(ocr.get("text", [])):
            token = (token or "").strip()
            if not token:
                continue
            try:
                conf = float(ocr["conf"][idx])
            except (TypeError, ValueError):
                conf = -1.0
            if conf >= 0:
                confidences.append(conf)
            key = (ocr["block_num"][idx], ocr["par_num"][idx], ocr["line_num"][idx])
            lines.setdefault(key, []).append(token)

        text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
        confidence = (sum(confidences) / len(confidences) / 100.0) if confidences else 0.0
        return text, confidence


def _prepare_image(data: bytes) -> Image.Image:
    """Decode and normalise an image for recognition."""
    image = Image.open(io.BytesIO(data))
    image = ImageOps.exif_transpose(image)
    image = ImageOps.grayscale(image)
    return ImageOps.autocontrast(image)


class OcrExtractor(Extractor):
    """Extract text from uploaded images."""

    default_method = ExtractionMethod.OCR

    def __init__(self, engine=None, settings: Settings | None = None):
        settings = settings or get_settings()
        self.engine = engine or TesseractEngine(language=settings.ocr_language)

    async def _extract(self, source: FileSource) -> ExtractionResult:
        logger.info("ocr_started", source=source.source_ref, size=source.size)
        try:
            text, confidence = await run_blocking(self.engine.recognize, source.data)
        except UnidentifiedImageError as e:
            raise ExtractorFailure("Unreadable image file") from e
        except pytesseract.TesseractNotFoundError as e:
            raise ExtractorFailure("OCR engine is not available") from e

        if not text.strip() or confidence < MIN_OCR_CONFIDENCE:
            logger.info("ocr_no_text", source=source.source_ref, confidence=confidence)
            raise ExtractorFailure("No text found in image")

        logger.info("ocr_complete", source=source.source_ref, chars=len(text), confidence=round(confidence, 2))
        return success_result(source, text, confidence, ExtractionMethod.OCR)
