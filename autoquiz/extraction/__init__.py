"""Content extraction: adapters, quality scoring and merging."""

from .base import Extractor, ExtractorFailure
from .coordinator import ExtractionCoordinator
from .normalize import merge_results, normalize_text, normalize_url
from .quality import score as score_quality

__all__ = [
    "Extractor",
    "ExtractorFailure",
    "ExtractionCoordinator",
    "merge_results",
    "normalize_text",
    "normalize_url",
    "score_quality",
]
