"""Response envelopes returned by the pipeline."""

from typing import Any

from pydantic import Field

from .enums import ContentType, Difficulty, ErrorKind, ExtractionMethod, SourceKind
from .questions import CamelModel, GeneratedQuestion, ProviderAttempt


class SourceOutcome(CamelModel):
    """Per-source extraction summary exposed in response metadata."""

    source_ref: str
    source_kind: SourceKind
    success: bool
    method: ExtractionMethod
    confidence: float
    quality: int
    processing_time_ms: int
    characters: int
    error: str | None = None


class PipelineMetadata(CamelModel):
    """Metadata describing a completed pipeline run."""

    number_of_questions: int
    questions_generated: int
    difficulty: Difficulty
    language: str
    content_type: ContentType
    overall_quality: float
    generation_quality: int
    sources: list[SourceOutcome] = Field(default_factory=list)
    provider_used: str
    fallback_used: bool = False
    attempts: list[ProviderAttempt] = Field(default_factory=list)
    partial: bool = False
    degraded: list[str] = Field(default_factory=list, description="Flags such as 'sources_failed'")
    content_truncated: bool = False
    processing_time_ms: int = 0
    remaining_usage: int = 0
    usage_durable: bool = True


class PipelineData(CamelModel):
    questions: list[GeneratedQuestion]
    metadata: PipelineMetadata


class PipelineResponse(CamelModel):
    """Successful response envelope."""

    success: bool = True
    data: PipelineData


class ErrorResponse(CamelModel):
    """Failure response envelope."""

    success: bool = False
    message: str
    error_kind: ErrorKind
    details: dict[str, Any] | None = None
