"""Pydantic data models for the pipeline."""

from .enums import (
    AttemptState,
    ContentType,
    Difficulty,
    ErrorKind,
    ExtractionMethod,
    SourceKind,
)
from .content import (
    ContentSource,
    ExtractionResult,
    FileSource,
    LinkSource,
    NormalizedContent,
    TopicSource,
)
from .questions import (
    OPTION_LETTERS,
    GeneratedQuestion,
    GenerationMetadata,
    GenerationRequest,
    GenerationResult,
    ProviderAttempt,
)
from .usage import UsageDecision, UsageRecord, UsageStats
from .submission import Submission
from .response import (
    ErrorResponse,
    PipelineData,
    PipelineMetadata,
    PipelineResponse,
    SourceOutcome,
)

__all__ = [
    # Enums
    "AttemptState",
    "ContentType",
    "Difficulty",
    "ErrorKind",
    "ExtractionMethod",
    "SourceKind",
    # Content
    "ContentSource",
    "FileSource",
    "LinkSource",
    "TopicSource",
    "ExtractionResult",
    "NormalizedContent",
    # Questions
    "OPTION_LETTERS",
    "GenerationRequest",
    "GeneratedQuestion",
    "ProviderAttempt",
    "GenerationMetadata",
    "GenerationResult",
    "Submission",
    # Usage
    "UsageRecord",
    "UsageDecision",
    "UsageStats",
    # Responses
    "SourceOutcome",
    "PipelineMetadata",
    "PipelineData",
    "PipelineResponse",
    "ErrorResponse",
]
