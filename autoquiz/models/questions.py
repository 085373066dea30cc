"""Models for generation requests, questions and generation metadata."""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from autoquiz.config.settings import SUPPORTED_LANGUAGES

from .content import NormalizedContent
from .enums import AttemptState, ContentType, Difficulty

OPTION_LETTERS = ("A", "B", "C", "D")


class CamelModel(BaseModel):
    """Base model serializing to camelCase for the HTTP boundary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerationRequest(BaseModel):
    """Read-only input to the question generator."""

    model_config = ConfigDict(frozen=True)

    content: NormalizedContent | str = Field(..., description="Merged content or bare topic text")
    number_of_questions: int = Field(..., ge=5, le=50)
    difficulty: Difficulty
    language: str = "English"

    @field_validator("language")
    @classmethod
    def _supported_language(cls, value: str) -> str:
        if value not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {value}")
        return value

    @property
    def content_text(self) -> str:
        if isinstance(self.content, NormalizedContent):
            return self.content.text
        return self.content

    @property
    def content_type(self) -> ContentType:
        if isinstance(self.content, NormalizedContent):
            return self.content.content_type
        return ContentType.TOPIC


class GeneratedQuestion(CamelModel):
    """A validated multiple-choice question."""

    text: str = Field(..., min_length=1)
    options: list[str] = Field(..., min_length=4, max_length=4)
    correct_option_index: int = Field(..., ge=0, le=3)
    explanation: str | None = None
    topic: str | None = None

    @model_validator(mode="after")
    def _distinct_options(self) -> "GeneratedQuestion":
        stripped = [o.strip() for o in self.options]
        if any(not o for o in stripped):
            raise ValueError("Options must be non-empty")
        if len({o.lower() for o in stripped}) != 4:
            raise ValueError("Options must be distinct")
        return self

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_option_index]

    @property
    def correct_letter(self) -> str:
        return OPTION_LETTERS[self.correct_option_index]


class ProviderAttempt(CamelModel):
    """Trace of one call to a generation provider."""

    provider: str
    compact_prompt: bool = False
    state: AttemptState = AttemptState.PENDING
    error: str | None = None
    duration_ms: int = 0


class GenerationMetadata(CamelModel):
    """Diagnostics describing how a batch was produced."""

    provider_used: str
    fallback_used: bool = False
    attempts: list[ProviderAttempt] = Field(default_factory=list)
    requested_count: int
    returned_count: int
    dropped_count: int = 0
    partial: bool = False
    variety_adjusted: bool = False
    quality_score: int = Field(default=0, ge=0, le=10)


class GenerationResult(BaseModel):
    """Validated questions plus generation metadata."""

    questions: list[GeneratedQuestion]
    metadata: GenerationMetadata
