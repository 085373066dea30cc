"""Models for submitted content sources and extraction output."""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .enums import ContentType, ExtractionMethod, SourceKind


class FileSource(BaseModel):
    """An uploaded file payload."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["file"] = "file"
    filename: str = Field(..., min_length=1, description="Original filename, used for type detection")
    data: bytes = Field(..., repr=False, description="Raw file bytes")
    mime_hint: str | None = Field(default=None, description="Content type reported by the client")

    @property
    def source_ref(self) -> str:
        return self.filename

    @property
    def size(self) -> int:
        return len(self.data)


class LinkSource(BaseModel):
    """A web page or video link."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["link"] = "link"
    url: str = Field(..., min_length=1)

    @property
    def source_ref(self) -> str:
        return self.url


class TopicSource(BaseModel):
    """A free-text topic description."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["topic"] = "topic"
    text: str = Field(..., min_length=1)

    @property
    def source_ref(self) -> str:
        return "topic"


ContentSource = Annotated[Union[FileSource, LinkSource, TopicSource], Field(discriminator="kind")]


class ExtractionResult(BaseModel):
    """Outcome of extracting one content source.

    Failed results keep an empty text, zero confidence and zero quality
    alongside the error message; they never stop sibling extractions.
    """

    model_config = ConfigDict(frozen=True)

    source_ref: str = Field(..., description="Filename, URL or 'topic'")
    source_kind: SourceKind
    success: bool
    text: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    quality: int = Field(default=0, ge=0, le=10, description="1..10 for successes, 0 for failures")
    method: ExtractionMethod
    processing_time_ms: int = Field(default=0, ge=0)
    error: str | None = None
    details: dict = Field(default_factory=dict, description="Adapter-specific extras (title, pages, video id)")


class NormalizedContent(BaseModel):
    """Merged text of all successful extractions."""

    model_config = ConfigDict(frozen=True)

    text: str
    overall_quality: float = Field(..., ge=1.0, le=10.0)
    content_type: ContentType
    results: list[ExtractionResult] = Field(default_factory=list)
    truncated: bool = False

    @property
    def successful_results(self) -> list[ExtractionResult]:
        return [r for r in self.results if r.success]

    @property
    def failed_results(self) -> list[ExtractionResult]:
        return [r for r in self.results if not r.success]
