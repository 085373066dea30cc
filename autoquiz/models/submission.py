"""The raw submission accepted at the request boundary."""

from pydantic import BaseModel, Field

from .content import FileSource


class Submission(BaseModel):
    """One user request: files, an optional topic and an optional link.

    Fields are loosely typed on purpose; the pipeline validates them and
    reports problems as input errors.
    """

    files: list[FileSource] = Field(default_factory=list)
    topic: str | None = None
    url: str | None = None
    number_of_questions: int | str | None = None
    difficulty: str | None = None
    language: str | None = "English"
