"""Exception hierarchy for the Auto-Create pipeline.

Every user-facing error carries an ``error_kind`` so the HTTP layer and
the CLI can map it to a status code or exit message without inspecting
the concrete class.
"""

from autoquiz.models.enums import ErrorKind


class AutoCreateError(Exception):
    """Base class for pipeline errors that reach the caller."""

    error_kind: ErrorKind = ErrorKind.GENERATION

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InputError(AutoCreateError):
    """Missing or invalid submission: no sources, bad count, oversized file."""

    error_kind = ErrorKind.INPUT


class ExtractionError(AutoCreateError):
    """No source produced usable text."""

    error_kind = ErrorKind.EXTRACTION


class QuotaExceededError(AutoCreateError):
    """Daily usage limit reached for this identity."""

    error_kind = ErrorKind.QUOTA


class GenerationError(AutoCreateError):
    """All providers exhausted, or no question survived validation."""

    error_kind = ErrorKind.GENERATION

    def __init__(self, message: str, attempts: list | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.attempts = attempts or []


class QuestionValidationError(AutoCreateError):
    """A single parsed question could not be repaired into a valid shape."""

    error_kind = ErrorKind.VALIDATION


class ProviderError(Exception):
    """A provider call failed: transport error, non-2xx response, empty body."""

    def __init__(self, provider: str, message: str, status_code: int | None = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class ProviderTimeoutError(ProviderError):
    """A provider call exceeded its timeout."""

    pass


class QuestionParseError(Exception):
    """Provider output contained no recoverable question array."""

    pass


class UsageStoreUnavailableError(Exception):
    """The durable usage store could not be reached."""

    pass
