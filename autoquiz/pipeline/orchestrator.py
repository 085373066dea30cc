"""
Auto-Create Pipeline

Sequences one submission through the whole flow:

    validate -> quota pre-check -> extraction -> merge
      -> quota charge -> generation -> response

Design Decisions:
- Quota is charged only after extraction produced usable content, and is
  kept when generation later fails (provider cost was incurred)
- The overall request runs under one deadline; cancelling it cancels all
  in-flight extraction and generation calls. Provider attempts never wait
  past it, and a miss is reported as an extraction or generation error by
  the phase it happened in
- Errors surface as AutoCreateError subclasses; the HTTP layer and CLI
  shape them into the failure envelope
"""

import asyncio
import time

import structlog
from sqlalchemy.exc import SQLAlchemyError

from autoquiz.config import Settings, get_settings
from autoquiz.config.settings import SUPPORTED_LANGUAGES
from autoquiz.errors import (
    AutoCreateError,
    ExtractionError,
    GenerationError,
    InputError,
    QuotaExceededError,
)
from autoquiz.extraction import ExtractionCoordinator, merge_results, normalize_url
from autoquiz.extraction.base import run_blocking
from autoquiz.llm import QuestionGenerator
from autoquiz.llm.generator import DEADLINE_MESSAGE
from autoquiz.models import (
    Difficulty,
    ErrorResponse,
    ExtractionMethod,
    ExtractionResult,
    GenerationRequest,
    LinkSource,
    PipelineData,
    PipelineMetadata,
    PipelineResponse,
    SourceOutcome,
    Submission,
    TopicSource,
)
from autoquiz.usage import SqlUsageStore, UnavailableUsageStore, UsageGuard

logger = structlog.get_logger(__name__)

MIN_QUESTIONS = 5
MAX_QUESTIONS = 50


class AutoCreatePipeline:
    """Turn a submission into a validated batch of quiz questions."""

    def __init__(
        self,
        coordinator: ExtractionCoordinator,
        generator: QuestionGenerator,
        guard: UsageGuard,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.coordinator = coordinator
        self.generator = generator
        self.guard = guard

    async def run(self, submission: Submission, identity: str) -> PipelineResponse:
        """Run the pipeline under the overall request deadline.

        Args:
            submission: Raw submission from the request boundary.
            identity: Request identity used for quota accounting.

        Returns:
            PipelineResponse with questions and metadata.

        Raises:
            AutoCreateError: Input, quota, extraction or generation failure.
        """
        budget = self.settings.request_deadline_seconds
        progress = {"phase": "extraction"}
        try:
            return await asyncio.wait_for(
                self._run(submission, identity, time.monotonic() + budget, progress),
                timeout=budget,
            )
        except asyncio.TimeoutError as e:
            phase = progress["phase"]
            logger.error("pipeline_deadline_exceeded", identity=identity, phase=phase)
            if phase == "generation":
                raise GenerationError(DEADLINE_MESSAGE) from e
            raise ExtractionError(
                "Reading the provided content took too long. Please try again.",
                details={"phase": phase},
            ) from e

    async def run_envelope(self, submission: Submission, identity: str) -> dict:
        """Run the pipeline and always return a response envelope dict."""
        try:
            response = await self.run(submission, identity)
        except AutoCreateError as e:
            return error_envelope(e).model_dump(by_alias=True, exclude_none=True, mode="json")
        return response.model_dump(by_alias=True, mode="json")

    async def _run(self, submission: Submission, identity: str, deadline: float, progress: dict) -> PipelineResponse:
        start = time.perf_counter()
        count, difficulty, language = validate_submission(submission, self.settings)
        sources = build_sources(submission)

        # Fast rejection before any work is done
        status = await run_blocking(self.guard.status, identity)
        if not status.allowed:
            raise QuotaExceededError(
                quota_message(status.limit),
                details={"limit": status.limit, "resetAt": status.reset_at.isoformat()},
            )

        logger.info("pipeline_started", identity=identity, sources=len(sources), number_of_questions=count)
        results = await self.coordinator.extract(sources)

        try:
            content = merge_results(results, self.settings.max_content_chars)
        except ExtractionError as e:
            if all(r.method == ExtractionMethod.PREFLIGHT for r in results):
                raise InputError(
                    "None of the uploaded files could be accepted: " + "; ".join(r.error for r in results),
                    details=e.details,
                ) from e
            raise

        decision = await run_blocking(self.guard.check_and_increment, identity)
        if not decision.allowed:
            raise QuotaExceededError(
                quota_message(decision.limit),
                details={"limit": decision.limit, "resetAt": decision.reset_at.isoformat()},
            )

        request = GenerationRequest(
            content=content,
            number_of_questions=count,
            difficulty=difficulty,
            language=language,
        )
        progress["phase"] = "generation"
        generation = await self.generator.generate(request, deadline=deadline)

        degraded = []
        if content.failed_results:
            degraded.append("sources_failed")
        if generation.metadata.fallback_used:
            degraded.append("provider_fallback")
        if generation.metadata.partial:
            degraded.append("partial_batch")
        if not decision.durable:
            degraded.append("usage_not_durable")

        metadata = PipelineMetadata(
            number_of_questions=count,
            questions_generated=len(generation.questions),
            difficulty=difficulty,
            language=language,
            content_type=content.content_type,
            overall_quality=content.overall_quality,
            generation_quality=generation.metadata.quality_score,
            sources=[source_outcome(r) for r in results],
            provider_used=generation.metadata.provider_used,
            fallback_used=generation.metadata.fallback_used,
            attempts=generation.metadata.attempts,
            partial=generation.metadata.partial,
            degraded=degraded,
            content_truncated=content.truncated,
            processing_time_ms=int((time.perf_counter() - start) * 1000),
            remaining_usage=decision.remaining,
            usage_durable=decision.durable,
        )

        logger.info(
            "pipeline_complete",
            identity=identity,
            questions=len(generation.questions),
            provider=metadata.provider_used,
            processing_time_ms=metadata.processing_time_ms,
            degraded=degraded,
        )
        return PipelineResponse(data=PipelineData(questions=generation.questions, metadata=metadata))


def validate_submission(submission: Submission, settings: Settings) -> tuple[int, Difficulty, str]:
    """Validate request parameters and the presence of at least one source.

    Returns:
        Tuple of (number_of_questions, difficulty, language).

    Raises:
        InputError: On any invalid or missing field.
    """
    has_topic = bool(submission.topic and submission.topic.strip())
    has_url = bool(submission.url and submission.url.strip())
    if not submission.files and not has_topic and not has_url:
        raise InputError("Please provide at least one file, a topic, or a link")

    if len(submission.files) > settings.max_files_per_request:
        raise InputError(f"Too many files. Maximum is {settings.max_files_per_request} per request")

    try:
        count = int(submission.number_of_questions)
    except (TypeError, ValueError) as e:
        raise InputError("Number of questions must be a whole number") from e
    if not MIN_QUESTIONS <= count <= MAX_QUESTIONS:
        raise InputError(f"Number of questions must be between {MIN_QUESTIONS} and {MAX_QUESTIONS}")

    try:
        difficulty = Difficulty(submission.difficulty)
    except ValueError as e:
        raise InputError("Difficulty must be Easy, Medium or Hard") from e

    language = submission.language or "English"
    if language not in SUPPORTED_LANGUAGES:
        raise InputError(f"Unsupported language: {language}")

    return count, difficulty, language


def build_sources(submission: Submission) -> list:
    """Content sources in submission order: files, then link, then topic."""
    sources = list(submission.files)
    if submission.url and submission.url.strip():
        sources.append(LinkSource(url=normalize_url(submission.url)))
    if submission.topic and submission.topic.strip():
        sources.append(TopicSource(text=submission.topic.strip()))
    return sources


def source_outcome(result: ExtractionResult) -> SourceOutcome:
    return SourceOutcome(
        source_ref=result.source_ref,
        source_kind=result.source_kind,
        success=result.success,
        method=result.method,
        confidence=round(result.confidence, 3),
        quality=result.quality,
        processing_time_ms=result.processing_time_ms,
        characters=len(result.text),
        error=result.error,
    )


def quota_message(limit: int) -> str:
    return f"Daily limit of {limit} auto-created quizzes reached. Please try again tomorrow."


def error_envelope(error: AutoCreateError) -> ErrorResponse:
    """Failure envelope for a pipeline error."""
    return ErrorResponse(message=error.message, error_kind=error.error_kind, details=error.details or None)


def build_pipeline(settings: Settings | None = None) -> AutoCreatePipeline:
    """Wire the default pipeline from settings."""
    settings = settings or get_settings()

    try:
        store = SqlUsageStore.from_url(settings.usage_database_url)
    except (SQLAlchemyError, OSError) as e:
        logger.warning("usage_database_unavailable", error=str(e))
        store = UnavailableUsageStore(str(e))

    return AutoCreatePipeline(
        coordinator=ExtractionCoordinator(settings=settings),
        generator=QuestionGenerator(settings=settings),
        guard=UsageGuard(store, settings=settings),
        settings=settings,
    )
