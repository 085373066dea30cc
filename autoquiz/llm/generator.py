"""Question generation with an ordered provider fallback chain."""

import asyncio
import random
import time

import structlog

from autoquiz.config import Settings, get_settings
from autoquiz.config.prompts import (
    COMPACT_QUESTION_GENERATION_PROMPT,
    CONTENT_TYPE_HINTS,
    DIFFICULTY_INSTRUCTIONS,
    QUESTION_GENERATION_PROMPT,
    language_instruction,
)
from autoquiz.errors import GenerationError, ProviderError, ProviderTimeoutError, QuestionParseError
from autoquiz.extraction.quality import clamp_quality
from autoquiz.models import (
    AttemptState,
    GeneratedQuestion,
    GenerationMetadata,
    GenerationRequest,
    GenerationResult,
    ProviderAttempt,
)

from .parsing import ParsedBatch, parse_questions
from .providers import GenerationProvider, build_providers
from .variety import enforce_variety

logger = structlog.get_logger(__name__)

DEADLINE_MESSAGE = "The request took too long to complete. Please try again."


def build_prompt(request: GenerationRequest, compact: bool = False, max_content_chars: int | None = None) -> str:
    """Render the provider-agnostic generation prompt.

    Args:
        request: Generation request.
        compact: Use the short retry prompt.
        max_content_chars: Optional cap on the embedded content.

    Returns:
        Prompt text.
    """
    content = request.content_text
    if max_content_chars is not None and len(content) > max_content_chars:
        content = content[:max_content_chars].rstrip()

    difficulty = request.difficulty.value
    if compact:
        return COMPACT_QUESTION_GENERATION_PROMPT.format(
            language_instruction=language_instruction(request.language),
            number_of_questions=request.number_of_questions,
            difficulty=difficulty,
            content=content,
        )

    content_type = request.content_type.value
    return QUESTION_GENERATION_PROMPT.format(
        language_instruction=language_instruction(request.language),
        number_of_questions=request.number_of_questions,
        difficulty=difficulty,
        difficulty_instruction=DIFFICULTY_INSTRUCTIONS[difficulty],
        content_type=content_type,
        content_type_hint=CONTENT_TYPE_HINTS.get(content_type, ""),
        content=content,
    )


def generation_quality(questions: list[GeneratedQuestion], requested: int) -> int:
    """Score a batch 1..10 from completeness and per-question shape."""
    if not questions:
        return 0

    score = 10
    completion = len(questions) / requested
    if completion < 0.5:
        score -= 4
    elif completion < 0.8:
        score -= 2
    elif completion < 1.0:
        score -= 1

    total = 0
    for question in questions:
        q_score = 10
        if len(question.text) < 20:
            q_score -= 2
        if "?" not in question.text:
            q_score -= 1
        if sum(len(o) for o in question.options) / len(question.options) < 5:
            q_score -= 2
        total += max(1, q_score)

    return clamp_quality((score + total / len(questions)) / 2)


class QuestionGenerator:
    """Generate validated questions, falling back across providers.

    Per provider: the full prompt is tried once. Unparseable output earns
    one retry with the compact prompt on the same provider; timeouts and
    provider errors move straight to the next provider. When every
    provider is exhausted a GenerationError carries the attempt trace.
    """

    def __init__(
        self,
        providers: list[GenerationProvider] | None = None,
        settings: Settings | None = None,
        rng: random.Random | None = None,
    ):
        self.settings = settings or get_settings()
        self.providers = providers if providers is not None else build_providers(self.settings)
        self.rng = rng or random.Random()

    def provider_status(self) -> list[dict]:
        """Configured state of each provider in fallback order."""
        return [
            {"name": p.name, "configured": p.is_configured(), "order": i}
            for i, p in enumerate(self.providers)
        ]

    async def generate(self, request: GenerationRequest, deadline: float | None = None) -> GenerationResult:
        """Generate questions for the request.

        Args:
            request: Content and question parameters.
            deadline: Optional ``time.monotonic()`` instant; no attempt waits past it.

        Returns:
            GenerationResult with questions and metadata.

        Raises:
            GenerationError: If every provider fails or no question survives.
        """
        attempts: list[ProviderAttempt] = []
        logger.info(
            "generation_started",
            number_of_questions=request.number_of_questions,
            difficulty=request.difficulty.value,
            language=request.language,
            content_chars=len(request.content_text),
        )

        for index, provider in enumerate(self.providers):
            if _deadline_passed(deadline):
                break

            if not provider.is_configured():
                attempts.append(
                    ProviderAttempt(provider=provider.name, state=AttemptState.EXHAUSTED, error="not configured")
                )
                logger.info("provider_skipped", provider=provider.name, reason="not configured")
                continue

            batch = await self._attempt(provider, request, compact=False, attempts=attempts, deadline=deadline)
            if batch is None and attempts[-1].state == AttemptState.PARSE_FAILED:
                logger.info("provider_compact_retry", provider=provider.name)
                batch = await self._attempt(provider, request, compact=True, attempts=attempts, deadline=deadline)

            if batch is not None:
                return self._finish(batch, request, provider, index > 0, attempts)

        if _deadline_passed(deadline):
            logger.error("generation_deadline_exceeded", attempts=len(attempts))
            raise GenerationError(DEADLINE_MESSAGE, attempts=attempts)

        logger.error("generation_exhausted", attempts=[a.model_dump() for a in attempts])
        raise GenerationError(
            "Could not generate questions: all providers failed",
            attempts=attempts,
            details={"attempts": [{"provider": a.provider, "error": a.error} for a in attempts]},
        )

    async def _attempt(
        self,
        provider: GenerationProvider,
        request: GenerationRequest,
        compact: bool,
        attempts: list[ProviderAttempt],
        deadline: float | None = None,
    ) -> ParsedBatch | None:
        attempt = ProviderAttempt(provider=provider.name, compact_prompt=compact)
        attempts.append(attempt)
        start = time.perf_counter()

        prompt = build_prompt(
            request,
            compact=compact,
            max_content_chars=self.settings.retry_max_content_chars if compact else self.settings.max_content_chars,
        )
        attempt.state = AttemptState.PROMPT_BUILT

        try:
            raw = await asyncio.wait_for(provider.generate(prompt), timeout=self._attempt_timeout(deadline))
            attempt.state = AttemptState.PROVIDER_CALLED
            batch = parse_questions(raw)
            attempt.state = AttemptState.PARSE_OK
        except (asyncio.TimeoutError, ProviderTimeoutError):
            attempt.state = AttemptState.PROVIDER_FAILED
            attempt.error = "timeout"
            batch = None
        except ProviderError as e:
            attempt.state = AttemptState.PROVIDER_FAILED
            attempt.error = str(e)
            batch = None
        except QuestionParseError as e:
            attempt.state = AttemptState.PARSE_FAILED
            attempt.error = str(e)
            batch = None
        except Exception as e:
            # A misbehaving provider must not break the chain
            logger.exception("provider_unexpected_error", provider=provider.name)
            attempt.state = AttemptState.PROVIDER_FAILED
            attempt.error = f"{provider.name}: unexpected error: {type(e).__name__}"
            batch = None

        attempt.duration_ms = int((time.perf_counter() - start) * 1000)
        log = logger.info if batch is not None else logger.warning
        log(
            "provider_attempt",
            provider=provider.name,
            compact=compact,
            state=attempt.state.value,
            error=attempt.error,
            duration_ms=attempt.duration_ms,
        )
        return batch

    def _attempt_timeout(self, deadline: float | None) -> float:
        timeout = self.settings.generation_timeout_seconds
        if deadline is None:
            return timeout
        return max(0.0, min(timeout, deadline - time.monotonic()))

    def _finish(
        self,
        batch: ParsedBatch,
        request: GenerationRequest,
        provider: GenerationProvider,
        fallback_used: bool,
        attempts: list[ProviderAttempt],
    ) -> GenerationResult:
        requested = request.number_of_questions
        questions = batch.questions[:requested]
        questions, adjusted = enforce_variety(questions, rng=self.rng)
        attempts[-1].state = AttemptState.VALIDATED

        metadata = GenerationMetadata(
            provider_used=provider.name,
            fallback_used=fallback_used,
            attempts=attempts,
            requested_count=requested,
            returned_count=len(questions),
            dropped_count=batch.dropped,
            partial=len(questions) < requested,
            variety_adjusted=adjusted,
            quality_score=generation_quality(questions, requested),
        )
        logger.info(
            "generation_complete",
            provider=provider.name,
            fallback_used=fallback_used,
            returned=len(questions),
            requested=requested,
            dropped=batch.dropped,
            answer_fallbacks=batch.answer_fallbacks,
        )
        return GenerationResult(questions=questions, metadata=metadata)


def _deadline_passed(deadline: float | None) -> bool:
    return deadline is not None and time.monotonic() >= deadline
