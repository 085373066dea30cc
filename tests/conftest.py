"""Pytest configuration and fixtures."""

import asyncio
import json
from datetime import datetime, timezone

import pytest

from autoquiz.config import Settings
from autoquiz.errors import ProviderError
from autoquiz.llm import QuestionGenerator
from autoquiz.models import ExtractionMethod, ExtractionResult, SourceKind
from autoquiz.usage import InMemoryUsageStore, UsageGuard


class FakeProvider:
    """Scripted generation provider.

    Each call pops the next scripted reply: a string is returned as the
    completion, an exception instance is raised, and the string "hang"
    sleeps past any test timeout.
    """

    def __init__(self, name: str, replies: list, configured: bool = True):
        self.name = name
        self.replies = list(replies)
        self.configured = configured
        self.prompts: list[str] = []
        self.cancelled = False

    def is_configured(self) -> bool:
        return self.configured

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.replies:
            raise ProviderError(self.name, "no scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if reply == "hang":
            try:
                await asyncio.sleep(60)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        return reply


class FakeExtractor:
    """Extractor double returning canned results keyed by source ref."""

    default_method = ExtractionMethod.PLAIN_TEXT

    def __init__(self, texts: dict | None = None, delay: float = 0.0):
        self.texts = texts or {}
        self.delay = delay
        self.calls: list[str] = []
        self.active = 0
        self.max_active = 0
        self.cancelled = False

    async def extract(self, source) -> ExtractionResult:
        self.calls.append(source.source_ref)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            text = self.texts.get(source.source_ref)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        finally:
            self.active -= 1

        if not text:
            return ExtractionResult(
                source_ref=source.source_ref,
                source_kind=SourceKind(source.kind),
                success=False,
                method=self.default_method,
                error="No text found",
            )
        return ExtractionResult(
            source_ref=source.source_ref,
            source_kind=SourceKind(source.kind),
            success=True,
            text=text,
            confidence=0.9,
            quality=8,
            method=self.default_method,
        )


def make_questions(count: int, letters: str | None = None) -> list[dict]:
    """Well-formed question dicts in the provider's JSON shape."""
    letters = letters or "ABCD" * ((count // 4) + 1)
    return [
        {
            "question": f"Which statement about photosynthesis topic number {i + 1} is correct?",
            "options": [f"Option {i + 1} alpha", f"Option {i + 1} beta", f"Option {i + 1} gamma", f"Option {i + 1} delta"],
            "correctAnswer": letters[i],
            "explanation": f"Explanation {i + 1}",
            "topic": "Photosynthesis",
        }
        for i in range(count)
    ]


def make_questions_json(count: int, letters: str | None = None) -> str:
    return json.dumps(make_questions(count, letters))


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        usage_database_url="sqlite://",
        generation_providers=["together", "gemini"],
        together_api_key=None,
        gemini_api_key=None,
        youtube_api_key=None,
        generation_timeout_seconds=1.0,
        extraction_timeout_seconds=2.0,
        request_deadline_seconds=10.0,
    )


@pytest.fixture
def fake_provider():
    """Factory for scripted providers."""
    return FakeProvider


@pytest.fixture
def fake_extractor():
    """Factory for canned extractors."""
    return FakeExtractor


@pytest.fixture
def questions_json():
    """Factory for provider JSON replies."""
    return make_questions_json


@pytest.fixture
def question_dicts():
    """Factory for question dicts."""
    return make_questions


@pytest.fixture
def fixed_clock():
    """Clock pinned to midday UTC on a fixed date."""
    now = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)
    return lambda: now


@pytest.fixture
def memory_guard(settings, fixed_clock) -> UsageGuard:
    return UsageGuard(InMemoryUsageStore(), settings=settings, clock=fixed_clock)


@pytest.fixture
def make_generator(settings):
    """Build a generator over the given providers with a seeded RNG."""
    import random

    def _make(providers):
        return QuestionGenerator(providers=providers, settings=settings, rng=random.Random(7))

    return _make


@pytest.fixture
def sample_text() -> str:
    """Clean document text long enough to score well."""
    return (
        "Photosynthesis is the process by which green plants convert light energy into chemical energy. "
        "It takes place mainly in the chloroplasts of leaf cells, which contain the pigment chlorophyll. "
        "During the light-dependent reactions, water is split and oxygen is released as a by-product. "
        "The Calvin cycle then uses carbon dioxide from the air to build glucose molecules. "
        "Plants store this glucose as starch or use it to power growth and repair. "
        "Without photosynthesis, most life on Earth would lack both food and breathable oxygen."
    )
