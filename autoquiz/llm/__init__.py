"""Question generation: providers, output parsing and answer variety."""

from .generator import QuestionGenerator, build_prompt
from .parsing import parse_questions
from .providers import GenerationProvider, build_providers
from .variety import enforce_variety, satisfies_policy

__all__ = [
    "QuestionGenerator",
    "build_prompt",
    "parse_questions",
    "GenerationProvider",
    "build_providers",
    "enforce_variety",
    "satisfies_policy",
]
