"""Generation provider strategies.

Every provider exposes the same capability, ``generate(prompt) -> raw
text``; the generator iterates them in configured order with uniform
timeout and fallback handling. Adding a provider means adding a class
here and a name in ``PROVIDER_REGISTRY``.
"""

from abc import ABC, abstractmethod

import httpx
import structlog
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import Runnable
from langchain_ollama import OllamaLLM
from ollama import ResponseError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from autoquiz.config import Settings, get_settings
from autoquiz.errors import ProviderError, ProviderTimeoutError

logger = structlog.get_logger(__name__)

# Connection-level failures worth one more try on the same provider
TRANSIENT_ERRORS = (httpx.ConnectError, httpx.RemoteProtocolError, httpx.ReadError)


def transient_retry(max_retries: int):
    """Retry decorator for connection-level failures with ``max_retries`` extra tries."""
    return retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(max(0, max_retries) + 1),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )


class GenerationProvider(ABC):
    """A generative model service producing raw question text."""

    name: str

    @abstractmethod
    def is_configured(self) -> bool:
        """True when credentials/endpoint are present."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Send the prompt and return the raw completion text.

        Raises:
            ProviderError: On transport failures, non-2xx responses or an
                empty completion.
        """


class HTTPProvider(GenerationProvider):
    """Shared plumbing for providers reached over plain HTTP."""

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None):
        self.settings = settings or get_settings()
        self._client = client

    async def generate(self, prompt: str) -> str:
        if not self.is_configured():
            raise ProviderError(self.name, "provider is not configured")

        try:
            post = transient_retry(self.settings.provider_max_retries)(self._post)
            response = await post(prompt)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(self.name, "request timed out") from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"transport error: {type(e).__name__}") from e

        if response.status_code >= 400:
            logger.warning("provider_http_error", provider=self.name, status_code=response.status_code)
            raise ProviderError(self.name, f"HTTP {response.status_code}", status_code=response.status_code)

        try:
            text = self._completion_text(response.json())
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, "unexpected response shape") from e

        if not text or not text.strip():
            raise ProviderError(self.name, "empty completion")
        return text

    async def _post(self, prompt: str) -> httpx.Response:
        url, headers, payload = self._request(prompt)
        timeout = self.settings.generation_timeout_seconds
        if self._client is not None:
            return await self._client.post(url, headers=headers, json=payload, timeout=timeout)
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.post(url, headers=headers, json=payload)

    @abstractmethod
    def _request(self, prompt: str) -> tuple[str, dict, dict]:
        """Return (url, headers, json payload) for the prompt."""

    @abstractmethod
    def _completion_text(self, body: dict) -> str:
        """Pull the completion text out of a decoded response body."""


class TogetherProvider(HTTPProvider):
    """Together AI chat completions (OpenAI-compatible)."""

    name = "together"

    def is_configured(self) -> bool:
        return bool(self.settings.together_api_key)

    def _request(self, prompt: str) -> tuple[str, dict, dict]:
        s = self.settings
        url = f"{s.together_base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {s.together_api_key}", "Content-Type": "application/json"}
        payload = {
            "model": s.together_model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": s.together_max_tokens,
            "temperature": s.together_temperature,
        }
        return url, headers, payload

    def _completion_text(self, body: dict) -> str:
        return body["choices"][0]["message"]["content"]


class GeminiProvider(HTTPProvider):
    """Google Gemini through the Generative Language REST API."""

    name = "gemini"

    def is_configured(self) -> bool:
        return bool(self.settings.gemini_api_key)

    def _request(self, prompt: str) -> tuple[str, dict, dict]:
        s = self.settings
        url = f"{s.gemini_base_url.rstrip('/')}/models/{s.gemini_model}:generateContent"
        headers = {"x-goog-api-key": s.gemini_api_key, "Content-Type": "application/json"}
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": s.gemini_temperature,
                "topP": 0.9,
                "topK": 50,
                "maxOutputTokens": s.gemini_max_tokens,
            },
        }
        return url, headers, payload

    def _completion_text(self, body: dict) -> str:
        parts = body["candidates"][0]["content"]["parts"]
        return "".join(part.get("text", "") for part in parts)


class OllamaProvider(GenerationProvider):
    """Local model served by Ollama, invoked through a LangChain chain."""

    name = "ollama"

    def __init__(self, settings: Settings | None = None, llm: Runnable | None = None):
        self.settings = settings or get_settings()
        self._llm = llm

    def is_configured(self) -> bool:
        return bool(self.settings.ollama_base_url) or self._llm is not None

    def _create_llm(self) -> OllamaLLM:
        s = self.settings
        return OllamaLLM(
            model=s.ollama_model,
            base_url=s.ollama_base_url,
            temperature=s.ollama_temperature,
            num_ctx=s.ollama_num_ctx,
        )

    async def generate(self, prompt: str) -> str:
        if not self.is_configured():
            raise ProviderError(self.name, "provider is not configured")

        llm = self._llm or self._create_llm()
        chain = ChatPromptTemplate.from_messages([("human", "{prompt}")]) | llm | StrOutputParser()
        try:
            text = await chain.ainvoke({"prompt": prompt})
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(self.name, "request timed out") from e
        except ResponseError as e:
            logger.warning("provider_http_error", provider=self.name, status_code=e.status_code)
            raise ProviderError(self.name, f"HTTP {e.status_code}: {e.error}", status_code=e.status_code) from e
        except (httpx.HTTPError, ConnectionError, ValueError) as e:
            raise ProviderError(self.name, f"invocation failed: {type(e).__name__}") from e

        if not text or not text.strip():
            raise ProviderError(self.name, "empty completion")
        return text


PROVIDER_REGISTRY = {
    TogetherProvider.name: TogetherProvider,
    GeminiProvider.name: GeminiProvider,
    OllamaProvider.name: OllamaProvider,
}


def build_providers(settings: Settings | None = None, client: httpx.AsyncClient | None = None) -> list[GenerationProvider]:
    """Instantiate providers in the configured order.

    Args:
        settings: Application settings.
        client: Optional shared HTTP client for the HTTP providers.

    Returns:
        Providers in fallback order.

    Raises:
        ValueError: If a configured provider name is unknown.
    """
    settings = settings or get_settings()
    providers = []
    for name in settings.generation_providers:
        provider_cls = PROVIDER_REGISTRY.get(name.lower())
        if provider_cls is None:
            raise ValueError(f"Unknown generation provider: {name}")
        if issubclass(provider_cls, HTTPProvider):
            providers.append(provider_cls(settings=settings, client=client))
        else:
            providers.append(provider_cls(settings=settings))
    return providers
