"""Text-generation providers.

Each provider makes exactly one call per ``generate`` and returns the raw
text (possibly empty). Transport and API errors propagate as exceptions;
the orchestrator decides whether to fall through. No provider retries.

Providers:
- Gemini (Google Generative Language REST, API key)
- OpenRouter (OpenAI-compatible chat completions)
- Ollama (local fallback, always available)
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
from loguru import logger
from openai import OpenAI

from assistant_rag.config.settings import Settings
from assistant_rag.llm.types import ChatMessage, GenerationOptions

_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GenerationProvider(Protocol):
    """One step of the fallback chain."""

    name: str
    label: str

    def generate(self, messages: list[ChatMessage], options: GenerationOptions) -> str: ...


def messages_to_plain_text(messages: list[ChatMessage]) -> str:
    """Flatten role-tagged messages for providers that take a single prompt."""
    return "\n\n".join(f"{m.role.upper()}: {m.content}" for m in messages)


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


class GeminiProvider:
    """Gemini via the Generative Language ``generateContent`` endpoint."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        label: str = "gemini-2.5-flash",
        timeout: float = 20.0,
        http_client: httpx.Client | None = None,
        base_url: str = _GEMINI_BASE_URL,
    ) -> None:
        self.model = model
        self.label = label
        self.timeout = timeout
        self._api_key = api_key
        self._http_client = http_client
        self._url = f"{base_url}/models/{model}:generateContent"

    def generate(self, messages: list[ChatMessage], options: GenerationOptions) -> str:
        payload = {
            "contents": [{"parts": [{"text": messages_to_plain_text(messages)}]}],
            "generationConfig": {
                "temperature": options.temperature,
                "maxOutputTokens": options.max_tokens,
            },
        }
        # Key goes in a header so it never appears in logged request URLs
        headers = {"x-goog-api-key": self._api_key, "Content-Type": "application/json"}

        if self._http_client is not None:
            response = self._http_client.post(self._url, json=payload, headers=headers, timeout=self.timeout)
        else:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self._url, json=payload, headers=headers)
        response.raise_for_status()
        data = response.json()

        try:
            return _as_text(data["candidates"][0]["content"]["parts"][0]["text"])
        except (KeyError, IndexError, TypeError):
            return ""


class OpenRouterProvider:
    """OpenRouter through the OpenAI client (role-preserving messages)."""

    name = "openrouter"

    def __init__(
        self,
        api_key: str,
        model: str = "mistralai/mistral-small-3.2-24b-instruct:free",
        label: str = "openrouter:gpt-4o-mini",
        timeout: float = 20.0,
        base_url: str = "https://openrouter.ai/api/v1",
        client: Any | None = None,
    ) -> None:
        self.model = model
        self.label = label
        self.timeout = timeout
        # max_retries=0: the fallback chain owns failure handling
        self._client = client if client is not None else OpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
        )

    def generate(self, messages: list[ChatMessage], options: GenerationOptions) -> str:
        completion = self._client.chat.completions.create(
            model=self.model,
            messages=[{"role": m.role, "content": m.content} for m in messages],
            temperature=options.temperature,
            max_tokens=options.max_tokens,
        )
        if not getattr(completion, "choices", None):
            return ""
        return _as_text(completion.choices[0].message.content)


class OllamaProvider:
    """Local Ollama chat; the last resort of the fallback chain."""

    name = "ollama"

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "gemma2:2b",
        timeout: float = 120.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.model = model
        self.label = model
        self.timeout = timeout
        self._base_url = host.rstrip("/")
        self._http_client = http_client

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}{path}"
        if self._http_client is not None:
            return self._http_client.request(method, url, timeout=self.timeout, **kwargs)
        with httpx.Client(timeout=self.timeout) as client:
            return client.request(method, url, **kwargs)

    def generate(self, messages: list[ChatMessage], options: GenerationOptions) -> str:
        payload = {
            "model": self.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "stream": False,
            "options": {
                "temperature": options.temperature,
                "num_predict": options.max_tokens,
            },
        }
        response = self._request("POST", "/api/chat", json=payload)
        response.raise_for_status()
        data = response.json()
        message = data.get("message") or {}
        return _as_text(message.get("content"))

    def health_check(self) -> dict[str, Any]:
        """List local models as a liveness probe."""
        try:
            response = self._request("GET", "/api/tags")
            response.raise_for_status()
            models = response.json().get("models") or []
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Ollama health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}

        return {
            "status": "healthy",
            "available_models": len(models),
            "model": self.model,
        }


def build_default_providers(config: Settings) -> list[GenerationProvider]:
    """Configured remote providers in priority order: Gemini, then OpenRouter."""
    providers: list[GenerationProvider] = []
    if config.gemini_configured:
        providers.append(
            GeminiProvider(
                api_key=config.gemini_api_key,
                model=config.gemini_model,
                label=config.gemini_label,
                timeout=config.provider_timeout_seconds,
            )
        )
    if config.openrouter_configured:
        providers.append(
            OpenRouterProvider(
                api_key=config.openrouter_api_key,
                model=config.openrouter_model,
                label=config.openrouter_label,
                timeout=config.provider_timeout_seconds,
                base_url=config.openrouter_base_url,
            )
        )
    logger.info("Generation providers configured", providers=[p.name for p in providers])
    return providers


def build_local_provider(config: Settings) -> OllamaProvider:
    return OllamaProvider(
        host=config.ollama_host,
        model=config.ollama_model,
        timeout=config.local_timeout_seconds,
    )
