"""Generation fallback chain.

Remote providers are tried once each, in order. The first non-empty
answer wins. When every remote provider fails, the local model is called
with a capped token budget; if that also fails, GenerationFailedError is
raised with one entry per attempt.
"""

from __future__ import annotations

import dataclasses

from loguru import logger

from assistant_rag.config.settings import Settings
from assistant_rag.core.errors import GenerationFailedError, ProviderUnavailableError
from assistant_rag.llm.providers import (
    GenerationProvider,
    build_default_providers,
    build_local_provider,
)
from assistant_rag.llm.types import ChatMessage, GenerationOptions, GenerationResult


def _call_provider(
    provider: GenerationProvider,
    messages: list[ChatMessage],
    options: GenerationOptions,
) -> str:
    """Single attempt; empty output counts as a failure."""
    try:
        text = provider.generate(messages, options)
    except ProviderUnavailableError:
        raise
    except Exception as e:
        raise ProviderUnavailableError(provider.name, f"{type(e).__name__}: {e}") from e

    if not text or not text.strip():
        raise ProviderUnavailableError(provider.name, "empty response")
    return text


class GenerationOrchestrator:
    """Ordered provider chain with a local last-resort model."""

    def __init__(
        self,
        providers: list[GenerationProvider],
        local: GenerationProvider,
        local_max_tokens_cap: int = 256,
    ) -> None:
        self.providers = list(providers)
        self.local = local
        self.local_max_tokens_cap = local_max_tokens_cap

    @classmethod
    def from_settings(cls, config: Settings) -> GenerationOrchestrator:
        return cls(
            providers=build_default_providers(config),
            local=build_local_provider(config),
            local_max_tokens_cap=config.local_max_tokens_cap,
        )

    def active_label(self) -> str:
        """Label of the highest-priority configured provider.

        Static: reflects configuration, not which provider answered last.
        """
        if self.providers:
            return self.providers[0].label
        return self.local.label

    def generate(
        self,
        messages: list[ChatMessage],
        options: GenerationOptions | None = None,
    ) -> GenerationResult:
        """Generate a completion through the fallback chain.

        Args:
            messages: Ordered chat messages
            options: Temperature and token budget; defaults to 0.7 / 1024

        Returns:
            GenerationResult with the text and the provider that produced it

        Raises:
            GenerationFailedError: If every provider, including local, failed
        """
        options = options or GenerationOptions()
        failures: list[str] = []

        for provider in self.providers:
            try:
                text = _call_provider(provider, messages, options)
            except ProviderUnavailableError as e:
                logger.warning(
                    "Generation provider failed, trying next",
                    provider=e.provider,
                    reason=e.reason,
                )
                failures.append(str(e))
                continue
            logger.info("Generation succeeded", provider=provider.name, chars=len(text))
            return GenerationResult(text=text, provider=provider.name)

        local_options = dataclasses.replace(
            options,
            max_tokens=min(options.max_tokens, self.local_max_tokens_cap),
        )
        logger.info(
            "Falling back to local model",
            provider=self.local.name,
            max_tokens=local_options.max_tokens,
            remote_failures=len(failures),
        )
        try:
            text = _call_provider(self.local, messages, local_options)
        except ProviderUnavailableError as e:
            failures.append(str(e))
            logger.error("All generation providers failed", failures=failures)
            raise GenerationFailedError(failures) from e

        return GenerationResult(text=text, provider=self.local.name)
