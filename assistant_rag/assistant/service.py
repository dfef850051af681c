"""In-app assistant answer pipeline.

Flow per request (strictly sequential):
1. Prepend the assistant system prompt
2. Optionally replace the last user message with a RAG prompt
3. Generate through the provider fallback chain
4. Extract and re-render internal route links
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from assistant_rag.assistant.prompts import (
    build_chat_system_prompt,
    build_content_system_prompt,
    build_rag_prompt,
)
from assistant_rag.assistant.schemas import AssistantResponse, RagOptions
from assistant_rag.config.settings import Settings
from assistant_rag.llm.orchestrator import GenerationOrchestrator
from assistant_rag.llm.providers import OllamaProvider, build_default_providers, build_local_provider
from assistant_rag.llm.types import ChatMessage, GenerationOptions
from assistant_rag.rag.cache import RetrievalCache, build_cache_backend
from assistant_rag.rag.embed.embedder import EmbeddingAdapter
from assistant_rag.rag.monitoring import RetrievalMonitor
from assistant_rag.rag.retrieve.assembler import ContextAssembler
from assistant_rag.rag.store import InMemoryKnowledgeStore, KnowledgeStore
from assistant_rag.rag.types import KnowledgeDocument, RelevantContext, SearchResult
from assistant_rag.routes.recommendations import RouteRecommendationExtractor


class AssistantService:
    """Grounded question answering over the knowledge base."""

    def __init__(
        self,
        assembler: ContextAssembler,
        orchestrator: GenerationOrchestrator,
        extractor: RouteRecommendationExtractor | None = None,
        *,
        app_name: str = "EventideV1",
        default_min_similarity: float = 0.7,
        local_provider: OllamaProvider | None = None,
    ) -> None:
        self.assembler = assembler
        self.orchestrator = orchestrator
        self.extractor = extractor or RouteRecommendationExtractor()
        self.app_name = app_name
        self.default_min_similarity = default_min_similarity
        self.local_provider = local_provider

    def semantic_search(
        self,
        query: str,
        limit: int | None = None,
        category: str | None = None,
        min_similarity: float | None = None,
    ) -> list[SearchResult]:
        """Ranked search; omitted limit and threshold use the assembler defaults."""
        return self.assembler.semantic_search(query, limit=limit, category=category, min_similarity=min_similarity)

    def get_relevant_context(
        self,
        query: str,
        limit: int | None = None,
        category: str | None = None,
        min_similarity: float | None = None,
    ) -> RelevantContext:
        return self.assembler.get_relevant_context(query, limit=limit, category=category, min_similarity=min_similarity)

    def generate_answer(
        self,
        messages: list[ChatMessage],
        options: GenerationOptions | None = None,
        rag_options: RagOptions | None = None,
    ) -> AssistantResponse:
        """Answer a conversation, optionally grounded in retrieved context.

        Args:
            messages: Conversation so far; never mutated
            options: Sampling options (defaults: temperature 0.7, 1024 tokens)
            rag_options: Retrieval settings; RAG is off when omitted

        Returns:
            AssistantResponse with processed text, sources and route links

        Raises:
            RetrievalError: If RAG is enabled and retrieval fails
            GenerationFailedError: If every provider failed
        """
        rag_options = rag_options or RagOptions()
        logger.info(
            "Generating assistant answer",
            messages=len(messages),
            enable_rag=rag_options.enable_rag,
            category=rag_options.category,
        )

        system_message = ChatMessage(
            role="system",
            content=build_chat_system_prompt(self.app_name, rag_options.category),
        )
        return self._answer(system_message, list(messages), options or GenerationOptions(), rag_options)

    def generate_content(
        self,
        prompt: str,
        system_prompt: str | None = None,
        rag_options: RagOptions | None = None,
    ) -> AssistantResponse:
        """Single-prompt variant with the long-form system instructions.

        A caller-supplied ``system_prompt`` is sent after the built-in one.
        """
        rag_options = rag_options or RagOptions()
        logger.info("Generating assistant content", prompt=prompt[:100], enable_rag=rag_options.enable_rag)

        system_message = ChatMessage(
            role="system",
            content=build_content_system_prompt(self.app_name, rag_options.category),
        )
        messages: list[ChatMessage] = []
        if system_prompt:
            messages.append(ChatMessage(role="system", content=system_prompt))
        messages.append(ChatMessage(role="user", content=prompt))
        return self._answer(system_message, messages, GenerationOptions(), rag_options)

    def health_check(self) -> dict[str, Any]:
        """Probe the local model; remote providers are not pinged."""
        if self.local_provider is None:
            return {"status": "unknown", "error": "no local provider configured"}
        return self.local_provider.health_check()

    def _answer(
        self,
        system_message: ChatMessage,
        messages: list[ChatMessage],
        options: GenerationOptions,
        rag_options: RagOptions,
    ) -> AssistantResponse:
        sources: list[KnowledgeDocument] = []
        if rag_options.enable_rag:
            messages, sources = self._enhance_with_context(messages, rag_options)

        result = self.orchestrator.generate([system_message, *messages], options)
        content, recommendations = self.extractor.extract(result.text)

        logger.info(
            "Assistant answer generated",
            provider=result.provider,
            sources=len(sources),
            route_recommendations=len(recommendations),
        )
        return AssistantResponse(
            success=True,
            content=content,
            model=self.orchestrator.active_label(),
            provider=result.provider,
            sources=sources,
            route_recommendations=recommendations,
        )

    def _enhance_with_context(
        self,
        messages: list[ChatMessage],
        rag_options: RagOptions,
    ) -> tuple[list[ChatMessage], list[KnowledgeDocument]]:
        """Swap the last user message for a RAG prompt when context is found."""
        last_user_index = next(
            (i for i in range(len(messages) - 1, -1, -1) if messages[i].role == "user"),
            None,
        )
        if last_user_index is None:
            logger.info("No user message to enhance with context")
            return messages, []

        question = messages[last_user_index].content
        min_similarity = (
            rag_options.min_similarity if rag_options.min_similarity is not None else self.default_min_similarity
        )
        relevant = self.assembler.get_relevant_context(
            question,
            limit=rag_options.limit,
            category=rag_options.category,
            min_similarity=min_similarity,
        )

        if not relevant.context.strip():
            logger.info("No relevant context found", category=rag_options.category)
            return messages, relevant.sources

        enhanced = list(messages)
        enhanced[last_user_index] = ChatMessage(
            role="user",
            content=build_rag_prompt(self.app_name, relevant.context, question, rag_options.category),
        )
        logger.info("Enhanced user message with context", sources=len(relevant.sources))
        return enhanced, relevant.sources


def build_assistant_service(
    config: Settings | None = None,
    store: KnowledgeStore | None = None,
    monitor: RetrievalMonitor | None = None,
) -> AssistantService:
    """Wire the pipeline from settings.

    Args:
        config: Settings; the module-level instance when omitted
        store: Knowledge store; a fresh in-memory store when omitted
        monitor: Retrieval monitor; a fresh one when omitted

    Returns:
        Ready-to-use AssistantService
    """
    if config is None:
        from assistant_rag.config.settings import settings as config  # noqa: PLC0415

    monitor = monitor or RetrievalMonitor()
    embedder = EmbeddingAdapter.from_settings(config, monitor)
    if store is None:
        store = InMemoryKnowledgeStore(embedder)

    cache = RetrievalCache(build_cache_backend(config), default_ttl_seconds=config.rag_cache_ttl_seconds)
    assembler = ContextAssembler(
        store,
        embedder,
        cache,
        monitor,
        default_limit=config.rag_context_limit,
        default_min_similarity=config.rag_min_similarity,
    )

    local = build_local_provider(config)
    orchestrator = GenerationOrchestrator(
        providers=build_default_providers(config),
        local=local,
        local_max_tokens_cap=config.local_max_tokens_cap,
    )

    logger.info(
        "Assistant service initialized",
        active_model=orchestrator.active_label(),
        cache_backend=config.rag_cache_backend,
    )
    return AssistantService(
        assembler,
        orchestrator,
        RouteRecommendationExtractor(),
        app_name=config.assistant_app_name,
        default_min_similarity=config.rag_assistant_min_similarity,
        local_provider=local,
    )
