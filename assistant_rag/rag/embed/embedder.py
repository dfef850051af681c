"""Embedding adapter for semantic retrieval.

Turns text into a fixed-dimension vector through an OpenAI-compatible
embeddings endpoint (Ollama serves one at ``/v1``). The adapter never
retries: a failed call surfaces immediately as EmbeddingUnavailableError
and the caller decides what to do.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger
from openai import OpenAI

from assistant_rag.config.settings import Settings
from assistant_rag.core.errors import EmbeddingUnavailableError
from assistant_rag.rag.monitoring import ERROR_EMBEDDING, RetrievalMonitor

if TYPE_CHECKING:
    from assistant_rag.rag.store import KnowledgeStore
    from assistant_rag.rag.types import KnowledgeDocument

DEFAULT_MAX_TEXT_LENGTH = 8192


def truncate_for_embedding(text: str, max_length: int = DEFAULT_MAX_TEXT_LENGTH) -> str:
    """Keep the first ``max_length`` characters of ``text``.

    Args:
        text: Text to embed
        max_length: Maximum number of characters submitted to the model

    Returns:
        Head-truncated text (unchanged when already short enough)
    """
    if len(text) > max_length:
        return text[:max_length]
    return text


class EmbeddingAdapter:
    """Text to vector via an external embedding endpoint."""

    def __init__(
        self,
        model: str,
        *,
        client: Any | None = None,
        base_url: str | None = None,
        api_key: str = "ollama",
        max_text_length: int = DEFAULT_MAX_TEXT_LENGTH,
        monitor: RetrievalMonitor | None = None,
    ) -> None:
        """Initialize adapter.

        Args:
            model: Embedding model identifier
            client: Pre-built OpenAI-compatible client (tests inject a fake)
            base_url: Endpoint base URL when no client is given
            api_key: API key for the endpoint; Ollama accepts any value
            max_text_length: Head-truncation limit in characters
            monitor: Optional monitor receiving embedding/error counts
        """
        self.model = model
        self.max_text_length = max_text_length
        self.monitor = monitor
        self._client = client if client is not None else OpenAI(base_url=base_url, api_key=api_key)
        logger.info(f"Embedding adapter initialized with model={model}")

    @classmethod
    def from_settings(cls, config: Settings, monitor: RetrievalMonitor | None = None) -> EmbeddingAdapter:
        return cls(
            config.ollama_embedding_model,
            base_url=config.resolved_embedding_base_url,
            api_key=config.embedding_api_key,
            max_text_length=config.embedding_max_text_length,
            monitor=monitor,
        )

    def embed(self, text: str) -> list[float]:
        """Compute the embedding for a single text.

        Args:
            text: Text to embed; head-truncated to ``max_text_length``

        Returns:
            Embedding vector

        Raises:
            EmbeddingUnavailableError: If the endpoint fails or returns no vector
        """
        truncated = truncate_for_embedding(text, self.max_text_length)

        try:
            response = self._client.embeddings.create(
                model=self.model,
                input=truncated,
            )
            vector = list(response.data[0].embedding)
        except Exception as e:
            self._record_error()
            logger.error("Failed to generate embedding", model=self.model, error=str(e))
            raise EmbeddingUnavailableError(f"Embedding generation failed: {e}") from e

        if not vector:
            self._record_error()
            raise EmbeddingUnavailableError("Embedding endpoint returned an empty vector")

        if self.monitor is not None:
            self.monitor.increment_embedding_generation()
        logger.debug(
            "Embedding generated",
            text_length=len(text),
            truncated=len(truncated) < len(text),
            dim=len(vector),
        )
        return vector

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed texts one at a time, in order.

        Calls are sequential; throughput is bounded by one request at a time.

        Raises:
            EmbeddingUnavailableError: On the first failing text
        """
        logger.info(f"Generating embeddings for {len(texts)} texts")
        return [self.embed(text) for text in texts]

    def embed_document(self, store: KnowledgeStore, document_id: str) -> KnowledgeDocument:
        """Re-embed a stored document's content and write the vector back.

        Args:
            store: Knowledge store owning the document
            document_id: Document to refresh

        Returns:
            The updated document
        """
        document = store.get_document_by_id(document_id)
        embedding = self.embed(document.content)
        updated = store.update_document(document_id, embedding=embedding)
        logger.info(f"Embeddings updated for document ID: {document_id}")
        return updated

    def _record_error(self) -> None:
        if self.monitor is not None:
            self.monitor.increment_error(ERROR_EMBEDDING)
