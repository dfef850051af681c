"""Context assembler for RAG answers.

Runs the retrieval path (cache → embed → similarity scan → cache write)
and turns ranked results into a context string plus a source list.
"""

import time

from loguru import logger

from assistant_rag.core.errors import DimensionMismatchError, RetrievalError
from assistant_rag.rag.cache import RetrievalCache
from assistant_rag.rag.embed.embedder import EmbeddingAdapter
from assistant_rag.rag.index.vector_index import SimilaritySearchIndex
from assistant_rag.rag.logging import log_context_assembly, log_search
from assistant_rag.rag.monitoring import ERROR_DIMENSION_MISMATCH, ERROR_SEARCH, RetrievalMonitor
from assistant_rag.rag.store import KnowledgeStore
from assistant_rag.rag.types import RelevantContext, SearchResult

CONTEXT_SEPARATOR = "\n\n---\n\n"


def build_context(results: list[SearchResult]) -> RelevantContext:
    """Join result contents in ranked order.

    Args:
        results: Ranked search results

    Returns:
        RelevantContext; empty results give an empty context string
    """
    return RelevantContext(
        context=CONTEXT_SEPARATOR.join(r.document.content for r in results),
        sources=[r.document for r in results],
    )


class ContextAssembler:
    """Semantic search and context assembly over the knowledge store."""

    def __init__(
        self,
        store: KnowledgeStore,
        embedder: EmbeddingAdapter,
        cache: RetrievalCache,
        monitor: RetrievalMonitor,
        index: SimilaritySearchIndex | None = None,
        *,
        default_limit: int = 5,
        default_min_similarity: float = 0.5,
    ):
        self.store = store
        self.embedder = embedder
        self.cache = cache
        self.monitor = monitor
        self.index = index or SimilaritySearchIndex()
        self.default_limit = default_limit
        self.default_min_similarity = default_min_similarity

    def semantic_search(
        self,
        query: str,
        limit: int | None = None,
        category: str | None = None,
        min_similarity: float | None = None,
    ) -> list[SearchResult]:
        """Return documents ranked by similarity to ``query``.

        Cached results are keyed by (query, category) only; ``limit`` and
        ``min_similarity`` of a later call do not re-filter a cache hit.
        Omitted ``limit`` and ``min_similarity`` fall back to the defaults
        given at construction (RAG_CONTEXT_LIMIT and RAG_MIN_SIMILARITY).

        Raises:
            EmbeddingUnavailableError: If the query cannot be embedded
            DimensionMismatchError: If a document embedding has the wrong length
            RetrievalError: If the corpus cannot be read
        """
        limit = self.default_limit if limit is None else limit
        min_similarity = self.default_min_similarity if min_similarity is None else min_similarity
        started = time.perf_counter()

        cached = self.cache.get(query, category)
        if cached is not None:
            self.monitor.increment_cache_hit()
            self._record_search(started)
            log_search(
                query,
                category,
                results=cached,
                limit=limit,
                min_similarity=min_similarity,
                cache_hit=True,
                duration_seconds=time.perf_counter() - started,
            )
            return cached

        self.monitor.increment_cache_miss()

        query_vector = self.embedder.embed(query)

        try:
            corpus = self.store.list_active_documents(category)
        except Exception as e:
            self.monitor.increment_error(ERROR_SEARCH)
            raise RetrievalError(f"Failed to read knowledge corpus: {e}") from e

        try:
            results = self.index.search(
                query_vector,
                corpus,
                limit=limit,
                category=category,
                min_similarity=min_similarity,
            )
        except DimensionMismatchError:
            self.monitor.increment_error(ERROR_DIMENSION_MISMATCH)
            raise

        self.cache.set(query, results, category)
        self._record_search(started)
        log_search(
            query,
            category,
            results=results,
            limit=limit,
            min_similarity=min_similarity,
            cache_hit=False,
            duration_seconds=time.perf_counter() - started,
        )
        return results

    def get_relevant_context(
        self,
        query: str,
        limit: int | None = None,
        category: str | None = None,
        min_similarity: float | None = None,
    ) -> RelevantContext:
        """Build a context string and source list for ``query``.

        Raises:
            RetrievalError: Any retrieval failure (embedding, dimension, corpus)
        """
        logger.debug(f"Getting relevant context for query: {query[:50]}")
        results = self.semantic_search(query, limit=limit, category=category, min_similarity=min_similarity)
        context = build_context(results)
        log_context_assembly(context)
        return context

    def _record_search(self, started: float) -> None:
        self.monitor.increment_search()
        self.monitor.observe_search_duration(time.perf_counter() - started)
