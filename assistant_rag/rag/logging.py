"""Observability logging for RAG retrieval.

This module logs all retrieval operations for debugging and auditability.
"""

from loguru import logger

from assistant_rag.rag.types import RelevantContext, SearchResult

QUERY_PREVIEW_LENGTH = 50


def log_search(
    query: str,
    category: str | None,
    *,
    results: list[SearchResult],
    limit: int,
    min_similarity: float,
    cache_hit: bool,
    duration_seconds: float,
) -> None:
    """Log a semantic search.

    Args:
        query: Query text (only a preview is logged)
        category: Category filter, if any
        results: Returned results
        limit: Requested number of results
        min_similarity: Similarity threshold
        cache_hit: Whether the results came from the cache
        duration_seconds: Wall time spent in the search
    """
    logger.info(
        "rag_search",
        query=query[:QUERY_PREVIEW_LENGTH],
        category=category or "all",
        limit=limit,
        min_similarity=min_similarity,
        results_returned=len(results),
        document_ids=[r.document.id for r in results],
        top_similarity=results[0].similarity if results else None,
        cache_hit=cache_hit,
        duration_seconds=round(duration_seconds, 4),
    )


def log_context_assembly(context: RelevantContext) -> None:
    """Log context assembly.

    Args:
        context: Assembled context
    """
    logger.info(
        "rag_context_assembly",
        num_sources=len(context.sources),
        context_chars=len(context.context),
        document_ids=[d.id for d in context.sources],
    )
