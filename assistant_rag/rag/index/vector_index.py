"""Vector index for cosine similarity search.

Exact linear scan over a corpus snapshot: O(n·d) per query, fine for
hundreds to low thousands of documents. ``SimilaritySearchIndex`` is the
seam where an approximate-nearest-neighbor index would plug in at larger
corpus sizes.
"""

from collections.abc import Sequence

import numpy as np

from assistant_rag.core.errors import DimensionMismatchError
from assistant_rag.rag.types import KnowledgeDocument, SearchResult


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors.

    Args:
        vec_a: First vector
        vec_b: Second vector

    Returns:
        Similarity in [-1, 1]; 0.0 when either vector has zero norm

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    if len(vec_a) != len(vec_b):
        raise DimensionMismatchError(expected=len(vec_a), actual=len(vec_b))

    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)

    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = float(np.dot(a, b)) / (norm_a * norm_b)
    # Rounding can push identical vectors a hair past 1.0
    return max(-1.0, min(1.0, similarity))


class SimilaritySearchIndex:
    """Brute-force cosine similarity search over active documents."""

    def search(
        self,
        query_vector: Sequence[float],
        corpus: Sequence[KnowledgeDocument],
        limit: int = 5,
        category: str | None = None,
        min_similarity: float = 0.5,
    ) -> list[SearchResult]:
        """Rank corpus documents by similarity to ``query_vector``.

        Args:
            query_vector: Query embedding
            corpus: Corpus snapshot; inactive documents are skipped
            limit: Maximum number of results
            category: Optional exact category filter
            min_similarity: Inclusive similarity threshold

        Returns:
            Results sorted by similarity descending; ties keep corpus order

        Raises:
            DimensionMismatchError: If a candidate's embedding length differs
                from the query vector's
        """
        if limit <= 0:
            return []

        results: list[SearchResult] = []
        for document in corpus:
            if not document.is_active:
                continue
            if category and document.category != category:
                continue

            try:
                similarity = cosine_similarity(query_vector, document.embedding)
            except DimensionMismatchError as e:
                raise DimensionMismatchError(e.expected, e.actual, document_id=document.id) from e

            if similarity >= min_similarity:
                results.append(SearchResult(document=document, similarity=similarity))

        # list.sort is stable, so equal scores keep corpus order
        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:limit]
