"""Canonical RAG types for the retrieval pipeline.

Documents and search results are frozen pydantic models so they can be
shared across concurrent requests and round-tripped through the cache
as JSON without losing equality.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class KnowledgeDocument(BaseModel):
    """A knowledge entry owned by the external knowledge store.

    The retrieval core only reads ``content`` and ``embedding``. All
    embeddings in one corpus share a single dimensionality.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    content: str
    category: str
    language: str = "en"
    tags: list[str] = Field(default_factory=list)
    is_active: bool = True
    is_public: bool = False
    requires_authentication: bool = False
    embedding: list[float] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class SearchResult(BaseModel):
    """A ranked match produced per query; never persisted."""

    model_config = ConfigDict(frozen=True)

    document: KnowledgeDocument
    similarity: float = Field(..., ge=-1.0, le=1.0)


class RelevantContext(BaseModel):
    """Context string plus the documents it was built from, in ranked order."""

    model_config = ConfigDict(frozen=True)

    context: str
    sources: list[KnowledgeDocument]
