"""Knowledge store boundary.

The retrieval core consumes documents through ``KnowledgeStore``; real
persistence lives elsewhere. ``InMemoryKnowledgeStore`` is the reference
implementation used by the CLI and the tests.
"""

from __future__ import annotations

import json
import threading
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from loguru import logger

from assistant_rag.core.errors import DocumentNotFoundError
from assistant_rag.rag.types import KnowledgeDocument

if TYPE_CHECKING:
    from assistant_rag.rag.embed.embedder import EmbeddingAdapter


class KnowledgeStore(Protocol):
    """Read side of the knowledge store plus embedding-aware updates."""

    def list_active_documents(self, category: str | None = None) -> list[KnowledgeDocument]: ...

    def get_document_by_id(self, document_id: str) -> KnowledgeDocument: ...

    def update_document(self, document_id: str, **fields: Any) -> KnowledgeDocument: ...


class InMemoryKnowledgeStore:
    """Thread-safe in-process document store.

    Any update that changes ``content`` regenerates ``embedding`` so the
    corpus never serves a vector for stale text.
    """

    def __init__(self, embedder: EmbeddingAdapter) -> None:
        self.embedder = embedder
        self._documents: dict[str, KnowledgeDocument] = {}
        self._lock = threading.RLock()

    def add_document(
        self,
        *,
        title: str,
        content: str,
        category: str,
        document_id: str | None = None,
        embedding: list[float] | None = None,
        **fields: Any,
    ) -> KnowledgeDocument:
        """Store a new document, embedding its content unless a vector is supplied."""
        vector = embedding if embedding else self.embedder.embed(content)
        document = KnowledgeDocument(
            id=document_id or uuid.uuid4().hex,
            title=title,
            content=content,
            category=category,
            embedding=vector,
            **fields,
        )
        with self._lock:
            self._documents[document.id] = document
        logger.info(f"Knowledge document created with ID: {document.id}")
        return document

    def list_active_documents(self, category: str | None = None) -> list[KnowledgeDocument]:
        with self._lock:
            documents = list(self._documents.values())
        return [d for d in documents if d.is_active and (not category or d.category == category)]

    def get_document_by_id(self, document_id: str) -> KnowledgeDocument:
        with self._lock:
            document = self._documents.get(document_id)
        if document is None or not document.is_active:
            raise DocumentNotFoundError(document_id)
        return document

    def update_document(self, document_id: str, **fields: Any) -> KnowledgeDocument:
        """Apply field updates; regenerate the embedding when content changes.

        Raises:
            DocumentNotFoundError: If the id is unknown
        """
        with self._lock:
            existing = self._documents.get(document_id)
        if existing is None:
            raise DocumentNotFoundError(document_id)

        updates = dict(fields)
        new_content = updates.get("content")
        if new_content is not None and new_content != existing.content and "embedding" not in updates:
            # Embedded outside the lock; concurrent updates are last-write-wins.
            updates["embedding"] = self.embedder.embed(new_content)

        with self._lock:
            current = self._documents.get(document_id)
            if current is None:
                raise DocumentNotFoundError(document_id)
            updated = current.model_copy(update=updates)
            self._documents[document_id] = updated

        logger.info(f"Updated knowledge document with ID: {document_id}", fields=sorted(fields))
        return updated

    def load_json(self, path: Path) -> list[KnowledgeDocument]:
        """Seed the store from a JSON list of document objects.

        Entries without an ``embedding`` are embedded on load, one at a time.
        """
        with path.open(encoding="utf-8") as f:
            entries = json.load(f)

        if not isinstance(entries, list):
            raise ValueError(f"Expected a JSON list of documents in {path}")

        loaded: list[KnowledgeDocument] = []
        for entry in entries:
            data = dict(entry)
            loaded.append(
                self.add_document(
                    title=data.pop("title"),
                    content=data.pop("content"),
                    category=data.pop("category"),
                    document_id=data.pop("id", None),
                    embedding=data.pop("embedding", None),
                    **data,
                )
            )

        logger.info(f"Loaded {len(loaded)} knowledge documents from {path}")
        return loaded

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)
