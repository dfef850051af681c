"""Error types for the retrieval and answer pipeline.

Retrieval failures and generation failures are kept in separate branches
of the hierarchy so callers can tell "found no context" apart from
"couldn't answer".
"""


class AssistantRagError(RuntimeError):
    """Base exception for the assistant RAG pipeline."""

    pass


class RetrievalError(AssistantRagError):
    """Raised when semantic search or context assembly fails."""

    pass


class EmbeddingUnavailableError(RetrievalError):
    """Raised when the embedding endpoint fails or returns no vector."""

    pass


class DimensionMismatchError(RetrievalError):
    """Raised when two vectors being compared differ in length.

    Attributes:
        expected: Length of the query vector
        actual: Length of the document vector
        document_id: Document whose embedding did not match, if known
    """

    def __init__(self, expected: int, actual: int, document_id: str | None = None) -> None:
        self.expected = expected
        self.actual = actual
        self.document_id = document_id
        where = f" for document {document_id}" if document_id else ""
        super().__init__(f"Embedding dimension mismatch{where}: expected {expected}, got {actual}")


class ProviderUnavailableError(AssistantRagError):
    """Raised by a single generation provider; recovered by the fallback chain.

    Attributes:
        provider: Provider name that failed
    """

    def __init__(self, provider: str, reason: str) -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider}: {reason}")


class GenerationFailedError(AssistantRagError):
    """Raised when every provider, including the local fallback, failed.

    Attributes:
        failures: One "provider: reason" entry per attempt, in order
    """

    def __init__(self, failures: list[str]) -> None:
        self.failures = failures
        super().__init__("All generation providers failed. " + " | ".join(failures))


class DocumentNotFoundError(AssistantRagError):
    """Raised when a knowledge document id is unknown or inactive."""

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"Knowledge document with ID {document_id} not found")
