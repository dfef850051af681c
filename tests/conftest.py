"""Shared fixtures for the assistant RAG tests.

Everything here is offline: embeddings come from a lookup table, generation
providers are scripted fakes and the cache runs on a manual clock.
"""

from dataclasses import dataclass, field
from types import SimpleNamespace

import pytest

from assistant_rag.llm.types import ChatMessage, GenerationOptions
from assistant_rag.rag.cache import InMemoryCacheBackend, RetrievalCache
from assistant_rag.rag.embed.embedder import EmbeddingAdapter
from assistant_rag.rag.monitoring import RetrievalMonitor
from assistant_rag.rag.retrieve.assembler import ContextAssembler
from assistant_rag.rag.store import InMemoryKnowledgeStore

QUERY_VECTORS = {
    "how do I log in": [1.0, 0.0, 0.0],
    "manage my bookings": [0.0, 1.0, 0.0],
    "something unrelated": [0.0, 0.0, 1.0],
}
DEFAULT_VECTOR = [0.0, 0.0, 1.0]


class FakeEmbeddingsEndpoint:
    """Stands in for ``client.embeddings`` of an OpenAI client."""

    def __init__(self, vectors: dict[str, list[float]], error: Exception | None = None):
        self.vectors = vectors
        self.error = error
        self.calls: list[str] = []

    def create(self, model: str, input: str):  # noqa: A002
        self.calls.append(input)
        if self.error is not None:
            raise self.error
        vector = self.vectors.get(input, DEFAULT_VECTOR)
        return SimpleNamespace(data=[SimpleNamespace(embedding=vector)])


class FakeEmbeddingClient:
    def __init__(self, vectors: dict[str, list[float]] | None = None, error: Exception | None = None):
        self.embeddings = FakeEmbeddingsEndpoint(vectors if vectors is not None else dict(QUERY_VECTORS), error)


class ManualClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class FakeProvider:
    """Scripted generation provider recording every call."""

    name: str
    label: str = ""
    text: str = ""
    error: Exception | None = None
    calls: list[tuple[list[ChatMessage], GenerationOptions]] = field(default_factory=list)

    def __post_init__(self):
        if not self.label:
            self.label = f"{self.name}-label"

    def generate(self, messages: list[ChatMessage], options: GenerationOptions) -> str:
        self.calls.append((list(messages), options))
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def monitor():
    return RetrievalMonitor()


@pytest.fixture
def embedding_client():
    return FakeEmbeddingClient()


@pytest.fixture
def embedder(embedding_client, monitor):
    return EmbeddingAdapter("test-embed", client=embedding_client, monitor=monitor)


@pytest.fixture
def store(embedder):
    """Store seeded with three documents and explicit vectors."""
    knowledge = InMemoryKnowledgeStore(embedder)
    knowledge.add_document(
        document_id="login",
        title="Logging in",
        content="Use [Login](login) to sign in with your email.",
        category="auth",
        embedding=[1.0, 0.0, 0.0],
    )
    knowledge.add_document(
        document_id="signup",
        title="Creating an account",
        content="New users register on the signup page.",
        category="auth",
        embedding=[0.8, 0.6, 0.0],
    )
    knowledge.add_document(
        document_id="bookings",
        title="Managing bookings",
        content="Your bookings are listed on the dashboard.",
        category="dashboard",
        embedding=[0.0, 1.0, 0.0],
    )
    return knowledge


@pytest.fixture
def cache(clock):
    return RetrievalCache(InMemoryCacheBackend(clock=clock), default_ttl_seconds=3600)


@pytest.fixture
def assembler(store, embedder, cache, monitor):
    return ContextAssembler(store, embedder, cache, monitor)


@pytest.fixture
def make_embedding_client():
    """Factory for embedding clients with custom vectors or a scripted error."""
    return FakeEmbeddingClient


@pytest.fixture
def make_provider():
    """Factory for scripted generation providers."""
    return FakeProvider
