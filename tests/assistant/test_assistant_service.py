"""Tests for the assistant answer pipeline."""

from unittest.mock import MagicMock

import pytest

from assistant_rag.assistant.schemas import RagOptions
from assistant_rag.assistant.service import AssistantService, build_assistant_service
from assistant_rag.config.settings import Settings
from assistant_rag.core.errors import EmbeddingUnavailableError, GenerationFailedError, RetrievalError
from assistant_rag.llm.orchestrator import GenerationOrchestrator
from assistant_rag.llm.types import ChatMessage, GenerationOptions
from assistant_rag.rag.embed.embedder import EmbeddingAdapter
from assistant_rag.rag.retrieve.assembler import ContextAssembler
from assistant_rag.rag.store import InMemoryKnowledgeStore
from assistant_rag.routes.recommendations import RouteRecommendation


@pytest.fixture
def remote(make_provider):
    return make_provider("gemini", label="gemini-2.5-flash", text="Use [Login](login) to get started.")


@pytest.fixture
def local(make_provider):
    return make_provider("ollama", label="gemma2:2b", text="local answer")


@pytest.fixture
def service(assembler, remote, local):
    return AssistantService(assembler, GenerationOrchestrator([remote], local), app_name="Acme")


def _sent_messages(provider) -> list[ChatMessage]:
    messages, _ = provider.calls[-1]
    return messages


class TestGenerateAnswer:
    """Tests for AssistantService.generate_answer."""

    def test_without_rag(self, service, remote):
        """Test a plain answer: system prompt, history and tagged routes."""
        history = [ChatMessage(role="user", content="how do I log in")]

        response = service.generate_answer(history)

        sent = _sent_messages(remote)
        assert sent[0].role == "system"
        assert "Acme" in sent[0].content
        assert sent[1:] == history
        assert response.success is True
        assert response.sources == []
        assert response.model == "gemini-2.5-flash"
        assert response.provider == "gemini"
        assert response.content == (
            'Use <route-link text="Login" route="/auth/login">Login</route-link> to get started.'
        )
        assert response.route_recommendations == [RouteRecommendation(text="Login", route="/auth/login")]

    def test_default_generation_options(self, service, remote):
        """Test the default temperature and token budget."""
        service.generate_answer([ChatMessage(role="user", content="hi")])

        _, options = remote.calls[0]
        assert options == GenerationOptions(temperature=0.7, max_tokens=1024)

    def test_category_mentioned_in_system_prompt(self, service, remote):
        """Test that the current page appears in the system prompt."""
        service.generate_answer([ChatMessage(role="user", content="hi")], rag_options=RagOptions(category="dashboard"))

        assert 'currently on the "dashboard" page' in _sent_messages(remote)[0].content

    def test_rag_replaces_last_user_message(self, service, remote):
        """Test that RAG rewrites a copy of the last user message."""
        history = [
            ChatMessage(role="user", content="hello"),
            ChatMessage(role="assistant", content="Hi! How can I help?"),
            ChatMessage(role="user", content="how do I log in"),
        ]

        response = service.generate_answer(history, rag_options=RagOptions(enable_rag=True))

        sent = _sent_messages(remote)
        assert sent[1] == history[0]
        assert sent[2] == history[1]
        assert "CONTEXT:" in sent[3].content
        assert "Use [Login](login) to sign in with your email." in sent[3].content
        assert sent[3].content.endswith("USER QUESTION:\nhow do I log in")
        assert [d.id for d in response.sources] == ["login", "signup"]
        assert history[2].content == "how do I log in"

    def test_rag_uses_assistant_threshold_by_default(self, assembler, remote, local):
        """Test that RAG uses the assistant threshold when none is given."""
        assembler.get_relevant_context = MagicMock(wraps=assembler.get_relevant_context)
        service = AssistantService(assembler, GenerationOrchestrator([remote], local), default_min_similarity=0.9)

        response = service.generate_answer(
            [ChatMessage(role="user", content="how do I log in")],
            rag_options=RagOptions(enable_rag=True),
        )

        assert assembler.get_relevant_context.call_args.kwargs["min_similarity"] == 0.9
        assert [d.id for d in response.sources] == ["login"]

    def test_rag_limit_falls_back_to_context_limit(self, store, embedder, cache, monitor, remote, local):
        """Test that RAG uses the configured context limit when none is given."""
        assembler = ContextAssembler(store, embedder, cache, monitor, default_limit=1)
        service = AssistantService(assembler, GenerationOrchestrator([remote], local), default_min_similarity=0.5)

        response = service.generate_answer(
            [ChatMessage(role="user", content="how do I log in")],
            rag_options=RagOptions(enable_rag=True),
        )

        assert [d.id for d in response.sources] == ["login"]

    def test_rag_explicit_threshold_and_category(self, service, assembler, remote):
        """Test that explicit RAG options reach retrieval and the prompt."""
        assembler.get_relevant_context = MagicMock(wraps=assembler.get_relevant_context)

        service.generate_answer(
            [ChatMessage(role="user", content="how do I log in")],
            rag_options=RagOptions(enable_rag=True, category="auth", min_similarity=0.0, limit=1),
        )

        kwargs = assembler.get_relevant_context.call_args.kwargs
        assert kwargs == {"limit": 1, "category": "auth", "min_similarity": 0.0}
        assert 'currently on the "auth" page' in _sent_messages(remote)[1].content

    def test_rag_without_context_keeps_message(self, service, remote):
        """Test that the message is kept when nothing relevant is found."""
        history = [ChatMessage(role="user", content="something unrelated")]

        response = service.generate_answer(history, rag_options=RagOptions(enable_rag=True))

        assert _sent_messages(remote)[1:] == history
        assert response.sources == []

    def test_rag_without_user_message(self, service, remote):
        """Test that RAG is skipped when there is no user message."""
        history = [ChatMessage(role="assistant", content="Welcome back!")]

        service.generate_answer(history, rag_options=RagOptions(enable_rag=True))

        assert _sent_messages(remote)[1:] == history

    def test_retrieval_failure_is_distinct(self, store, cache, monitor, remote, local, make_embedding_client):
        """Test that a retrieval failure is not reported as a generation failure."""
        failing = EmbeddingAdapter("m", client=make_embedding_client(error=RuntimeError("down")))
        service = AssistantService(ContextAssembler(store, failing, cache, monitor), GenerationOrchestrator([remote], local))

        with pytest.raises(RetrievalError) as exc_info:
            service.generate_answer(
                [ChatMessage(role="user", content="how do I log in")],
                rag_options=RagOptions(enable_rag=True),
            )

        assert isinstance(exc_info.value, EmbeddingUnavailableError)
        assert not isinstance(exc_info.value, GenerationFailedError)
        assert remote.calls == []

    def test_generation_failure(self, assembler, make_provider):
        """Test that a failed chain raises GenerationFailedError."""
        orchestrator = GenerationOrchestrator(
            [make_provider("gemini", error=RuntimeError("500"))],
            make_provider("ollama", error=ConnectionError("refused")),
        )
        service = AssistantService(assembler, orchestrator)

        with pytest.raises(GenerationFailedError):
            service.generate_answer([ChatMessage(role="user", content="hi")])

    def test_model_label_is_static(self, assembler, make_provider):
        """Test that model stays static while provider names the fallback."""
        remote = make_provider("gemini", label="gemini-2.5-flash", error=RuntimeError("down"))
        local = make_provider("ollama", label="gemma2:2b", text="fallback text")
        service = AssistantService(assembler, GenerationOrchestrator([remote], local))

        response = service.generate_answer([ChatMessage(role="user", content="hi")])

        assert response.model == "gemini-2.5-flash"
        assert response.provider == "ollama"
        assert response.content == "fallback text"


class TestGenerateContent:
    """Tests for AssistantService.generate_content."""

    def test_prompt_and_extra_system_prompt(self, service, remote):
        """Test that a caller system prompt follows the built-in one."""
        service.generate_content("Summarize bookings", system_prompt="Answer in French.")

        sent = _sent_messages(remote)
        assert [m.role for m in sent] == ["system", "system", "user"]
        assert "Acme" in sent[0].content
        assert sent[1].content == "Answer in French."
        assert sent[2].content == "Summarize bookings"

    def test_rag_enhances_prompt(self, service, remote):
        """Test that RAG grounds a single prompt."""
        response = service.generate_content("manage my bookings", rag_options=RagOptions(enable_rag=True))

        assert "Your bookings are listed on the dashboard." in _sent_messages(remote)[-1].content
        assert [d.id for d in response.sources] == ["bookings"]


class TestHealthAndWiring:
    def test_health_check_without_local_provider(self, service):
        """Test that health is unknown without a local provider."""
        assert service.health_check()["status"] == "unknown"

    def test_health_check_delegates(self, assembler, remote, local):
        """Test that health checks go to the local provider."""
        probe = MagicMock()
        probe.health_check.return_value = {"status": "healthy", "available_models": 1, "model": "gemma2:2b"}
        service = AssistantService(assembler, GenerationOrchestrator([remote], local), local_provider=probe)

        assert service.health_check()["status"] == "healthy"

    def test_build_assistant_service(self, store):
        """Test that the composition root wires settings through."""
        config = Settings(GEMINI_API_KEY="", OPENROUTER_API_KEY="", RAG_ASSISTANT_MIN_SIMILARITY=0.6, ASSISTANT_APP_NAME="Acme")

        service = build_assistant_service(config, store=store)

        assert service.assembler.store is store
        assert service.default_min_similarity == 0.6
        assert service.app_name == "Acme"
        assert service.orchestrator.active_label() == config.ollama_model
        assert service.local_provider is service.orchestrator.local

    def test_build_assistant_service_reads_retrieval_defaults(self, monkeypatch, store, embedder):
        """Test that RAG_MIN_SIMILARITY and RAG_CONTEXT_LIMIT drive search defaults."""
        monkeypatch.setenv("RAG_MIN_SIMILARITY", "0.95")
        monkeypatch.setenv("RAG_CONTEXT_LIMIT", "1")
        config = Settings(_env_file=None, GEMINI_API_KEY="", OPENROUTER_API_KEY="", RAG_CACHE_BACKEND="memory")

        service = build_assistant_service(config, store=store)
        service.assembler.embedder = embedder

        assert service.assembler.default_min_similarity == 0.95
        assert service.assembler.default_limit == 1
        assert [r.document.id for r in service.semantic_search("how do I log in")] == ["login"]

    def test_build_assistant_service_default_store(self):
        """Test that an in-memory store is created when none is given."""
        service = build_assistant_service(Settings())
        assert isinstance(service.assembler.store, InMemoryKnowledgeStore)
