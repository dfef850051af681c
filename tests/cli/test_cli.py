"""Tests for the developer CLI."""

import json
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from assistant_rag.assistant.schemas import AssistantResponse
from assistant_rag.assistant.service import AssistantService
from assistant_rag.cli import app
from assistant_rag.core.errors import GenerationFailedError
from assistant_rag.llm.orchestrator import GenerationOrchestrator
from assistant_rag.rag.store import InMemoryKnowledgeStore

runner = CliRunner()


@pytest.fixture
def cli_service(assembler, make_provider):
    """Service wired to the test corpus; patched in place of the real composition root."""
    orchestrator = GenerationOrchestrator(
        [make_provider("gemini", label="gemini-2.5-flash", text="Open [Bookings](bookings).")],
        make_provider("ollama", label="gemma2:2b"),
    )
    service = AssistantService(assembler, orchestrator)
    with patch("assistant_rag.cli.build_assistant_service", return_value=service), patch("assistant_rag.cli.setup_logger"):
        yield service


class TestRoutesCommand:
    def test_extracts_routes(self):
        """Test that routes renders valid links and drops external ones."""
        result = runner.invoke(app, ["routes", "Go to [Login](login) or [Evil](https://evil.com)"])

        assert result.exit_code == 0
        assert "/auth/login" in result.output
        assert "route-link" in result.output

    def test_reads_file(self, tmp_path):
        """Test that routes reads answer text from a file."""
        answer = tmp_path / "answer.md"
        answer.write_text("See [ /dashboard/bookings ]", encoding="utf-8")

        result = runner.invoke(app, ["routes", "--file", str(answer)])

        assert result.exit_code == 0
        assert "/dashboard/bookings" in result.output

    def test_no_routes(self):
        """Test that routes reports when nothing is found."""
        result = runner.invoke(app, ["routes", "plain text"])

        assert result.exit_code == 0
        assert "No valid internal routes" in result.output


class TestRetrievalCommands:
    def test_search(self, cli_service):
        """Test that search prints ranked documents."""
        result = runner.invoke(app, ["search", "how do I log in"])

        assert result.exit_code == 0
        assert "Logging in" in result.output
        assert "1.000" in result.output

    def test_search_nothing_found(self, cli_service):
        """Test that search reports an empty result."""
        result = runner.invoke(app, ["search", "something unrelated"])

        assert result.exit_code == 0
        assert "No documents" in result.output

    def test_search_defaults_come_from_service(self, cli_service):
        """Test that search without options uses the configured threshold."""
        cli_service.assembler.default_min_similarity = 0.95

        result = runner.invoke(app, ["search", "how do I log in"])

        assert result.exit_code == 0
        assert "Logging in" in result.output
        assert "Creating an account" not in result.output

    def test_context(self, cli_service):
        """Test that context prints the snippets and sources."""
        result = runner.invoke(app, ["context", "manage my bookings", "--min-similarity", "0.9"])

        assert result.exit_code == 0
        assert "Your bookings are listed on the dashboard." in result.output
        assert "Managing bookings" in result.output

    def test_metrics_counts_cache_hits(self, cli_service):
        """Test that metrics reports hits from repeated queries."""
        result = runner.invoke(app, ["metrics", "how do I log in", "--repeat", "3"])

        assert result.exit_code == 0
        snapshot = json.loads(result.output)
        assert snapshot["searches"] == 3
        assert snapshot["cache_hits"] == 2
        assert snapshot["cache_misses"] == 1

    def test_metrics_logs_snapshot(self, cli_service):
        """Test that metrics writes the counters to the log."""
        with patch.object(cli_service.assembler.monitor, "log_snapshot") as log_snapshot:
            result = runner.invoke(app, ["metrics", "how do I log in"])

        assert result.exit_code == 0
        log_snapshot.assert_called_once_with()

    def test_metrics_prometheus(self, cli_service):
        """Test that metrics can print the exposition format."""
        result = runner.invoke(app, ["metrics", "how do I log in", "--prometheus"])

        assert result.exit_code == 0
        assert "rag_cache_hits_total 1.0" in result.output

    def test_corpus_loaded_into_store(self, cli_service, tmp_path):
        """Test that --corpus seeds the store before searching."""
        corpus = tmp_path / "corpus.json"
        corpus.write_text(
            json.dumps([{"id": "faq", "title": "Notifications FAQ", "content": "x", "category": "faq", "embedding": [0, 0, 1]}]),
            encoding="utf-8",
        )

        result = runner.invoke(app, ["search", "something unrelated", "--corpus", str(corpus)])

        assert result.exit_code == 0
        assert "Notifications FAQ" in result.output
        assert isinstance(cli_service.assembler.store, InMemoryKnowledgeStore)

    def test_bad_corpus_exits(self, cli_service, tmp_path):
        """Test that an unreadable corpus exits with an error."""
        result = runner.invoke(app, ["search", "q", "--corpus", str(tmp_path / "missing.json")])

        assert result.exit_code == 1
        assert "failed to load corpus" in result.output


class TestAskCommand:
    def test_ask_prints_answer_and_routes(self, cli_service):
        """Test that ask prints the answer, provider and routes."""
        result = runner.invoke(app, ["ask", "where are my bookings?", "--no-rag"])

        assert result.exit_code == 0
        assert "gemini-2.5-flash via gemini" in result.output
        assert "/dashboard/bookings" in result.output

    def test_ask_json(self, cli_service):
        """Test that ask --json prints a parseable response."""
        result = runner.invoke(app, ["ask", "how do I log in", "--json"])

        assert result.exit_code == 0
        response = AssistantResponse.model_validate_json(result.output)
        assert response.provider == "gemini"
        assert [d.id for d in response.sources] == ["login", "signup"]

    def test_generation_failure_exits_non_zero(self, cli_service):
        """Test that a failed chain exits with status 1."""
        cli_service.generate_answer = MagicMock(side_effect=GenerationFailedError(["gemini: down", "ollama: refused"]))

        result = runner.invoke(app, ["ask", "hi"])

        assert result.exit_code == 1
        assert "GenerationFailedError" in result.output


class TestHealthCommand:
    def test_unhealthy_exits_non_zero(self, cli_service):
        """Test that an unreachable local model exits with status 1."""
        cli_service.local_provider = MagicMock()
        cli_service.local_provider.health_check.return_value = {"status": "unhealthy", "error": "refused"}

        result = runner.invoke(app, ["health"])

        assert result.exit_code == 1
        assert "NOT reachable" in result.output

    def test_healthy(self, cli_service):
        """Test that a reachable local model reports healthy."""
        cli_service.local_provider = MagicMock()
        cli_service.local_provider.health_check.return_value = {"status": "healthy", "available_models": 1, "model": "m"}

        result = runner.invoke(app, ["health"])

        assert result.exit_code == 0
        assert "healthy" in result.output
