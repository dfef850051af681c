"""Developer CLI for the assistant RAG pipeline.

Loads a JSON corpus into the in-memory knowledge store and exercises the
same composition root library callers use (``build_assistant_service``).
"""

import json
from pathlib import Path
from typing import NoReturn

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from assistant_rag.assistant.schemas import RagOptions
from assistant_rag.assistant.service import AssistantService, build_assistant_service
from assistant_rag.config.settings import Settings
from assistant_rag.core.errors import AssistantRagError
from assistant_rag.core.logger import setup_logger
from assistant_rag.llm.types import ChatMessage, GenerationOptions
from assistant_rag.rag.store import InMemoryKnowledgeStore
from assistant_rag.routes.recommendations import RouteRecommendationExtractor

console = Console()

app = typer.Typer(
    name="assistant-rag",
    help="Assistant RAG CLI - retrieval, answers and route extraction",
    add_completion=False,
)

CORPUS_OPTION = typer.Option(None, "--corpus", "-c", help="JSON list of knowledge documents")


def _setup_logging(debug: bool, log_file: str | None = None) -> Settings:
    config = Settings()
    setup_logger(level="DEBUG" if debug else config.log_level, log_file=log_file)
    return config


def _build_service(corpus: Path | None, debug: bool) -> AssistantService:
    """Build the service and seed its store from ``corpus``."""
    config = _setup_logging(debug)
    service = build_assistant_service(config)

    if corpus is not None:
        store = service.assembler.store
        if not isinstance(store, InMemoryKnowledgeStore):
            raise typer.BadParameter("corpus loading needs the in-memory store")
        try:
            store.load_json(corpus)
        except (OSError, ValueError, KeyError, AssistantRagError) as e:
            console.print(f"[red]Error:[/red] failed to load corpus {corpus}: {e}")
            raise typer.Exit(1) from e
    return service


def _exit_with_error(e: AssistantRagError) -> NoReturn:
    logger.exception("Command failed")
    console.print(f"[bold red]✗ {type(e).__name__}:[/bold red] {e}")
    raise typer.Exit(1) from e


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    corpus: Path | None = CORPUS_OPTION,
    limit: int | None = typer.Option(None, "--limit", "-n", help="Maximum results (default: RAG_CONTEXT_LIMIT)"),
    category: str | None = typer.Option(None, "--category", help="Only search this category"),
    min_similarity: float | None = typer.Option(
        None, "--min-similarity", help="Similarity threshold (default: RAG_MIN_SIMILARITY)"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Rank knowledge documents by similarity to QUERY."""
    service = _build_service(corpus, debug)
    try:
        results = service.semantic_search(query, limit=limit, category=category, min_similarity=min_similarity)
    except AssistantRagError as e:
        _exit_with_error(e)

    if not results:
        console.print("[yellow]No documents above the similarity threshold.[/yellow]")
        return

    table = Table(title=f"Results for: {query}")
    table.add_column("#", justify="right")
    table.add_column("Similarity", justify="right")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Category")
    for rank, result in enumerate(results, start=1):
        table.add_row(
            str(rank),
            f"{result.similarity:.3f}",
            result.document.id,
            result.document.title,
            result.document.category,
        )
    console.print(table)


@app.command()
def context(
    query: str = typer.Argument(..., help="Question to build context for"),
    corpus: Path | None = CORPUS_OPTION,
    limit: int | None = typer.Option(None, "--limit", "-n", help="Maximum snippets (default: RAG_CONTEXT_LIMIT)"),
    category: str | None = typer.Option(None, "--category", help="Only search this category"),
    min_similarity: float | None = typer.Option(
        None, "--min-similarity", help="Similarity threshold (default: RAG_MIN_SIMILARITY)"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Print the assembled context and its sources."""
    service = _build_service(corpus, debug)
    try:
        relevant = service.get_relevant_context(query, limit=limit, category=category, min_similarity=min_similarity)
    except AssistantRagError as e:
        _exit_with_error(e)

    if not relevant.context:
        console.print("[yellow]No relevant context found.[/yellow]")
        return

    console.print(Panel(relevant.context, title="Context", border_style="cyan"))
    console.print("[bold]Sources:[/bold]")
    for document in relevant.sources:
        console.print(f"  - {document.title} [dim]({document.id}, {document.category})[/dim]")


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question for the assistant"),
    corpus: Path | None = CORPUS_OPTION,
    category: str | None = typer.Option(None, "--category", help="Page the user is on"),
    rag: bool = typer.Option(True, "--rag/--no-rag", help="Ground the answer in the knowledge base"),
    min_similarity: float | None = typer.Option(None, "--min-similarity", help="Similarity threshold"),
    temperature: float = typer.Option(0.7, "--temperature", help="Sampling temperature"),
    max_tokens: int = typer.Option(1024, "--max-tokens", help="Maximum output tokens"),
    as_json: bool = typer.Option(False, "--json", help="Print the full response as JSON"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Answer QUESTION through the provider fallback chain."""
    service = _build_service(corpus, debug)
    rag_options = RagOptions(enable_rag=rag, category=category, min_similarity=min_similarity)
    try:
        response = service.generate_answer(
            [ChatMessage(role="user", content=question)],
            GenerationOptions(temperature=temperature, max_tokens=max_tokens),
            rag_options,
        )
    except AssistantRagError as e:
        _exit_with_error(e)

    if as_json:
        typer.echo(response.model_dump_json(indent=2))
        return

    console.print(f"\n[bold cyan]Assistant[/bold cyan] [dim]({response.model} via {response.provider})[/dim]")
    console.print(response.content, markup=False)
    if response.route_recommendations:
        console.print("\n[bold]Suggested pages:[/bold]")
        for recommendation in response.route_recommendations:
            console.print(f"  - {recommendation.text} -> {recommendation.route}", markup=False)
    if response.sources:
        console.print(f"\n[dim]Grounded in {len(response.sources)} document(s)[/dim]")


@app.command()
def metrics(
    queries: list[str] = typer.Argument(..., help="Queries to run before reporting"),
    corpus: Path | None = CORPUS_OPTION,
    repeat: int = typer.Option(2, "--repeat", help="Times to run each query (repeats hit the cache)"),
    prometheus: bool = typer.Option(False, "--prometheus", help="Print the Prometheus exposition format"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Run QUERIES and report retrieval metrics."""
    service = _build_service(corpus, debug)
    for _ in range(repeat):
        for query in queries:
            try:
                service.semantic_search(query)
            except AssistantRagError as e:
                console.print(f"[red]Query failed:[/red] {query!r}: {e}")

    monitor = service.assembler.monitor
    monitor.log_snapshot()
    if prometheus:
        typer.echo(monitor.export_text())
        return
    typer.echo(json.dumps(monitor.snapshot(), indent=2))


@app.command()
def routes(
    text: str | None = typer.Argument(None, help="Answer text to scan"),
    file: Path | None = typer.Option(None, "--file", "-f", help="Read answer text from a file"),
) -> None:
    """Extract and render in-app route links from answer text."""
    if file is not None:
        text = file.read_text(encoding="utf-8")
    if text is None:
        raise typer.BadParameter("Provide TEXT or --file")

    processed, recommendations = RouteRecommendationExtractor().extract(text)

    console.print(Panel(Text(processed), title="Processed text", border_style="cyan"))
    if not recommendations:
        console.print("[yellow]No valid internal routes found.[/yellow]")
        return

    table = Table(title="Route recommendations")
    table.add_column("Text")
    table.add_column("Route")
    for recommendation in recommendations:
        table.add_row(Text(recommendation.text), Text(recommendation.route))
    console.print(table)


@app.command()
def health(debug: bool = typer.Option(False, "--debug", help="Enable debug logging")) -> None:
    """Check that the local fallback model is reachable."""
    service = _build_service(None, debug)
    result = service.health_check()
    healthy = result.get("status") == "healthy"
    console.print(
        Panel(
            Text("Local model is healthy" if healthy else "Local model is NOT reachable", style="bold green" if healthy else "bold red"),
            subtitle=json.dumps(result),
            border_style="green" if healthy else "red",
        )
    )
    if not healthy:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
