"""Retrieval observability counters.

Purely observational: nothing in the pipeline reads these values to make
a decision. Metrics live in a private Prometheus registry so several
monitors (one per test, one per process) never collide on metric names.
"""

from typing import Any

from loguru import logger
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

SEARCH_DURATION_BUCKETS = (0.1, 0.5, 1.0, 2.0, 5.0, 10.0)

ERROR_EMBEDDING = "embedding"
ERROR_DIMENSION_MISMATCH = "dimension_mismatch"
ERROR_SEARCH = "search"


class RetrievalMonitor:
    """Counters and a duration histogram for semantic search."""

    def __init__(self) -> None:
        self._build_registry()

    def _build_registry(self) -> None:
        self.registry = CollectorRegistry()
        self._searches = Counter(
            "rag_search",
            "Total number of RAG searches performed",
            registry=self.registry,
        )
        self._search_duration = Histogram(
            "rag_search_duration_seconds",
            "Duration of RAG searches in seconds",
            buckets=SEARCH_DURATION_BUCKETS,
            registry=self.registry,
        )
        self._cache_hits = Counter(
            "rag_cache_hits",
            "Total number of RAG cache hits",
            registry=self.registry,
        )
        self._cache_misses = Counter(
            "rag_cache_misses",
            "Total number of RAG cache misses",
            registry=self.registry,
        )
        self._embeddings = Counter(
            "rag_embedding_generation",
            "Total number of embedding generations",
            registry=self.registry,
        )
        self._errors = Counter(
            "rag_errors",
            "Total number of RAG errors",
            labelnames=["error_type"],
            registry=self.registry,
        )

    def increment_search(self) -> None:
        self._searches.inc()

    def observe_search_duration(self, seconds: float) -> None:
        self._search_duration.observe(seconds)

    def increment_cache_hit(self) -> None:
        self._cache_hits.inc()

    def increment_cache_miss(self) -> None:
        self._cache_misses.inc()

    def increment_embedding_generation(self) -> None:
        self._embeddings.inc()

    def increment_error(self, error_type: str) -> None:
        self._errors.labels(error_type=error_type).inc()

    def snapshot(self) -> dict[str, Any]:
        """Return current metric values as a plain dictionary.

        Returns:
            Dictionary with counter totals, per-kind error counts, and the
            cumulative histogram buckets keyed by upper bound.
        """
        values: dict[str, Any] = {
            "searches": 0.0,
            "cache_hits": 0.0,
            "cache_misses": 0.0,
            "embedding_generations": 0.0,
            "errors": {},
            "search_duration": {"count": 0.0, "sum": 0.0, "buckets": {}},
        }
        totals = {
            "rag_search_total": "searches",
            "rag_cache_hits_total": "cache_hits",
            "rag_cache_misses_total": "cache_misses",
            "rag_embedding_generation_total": "embedding_generations",
        }
        duration = values["search_duration"]

        for metric in self.registry.collect():
            for sample in metric.samples:
                if sample.name in totals:
                    values[totals[sample.name]] = sample.value
                elif sample.name == "rag_errors_total":
                    values["errors"][sample.labels["error_type"]] = sample.value
                elif sample.name == "rag_search_duration_seconds_count":
                    duration["count"] = sample.value
                elif sample.name == "rag_search_duration_seconds_sum":
                    duration["sum"] = sample.value
                elif sample.name == "rag_search_duration_seconds_bucket":
                    duration["buckets"][sample.labels["le"]] = sample.value

        return values

    def export_text(self) -> str:
        """Return metrics in the Prometheus text exposition format."""
        return generate_latest(self.registry).decode("utf-8")

    def reset(self) -> None:
        """Zero every metric by rebuilding the registry."""
        self._build_registry()
        logger.info("rag_metrics_reset")

    def log_snapshot(self) -> None:
        """Log current counter values without exporting them anywhere."""
        snapshot = self.snapshot()
        logger.info(
            "rag_metrics_snapshot",
            searches=snapshot["searches"],
            cache_hits=snapshot["cache_hits"],
            cache_misses=snapshot["cache_misses"],
            embedding_generations=snapshot["embedding_generations"],
            errors=snapshot["errors"],
        )
