"""Retrieval cache for semantic search results.

Results are memoized per (query, category) under ``rag:{category}:{hash}``
with a TTL. Backend failures on read or write are logged and degrade to a
miss or a no-op; they never reach the caller.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Protocol

import redis
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from assistant_rag.config.settings import Settings
from assistant_rag.rag.types import SearchResult

CACHE_KEY_PREFIX = "rag:"
ALL_CATEGORIES = "all"
DEFAULT_TTL_SECONDS = 3600

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
_RESULTS_ADAPTER = TypeAdapter(list[SearchResult])


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def rolling_hash(text: str) -> str:
    """Non-cryptographic rolling hash used in cache keys.

    ``h = h * 31 + unit`` over UTF-16 code units with 32-bit signed
    wrap-around, then the absolute value in base 36.

    Args:
        text: String to hash

    Returns:
        Base-36 hash string
    """
    encoded = text.encode("utf-16-le")
    value = 0
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        value = (value * 31 + unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return _to_base36(abs(value))


def cache_key(query: str, category: str | None = None) -> str:
    """Build the cache key for a query and optional category."""
    return f"{CACHE_KEY_PREFIX}{category or ALL_CATEGORIES}:{rolling_hash(query)}"


class CacheBackend(Protocol):
    """Minimal string key/value store with expiry."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    def delete(self, key: str) -> None: ...

    def delete_prefix(self, prefix: str) -> int: ...


class InMemoryCacheBackend:
    """Thread-safe in-process backend with passive expiry.

    Expired entries are dropped when read; nothing sweeps in the background.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisCacheBackend:
    """Redis-backed store; expiry handled by Redis (``SET ... EX``)."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisCacheBackend:
        return cls(redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> str | None:
        value = self._client.get(key)
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._client.set(key, value, ex=ttl_seconds)

    def delete(self, key: str) -> None:
        self._client.delete(key)

    def delete_prefix(self, prefix: str) -> int:
        deleted = 0
        for key in self._client.scan_iter(match=f"{prefix}*"):
            deleted += int(self._client.delete(key) or 0)
        return deleted


def build_cache_backend(config: Settings) -> CacheBackend:
    """Create the backend named by ``RAG_CACHE_BACKEND``."""
    if config.rag_cache_backend == "redis":
        logger.info("Retrieval cache backend: redis")
        return RedisCacheBackend.from_url(config.redis_url)
    logger.info("Retrieval cache backend: memory")
    return InMemoryCacheBackend()


class RetrievalCache:
    """Memoizes search results per (query, category) with a TTL."""

    def __init__(self, backend: CacheBackend, default_ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self.backend = backend
        self.default_ttl_seconds = default_ttl_seconds

    def get(self, query: str, category: str | None = None) -> list[SearchResult] | None:
        """Return cached results, or None on a miss.

        An empty list is a valid cached value and counts as a hit.
        """
        key = cache_key(query, category)
        try:
            raw = self.backend.get(key)
        except Exception as e:
            logger.error("Error retrieving from cache", cache_key=key, error=str(e))
            return None

        if raw is None:
            return None

        try:
            results = _RESULTS_ADAPTER.validate_json(raw)
        except ValidationError as e:
            logger.error("Discarding unreadable cache entry", cache_key=key, error=str(e))
            return None

        logger.debug(f"Cache hit for query: {query[:50]}...", cache_key=key)
        return results

    def set(
        self,
        query: str,
        results: list[SearchResult],
        category: str | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        """Cache results for a query; failures are logged and ignored."""
        key = cache_key(query, category)
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        try:
            payload = _RESULTS_ADAPTER.dump_json(results).decode("utf-8")
            self.backend.set(key, payload, ttl)
        except Exception as e:
            logger.error("Error saving to cache", cache_key=key, error=str(e))
            return

        logger.debug(f"Cached response for query: {query[:50]}...", cache_key=key, ttl_seconds=ttl)

    def invalidate(self, query: str | None = None, category: str | None = None) -> None:
        """Drop cached results.

        Args:
            query: Specific query to drop; when None, a whole category (or,
                without a category, every ``rag:`` key) is cleared
            category: Category the query was cached under
        """
        try:
            if query is not None:
                key = cache_key(query, category)
                self.backend.delete(key)
                logger.info(f"Invalidated cache for key: {key}")
                return

            prefix = f"{CACHE_KEY_PREFIX}{category}:" if category else CACHE_KEY_PREFIX
            removed = self.backend.delete_prefix(prefix)
            logger.info(f"Cleared cache for pattern: {prefix}*", removed=removed)
        except Exception as e:
            logger.error("Error invalidating cache", error=str(e))
