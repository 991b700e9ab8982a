"""
In-process TTL caches for query results and embeddings.

Entries expire lazily on read. Adding a new key to a full map first purges
expired entries; if the map is still above 80% of capacity, the oldest 20% by
creation time are evicted.
"""

import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from ..observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 300.0
DEFAULT_MAX_SIZE = 1000
HIGH_WATER_RATIO = 0.8
EVICT_RATIO = 0.2


@dataclass
class CacheEntry(Generic[T]):
    data: T
    timestamp: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl


class TTLCache(Generic[T]):
    """One keyed map with its own lock and hit/miss counters."""

    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS, max_size: int = DEFAULT_MAX_SIZE):
        self.ttl = ttl
        self.max_size = max_size
        self._entries: dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> T | None:
        now = time.time()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.is_expired(now):
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return entry.data

    def set(self, key: str, value: T) -> None:
        now = time.time()
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._cleanup(now)
            self._entries[key] = CacheEntry(data=value, timestamp=now, ttl=self.ttl)

    def set_ttl(self, key: str, ttl: float) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            entry.ttl = ttl
            return True

    def _cleanup(self, now: float) -> None:
        # Caller holds the lock
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]

        evicted = 0
        if len(self._entries) > self.max_size * HIGH_WATER_RATIO:
            oldest = sorted(self._entries.items(), key=lambda item: item[1].timestamp)
            for key, _ in oldest[: int(self.max_size * EVICT_RATIO)]:
                del self._entries[key]
                evicted += 1

        if expired or evicted:
            logger.debug("Cache cleanup", expired=len(expired), evicted=evicted)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def snapshot(self) -> list[tuple[str, dict[str, Any]]]:
        with self._lock:
            return [
                (key, {"data": e.data, "timestamp": e.timestamp, "ttl": e.ttl})
                for key, e in self._entries.items()
            ]


class CacheManager:
    """Query-result and embedding caches."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, max_size: int = DEFAULT_MAX_SIZE):
        self.query_cache: TTLCache[dict[str, Any]] = TTLCache(ttl_seconds, max_size)
        self.embedding_cache: TTLCache[list[float]] = TTLCache(ttl_seconds, max_size)

    async def get_cached_results(self, query: str) -> dict[str, Any] | None:
        return self.query_cache.get(query)

    async def set_cached_results(self, query: str, results: dict[str, Any]) -> None:
        self.query_cache.set(query, results)

    async def get_cached_embedding(self, text: str) -> list[float] | None:
        return self.embedding_cache.get(text)

    async def set_cached_embedding(self, text: str, embedding: list[float]) -> None:
        self.embedding_cache.set(text, embedding)

    def set_custom_ttl(self, query: str, ttl_seconds: float) -> bool:
        """Override the TTL of one cached query. Returns False when absent."""
        return self.query_cache.set_ttl(query, ttl_seconds)

    def clear(self) -> None:
        self.query_cache.clear()
        self.embedding_cache.clear()
        logger.info("Cache cleared")

    def get_cache_stats(self) -> dict[str, Any]:
        return {
            "query_cache_size": len(self.query_cache),
            "embedding_cache_size": len(self.embedding_cache),
            "query_cache_hits": self.query_cache.hits,
            "query_cache_misses": self.query_cache.misses,
            "embedding_cache_hits": self.embedding_cache.hits,
            "embedding_cache_misses": self.embedding_cache.misses,
            "query_cache_hit_rate": self.query_cache.hit_rate,
            "embedding_cache_hit_rate": self.embedding_cache.hit_rate,
        }

    def export_cache(self) -> str:
        return json.dumps(
            {
                "query_cache": self.query_cache.snapshot(),
                "embedding_cache": self.embedding_cache.snapshot(),
            },
            indent=2,
            default=str,
        )
