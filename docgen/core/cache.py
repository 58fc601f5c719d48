"""In-process cache tiers: response cache and embedding cache.

Both tiers are TTL caches with a capacity bound. Eviction is
expire-then-LRU: when a new key would overflow the cache, expired entries are
swept first and only then is the least-recently-used entry dropped.

Each instance owns its entries outright and guards them with a lock, so a
reader racing a writer on the same key sees either the old entry or the new
one, never a half-built one. Instances are constructed explicitly and
injected; there is no module-level cache.
"""

from __future__ import annotations

import hashlib
import json
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from docgen.core.clock import Clock, SystemClock
from docgen.core.logging import get_logger

logger = get_logger(__name__)

V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    key: str
    value: V
    created_at: float
    ttl: float
    last_accessed_at: float
    hit_count: int = 0

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


@dataclass(frozen=True)
class CacheStats:
    name: str
    size: int
    capacity: int
    hits: int
    misses: int
    evictions: int
    expirations: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return round(self.hits / total, 4) if total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "size": self.size,
            "capacity": self.capacity,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "evictions": self.evictions,
            "expirations": self.expirations,
        }


class TTLCache(Generic[V]):
    """Capacity-bounded TTL cache with LRU overflow eviction."""

    def __init__(
        self,
        name: str,
        capacity: int,
        ttl_seconds: float,
        clock: Clock | None = None,
        sweep_interval_seconds: float = 60.0,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.name = name
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock or SystemClock()
        self._entries: OrderedDict[str, CacheEntry[V]] = OrderedDict()
        self._lock = threading.Lock()
        self._last_sweep = self._clock.time()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    def get(self, key: str) -> V | None:
        now = self._clock.time()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(now):
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                return None
            entry.hit_count += 1
            entry.last_accessed_at = now
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def set(self, key: str, value: V, ttl_seconds: float | None = None) -> None:
        now = self._clock.time()
        entry = CacheEntry(
            key=key,
            value=value,
            created_at=now,
            ttl=self.ttl_seconds if ttl_seconds is None else ttl_seconds,
            last_accessed_at=now,
        )
        with self._lock:
            if now - self._last_sweep >= self.sweep_interval_seconds:
                self._sweep_locked(now)
            if key not in self._entries and len(self._entries) >= self.capacity:
                self._sweep_locked(now)
                while len(self._entries) >= self.capacity:
                    evicted_key, _ = self._entries.popitem(last=False)
                    self._evictions += 1
                    logger.debug(f"{self.name} cache evicted {evicted_key}")
            self._entries[key] = entry
            self._entries.move_to_end(key)

    def cleanup(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock.time()
        with self._lock:
            return self._sweep_locked(now)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                name=self.name,
                size=len(self._entries),
                capacity=self.capacity,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _sweep_locked(self, now: float) -> int:
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for k in expired:
            del self._entries[k]
        self._expirations += len(expired)
        self._last_sweep = now
        if expired:
            logger.debug(f"{self.name} cache swept {len(expired)} expired entries")
        return len(expired)


# =============================================================================
# Keys
# =============================================================================


def canonical_json(value: Any) -> str:
    """Deterministic JSON: sorted keys, no whitespace, None fields dropped from models."""
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", exclude_none=True)
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def make_cache_key(task_kind: str, task_input: Any) -> str:
    """Response-cache key: a pure function of task kind and canonical input."""
    digest = hashlib.sha256(f"{task_kind}\n{canonical_json(task_input)}".encode("utf-8"))
    return f"{task_kind}:{digest.hexdigest()}"


def text_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


# =============================================================================
# Tiers
# =============================================================================


class ResponseCache(TTLCache[Any]):
    """Short-lived cache of AgentResponse values keyed by make_cache_key."""

    def __init__(
        self,
        capacity: int = 100,
        ttl_seconds: float = 300.0,
        clock: Clock | None = None,
        sweep_interval_seconds: float = 60.0,
    ):
        super().__init__("response", capacity, ttl_seconds, clock, sweep_interval_seconds)


class EmbeddingCache(TTLCache[list[float]]):
    """Embeddings keyed by a content hash of the embedded text."""

    def __init__(
        self,
        capacity: int = 1000,
        ttl_seconds: float = 24 * 60 * 60,
        clock: Clock | None = None,
        sweep_interval_seconds: float = 60.0,
    ):
        super().__init__("embedding", capacity, ttl_seconds, clock, sweep_interval_seconds)

    def get_for_text(self, text: str) -> list[float] | None:
        return self.get(text_hash(text))

    def set_for_text(self, text: str, embedding: list[float]) -> None:
        self.set(text_hash(text), list(embedding))
