"""Content-addressed, bounded in-memory cache for generation results.

Keys are SHA-256 fingerprints of the full semantic request (material, tier
counts, explanation flag). Entries live in an OrderedDict; the eviction policy
decides whether reads refresh an entry's position (LRU) or not (FIFO), and the
oldest position is evicted once ``max_size`` is exceeded.
"""

import hashlib
import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from .models import MCQ, DifficultyCounts

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 500


def compute_fingerprint(
    material: str, counts: DifficultyCounts, include_explanation: bool
) -> str:
    """Deterministic cache key for a text generation request."""
    flag = "true" if include_explanation else "false"
    raw = f"{material}|{counts.easy}|{counts.medium}|{counts.hard}|{flag}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class EvictionPolicy(ABC):
    """Decides how entry order reacts to reads and writes."""

    name: str = "base"

    @abstractmethod
    def on_get(self, entries: "OrderedDict[str, Any]", key: str) -> None:
        """Called after a cache hit."""

    @abstractmethod
    def on_put(self, entries: "OrderedDict[str, Any]", key: str) -> None:
        """Called after a key has been written."""


class FIFOEvictionPolicy(EvictionPolicy):
    """Evict in insertion order; reads and overwrites do not refresh."""

    name = "fifo"

    def on_get(self, entries: "OrderedDict[str, Any]", key: str) -> None:
        pass

    def on_put(self, entries: "OrderedDict[str, Any]", key: str) -> None:
        pass


class LRUEvictionPolicy(EvictionPolicy):
    """Evict the least recently used entry."""

    name = "lru"

    def on_get(self, entries: "OrderedDict[str, Any]", key: str) -> None:
        entries.move_to_end(key)

    def on_put(self, entries: "OrderedDict[str, Any]", key: str) -> None:
        entries.move_to_end(key)


EVICTION_POLICIES = {
    FIFOEvictionPolicy.name: FIFOEvictionPolicy,
    LRUEvictionPolicy.name: LRUEvictionPolicy,
}


def get_eviction_policy(name: str) -> EvictionPolicy:
    """Instantiate an eviction policy by name ("fifo" or "lru")."""
    try:
        return EVICTION_POLICIES[name.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown eviction policy {name!r}; expected one of "
            f"{sorted(EVICTION_POLICIES)}"
        ) from None


class ResultCache:
    """Bounded map from request fingerprint to generated MCQs.

    All operations are thread-safe via a lock. Data is lost on process
    restart and not shared between workers.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        policy: Optional[EvictionPolicy] = None,
    ) -> None:
        """Initialize cache.

        Args:
            max_size: Maximum number of entries. Defaults to 500.
            policy: Eviction policy. Defaults to FIFO.
        """
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        self._max_size = max_size
        self._policy = policy or FIFOEvictionPolicy()
        self._entries: "OrderedDict[str, List[MCQ]]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, fingerprint: str) -> Optional[List[MCQ]]:
        """Return a copy of the cached records, or None on a miss."""
        with self._lock:
            records = self._entries.get(fingerprint)
            if records is None:
                self._misses += 1
                return None
            self._hits += 1
            self._policy.on_get(self._entries, fingerprint)
            return list(records)

    def put(self, fingerprint: str, records: List[MCQ]) -> None:
        """Store records; empty results are never cached."""
        if not records:
            return
        with self._lock:
            self._entries[fingerprint] = list(records)
            self._policy.on_put(self._entries, fingerprint)
            while len(self._entries) > self._max_size:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Evicted cache entry {evicted[:8]}")

    def __contains__(self, fingerprint: object) -> bool:
        with self._lock:
            return fingerprint in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        """Drop all entries and reset statistics."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
        logger.info(f"Cleared {count} cached results")

    def get_stats(self) -> Dict[str, Any]:
        """Return cache statistics."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "policy": self._policy.name,
                "size": len(self._entries),
                "max_size": self._max_size,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate": self._hits / total if total > 0 else 0.0,
            }
