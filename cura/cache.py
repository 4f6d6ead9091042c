"""Bounded in-process cache for search results.

Entries expire ``ttl_seconds`` after they were written. When the cache is full
the earliest-inserted key is evicted; reads do not refresh an entry's position,
so eviction is strict FIFO rather than LRU.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .models import CacheStats, SearchResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    results: List[SearchResult]
    timestamp: float


class SearchCache:
    def __init__(
        self,
        max_size: int = 100,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._store: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._store

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get(self, key: str) -> Optional[List[SearchResult]]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._clock() - entry.timestamp >= self.ttl_seconds:
                self._store.pop(key, None)
                self._misses += 1
                return None
            self._hits += 1
            return entry.results

    def set(self, key: str, results: List[SearchResult]) -> None:
        with self._lock:
            if key in self._store:
                del self._store[key]
            elif len(self._store) >= self.max_size:
                oldest_key = next(iter(self._store))
                del self._store[oldest_key]
                logger.debug("cache_evict key=%r", oldest_key)
            self._store[key] = CacheEntry(results=results, timestamp=self._clock())

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._store.items() if now - entry.timestamp >= self.ttl_seconds]
            for key in expired:
                del self._store[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> CacheStats:
        with self._lock:
            lookups = self._hits + self._misses
            return CacheStats(
                size=len(self._store),
                max_size=self.max_size,
                hits=self._hits,
                misses=self._misses,
                hit_rate=self._hits / lookups if lookups else 0.0,
            )
