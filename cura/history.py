"""Recent-search history persisted as a single JSON value."""
from __future__ import annotations

import json
import logging
import threading
import time
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from .models import SearchFilters, SearchHistoryEntry
from .storage import KeyValueStore, StoreUnavailableError

logger = logging.getLogger(__name__)

_ENTRIES = TypeAdapter(List[SearchHistoryEntry])


class SearchHistory:
    """Most-recent-first list of searches, de-duplicated by query text.

    Entries are re-read from the store before every read and write. When the
    store cannot be reached the last entries seen are kept, so an outage never
    overwrites the durable value with a partial list.
    """

    def __init__(self, store: KeyValueStore, key: str = "cura-search-history", limit: int = 20) -> None:
        self.key = key
        self.limit = limit
        self._store = store
        self._lock = threading.Lock()
        self._entries: List[SearchHistoryEntry] = self._load() or []

    def _load(self) -> Optional[List[SearchHistoryEntry]]:
        """Stored entries, or ``None`` when the store is unavailable."""
        try:
            raw = self._store.get(self.key)
        except StoreUnavailableError:
            return None
        if not raw:
            return []
        try:
            return _ENTRIES.validate_python(json.loads(raw))[: self.limit]
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Ignoring unreadable search history key=%r: %s", self.key, exc)
            return []

    def _refresh(self) -> None:
        entries = self._load()
        if entries is None:
            logger.warning("Search history store unavailable, serving %s cached entries", len(self._entries))
            return
        self._entries = entries

    def _save(self) -> None:
        payload = _ENTRIES.dump_json(self._entries, by_alias=True).decode("utf-8")
        self._store.set(self.key, payload)

    def add(self, query: str, result_count: int, filters: SearchFilters | None = None) -> SearchHistoryEntry:
        entry = SearchHistoryEntry(
            id=str(time.time_ns()),
            query=query,
            timestamp=datetime.now(timezone.utc),
            result_count=result_count,
            filters=filters,
        )
        with self._lock:
            # The store may be shared between processes.
            self._refresh()
            remaining = [item for item in self._entries if item.query != query]
            self._entries = [entry, *remaining][: self.limit]
            self._save()
        return entry

    def recent(self, limit: int | None = None) -> List[SearchHistoryEntry]:
        with self._lock:
            self._refresh()
            entries = list(self._entries)
        return entries if limit is None else entries[:limit]

    def clear(self) -> None:
        with self._lock:
            self._entries = []
            self._store.delete(self.key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
