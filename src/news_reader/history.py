# news_reader/history.py
from __future__ import annotations

import logging
from typing import List, Optional

from .observable import ReadonlyRef, Ref
from .storage import KeyValueStore, MemoryStore

logger = logging.getLogger(__name__)

HISTORY_KEY = "search-history"
HISTORY_CAPACITY = 10


class QueryHistory:
    """
    Most-recent-first list of distinct search queries, persisted in a
    KeyValueStore under a fixed key.

    A query that is already present is NOT moved to the front; the call is a no-op.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        key: str = HISTORY_KEY,
        capacity: int = HISTORY_CAPACITY,
    ) -> None:
        self.store = store if store is not None else MemoryStore()
        self.key = key
        self.capacity = capacity
        self._entries: Ref[List[str]] = Ref(self._load())
        self.entries = ReadonlyRef(self._entries)

    def _load(self) -> List[str]:
        try:
            raw = self.store.get(self.key, [])
        except Exception as exc:
            logger.warning("could not read search history: %s", exc)
            return []
        if not isinstance(raw, list):
            return []
        return [q for q in raw if isinstance(q, str)][: self.capacity]

    def _persist(self, entries: List[str]) -> None:
        self._entries.value = entries
        try:
            self.store.set(self.key, entries)
        except Exception as exc:
            logger.warning("could not persist search history: %s", exc)

    def add(self, query: str) -> bool:
        """Returns True if the query was inserted."""
        current = self._entries.value
        if query in current:
            return False
        self._persist([query, *current[: self.capacity - 1]])
        return True

    def clear(self) -> None:
        self._persist([])

    def __iter__(self):
        return iter(self._entries.value)

    def __len__(self) -> int:
        return len(self._entries.value)

    def __contains__(self, query: object) -> bool:
        return query in self._entries.value
