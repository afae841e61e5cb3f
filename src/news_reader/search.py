# news_reader/search.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from .datasets import DatasetLoader, Document, load_static_articles
from .errors import SearchExecutionError
from .fuzzy import DEFAULT_KEYS, FuzzyIndex, FuzzyResult, KeySpec
from .history import QueryHistory
from .observable import Computed, ReadonlyRef, Ref
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

SEARCH_FAILED_MESSAGE = "Search failed. Please try again."
LOAD_FAILED_MESSAGE = "Failed to load search data"


@dataclass
class SearchOptions:
    keys: Sequence[KeySpec] = DEFAULT_KEYS
    threshold: float = 0.4
    min_match_char_length: int = 2
    immediate: bool = False
    limit: Optional[int] = None


class SearchEngine:
    """
    Client-side fuzzy search over a lazily loaded article set.

    The dataset is loaded on construction (``immediate=True``, needs a running
    loop) or on first use: ``search()`` starts the load and re-runs itself
    once the index is ready. ``is_loading`` is true while a search runs *or*
    while the dataset is loading.
    """

    def __init__(
        self,
        initial_query: str = "",
        options: Optional[SearchOptions] = None,
        *,
        loader: DatasetLoader = load_static_articles,
        history_store: Optional[KeyValueStore] = None,
    ) -> None:
        self.options = options or SearchOptions()
        self.loader = loader
        self.history = QueryHistory(history_store)

        self._query = Ref(initial_query)
        self._results: Ref[List[Document]] = Ref([])
        self._matches: Ref[List[FuzzyResult[Document]]] = Ref([])
        self._total_results = Ref(0)
        self._error: Ref[Optional[str]] = Ref(None)
        self._searching = Ref(False)
        self._dataset_loading = Ref(False)
        self._search_data: Ref[Optional[List[Document]]] = Ref(None)

        self.query = ReadonlyRef(self._query)
        self.results = ReadonlyRef(self._results)
        self.matches = ReadonlyRef(self._matches)
        self.total_results = ReadonlyRef(self._total_results)
        self.error = ReadonlyRef(self._error)
        self.search_history = self.history.entries
        self.is_loading: Computed[bool] = Computed(
            lambda: self._searching.value or self._dataset_loading.value,
            self._searching,
            self._dataset_loading,
        )

        self._index: Optional[FuzzyIndex[Document]] = None
        self._load_task: Optional["asyncio.Task[List[Document]]"] = None
        self._unwatch = self._search_data.subscribe(self._on_data_changed)

        if self.options.immediate:
            self._start_load()

    # ------------------------------------------------------------------
    # Dataset + index
    # ------------------------------------------------------------------
    @property
    def index(self) -> Optional[FuzzyIndex[Document]]:
        return self._index

    def _start_load(self) -> Optional["asyncio.Task[List[Document]]"]:
        if self._load_task is not None and not self._load_task.done():
            return self._load_task
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("no running event loop; call `await load_search_data()`")
            return None
        self._load_task = asyncio.ensure_future(self._load())
        return self._load_task

    async def _load(self) -> List[Document]:
        self._dataset_loading.value = True
        try:
            data = await self.loader()
        except Exception as exc:
            logger.error("search dataset failed to load: %s", exc)
            self._dataset_loading.value = False
            self._error.value = LOAD_FAILED_MESSAGE
            return self._search_data.value or []
        self._dataset_loading.value = False
        # same object again -> no rebuild
        self._search_data.value = data
        return data

    async def load_search_data(self) -> List[Document]:
        task = self._start_load()
        if task is None:
            return await self._load()
        return await asyncio.shield(task)

    async def wait_loaded(self) -> None:
        if self._load_task is not None:
            await asyncio.gather(self._load_task, return_exceptions=True)

    def _on_data_changed(self, data: Optional[List[Document]], _old: Any) -> None:
        if data is None:
            return
        try:
            self._index = FuzzyIndex(
                data,
                self.options.keys,
                threshold=self.options.threshold,
                min_match_char_length=self.options.min_match_char_length,
            )
        except ValueError as exc:
            logger.error("could not build search index: %s", exc)
            self._index = None
            self._error.value = SEARCH_FAILED_MESSAGE
            return
        logger.debug("search index built over %d documents", len(data))

        if self._query.value:
            self.perform_search(self._query.value)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------
    def perform_search(self, search_query: str) -> None:
        if not search_query.strip():
            self._results.value = []
            self._matches.value = []
            self._total_results.value = 0
            self._error.value = None
            return

        self._searching.value = True
        self._error.value = None
        try:
            self.history.add(search_query)

            if self._index is not None:
                try:
                    found = self._index.search(search_query, limit=self.options.limit)
                except Exception as exc:
                    raise SearchExecutionError(str(exc)) from exc
                self._matches.value = found
                self._results.value = [r.item for r in found]
                self._total_results.value = len(found)
            else:
                # még nincs index: results marad, betöltés után újrafut
                self._start_load()
        except SearchExecutionError as exc:
            logger.error("search failed for %r: %s", search_query, exc)
            self._error.value = SEARCH_FAILED_MESSAGE
            self._results.value = []
            self._matches.value = []
            self._total_results.value = 0
        finally:
            self._searching.value = False

    def search(self, search_query: str) -> None:
        self._query.value = search_query
        self.perform_search(search_query)

    def update_query(self, new_query: str) -> None:
        self._query.value = new_query

    def clear_search(self) -> None:
        self._query.value = ""
        self._results.value = []
        self._matches.value = []
        self._total_results.value = 0
        self._error.value = None

    def clear_history(self) -> None:
        self.history.clear()

    def dispose(self) -> None:
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
        self._unwatch()
        self.is_loading.dispose()
