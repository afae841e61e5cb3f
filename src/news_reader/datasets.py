# news_reader/datasets.py
"""
Document sources for the search engine.

A source is any no-argument coroutine function returning a list of
documents. ``load_static_articles`` reads the bundled dataset;
``BackendDatasetSource`` asks the API and degrades to the bundled dataset
when the backend is unavailable.
"""
from __future__ import annotations

import json
import logging
from importlib import resources
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .errors import DatasetLoadError
from .fetcher import Fetcher

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
DatasetLoader = Callable[[], Awaitable[List[Document]]]

STATIC_DATASET = "mock_articles.json"
SEARCH_ALL_PATH = "/api/search/all"


def read_static_articles() -> List[Document]:
    raw = resources.files("news_reader").joinpath("data", STATIC_DATASET).read_text(encoding="utf-8")
    return json.loads(raw)


async def load_static_articles() -> List[Document]:
    return read_static_articles()


class BackendDatasetSource:
    """
    Loads the searchable set from the backend (GET /api/search/all).

    Backend failures are logged as DatasetLoadError and the fallback loader
    is used instead; this degradation is intended.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        url: str,
        fallback: Optional[DatasetLoader] = load_static_articles,
    ) -> None:
        self.fetcher = fetcher
        self.url = url
        self.fallback = fallback

    async def _load_remote(self) -> List[Document]:
        result = await self.fetcher.request(self.url)
        if result.error is not None:
            raise DatasetLoadError(f"backend unavailable: {result.error}")
        payload = result.data
        if isinstance(payload, dict):
            payload = payload.get("articles")
        if not isinstance(payload, list):
            raise DatasetLoadError(f"unexpected payload from {self.url}: {type(result.data).__name__}")
        return payload

    async def __call__(self) -> List[Document]:
        try:
            return await self._load_remote()
        except DatasetLoadError as exc:
            if self.fallback is None:
                raise
            logger.warning("%s; falling back to the bundled dataset", exc)
            return await self.fallback()
