"""
Client data layer of the news reader: a fetch orchestrator with caching,
retry, debounce and cancellation, and a fuzzy search engine over the
article set with a persisted query history. A small FastAPI server keeps
feeds/posts and serves the searchable articles.
"""

# news_reader/__init__.py
from .config import Settings
from .errors import (
    CacheAccessError,
    DatasetLoadError,
    MissingUrlError,
    NewsReaderError,
    SearchExecutionError,
    TransportError,
)
from .fetch_data import FetchData, FetchDataOptions, use_fetch_data
from .fetcher import CancellationToken, Fetcher
from .fuzzy import FuzzyIndex
from .history import QueryHistory
from .observable import Computed, Ref
from .search import SearchEngine, SearchOptions
from .storage import MemoryStore, SqliteStore
