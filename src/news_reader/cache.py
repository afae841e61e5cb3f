# news_reader/cache.py
from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Mapping, Optional

from .errors import CacheAccessError
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

Clock = Callable[[], int]

DEFAULT_CACHE_TTL_MS = 5 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


def _stable_json(value: Mapping[str, Any]) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def generate_cache_key(
    url: str,
    params: Optional[Mapping[str, Any]] = None,
    query: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    fetch-cache-<url>[-params-{...}][-query-{...}]

    Different url/params/query -> different key. The previous entry is left alone.
    """
    key = f"fetch-cache-{url}"
    if params:
        key += f"-params-{_stable_json(params)}"
    if query:
        key += f"-query-{_stable_json(query)}"
    return key


@dataclass
class CacheEntry:
    data: Any = None
    timestamp: int = 0  # fetched-at, epoch ms
    expires: int = 0    # expires-at, epoch ms

    def is_valid(self, now: int) -> bool:
        return bool(self.timestamp) and now < self.expires

    @classmethod
    def from_raw(cls, raw: Any) -> "CacheEntry":
        if not isinstance(raw, Mapping):
            return cls()
        return cls(
            data=raw.get("data"),
            timestamp=int(raw.get("timestamp") or 0),
            expires=int(raw.get("expires") or 0),
        )


class ResponseCache:
    """
    TTL cache over a KeyValueStore.

    Store failures never propagate: reads degrade to a miss and writes are
    dropped, both logged as CacheAccessError.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_ms: int = DEFAULT_CACHE_TTL_MS,
        clock: Clock = now_ms,
    ) -> None:
        self.store = store
        self.ttl_ms = ttl_ms
        self.clock = clock

    def read_entry(self, key: str) -> CacheEntry:
        try:
            raw = self.store.get(key)
        except Exception as exc:
            logger.warning("cache read failed for %s: %s", key, CacheAccessError(str(exc)))
            return CacheEntry()
        return CacheEntry.from_raw(raw)

    def get(self, key: str) -> Optional[Any]:
        entry = self.read_entry(key)
        if entry.is_valid(self.clock()) and entry.data is not None:
            return entry.data
        return None

    def save(self, key: str, data: Any) -> None:
        now = self.clock()
        entry = CacheEntry(data=data, timestamp=now, expires=now + self.ttl_ms)
        try:
            self.store.set(key, asdict(entry))
        except Exception as exc:
            logger.warning("cache write failed for %s: %s", key, CacheAccessError(str(exc)))

    def clear(self, key: str) -> None:
        try:
            self.store.set(key, asdict(CacheEntry()))
        except Exception as exc:
            logger.warning("cache clear failed for %s: %s", key, CacheAccessError(str(exc)))
