# news_reader/storage.py
"""
Key-value stores used for the response cache and the search history.

Both stores hold JSON-serialisable values under string keys. Writers are
last-write-wins; there is no locking and no read-modify-write transaction.
"""
from __future__ import annotations

import copy
import json
import sqlite3
import time
from typing import Any, Dict, List, Optional, Protocol


class KeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> List[str]: ...


class MemoryStore:
    """In-process store. Values are deep-copied so callers cannot mutate them in place."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = {k: copy.deepcopy(v) for k, v in (initial or {}).items()}

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class SqliteStore:
    """
    SQLite-backed persistent store (one table, JSON text values).

    Survives process restarts, so the search history and cached responses
    are kept across sessions.
    """

    def __init__(self, db_path: str = "news_reader_storage.sqlite") -> None:
        self.db_path = db_path
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key         TEXT PRIMARY KEY,
                value       TEXT NOT NULL,
                updated_at  INTEGER NOT NULL
            )
            """
        )
        self.conn.commit()

    def get(self, key: str, default: Any = None) -> Any:
        row = self.conn.execute(
            "SELECT value FROM kv_store WHERE key = ?",
            (key,),
        ).fetchone()
        if row is None:
            return default
        return json.loads(row["value"])

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        self.conn.execute(
            """
            INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value      = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, payload, int(time.time())),
        )
        self.conn.commit()

    def delete(self, key: str) -> None:
        self.conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        self.conn.commit()

    def keys(self) -> List[str]:
        return [r["key"] for r in self.conn.execute("SELECT key FROM kv_store ORDER BY key")]

    def close(self) -> None:
        self.conn.close()
