# news_reader/database.py
from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class DatabaseNotConnected(RuntimeError):
    def __init__(self) -> None:
        super().__init__("Database not connected")


class Database:
    """
    Owned SQLite connection with an explicit lifecycle.

    Create one per process (or per test), ``connect()`` it, hand it to the
    repositories / the API app, and ``close()`` it on shutdown.
    """

    def __init__(self, db_path: str = "news_reader.sqlite") -> None:
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise DatabaseNotConnected()
        return self._conn

    def connect(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn
        logger.info("connecting to %s", self.db_path)
        # check_same_thread=False: FastAPI alatt több szálról is használjuk
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        self._conn = conn
        self._init_schema()
        return conn

    def close(self) -> None:
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
        logger.info("connection to %s closed", self.db_path)

    def __enter__(self) -> "Database":
        self.connect()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Schema setup
    # ------------------------------------------------------------------
    def _init_schema(self) -> None:
        self.conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS feeds (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                source      TEXT NOT NULL DEFAULT 'tuoitre',
                rss_url     TEXT NOT NULL UNIQUE,
                name        TEXT NOT NULL,
                category    TEXT NOT NULL,
                active      INTEGER NOT NULL DEFAULT 1,
                created_at  INTEGER NOT NULL,
                updated_at  INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS posts (
                id              INTEGER PRIMARY KEY AUTOINCREMENT,
                title           TEXT NOT NULL,
                content         TEXT NOT NULL,
                author          TEXT NOT NULL,
                slug            TEXT NOT NULL UNIQUE,
                status          TEXT NOT NULL DEFAULT 'draft',
                tags            TEXT,
                category        TEXT,
                featured_image  TEXT,
                published_at    TEXT,
                view_count      INTEGER NOT NULL DEFAULT 0,
                is_active       INTEGER NOT NULL DEFAULT 1,
                created_at      INTEGER NOT NULL,
                updated_at      INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_posts_status_published
                ON posts (status, published_at DESC);

            CREATE INDEX IF NOT EXISTS idx_posts_author_status
                ON posts (author, status);

            CREATE INDEX IF NOT EXISTS idx_posts_category
                ON posts (category);

            CREATE INDEX IF NOT EXISTS idx_posts_created
                ON posts (created_at DESC);
            """
        )
        self.conn.commit()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    def status(self) -> Dict[str, Any]:
        return {
            "connected": self.is_connected,
            "name": self.db_path,
        }

    def collection_names(self) -> List[str]:
        rows = self.conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        ).fetchall()
        return [r["name"] for r in rows]

    def drop_all(self) -> None:
        """Empties every table. Mainly for tests."""
        for name in self.collection_names():
            self.conn.execute(f'DELETE FROM "{name}"')
        self.conn.commit()
