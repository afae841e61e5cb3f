# news_reader/config.py
from __future__ import annotations

import os
from dataclasses import dataclass


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    base_url_api: str = ""
    db_path: str = "news_reader.sqlite"
    storage_path: str = "news_reader_storage.sqlite"
    http_timeout: float = 20.0
    user_agent: str = "NewsReader/1.0"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            base_url_api=os.environ.get("NEWS_BASE_URL_API", ""),
            db_path=os.environ.get("NEWS_DB_PATH", "news_reader.sqlite"),
            storage_path=os.environ.get("NEWS_STORAGE_PATH", "news_reader_storage.sqlite"),
            http_timeout=_env_float("NEWS_HTTP_TIMEOUT", 20.0),
            user_agent=os.environ.get("NEWS_USER_AGENT", "NewsReader/1.0"),
            log_level=os.environ.get("NEWS_LOG_LEVEL", "INFO").upper(),
        )
