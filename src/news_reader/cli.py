# news_reader/cli.py
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Dict, List, Optional

from .config import Settings
from .datasets import SEARCH_ALL_PATH, BackendDatasetSource, load_static_articles
from .fetch_data import FetchData, FetchDataOptions
from .fetcher import Fetcher
from .history import QueryHistory
from .search import SearchEngine, SearchOptions
from .storage import SqliteStore
from .urls import join_base_url


def _pairs(values: Optional[List[str]]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep:
            raise SystemExit(f"expected key=value, got {item!r}")
        out[key] = value
    return out


def _query_pairs(values: Optional[List[str]]) -> Dict[str, object]:
    # repeated keys -> list (tags=a --query tags=b -> tags=a&tags=b)
    out: Dict[str, object] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep:
            raise SystemExit(f"expected key=value, got {item!r}")
        if key in out:
            prev = out[key]
            out[key] = [*prev, value] if isinstance(prev, list) else [prev, value]
        else:
            out[key] = value
    return out


async def _run_search(args: argparse.Namespace, settings: Settings) -> int:
    store = SqliteStore(settings.storage_path)
    try:
        if args.backend and settings.base_url_api:
            fetcher = Fetcher(user_agent=settings.user_agent, timeout=settings.http_timeout)
            loader = BackendDatasetSource(fetcher, join_base_url(settings.base_url_api, SEARCH_ALL_PATH))
        else:
            loader = load_static_articles

        engine = SearchEngine(
            options=SearchOptions(threshold=args.threshold, limit=args.limit),
            loader=loader,
            history_store=store,
        )
        await engine.load_search_data()
        engine.search(args.text)

        if engine.error.value:
            print(f"⚠️ {engine.error.value}")
            return 1
        if not engine.results.value:
            print("⚠️ No results.")
            return 0

        for i, match in enumerate(engine.matches.value, 1):
            doc = match.item
            author = (doc.get("author") or {}).get("name") or "—"
            print(f"{i:02d}. [{doc.get('pubDate') or '—'}] {doc.get('title')}")
            print(f"    ✍️  {author}   🏷️  {doc.get('category') or '—'}   score={match.score:.3f}")
            if doc.get("description"):
                print(f"    🧾 {doc['description']}\n")
        print(f"{engine.total_results.value} result(s)")
        return 0
    finally:
        store.close()


def _run_history(args: argparse.Namespace, settings: Settings) -> int:
    store = SqliteStore(settings.storage_path)
    try:
        history = QueryHistory(store)
        if args.clear:
            history.clear()
            print("Search history cleared.")
            return 0
        if not len(history):
            print("(empty)")
        for i, q in enumerate(history, 1):
            print(f"{i:02d}. {q}")
        return 0
    finally:
        store.close()


async def _run_fetch(args: argparse.Namespace, settings: Settings) -> int:
    store = SqliteStore(settings.storage_path)
    try:
        fetch = FetchData(
            args.url,
            FetchDataOptions(
                immediate=False,
                enable_cache=args.cache,
                cache_ttl_ms=args.ttl,
                retry=args.retry,
                retry_delay_ms=args.retry_delay,
                params=_pairs(args.param),
                query=_query_pairs(args.query),
                method=args.method,
            ),
            store=store,
            settings=settings,
        )
        await fetch.execute()
        if fetch.error.value is not None:
            print(f"❌ {fetch.final_url.value}: {fetch.error.value}", file=sys.stderr)
            return 1
        print(f"✅ {fetch.final_url.value} (status={fetch.status_code.value})")
        print(json.dumps(fetch.data.value, ensure_ascii=False, indent=2))
        return 0
    finally:
        store.close()


def _run_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from .api_server import create_app

    uvicorn.run(create_app(settings=settings), host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="news-reader", description="News reader: fetch, search, serve")
    sub = ap.add_subparsers(dest="command", required=True)

    s = sub.add_parser("search", help="Fuzzy search over the article set")
    s.add_argument("text")
    s.add_argument("--threshold", type=float, default=0.4, help="0 = exact, 1 = anything")
    s.add_argument("--limit", type=int, default=None)
    s.add_argument("--backend", action="store_true", help="Load articles from NEWS_BASE_URL_API")

    h = sub.add_parser("history", help="Show or clear the search history")
    h.add_argument("--clear", action="store_true")

    f = sub.add_parser("fetch", help="Fetch a URL (base URL, :params, query, cache, retry)")
    f.add_argument("url")
    f.add_argument("--param", action="append", help="path param key=value (repeatable)")
    f.add_argument("--query", action="append", help="query param key=value (repeatable)")
    f.add_argument("--method", default="GET")
    f.add_argument("--retry", type=int, default=0)
    f.add_argument("--retry-delay", type=int, default=1000, help="ms")
    f.add_argument("--cache", action="store_true")
    f.add_argument("--ttl", type=int, default=300000, help="cache TTL in ms")

    v = sub.add_parser("serve", help="Run the API server")
    v.add_argument("--host", default="127.0.0.1")
    v.add_argument("--port", type=int, default=8000)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "search":
        return asyncio.run(_run_search(args, settings))
    if args.command == "history":
        return _run_history(args, settings)
    if args.command == "fetch":
        return asyncio.run(_run_fetch(args, settings))
    return _run_serve(args, settings)


if __name__ == "__main__":
    sys.exit(main())
