from __future__ import annotations

import asyncio
import unittest

from news_reader.datasets import BackendDatasetSource, load_static_articles, read_static_articles
from news_reader.search import LOAD_FAILED_MESSAGE, SEARCH_FAILED_MESSAGE, SearchEngine, SearchOptions
from news_reader.storage import MemoryStore

from conftest import Recorder, json_response

DOCS = [
    {"title": "Hello World", "description": "greeting", "author": {"name": "Minh Anh"}},
    {"title": "Goodbye", "description": "farewell", "author": {"name": "Quoc Bao"}},
]


def loader_for(docs):
    async def _load():
        return docs

    return _load


async def loaded_engine(docs=DOCS, **opts) -> SearchEngine:
    engine = SearchEngine(options=SearchOptions(**opts), loader=loader_for(docs), history_store=MemoryStore())
    await engine.load_search_data()
    return engine


class TestSearchEngine(unittest.TestCase):

    def test_fuzzy_search_results(self):
        async def run():
            engine = await loaded_engine()
            engine.search("Helo")
            return engine

        engine = asyncio.run(run())
        self.assertEqual([d["title"] for d in engine.results.value], ["Hello World"])
        self.assertEqual(engine.total_results.value, 1)
        self.assertIsNone(engine.error.value)
        self.assertFalse(engine.is_loading.value)
        self.assertEqual(engine.query.value, "Helo")

    def test_no_match(self):
        async def run():
            engine = await loaded_engine()
            engine.search("zzz")
            return engine

        engine = asyncio.run(run())
        self.assertEqual(engine.results.value, [])
        self.assertEqual(engine.total_results.value, 0)

    def test_empty_query_resets_state(self):
        async def run():
            engine = await loaded_engine()
            engine.search("Helo")
            engine.search("   ")
            return engine

        engine = asyncio.run(run())
        self.assertEqual(engine.results.value, [])
        self.assertEqual(engine.total_results.value, 0)
        self.assertIsNone(engine.error.value)
        self.assertEqual(engine.search_history.value, ["Helo"])

    def test_history_dedup_keeps_position(self):
        async def run():
            engine = await loaded_engine()
            engine.search("foo")
            engine.search("bar")
            engine.search("foo")
            return engine

        engine = asyncio.run(run())
        self.assertEqual(engine.search_history.value, ["bar", "foo"])

    def test_clear_search_and_history(self):
        async def run():
            engine = await loaded_engine()
            engine.search("Helo")
            engine.clear_search()
            engine.clear_history()
            return engine

        engine = asyncio.run(run())
        self.assertEqual(engine.query.value, "")
        self.assertEqual(engine.results.value, [])
        self.assertEqual(engine.total_results.value, 0)
        self.assertEqual(engine.search_history.value, [])

    def test_deferred_load_reruns_pending_query(self):
        async def run():
            engine = SearchEngine(loader=loader_for(DOCS), history_store=MemoryStore())
            self.assertIsNone(engine.index)
            engine.search("Helo")
            # index not built yet: results untouched until the dataset arrives
            self.assertEqual(engine.results.value, [])
            await engine.wait_loaded()
            return engine

        engine = asyncio.run(run())
        self.assertEqual([d["title"] for d in engine.results.value], ["Hello World"])
        self.assertEqual(engine.search_history.value, ["Helo"])

    def test_initial_query_runs_after_load(self):
        async def run():
            engine = SearchEngine("Goodby", SearchOptions(immediate=True), loader=loader_for(DOCS),
                                  history_store=MemoryStore())
            await engine.wait_loaded()
            return engine

        engine = asyncio.run(run())
        self.assertEqual([d["title"] for d in engine.results.value], ["Goodbye"])

    def test_is_loading_tracks_dataset_load(self):
        gate = {}

        async def slow_loader():
            await gate["event"].wait()
            return DOCS

        async def run():
            gate["event"] = asyncio.Event()
            engine = SearchEngine(options=SearchOptions(immediate=True), loader=slow_loader,
                                  history_store=MemoryStore())
            await asyncio.sleep(0)
            during = engine.is_loading.value
            gate["event"].set()
            await engine.wait_loaded()
            return during, engine.is_loading.value

        during, after = asyncio.run(run())
        self.assertTrue(during)
        self.assertFalse(after)

    def test_index_rebuilt_when_dataset_identity_changes(self):
        batches = [DOCS, [{"title": "Metro opens"}]]

        async def loader():
            return batches.pop(0)

        async def run():
            engine = SearchEngine(loader=loader, history_store=MemoryStore())
            await engine.load_search_data()
            engine.search("metro")
            before = list(engine.results.value)
            await engine.load_search_data()
            return before, engine

        before, engine = asyncio.run(run())
        self.assertEqual(before, [])
        self.assertEqual(engine.results.value, [{"title": "Metro opens"}])

    def test_loader_failure_sets_error(self):
        async def broken():
            raise RuntimeError("backend down")

        async def run():
            engine = SearchEngine(loader=broken, history_store=MemoryStore())
            await engine.load_search_data()
            return engine

        engine = asyncio.run(run())
        self.assertEqual(engine.error.value, LOAD_FAILED_MESSAGE)
        self.assertFalse(engine.is_loading.value)

    def test_matching_failure_is_reported(self):
        async def run():
            engine = await loaded_engine()
            engine.search("Helo")

            def explode(*args, **kwargs):
                raise RuntimeError("index corrupted")

            engine.index.search = explode
            engine.search("Goodbye")
            return engine

        engine = asyncio.run(run())
        self.assertEqual(engine.error.value, SEARCH_FAILED_MESSAGE)
        self.assertEqual(engine.results.value, [])
        self.assertEqual(engine.total_results.value, 0)
        self.assertFalse(engine.is_loading.value)

    def test_update_query_does_not_search(self):
        engine = SearchEngine(loader=loader_for(DOCS), history_store=MemoryStore())
        engine.update_query("Helo")
        self.assertEqual(engine.query.value, "Helo")
        self.assertEqual(engine.search_history.value, [])


class TestDatasets(unittest.TestCase):

    def test_bundled_dataset_is_searchable(self):
        docs = read_static_articles()
        self.assertGreaterEqual(len(docs), 10)
        for doc in docs:
            self.assertIn("title", doc)
            self.assertIn("name", doc["author"])

        async def run():
            engine = SearchEngine(loader=load_static_articles, history_store=MemoryStore())
            await engine.load_search_data()
            engine.search("metro")
            return engine

        engine = asyncio.run(run())
        self.assertTrue(any("metro" in d["title"].lower() for d in engine.results.value))

    def test_backend_source_uses_api(self):
        rec = Recorder(lambda r: json_response([{"title": "From API"}]))
        source = BackendDatasetSource(rec.fetcher(), "https://api.test/api/search/all")
        docs = asyncio.run(source())
        self.assertEqual(docs, [{"title": "From API"}])
        self.assertEqual(rec.urls, ["https://api.test/api/search/all"])

    def test_backend_source_falls_back_to_bundled(self):
        import httpx

        rec = Recorder(lambda r: httpx.Response(502))
        source = BackendDatasetSource(rec.fetcher(), "https://api.test/api/search/all")
        docs = asyncio.run(source())
        self.assertEqual(docs, read_static_articles())


if __name__ == "__main__":
    unittest.main()
