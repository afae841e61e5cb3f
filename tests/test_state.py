from news_reader.history import HISTORY_KEY, QueryHistory
from news_reader.observable import Computed, Ref, to_value, watch
from news_reader.storage import MemoryStore, SqliteStore


def test_ref_notifies_only_on_change():
    seen = []
    ref = Ref(1)
    unsubscribe = ref.subscribe(lambda new, old: seen.append((new, old)))
    ref.value = 1
    ref.value = 2
    unsubscribe()
    ref.value = 3
    assert seen == [(2, 1)]


def test_ref_replacing_container_always_notifies():
    seen = []
    ref = Ref({"a": 1})
    ref.subscribe(lambda new, old: seen.append(new))
    ref.value = {"a": 1}
    assert seen == [{"a": 1}]


def test_computed_follows_sources():
    a, b = Ref(False), Ref(False)
    either = Computed(lambda: a.value or b.value, a, b)
    changes = []
    watch(either, lambda new, old: changes.append(new))
    a.value = True
    b.value = True
    a.value = False
    b.value = False
    assert changes == [True, False]
    either.dispose()
    a.value = True
    assert either.value is False


def test_to_value_unwraps():
    assert to_value(5) == 5
    assert to_value(Ref("x")) == "x"
    assert to_value(lambda: "y") == "y"


def test_memory_store_copies_values():
    store = MemoryStore()
    payload = {"items": [1]}
    store.set("k", payload)
    payload["items"].append(2)
    assert store.get("k") == {"items": [1]}
    store.delete("k")
    assert store.get("k", "missing") == "missing"


def test_sqlite_store_persists(tmp_path):
    path = str(tmp_path / "kv.sqlite")
    store = SqliteStore(path)
    store.set("b", {"x": [1, 2]})
    store.set("a", "first")
    store.set("a", "second")
    store.close()

    reopened = SqliteStore(path)
    assert reopened.get("a") == "second"
    assert reopened.get("b") == {"x": [1, 2]}
    assert reopened.keys() == ["a", "b"]
    reopened.delete("a")
    assert reopened.get("a") is None
    reopened.close()


def test_history_capacity_and_order():
    history = QueryHistory(MemoryStore())
    for i in range(1, 12):
        assert history.add(f"q{i}")
    assert list(history) == [f"q{i}" for i in range(11, 1, -1)]
    assert len(history) == 10
    assert "q1" not in history


def test_history_skips_duplicates():
    store = MemoryStore()
    history = QueryHistory(store)
    history.add("foo")
    history.add("bar")
    assert history.add("foo") is False
    assert history.entries.value == ["bar", "foo"]
    assert store.get(HISTORY_KEY) == ["bar", "foo"]


def test_history_survives_restart(tmp_path):
    path = str(tmp_path / "kv.sqlite")
    store = SqliteStore(path)
    QueryHistory(store).add("metro")
    store.close()

    store = SqliteStore(path)
    history = QueryHistory(store)
    assert list(history) == ["metro"]
    history.clear()
    assert store.get(HISTORY_KEY) == []
    store.close()


def test_history_ignores_corrupt_payload():
    history = QueryHistory(MemoryStore({HISTORY_KEY: "not-a-list"}))
    assert list(history) == []
