import pytest
from fastapi.testclient import TestClient

from news_reader.api_server import create_app
from news_reader.config import Settings
from news_reader.database import Database
from news_reader.datasets import read_static_articles


@pytest.fixture
def client(tmp_path):
    app = create_app(Database(str(tmp_path / "api.sqlite")), Settings())
    with TestClient(app) as c:
        yield c


def test_health_and_db_status(client):
    assert client.get("/api/health").json() == {"status": "ok"}
    status = client.get("/api/db/status").json()
    assert status["connected"] is True
    assert "posts" in status["collections"]


def test_create_feed(client):
    payload = {"rss_url": "https://tuoitre.vn/rss/the-thao.rss", "name": "Thể thao", "category": "the-thao"}
    res = client.post("/api/feed/create", json=payload)
    assert res.status_code == 200
    feed = res.json()["newFeed"]
    assert feed["source"] == "tuoitre"
    assert feed["active"] is True

    dup = client.post("/api/feed/create", json=payload)
    assert dup.status_code == 500
    assert dup.json() == {"error": "Failed to create feed"}

    assert [f["rss_url"] for f in client.get("/api/feeds").json()] == [payload["rss_url"]]


def test_create_feed_validation(client):
    res = client.post("/api/feed/create", json={"rss_url": " ", "name": "x", "category": "y"})
    assert res.status_code == 400
    assert "rss_url" in res.json()["error"]


def test_create_post(client):
    res = client.post("/api/posts", json={"title": "Hello, World!", "content": "Body", "author": "An"})
    assert res.status_code == 200
    body = res.json()
    assert body["slug"] == "hello-world"
    assert body["excerpt"] == "Body"

    bad = client.post("/api/posts", json={"title": "", "content": "Body", "author": "An"})
    assert bad.status_code == 400
    assert bad.json() == {"error": "Title is required"}


def test_posts_by_category(client):
    for i in range(3):
        client.post(
            "/api/posts",
            json={"title": f"Match {i}", "content": "Goal", "author": "An", "status": "published",
                  "category": "the-thao"},
        )
    res = client.get("/api/posts/the-thao", params={"page": 1, "per_page": 2})
    assert res.status_code == 200
    body = res.json()
    assert body["category"]["name"] == "Thể thao"
    assert body["pagination"]["total_posts"] == 3
    assert body["pagination"]["has_next"] is True
    assert len(body["posts"]) == 2


def test_search_all_falls_back_to_bundled_articles(client):
    assert client.get("/api/search/all").json() == read_static_articles()


def test_search_all_serves_published_posts(client):
    client.post("/api/posts", json={"title": "Metro", "content": "Opens", "author": "An", "status": "published"})
    docs = client.get("/api/search/all").json()
    assert [d["title"] for d in docs] == ["Metro"]
