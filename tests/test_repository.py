import pytest

from news_reader.database import Database, DatabaseNotConnected
from news_reader.errors import PersistenceError, ValidationError
from news_reader.models import Feed, Pagination, Post, slugify
from news_reader.repository import FeedRepository, PostRepository


@pytest.fixture
def db(tmp_path):
    database = Database(str(tmp_path / "repo.sqlite"))
    database.connect()
    yield database
    database.close()


@pytest.fixture
def posts(db):
    return PostRepository(db)


def make_post(**kw) -> Post:
    data = {"title": "Hello, World!", "content": "Body text", "author": "Minh Anh"}
    data.update(kw)
    return Post(**data)


def test_database_lifecycle(tmp_path):
    database = Database(str(tmp_path / "life.sqlite"))
    assert not database.is_connected
    with pytest.raises(DatabaseNotConnected):
        database.conn
    with database:
        assert database.is_connected
        assert {"feeds", "posts"} <= set(database.collection_names())
        assert database.status()["connected"] is True
    assert not database.is_connected


def test_slugify():
    assert slugify("Hello, World!  Again") == "hello-world-again"


def test_create_post_generates_slug_and_normalises_tags(posts):
    post = posts.create(make_post(tags=[" Metro ", "metro", "CITY"]))
    assert post.id is not None
    assert post.slug == "hello-world"
    assert post.tags == ["metro", "city"]
    assert post.status == "draft"
    assert post.published_at is None


def test_published_post_is_stamped(posts):
    post = posts.create(make_post(status="published"))
    assert post.published_at
    assert post.published_dt() is not None


@pytest.mark.parametrize(
    "override",
    [
        {"title": "   "},
        {"title": "x" * 201},
        {"content": ""},
        {"author": ""},
        {"status": "pending"},
        {"view_count": -1},
        {"tags": ["x" * 31]},
        {"slug": "Bad Slug!"},
    ],
)
def test_invalid_posts_are_rejected(posts, override):
    with pytest.raises(ValidationError):
        posts.create(make_post(**override))


def test_tags_and_views(posts):
    post = posts.create(make_post(status="published", tags=["metro"]))
    post = posts.add_tag(post.id, " Traffic ")
    assert post.tags == ["metro", "traffic"]
    assert posts.add_tag(post.id, "metro").tags == ["metro", "traffic"]
    assert [p.id for p in posts.find_by_tag("traffic")] == [post.id]
    assert posts.find_by_tag("traf") == []

    post = posts.remove_tag(post.id, "metro")
    assert post.tags == ["traffic"]

    posts.increment_view_count(post.id)
    assert posts.increment_view_count(post.id).view_count == 2
    assert posts.add_tag(9999, "x") is None


def test_publish_and_find(posts):
    draft = posts.create(make_post(title="Draft one"))
    assert posts.find_published() == []
    published = posts.publish(draft.id)
    assert published.status == "published"
    assert published.published_at
    assert [p.slug for p in posts.find_published()] == ["draft-one"]
    assert posts.find_by_slug("draft-one").id == draft.id
    assert [p.id for p in posts.find_by_author("Minh Anh")] == [draft.id]


def test_excerpt():
    assert make_post(content="short").excerpt == "short"
    long_post = make_post(content="a" * 200)
    assert long_post.excerpt == "a" * 150 + "..."


def test_list_by_category_paginates(posts):
    for i in range(5):
        posts.create(make_post(title=f"Sport {i}", category="the-thao", status="published"))
    posts.create(make_post(title="Hidden draft", category="the-thao"))

    page, pagination = posts.list_by_category("the-thao", page=2, per_page=2)
    assert len(page) == 2
    assert pagination == Pagination(current_page=2, total_pages=3, total_posts=5, has_next=True, has_prev=True)

    last, pagination = posts.list_by_category("the-thao", page=3, per_page=2)
    assert len(last) == 1
    assert not pagination.has_next


def test_search_documents_shape(posts):
    posts.create(make_post(status="published", category="xe"))
    [doc] = posts.search_documents()
    assert doc["title"] == "Hello, World!"
    assert doc["author"] == {"name": "Minh Anh"}
    assert doc["description"] == "Body text"


def test_feeds(db):
    repo = FeedRepository(db)
    feed = repo.create(Feed(rss_url="https://tuoitre.vn/rss/xe.rss", name="Xe", category="xe", active=False))
    assert feed.id is not None
    assert [f.id for f in repo.list()] == [feed.id]
    assert repo.list(active_only=True) == []
    with pytest.raises(ValidationError):
        repo.create(Feed(rss_url="", name="x", category="y"))


def test_unreadable_insert_raises(db, posts, monkeypatch):
    monkeypatch.setattr(posts, "get", lambda post_id: None)
    with pytest.raises(PersistenceError):
        posts.create(make_post())

    feeds = FeedRepository(db)
    monkeypatch.setattr(feeds, "get", lambda feed_id: None)
    with pytest.raises(PersistenceError):
        feeds.create(Feed(rss_url="https://tuoitre.vn/rss/xe.rss", name="Xe", category="xe"))
