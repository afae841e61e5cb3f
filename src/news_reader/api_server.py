# news_reader/api_server.py
from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import Settings
from .database import Database
from .datasets import read_static_articles
from .errors import ValidationError
from .models import Feed, Post
from .repository import FeedRepository, PostRepository

# slug -> display name of the news categories
CATEGORY_NAMES: Dict[str, str] = {
    "the-gioi": "Thế giới",
    "kinh-doanh": "Kinh doanh",
    "xe": "Xe",
    "van-hoa": "Văn hóa",
    "the-thao": "Thể thao",
    "khoa-hoc": "Khoa học",
    "thoi-su": "Thời sự",
    "phap-luat": "Pháp luật",
    "cong-nghe": "Công nghệ",
    "giao-duc": "Giáo dục",
    "suc-khoe": "Sức khỏe",
    "du-lich": "Du lịch",
}


# -------------------------------------------------
# Pydantic modellek (JSON kérésekhez/válaszokhoz)
# -------------------------------------------------
class FeedCreate(BaseModel):
    rss_url: str
    name: str
    category: str
    source: str = "tuoitre"
    active: bool = True


class FeedOut(FeedCreate):
    id: int
    created_at: int
    updated_at: int


class PostCreate(BaseModel):
    title: str
    content: str
    author: str
    slug: Optional[str] = None
    status: str = "draft"
    tags: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    featured_image: Optional[str] = None


class PostOut(BaseModel):
    id: int
    title: str
    content: str
    excerpt: str
    author: str
    slug: str
    status: str
    tags: List[str]
    category: Optional[str] = None
    featured_image: Optional[str] = None
    published_at: Optional[str] = None
    view_count: int

    @classmethod
    def from_post(cls, post: Post) -> "PostOut":
        data = asdict(post)
        data["excerpt"] = post.excerpt
        return cls(**{k: v for k, v in data.items() if k in cls.model_fields})


class CategoryOut(BaseModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    link: Optional[str] = None


class PaginationOut(BaseModel):
    current_page: int
    total_pages: int
    total_posts: int
    has_next: bool
    has_prev: bool


class PostsByCategoryResponse(BaseModel):
    category: CategoryOut
    pagination: PaginationOut
    posts: List[PostOut]


def _db(request: Request) -> Database:
    return request.app.state.db


def create_app(db: Optional[Database] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    App factory. The Database is owned by the caller (or created from
    settings) and connected/closed by the app lifespan.
    """
    settings = settings or Settings.from_env()
    database = db or Database(settings.db_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        print(f"[NEWS] Connecting database: {database.db_path}")
        database.connect()
        try:
            yield
        finally:
            database.close()
            print("[NEWS] Database connection closed")

    app = FastAPI(
        title="News Reader API",
        description="Feeds, posts and the searchable article set for the news reader.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.db = database

    # CORS – a külön futó frontend miatt
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------
    # Healthcheck / DB status
    # -------------------------------------------------
    @app.get("/api/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.get("/api/db/status")
    async def db_status(request: Request) -> dict:
        database = _db(request)
        status: Dict[str, Any] = database.status()
        if database.is_connected:
            status["collections"] = database.collection_names()
        return status

    # -------------------------------------------------
    # Feeds
    # -------------------------------------------------
    @app.post("/api/feed/create")
    async def create_feed(payload: FeedCreate, request: Request):
        try:
            feed = FeedRepository(_db(request)).create(Feed(**payload.model_dump()))
        except ValidationError as e:
            return JSONResponse(status_code=400, content={"error": str(e)})
        except Exception as e:
            print(f"[NEWS] Error in create feed API: {e}")
            return JSONResponse(status_code=500, content={"error": "Failed to create feed"})
        return {"newFeed": FeedOut(**asdict(feed)).model_dump()}

    @app.get("/api/feeds", response_model=List[FeedOut])
    async def list_feeds(request: Request, active: bool = Query(False)) -> List[FeedOut]:
        feeds = FeedRepository(_db(request)).list(active_only=active)
        return [FeedOut(**asdict(f)) for f in feeds]

    # -------------------------------------------------
    # Posts
    # -------------------------------------------------
    @app.post("/api/posts")
    async def create_post(payload: PostCreate, request: Request):
        data = payload.model_dump()
        data["slug"] = data.get("slug") or ""
        try:
            post = PostRepository(_db(request)).create(Post(**data))
        except ValidationError as e:
            return JSONResponse(status_code=400, content={"error": str(e)})
        except Exception as e:
            print(f"[NEWS] Error in create post API: {e}")
            return JSONResponse(status_code=500, content={"error": "Failed to create post"})
        return PostOut.from_post(post).model_dump()

    @app.get("/api/posts/{category}", response_model=PostsByCategoryResponse)
    async def posts_by_category(
        category: str,
        request: Request,
        page: int = Query(1, ge=1),
        per_page: int = Query(10, ge=1, le=100),
    ) -> PostsByCategoryResponse:
        posts, pagination = PostRepository(_db(request)).list_by_category(
            category, page=page, per_page=per_page
        )
        print(f"[NEWS] /api/posts/{category} page={page} -> {len(posts)} posts")
        return PostsByCategoryResponse(
            category=CategoryOut(
                id=category,
                name=CATEGORY_NAMES.get(category, category),
                slug=category,
                link=f"/{category}",
            ),
            pagination=PaginationOut(**asdict(pagination)),
            posts=[PostOut.from_post(p) for p in posts],
        )

    # -------------------------------------------------
    # Keresés: a teljes kereshető cikkhalmaz
    # -------------------------------------------------
    @app.get("/api/search/all")
    async def search_all(request: Request) -> List[Dict[str, Any]]:
        docs = PostRepository(_db(request)).search_documents()
        if not docs:
            docs = read_static_articles()
        return docs

    return app
