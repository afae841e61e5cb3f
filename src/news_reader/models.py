# news_reader/models.py
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

POST_STATUSES = ("draft", "published", "archived")
TITLE_MAX = 200
CONTENT_MAX = 10000
TAG_MAX = 30
EXCERPT_LENGTH = 150


def slugify(title: str) -> str:
    """'Hello, World!  Again' -> 'hello-world-again'"""
    slug = title.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip().strip("-")


def normalize_tag(tag: str) -> str:
    return tag.strip().lower()


@dataclass
class Feed:
    rss_url: str
    name: str
    category: str
    source: str = "tuoitre"
    active: bool = True
    id: Optional[int] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None


@dataclass
class Post:
    title: str
    content: str
    author: str
    slug: str = ""
    status: str = "draft"
    tags: List[str] = field(default_factory=list)
    category: Optional[str] = None
    featured_image: Optional[str] = None
    published_at: Optional[str] = None
    view_count: int = 0
    is_active: bool = True
    id: Optional[int] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @property
    def excerpt(self) -> str:
        if not self.content:
            return ""
        suffix = "..." if len(self.content) > EXCERPT_LENGTH else ""
        return self.content[:EXCERPT_LENGTH] + suffix

    def published_dt(self) -> Optional[datetime]:
        try:
            return datetime.fromisoformat(self.published_at) if self.published_at else None
        except ValueError:
            return None

    def to_search_document(self) -> Dict[str, Any]:
        """Shape consumed by the client-side search (title/description/content/author.name)."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.excerpt,
            "content": self.content,
            "category": self.category,
            "image": self.featured_image,
            "author": {"name": self.author},
            "pubDate": self.published_at,
            "featured": False,
        }


@dataclass
class Category:
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    link: Optional[str] = None


@dataclass
class Pagination:
    current_page: int
    total_pages: int
    total_posts: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, per_page: int, total: int) -> "Pagination":
        total_pages = max(1, math.ceil(total / per_page)) if per_page > 0 else 1
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_posts=total,
            has_next=page < total_pages,
            has_prev=page > 1,
        )
