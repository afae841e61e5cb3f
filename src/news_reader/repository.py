# news_reader/repository.py
from __future__ import annotations

import sqlite3
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .database import Database
from .errors import PersistenceError, ValidationError
from .models import (
    CONTENT_MAX,
    POST_STATUSES,
    TAG_MAX,
    TITLE_MAX,
    Feed,
    Pagination,
    Post,
    normalize_tag,
    slugify,
)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class FeedRepository:
    """RSS feed registrations (feeds table)."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def _row_to_feed(self, row: sqlite3.Row) -> Feed:
        return Feed(
            id=row["id"],
            source=row["source"],
            rss_url=row["rss_url"],
            name=row["name"],
            category=row["category"],
            active=bool(row["active"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def create(self, feed: Feed) -> Feed:
        for field_name in ("rss_url", "name", "category"):
            if not (getattr(feed, field_name) or "").strip():
                raise ValidationError(f"{field_name} is required")
        now = int(time.time())
        cur = self.db.conn.execute(
            """
            INSERT INTO feeds (source, rss_url, name, category, active, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (feed.source or "tuoitre", feed.rss_url.strip(), feed.name.strip(), feed.category.strip(),
             int(feed.active), now, now),
        )
        self.db.conn.commit()
        created = self.get(int(cur.lastrowid))
        if created is None:
            raise PersistenceError(f"feed {cur.lastrowid} not found after insert")
        return created

    def get(self, feed_id: int) -> Optional[Feed]:
        row = self.db.conn.execute("SELECT * FROM feeds WHERE id = ?", (feed_id,)).fetchone()
        return self._row_to_feed(row) if row else None

    def list(self, *, active_only: bool = False) -> List[Feed]:
        sql = "SELECT * FROM feeds"
        if active_only:
            sql += " WHERE active = 1"
        sql += " ORDER BY created_at DESC, id DESC"
        return [self._row_to_feed(r) for r in self.db.conn.execute(sql)]


class PostRepository:
    """
    Posts with the usual publishing rules:

      - slug generated from the title when missing (lowercase, [a-z0-9-])
      - tags trimmed, lowercased, deduplicated, max 30 chars each
      - published_at stamped when a post becomes 'published'
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _row_to_post(self, row: sqlite3.Row) -> Post:
        tags_raw = row["tags"] or ""
        return Post(
            id=row["id"],
            title=row["title"],
            content=row["content"],
            author=row["author"],
            slug=row["slug"],
            status=row["status"],
            tags=[t for t in tags_raw.split(",") if t],
            category=row["category"],
            featured_image=row["featured_image"],
            published_at=row["published_at"],
            view_count=row["view_count"],
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _validate(self, post: Post) -> Post:
        title = (post.title or "").strip()
        if not title:
            raise ValidationError("Title is required")
        if len(title) > TITLE_MAX:
            raise ValidationError(f"Title cannot exceed {TITLE_MAX} characters")
        if not post.content:
            raise ValidationError("Content is required")
        if len(post.content) > CONTENT_MAX:
            raise ValidationError(f"Content cannot exceed {CONTENT_MAX:,} characters")
        if not (post.author or "").strip():
            raise ValidationError("Author is required")
        if post.status not in POST_STATUSES:
            raise ValidationError("Status must be draft, published, or archived")
        if post.view_count < 0:
            raise ValidationError("View count cannot be negative")

        slug = (post.slug or "").strip().lower() or slugify(title)
        if not slug or not all(c.isascii() and (c.isalnum() or c == "-") for c in slug):
            raise ValidationError("Slug can only contain lowercase letters, numbers, and hyphens")

        tags: List[str] = []
        for tag in post.tags:
            norm = normalize_tag(tag)
            if len(norm) > TAG_MAX:
                raise ValidationError(f"Tag cannot exceed {TAG_MAX} characters")
            if norm and norm not in tags:
                tags.append(norm)

        published_at = post.published_at
        if post.status == "published" and not published_at:
            published_at = _utc_now_iso()

        post.title, post.slug, post.tags, post.published_at = title, slug, tags, published_at
        return post

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------
    def create(self, post: Post) -> Post:
        post = self._validate(post)
        now = int(time.time())
        cur = self.db.conn.execute(
            """
            INSERT INTO posts (
                title, content, author, slug, status, tags, category,
                featured_image, published_at, view_count, is_active,
                created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                post.title, post.content, post.author.strip(), post.slug, post.status,
                ",".join(post.tags) or None, post.category, post.featured_image,
                post.published_at, post.view_count, int(post.is_active), now, now,
            ),
        )
        self.db.conn.commit()
        created = self.get(int(cur.lastrowid))
        if created is None:
            raise PersistenceError(f"post {cur.lastrowid} not found after insert")
        return created

    def _update(self, post_id: int, **fields: Any) -> Optional[Post]:
        fields["updated_at"] = int(time.time())
        assignments = ", ".join(f"{k} = ?" for k in fields)
        self.db.conn.execute(
            f"UPDATE posts SET {assignments} WHERE id = ?",
            (*fields.values(), post_id),
        )
        self.db.conn.commit()
        return self.get(post_id)

    def publish(self, post_id: int) -> Optional[Post]:
        return self._update(post_id, status="published", published_at=_utc_now_iso())

    def increment_view_count(self, post_id: int) -> Optional[Post]:
        self.db.conn.execute(
            "UPDATE posts SET view_count = view_count + 1, updated_at = ? WHERE id = ?",
            (int(time.time()), post_id),
        )
        self.db.conn.commit()
        return self.get(post_id)

    def add_tag(self, post_id: int, tag: str) -> Optional[Post]:
        post = self.get(post_id)
        if post is None:
            return None
        norm = normalize_tag(tag)
        if len(norm) > TAG_MAX:
            raise ValidationError(f"Tag cannot exceed {TAG_MAX} characters")
        if not norm or norm in post.tags:
            return post
        return self._update(post_id, tags=",".join([*post.tags, norm]))

    def remove_tag(self, post_id: int, tag: str) -> Optional[Post]:
        post = self.get(post_id)
        if post is None:
            return None
        norm = normalize_tag(tag)
        remaining = [t for t in post.tags if t != norm]
        return self._update(post_id, tags=",".join(remaining) or None)

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------
    def get(self, post_id: int) -> Optional[Post]:
        row = self.db.conn.execute("SELECT * FROM posts WHERE id = ?", (post_id,)).fetchone()
        return self._row_to_post(row) if row else None

    def find_by_slug(self, slug: str) -> Optional[Post]:
        row = self.db.conn.execute(
            "SELECT * FROM posts WHERE slug = ? AND is_active = 1",
            (slug,),
        ).fetchone()
        return self._row_to_post(row) if row else None

    def find_published(self, limit: Optional[int] = None) -> List[Post]:
        sql = "SELECT * FROM posts WHERE status = 'published' AND is_active = 1 ORDER BY published_at DESC"
        params: List[Any] = []
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [self._row_to_post(r) for r in self.db.conn.execute(sql, params)]

    def find_by_author(self, author: str) -> List[Post]:
        rows = self.db.conn.execute(
            "SELECT * FROM posts WHERE author = ? AND is_active = 1 ORDER BY created_at DESC, id DESC",
            (author,),
        )
        return [self._row_to_post(r) for r in rows]

    def find_by_tag(self, tag: str) -> List[Post]:
        # tags are stored comma-joined; match whole entries only
        rows = self.db.conn.execute(
            """
            SELECT * FROM posts
            WHERE status = 'published' AND is_active = 1
              AND (',' || COALESCE(tags, '') || ',') LIKE ?
            ORDER BY published_at DESC
            """,
            (f"%,{normalize_tag(tag)},%",),
        )
        return [self._row_to_post(r) for r in rows]

    def list_by_category(self, category: str, *, page: int = 1, per_page: int = 10) -> Tuple[List[Post], Pagination]:
        page = max(page, 1)
        per_page = max(per_page, 1)
        total = self.db.conn.execute(
            "SELECT COUNT(*) AS c FROM posts WHERE category = ? AND status = 'published' AND is_active = 1",
            (category,),
        ).fetchone()["c"]
        rows = self.db.conn.execute(
            """
            SELECT * FROM posts
            WHERE category = ? AND status = 'published' AND is_active = 1
            ORDER BY published_at DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            (category, per_page, (page - 1) * per_page),
        )
        posts = [self._row_to_post(r) for r in rows]
        return posts, Pagination.build(page, per_page, int(total))

    def search_documents(self) -> List[Dict[str, Any]]:
        """Published posts in the shape the client-side search indexes."""
        return [p.to_search_document() for p in self.find_published()]
