"""
blog/store.py -- SQLAlchemy-backed persistence layer for posts and comments.

Uses SQLAlchemy Core (not ORM) so the dataclasses in blog/models.py remain
the authoritative domain representation.

Pattern: Repository + Data Mapper. BlogStore is the repository; the _row_to_*
functions are the mappers. Route handlers never touch SQL directly.

Tags live in their own post_tags table (one row per post/tag pair) so the
listing filter "any of these tags" and the published tag cloud are plain
indexed queries. The Post dataclass still carries tags as list[str]; the
store assembles it.

Security: all queries use bound parameters. No f-strings in SQL. Search
terms are escaped before being used in LIKE patterns.

Usage:
    store = BlogStore(db)
    post_id = store.create_post(Post(title="Hello", content="...", author_id=1))
    page = store.list_posts(status="published", tags=["python"], page=1, limit=10)
    store.delete_post(post_id)
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from slugify import slugify as _slugify
from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, UniqueConstraint, func, or_, select

from blog.models import Comment, Post, PostPage
from core.database import Database

logger = logging.getLogger("inkwell.blog")

_EXCERPT_LENGTH = 150

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_posts = Table(
    "posts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(200), nullable=False),
    Column("content", Text, nullable=False),
    Column("author_id", Integer, nullable=False, index=True),
    Column("status", String(20), nullable=False, server_default="draft"),
    Column("slug", String(255), nullable=False, unique=True),
    Column("excerpt", Text, nullable=False, server_default=""),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_post_tags = Table(
    "post_tags",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("post_id", Integer, nullable=False),
    Column("tag", String(20), nullable=False),
    UniqueConstraint("post_id", "tag", name="uq_post_tag"),
    Index("ix_post_tags_tag", "tag"),
)

_comments = Table(
    "comments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("post_id", Integer, nullable=False, index=True),
    Column("author_id", Integer, nullable=False),
    Column("content", Text, nullable=False),
    Column("parent_comment_id", Integer),
    Column("created_at", String(32), nullable=False),
)

# Fields update_post() accepts. author_id and slug are deliberately absent.
_MUTABLE_POST_FIELDS = {"title", "content", "status", "tags", "excerpt"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def slugify(title: str) -> str:
    """Derive a URL slug from a post title.

    python-slugify lower-cases, transliterates to ASCII, and collapses every
    run of other characters into one hyphen. A title with nothing usable
    left (e.g. all punctuation) falls back to "blog-<epoch milliseconds>".
    """
    slug = _slugify(title)
    if not slug:
        slug = f"blog-{int(time.time() * 1000)}"
    return slug


def make_excerpt(content: str) -> str:
    """First 150 characters of content followed by an ellipsis."""
    return content[:_EXCERPT_LENGTH] + "..."


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class BlogStore:
    def __init__(self, db: Database) -> None:
        self.db = db
        metadata.create_all(self.db.engine)

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    def _unique_slug(self, conn, base: str) -> str:
        """Return base, or base-2, base-3, ... whichever is not yet taken."""
        pattern = f"{_escape_like(base)}-%"
        stmt = select(_posts.c.slug).where(or_(_posts.c.slug == base, _posts.c.slug.like(pattern, escape="\\")))
        taken = {row.slug for row in conn.execute(stmt)}
        if base not in taken:
            return base
        n = 2
        while f"{base}-{n}" in taken:
            n += 1
        return f"{base}-{n}"

    def create_post(self, post: Post) -> int:
        """Insert a new post and return its ID.

        The slug is derived from the title here, once, and made unique by
        suffixing -2, -3, ... on collision. A UNIQUE index backs the check;
        a concurrent insert that wins the race surfaces as IntegrityError.
        """
        now = _now_iso()
        with self.db.engine.connect() as conn:
            slug = self._unique_slug(conn, post.slug or slugify(post.title))
            result = conn.execute(
                _posts.insert().values(
                    title=post.title,
                    content=post.content,
                    author_id=post.author_id,
                    status=post.status,
                    slug=slug,
                    excerpt=post.excerpt or make_excerpt(post.content),
                    created_at=now,
                    updated_at=now,
                )
            )
            post_id = result.inserted_primary_key[0]
            _write_tags(conn, post_id, post.tags)
            conn.commit()
        logger.info("Post %d created by user %d (slug=%s)", post_id, post.author_id, slug)
        return post_id

    def get_post(self, post_id: int) -> Optional[Post]:
        """Fetch a single post by ID. Returns None if not found."""
        with self.db.engine.connect() as conn:
            row = conn.execute(_posts.select().where(_posts.c.id == post_id)).fetchone()
            if row is None:
                return None
            tags = _read_tags(conn, [row.id])
        return _row_to_post(row, tags.get(row.id, []))

    def get_post_by_slug(self, slug: str) -> Optional[Post]:
        with self.db.engine.connect() as conn:
            row = conn.execute(_posts.select().where(_posts.c.slug == slug)).fetchone()
            if row is None:
                return None
            tags = _read_tags(conn, [row.id])
        return _row_to_post(row, tags.get(row.id, []))

    def find_post(self, id_or_slug: str) -> Optional[Post]:
        """Resolve a path parameter that may be a numeric ID or a slug.

        Numeric values are tried as an ID first and then as a slug, so a post
        titled "2024" (slug "2024") is still reachable.
        """
        if id_or_slug.isdigit():
            post = self.get_post(int(id_or_slug))
            if post is not None:
                return post
        return self.get_post_by_slug(id_or_slug)

    def update_post(self, post_id: int, **fields) -> bool:
        """Update mutable fields on an existing post.

        Accepts any subset of: title, content, status, tags, excerpt. The slug
        and author are fixed at creation. Returns True if the post exists.
        """
        unknown = set(fields) - _MUTABLE_POST_FIELDS
        if unknown:
            raise ValueError(f"Unknown post fields: {unknown!r}")
        tags = fields.pop("tags", None)
        fields["updated_at"] = _now_iso()
        with self.db.engine.connect() as conn:
            result = conn.execute(_posts.update().where(_posts.c.id == post_id).values(**fields))
            if result.rowcount == 0:
                conn.rollback()
                return False
            if tags is not None:
                conn.execute(_post_tags.delete().where(_post_tags.c.post_id == post_id))
                _write_tags(conn, post_id, tags)
            conn.commit()
        return True

    def delete_post(self, post_id: int) -> bool:
        """Delete a post together with its tags and comments.

        Returns True if deleted, False if not found.
        """
        with self.db.engine.connect() as conn:
            result = conn.execute(_posts.delete().where(_posts.c.id == post_id))
            if result.rowcount == 0:
                conn.rollback()
                return False
            conn.execute(_post_tags.delete().where(_post_tags.c.post_id == post_id))
            conn.execute(_comments.delete().where(_comments.c.post_id == post_id))
            conn.commit()
        logger.info("Post %d deleted", post_id)
        return True

    def list_posts(
        self,
        author_id: Optional[int] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        tags: Optional[list[str]] = None,
        page: int = 1,
        limit: int = 10,
    ) -> PostPage:
        """Return one page of posts, newest first, matching every given filter.

        search   -- case-insensitive substring match on title, content, or excerpt
        tags     -- posts carrying at least one of the tags
        status   -- exact match; when omitted, drafts and published posts are
                    both returned
        """
        conditions = []
        if author_id is not None:
            conditions.append(_posts.c.author_id == author_id)
        if status:
            conditions.append(_posts.c.status == status)
        if search:
            pattern = f"%{_escape_like(search.lower())}%"
            conditions.append(
                or_(
                    func.lower(_posts.c.title).like(pattern, escape="\\"),
                    func.lower(_posts.c.content).like(pattern, escape="\\"),
                    func.lower(_posts.c.excerpt).like(pattern, escape="\\"),
                )
            )
        if tags:
            conditions.append(_posts.c.id.in_(select(_post_tags.c.post_id).where(_post_tags.c.tag.in_(tags))))

        page = max(1, page)
        limit = max(1, limit)
        with self.db.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(_posts).where(*conditions)).scalar() or 0
            rows = conn.execute(
                _posts.select()
                .where(*conditions)
                .order_by(_posts.c.created_at.desc(), _posts.c.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).fetchall()
            tag_map = _read_tags(conn, [r.id for r in rows])
        posts = [_row_to_post(r, tag_map.get(r.id, [])) for r in rows]
        return PostPage(posts=posts, page=page, limit=limit, total=total)

    def list_published_tags(self) -> list[str]:
        """Return the sorted set of tags used by published posts."""
        with self.db.engine.connect() as conn:
            rows = conn.execute(
                select(_post_tags.c.tag)
                .join(_posts, _posts.c.id == _post_tags.c.post_id)
                .where(_posts.c.status == "published")
                .distinct()
                .order_by(_post_tags.c.tag)
            ).fetchall()
        return [r.tag for r in rows]

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def create_comment(self, comment: Comment) -> int:
        """Insert a comment and return its ID."""
        with self.db.engine.connect() as conn:
            result = conn.execute(
                _comments.insert().values(
                    post_id=comment.post_id,
                    author_id=comment.author_id,
                    content=comment.content,
                    parent_comment_id=comment.parent_comment_id,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_comment(self, comment_id: int) -> Optional[Comment]:
        with self.db.engine.connect() as conn:
            row = conn.execute(_comments.select().where(_comments.c.id == comment_id)).fetchone()
        return _row_to_comment(row) if row is not None else None

    def list_comments(self, post_id: int) -> list[Comment]:
        """Return all comments on a post, oldest first."""
        with self.db.engine.connect() as conn:
            rows = conn.execute(
                _comments.select()
                .where(_comments.c.post_id == post_id)
                .order_by(_comments.c.created_at, _comments.c.id)
            ).fetchall()
        return [_row_to_comment(r) for r in rows]


# ---------------------------------------------------------------------------
# Tag helpers
# ---------------------------------------------------------------------------


def _write_tags(conn, post_id: int, tags: list[str]) -> None:
    unique = list(dict.fromkeys(tags))
    if unique:
        conn.execute(_post_tags.insert(), [{"post_id": post_id, "tag": t} for t in unique])


def _read_tags(conn, post_ids: list[int]) -> dict[int, list[str]]:
    """Return {post_id: [tag, ...]} in insertion order for the given posts."""
    if not post_ids:
        return {}
    rows = conn.execute(
        select(_post_tags.c.post_id, _post_tags.c.tag)
        .where(_post_tags.c.post_id.in_(post_ids))
        .order_by(_post_tags.c.post_id, _post_tags.c.id)
    ).fetchall()
    result: dict[int, list[str]] = {}
    for r in rows:
        result.setdefault(r.post_id, []).append(r.tag)
    return result


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_post(row, tags: list[str]) -> Post:
    return Post(
        id=row.id,
        title=row.title,
        content=row.content,
        author_id=row.author_id,
        status=row.status,
        tags=tags,
        slug=row.slug,
        excerpt=row.excerpt,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_comment(row) -> Comment:
    return Comment(
        id=row.id,
        post_id=row.post_id,
        author_id=row.author_id,
        content=row.content,
        parent_comment_id=row.parent_comment_id,
        created_at=row.created_at,
    )
