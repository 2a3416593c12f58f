"""
blog/models.py -- Domain dataclasses for posts and comments.

These are pure data containers with zero logic. Slug and excerpt derivation,
filtering, and pagination live in blog/store.py.

author_id is set once at creation and never updated -- ownership of a post
cannot be transferred. The ownership guard in auth/ownership.py compares it
against the calling user.
"""

from dataclasses import dataclass, field
from typing import Optional

STATUS_DRAFT = "draft"
STATUS_PUBLISHED = "published"
STATUSES = (STATUS_DRAFT, STATUS_PUBLISHED)


@dataclass
class Post:
    """A blog post.

    slug is derived from the title on insert and cached; later title edits do
    not change it, so published links stay stable. excerpt defaults to the
    first 150 characters of content.

    id is None before the record is written to the database.
    """

    title: str
    content: str
    author_id: int
    status: str = STATUS_DRAFT  # "draft" | "published"
    tags: list[str] = field(default_factory=list)
    slug: str = ""
    excerpt: str = ""
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class Comment:
    """A reader comment on a post.

    parent_comment_id optionally points at the comment being replied to.
    Depth is not enforced; clients render one level of reply context.
    """

    content: str
    author_id: int
    post_id: int
    parent_comment_id: Optional[int] = None
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class PostPage:
    """One page of a filtered post listing plus the total match count."""

    posts: list[Post]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0
