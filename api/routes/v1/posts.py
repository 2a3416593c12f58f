"""
api/routes/v1/posts.py -- Blog post and comment REST endpoints.

Route registration order matters: GET /posts/tags must be registered before
GET /posts/{id_or_slug} or FastAPI captures "tags" as a slug.

Routes:
  GET    /api/v1/posts                          -- filtered, paginated listing
  POST   /api/v1/posts                          -- create a post owned by the caller
  GET    /api/v1/posts/tags                     -- tag cloud of published posts
  GET    /api/v1/posts/{id_or_slug}             -- single post by id, falling back to slug
  PUT    /api/v1/posts/{post_id}                -- partial update (author or admin)
  DELETE /api/v1/posts/{post_id}                -- delete (author or admin)
  GET    /api/v1/posts/{id_or_slug}/comments    -- comments, oldest first
  POST   /api/v1/posts/{id_or_slug}/comments    -- add a comment (requires auth)

Auth policy:
  Reads are public. The listing filter author=me needs a valid token and
  answers 401 without one. Mutations need a valid token (401) and, for
  existing posts, must pass the ownership guard (403).

Visibility: the listing returns drafts alongside published posts unless the
caller filters by status. Public pages pass status=published themselves.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from api.models import (
    CommentCreate,
    CommentResponse,
    Pagination,
    PostCreate,
    PostListResponse,
    PostResponse,
    PostStatusEnum,
    PostUpdate,
    TagsResponse,
)
from auth.dependencies import ensure_can_modify, get_current_user, try_get_current_user
from auth.models import User
from auth.ownership import Action
from auth.store import UserStore
from blog.models import Comment, Post, PostPage
from blog.store import BlogStore
from core.config import get_settings

router = APIRouter()

_settings = get_settings()


# ---------------------------------------------------------------------------
# Helpers (shared with api/routes/v1/admin.py)
# ---------------------------------------------------------------------------


def not_found(what: str = "Post") -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "not_found", "message": f"{what} not found."})


def posts_to_response(user_store: UserStore, posts: list[Post]) -> list[PostResponse]:
    """Attach author names to posts with one lookup for the whole batch."""
    names = user_store.get_names({p.author_id for p in posts})
    return [PostResponse.from_post(p, names.get(p.author_id)) for p in posts]


def page_to_response(user_store: UserStore, page: PostPage) -> PostListResponse:
    return PostListResponse(
        posts=posts_to_response(user_store, page.posts),
        pagination=Pagination(page=page.page, limit=page.limit, total=page.total, pages=page.pages),
    )


def parse_tags(tags: Optional[str]) -> Optional[list[str]]:
    if not tags:
        return None
    parsed = [t.strip() for t in tags.split(",") if t.strip()]
    return parsed or None


def create_post_for(request: Request, body: PostCreate, author: User) -> PostResponse:
    blog: BlogStore = request.app.state.blog_store
    post_id = blog.create_post(
        Post(
            title=body.title,
            content=body.content,
            author_id=author.id,
            status=body.status.value,
            tags=body.tags,
            excerpt=body.excerpt or "",
        )
    )
    return PostResponse.from_post(blog.get_post(post_id), author.name)


def apply_post_update(request: Request, post_id: int, body: PostUpdate) -> PostResponse:
    blog: BlogStore = request.app.state.blog_store
    user_store: UserStore = request.app.state.user_store
    updates = body.model_dump(exclude_none=True, mode="json")
    if updates:
        blog.update_post(post_id, **updates)
    updated = blog.get_post(post_id)
    if updated is None:
        raise not_found()
    return posts_to_response(user_store, [updated])[0]


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


@router.get("/posts", response_model=PostListResponse)
def list_posts(
    request: Request,
    author: Optional[str] = Query(default=None, description="'me' or a numeric user id"),
    status: Optional[PostStatusEnum] = None,
    search: Optional[str] = Query(default=None, max_length=200),
    tags: Optional[str] = Query(default=None, description="Comma-separated; matches any"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=_settings.page_size_default, ge=1, le=_settings.page_size_max),
) -> PostListResponse:
    user_store: UserStore = request.app.state.user_store
    blog: BlogStore = request.app.state.blog_store

    author_id: Optional[int] = None
    if author == "me":
        current = try_get_current_user(request)
        if current is None:
            raise HTTPException(
                status_code=401,
                detail={"code": "unauthorized", "message": "Authentication required."},
            )
        author_id = current.id
    elif author:
        if not author.isdigit():
            raise HTTPException(
                status_code=400,
                detail={"code": "validation_error", "message": "author must be 'me' or a numeric user id."},
            )
        author_id = int(author)

    result = blog.list_posts(
        author_id=author_id,
        status=status.value if status else None,
        search=search or None,
        tags=parse_tags(tags),
        page=page,
        limit=limit,
    )
    return page_to_response(user_store, result)


@router.post("/posts", response_model=PostResponse, status_code=201)
def create_post(
    request: Request,
    body: PostCreate,
    current_user: User = Depends(get_current_user),
) -> PostResponse:
    return create_post_for(request, body, current_user)


@router.get("/posts/tags", response_model=TagsResponse)
def list_tags(request: Request) -> TagsResponse:
    blog: BlogStore = request.app.state.blog_store
    return TagsResponse(tags=blog.list_published_tags())


@router.get("/posts/{id_or_slug}", response_model=PostResponse)
def get_post(request: Request, id_or_slug: str) -> PostResponse:
    blog: BlogStore = request.app.state.blog_store
    post = blog.find_post(id_or_slug)
    if post is None:
        raise not_found()
    return posts_to_response(request.app.state.user_store, [post])[0]


@router.put("/posts/{post_id}", response_model=PostResponse)
def update_post(
    request: Request,
    post_id: int,
    body: PostUpdate,
    current_user: User = Depends(get_current_user),
) -> PostResponse:
    """Update a post. Only its author or an admin may do this."""
    blog: BlogStore = request.app.state.blog_store
    post = blog.get_post(post_id)
    if post is None:
        raise not_found()
    ensure_can_modify(current_user, post, Action.EDIT)
    return apply_post_update(request, post_id, body)


@router.delete("/posts/{post_id}", status_code=204)
def delete_post(
    request: Request,
    post_id: int,
    current_user: User = Depends(get_current_user),
) -> Response:
    """Delete a post and its comments. Only its author or an admin may do this."""
    blog: BlogStore = request.app.state.blog_store
    post = blog.get_post(post_id)
    if post is None:
        raise not_found()
    ensure_can_modify(current_user, post, Action.DELETE)
    blog.delete_post(post_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


@router.get("/posts/{id_or_slug}/comments", response_model=list[CommentResponse])
def list_comments(request: Request, id_or_slug: str) -> list[CommentResponse]:
    blog: BlogStore = request.app.state.blog_store
    user_store: UserStore = request.app.state.user_store
    post = blog.find_post(id_or_slug)
    if post is None:
        raise not_found()
    comments = blog.list_comments(post.id)
    names = user_store.get_names({c.author_id for c in comments})
    return [CommentResponse.from_comment(c, names.get(c.author_id)) for c in comments]


@router.post("/posts/{id_or_slug}/comments", response_model=CommentResponse, status_code=201)
def add_comment(
    request: Request,
    id_or_slug: str,
    body: CommentCreate,
    current_user: User = Depends(get_current_user),
) -> CommentResponse:
    """Add a comment. A reply must point at a comment on the same post."""
    blog: BlogStore = request.app.state.blog_store
    post = blog.find_post(id_or_slug)
    if post is None:
        raise not_found()

    if body.parent_comment_id is not None:
        parent = blog.get_comment(body.parent_comment_id)
        if parent is None or parent.post_id != post.id:
            raise HTTPException(
                status_code=400,
                detail={"code": "invalid_parent", "message": "Parent comment not found on this post."},
            )

    comment_id = blog.create_comment(
        Comment(
            content=body.content,
            author_id=current_user.id,
            post_id=post.id,
            parent_comment_id=body.parent_comment_id,
        )
    )
    return CommentResponse.from_comment(blog.get_comment(comment_id), current_user.name)
