"""
api/routes/v1/admin.py -- Administrator user and post management.

Every route here depends on require_admin: 401 without a valid token, 403
for a valid non-admin token.

Routes:
  GET    /api/v1/admin/users          -- list accounts with role "user"
  POST   /api/v1/admin/users          -- create an account with any role
  GET    /api/v1/admin/users/{id}     -- fetch one account
  PUT    /api/v1/admin/users/{id}     -- update name, email, role, password
  DELETE /api/v1/admin/users/{id}     -- delete an account
  GET    /api/v1/admin/posts          -- list every post (drafts included)
  POST   /api/v1/admin/posts          -- create a post authored by the admin
  PUT    /api/v1/admin/posts/{id}     -- update any post
  DELETE /api/v1/admin/posts/{id}     -- delete any post

Safety rails:
  An admin cannot delete their own account or demote themselves, so the
  dashboard can never lock out the account that is using it.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.exc import IntegrityError

from api.models import AdminUserCreate, AdminUserUpdate, PostCreate, PostListResponse, PostResponse, PostUpdate, UserResponse
from api.routes.v1.posts import apply_post_update, create_post_for, not_found, page_to_response
from auth.dependencies import require_admin
from auth.models import ROLE_ADMIN, ROLE_USER, User
from auth.store import UserStore
from auth.tokens import hash_password
from blog.store import BlogStore
from core.config import get_settings

logger = logging.getLogger("inkwell.api.admin")

router = APIRouter()

_settings = get_settings()


def _get_user_or_404(user_store: UserStore, user_id: int) -> User:
    user = user_store.get_by_id(user_id)
    if user is None:
        raise not_found("User")
    return user


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.get("/admin/users", response_model=list[UserResponse])
def list_users(request: Request, admin: User = Depends(require_admin)) -> list[UserResponse]:
    """List regular (role "user") accounts. Admin accounts are not included."""
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users(role=ROLE_USER)]


@router.post("/admin/users", response_model=UserResponse, status_code=201)
def create_user(
    request: Request,
    body: AdminUserCreate,
    admin: User = Depends(require_admin),
) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    if user_store.email_taken(body.email):
        raise HTTPException(status_code=400, detail={"code": "email_taken", "message": "Email is already taken."})
    try:
        user_id = user_store.create_user(
            User(
                name=body.name,
                email=body.email,
                hashed_password=hash_password(body.password),
                role=body.role.value,
            )
        )
    except IntegrityError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "A user with that email already exists."},
        ) from exc
    logger.info("Admin %d created user %d (role=%s)", admin.id, user_id, body.role.value)
    return UserResponse.from_user(user_store.get_by_id(user_id))


@router.get("/admin/users/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: int, admin: User = Depends(require_admin)) -> UserResponse:
    return UserResponse.from_user(_get_user_or_404(request.app.state.user_store, user_id))


@router.put("/admin/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: int,
    body: AdminUserUpdate,
    admin: User = Depends(require_admin),
) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    target = _get_user_or_404(user_store, user_id)

    updates: dict = {}
    if body.name is not None:
        updates["name"] = body.name
    if body.email is not None and body.email != target.email:
        if user_store.email_taken(body.email, exclude_user_id=target.id):
            raise HTTPException(status_code=400, detail={"code": "email_taken", "message": "Email is already taken."})
        updates["email"] = body.email
    if body.role is not None:
        if target.id == admin.id and body.role.value != ROLE_ADMIN:
            raise HTTPException(
                status_code=400,
                detail={"code": "self_demotion", "message": "You cannot remove your own admin role."},
            )
        updates["role"] = body.role.value
    if body.password is not None:
        updates["hashed_password"] = hash_password(body.password)

    if not updates:
        raise HTTPException(status_code=400, detail={"code": "no_changes", "message": "No fields to update."})

    try:
        user_store.update_user(user_id, **updates)
    except IntegrityError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "A user with that email already exists."},
        ) from exc
    logger.info("Admin %d updated user %d fields %s", admin.id, user_id, sorted(updates))
    return UserResponse.from_user(user_store.get_by_id(user_id))


@router.delete("/admin/users/{user_id}", status_code=204)
def delete_user(request: Request, user_id: int, admin: User = Depends(require_admin)) -> Response:
    """Delete an account. Posts and comments it authored are kept.

    Tokens already issued to the deleted account stop working at once:
    get_current_user() looks the subject up on every request.
    """
    user_store: UserStore = request.app.state.user_store
    if user_id == admin.id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_deletion", "message": "You cannot delete your own account."},
        )
    if not user_store.delete_user(user_id):
        raise not_found("User")
    logger.info("Admin %d deleted user %d", admin.id, user_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


@router.get("/admin/posts", response_model=PostListResponse)
def list_all_posts(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=_settings.page_size_max, ge=1, le=_settings.page_size_max),
    admin: User = Depends(require_admin),
) -> PostListResponse:
    blog: BlogStore = request.app.state.blog_store
    return page_to_response(request.app.state.user_store, blog.list_posts(page=page, limit=limit))


@router.post("/admin/posts", response_model=PostResponse, status_code=201)
def create_post(request: Request, body: PostCreate, admin: User = Depends(require_admin)) -> PostResponse:
    return create_post_for(request, body, admin)


@router.put("/admin/posts/{post_id}", response_model=PostResponse)
def update_post(
    request: Request,
    post_id: int,
    body: PostUpdate,
    admin: User = Depends(require_admin),
) -> PostResponse:
    blog: BlogStore = request.app.state.blog_store
    if blog.get_post(post_id) is None:
        raise not_found()
    return apply_post_update(request, post_id, body)


@router.delete("/admin/posts/{post_id}", status_code=204)
def delete_post(request: Request, post_id: int, admin: User = Depends(require_admin)) -> Response:
    blog: BlogStore = request.app.state.blog_store
    if not blog.delete_post(post_id):
        raise not_found()
    logger.info("Admin %d deleted post %d", admin.id, post_id)
    return Response(status_code=204)
