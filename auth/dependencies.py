"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The session token is read from two places, in priority order:
  1. The session cookie -- set by the web UI and by the JSON login endpoint.
  2. Authorization: Bearer <token> header -- API clients.

extract_token() implements that lookup once; the access-gate middleware and
every dependency below share it.

try_get_claims() / try_get_current_user() are the soft variants (return None
on failure). get_current_user() wraps them and raises HTTP 401 if
unauthenticated. require_admin() wraps get_current_user() and raises HTTP 403
if not admin. ensure_can_modify() raises HTTP 403 when the ownership guard
denies a mutation.

Layer rule: no imports from web/ or blog/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import ROLE_ADMIN, TokenClaims, User
from auth.ownership import Action, Decision, Owned, authorize
from auth.tokens import verify
from core.config import get_settings

_BEARER_PREFIX = "Bearer "


def extract_token(request: Request) -> str | None:
    """Return the raw session token from the cookie or Bearer header, if any.

    The cookie wins when both are present.
    """
    token = request.cookies.get(get_settings().auth_cookie_name)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith(_BEARER_PREFIX):
        return auth_header[len(_BEARER_PREFIX) :].strip() or None
    return None


def try_get_claims(request: Request) -> TokenClaims | None:
    """Return verified token claims for the request, or None. Never raises."""
    token = extract_token(request)
    if not token:
        return None
    return verify(token)


def try_get_current_user(request: Request) -> User | None:
    """Return the authenticated User, or None.

    A token for a subject that has since been deleted is treated as
    unauthenticated.
    """
    claims = try_get_claims(request)
    if claims is None:
        return None
    return request.app.state.user_store.get_by_id(claims.subject_id)


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user


def require_admin(request: Request) -> User:
    """Require admin role. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    user = get_current_user(request)
    if user.role != ROLE_ADMIN:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return user


def ensure_can_modify(user: User, resource: Owned, action: Action) -> None:
    """Raise HTTP 403 unless the user owns the resource or is an admin."""
    if authorize(user, resource, action) is Decision.DENY:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": f"You are not allowed to {action.value} this post."},
        )
