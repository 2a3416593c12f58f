"""
api/routes/v1/auth.py -- Registration, login, and session identity endpoints.

Routes:
  POST /api/v1/auth/register  -- create a role=user account; issue token + cookie
  POST /api/v1/auth/login     -- email/password login; issue token + cookie
  POST /api/v1/auth/logout    -- clear the session cookie
  GET  /api/v1/auth/me        -- identity behind the caller's token (requires auth)

Security:
  POST /register and /login are rate-limited per client IP.
  authenticate_user() provides timing equalization -- use it, never inline.
  Cache-Control: no-store on every response that carries a token.
  Login failures return one generic "bad_credentials" error whether the
  email is unknown or the password is wrong.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import credential_rate_limit, limiter
from api.models import LoginRequest, LoginResponse, MeResponse, MessageResponse, RegisterRequest, UserResponse
from auth.dependencies import get_current_user
from auth.models import ROLE_USER, User
from auth.store import UserStore
from auth.tokens import authenticate_user, clear_auth_cookie, hash_password, set_auth_cookie, sign
from core.config import get_settings

logger = logging.getLogger("inkwell.api.auth")

# Auth policy:
# - POST /api/v1/auth/register: public -- self-service sign-up
# - POST /api/v1/auth/login:    public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:   public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/me:       requires auth (get_current_user)
router = APIRouter()


def _token_response(user: User, message: str, status_code: int) -> JSONResponse:
    """Issue a token for the user and return it in both the body and a cookie."""
    token = sign(user.id, user.role)
    expires_in = get_settings().token_expire_seconds
    resp = JSONResponse(
        status_code=status_code,
        content=LoginResponse(
            message=message,
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=expires_in,
            user=UserResponse.from_user(user),
        ).model_dump(),
    )
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/register", response_model=LoginResponse, status_code=201)
# Beneath the route decorator so the router registers the rate-limited wrapper.
@limiter.limit(credential_rate_limit)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a new account with role "user" and sign it in.

    Duplicate emails get a 400 from the pre-check; a concurrent registration
    that slips past it hits the UNIQUE index and is reported as 409.
    """
    user_store: UserStore = request.app.state.user_store
    if user_store.email_taken(body.email):
        raise HTTPException(
            status_code=400,
            detail={"code": "email_taken", "message": "User already exists."},
        )

    new_user = User(
        name=body.name,
        email=body.email,
        hashed_password=hash_password(body.password),
        role=ROLE_USER,
    )
    try:
        user_id = user_store.create_user(new_user)
    except IntegrityError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "User already exists."},
        ) from exc

    created = user_store.get_by_id(user_id)
    logger.info("User %d registered", user_id)
    return _token_response(created, "User registered successfully", status_code=201)


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(credential_rate_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; issue a session token."""
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid credentials."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp
    return _token_response(user, "Login successful", status_code=200)


@router.post("/auth/logout", response_model=MessageResponse)
async def logout() -> JSONResponse:
    """Clear the session cookie.

    Tokens are stateless: a copy of the token held elsewhere stays valid
    until it expires.
    """
    resp = JSONResponse(content={"message": "Logged out."})
    clear_auth_cookie(resp)
    return resp


@router.get("/auth/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    return MeResponse(
        user_id=current_user.id,
        name=current_user.name,
        email=current_user.email,
        role=current_user.role,
    )
