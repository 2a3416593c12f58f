"""
web/routes.py -- Jinja2 template routes for the Inkwell web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same UserStore and BlogStore) but return HTML instead of JSON.

Access control for /login, /register, /profile and /admin is applied by the
access-gate middleware in api/main.py before any handler here runs; the
handlers can assume the gate's guarantees. /dashboard is not a gated route
class, so its handler checks authentication itself via _require_auth().

Route registration order matters: GET /login and GET /register must not be
shadowed by any parametrised route.

Routes:
  GET  /                 -- published posts feed
  GET  /blog/{slug}      -- single post with comments
  GET  /login            -- login form (guest only)
  POST /login            -- handle password login (rate limited)
  GET  /register         -- registration form (guest only)
  POST /register         -- handle registration (rate limited)
  POST /logout           -- clear cookie, redirect /login
  GET  /dashboard        -- the caller's own posts (auth required)
  GET  /profile          -- account details (gated: authenticated)
  GET  /admin            -- user and post overview (gated: admin only)
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from api.limiter import credential_rate_limit, limiter
from api.models import RegisterRequest
from auth.dependencies import extract_token, try_get_current_user
from auth.gate import DASHBOARD_PATH, LOGIN_PATH, landing_page
from auth.models import ROLE_USER, User
from auth.store import UserStore
from auth.tokens import (
    authenticate_user,
    clear_auth_cookie,
    hash_password,
    set_auth_cookie,
    sign,
)
from blog.models import STATUS_PUBLISHED
from blog.store import BlogStore

logger = logging.getLogger("inkwell.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
# layout.html calls this to render the navigation for the signed-in user.
templates.env.globals["try_get_current_user"] = try_get_current_user
router = APIRouter()

# Whitelist mapping for ?error= query params on /login and /register.
# The raw query param is NEVER passed to templates -- only the message from
# this dict is. Prevents reflected XSS via crafted error query strings.
_ERROR_MESSAGES: dict[str, str] = {
    "bad_credentials": "Invalid email or password.",
    "email_taken": "An account with that email already exists.",
}

_FEED_PAGE_SIZE = 10


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------


def _safe_next(next_url: Optional[str]) -> Optional[str]:
    """Validate a post-login redirect target. Only accept relative paths.

    Rejects absolute URLs and protocol-relative URLs ("//host") so the login
    form cannot be used as an open redirect.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return None


def _to_login(request: Request, next_path: Optional[str] = None) -> RedirectResponse:
    """Redirect to /login, dropping any session cookie the request carried.

    Used whenever no stored account backs the request. For a verified token
    whose account was deleted, the gate only sees the token, so a cookie left
    in place would bounce /login straight back here.
    """
    target = f"{LOGIN_PATH}?next={next_path}" if next_path else LOGIN_PATH
    resp = RedirectResponse(target, status_code=302)
    if extract_token(request):
        clear_auth_cookie(resp)
    return resp


def _require_auth(request: Request) -> Optional[RedirectResponse]:
    """Return a redirect to /login if the request is not authenticated, else None.

    Call at the top of protected handlers that are not covered by the gate:
        if redirect := _require_auth(request):
            return redirect
    """
    if try_get_current_user(request) is None:
        return _to_login(request, request.url.path)
    return None


def _signed_in_redirect(user: User, next_url: Optional[str]) -> RedirectResponse:
    token = sign(user.id, user.role)
    target = _safe_next(next_url) or landing_page(user.role)
    resp = RedirectResponse(target, status_code=302)
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public pages
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def feed(request: Request, page: int = 1, tag: Optional[str] = None) -> HTMLResponse:
    blog: BlogStore = request.app.state.blog_store
    user_store: UserStore = request.app.state.user_store
    result = blog.list_posts(
        status=STATUS_PUBLISHED,
        tags=[tag] if tag else None,
        page=max(1, page),
        limit=_FEED_PAGE_SIZE,
    )
    authors = user_store.get_names({p.author_id for p in result.posts})
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "posts": result.posts,
            "authors": authors,
            "page": result.page,
            "pages": result.pages,
            "tags": blog.list_published_tags(),
            "active_tag": tag,
        },
    )


@router.get("/blog/{slug}", response_class=HTMLResponse)
def post_detail(request: Request, slug: str) -> HTMLResponse:
    blog: BlogStore = request.app.state.blog_store
    user_store: UserStore = request.app.state.user_store
    post = blog.get_post_by_slug(slug)
    if post is None:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "Post not found."})
    comments = blog.list_comments(post.id)
    authors = user_store.get_names({post.author_id} | {c.author_id for c in comments})
    return templates.TemplateResponse(
        request,
        "post.html",
        {"post": post, "comments": comments, "authors": authors},
    )


# ---------------------------------------------------------------------------
# Guest-only pages (gate redirects signed-in callers away)
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    error_msg = _ERROR_MESSAGES.get(request.query_params.get("error", ""))
    return templates.TemplateResponse(
        request,
        "login.html",
        {"error_msg": error_msg, "next": _safe_next(request.query_params.get("next"))},
    )


@router.post("/login", response_class=HTMLResponse)
@limiter.limit(credential_rate_limit)
def login_post(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    next: Optional[str] = Form(default=None),
) -> RedirectResponse:
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, email, password)
    if user is None:
        return RedirectResponse(f"{LOGIN_PATH}?error=bad_credentials", status_code=302)
    return _signed_in_redirect(user, next)


@router.get("/register", response_class=HTMLResponse)
def register_form(request: Request) -> HTMLResponse:
    error_msg = _ERROR_MESSAGES.get(request.query_params.get("error", ""))
    return templates.TemplateResponse(request, "register.html", {"error_msg": error_msg})


@router.post("/register", response_class=HTMLResponse)
@limiter.limit(credential_rate_limit)
def register_post(
    request: Request,
    name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
):
    """Create an account from the HTML form and sign it in.

    Reuses the API's RegisterRequest model so both surfaces apply the same
    name, email, and password rules.
    """
    user_store: UserStore = request.app.state.user_store
    try:
        body = RegisterRequest(name=name, email=email, password=password)
    except ValidationError as exc:
        messages = [err["msg"].removeprefix("Value error, ") for err in exc.errors()]
        return templates.TemplateResponse(
            request,
            "register.html",
            {"error_msg": "; ".join(messages), "name": name, "email": email},
            status_code=400,
        )

    if user_store.email_taken(body.email):
        return RedirectResponse("/register?error=email_taken", status_code=302)
    new_user = User(name=body.name, email=body.email, hashed_password=hash_password(body.password), role=ROLE_USER)
    try:
        user_id = user_store.create_user(new_user)
    except IntegrityError:
        return RedirectResponse("/register?error=email_taken", status_code=302)
    logger.info("User %d registered via web form", user_id)
    return _signed_in_redirect(user_store.get_by_id(user_id), None)


@router.post("/logout")
def logout(request: Request) -> RedirectResponse:
    resp = RedirectResponse(LOGIN_PATH, status_code=302)
    clear_auth_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Signed-in pages
# ---------------------------------------------------------------------------


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request) -> HTMLResponse:
    if redirect := _require_auth(request):
        return redirect
    user = try_get_current_user(request)
    blog: BlogStore = request.app.state.blog_store
    result = blog.list_posts(author_id=user.id, page=1, limit=50)
    return templates.TemplateResponse(request, "dashboard.html", {"user": user, "posts": result.posts})


@router.get("/profile", response_class=HTMLResponse)
def profile(request: Request) -> HTMLResponse:
    # The gate verified the token; the account may still have been deleted since.
    user = try_get_current_user(request)
    if user is None:
        return _to_login(request)
    return templates.TemplateResponse(request, "profile.html", {"user": user})


@router.get("/admin", response_class=HTMLResponse)
def admin_panel(request: Request) -> HTMLResponse:
    # The gate trusted the role in the token; the account may since have been
    # deleted or demoted.
    user = try_get_current_user(request)
    if user is None:
        return _to_login(request)
    if not user.is_admin:
        return RedirectResponse(DASHBOARD_PATH, status_code=302)
    user_store: UserStore = request.app.state.user_store
    blog: BlogStore = request.app.state.blog_store
    users = user_store.list_users(role=ROLE_USER)
    posts = blog.list_posts(page=1, limit=50).posts
    authors = user_store.get_names({p.author_id for p in posts})
    return templates.TemplateResponse(
        request,
        "admin.html",
        {"user": user, "users": users, "posts": posts, "authors": authors},
    )
