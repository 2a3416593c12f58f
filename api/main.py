"""
api/main.py -- FastAPI application entry point for Inkwell.

Exposes the JSON API under /api/v1. The server-rendered pages in web/ are
mounted onto this app by asgi.py.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. log_requests          -- method, path, status, latency for every request
  3. access_gate           -- route-class redirects for pages (auth/gate.py)
  4. CORSMiddleware        -- adds CORS headers for allowed browser origins
  5. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan creates the Database handle and the stores on startup and disposes
the engine on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.admin import router as admin_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.posts import router as posts_router
from api.routes.v1.profile import router as profile_router
from auth.dependencies import try_get_claims
from auth.gate import RouteClass, classify_route, evaluate
from auth.store import UserStore
from blog.store import BlogStore
from core.config import get_settings
from core.database import Database

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("inkwell.api")
gate_logger = logging.getLogger("inkwell.gate")

# Resolving settings here makes a missing or short SECRET_KEY fail at import,
# before the server binds a port.
_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    The Database handle is owned here and handed to each store explicitly.
    Its engine is created on first use and disposed on shutdown.
    """
    logger.info("Inkwell API starting up")
    app.state.db = Database(_settings.database_url)
    app.state.user_store = UserStore(app.state.db)
    app.state.blog_store = BlogStore(app.state.db)
    if not app.state.user_store.has_users():
        logger.warning("No user accounts exist yet -- run 'python main.py create-admin' to bootstrap")

    yield

    app.state.db.dispose()
    logger.info("Inkwell API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Inkwell API",
    description="Blog publishing: authors, posts, tags, comments, and administration.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() wraps the app each time it is called, so the last one
# registered runs first. Register innermost first: SlowAPI -> CORS, then the
# @app.middleware("http") functions, then TrustedHost as the outermost layer.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Access gate middleware
#
# Runs before routing, so no protected page handler executes for a caller the
# gate turns away. The decision itself is the pure function auth.gate.evaluate;
# this coroutine only extracts the credential and renders the redirect.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def access_gate(request: Request, call_next):
    route_class = classify_route(request.url.path)
    if route_class is not RouteClass.PUBLIC:
        decision = evaluate(route_class, try_get_claims(request))
        if not decision.allowed:
            gate_logger.info(
                "%s %s (%s) -> %s",
                request.method,
                request.url.path,
                route_class.value,
                decision.redirect_to,
            )
            return RedirectResponse(decision.redirect_to, status_code=302)
    return await call_next(request)


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# Registered last so host validation runs before anything else.
app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(profile_router, prefix="/api/v1", tags=["Profile"])
app.include_router(posts_router, prefix="/api/v1", tags=["Posts"])
app.include_router(admin_router, prefix="/api/v1", tags=["Admin"])
# Web UI router is mounted by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error leaves the app as {"error": {"code", "message", "detail?"}}.
# Clients branch on error.code, never on the shape of the body.
# ---------------------------------------------------------------------------


def _error_response(
    status_code: int,
    code: str,
    message: str,
    detail: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail))
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True), headers=headers)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    retry_after = int(getattr(exc, "retry_after", 60))
    logger.warning("Rate limit hit on %s from %s", request.url.path, request.client.host if request.client else "unknown")
    return _error_response(
        429,
        "rate_limited",
        "Too many requests.",
        detail=str(exc),
        headers={"Retry-After": str(retry_after)},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """422 for bodies and query parameters that fail their pydantic models."""
    return _error_response(422, "validation_error", "Request validation failed.", detail=str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Wrap HTTP errors in the envelope.

    Registered on the Starlette base class so router-level 404 and 405
    responses are covered too. Route handlers pass {"code", "message"} as
    detail; anything else (plain strings from the framework) gets an
    http_<status> code.
    """
    headers = getattr(exc, "headers", None)
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=headers)
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail), headers=headers)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort. The traceback goes to the log, never to the client."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and a database probe."""
    db: Database = request.app.state.db
    database = "ok" if db.ping() else "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=__version__,
        components={"app": "ok", "database": database},
    )
