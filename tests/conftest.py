"""
tests/conftest.py -- Shared test fixtures for Inkwell integration tests.

This module provides:
  - _make_test_db(): creates an isolated named in-memory database
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - site: a Site bundle (client, stores, seeded admin + user with tokens),
    one per test module, with the client's cookie jar emptied before each test

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment variables must be set before any app import:
  DEBUG=true          -- get_settings() auto-generates SECRET_KEY
  LOGIN_RATE_LIMIT    -- raised so the suite's many logins are never throttled
  ALLOWED_HOSTS       -- TestClient sends Host: testserver
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import NamedTuple

# CRITICAL: Set these before any auth/core import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.models import ROLE_ADMIN, ROLE_USER, User
from auth.store import UserStore
from auth.tokens import hash_password, sign
from blog.store import BlogStore
from core.database import Database

ADMIN_EMAIL = "ann@example.com"
ADMIN_PASSWORD = "AdminPass1"
USER_EMAIL = "bob@example.com"
USER_PASSWORD = "UserPass1"


class Site(NamedTuple):
    client: TestClient
    user_store: UserStore
    blog_store: BlogStore
    admin_id: int
    admin_token: str
    user_id: int
    user_token: str


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_db(db_suffix: str) -> Database:
    """Create an isolated named shared-memory SQLite database.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (the module name is used).
    """
    return Database(f"sqlite:///file:test_inkwell_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(db: Database, user_store: UserStore, blog_store: BlogStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    the isolated test DB rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.db = db
        app.state.user_store = user_store
        app.state.blog_store = blog_store
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def _module_site(request) -> Generator[Site, None, None]:
    """One app + database per test module, seeded with an admin and a user.

    follow_redirects=False is essential for page tests: we assert on redirect
    *locations* (e.g. 302 to /login), which are invisible once the client
    follows the redirect and returns the final 200 response.
    """
    db = _make_test_db(request.module.__name__.replace(".", "_"))
    user_store = UserStore(db)
    blog_store = BlogStore(db)

    admin_id = user_store.create_user(
        User(name="Ann Admin", email=ADMIN_EMAIL, hashed_password=hash_password(ADMIN_PASSWORD), role=ROLE_ADMIN)
    )
    user_id = user_store.create_user(
        User(name="Bob Writer", email=USER_EMAIL, hashed_password=hash_password(USER_PASSWORD), role=ROLE_USER)
    )

    app.router.lifespan_context = _patch_lifespan(db, user_store, blog_store)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield Site(
            client=client,
            user_store=user_store,
            blog_store=blog_store,
            admin_id=admin_id,
            admin_token=sign(admin_id, ROLE_ADMIN),
            user_id=user_id,
            user_token=sign(user_id, ROLE_USER),
        )

    db.dispose()


@pytest.fixture
def site(_module_site: Site) -> Site:
    """The module's Site with an empty cookie jar.

    Login and register responses set the session cookie on the client, and
    the cookie outranks any Bearer header, so each test starts clean.
    """
    _module_site.client.cookies.clear()
    return _module_site


@pytest.fixture
def make_user(site: Site):
    """Factory that inserts a role=user account and returns (user_id, token)."""
    counter = {"n": 0}

    def _make(name: str = "Carol Reader", password: str = "ReaderPass1") -> tuple[int, str]:
        counter["n"] += 1
        email = f"reader{counter['n']}-{os.urandom(4).hex()}@example.com"
        uid = site.user_store.create_user(
            User(name=name, email=email, hashed_password=hash_password(password), role=ROLE_USER)
        )
        return uid, sign(uid, ROLE_USER)

    return _make
