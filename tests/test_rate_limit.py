"""
tests/test_rate_limit.py -- Credential endpoints answer 429 once their limit is spent.

The suite runs with a generous LOGIN_RATE_LIMIT. These tests tighten it on the
live settings object; credential_rate_limit() reads it on every request, and
the shared limiter's counters are cleared before and after each test.

Requests that fail schema validation never reach the endpoint, so every call
below carries a well-formed body.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest
from conftest import Site

from api.limiter import limiter
from core.config import get_settings

_BAD_LOGIN = {"email": "nobody@example.com", "password": "WrongPass1"}


@pytest.fixture
def tight_limit(site: Site, monkeypatch) -> Generator[Site, None, None]:
    monkeypatch.setattr(get_settings(), "login_rate_limit", "2/minute")
    limiter.reset()
    yield site
    limiter.reset()


def _assert_rate_limited(resp) -> None:
    assert resp.status_code == 429
    assert resp.json()["error"]["code"] == "rate_limited"
    assert int(resp.headers["Retry-After"]) > 0


def test_api_login(tight_limit: Site) -> None:
    client = tight_limit.client
    assert client.post("/api/v1/auth/login", json=_BAD_LOGIN).status_code == 401
    assert client.post("/api/v1/auth/login", json=_BAD_LOGIN).status_code == 401
    _assert_rate_limited(client.post("/api/v1/auth/login", json=_BAD_LOGIN))


def test_api_register(tight_limit: Site) -> None:
    client = tight_limit.client
    body = {"name": "Rita Limit", "email": "rita@example.com", "password": "Limited123"}
    assert client.post("/api/v1/auth/register", json=body).status_code == 201
    assert client.post("/api/v1/auth/register", json=body).status_code == 400
    _assert_rate_limited(client.post("/api/v1/auth/register", json=body))


def test_form_login(tight_limit: Site) -> None:
    client = tight_limit.client
    for _ in range(2):
        resp = client.post("/login", data=_BAD_LOGIN)
        assert resp.headers["location"] == "/login?error=bad_credentials"
    _assert_rate_limited(client.post("/login", data=_BAD_LOGIN))


def test_form_register(tight_limit: Site) -> None:
    client = tight_limit.client
    weak = {"name": "Rob Limit", "email": "rob@example.com", "password": "weakpass"}
    assert client.post("/register", data=weak).status_code == 400
    assert client.post("/register", data=weak).status_code == 400
    _assert_rate_limited(client.post("/register", data=weak))


def test_login_limit_leaves_other_routes_alone(tight_limit: Site) -> None:
    client = tight_limit.client
    for _ in range(3):
        client.post("/api/v1/auth/login", json=_BAD_LOGIN)
    assert client.get("/api/v1/health").status_code == 200
    assert client.get("/login").status_code == 200
