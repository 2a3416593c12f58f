"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in the route modules
that accept credentials, api/routes/v1/auth.py and web/routes.py. Per-route
limits go beneath the route decorator:

    @router.post("/auth/login")
    @limiter.limit(credential_rate_limit)
    def login(request: Request, ...): ...

A single shared instance means every route counts against the same
in-memory store. Per-module instances would each keep their own counters
and the limits would never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def credential_rate_limit() -> str:
    """Limit for the credential-accepting endpoints (login and register, API and form).

    Read from settings on every request rather than fixed at import.
    """
    return get_settings().login_rate_limit
