"""
auth/gate.py -- Route-class access gate for server-rendered pages.

The gate is a pure decision function: given the class of the requested route
and the verified claims of the caller (or None), it answers "allow" or
"redirect to X". It performs no I/O, raises nothing, and reads nothing but
its arguments. The HTTP middleware in api/main.py extracts the credential,
calls evaluate(), and turns a redirect decision into a 302 before any route
handler runs.

Route classes:
  PUBLIC         -- everything not listed below; always allowed.
  GUEST_ONLY     -- /login, /register. Signed-in callers are bounced to their
                    landing page (admin -> /admin, user -> /dashboard).
  AUTHENTICATED  -- /profile. Anonymous callers go to /login.
  ADMIN_ONLY     -- /admin and /admin/... Anonymous callers go to /login,
                    non-admins go to /dashboard.

API paths (/api/...) are PUBLIC to the gate. JSON endpoints enforce
authentication with FastAPI dependencies and answer 401/403 instead of
redirecting.

Layer rule: no imports from api/, web/, or blog/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from auth.models import ROLE_ADMIN, TokenClaims

LOGIN_PATH = "/login"
REGISTER_PATH = "/register"
DASHBOARD_PATH = "/dashboard"
ADMIN_PATH = "/admin"
PROFILE_PATH = "/profile"


class RouteClass(str, Enum):
    PUBLIC = "public"
    GUEST_ONLY = "guest_only"
    AUTHENTICATED = "authenticated"
    ADMIN_ONLY = "admin_only"


@dataclass(frozen=True)
class GateDecision:
    """Outcome of the gate. redirect_to is None when the request may proceed."""

    redirect_to: str | None = None

    @property
    def allowed(self) -> bool:
        return self.redirect_to is None


ALLOW = GateDecision()

_GUEST_ONLY_PATHS = frozenset({LOGIN_PATH, REGISTER_PATH})
_AUTHENTICATED_PATHS = frozenset({PROFILE_PATH})


def classify_route(path: str) -> RouteClass:
    """Map a request path to its route class.

    Matching is exact for guest-only and authenticated pages. /admin covers
    the whole subtree but not look-alikes such as /administrator.
    """
    if path == ADMIN_PATH or path.startswith(ADMIN_PATH + "/"):
        return RouteClass.ADMIN_ONLY
    if path in _GUEST_ONLY_PATHS:
        return RouteClass.GUEST_ONLY
    if path in _AUTHENTICATED_PATHS:
        return RouteClass.AUTHENTICATED
    return RouteClass.PUBLIC


def landing_page(role: str) -> str:
    """Where a signed-in caller with this role belongs by default."""
    return ADMIN_PATH if role == ROLE_ADMIN else DASHBOARD_PATH


def evaluate(route_class: RouteClass, claims: TokenClaims | None) -> GateDecision:
    """Decide whether a request may reach its handler.

    claims is the verified credential or None when the credential was absent,
    malformed, tampered with, or expired -- the gate treats all of those the
    same way.
    """
    if route_class is RouteClass.ADMIN_ONLY:
        if claims is None:
            return GateDecision(LOGIN_PATH)
        if not claims.is_admin:
            return GateDecision(DASHBOARD_PATH)
        return ALLOW

    if route_class is RouteClass.GUEST_ONLY:
        if claims is not None:
            return GateDecision(landing_page(claims.role))
        return ALLOW

    if route_class is RouteClass.AUTHENTICATED:
        if claims is None:
            return GateDecision(LOGIN_PATH)
        return ALLOW

    return ALLOW
