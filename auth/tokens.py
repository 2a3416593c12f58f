"""
auth/tokens.py -- Session token codec, password hashing, and cookie helpers.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the subject id (sub), role, issue time (iat) and absolute expiry (exp).
       Tokens are stateless -- there is no server-side session table and no
       revocation list, so a token stays valid until exp.

       Verification returns None on any failure: malformed encoding, bad
       signature, expiry, or a payload missing a required claim all look the
       same to the caller. Route layer turns None into a 401 or a redirect.

  Passwords: bcrypt directly. The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether an email is registered.

  SECRET_KEY: sourced from core.config.get_settings(). Settings validation
       refuses to start without a key outside DEBUG mode, so signing can never
       run with an unconfigured secret.

Layer rule: no imports from api/, web/, or blog/. Import from core/ is
allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import ROLES, TokenClaims
from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("inkwell.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ("sub", "role", "iat", "exp")

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt truncates input beyond 72 bytes. Registration caps passwords at
    128 characters (Pydantic field), and the truncation only weakens inputs
    that are already long.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("inkwell_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
#
# sign() and verify() are the codec entry points every handler uses.
# ---------------------------------------------------------------------------


def sign(
    subject_id: int,
    role: str,
    expire_seconds: int = 0,
    issued_at: datetime | None = None,
) -> str:
    """Encode a signed JWT for a subject and role.

    Args:
        subject_id:     Numeric user ID stored in the DB.
        role:           User role ("admin" or "user").
        expire_seconds: Validity window in seconds. If 0 (default), uses
                        Settings.token_expire_seconds (7 days).
        issued_at:      Issue time; defaults to now. Expiry is always
                        issued_at + window, encoded as an absolute timestamp.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    issued = issued_at or datetime.now(timezone.utc)
    payload = {
        "sub": str(subject_id),
        "role": role,
        "iat": issued,
        "exp": issued + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def verify(token: str) -> TokenClaims | None:
    """Verify a JWT and return its claims, or None on any failure.

    python-jose checks the signature and the exp claim. The payload is then
    validated into a TokenClaims record; a token that verifies but lacks a
    claim, carries a non-numeric subject, or names an unknown role is
    treated exactly like a forged one.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None

    if any(claim not in payload for claim in _REQUIRED_CLAIMS):
        return None
    if payload["role"] not in ROLES:
        return None
    try:
        subject_id = int(payload["sub"])
        issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
        expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
    except (TypeError, ValueError):
        return None
    return TokenClaims(
        subject_id=subject_id,
        role=payload["role"],
        issued_at=issued_at,
        expires_at=expires_at,
    )


# ---------------------------------------------------------------------------
# User authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Authenticate an email/password login with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie.
    samesite="lax": not sent on cross-site POST.
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the JWT expiry so both expire together.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    response.set_cookie(
        _settings.auth_cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=duration,
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(_settings.auth_cookie_name)
