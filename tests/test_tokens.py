"""Unit tests for auth/tokens.py -- session token codec and password hashing.

Covers:
- issue -> verify round trip preserves subject and role
- expiry is issued_at + window, encoded as an absolute timestamp
- expired, tampered, foreign-key, and garbage tokens all verify to None
- tokens missing a claim or naming an unknown role are rejected
- bcrypt hashing and the generic authenticate_user() failure path
"""

from datetime import datetime, timedelta, timezone

from jose import jwt

from auth.models import ROLE_ADMIN, ROLE_USER
from auth.tokens import (
    authenticate_user,
    hash_password,
    sign,
    verify,
    verify_password,
)
from core.config import get_settings


def _encode_raw(payload: dict, key: str | None = None) -> str:
    return jwt.encode(payload, key or get_settings().secret_key, algorithm="HS256")


class TestRoundTrip:
    def test_subject_and_role_survive(self) -> None:
        claims = verify(sign(42, ROLE_USER))
        assert claims is not None
        assert claims.subject_id == 42
        assert claims.role == ROLE_USER
        assert not claims.is_admin

    def test_admin_role(self) -> None:
        claims = verify(sign(1, ROLE_ADMIN))
        assert claims is not None and claims.is_admin

    def test_default_window_is_seven_days(self) -> None:
        claims = verify(sign(7, ROLE_USER))
        assert claims is not None
        assert claims.expires_at - claims.issued_at == timedelta(days=7)

    def test_explicit_window_and_issue_time(self) -> None:
        issued = datetime.now(timezone.utc).replace(microsecond=0)
        claims = verify(sign(7, ROLE_USER, expire_seconds=60, issued_at=issued))
        assert claims is not None
        assert claims.issued_at == issued
        assert claims.expires_at == issued + timedelta(seconds=60)


class TestRejection:
    """Every failure kind verifies to the same None."""

    def test_expired_token(self) -> None:
        issued = datetime.now(timezone.utc) - timedelta(hours=2)
        token = sign(3, ROLE_USER, expire_seconds=60, issued_at=issued)
        assert verify(token) is None

    def test_tampered_signature(self) -> None:
        token = sign(3, ROLE_USER)
        head, payload, sig = token.split(".")
        flipped = ("A" if sig[0] != "A" else "B") + sig[1:]
        assert verify(f"{head}.{payload}.{flipped}") is None

    def test_tampered_payload(self) -> None:
        """Swapping in an admin payload from another token breaks the signature."""
        user_token = sign(3, ROLE_USER)
        admin_token = sign(3, ROLE_ADMIN)
        head, _, sig = user_token.split(".")
        _, admin_payload, _ = admin_token.split(".")
        assert verify(f"{head}.{admin_payload}.{sig}") is None

    def test_signed_with_another_key(self) -> None:
        now = datetime.now(timezone.utc)
        token = _encode_raw(
            {"sub": "3", "role": ROLE_ADMIN, "iat": now, "exp": now + timedelta(hours=1)},
            key="x" * 40,
        )
        assert verify(token) is None

    def test_garbage(self) -> None:
        assert verify("not-a-jwt") is None
        assert verify("") is None
        assert verify("a.b.c") is None

    def test_missing_role_claim(self) -> None:
        now = datetime.now(timezone.utc)
        assert verify(_encode_raw({"sub": "3", "iat": now, "exp": now + timedelta(hours=1)})) is None

    def test_missing_exp_claim(self) -> None:
        now = datetime.now(timezone.utc)
        assert verify(_encode_raw({"sub": "3", "role": ROLE_USER, "iat": now})) is None

    def test_unknown_role(self) -> None:
        now = datetime.now(timezone.utc)
        token = _encode_raw({"sub": "3", "role": "superuser", "iat": now, "exp": now + timedelta(hours=1)})
        assert verify(token) is None

    def test_non_numeric_subject(self) -> None:
        now = datetime.now(timezone.utc)
        token = _encode_raw({"sub": "bob", "role": ROLE_USER, "iat": now, "exp": now + timedelta(hours=1)})
        assert verify(token) is None


class TestPasswords:
    def test_hash_verifies(self) -> None:
        hashed = hash_password("Sup3rSecret")
        assert hashed != "Sup3rSecret"
        assert verify_password("Sup3rSecret", hashed)
        assert not verify_password("wrong", hashed)

    def test_malformed_hash_is_a_mismatch(self) -> None:
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class _FakeStore:
    def __init__(self, user=None) -> None:
        self.user = user

    def get_by_email(self, email):
        return self.user


class TestAuthenticateUser:
    def test_unknown_email(self) -> None:
        assert authenticate_user(_FakeStore(), "nobody@example.com", "Whatever1") is None

    def test_wrong_password(self) -> None:
        from auth.models import User

        user = User(name="Bob", email="bob@example.com", hashed_password=hash_password("RightPass1"))
        assert authenticate_user(_FakeStore(user), "bob@example.com", "WrongPass1") is None

    def test_success(self) -> None:
        from auth.models import User

        user = User(name="Bob", email="bob@example.com", hashed_password=hash_password("RightPass1"), id=5)
        assert authenticate_user(_FakeStore(user), "bob@example.com", "RightPass1") is user
