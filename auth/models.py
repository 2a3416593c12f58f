"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in blog/models.py -- dataclasses own domain shape; stores and routes do the
work.

Layer rule: no imports from api/, web/, or blog/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)


@dataclass
class User:
    """Represents a registered author, reader, or administrator.

    email is the login identifier and is unique across all users. It is
    stored lower-cased so lookups are case-insensitive.

    id is None before the record is written to the database.
    """

    name: str
    email: str
    hashed_password: str
    role: str = ROLE_USER  # "user" | "admin"
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


@dataclass(frozen=True)
class TokenClaims:
    """The verified contents of a session token.

    Decoding never hands callers the raw JWT payload dict -- it is validated
    into this fixed record, and payloads missing any field are rejected.
    """

    subject_id: int
    role: str
    issued_at: datetime
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
