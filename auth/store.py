"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper (same as blog/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Email uniqueness is enforced twice: a UNIQUE index (authoritative, catches
  races) and email_taken() pre-checks in the routes so the common case gets
  a friendly 400 instead of an IntegrityError.

Connection handling: the store receives a core.database.Database handle and
borrows its lazily-created engine. It never creates or disposes an engine of
its own.

Layer rule: no imports from api/, web/, or blog/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select

from auth.models import ROLE_USER, User
from core.database import Database

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(50), nullable=False),
    Column("email", String(254), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(10), nullable=False, server_default=ROLE_USER),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Fields update_user() accepts. Anything else is a programming error.
_MUTABLE_FIELDS = {"name", "email", "hashed_password", "role"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore(Database("sqlite:///inkwell.db"))
        user_id = store.create_user(User(name="Ann", email="a@x.com", hashed_password=hash_password("...")))
        user = store.get_by_email("a@x.com")
    """

    def __init__(self, db: Database) -> None:
        self.db = db
        _metadata.create_all(self.db.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        with self.db.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email (case-insensitive). Returns None if not found."""
        with self.db.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.db.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def email_taken(self, email: str, exclude_user_id: int | None = None) -> bool:
        """Return True if another account already uses this email.

        exclude_user_id lets profile updates ignore the caller's own record.
        """
        stmt = select(_users.c.id).where(_users.c.email == normalize_email(email))
        if exclude_user_id is not None:
            stmt = stmt.where(_users.c.id != exclude_user_id)
        with self.db.engine.connect() as conn:
            return conn.execute(stmt).first() is not None

    def list_users(self, role: str | None = None) -> list[User]:
        """Return users ordered by creation time, optionally filtered by role."""
        stmt = _users.select().order_by(_users.c.id)
        if role is not None:
            stmt = stmt.where(_users.c.role == role)
        with self.db.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_user(r) for r in rows]

    def get_names(self, user_ids: set[int]) -> dict[int, str]:
        """Return {user_id: name} for the given ids. Missing users are omitted.

        Used to attach author names to post and comment listings without an
        N+1 query per row.
        """
        if not user_ids:
            return {}
        with self.db.engine.connect() as conn:
            rows = conn.execute(select(_users.c.id, _users.c.name).where(_users.c.id.in_(user_ids))).fetchall()
        return {r.id: r.name for r in rows}

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers should pre-check email_taken() and treat IntegrityError as a
        lost race with a concurrent registration.
        """
        now = _now_iso()
        with self.db.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    name=user.name,
                    email=normalize_email(user.email),
                    hashed_password=user.hashed_password,
                    role=user.role,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: name, email, hashed_password, role.
        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if "email" in fields:
            fields["email"] = normalize_email(fields["email"])
        fields["updated_at"] = _now_iso()
        with self.db.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        Posts and comments authored by the user are left in place.
        """
        with self.db.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.hashed_password,
        role=row.role,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
