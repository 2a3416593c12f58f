"""
core/database.py -- Lazily-initialized database handle shared by the stores.

The application owns exactly one Database per process. It is created in the
FastAPI lifespan, placed on app.state, and passed explicitly to UserStore and
BlogStore. Nothing in the codebase reaches for a module-level connection.

The SQLAlchemy engine is not created until the first caller touches
Database.engine, so building the handle is free and import-time side effects
are avoided. Once created, the engine (and its connection pool) is reused for
the lifetime of the handle.

Usage:
    db = Database("sqlite:///inkwell.db")
    users = UserStore(db)
    posts = BlogStore(db)
    db.ping()
    db.dispose()
"""

from __future__ import annotations

import logging
import threading

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine

logger = logging.getLogger("inkwell.db")


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def _sqlite_on_connect(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and a Unicode-aware lower() on every new SQLite connection.

    Set per-connection because SQLite PRAGMAs and functions are not inherited
    by new connections from the pool. The built-in lower() only folds ASCII,
    while post search lower-cases the query with str.lower().
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.create_function("lower", 1, _unicode_lower, deterministic=True)


class Database:
    """Connect-once handle around a SQLAlchemy engine."""

    def __init__(self, url: str) -> None:
        self.url = url
        self._engine: Engine | None = None
        self._lock = threading.Lock()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            with self._lock:
                if self._engine is None:
                    self._engine = self._create_engine()
        return self._engine

    def _create_engine(self) -> Engine:
        connect_args: dict = {}
        is_sqlite = self.url.startswith("sqlite")
        if is_sqlite:
            connect_args["check_same_thread"] = False
        engine = create_engine(self.url, connect_args=connect_args)
        if is_sqlite:
            event.listen(engine, "connect", _sqlite_on_connect)
        logger.info("Database engine created (%s)", engine.url.render_as_string(hide_password=True))
        return engine

    def ping(self) -> bool:
        """Return True if a trivial query succeeds. Used by the health endpoint."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            logger.exception("Database ping failed")
            return False
        return True

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
