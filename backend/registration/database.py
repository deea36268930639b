"""Database engine and helpers.

This module wraps the SQLModel/SQLAlchemy engine (and therefore the
connection pool) in a small `Database` handle. The application builds
one handle at startup and hands it to request handlers through FastAPI
dependency injection; tests build their own against a temporary SQLite
file. The engine is created lazily on first use and torn down with
`dispose()` when the application shuts down.
"""

import logging
import threading
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from . import models  # noqa: F401  (registers tables on SQLModel.metadata)

logger = logging.getLogger("registration.database")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Process-wide handle around a lazily created SQLAlchemy engine."""

    def __init__(self, url: str, echo: bool = False, pool_size: int = 5, pool_timeout: int = 30):
        self.url = url
        self.echo = echo
        self.pool_size = pool_size
        self.pool_timeout = pool_timeout
        self._engine: Optional[Engine] = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings) -> "Database":
        return cls(
            settings.DATABASE_URL,
            echo=settings.DB_ECHO,
            pool_size=settings.DB_POOL_SIZE,
            pool_timeout=settings.DB_POOL_TIMEOUT,
        )

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def engine(self) -> Engine:
        """Return the engine, creating it (and its pool) on first access."""
        if self._engine is None:
            with self._lock:
                if self._engine is None:
                    self._engine = self._create_engine()
        return self._engine

    def _create_engine(self) -> Engine:
        if self.is_sqlite:
            engine = create_engine(self.url, echo=self.echo, connect_args={"check_same_thread": False})
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        else:
            engine = create_engine(
                self.url,
                echo=self.echo,
                pool_size=self.pool_size,
                pool_timeout=self.pool_timeout,
                pool_pre_ping=True,
            )
        logger.info("engine created for %s", engine.url.render_as_string(hide_password=True))
        return engine

    def create_db_and_tables(self):
        """Create database tables using SQLModel metadata.

        This is intended for local development and tests; it never alters
        existing tables.
        """
        SQLModel.metadata.create_all(self.engine)

    def session(self) -> Session:
        """Acquire a new `Session` bound to the pool. Callers must close it."""
        return Session(self.engine)

    def ping(self):
        """Round-trip a trivial statement; raises if the store is unreachable."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def dispose(self):
        """Close every pooled connection and forget the engine."""
        with self._lock:
            engine, self._engine = self._engine, None
        if engine is not None:
            engine.dispose()
            logger.info("database connection pool disposed")


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_session(request: Request) -> Iterator[Session]:
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed (returned to
    the pool) when the request scope finishes.
    """
    with get_database(request).session() as session:
        yield session
