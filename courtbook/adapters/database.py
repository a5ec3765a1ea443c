"""
Database engine and session handling.

Every unit of work runs inside ``Database.session()``: it commits on success,
rolls back on any error, and turns SQLAlchemy infrastructure errors into
``StorageFault`` so callers only deal with domain exceptions.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..domain.exceptions import BookingError, StorageFault
from .tables import Base

logger = logging.getLogger(__name__)


def _connect_args(database_url: str, timeout_seconds: float) -> Dict[str, Any]:
    """Driver arguments that bound how long a single call may block."""
    if database_url.startswith("sqlite"):
        # check_same_thread=False: sessions are handed out to worker threads
        return {"check_same_thread": False, "timeout": timeout_seconds}
    if database_url.startswith("postgresql"):
        timeout_ms = int(timeout_seconds * 1000)
        return {
            "connect_timeout": max(1, int(timeout_seconds)),
            "options": f"-c statement_timeout={timeout_ms} -c lock_timeout={timeout_ms}",
        }
    return {}


def create_database_engine(database_url: str, timeout_seconds: float = 5.0) -> Engine:
    """Create an engine whose calls fail instead of hanging past the timeout."""
    engine = create_engine(
        database_url,
        connect_args=_connect_args(database_url, timeout_seconds),
        pool_pre_ping=True,
        pool_timeout=timeout_seconds,
    )

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine, "connect")
        def enable_sqlite_fk(dbapi_connection, _):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


class Database:
    """Owns the engine and hands out transactional sessions."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = sessionmaker(
            bind=engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    @classmethod
    def from_url(cls, database_url: str, timeout_seconds: float = 5.0) -> "Database":
        return cls(create_database_engine(database_url, timeout_seconds))

    def create_schema(self) -> None:
        """Create all tables that do not exist yet."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageFault(f"Could not create schema: {exc}") from exc

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Transactional scope around a series of operations.

        Raises:
            StorageFault: if the database fails or times out; the
                transaction has been rolled back
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except BookingError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            logger.warning("Storage operation failed, transaction rolled back: %s", exc)
            raise StorageFault(f"Storage operation failed: {exc}") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
