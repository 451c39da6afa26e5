"""
Database engine, session factory and unit-of-work helper.

Every datastore interaction is a short unit of work. Driver timeouts and
connectivity failures are re-raised as ``StoreUnavailable`` so callers can
treat them as retryable.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from labvisit.db.models import Base
from labvisit.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def _install_sqlite_begin(engine: Engine) -> None:
    """SQLAlchemy emits BEGIN; write units open with BEGIN IMMEDIATE and take the file lock up front."""

    @event.listens_for(engine, "connect")
    def _disable_driver_begin(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(connection):
        mode = connection.get_execution_options().get("sqlite_begin", "")
        connection.exec_driver_sql(f"BEGIN {mode}".strip())


def _build_engine(url: str, timeout_seconds: float, echo: bool) -> Engine:
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": timeout_seconds}
        if _is_memory_sqlite(url):
            engine = create_engine(
                url, echo=echo, connect_args=connect_args, poolclass=StaticPool
            )
        else:
            engine = create_engine(url, echo=echo, connect_args=connect_args)
        _install_sqlite_begin(engine)
        return engine
    return create_engine(url, echo=echo, pool_timeout=timeout_seconds, pool_pre_ping=True)


class Database:
    """Relational store holding customers, time slots and appointments."""

    def __init__(self, url: str, timeout_seconds: float = 5.0, echo: bool = False) -> None:
        """Initialize the engine.

        Args:
            url: SQLAlchemy database URL, e.g. ``sqlite:///./labvisit.db``
                 or ``sqlite://`` for an in-memory store.
            timeout_seconds: Upper bound for lock waits and pool checkout.
            echo: Log emitted SQL.
        """
        self.url = url
        self.engine = _build_engine(url, timeout_seconds, echo)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._write_session_factory = sessionmaker(
            bind=self.engine.execution_options(sqlite_begin="IMMEDIATE"), expire_on_commit=False
        )

    def init_schema(self) -> None:
        """Create tables if they don't exist."""
        Base.metadata.create_all(self.engine)
        logger.debug("Schema ready on %s", self.engine.url.render_as_string(hide_password=True))

    @contextmanager
    def unit_of_work(self, write: bool = False) -> Iterator[Session]:
        """Yield a session whose transaction commits on success and rolls back on error.

        ``write=True`` serializes the whole unit against other writers on
        SQLite, including other processes sharing the file.
        """
        factory = self._write_session_factory if write else self._session_factory
        session = factory()
        try:
            yield session
            session.commit()
        except (OperationalError, PoolTimeoutError) as exc:
            session.rollback()
            logger.warning("Datastore unavailable: %s", exc)
            raise StoreUnavailable(str(exc)) from exc
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        """Dispose of the connection pool."""
        self.engine.dispose()
