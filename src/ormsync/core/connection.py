"""Connection factory: DB-API connections from a ``DatabaseConfig``.

The pool owns pooling, so connections are opened through a SQLAlchemy
engine configured with ``NullPool``; ``engine.raw_connection()`` yields a
plain DB-API connection (``cursor``/``commit``/``rollback``/``close``)
and closing it closes the underlying driver connection.

Examples:
    >>> from ormsync.core.config import DatabaseConfig
    >>> connect = create_connector(DatabaseConfig.sqlite(":memory:"))
    >>> fetchone(connect(), "SELECT 1")
    (1,)

Tags:
    connection, factory, sqlalchemy, dbapi, ormsync
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from ormsync.core.config import DatabaseConfig
from ormsync.core.errors import DatabaseConnectionError
from ormsync.core.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class DBAPIConnection(Protocol):
    """Minimal PEP 249 connection surface the pool and runner rely on."""

    def cursor(self) -> Any: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def close(self) -> None: ...


Connector = Callable[[], DBAPIConnection]


def create_engine_for(config: DatabaseConfig, *, database: str | None = None, **kwargs: Any) -> Engine:
    """Build a non-pooling SQLAlchemy engine for ``config``."""
    kwargs.setdefault("poolclass", NullPool)
    return create_engine(config.url(database=database), **kwargs)


def create_connector(config: DatabaseConfig) -> Connector:
    """Return a zero-argument callable opening a new DB-API connection."""
    engine = create_engine_for(config)
    target = config.redacted()

    def connect() -> DBAPIConnection:
        try:
            return engine.raw_connection()
        except Exception as exc:
            logger.warning("connection.open_failed", target=target, error=str(exc))
            raise DatabaseConnectionError(f"Could not connect to {target}", cause=exc) from exc

    return connect


def execute(conn: DBAPIConnection, sql: str, params: Sequence[Any] | None = None) -> Any:
    """Execute one statement on a fresh cursor and return the cursor."""
    cur = conn.cursor()
    if params is None:
        cur.execute(sql)
    else:
        cur.execute(sql, tuple(params))
    return cur


def fetchall(conn: DBAPIConnection, sql: str, params: Sequence[Any] | None = None) -> list[tuple]:
    cur = execute(conn, sql, params)
    try:
        return [tuple(row) for row in cur.fetchall()]
    finally:
        cur.close()


def fetchone(conn: DBAPIConnection, sql: str, params: Sequence[Any] | None = None) -> tuple | None:
    cur = execute(conn, sql, params)
    try:
        row = cur.fetchone()
        return tuple(row) if row is not None else None
    finally:
        cur.close()


__all__ = [
    "DBAPIConnection",
    "Connector",
    "create_engine_for",
    "create_connector",
    "execute",
    "fetchall",
    "fetchone",
]
