"""Create and drop the target database itself.

Runs on a server-level connection (``postgres`` / ``master`` / no default
database for MySQL) through a SQLAlchemy engine in ``AUTOCOMMIT`` mode,
because PostgreSQL and SQL Server refuse CREATE/DROP DATABASE inside a
transaction. SQLite databases are files: create touches the file, drop
deletes it.
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ormsync.core.config import DatabaseConfig
from ormsync.core.connection import create_engine_for
from ormsync.core.dialect import DatabaseType, Dialect, get_dialect
from ormsync.core.errors import DatabaseError, StatementError
from ormsync.core.logging import get_logger

logger = get_logger(__name__)

_MEMORY = ":memory:"


def create_database_statements(config: DatabaseConfig) -> list[str]:
    """Statements that create ``config.database`` if it does not exist."""
    dialect = get_dialect(config.dialect)
    name = config.database or ""
    ident = dialect.quote(name)

    if config.dialect == DatabaseType.MYSQL:
        charset = config.charset or "utf8mb4"
        return [
            f"CREATE DATABASE IF NOT EXISTS {ident} "
            f"CHARACTER SET {charset} COLLATE {charset}_unicode_ci"
        ]
    if config.dialect == DatabaseType.POSTGRESQL:
        encoding = config.charset or "UTF8"
        return [f"CREATE DATABASE {ident} WITH ENCODING {dialect.literal(encoding)}"]
    if config.dialect == DatabaseType.SQLSERVER:
        return [
            f"IF NOT EXISTS (SELECT name FROM sys.databases WHERE name = {dialect.literal(name)}) "
            f"CREATE DATABASE {ident}"
        ]
    return []


def drop_database_statements(config: DatabaseConfig) -> list[str]:
    """Statements that drop ``config.database``, disconnecting other sessions first."""
    dialect = get_dialect(config.dialect)
    name = config.database or ""
    ident = dialect.quote(name)

    if config.dialect == DatabaseType.MYSQL:
        return [f"DROP DATABASE IF EXISTS {ident}"]
    if config.dialect == DatabaseType.POSTGRESQL:
        return [
            "SELECT pg_terminate_backend(pid) FROM pg_stat_activity "
            f"WHERE datname = {dialect.literal(name)} AND pid <> pg_backend_pid()",
            f"DROP DATABASE IF EXISTS {ident}",
        ]
    if config.dialect == DatabaseType.SQLSERVER:
        return [
            f"IF EXISTS (SELECT name FROM sys.databases WHERE name = {dialect.literal(name)}) "
            f"BEGIN ALTER DATABASE {ident} SET SINGLE_USER WITH ROLLBACK IMMEDIATE; "
            f"DROP DATABASE {ident}; END"
        ]
    return []


def _database_exists(conn, dialect: Dialect, name: str) -> bool:
    if dialect.db_type != DatabaseType.POSTGRESQL:
        return False
    row = conn.execute(
        text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": name}
    ).first()
    return row is not None


def _run_admin(config: DatabaseConfig, statements: list[str], *, skip_if_exists: bool = False) -> None:
    dialect = get_dialect(config.dialect)
    engine = create_engine_for(
        config,
        database=dialect.admin_database or "",
        isolation_level="AUTOCOMMIT",
    )
    try:
        with engine.connect() as conn:
            if skip_if_exists and _database_exists(conn, dialect, config.database or ""):
                logger.info("database.exists", database=config.database)
                return
            for sql in statements:
                try:
                    conn.execute(text(sql))
                except SQLAlchemyError as exc:
                    raise StatementError(sql, cause=exc).with_context(dialect=dialect.name) from exc
    except SQLAlchemyError as exc:
        raise DatabaseError(f"Admin connection failed: {exc}", cause=exc) from exc
    finally:
        engine.dispose()


def create_database(config: DatabaseConfig) -> None:
    """Create the configured database if it does not already exist."""
    if config.dialect == DatabaseType.SQLITE:
        if config.path and config.path != _MEMORY:
            path = Path(config.path)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.touch(exist_ok=True)
        logger.info("database.created", path=config.path)
        return
    _run_admin(config, create_database_statements(config), skip_if_exists=True)
    logger.info("database.created", database=config.database, dialect=config.dialect.value)


def drop_database(config: DatabaseConfig) -> None:
    """Drop the configured database if it exists."""
    if config.dialect == DatabaseType.SQLITE:
        if config.path and config.path != _MEMORY:
            Path(config.path).unlink(missing_ok=True)
        logger.info("database.dropped", path=config.path)
        return
    _run_admin(config, drop_database_statements(config))
    logger.info("database.dropped", database=config.database, dialect=config.dialect.value)


__all__ = [
    "create_database",
    "drop_database",
    "create_database_statements",
    "drop_database_statements",
]
