"""SQL dialect abstraction for schema synchronization.

Provides a ``Dialect`` protocol, one concrete implementation per supported
backend, and the single capability-flag table every planner consults.
The diff engine and DDL builder never branch on a backend name; they ask
``dialect.capabilities`` whether an alteration is expressible and let the
dialect supply placeholders, quoting and catalog queries.

Manifesto:
    The same entity declarations must produce correct DDL on MySQL,
    SQLite, PostgreSQL and SQL Server. Scattering ``if dialect == ...``
    through the planner makes a capability gap on one backend a silent
    bug on another.

    - **One table:** every capability flag lives in ``CAPABILITIES``
    - **Zero coupling:** planners never import a database driver
    - **Quoting by SQLAlchemy:** identifiers go through the backend's
      identifier preparer, quoted only when required

Architecture::

    ┌──────────┐ ┌──────────────┐ ┌──────────┐ ┌──────────────┐
    │ SQLite   │ │ PostgreSQL   │ │ MySQL    │ │ SQL Server   │
    │ ?        │ │ %s           │ │ %s       │ │ %s           │
    │ BEGIN    │ │ implicit txn │ │ implicit │ │ implicit txn │
    │ no ALTER │ │ ALTER..TYPE  │ │ MODIFY   │ │ ALTER COLUMN │
    └──────────┘ └──────────────┘ └──────────┘ └──────────────┘

Examples:
    >>> from ormsync.core.dialect import get_dialect
    >>> d = get_dialect("sqlite")
    >>> d.placeholders(2)
    '?, ?'
    >>> d.capabilities.supports_drop_column
    False
    >>> get_dialect("postgres").quote("order")
    '"order"'

Tags:
    dialect, sql, capabilities, portability, database, ormsync

Doc-Types:
    - API Reference
    - Database Portability Guide
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import Any, Protocol, runtime_checkable

from sqlalchemy.dialects import mssql, mysql, postgresql, sqlite

from ormsync.core.errors import InvalidConfigError


class DatabaseType(str, Enum):
    """Supported database backends."""

    MYSQL = "mysql"
    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    SQLSERVER = "sqlserver"


class AutoColumnStrategy(str, Enum):
    """How an auto-increment primary key is expressed."""

    CLAUSE = "clause"            # BIGINT PRIMARY KEY AUTO_INCREMENT
    SERIAL_TYPE = "serial_type"  # BIGSERIAL PRIMARY KEY


class ModifyStyle(str, Enum):
    """Statement shape used to alter an existing column."""

    MODIFY_COLUMN = "modify_column"          # MySQL: MODIFY COLUMN c <full definition>
    ALTER_COLUMN_TYPE = "alter_column_type"  # PostgreSQL: ALTER COLUMN c TYPE t / SET NOT NULL
    ALTER_COLUMN = "alter_column"            # SQL Server: ALTER COLUMN c <type> [NOT] NULL
    UNSUPPORTED = "unsupported"              # SQLite


@dataclass(frozen=True)
class DialectCapabilities:
    """What a backend can express without rebuilding a table."""

    supports_alter_column_type: bool
    supports_alter_nullable: bool
    supports_drop_column: bool
    supports_add_unique_column: bool
    supports_add_not_null_column: bool
    supports_create_if_not_exists: bool
    transactional_ddl: bool
    auto_increment_clause: str
    auto_column_strategy: AutoColumnStrategy
    add_column_keyword: str
    modify_style: ModifyStyle


CAPABILITIES: dict[DatabaseType, DialectCapabilities] = {
    DatabaseType.MYSQL: DialectCapabilities(
        supports_alter_column_type=True,
        supports_alter_nullable=True,
        supports_drop_column=True,
        supports_add_unique_column=True,
        supports_add_not_null_column=True,
        supports_create_if_not_exists=True,
        transactional_ddl=False,
        auto_increment_clause="AUTO_INCREMENT",
        auto_column_strategy=AutoColumnStrategy.CLAUSE,
        add_column_keyword="ADD COLUMN",
        modify_style=ModifyStyle.MODIFY_COLUMN,
    ),
    DatabaseType.SQLITE: DialectCapabilities(
        supports_alter_column_type=False,
        supports_alter_nullable=False,
        supports_drop_column=False,
        supports_add_unique_column=False,
        supports_add_not_null_column=False,
        supports_create_if_not_exists=True,
        transactional_ddl=True,
        auto_increment_clause="AUTOINCREMENT",
        auto_column_strategy=AutoColumnStrategy.CLAUSE,
        add_column_keyword="ADD COLUMN",
        modify_style=ModifyStyle.UNSUPPORTED,
    ),
    DatabaseType.POSTGRESQL: DialectCapabilities(
        supports_alter_column_type=True,
        supports_alter_nullable=True,
        supports_drop_column=True,
        supports_add_unique_column=True,
        supports_add_not_null_column=True,
        supports_create_if_not_exists=True,
        transactional_ddl=True,
        auto_increment_clause="",
        auto_column_strategy=AutoColumnStrategy.SERIAL_TYPE,
        add_column_keyword="ADD COLUMN",
        modify_style=ModifyStyle.ALTER_COLUMN_TYPE,
    ),
    DatabaseType.SQLSERVER: DialectCapabilities(
        supports_alter_column_type=True,
        supports_alter_nullable=True,
        supports_drop_column=True,
        supports_add_unique_column=True,
        supports_add_not_null_column=True,
        supports_create_if_not_exists=False,
        transactional_ddl=True,
        auto_increment_clause="IDENTITY(1,1)",
        auto_column_strategy=AutoColumnStrategy.CLAUSE,
        add_column_keyword="ADD",
        modify_style=ModifyStyle.ALTER_COLUMN,
    ),
}


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract used by the pool, planner and runner."""

    @property
    def name(self) -> str:
        """Dialect name (e.g. ``'sqlite'``)."""
        ...

    @property
    def db_type(self) -> DatabaseType:
        ...

    @property
    def capabilities(self) -> DialectCapabilities:
        ...

    # -- Connection --------------------------------------------------------

    @property
    def driver(self) -> str:
        """SQLAlchemy ``drivername`` used to open DB-API connections."""
        ...

    @property
    def default_port(self) -> int | None:
        ...

    @property
    def admin_database(self) -> str | None:
        """Server-level database used for CREATE/DROP DATABASE."""
        ...

    @property
    def begin_statement(self) -> str | None:
        """Explicit transaction start, or None when the driver opens one implicitly."""
        ...

    # -- SQL fragments -----------------------------------------------------

    def placeholder(self, index: int = 0) -> str:
        ...

    def placeholders(self, count: int) -> str:
        ...

    def quote(self, identifier: str) -> str:
        """Quote ``identifier`` only if the backend requires it."""
        ...

    def literal(self, value: str) -> str:
        """Render ``value`` as a SQL string literal."""
        ...

    def now(self) -> str:
        ...

    def ping_query(self) -> str:
        """Cheap statement used to validate a pooled connection."""
        ...

    def table_exists_query(self) -> str:
        """Query with one placeholder (table name) returning a row if it exists."""
        ...


# =========================================================================
# Concrete Dialect Implementations
# =========================================================================


class _BaseDialect:
    """Shared behaviour; subclasses set the class attributes."""

    name: str = ""
    db_type: DatabaseType
    driver: str = ""
    default_port: int | None = None
    admin_database: str | None = None
    begin_statement: str | None = None
    _param: str = "%s"

    @property
    def capabilities(self) -> DialectCapabilities:
        return CAPABILITIES[self.db_type]

    @cached_property
    def _sqlalchemy_dialect(self) -> Any:
        raise NotImplementedError

    # -- Placeholders ------------------------------------------------------

    def placeholder(self, index: int = 0) -> str:  # noqa: ARG002
        return self._param

    def placeholders(self, count: int) -> str:
        return ", ".join(self._param for _ in range(count))

    # -- Identifiers / literals -------------------------------------------

    def quote(self, identifier: str) -> str:
        return self._sqlalchemy_dialect.identifier_preparer.quote(identifier)

    def literal(self, value: str) -> str:
        escaped = value.replace("'", "''")
        return f"'{escaped}'"

    # -- Misc --------------------------------------------------------------

    def now(self) -> str:
        return "CURRENT_TIMESTAMP"

    def ping_query(self) -> str:
        return "SELECT 1"

    def table_exists_query(self) -> str:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class SQLiteDialect(_BaseDialect):
    """SQLite dialect - ``?`` placeholders, explicit ``BEGIN``, no column alteration."""

    name = "sqlite"
    db_type = DatabaseType.SQLITE
    driver = "sqlite"
    begin_statement = "BEGIN"
    _param = "?"

    @cached_property
    def _sqlalchemy_dialect(self) -> Any:
        return sqlite.dialect()

    def table_exists_query(self) -> str:
        return "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?"


class MySQLDialect(_BaseDialect):
    """MySQL / MariaDB dialect - ``%s`` placeholders (PyMySQL)."""

    name = "mysql"
    db_type = DatabaseType.MYSQL
    driver = "mysql+pymysql"
    default_port = 3306

    @cached_property
    def _sqlalchemy_dialect(self) -> Any:
        return mysql.dialect()

    def literal(self, value: str) -> str:
        escaped = value.replace("\\", "\\\\").replace("'", "''")
        return f"'{escaped}'"

    def table_exists_query(self) -> str:
        return (
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = DATABASE() AND table_name = %s"
        )


class PostgreSQLDialect(_BaseDialect):
    """PostgreSQL dialect - ``%s`` placeholders (psycopg2)."""

    name = "postgresql"
    db_type = DatabaseType.POSTGRESQL
    driver = "postgresql+psycopg2"
    default_port = 5432
    admin_database = "postgres"

    @cached_property
    def _sqlalchemy_dialect(self) -> Any:
        return postgresql.dialect()

    def table_exists_query(self) -> str:
        return (
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_name = %s"
        )


class SQLServerDialect(_BaseDialect):
    """SQL Server dialect - ``%s`` placeholders (pymssql), ``[bracket]`` quoting."""

    name = "sqlserver"
    db_type = DatabaseType.SQLSERVER
    driver = "mssql+pymssql"
    default_port = 1433
    admin_database = "master"

    @cached_property
    def _sqlalchemy_dialect(self) -> Any:
        return mssql.dialect()

    def literal(self, value: str) -> str:
        escaped = value.replace("'", "''")
        return f"N'{escaped}'"

    def now(self) -> str:
        return "SYSDATETIME()"

    def table_exists_query(self) -> str:
        return (
            "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES "
            "WHERE TABLE_SCHEMA = SCHEMA_NAME() AND TABLE_NAME = %s"
        )


# =========================================================================
# Registry / Factory
# =========================================================================

# Pre-instantiated singletons (dialects are stateless)
_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "mysql": MySQLDialect(),
    "mariadb": MySQLDialect(),  # alias
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),  # alias
    "sqlserver": SQLServerDialect(),
    "mssql": SQLServerDialect(),  # alias
}

_ALIASES = {"mariadb", "postgres", "mssql"}


def get_dialect(db_type: str | DatabaseType) -> Dialect:
    """Get a dialect by database type name.

    Args:
        db_type: A :class:`DatabaseType` or one of ``'sqlite'``, ``'mysql'``,
                 ``'postgresql'``, ``'sqlserver'`` (plus aliases).

    Raises:
        InvalidConfigError: If ``db_type`` is not recognised.
    """
    key = db_type.value if isinstance(db_type, DatabaseType) else str(db_type).lower()
    if key not in _DIALECTS:
        raise InvalidConfigError(
            "dialect",
            db_type,
            f"Unknown dialect '{db_type}'. Supported: {sorted(set(_DIALECTS) - _ALIASES)}",
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (e.g. a test double)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "DatabaseType",
    "AutoColumnStrategy",
    "ModifyStyle",
    "DialectCapabilities",
    "CAPABILITIES",
    "Dialect",
    "SQLiteDialect",
    "MySQLDialect",
    "PostgreSQLDialect",
    "SQLServerDialect",
    "get_dialect",
    "register_dialect",
]
