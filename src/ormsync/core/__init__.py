"""ormsync core -- errors, logging, configuration, dialects and connections.

Architecture::

    errors.py          Structured error hierarchy (OrmSyncError, PoolExhaustedError, ...)
    logging.py         structlog configuration and context binding
    config/            DatabaseConfig, PoolConfig, OrmSyncSettings (pydantic-settings)
    dialect.py         DatabaseType, capability table, quoting, placeholders
    connection.py      DB-API connector built on SQLAlchemy URLs/engines
    pool.py            Bounded validating ConnectionPool + process-wide lifecycle
    database.py        CREATE/DROP DATABASE helpers
"""

from ormsync.core.config import DatabaseConfig, PoolConfig
from ormsync.core.dialect import DatabaseType, Dialect, get_dialect
from ormsync.core.errors import OrmSyncError
from ormsync.core.pool import ConnectionPool, PooledConnection

__all__ = [
    "ConnectionPool",
    "DatabaseConfig",
    "DatabaseType",
    "Dialect",
    "OrmSyncError",
    "PoolConfig",
    "PooledConnection",
    "get_dialect",
]
