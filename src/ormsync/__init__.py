"""
ormsync - schema synchronization and migrations for declared entities.

Declare entities with ``EntityBuilder``, register them in an
``EntityRegistry``, and let ``SchemaSynchronizer`` bring a MySQL,
PostgreSQL, SQL Server or SQLite schema in line, either directly or
through reviewable, reversible migrations run by ``MigrationRunner``.
"""

__version__ = "0.1.0"

from ormsync.core import ConnectionPool, DatabaseConfig, DatabaseType, PoolConfig, get_dialect
from ormsync.migrations import Migration, MigrationRunner
from ormsync.schema import EntityBuilder, EntityRegistry, FieldType, SchemaSynchronizer

__all__ = [
    "__version__",
    "ConnectionPool",
    "DatabaseConfig",
    "DatabaseType",
    "EntityBuilder",
    "EntityRegistry",
    "FieldType",
    "Migration",
    "MigrationRunner",
    "PoolConfig",
    "SchemaSynchronizer",
    "get_dialect",
]
