"""Migration generation, artifacts and the ledger-backed runner."""

from ormsync.migrations.files import MigrationFile, load_migrations, write_migration
from ormsync.migrations.generator import GeneratedMigration, MigrationGenerator
from ormsync.migrations.models import (
    Migration,
    MigrationContext,
    MigrationRecord,
    MigrationResult,
    MigrationStatus,
    RollbackResult,
)
from ormsync.migrations.runner import MigrationRunner

__all__ = [
    "GeneratedMigration",
    "Migration",
    "MigrationContext",
    "MigrationFile",
    "MigrationGenerator",
    "MigrationRecord",
    "MigrationResult",
    "MigrationRunner",
    "MigrationStatus",
    "RollbackResult",
    "load_migrations",
    "write_migration",
]
