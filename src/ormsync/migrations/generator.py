"""
Migration generator.

Turns a list of change operations into a reversible ``Migration``: the up
steps are the rendered operations in plan order, the down steps are the
rendered inverses in reverse order, so applying up then down returns the
schema to its starting shape.

Manifesto:
    Generated migrations are reviewed and checked in, not executed blind.
    Everything that cannot be reversed is reported as an ``irreversible``
    warning rather than silently dropped from the down steps.

Examples:
    >>> generator = MigrationGenerator(DdlBuilder(get_dialect("postgresql")))
    >>> generated = generator.generate(plan.operations, description="add email")
    >>> generated.migration.up_statements
    ('ALTER TABLE users ADD COLUMN email VARCHAR(255)',)
    >>> generated.migration.down_statements
    ('ALTER TABLE users DROP COLUMN email',)

Tags:
    migrations, generate-only, reversible, ormsync

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path

from ormsync.core.errors import UnsupportedOperationError
from ormsync.core.logging import get_logger
from ormsync.migrations.files import existing_versions, write_migration
from ormsync.migrations.models import VERSION_FORMAT, Migration
from ormsync.schema.ddl import DdlBuilder
from ormsync.schema.diff import SchemaWarning, WarningKind
from ormsync.schema.operations import ChangeOperation

logger = get_logger(__name__)


@dataclass
class GeneratedMigration:
    migration: Migration
    warnings: list[SchemaWarning] = field(default_factory=list)
    path: Path | None = None

    @property
    def reversible(self) -> bool:
        return not any(w.kind == WarningKind.IRREVERSIBLE for w in self.warnings)


def next_version(
    directory: str | Path | None = None,
    *,
    now: Callable[[], datetime] = datetime.now,
) -> str:
    """Timestamp version, bumped by one second while taken in ``directory``."""
    taken = existing_versions(directory) if directory is not None else set()
    moment = now().replace(microsecond=0)
    version = moment.strftime(VERSION_FORMAT)
    while version in taken:
        moment += timedelta(seconds=1)
        version = moment.strftime(VERSION_FORMAT)
    return version


class MigrationGenerator:
    """Render change operations into up/down statement lists for one dialect."""

    def __init__(self, ddl: DdlBuilder, *, now: Callable[[], datetime] = datetime.now):
        self.ddl = ddl
        self.dialect = ddl.dialect
        self._now = now

    def generate(
        self,
        operations: Sequence[ChangeOperation],
        *,
        description: str = "",
        version: str | None = None,
        directory: str | Path | None = None,
    ) -> GeneratedMigration:
        """Build (but do not write) a migration for ``operations``."""
        version = version or next_version(directory, now=self._now)
        warnings: list[SchemaWarning] = []

        up: list[str] = []
        for op in operations:
            up.extend(self.ddl.render(op))

        down: list[str] = []
        for op in reversed(operations):
            try:
                down.extend(self.ddl.render(op.inverse()))
            except UnsupportedOperationError as exc:
                warnings.append(
                    SchemaWarning(
                        WarningKind.IRREVERSIBLE, op.table,
                        f"{op.describe()} has no down step: {exc.message}",
                        column=getattr(op, "name", None),
                    )
                )
                logger.warning("migration.irreversible", table=op.table, operation=op.kind, error=exc.message)

        migration = Migration(version, up=up, down=down, description=description or _summarize(operations))
        logger.info(
            "migration.generated",
            version=version,
            up=len(up),
            down=len(down),
            irreversible=len(warnings),
        )
        return GeneratedMigration(migration=migration, warnings=warnings)

    def write(self, migration: Migration, directory: str | Path) -> Path:
        return write_migration(migration, directory, dialect=self.dialect.name)


def _summarize(operations: Sequence[ChangeOperation]) -> str:
    if len(operations) == 1:
        return operations[0].describe()
    tables = sorted({op.table for op in operations})
    return f"sync {', '.join(tables)}"


__all__ = ["GeneratedMigration", "MigrationGenerator", "next_version"]
