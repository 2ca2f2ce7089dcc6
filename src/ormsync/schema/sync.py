"""
Schema synchronizer.

Drives one synchronization pass over an ``EntityRegistry``:

1. order entities dependency-first
2. per entity: absent table -> ``CreateTable``; present -> diff columns
3. per many-to-many relation: absent join table -> ``CreateJoinTable``

The resulting ``SyncPlan`` is then either executed statement by
statement (apply-now) or handed to the migration generator
(generate-only).

Examples:
    >>> sync = SchemaSynchronizer(registry, pool)
    >>> plan = sync.plan()
    >>> for op in plan.operations:
    ...     print(op.describe())
    >>> sync.apply()                        # apply-now, fail-fast
    >>> sync.generate(directory="migrations")  # write a reversible migration

Guardrails:
    ❌ DON'T: Run two synchronizers against one database concurrently
    ✅ DO: Use generate-only + the migration runner for shared databases

Tags:
    schema-sync, ddl, apply-now, generate-only, ormsync

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from ormsync.core.connection import DBAPIConnection, execute
from ormsync.core.errors import StatementError
from ormsync.core.logging import LogContext, get_logger
from ormsync.core.pool import ConnectionPool
from ormsync.schema.ddl import DdlBuilder
from ormsync.schema.descriptors import EntityRegistry
from ormsync.schema.diff import SchemaDiffEngine, SchemaWarning, WarningKind
from ormsync.schema.graph import dependency_order
from ormsync.schema.introspect import CatalogReader, catalog_reader
from ormsync.schema.operations import ChangeOperation, CreateJoinTable, CreateTable
from ormsync.schema.types import DialectTypeMapper

if TYPE_CHECKING:
    from ormsync.migrations.generator import GeneratedMigration

logger = get_logger(__name__)


@dataclass
class SyncPlan:
    """Ordered operations for one pass plus everything that was skipped."""

    operations: list[ChangeOperation] = field(default_factory=list)
    warnings: list[SchemaWarning] = field(default_factory=list)
    order: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.operations


@dataclass
class SyncResult:
    plan: SyncPlan
    executed: list[str] = field(default_factory=list)


class SchemaSynchronizer:
    """Plan and apply schema changes for a registry against one pool.

    Args:
        registry: Declared entities.
        pool: Connection pool for the target database.
        auto_drop_columns: Drop live columns that are no longer declared.
        fail_on_cycles: Raise on circular many-to-one references instead of
            warning and continuing.
    """

    def __init__(
        self,
        registry: EntityRegistry,
        pool: ConnectionPool,
        *,
        auto_drop_columns: bool = True,
        fail_on_cycles: bool = False,
    ):
        self.registry = registry
        self.pool = pool
        self.dialect = pool.dialect
        self.fail_on_cycles = fail_on_cycles
        self.mapper = DialectTypeMapper(self.dialect)
        self.ddl = DdlBuilder(self.dialect, self.mapper)
        self.diff_engine = SchemaDiffEngine(
            self.dialect, auto_drop_columns=auto_drop_columns, mapper=self.mapper
        )
        self.catalog: CatalogReader = catalog_reader(self.dialect)

    # ── Planning ─────────────────────────────────────────────────

    def plan(self) -> SyncPlan:
        """Compute the operations that bring the live schema in line with the registry."""
        with self.pool.acquire() as conn:
            return self._plan(conn)

    def _plan(self, conn: DBAPIConnection) -> SyncPlan:
        ordered = dependency_order(self.registry, strict=self.fail_on_cycles)
        plan = SyncPlan(order=ordered.names)
        for cycle in ordered.cycles:
            plan.warnings.append(
                SchemaWarning(
                    WarningKind.DEPENDENCY_CYCLE, cycle[0],
                    f"circular reference {' -> '.join(cycle)}; creation order is best-effort",
                )
            )

        for entity in ordered.order:
            table = entity.table_name
            if not self.catalog.table_exists(conn, table):
                plan.operations.append(CreateTable(table, self.ddl.create_table(entity, self.registry)))
                continue
            result = self.diff_engine.diff(entity, self.catalog.columns(conn, table), self.registry)
            plan.operations.extend(result.operations)
            plan.warnings.extend(result.warnings)

        planned: set[str] = set()
        for entity in ordered.order:
            for ref in entity.many_to_many:
                join = self.registry.join_table(entity, ref)
                key = join.name.lower()
                if key in planned:
                    continue
                planned.add(key)
                if not self.catalog.table_exists(conn, join.name):
                    plan.operations.append(CreateJoinTable(join.name, self.ddl.create_join_table(join)))

        logger.info(
            "schema.plan_built",
            dialect=self.dialect.name,
            operations=len(plan.operations),
            warnings=len(plan.warnings),
        )
        return plan

    # ── Apply-now ────────────────────────────────────────────────

    def apply(self, plan: SyncPlan | None = None) -> SyncResult:
        """Execute ``plan`` (or a fresh one) statement by statement.

        Each statement is committed on its own. The first failure raises
        :class:`StatementError`; statements before it stay applied.
        """
        with self.pool.acquire() as conn, LogContext(dialect=self.dialect.name, mode="apply"):
            plan = plan or self._plan(conn)
            result = SyncResult(plan=plan)
            for op in plan.operations:
                for sql in self.ddl.render(op):
                    self._execute(conn, sql, op)
                    result.executed.append(sql)
                logger.info("schema.operation_applied", operation=op.kind, table=op.table)
        logger.info("schema.sync_complete", statements=len(result.executed))
        return result

    def _execute(self, conn: DBAPIConnection, sql: str, op: ChangeOperation) -> None:
        try:
            execute(conn, sql).close()
            conn.commit()
        except Exception as exc:
            conn.rollback()
            logger.error("schema.statement_failed", table=op.table, statement=sql, error=str(exc))
            raise StatementError(sql, cause=exc).with_context(
                table=op.table, dialect=self.dialect.name
            ) from exc

    # ── Generate-only ────────────────────────────────────────────

    def generate(
        self,
        *,
        description: str = "",
        version: str | None = None,
        directory: str | Path | None = None,
    ) -> GeneratedMigration | None:
        """Serialize the current plan into a reversible migration.

        Returns None when there is nothing to change. With ``directory``
        the migration is also written as a YAML artifact.
        """
        from ormsync.migrations.generator import MigrationGenerator

        plan = self.plan()
        if plan.is_empty:
            logger.info("schema.no_changes")
            return None
        generator = MigrationGenerator(self.ddl)
        generated = generator.generate(
            plan.operations, description=description, version=version, directory=directory
        )
        generated.warnings[:0] = plan.warnings
        if directory is not None:
            generated.path = generator.write(generated.migration, directory)
        return generated


__all__ = ["SyncPlan", "SyncResult", "SchemaSynchronizer"]
