"""Migration runner.

Tracks applied versions in the ``schema_migrations`` ledger and applies
pending migrations in ascending version order. Each migration's up steps
and its ledger row share one transaction; a failure rolls both back and
stops the run.

Example::

    from ormsync.core.pool import ConnectionPool
    from ormsync.migrations import MigrationRunner

    runner = MigrationRunner(pool)
    runner.load_directory("migrations")
    result = runner.apply()
    print(f"Applied {len(result.applied)} migrations")
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from ormsync.core.connection import DBAPIConnection, execute, fetchall
from ormsync.core.errors import MigrationError
from ormsync.core.logging import LogContext, get_logger
from ormsync.core.pool import ConnectionPool
from ormsync.migrations.files import load_migrations
from ormsync.migrations.models import (
    Migration,
    MigrationContext,
    MigrationRecord,
    MigrationResult,
    MigrationStatus,
    RollbackResult,
    parse_applied_at,
)
from ormsync.schema.ddl import LEDGER_TABLE, DdlBuilder

logger = get_logger(__name__)


class MigrationRunner:
    """Applies and rolls back registered migrations.

    Parameters
    ----------
    pool
        Connection pool for the target database.
    migrations
        Initial migrations; more can be added with :meth:`add` or
        :meth:`load_directory`.
    table
        Ledger table name.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        migrations: Iterable[Migration] | None = None,
        table: str = LEDGER_TABLE,
    ) -> None:
        self.pool = pool
        self.dialect = pool.dialect
        self.table = table
        self._ddl = DdlBuilder(self.dialect)
        self._migrations: dict[str, Migration] = {}
        for migration in migrations or ():
            self.add(migration)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add(self, migration: Migration) -> MigrationRunner:
        if migration.version in self._migrations:
            raise ValueError(f"Duplicate migration version: {migration.version}")
        self._migrations[migration.version] = migration
        return self

    register = add

    def load_directory(self, directory: str | Path) -> int:
        """Register every artifact in ``directory``; returns how many were added."""
        loaded = load_migrations(directory)
        for migration in loaded:
            self.add(migration)
        return len(loaded)

    @property
    def migrations(self) -> list[Migration]:
        """Registered migrations in ascending version order."""
        return [self._migrations[v] for v in sorted(self._migrations, key=_version_key)]

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def ensure_ledger(self) -> None:
        with self.pool.acquire() as conn:
            self._ensure_ledger(conn)

    def _ensure_ledger(self, conn: DBAPIConnection) -> None:
        execute(conn, self._ddl.ledger_table(self.table)).close()
        conn.commit()

    def _read_ledger(self, conn: DBAPIConnection) -> list[MigrationRecord]:
        q = self.dialect.quote
        rows = fetchall(conn, f"SELECT {q('version')}, {q('applied_at')} FROM {q(self.table)}")
        # commit ends any implicit read transaction before an explicit BEGIN
        conn.commit()
        records = [MigrationRecord(version=str(row[0]), applied_at=parse_applied_at(row[1])) for row in rows]
        return sorted(records, key=lambda r: _version_key(r.version))

    def applied(self) -> list[MigrationRecord]:
        """Ledger rows in ascending version order."""
        with self.pool.acquire() as conn:
            self._ensure_ledger(conn)
            return self._read_ledger(conn)

    def pending(self) -> list[Migration]:
        """Registered migrations not yet in the ledger, ascending."""
        done = {r.version for r in self.applied()}
        return [m for m in self.migrations if m.version not in done]

    def status(self) -> list[MigrationStatus]:
        """Every known version: registered, applied, or both."""
        records = {r.version: r for r in self.applied()}
        versions = set(records) | set(self._migrations)
        result = []
        for version in sorted(versions, key=_version_key):
            migration = self._migrations.get(version)
            record = records.get(version)
            result.append(
                MigrationStatus(
                    version=version,
                    description=migration.description if migration else "",
                    applied=record is not None,
                    applied_at=record.applied_at if record else None,
                    known=migration is not None,
                )
            )
        return result

    # ------------------------------------------------------------------
    # Apply / rollback
    # ------------------------------------------------------------------

    def apply(self) -> MigrationResult:
        """Apply all pending migrations in ascending version order.

        Raises:
            MigrationError: A migration failed. Earlier migrations in this
                run stay applied; ``error.result`` lists them.
        """
        result = MigrationResult()
        with self.pool.acquire() as conn, LogContext(dialect=self.dialect.name, mode="migrate"):
            self._ensure_ledger(conn)
            done = {r.version for r in self._read_ledger(conn)}

            for migration in self.migrations:
                if migration.version in done:
                    result.skipped.append(migration.version)
                    continue
                try:
                    self._run(conn, migration, forward=True)
                except MigrationError as exc:
                    result.errors[migration.version] = str(exc.cause or exc)
                    exc.result = result
                    raise
                result.applied.append(migration.version)

        logger.info("migration.run_complete", applied=len(result.applied), skipped=len(result.skipped))
        return result

    def rollback(self, steps: int = 1) -> RollbackResult:
        """Undo the ``steps`` most recently applied known migrations.

        Stops at the first failure and raises :class:`MigrationError`.
        Ledger versions without a registered migration are skipped.
        """
        result = RollbackResult()
        if steps < 1:
            return result
        with self.pool.acquire() as conn, LogContext(dialect=self.dialect.name, mode="rollback"):
            self._ensure_ledger(conn)
            records = self._read_ledger(conn)

            targets = []
            for record in reversed(records):
                migration = self._migrations.get(record.version)
                if migration is None:
                    logger.warning("migration.unknown_version", version=record.version)
                    continue
                targets.append(migration)
                if len(targets) == steps:
                    break

            for migration in targets:
                try:
                    self._run(conn, migration, forward=False)
                except MigrationError as exc:
                    result.errors[migration.version] = str(exc.cause or exc)
                    exc.result = result
                    raise
                result.rolled_back.append(migration.version)
        return result

    def _run(self, conn: DBAPIConnection, migration: Migration, *, forward: bool) -> None:
        """Run one direction of ``migration`` plus its ledger change in one transaction."""
        ctx = MigrationContext(conn, self.dialect)
        q = self.dialect.quote
        action = "apply" if forward else "rollback"
        try:
            if self.dialect.begin_statement:
                ctx.execute(self.dialect.begin_statement)
            if forward:
                migration.up(ctx)
                ctx.execute(
                    f"INSERT INTO {q(self.table)} ({q('version')}) VALUES ({self.dialect.placeholder()})",
                    (migration.version,),
                )
            else:
                migration.down(ctx)
                ctx.execute(
                    f"DELETE FROM {q(self.table)} WHERE {q('version')} = {self.dialect.placeholder()}",
                    (migration.version,),
                )
            conn.commit()
        except Exception as exc:
            try:
                conn.rollback()
            except Exception as rollback_exc:
                logger.error("migration.rollback_failed", version=migration.version, error=str(rollback_exc))
            logger.error(
                "migration.failed",
                version=migration.version,
                action=action,
                statement=ctx.current,
                error=str(exc),
            )
            raise MigrationError(
                migration.version,
                f"Migration {migration.version} failed during {action}: {exc}",
                statement=ctx.current,
                cause=exc,
            ) from exc

        event = "migration.applied" if forward else "migration.rolled_back"
        logger.info(event, version=migration.version, description=migration.description)


def _version_key(version: str) -> tuple[int, str]:
    return (int(version), version) if version.isdigit() else (0, version)


__all__ = ["MigrationRunner"]
