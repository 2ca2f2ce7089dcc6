"""Migration units, execution context and ledger records."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ormsync.core.connection import DBAPIConnection, execute
from ormsync.core.dialect import Dialect
from ormsync.core.logging import get_logger

logger = get_logger(__name__)

VERSION_FORMAT = "%Y%m%d%H%M%S"


class MigrationContext:
    """What a migration's ``up``/``down`` runs against.

    Statements run on the runner's connection inside the migration's
    transaction; ``executed`` records them in order.
    """

    def __init__(self, conn: DBAPIConnection, dialect: Dialect):
        self.conn = conn
        self.dialect = dialect
        self.executed: list[str] = []
        self.current: str | None = None

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> None:
        self.current = sql
        execute(self.conn, sql, params).close()
        self.executed.append(sql)
        logger.debug("migration.statement", statement=sql)


class Migration:
    """A versioned, reversible unit of schema change.

    Generated migrations carry their statements; hand-written ones can
    subclass and override :meth:`up` / :meth:`down`.

    Example::

        class AddAuditTable(Migration):
            version = "20240101120000"
            description = "audit table"

            def up(self, ctx):
                ctx.execute("CREATE TABLE audit (id INTEGER PRIMARY KEY)")

            def down(self, ctx):
                ctx.execute("DROP TABLE audit")
    """

    version: str = ""
    description: str = ""

    def __init__(
        self,
        version: str | None = None,
        up: Sequence[str] = (),
        down: Sequence[str] = (),
        description: str | None = None,
    ):
        if version is not None:
            self.version = version
        if description is not None:
            self.description = description
        if not self.version:
            raise ValueError(f"{type(self).__name__} has no version")
        self.up_statements: tuple[str, ...] = tuple(up)
        self.down_statements: tuple[str, ...] = tuple(down)

    def up(self, ctx: MigrationContext) -> None:
        for sql in self.up_statements:
            ctx.execute(sql)

    def down(self, ctx: MigrationContext) -> None:
        for sql in self.down_statements:
            ctx.execute(sql)

    @property
    def name(self) -> str:
        return f"Version{self.version}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.version!r}, {self.description!r})"


@dataclass
class MigrationRecord:
    """Row of the ``schema_migrations`` ledger."""

    version: str
    applied_at: datetime | str | None = None


@dataclass
class MigrationResult:
    """Result of an apply run."""

    applied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


@dataclass
class RollbackResult:
    rolled_back: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


@dataclass(frozen=True)
class MigrationStatus:
    version: str
    description: str
    applied: bool
    applied_at: datetime | str | None = None
    known: bool = True


def parse_applied_at(value: Any) -> datetime | str | None:
    """Drivers return ``applied_at`` as datetime or text; normalize when possible."""
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return str(value)


__all__ = [
    "VERSION_FORMAT",
    "MigrationContext",
    "Migration",
    "MigrationRecord",
    "MigrationResult",
    "RollbackResult",
    "MigrationStatus",
    "parse_applied_at",
]
