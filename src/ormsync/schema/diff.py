"""
Schema diff engine.

Compares an entity's declared columns with the live columns of its table
and returns the change operations that close the gap, together with
non-fatal warnings for changes the dialect cannot express.

Manifesto:
    The diff is a pure function of (declared, live, dialect, flags).
    It never touches a connection, so the same engine drives apply-now
    execution, migration generation and ``schema plan`` dry runs.

    - **Additions:** declared, absent live, never the identity column
    - **Modifications:** type (base, or full for width-sensitive types),
      nullability or uniqueness differ, and the dialect can express it
    - **Removals:** live, undeclared, gated by ``auto_drop_columns``
    - **Keys are fixed:** primary-key columns are never altered or dropped

Architecture:
    ::

        declared (DialectTypeMapper.declared_columns)    live (CatalogReader.columns)
                      │                                       │
                      └──────────────► diff_columns ◄─────────┘
                                           │
                   ┌───────────────────────┼──────────────────────┐
                   ▼                       ▼                      ▼
              AddColumn              ModifyColumn            DropColumn
           (nullable on SQLite     (capability-gated)    (auto_drop_columns
            if NOT NULL declared)                          + supports_drop)
                   │                       │                      │
                   └───────── warnings: SchemaWarning(kind, table, column,
                                          expected, actual) ──────┘

Examples:
    >>> from ormsync.core.dialect import get_dialect
    >>> engine = SchemaDiffEngine(get_dialect("mysql"))
    >>> live = {"id": ColumnInfo("id", "bigint", nullable=False, primary_key=True)}
    >>> declared = [live["id"], ColumnInfo("email", "VARCHAR(255)")]
    >>> [op.describe() for op in engine.diff_columns("users", declared, live).operations]
    ['add column users.email VARCHAR(255)']

Tags:
    schema-diff, migrations, capability-gating, ormsync

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from ormsync.core.dialect import Dialect, ModifyStyle
from ormsync.core.logging import get_logger
from ormsync.schema.descriptors import EntityDescriptor
from ormsync.schema.operations import AddColumn, ChangeOperation, ColumnInfo, DropColumn, ModifyColumn
from ormsync.schema.types import DialectTypeMapper

if TYPE_CHECKING:
    from ormsync.schema.descriptors import EntityRegistry

logger = get_logger(__name__)


class WarningKind(str, Enum):
    CAPABILITY_GAP = "capability_gap"
    UNDECLARED_COLUMN = "undeclared_column"
    DEPENDENCY_CYCLE = "dependency_cycle"
    IRREVERSIBLE = "irreversible"


@dataclass(frozen=True)
class SchemaWarning:
    """A change that was detected but not emitted."""

    kind: WarningKind
    table: str
    message: str
    column: str | None = None
    expected: str | None = None
    actual: str | None = None

    def to_dict(self) -> dict[str, str]:
        result = {"kind": self.kind.value, "table": self.table, "message": self.message}
        for key in ("column", "expected", "actual"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result


@dataclass
class DiffResult:
    table: str
    operations: list[ChangeOperation] = field(default_factory=list)
    warnings: list[SchemaWarning] = field(default_factory=list)

    @property
    def additions(self) -> list[AddColumn]:
        return [op for op in self.operations if isinstance(op, AddColumn)]

    @property
    def modifications(self) -> list[ModifyColumn]:
        return [op for op in self.operations if isinstance(op, ModifyColumn)]

    @property
    def removals(self) -> list[DropColumn]:
        return [op for op in self.operations if isinstance(op, DropColumn)]

    @property
    def is_empty(self) -> bool:
        return not self.operations


def _describe(column: ColumnInfo) -> str:
    parts = [column.data_type, "NULL" if column.nullable else "NOT NULL"]
    if column.unique:
        parts.append("UNIQUE")
    return " ".join(parts)


class SchemaDiffEngine:
    """Compute column-level changes for one dialect.

    Args:
        dialect: Target dialect; its capability flags gate every change.
        auto_drop_columns: Emit ``DropColumn`` for undeclared live columns.
            When False they are only reported.
    """

    def __init__(
        self,
        dialect: Dialect,
        *,
        auto_drop_columns: bool = True,
        mapper: DialectTypeMapper | None = None,
    ):
        self.dialect = dialect
        self.capabilities = dialect.capabilities
        self.auto_drop_columns = auto_drop_columns
        self.mapper = mapper or DialectTypeMapper(dialect)

    def diff(
        self,
        entity: EntityDescriptor,
        live: Mapping[str, ColumnInfo],
        registry: EntityRegistry | None = None,
    ) -> DiffResult:
        """Diff ``entity``'s declared columns against its live ``live`` columns."""
        return self.diff_columns(entity.table_name, self.mapper.declared_columns(entity, registry), live)

    def diff_columns(
        self,
        table: str,
        declared: Iterable[ColumnInfo],
        live: Mapping[str, ColumnInfo],
    ) -> DiffResult:
        result = DiffResult(table)
        declared = list(declared)
        live_by_key = {name.lower(): col for name, col in live.items()}
        declared_keys = {col.name.lower() for col in declared}

        # Additions, then modifications, then removals.
        for column in declared:
            if column.name.lower() not in live_by_key:
                self._addition(result, table, column)
        for column in declared:
            existing = live_by_key.get(column.name.lower())
            if existing is not None:
                self._modification(result, table, column, existing)

        for key, existing in live_by_key.items():
            if key not in declared_keys:
                self._removal(result, table, existing)

        for warning in result.warnings:
            logger.warning(f"schema.{warning.kind.value}", **warning.to_dict())
        return result

    # ── Additions ────────────────────────────────────────────────

    def _addition(self, result: DiffResult, table: str, column: ColumnInfo) -> None:
        if column.primary_key:
            result.warnings.append(
                SchemaWarning(
                    WarningKind.CAPABILITY_GAP, table,
                    "primary key column is missing and cannot be added to an existing table",
                    column=column.name, expected=_describe(column),
                )
            )
            return
        if not column.nullable and not column.raw_definition and not self.capabilities.supports_add_not_null_column:
            result.warnings.append(
                SchemaWarning(
                    WarningKind.CAPABILITY_GAP, table,
                    f"{self.dialect.name} cannot add a NOT NULL column without a default; adding it nullable",
                    column=column.name, expected=_describe(column),
                    actual=_describe(column.with_nullable(True)),
                )
            )
            column = column.with_nullable(True)
        result.operations.append(AddColumn(table, column))

    # ── Modifications ────────────────────────────────────────────

    def _modification(self, result: DiffResult, table: str, column: ColumnInfo, existing: ColumnInfo) -> None:
        if column.primary_key or existing.primary_key or column.raw_definition:
            return

        type_changed = not self.mapper.types_equal(column.data_type, existing.data_type)
        nullable_changed = column.nullable != existing.nullable
        unique_changed = column.unique != existing.unique
        if not (type_changed or nullable_changed or unique_changed):
            return

        missing = []
        if type_changed and not self.capabilities.supports_alter_column_type:
            missing.append("type change")
        if nullable_changed and not self.capabilities.supports_alter_nullable:
            missing.append("nullability change")
        if unique_changed and self.capabilities.modify_style == ModifyStyle.UNSUPPORTED:
            missing.append("uniqueness change")

        if missing:
            result.warnings.append(
                SchemaWarning(
                    WarningKind.CAPABILITY_GAP, table,
                    f"{self.dialect.name} cannot apply {', '.join(missing)}",
                    column=existing.name, expected=_describe(column), actual=_describe(existing),
                )
            )
            return

        # keep the live column name so case differences do not become renames
        declared = ColumnInfo(
            name=existing.name,
            data_type=column.data_type,
            nullable=column.nullable,
            unique=column.unique,
            unique_constraint=column.unique_constraint,
        )
        result.operations.append(ModifyColumn(table, column=declared, previous=existing))

    # ── Removals ─────────────────────────────────────────────────

    def _removal(self, result: DiffResult, table: str, existing: ColumnInfo) -> None:
        if existing.primary_key:
            return
        if not self.auto_drop_columns:
            result.warnings.append(
                SchemaWarning(
                    WarningKind.UNDECLARED_COLUMN, table,
                    "column exists in the database but is not declared",
                    column=existing.name, actual=_describe(existing),
                )
            )
            return
        if not self.capabilities.supports_drop_column:
            result.warnings.append(
                SchemaWarning(
                    WarningKind.CAPABILITY_GAP, table,
                    f"{self.dialect.name} cannot drop columns; remove it manually",
                    column=existing.name, actual=_describe(existing),
                )
            )
            return
        result.operations.append(DropColumn(table, existing.name, previous=existing))


__all__ = [
    "WarningKind",
    "SchemaWarning",
    "DiffResult",
    "SchemaDiffEngine",
]
