"""Column snapshots and schema change operations.

``ColumnInfo`` describes one column, either read from the live catalog or
derived from a declaration. Change operations are plain frozen values;
the DDL builder renders them per dialect and ``inverse()`` yields the
operation that undoes them, which is how migration down-steps are built.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Union

from ormsync.core.errors import UnsupportedOperationError


@dataclass(frozen=True)
class ColumnInfo:
    """One column's type, nullability and key flags.

    ``unique_constraint`` is the live constraint/index name when known.
    ``raw_definition`` marks an explicit column definition rendered
    verbatim; such columns are never compared for modification.
    """

    name: str
    data_type: str
    nullable: bool = True
    primary_key: bool = False
    unique: bool = False
    unique_constraint: str | None = None
    raw_definition: bool = False

    def with_nullable(self, nullable: bool) -> ColumnInfo:
        return replace(self, nullable=nullable)


@dataclass(frozen=True)
class AddColumn:
    table: str
    column: ColumnInfo

    kind = "add_column"

    def inverse(self) -> DropColumn:
        return DropColumn(self.table, self.column.name, previous=self.column)

    def describe(self) -> str:
        return f"add column {self.table}.{self.column.name} {self.column.data_type}"


@dataclass(frozen=True)
class ModifyColumn:
    """Alter ``previous`` (live) into ``column`` (declared)."""

    table: str
    column: ColumnInfo
    previous: ColumnInfo

    kind = "modify_column"

    def inverse(self) -> ModifyColumn:
        return ModifyColumn(self.table, column=self.previous, previous=self.column)

    @property
    def nullable_changed(self) -> bool:
        return self.column.nullable != self.previous.nullable

    @property
    def unique_changed(self) -> bool:
        return self.column.unique != self.previous.unique

    def describe(self) -> str:
        return (
            f"modify column {self.table}.{self.column.name} "
            f"{self.previous.data_type} -> {self.column.data_type}"
        )


@dataclass(frozen=True)
class DropColumn:
    table: str
    name: str
    previous: ColumnInfo | None = None

    kind = "drop_column"

    def inverse(self) -> AddColumn:
        if self.previous is None:
            raise UnsupportedOperationError(
                "drop_column inverse", "any",
                f"Cannot re-create {self.table}.{self.name}: its previous definition is unknown",
            )
        return AddColumn(self.table, self.previous)

    def describe(self) -> str:
        return f"drop column {self.table}.{self.name}"


@dataclass(frozen=True)
class CreateTable:
    table: str
    ddl: str

    kind = "create_table"

    def inverse(self) -> DropTable:
        return DropTable(self.table)

    def describe(self) -> str:
        return f"create table {self.table}"


@dataclass(frozen=True)
class CreateJoinTable:
    table: str
    ddl: str

    kind = "create_join_table"

    def inverse(self) -> DropTable:
        return DropTable(self.table)

    def describe(self) -> str:
        return f"create join table {self.table}"


@dataclass(frozen=True)
class DropTable:
    """Only produced as the inverse of a table creation."""

    table: str

    kind = "drop_table"

    def inverse(self) -> None:
        raise UnsupportedOperationError(
            "drop_table inverse", "any", f"Dropping {self.table} cannot be reversed"
        )

    def describe(self) -> str:
        return f"drop table {self.table}"


ChangeOperation = Union[AddColumn, ModifyColumn, DropColumn, CreateTable, CreateJoinTable, DropTable]


__all__ = [
    "ColumnInfo",
    "AddColumn",
    "ModifyColumn",
    "DropColumn",
    "CreateTable",
    "CreateJoinTable",
    "DropTable",
    "ChangeOperation",
]
