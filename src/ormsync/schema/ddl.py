"""DDL rendering for change operations.

``DdlBuilder`` turns descriptors and change operations into statement
strings for one dialect. Identifiers are validated at registration and
quoted here through the dialect, so a column named ``order`` renders
backtick-quoted on MySQL and double-quoted on PostgreSQL while ordinary
snake_case names stay bare.

Statement shapes::

    CREATE TABLE IF NOT EXISTS users (
        id BIGINT PRIMARY KEY AUTO_INCREMENT,
        username VARCHAR(20) NOT NULL UNIQUE,
        CONSTRAINT fk_users_team_id FOREIGN KEY (team_id) REFERENCES teams(id)
    )
    ALTER TABLE users ADD COLUMN email VARCHAR(255)        -- SQL Server: ADD
    ALTER TABLE users MODIFY COLUMN email VARCHAR(320)     -- MySQL
    ALTER TABLE users ALTER COLUMN email TYPE VARCHAR(320) -- PostgreSQL
    ALTER TABLE users ALTER COLUMN email NVARCHAR(320) NULL  -- SQL Server
    ALTER TABLE users DROP COLUMN phone
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ormsync.core.dialect import AutoColumnStrategy, DatabaseType, Dialect, ModifyStyle
from ormsync.core.errors import UnsupportedOperationError
from ormsync.schema.descriptors import EntityDescriptor, JoinTable
from ormsync.schema.operations import (
    AddColumn,
    ChangeOperation,
    ColumnInfo,
    CreateJoinTable,
    CreateTable,
    DropColumn,
    DropTable,
    ModifyColumn,
)
from ormsync.schema.types import DialectTypeMapper

if TYPE_CHECKING:
    from ormsync.schema.descriptors import EntityRegistry

INDENT = "    "
LEDGER_TABLE = "schema_migrations"


class DdlBuilder:
    """Render DDL for one dialect."""

    def __init__(self, dialect: Dialect, mapper: DialectTypeMapper | None = None):
        self.dialect = dialect
        self.mapper = mapper or DialectTypeMapper(dialect)
        self.capabilities = dialect.capabilities

    def q(self, identifier: str) -> str:
        return self.dialect.quote(identifier)

    # ── Naming ───────────────────────────────────────────────────

    @staticmethod
    def foreign_key_name(table: str, column: str) -> str:
        return f"fk_{table}_{column}"

    @staticmethod
    def unique_constraint_name(table: str, column: str) -> str:
        return f"uq_{table}_{column}"

    # ── Column definitions ───────────────────────────────────────

    def column_definition(
        self,
        column: ColumnInfo,
        *,
        auto_increment: bool = False,
        inline_unique: bool = True,
    ) -> str:
        name = self.q(column.name)
        if column.raw_definition:
            return f"{name} {column.data_type}"
        if column.primary_key:
            if auto_increment and self.capabilities.auto_column_strategy == AutoColumnStrategy.CLAUSE:
                return f"{name} {column.data_type} PRIMARY KEY {self.capabilities.auto_increment_clause}"
            return f"{name} {column.data_type} PRIMARY KEY"
        parts = [name, column.data_type]
        if not column.nullable:
            parts.append("NOT NULL")
        if column.unique and inline_unique:
            parts.append("UNIQUE")
        return " ".join(parts)

    def _create_prefix(self, table: str) -> str:
        if self.capabilities.supports_create_if_not_exists:
            return f"CREATE TABLE IF NOT EXISTS {self.q(table)}"
        return f"CREATE TABLE {self.q(table)}"

    def _foreign_key(self, table: str, column: str, target_table: str, target_column: str) -> str:
        return (
            f"CONSTRAINT {self.q(self.foreign_key_name(table, column))} "
            f"FOREIGN KEY ({self.q(column)}) "
            f"REFERENCES {self.q(target_table)}({self.q(target_column)})"
        )

    # ── Tables ───────────────────────────────────────────────────

    def create_table(self, entity: EntityDescriptor, registry: EntityRegistry | None = None) -> str:
        """CREATE TABLE with every column and a foreign key per registered many-to-one target."""
        identity = entity.identity
        lines = [
            self.column_definition(col, auto_increment=col.primary_key and identity.auto_increment)
            for col in self.mapper.declared_columns(entity, registry)
        ]
        for ref in entity.many_to_one:
            if registry is None or ref.target not in registry:
                continue
            lines.append(
                self._foreign_key(
                    entity.table_name, ref.join_column, registry.table_for(ref.target), ref.referenced_column
                )
            )
        body = f",\n{INDENT}".join(lines)
        return f"{self._create_prefix(entity.table_name)} (\n{INDENT}{body}\n)"

    def create_join_table(self, join: JoinTable) -> str:
        """Join table with a composite primary key; key columns match each side's identity type."""
        owner_type = self.mapper.column_type(join.owner_type)
        target_type = self.mapper.column_type(join.target_type)
        owner, target = self.q(join.owner_column), self.q(join.target_column)
        lines = [
            f"{owner} {owner_type} NOT NULL",
            f"{target} {target_type} NOT NULL",
            f"PRIMARY KEY ({owner}, {target})",
            self._foreign_key(join.name, join.owner_column, join.owner_table, join.owner_key),
        ]
        if join.target_registered:
            lines.append(self._foreign_key(join.name, join.target_column, join.target_table, join.target_key))
        body = f",\n{INDENT}".join(lines)
        return f"{self._create_prefix(join.name)} (\n{INDENT}{body}\n)"

    def drop_table(self, table: str) -> str:
        return f"DROP TABLE IF EXISTS {self.q(table)}"

    def ledger_table(self, table: str = LEDGER_TABLE) -> str:
        """Idempotent DDL for the applied-migrations ledger."""
        if self.dialect.db_type == DatabaseType.SQLSERVER:
            return (
                f"IF OBJECT_ID({self.dialect.literal(table)}, N'U') IS NULL "
                f"CREATE TABLE {self.q(table)} ("
                f"{self.q('version')} NVARCHAR(255) NOT NULL PRIMARY KEY, "
                f"{self.q('applied_at')} DATETIME2 DEFAULT CURRENT_TIMESTAMP)"
            )
        return (
            f"CREATE TABLE IF NOT EXISTS {self.q(table)} ("
            f"{self.q('version')} VARCHAR(255) NOT NULL PRIMARY KEY, "
            f"{self.q('applied_at')} TIMESTAMP DEFAULT CURRENT_TIMESTAMP)"
        )

    # ── Change operations ────────────────────────────────────────

    def render(self, op: ChangeOperation) -> list[str]:
        """Statements implementing ``op``, in execution order.

        Raises:
            UnsupportedOperationError: The dialect cannot express ``op``.
        """
        if isinstance(op, (CreateTable, CreateJoinTable)):
            return [op.ddl]
        if isinstance(op, DropTable):
            return [self.drop_table(op.table)]
        if isinstance(op, AddColumn):
            return self.add_column(op)
        if isinstance(op, ModifyColumn):
            return self.modify_column(op)
        if isinstance(op, DropColumn):
            return self.drop_column(op)
        raise TypeError(f"Unknown change operation: {op!r}")

    def add_column(self, op: AddColumn) -> list[str]:
        column = op.column
        table = self.q(op.table)
        inline_unique = self.capabilities.supports_add_unique_column
        statements = [
            f"ALTER TABLE {table} {self.capabilities.add_column_keyword} "
            f"{self.column_definition(column, inline_unique=inline_unique)}"
        ]
        if column.unique and not inline_unique and not column.raw_definition:
            index = self.q(column.unique_constraint or self.unique_constraint_name(op.table, column.name))
            statements.append(f"CREATE UNIQUE INDEX {index} ON {table} ({self.q(column.name)})")
        return statements

    def modify_column(self, op: ModifyColumn) -> list[str]:
        style = self.capabilities.modify_style
        if style == ModifyStyle.UNSUPPORTED:
            raise UnsupportedOperationError("modify_column", self.dialect.name).with_context(
                table=op.table, column=op.column.name
            )

        column, previous = op.column, op.previous
        table, name = self.q(op.table), self.q(column.name)
        type_changed = not self.mapper.types_equal(column.data_type, previous.data_type)
        statements: list[str] = []

        if op.unique_changed and previous.unique:
            constraint = previous.unique_constraint or self.unique_constraint_name(op.table, column.name)
            if self.dialect.db_type == DatabaseType.MYSQL:
                statements.append(f"ALTER TABLE {table} DROP INDEX {self.q(constraint)}")
            else:
                statements.append(f"ALTER TABLE {table} DROP CONSTRAINT {self.q(constraint)}")

        if style == ModifyStyle.MODIFY_COLUMN:
            if type_changed or op.nullable_changed:
                statements.append(
                    f"ALTER TABLE {table} MODIFY COLUMN {self.column_definition(column, inline_unique=False)}"
                )
        elif style == ModifyStyle.ALTER_COLUMN_TYPE:
            if type_changed:
                statements.append(f"ALTER TABLE {table} ALTER COLUMN {name} TYPE {column.data_type}")
            if op.nullable_changed:
                action = "DROP NOT NULL" if column.nullable else "SET NOT NULL"
                statements.append(f"ALTER TABLE {table} ALTER COLUMN {name} {action}")
        elif style == ModifyStyle.ALTER_COLUMN:
            if type_changed or op.nullable_changed:
                null = "NULL" if column.nullable else "NOT NULL"
                statements.append(f"ALTER TABLE {table} ALTER COLUMN {name} {column.data_type} {null}")

        if op.unique_changed and column.unique:
            constraint = column.unique_constraint or self.unique_constraint_name(op.table, column.name)
            statements.append(f"ALTER TABLE {table} ADD CONSTRAINT {self.q(constraint)} UNIQUE ({name})")

        return statements

    def drop_column(self, op: DropColumn) -> list[str]:
        if not self.capabilities.supports_drop_column:
            raise UnsupportedOperationError("drop_column", self.dialect.name).with_context(
                table=op.table, column=op.name
            )
        table, name = self.q(op.table), self.q(op.name)
        drop = f"ALTER TABLE {table} DROP COLUMN {name}"
        if self.dialect.db_type != DatabaseType.SQLSERVER:
            return [drop]
        return [self._sqlserver_drop_column(op.table, op.name, drop)]

    def _sqlserver_drop_column(self, table: str, column: str, drop: str) -> str:
        """SQL Server refuses to drop a column with default or unique constraints; drop those first."""
        obj = self.dialect.literal(table)
        col = self.dialect.literal(column)
        prefix = self.dialect.literal(f"ALTER TABLE {self.q(table)} DROP CONSTRAINT ")
        return (
            "DECLARE @sql NVARCHAR(MAX) = N'';\n"
            f"SELECT @sql += {prefix} + QUOTENAME(dc.name) + N'; '\n"
            "FROM sys.default_constraints dc\n"
            "JOIN sys.columns c ON c.object_id = dc.parent_object_id AND c.column_id = dc.parent_column_id\n"
            f"WHERE dc.parent_object_id = OBJECT_ID({obj}) AND c.name = {col};\n"
            f"SELECT @sql += {prefix} + QUOTENAME(kc.name) + N'; '\n"
            "FROM sys.key_constraints kc\n"
            "JOIN sys.index_columns ic ON ic.object_id = kc.parent_object_id AND ic.index_id = kc.unique_index_id\n"
            "JOIN sys.columns c ON c.object_id = ic.object_id AND c.column_id = ic.column_id\n"
            f"WHERE kc.parent_object_id = OBJECT_ID({obj}) AND kc.type = 'UQ' AND c.name = {col};\n"
            "EXEC sp_executesql @sql;\n"
            f"{drop}"
        )


__all__ = ["DdlBuilder", "LEDGER_TABLE"]
