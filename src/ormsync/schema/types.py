"""
Dialect type mapping.

Maps semantic ``FieldType``s to concrete column types for each backend
and normalizes type strings read back from the catalog so declared and
live columns compare equal when they mean the same thing.

Manifesto:
    Type rules live in one table, keyed by semantic type and backend.
    The diff engine never knows that SQLite stores booleans as INTEGER or
    that PostgreSQL reports ``character varying(255)``; it compares the
    normalized strings this module produces.

Architecture:
    ::

        map_column_type(FieldType.STRING, "sqlserver", length=5000)
            │  _RULES[STRING][SQLSERVER](length, precision, scale)
            ▼
        'NVARCHAR(MAX)'

        normalize_type("character varying(255)", "postgresql")
            │  upper, collapse spaces, alias table, integer widths
            ▼
        'VARCHAR(255)'

Examples:
    >>> map_column_type(FieldType.BOOLEAN, "mysql")
    'TINYINT(1)'
    >>> map_column_type(FieldType.BIGINT, "postgresql", auto_increment_pk=True)
    'BIGSERIAL'
    >>> map_column_type(FieldType.STRING, "sqlserver", length=5000)
    'NVARCHAR(MAX)'
    >>> normalize_type("int(11)", "mysql")
    'INT'

Tags:
    type-mapping, dialect, normalization, ddl, ormsync

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import TYPE_CHECKING

from ormsync.core.dialect import AutoColumnStrategy, DatabaseType, Dialect, get_dialect
from ormsync.schema.descriptors import (
    Column,
    EntityDescriptor,
    FieldType,
    Identity,
    ManyToOneRef,
)
from ormsync.schema.operations import ColumnInfo

if TYPE_CHECKING:
    from ormsync.schema.descriptors import EntityRegistry

_Rule = Callable[[int, int, int], str]

MYSQL, SQLITE, POSTGRESQL, SQLSERVER = (
    DatabaseType.MYSQL,
    DatabaseType.SQLITE,
    DatabaseType.POSTGRESQL,
    DatabaseType.SQLSERVER,
)

# MySQL column size limits (bytes; utf8mb4 VARCHAR uses up to 4 per char)
_MYSQL_VARCHAR_MAX = 16383
_MYSQL_TEXT_MAX = 65535
_MYSQL_MEDIUM_MAX = 16777215
_PG_VARCHAR_MAX = 10485760
_MSSQL_NVARCHAR_MAX = 4000
_MSSQL_VARBINARY_MAX = 8000


def _const(value: str) -> _Rule:
    return lambda length, precision, scale: value


def _mysql_text(length: int) -> str:
    if length <= _MYSQL_TEXT_MAX:
        return "TEXT"
    if length <= _MYSQL_MEDIUM_MAX:
        return "MEDIUMTEXT"
    return "LONGTEXT"


def _mysql_blob(length: int) -> str:
    if length <= _MYSQL_TEXT_MAX:
        return "BLOB"
    if length <= _MYSQL_MEDIUM_MAX:
        return "MEDIUMBLOB"
    return "LONGBLOB"


def _decimal(length: int, precision: int, scale: int) -> str:
    if precision > 0:
        return f"DECIMAL({precision},{scale})"
    return "DECIMAL(10,2)"


_RULES: dict[FieldType, dict[DatabaseType, _Rule]] = {
    FieldType.STRING: {
        MYSQL: lambda n, p, s: f"VARCHAR({n})" if n <= _MYSQL_VARCHAR_MAX else _mysql_text(n),
        SQLITE: _const("TEXT"),
        POSTGRESQL: lambda n, p, s: f"VARCHAR({n})" if n <= _PG_VARCHAR_MAX else "TEXT",
        SQLSERVER: lambda n, p, s: f"NVARCHAR({n})" if n <= _MSSQL_NVARCHAR_MAX else "NVARCHAR(MAX)",
    },
    FieldType.TEXT: {
        MYSQL: lambda n, p, s: _mysql_text(n),
        SQLITE: _const("TEXT"),
        POSTGRESQL: _const("TEXT"),
        SQLSERVER: _const("NVARCHAR(MAX)"),
    },
    FieldType.TINYINT: {
        MYSQL: _const("TINYINT"),
        SQLITE: _const("INTEGER"),
        POSTGRESQL: _const("SMALLINT"),
        SQLSERVER: _const("TINYINT"),
    },
    FieldType.SMALLINT: {
        MYSQL: _const("SMALLINT"),
        SQLITE: _const("INTEGER"),
        POSTGRESQL: _const("SMALLINT"),
        SQLSERVER: _const("SMALLINT"),
    },
    FieldType.INTEGER: {
        MYSQL: _const("INT"),
        SQLITE: _const("INTEGER"),
        POSTGRESQL: _const("INTEGER"),
        SQLSERVER: _const("INT"),
    },
    FieldType.BIGINT: {
        MYSQL: _const("BIGINT"),
        SQLITE: _const("INTEGER"),
        POSTGRESQL: _const("BIGINT"),
        SQLSERVER: _const("BIGINT"),
    },
    FieldType.FLOAT: {
        MYSQL: _const("FLOAT"),
        SQLITE: _const("REAL"),
        POSTGRESQL: _const("REAL"),
        SQLSERVER: _const("REAL"),
    },
    FieldType.DOUBLE: {
        MYSQL: _const("DOUBLE"),
        SQLITE: _const("REAL"),
        POSTGRESQL: _const("DOUBLE PRECISION"),
        SQLSERVER: _const("FLOAT"),
    },
    FieldType.DECIMAL: {
        MYSQL: _decimal,
        SQLITE: _const("REAL"),
        POSTGRESQL: _decimal,
        SQLSERVER: _decimal,
    },
    FieldType.BOOLEAN: {
        MYSQL: _const("TINYINT(1)"),
        SQLITE: _const("INTEGER"),
        POSTGRESQL: _const("BOOLEAN"),
        SQLSERVER: _const("BIT"),
    },
    FieldType.DATE: {
        MYSQL: _const("DATE"),
        SQLITE: _const("TEXT"),
        POSTGRESQL: _const("DATE"),
        SQLSERVER: _const("DATE"),
    },
    FieldType.TIME: {
        MYSQL: _const("TIME"),
        SQLITE: _const("TEXT"),
        POSTGRESQL: _const("TIME"),
        SQLSERVER: _const("TIME"),
    },
    FieldType.DATETIME: {
        MYSQL: _const("DATETIME"),
        SQLITE: _const("TEXT"),
        POSTGRESQL: _const("TIMESTAMP"),
        SQLSERVER: _const("DATETIME2"),
    },
    FieldType.TIMESTAMP: {
        MYSQL: _const("DATETIME"),
        SQLITE: _const("TEXT"),
        POSTGRESQL: _const("TIMESTAMP"),
        SQLSERVER: _const("DATETIME2"),
    },
    FieldType.YEAR: {
        MYSQL: _const("YEAR"),
        SQLITE: _const("INTEGER"),
        POSTGRESQL: _const("SMALLINT"),
        SQLSERVER: _const("SMALLINT"),
    },
    FieldType.BINARY: {
        MYSQL: lambda n, p, s: _mysql_blob(n),
        SQLITE: _const("BLOB"),
        POSTGRESQL: _const("BYTEA"),
        SQLSERVER: lambda n, p, s: f"VARBINARY({n})" if n <= _MSSQL_VARBINARY_MAX else "VARBINARY(MAX)",
    },
    FieldType.JSON: {
        MYSQL: _const("JSON"),
        SQLITE: _const("TEXT"),
        POSTGRESQL: _const("JSONB"),
        SQLSERVER: _const("NVARCHAR(MAX)"),
    },
    FieldType.UUID: {
        MYSQL: _const("CHAR(36)"),
        SQLITE: _const("TEXT"),
        POSTGRESQL: _const("UUID"),
        SQLSERVER: _const("UNIQUEIDENTIFIER"),
    },
    FieldType.ENUM: {
        MYSQL: lambda n, p, s: f"VARCHAR({n})",
        SQLITE: _const("TEXT"),
        POSTGRESQL: lambda n, p, s: f"VARCHAR({n})",
        SQLSERVER: lambda n, p, s: f"NVARCHAR({n})",
    },
}

_SERIAL_TYPES = {
    FieldType.TINYINT: "SMALLSERIAL",
    FieldType.SMALLINT: "SMALLSERIAL",
    FieldType.INTEGER: "SERIAL",
    FieldType.BIGINT: "BIGSERIAL",
}

# Catalog spellings folded onto the names map_column_type produces
_ALIASES: dict[DatabaseType, dict[str, str]] = {
    MYSQL: {
        "INTEGER": "INT",
        "BOOL": "TINYINT(1)",
        "BOOLEAN": "TINYINT(1)",
        "NUMERIC": "DECIMAL",
        "DOUBLE PRECISION": "DOUBLE",
        "REAL": "DOUBLE",
    },
    SQLITE: {
        "INT": "INTEGER",
    },
    POSTGRESQL: {
        "CHARACTER VARYING": "VARCHAR",
        "CHARACTER": "CHAR",
        "BPCHAR": "CHAR",
        "INT": "INTEGER",
        "INT2": "SMALLINT",
        "INT4": "INTEGER",
        "INT8": "BIGINT",
        "BOOL": "BOOLEAN",
        "NUMERIC": "DECIMAL",
        "FLOAT4": "REAL",
        "FLOAT8": "DOUBLE PRECISION",
        "TIMESTAMP WITHOUT TIME ZONE": "TIMESTAMP",
        "TIMESTAMP WITH TIME ZONE": "TIMESTAMPTZ",
        "TIME WITHOUT TIME ZONE": "TIME",
        "TIME WITH TIME ZONE": "TIMETZ",
    },
    SQLSERVER: {
        "INTEGER": "INT",
        "NUMERIC": "DECIMAL",
    },
}

_MYSQL_INTEGERS = {"TINYINT", "SMALLINT", "MEDIUMINT", "INT", "BIGINT"}
_WIDTH_SENSITIVE = {"VARCHAR", "CHAR", "NVARCHAR", "NCHAR", "VARBINARY", "BINARY", "DECIMAL", "TINYINT"}
_TYPE_PARTS = re.compile(r"^([^(]*?)\s*(\(.*\))?\s*([^()]*)$")


def _resolve(dialect: Dialect | DatabaseType | str) -> Dialect:
    if isinstance(dialect, (str, DatabaseType)):
        return get_dialect(dialect)
    return dialect


def map_column_type(
    field_type: FieldType,
    dialect: Dialect | DatabaseType | str,
    *,
    length: int = 255,
    precision: int = 0,
    scale: int = 0,
    auto_increment_pk: bool = False,
) -> str:
    """Concrete column type for ``field_type`` on ``dialect``. Pure."""
    d = _resolve(dialect)
    if auto_increment_pk:
        if d.db_type == DatabaseType.SQLITE:
            return "INTEGER"
        if d.capabilities.auto_column_strategy == AutoColumnStrategy.SERIAL_TYPE:
            return _SERIAL_TYPES.get(field_type, "BIGSERIAL")
    return _RULES[field_type][d.db_type](length, precision, scale)


def base_type(type_str: str) -> str:
    """Type name without size qualifiers: ``VARCHAR(255)`` -> ``VARCHAR``."""
    return type_str.split("(", 1)[0].strip().upper()


def is_width_sensitive(type_str: str) -> bool:
    return base_type(type_str) in _WIDTH_SENSITIVE


def normalize_type(type_str: str, dialect: Dialect | DatabaseType | str) -> str:
    """Canonical spelling of a catalog or declared type string."""
    d = _resolve(dialect)
    text = " ".join(type_str.strip().upper().split())
    match = _TYPE_PARTS.match(text)
    if match is None:
        return text
    name, qualifier, suffix = match.group(1).strip(), match.group(2) or "", match.group(3).strip()
    if suffix and not qualifier:
        # "TIMESTAMP WITHOUT TIME ZONE" has no parentheses; keep it whole
        name, suffix = f"{name} {suffix}".strip(), ""
    qualifier = qualifier.replace(" ", "")

    aliases = _ALIASES.get(d.db_type, {})
    alias = aliases.get(f"{name}{qualifier}") or aliases.get(name)
    if alias is not None:
        if "(" in alias:
            name, qualifier = alias.split("(", 1)[0], "(" + alias.split("(", 1)[1]
        else:
            name = alias

    if d.db_type == DatabaseType.MYSQL and name in _MYSQL_INTEGERS:
        if not (name == "TINYINT" and qualifier == "(1)"):
            qualifier = ""

    result = f"{name}{qualifier}"
    return f"{result} {suffix}" if suffix else result


def types_equal(declared: str, live: str, dialect: Dialect | DatabaseType | str) -> bool:
    """True when two type strings mean the same column type.

    Base types are compared first; the full qualified type is compared
    only for width-sensitive types (VARCHAR length, DECIMAL precision).
    """
    left, right = normalize_type(declared, dialect), normalize_type(live, dialect)
    if base_type(left) != base_type(right):
        return False
    if is_width_sensitive(left):
        return left == right
    return True


class DialectTypeMapper:
    """Type mapping bound to one dialect, plus declared-column derivation."""

    def __init__(self, dialect: Dialect | DatabaseType | str):
        self.dialect = _resolve(dialect)

    def column_type(self, field_type: FieldType, **kwargs: int | bool) -> str:
        return map_column_type(field_type, self.dialect, **kwargs)  # type: ignore[arg-type]

    def normalize(self, type_str: str) -> str:
        return normalize_type(type_str, self.dialect)

    def types_equal(self, declared: str, live: str) -> bool:
        return types_equal(declared, live, self.dialect)

    def identity_column(self, identity: Identity) -> ColumnInfo:
        return ColumnInfo(
            name=identity.name,
            data_type=map_column_type(
                identity.field_type, self.dialect, auto_increment_pk=identity.auto_increment
            ),
            nullable=False,
            primary_key=True,
        )

    def foreign_key_type(self, ref: ManyToOneRef, registry: EntityRegistry | None = None) -> str:
        target = registry.get(ref.target) if registry is not None else None
        field_type = target.identity.field_type if target is not None else FieldType.BIGINT
        return map_column_type(field_type, self.dialect)

    def declared_columns(
        self, entity: EntityDescriptor, registry: EntityRegistry | None = None
    ) -> list[ColumnInfo]:
        """ColumnInfo for every materialized column, in declaration order."""
        result: list[ColumnInfo] = []
        for f in entity.columns:
            if isinstance(f, Identity):
                result.append(self.identity_column(f))
            elif isinstance(f, ManyToOneRef):
                result.append(
                    ColumnInfo(
                        name=f.join_column,
                        data_type=self.foreign_key_type(f, registry),
                        nullable=f.nullable,
                    )
                )
            elif isinstance(f, Column):
                if f.raw_type:
                    result.append(
                        ColumnInfo(name=f.name, data_type=f.raw_type, nullable=f.nullable,
                                   unique=f.unique, raw_definition=True)
                    )
                    continue
                result.append(
                    ColumnInfo(
                        name=f.name,
                        data_type=map_column_type(
                            f.field_type, self.dialect,
                            length=f.length, precision=f.precision, scale=f.scale,
                        ),
                        nullable=f.nullable,
                        unique=f.unique,
                    )
                )
        return result


__all__ = [
    "map_column_type",
    "normalize_type",
    "base_type",
    "is_width_sensitive",
    "types_equal",
    "DialectTypeMapper",
]
