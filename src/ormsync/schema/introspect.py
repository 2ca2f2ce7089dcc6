"""Live catalog introspection.

``CatalogReader`` answers two questions per table and pass: does the
table exist, and what columns does it have (type, nullability, primary
key, single-column uniqueness). One reader class per backend; each uses
the catalog that backend exposes (information_schema, ``pg_catalog``,
``PRAGMA``).
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from ormsync.core.connection import DBAPIConnection, fetchall, fetchone
from ormsync.core.dialect import DatabaseType, Dialect
from ormsync.core.errors import DatabaseError
from ormsync.schema.operations import ColumnInfo


class CatalogReader:
    """Base reader. Subclasses implement :meth:`_fetch_columns`."""

    def __init__(self, dialect: Dialect):
        self.dialect = dialect

    def table_exists(self, conn: DBAPIConnection, table: str) -> bool:
        return fetchone(conn, self.dialect.table_exists_query(), (table,)) is not None

    def columns(self, conn: DBAPIConnection, table: str) -> dict[str, ColumnInfo]:
        """Live columns of ``table`` keyed by name, in ordinal order."""
        try:
            return {col.name: col for col in self._fetch_columns(conn, table)}
        except DatabaseError:
            raise
        except Exception as exc:
            raise DatabaseError(f"Could not read columns of {table}: {exc}", cause=exc).with_context(
                table=table, dialect=self.dialect.name
            ) from exc

    def _fetch_columns(self, conn: DBAPIConnection, table: str) -> list[ColumnInfo]:
        raise NotImplementedError


def _single_column_uniques(rows: Iterable[tuple[str, str]]) -> dict[str, str]:
    """``(constraint, column)`` rows -> ``{column: constraint}`` for one-column constraints."""
    members: dict[str, list[str]] = defaultdict(list)
    for constraint, column in rows:
        members[constraint].append(column)
    return {cols[0]: name for name, cols in members.items() if len(cols) == 1}


class SQLiteCatalogReader(CatalogReader):
    """``PRAGMA table_info`` / ``index_list`` / ``index_info``."""

    def _fetch_columns(self, conn: DBAPIConnection, table: str) -> list[ColumnInfo]:
        q = self.dialect.quote
        uniques: dict[str, str] = {}
        # index_list: seq, name, unique, origin, partial
        for row in fetchall(conn, f"PRAGMA index_list({q(table)})"):
            index_name, is_unique, origin = row[1], row[2], row[3] if len(row) > 3 else "c"
            if not is_unique or origin == "pk":
                continue
            # index_info: seqno, cid, name
            info = fetchall(conn, f"PRAGMA index_info({q(index_name)})")
            if len(info) == 1:
                uniques[info[0][2]] = index_name

        result = []
        # table_info: cid, name, type, notnull, dflt_value, pk
        for _cid, name, data_type, notnull, _default, pk in fetchall(conn, f"PRAGMA table_info({q(table)})"):
            result.append(
                ColumnInfo(
                    name=name,
                    data_type=data_type or "",
                    nullable=not notnull and not pk,
                    primary_key=bool(pk),
                    unique=name in uniques,
                    unique_constraint=uniques.get(name),
                )
            )
        return result


class MySQLCatalogReader(CatalogReader):
    """``information_schema.columns`` / ``statistics`` for the current database."""

    _COLUMNS = (
        "SELECT COLUMN_NAME, COLUMN_TYPE, IS_NULLABLE, COLUMN_KEY "
        "FROM information_schema.columns "
        "WHERE table_schema = DATABASE() AND table_name = %s "
        "ORDER BY ORDINAL_POSITION"
    )
    _UNIQUES = (
        "SELECT INDEX_NAME, COLUMN_NAME FROM information_schema.statistics "
        "WHERE table_schema = DATABASE() AND table_name = %s "
        "AND NON_UNIQUE = 0 AND INDEX_NAME <> 'PRIMARY'"
    )

    def _fetch_columns(self, conn: DBAPIConnection, table: str) -> list[ColumnInfo]:
        uniques = _single_column_uniques(fetchall(conn, self._UNIQUES, (table,)))
        return [
            ColumnInfo(
                name=name,
                data_type=column_type,
                nullable=is_nullable == "YES",
                primary_key=column_key == "PRI",
                unique=name in uniques,
                unique_constraint=uniques.get(name),
            )
            for name, column_type, is_nullable, column_key in fetchall(conn, self._COLUMNS, (table,))
        ]


class PostgreSQLCatalogReader(CatalogReader):
    """``pg_attribute`` with ``format_type`` plus ``pg_constraint`` keys."""

    _COLUMNS = (
        "SELECT a.attname, format_type(a.atttypid, a.atttypmod), NOT a.attnotnull "
        "FROM pg_attribute a "
        "JOIN pg_class c ON c.oid = a.attrelid "
        "JOIN pg_namespace n ON n.oid = c.relnamespace "
        "WHERE c.relname = %s AND n.nspname = current_schema() "
        "AND a.attnum > 0 AND NOT a.attisdropped "
        "ORDER BY a.attnum"
    )
    _KEYS = (
        "SELECT con.conname, con.contype, a.attname "
        "FROM pg_constraint con "
        "JOIN pg_class c ON c.oid = con.conrelid "
        "JOIN pg_namespace n ON n.oid = c.relnamespace "
        "JOIN pg_attribute a ON a.attrelid = c.oid AND a.attnum = ANY(con.conkey) "
        "WHERE c.relname = %s AND n.nspname = current_schema() "
        "AND con.contype IN ('p', 'u')"
    )

    def _fetch_columns(self, conn: DBAPIConnection, table: str) -> list[ColumnInfo]:
        primary: set[str] = set()
        unique_rows = []
        for conname, contype, column in fetchall(conn, self._KEYS, (table,)):
            if contype == "p":
                primary.add(column)
            else:
                unique_rows.append((conname, column))
        uniques = _single_column_uniques(unique_rows)
        return [
            ColumnInfo(
                name=name,
                data_type=data_type,
                nullable=bool(nullable),
                primary_key=name in primary,
                unique=name in uniques,
                unique_constraint=uniques.get(name),
            )
            for name, data_type, nullable in fetchall(conn, self._COLUMNS, (table,))
        ]


class SQLServerCatalogReader(CatalogReader):
    """``INFORMATION_SCHEMA`` for the caller's default schema."""

    _COLUMNS = (
        "SELECT COLUMN_NAME, DATA_TYPE, CHARACTER_MAXIMUM_LENGTH, "
        "NUMERIC_PRECISION, NUMERIC_SCALE, IS_NULLABLE "
        "FROM INFORMATION_SCHEMA.COLUMNS "
        "WHERE TABLE_SCHEMA = SCHEMA_NAME() AND TABLE_NAME = %s "
        "ORDER BY ORDINAL_POSITION"
    )
    _KEYS = (
        "SELECT tc.CONSTRAINT_NAME, tc.CONSTRAINT_TYPE, ccu.COLUMN_NAME "
        "FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc "
        "JOIN INFORMATION_SCHEMA.CONSTRAINT_COLUMN_USAGE ccu "
        "ON tc.CONSTRAINT_NAME = ccu.CONSTRAINT_NAME AND tc.TABLE_SCHEMA = ccu.TABLE_SCHEMA "
        "WHERE tc.TABLE_SCHEMA = SCHEMA_NAME() AND tc.TABLE_NAME = %s "
        "AND tc.CONSTRAINT_TYPE IN ('PRIMARY KEY', 'UNIQUE')"
    )
    _SIZED = {"varchar", "nvarchar", "char", "nchar", "varbinary", "binary"}
    _NUMERIC = {"decimal", "numeric"}

    @classmethod
    def format_type(cls, data_type: str, max_length: int | None, precision: int | None, scale: int | None) -> str:
        """Rebuild a declaration-style type; length -1 means MAX."""
        base = data_type.upper()
        lowered = data_type.lower()
        if lowered in cls._SIZED and max_length is not None:
            return f"{base}(MAX)" if max_length == -1 else f"{base}({max_length})"
        if lowered in cls._NUMERIC and precision is not None:
            return f"{base}({precision},{scale or 0})"
        return base

    def _fetch_columns(self, conn: DBAPIConnection, table: str) -> list[ColumnInfo]:
        primary: set[str] = set()
        unique_rows = []
        for name, kind, column in fetchall(conn, self._KEYS, (table,)):
            if kind == "PRIMARY KEY":
                primary.add(column)
            else:
                unique_rows.append((name, column))
        uniques = _single_column_uniques(unique_rows)
        return [
            ColumnInfo(
                name=name,
                data_type=self.format_type(data_type, max_length, precision, scale),
                nullable=is_nullable == "YES",
                primary_key=name in primary,
                unique=name in uniques,
                unique_constraint=uniques.get(name),
            )
            for name, data_type, max_length, precision, scale, is_nullable in fetchall(
                conn, self._COLUMNS, (table,)
            )
        ]


_READERS: dict[DatabaseType, type[CatalogReader]] = {
    DatabaseType.SQLITE: SQLiteCatalogReader,
    DatabaseType.MYSQL: MySQLCatalogReader,
    DatabaseType.POSTGRESQL: PostgreSQLCatalogReader,
    DatabaseType.SQLSERVER: SQLServerCatalogReader,
}


def catalog_reader(dialect: Dialect) -> CatalogReader:
    return _READERS[dialect.db_type](dialect)


__all__ = [
    "CatalogReader",
    "SQLiteCatalogReader",
    "MySQLCatalogReader",
    "PostgreSQLCatalogReader",
    "SQLServerCatalogReader",
    "catalog_reader",
]
