"""Tests for the schema diff engine."""

from __future__ import annotations

from ormsync.core.dialect import get_dialect
from ormsync.schema.diff import SchemaDiffEngine, WarningKind
from ormsync.schema.operations import AddColumn, ColumnInfo, DropColumn, ModifyColumn


def engine(name: str = "mysql", **kwargs) -> SchemaDiffEngine:
    return SchemaDiffEngine(get_dialect(name), **kwargs)


ID = ColumnInfo("id", "bigint", nullable=False, primary_key=True)


def live(*columns: ColumnInfo) -> dict[str, ColumnInfo]:
    return {c.name: c for c in (ID, *columns)}


class TestAdditions:
    def test_missing_column_added(self):
        result = engine().diff_columns("users", [ID, ColumnInfo("email", "VARCHAR(255)")], live())
        assert result.additions == [AddColumn("users", ColumnInfo("email", "VARCHAR(255)"))]
        assert result.warnings == []

    def test_identity_never_added(self):
        result = engine().diff_columns("users", [ID], {})
        assert result.is_empty
        assert [w.kind for w in result.warnings] == [WarningKind.CAPABILITY_GAP]

    def test_sqlite_not_null_added_nullable(self):
        declared = [ID, ColumnInfo("code", "TEXT", nullable=False)]
        result = engine("sqlite").diff_columns("users", declared, live())
        (op,) = result.additions
        assert op.column.nullable is True
        (warning,) = result.warnings
        assert warning.kind == WarningKind.CAPABILITY_GAP
        assert warning.expected == "TEXT NOT NULL"
        assert warning.actual == "TEXT NULL"


class TestModifications:
    def test_widened_varchar(self):
        declared = [ID, ColumnInfo("email", "VARCHAR(320)")]
        result = engine().diff_columns("users", declared, live(ColumnInfo("email", "varchar(255)")))
        (op,) = result.modifications
        assert isinstance(op, ModifyColumn)
        assert op.column.data_type == "VARCHAR(320)"
        assert op.previous.data_type == "varchar(255)"

    def test_equivalent_spelling_is_no_change(self):
        declared = [ID, ColumnInfo("count", "INT")]
        result = engine().diff_columns("users", declared, live(ColumnInfo("count", "int(11)")))
        assert result.is_empty

    def test_nullability_and_uniqueness(self):
        declared = [ID, ColumnInfo("email", "VARCHAR(255)", nullable=False, unique=True)]
        result = engine("postgresql").diff_columns(
            "users", declared, live(ColumnInfo("email", "character varying(255)"))
        )
        (op,) = result.modifications
        assert op.nullable_changed and op.unique_changed

    def test_primary_key_never_modified(self):
        declared = [ColumnInfo("id", "INTEGER", nullable=False, primary_key=True)]
        assert engine().diff_columns("users", declared, live()).is_empty

    def test_raw_definition_never_modified(self):
        declared = [ID, ColumnInfo("geo", "POINT NOT NULL", raw_definition=True)]
        assert engine().diff_columns("users", declared, live(ColumnInfo("geo", "geometry"))).is_empty

    def test_sqlite_type_change_is_warning(self):
        declared = [ID, ColumnInfo("score", "REAL")]
        result = engine("sqlite").diff_columns("users", declared, live(ColumnInfo("score", "INTEGER")))
        assert result.is_empty
        (warning,) = result.warnings
        assert warning.kind == WarningKind.CAPABILITY_GAP
        assert warning.column == "score"
        assert "type change" in warning.message

    def test_case_insensitive_match_keeps_live_name(self):
        declared = [ID, ColumnInfo("email", "VARCHAR(320)")]
        result = engine().diff_columns("users", declared, live(ColumnInfo("Email", "varchar(255)")))
        assert result.additions == []
        assert result.removals == []
        (op,) = result.modifications
        assert op.column.name == "Email"


class TestRemovals:
    def test_undeclared_column_dropped(self):
        result = engine().diff_columns("users", [ID], live(ColumnInfo("phone", "varchar(20)")))
        (op,) = result.removals
        assert isinstance(op, DropColumn)
        assert op.name == "phone"
        assert op.previous.data_type == "varchar(20)"

    def test_keep_columns_reports_instead(self):
        result = engine(auto_drop_columns=False).diff_columns(
            "users", [ID], live(ColumnInfo("phone", "varchar(20)"))
        )
        assert result.is_empty
        (warning,) = result.warnings
        assert warning.kind == WarningKind.UNDECLARED_COLUMN
        assert warning.to_dict() == {
            "kind": "undeclared_column",
            "table": "users",
            "message": "column exists in the database but is not declared",
            "column": "phone",
            "actual": "varchar(20) NULL",
        }

    def test_sqlite_cannot_drop(self):
        result = engine("sqlite").diff_columns("users", [ID], live(ColumnInfo("phone", "TEXT")))
        assert result.is_empty
        assert [w.kind for w in result.warnings] == [WarningKind.CAPABILITY_GAP]

    def test_primary_key_never_dropped(self):
        assert engine().diff_columns("users", [], live()).is_empty


class TestEntityDiff:
    def test_diff_uses_declared_columns(self, registry):
        user = registry["User"]
        current = {
            "id": ID,
            "username": ColumnInfo("username", "varchar(20)", nullable=False, unique=True),
            "team_id": ColumnInfo("team_id", "bigint"),
            "created_at": ColumnInfo("created_at", "datetime"),
            "updated_at": ColumnInfo("updated_at", "datetime"),
        }
        result = engine().diff(user, current, registry)
        assert [op.describe() for op in result.operations] == ["add column users.email VARCHAR(255)"]


class TestOperationOrder:
    def test_additions_before_modifications(self):
        declared = [ID, ColumnInfo("name", "VARCHAR(100)"), ColumnInfo("email", "VARCHAR(255)")]
        result = engine().diff_columns("users", declared, live(ColumnInfo("name", "varchar(50)")))
        assert [op.kind for op in result.operations] == ["add_column", "modify_column"]

    def test_removals_last(self):
        declared = [ID, ColumnInfo("name", "VARCHAR(100)"), ColumnInfo("email", "VARCHAR(255)")]
        current = {
            "phone": ColumnInfo("phone", "varchar(20)"),
            **live(ColumnInfo("name", "varchar(50)")),
        }
        result = engine().diff_columns("users", declared, current)
        assert [op.kind for op in result.operations] == ["add_column", "modify_column", "drop_column"]
