"""Tests for dialects and the capability table."""

from __future__ import annotations

import pytest

from ormsync.core.dialect import (
    CAPABILITIES,
    AutoColumnStrategy,
    DatabaseType,
    Dialect,
    ModifyStyle,
    MySQLDialect,
    PostgreSQLDialect,
    SQLiteDialect,
    SQLServerDialect,
    get_dialect,
    register_dialect,
)
from ormsync.core.errors import InvalidConfigError


# =========================================================================
# Fixtures
# =========================================================================


@pytest.fixture(params=["sqlite", "mysql", "postgresql", "sqlserver"])
def dialect(request: pytest.FixtureRequest) -> Dialect:
    """Parametric fixture: run each test against every dialect."""
    return get_dialect(request.param)


# =========================================================================
# Registry
# =========================================================================


class TestRegistry:
    @pytest.mark.parametrize(
        "name, cls",
        [
            ("sqlite", SQLiteDialect),
            ("mysql", MySQLDialect),
            ("mariadb", MySQLDialect),
            ("postgresql", PostgreSQLDialect),
            ("postgres", PostgreSQLDialect),
            ("sqlserver", SQLServerDialect),
            ("mssql", SQLServerDialect),
            ("MySQL", MySQLDialect),
        ],
    )
    def test_get_dialect_by_name(self, name, cls):
        assert isinstance(get_dialect(name), cls)

    def test_get_dialect_by_enum(self):
        assert get_dialect(DatabaseType.POSTGRESQL).name == "postgresql"

    def test_unknown_dialect(self):
        with pytest.raises(InvalidConfigError, match="Unknown dialect"):
            get_dialect("oracle")

    def test_register_custom(self):
        custom = SQLiteDialect()
        register_dialect("custom-sqlite", custom)
        assert get_dialect("custom-sqlite") is custom


# =========================================================================
# Shared behaviour
# =========================================================================


class TestCommon:
    def test_protocol(self, dialect):
        assert isinstance(dialect, Dialect)

    def test_every_type_has_capabilities(self):
        assert set(CAPABILITIES) == set(DatabaseType)

    def test_plain_identifiers_stay_bare(self, dialect):
        assert dialect.quote("users") == "users"
        assert dialect.quote("created_at") == "created_at"

    def test_ping(self, dialect):
        assert dialect.ping_query() == "SELECT 1"

    def test_placeholders_count(self, dialect):
        assert dialect.placeholders(3).count(dialect.placeholder()) == 3

    def test_literal_doubles_quotes(self, dialect):
        assert "O''Brien" in dialect.literal("O'Brien")


class TestSpecifics:
    def test_reserved_word_quoting(self):
        assert get_dialect("mysql").quote("order") == "`order`"
        assert get_dialect("postgresql").quote("order") == '"order"'
        assert get_dialect("sqlserver").quote("order") == "[order]"

    def test_placeholders(self):
        assert get_dialect("sqlite").placeholders(2) == "?, ?"
        assert get_dialect("mysql").placeholders(2) == "%s, %s"

    def test_begin_statement_only_sqlite(self):
        assert get_dialect("sqlite").begin_statement == "BEGIN"
        assert get_dialect("postgresql").begin_statement is None

    def test_mysql_literal_escapes_backslash(self):
        assert get_dialect("mysql").literal("a\\b") == "'a\\\\b'"

    def test_sqlserver_literal_is_unicode(self):
        assert get_dialect("sqlserver").literal("x") == "N'x'"

    def test_admin_databases(self):
        assert get_dialect("postgresql").admin_database == "postgres"
        assert get_dialect("sqlserver").admin_database == "master"
        assert get_dialect("mysql").admin_database is None


class TestCapabilities:
    def test_sqlite_cannot_alter(self):
        caps = get_dialect("sqlite").capabilities
        assert not caps.supports_alter_column_type
        assert not caps.supports_drop_column
        assert not caps.supports_add_not_null_column
        assert caps.modify_style == ModifyStyle.UNSUPPORTED

    def test_mysql(self):
        caps = get_dialect("mysql").capabilities
        assert caps.auto_increment_clause == "AUTO_INCREMENT"
        assert caps.modify_style == ModifyStyle.MODIFY_COLUMN
        assert caps.transactional_ddl is False

    def test_postgresql_uses_serial_types(self):
        caps = get_dialect("postgresql").capabilities
        assert caps.auto_column_strategy == AutoColumnStrategy.SERIAL_TYPE
        assert caps.modify_style == ModifyStyle.ALTER_COLUMN_TYPE

    def test_sqlserver(self):
        caps = get_dialect("sqlserver").capabilities
        assert caps.add_column_keyword == "ADD"
        assert caps.supports_create_if_not_exists is False
        assert caps.auto_increment_clause == "IDENTITY(1,1)"
