"""Tests for CREATE/DROP DATABASE helpers."""

from __future__ import annotations

from ormsync.core.config import DatabaseConfig
from ormsync.core.database import (
    create_database,
    create_database_statements,
    drop_database,
    drop_database_statements,
)


class TestStatements:
    def test_mysql_create_uses_charset(self):
        cfg = DatabaseConfig.mysql("db", database="app")
        assert create_database_statements(cfg) == [
            "CREATE DATABASE IF NOT EXISTS app CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        ]

    def test_mysql_drop(self):
        cfg = DatabaseConfig.mysql("db", database="app")
        assert drop_database_statements(cfg) == ["DROP DATABASE IF EXISTS app"]

    def test_postgresql_create_with_encoding(self):
        cfg = DatabaseConfig.postgresql("db", database="app")
        assert create_database_statements(cfg) == ["CREATE DATABASE app WITH ENCODING 'UTF8'"]

    def test_postgresql_drop_terminates_sessions_first(self):
        stmts = drop_database_statements(DatabaseConfig.postgresql("db", database="app"))
        assert stmts[0].startswith("SELECT pg_terminate_backend(pid)")
        assert "datname = 'app'" in stmts[0]
        assert stmts[1] == "DROP DATABASE IF EXISTS app"

    def test_sqlserver_create_checks_sys_databases(self):
        cfg = DatabaseConfig.sqlserver("db", database="app")
        (stmt,) = create_database_statements(cfg)
        assert "sys.databases WHERE name = N'app'" in stmt
        assert stmt.endswith("CREATE DATABASE app")

    def test_sqlserver_drop_sets_single_user(self):
        (stmt,) = drop_database_statements(DatabaseConfig.sqlserver("db", database="app"))
        assert "SET SINGLE_USER WITH ROLLBACK IMMEDIATE" in stmt
        assert "DROP DATABASE app" in stmt

    def test_sqlite_has_no_statements(self):
        cfg = DatabaseConfig.sqlite("app.db")
        assert create_database_statements(cfg) == []
        assert drop_database_statements(cfg) == []


class TestSqliteFiles:
    def test_create_and_drop(self, tmp_path):
        path = tmp_path / "nested" / "app.db"
        cfg = DatabaseConfig.sqlite(str(path))
        create_database(cfg)
        assert path.exists()
        create_database(cfg)  # idempotent
        drop_database(cfg)
        assert not path.exists()
        drop_database(cfg)  # missing file is fine
