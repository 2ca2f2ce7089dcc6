"""
Migration runner tests against SQLite.

SQLite runs DDL inside transactions, so a failing migration must leave
neither its tables nor its ledger row behind.
"""

from __future__ import annotations

from datetime import datetime

import pytest

from ormsync.core.connection import execute, fetchall
from ormsync.core.errors import MigrationError
from ormsync.migrations.files import write_migration
from ormsync.migrations.models import Migration, MigrationContext
from ormsync.migrations.runner import MigrationRunner


def create(version: str, table: str) -> Migration:
    return Migration(
        version,
        up=[f"CREATE TABLE {table} (id INTEGER PRIMARY KEY)"],
        down=[f"DROP TABLE {table}"],
        description=f"create {table}",
    )


def ledger(pool) -> list[str]:
    with pool.acquire() as conn:
        return [r[0] for r in fetchall(conn, "SELECT version FROM schema_migrations ORDER BY version")]


class AuditTable(Migration):
    version = "3"
    description = "audit table"

    def up(self, ctx: MigrationContext) -> None:
        ctx.execute("CREATE TABLE audit (id INTEGER PRIMARY KEY, note TEXT)")
        ctx.execute("INSERT INTO audit (note) VALUES (?)", ("created",))

    def down(self, ctx: MigrationContext) -> None:
        ctx.execute("DROP TABLE audit")


class TestRegistration:
    def test_sorted_by_numeric_version(self, sqlite_pool):
        runner = MigrationRunner(sqlite_pool, [create("10", "b"), create("9", "a")])
        assert [m.version for m in runner.migrations] == ["9", "10"]

    def test_duplicate_version_rejected(self, sqlite_pool):
        runner = MigrationRunner(sqlite_pool, [create("1", "a")])
        with pytest.raises(ValueError, match="Duplicate"):
            runner.add(create("1", "b"))

    def test_subclass_requires_version(self):
        class Unversioned(Migration):
            pass

        with pytest.raises(ValueError):
            Unversioned()

    def test_load_directory(self, sqlite_pool, tmp_path):
        write_migration(create("20240101120000", "a"), tmp_path)
        write_migration(create("20240101120001", "b"), tmp_path)

        runner = MigrationRunner(sqlite_pool)
        assert runner.load_directory(tmp_path) == 2
        assert [m.description for m in runner.migrations] == ["create a", "create b"]


class TestApply:
    def test_applies_in_order_and_records(self, sqlite_pool, table_names):
        runner = MigrationRunner(sqlite_pool, [create("2", "b"), create("1", "a"), AuditTable()])
        result = runner.apply()

        assert result.success
        assert result.applied == ["1", "2", "3"]
        assert ledger(sqlite_pool) == ["1", "2", "3"]
        assert table_names(sqlite_pool) == {"schema_migrations", "a", "b", "audit"}

    def test_timestamp_versions_applied_ascending(self, sqlite_pool, tmp_path):
        for version, table in [("20240301090000", "c"), ("20240101090000", "a"), ("20240201090000", "b")]:
            write_migration(create(version, table), tmp_path)
        runner = MigrationRunner(sqlite_pool)
        runner.load_directory(tmp_path)

        result = runner.apply()

        assert result.applied == ["20240101090000", "20240201090000", "20240301090000"]
        assert ledger(sqlite_pool) == result.applied
        assert runner.rollback().rolled_back == ["20240301090000"]

    def test_params_passed_through(self, sqlite_pool):
        MigrationRunner(sqlite_pool, [AuditTable()]).apply()
        with sqlite_pool.acquire() as conn:
            assert fetchall(conn, "SELECT note FROM audit") == [("created",)]

    def test_applied_versions_skipped(self, sqlite_pool):
        MigrationRunner(sqlite_pool, [create("1", "a")]).apply()

        result = MigrationRunner(sqlite_pool, [create("1", "a"), create("2", "b")]).apply()
        assert result.skipped == ["1"]
        assert result.applied == ["2"]

    def test_second_run_is_noop(self, sqlite_pool):
        runner = MigrationRunner(sqlite_pool, [create("1", "a")])
        runner.apply()
        result = runner.apply()
        assert result.applied == []
        assert result.skipped == ["1"]

    def test_failure_is_atomic_and_stops(self, sqlite_pool, table_names):
        broken = Migration(
            "2",
            up=["CREATE TABLE half (id INTEGER PRIMARY KEY)", "INSERT INTO missing VALUES (1)"],
            description="broken",
        )
        runner = MigrationRunner(sqlite_pool, [create("1", "a"), broken, create("3", "c")])

        with pytest.raises(MigrationError) as exc_info:
            runner.apply()

        error = exc_info.value
        assert error.version == "2"
        assert error.statement == "INSERT INTO missing VALUES (1)"
        assert error.result.applied == ["1"]
        assert "2" in error.result.errors
        assert ledger(sqlite_pool) == ["1"]
        assert table_names(sqlite_pool) == {"schema_migrations", "a"}

    def test_pending(self, sqlite_pool):
        runner = MigrationRunner(sqlite_pool, [create("1", "a")])
        runner.apply()
        runner.add(create("2", "b"))
        assert [m.version for m in runner.pending()] == ["2"]


class TestRollback:
    def test_most_recent_first(self, sqlite_pool, table_names):
        runner = MigrationRunner(sqlite_pool, [create("1", "a"), create("2", "b"), create("3", "c")])
        runner.apply()

        result = runner.rollback(steps=2)

        assert result.rolled_back == ["3", "2"]
        assert ledger(sqlite_pool) == ["1"]
        assert table_names(sqlite_pool) == {"schema_migrations", "a"}

    def test_zero_steps(self, sqlite_pool):
        runner = MigrationRunner(sqlite_pool, [create("1", "a")])
        runner.apply()
        assert runner.rollback(steps=0).rolled_back == []
        assert ledger(sqlite_pool) == ["1"]

    def test_stops_at_first_failure(self, sqlite_pool):
        bad_down = Migration("2", up=["CREATE TABLE b (id INTEGER)"], down=["DROP TABLE nope"])
        runner = MigrationRunner(sqlite_pool, [create("1", "a"), bad_down])
        runner.apply()

        with pytest.raises(MigrationError) as exc_info:
            runner.rollback(steps=2)

        assert exc_info.value.version == "2"
        assert exc_info.value.result.rolled_back == []
        assert ledger(sqlite_pool) == ["1", "2"]

    def test_unknown_ledger_versions_skipped(self, sqlite_pool):
        runner = MigrationRunner(sqlite_pool, [create("1", "a")])
        runner.apply()
        with sqlite_pool.acquire() as conn:
            execute(conn, "INSERT INTO schema_migrations (version) VALUES ('5')").close()
            conn.commit()

        result = runner.rollback()

        assert result.rolled_back == ["1"]
        assert ledger(sqlite_pool) == ["5"]


class TestStatus:
    def test_known_applied_and_orphaned(self, sqlite_pool):
        MigrationRunner(sqlite_pool, [create("1", "a"), create("2", "b")]).apply()

        runner = MigrationRunner(sqlite_pool, [create("1", "a"), create("3", "c")])
        status = {s.version: s for s in runner.status()}

        assert list(status) == ["1", "2", "3"]
        assert status["1"].applied and status["1"].known
        assert isinstance(status["1"].applied_at, datetime)
        assert status["2"].applied and not status["2"].known
        assert status["2"].description == ""
        assert not status["3"].applied
        assert status["3"].description == "create c"

    def test_custom_ledger_table(self, sqlite_pool, table_names):
        MigrationRunner(sqlite_pool, [create("1", "a")], table="applied_versions").apply()
        assert "applied_versions" in table_names(sqlite_pool)
        assert "schema_migrations" not in table_names(sqlite_pool)
