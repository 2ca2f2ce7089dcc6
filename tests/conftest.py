"""
Shared pytest fixtures for ormsync tests.

This module provides:
- Settings isolation (no ``ORMSYNC_*`` leakage between tests)
- A sample entity registry (Team <- User <-> Role)
- SQLite-backed pools in a temporary directory
- Fake DB-API connections for pool behaviour that needs failure injection
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest

from ormsync.core.config import DatabaseConfig, PoolConfig, clear_settings_cache
from ormsync.core.connection import fetchall
from ormsync.core.pool import ConnectionPool
from ormsync.schema.descriptors import EntityBuilder, EntityRegistry, FieldType


# =============================================================================
# Settings isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Drop ORMSYNC_* variables and run from an empty directory (no .env)."""
    for key in list(os.environ):
        if key.startswith("ORMSYNC_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Entities
# =============================================================================


def build_registry() -> EntityRegistry:
    registry = EntityRegistry()
    registry.register(
        EntityBuilder("User", table="users")
        .identity()
        .column("username", length=20, nullable=False, unique=True)
        .column("email")
        .many_to_one("team_id", "Team")
        .many_to_many("Role")
        .timestamps()
    )
    registry.register(
        EntityBuilder("Team", table="teams")
        .identity()
        .column("name", length=100, nullable=False)
        .one_to_many("User", mapped_by="team_id")
    )
    registry.register(EntityBuilder("Role", table="roles").identity().column("label", length=50))
    return registry


@pytest.fixture
def registry() -> EntityRegistry:
    """User references Team (many-to-one) and Role (many-to-many); declared before Team."""
    return build_registry()


@pytest.fixture
def order_entity() -> EntityBuilder:
    return (
        EntityBuilder("Order", table="orders")
        .identity()
        .column("total", FieldType.DECIMAL, precision=12, scale=2, nullable=False)
    )


# =============================================================================
# SQLite
# =============================================================================


@pytest.fixture
def sqlite_config(tmp_path: Path) -> DatabaseConfig:
    return DatabaseConfig.sqlite(str(tmp_path / "app.db"))


@pytest.fixture
def sqlite_pool(sqlite_config: DatabaseConfig) -> Iterator[ConnectionPool]:
    pool = ConnectionPool(sqlite_config, PoolConfig(max_size=2, min_idle=0))
    yield pool
    pool.close()


def _live_columns(pool: ConnectionPool, table: str) -> dict[str, tuple]:
    with pool.acquire() as conn:
        return {row[1]: row for row in fetchall(conn, f"PRAGMA table_info({table})")}


def _table_names(pool: ConnectionPool) -> set[str]:
    with pool.acquire() as conn:
        rows = fetchall(conn, "SELECT name FROM sqlite_master WHERE type = 'table'")
    return {r[0] for r in rows if not r[0].startswith("sqlite_")}


@pytest.fixture
def live_columns():
    """``live_columns(pool, table)`` -> ``PRAGMA table_info`` rows keyed by column name."""
    return _live_columns


@pytest.fixture
def table_names():
    """``table_names(pool)`` -> user tables in the SQLite file."""
    return _table_names


# =============================================================================
# Fake DB-API connections
# =============================================================================


class FakeCursor:
    def __init__(self, conn: FakeConnection):
        self.conn = conn

    def execute(self, sql: str, params: tuple | None = None) -> None:
        if self.conn.broken:
            raise RuntimeError("server has gone away")
        self.conn.executed.append(sql)

    def fetchall(self) -> list[tuple]:
        return [(1,)]

    def fetchone(self) -> tuple:
        return (1,)

    def close(self) -> None:
        pass


class FakeConnection:
    def __init__(self, ident: int):
        self.ident = ident
        self.broken = False
        self.closed = False
        self.rollbacks = 0
        self.executed: list[str] = []

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        if self.broken:
            raise RuntimeError("server has gone away")
        self.rollbacks += 1

    def close(self) -> None:
        self.closed = True


class FakeConnector:
    """Zero-argument connector producing numbered ``FakeConnection`` objects."""

    def __init__(self) -> None:
        self.opened: list[FakeConnection] = []
        self.fail = False

    def __call__(self) -> FakeConnection:
        if self.fail:
            raise ConnectionRefusedError("connection refused")
        conn = FakeConnection(len(self.opened))
        self.opened.append(conn)
        return conn


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
