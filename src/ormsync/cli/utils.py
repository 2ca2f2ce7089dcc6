"""
CLI utility helpers -- entity loading, pool lifecycle and output formatting.
"""

from __future__ import annotations

import importlib
import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ormsync.core.config import DatabaseConfig, get_settings
from ormsync.core.errors import ConfigError, OrmSyncError
from ormsync.core.pool import ConnectionPool
from ormsync.schema.descriptors import EntityRegistry
from ormsync.schema.diff import SchemaWarning

console = Console()
err_console = Console(stderr=True)


# ── Option helpers ───────────────────────────────────────────────────────

DatabaseOption = typer.Option(None, "--database", "-d", help="Database URL (overrides ORMSYNC_DATABASE_URL)")
EntitiesOption = typer.Option(
    ..., "--entities", "-e", envvar="ORMSYNC_ENTITIES", help="Entity registry as module:attribute"
)
JsonOption = typer.Option(False, "--json", help="JSON output")


# ── Inputs ───────────────────────────────────────────────────────────────


def load_registry(target: str) -> EntityRegistry:
    """Import ``module:attribute``; the attribute is a registry or returns one."""
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise ConfigError(f"Expected module:attribute, got {target!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Cannot import {module_name}: {exc}", cause=exc) from exc
    try:
        obj = getattr(module, attr)
    except AttributeError as exc:
        raise ConfigError(f"{module_name} has no attribute {attr!r}", cause=exc) from exc
    if callable(obj) and not isinstance(obj, EntityRegistry):
        obj = obj()
    if not isinstance(obj, EntityRegistry):
        raise ConfigError(f"{target} is not an EntityRegistry (got {type(obj).__name__})")
    return obj


def resolve_config(database: str | None) -> DatabaseConfig:
    if database:
        return DatabaseConfig.from_url(database)
    return get_settings().database_config()


@contextmanager
def open_pool(database: str | None) -> Iterator[ConnectionPool]:
    """A short-lived pool for one command."""
    pool = ConnectionPool(resolve_config(database), get_settings().pool_config())
    try:
        yield pool
    finally:
        pool.close()


@contextmanager
def handle_errors() -> Iterator[None]:
    """Render ``OrmSyncError`` as a one-line message and exit 1."""
    try:
        yield
    except OrmSyncError as exc:
        err_console.print(f"[bold red]Error[/bold red] ({type(exc).__name__}): ", end="")
        err_console.print(exc.message, markup=False, highlight=False)
        if exc.context.statement:
            err_console.print(exc.context.statement, markup=False, highlight=False, style="dim")
        raise typer.Exit(code=1) from exc


# ── Output helpers ───────────────────────────────────────────────────────


def to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / pydantic model / dict to plain dict."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def print_sql(statement: str) -> None:
    # SQL Server identifiers use [brackets]; keep rich markup out of it
    console.print(statement, markup=False, highlight=False, soft_wrap=True)


def print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table."""
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*("" if v is None else str(v) for v in row.values()))
    console.print(table)


def print_warnings(warnings: list[SchemaWarning]) -> None:
    for warning in warnings:
        where = f"{warning.table}.{warning.column}" if warning.column else warning.table
        err_console.print(
            f"[yellow]warning[/yellow] {escape(f'[{warning.kind.value}] {where}: {warning.message}')}",
            highlight=False,
        )
