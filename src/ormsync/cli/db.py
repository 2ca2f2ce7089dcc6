"""
CLI: ``ormsync db`` -- database management commands.
"""

from __future__ import annotations

import time

import typer

from ormsync.cli.utils import DatabaseOption, JsonOption, console, handle_errors, open_pool, print_json, resolve_config
from ormsync.core.connection import fetchone
from ormsync.core.database import create_database, drop_database

app = typer.Typer(no_args_is_help=True)


@app.command()
def create(database: str | None = DatabaseOption) -> None:
    """Create the configured database if it does not exist."""
    with handle_errors():
        config = resolve_config(database)
        create_database(config)
    console.print(f"[green]Created[/green] {config.redacted()}", highlight=False)


@app.command()
def drop(
    database: str | None = DatabaseOption,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Drop the configured database."""
    with handle_errors():
        config = resolve_config(database)
        if not yes:
            typer.confirm(f"Drop {config.redacted()}?", abort=True)
        drop_database(config)
    console.print(f"[green]Dropped[/green] {config.redacted()}", highlight=False)


@app.command()
def ping(
    database: str | None = DatabaseOption,
    json_out: bool = JsonOption,
) -> None:
    """Check database connectivity."""
    with handle_errors(), open_pool(database) as pool:
        started = time.perf_counter()
        with pool.acquire() as conn:
            fetchone(conn, pool.dialect.ping_query())
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        target = pool.config.redacted()

    if json_out:
        print_json({"ok": True, "dialect": pool.dialect.name, "target": target, "latency_ms": elapsed_ms})
        return
    console.print(f"[green]OK[/green] {target} ({elapsed_ms} ms)", highlight=False)
