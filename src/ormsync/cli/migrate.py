"""
CLI: ``ormsync migrate`` -- generate, apply, roll back and inspect migrations.
"""

from __future__ import annotations

from pathlib import Path

import typer

from ormsync.cli.schema import DropColumnsOption, StrictOption, build_synchronizer
from ormsync.cli.utils import (
    DatabaseOption,
    EntitiesOption,
    JsonOption,
    console,
    handle_errors,
    open_pool,
    print_json,
    print_table,
    print_warnings,
    to_dict,
)
from ormsync.core.config import get_settings
from ormsync.core.pool import ConnectionPool
from ormsync.migrations.runner import MigrationRunner

app = typer.Typer(no_args_is_help=True)

DirOption = typer.Option(None, "--dir", help="Migrations directory (default: ORMSYNC_MIGRATIONS_DIR)")


def _directory(directory: Path | None) -> Path:
    return directory or Path(get_settings().migrations_dir)


def _runner(pool: ConnectionPool, directory: Path | None) -> MigrationRunner:
    runner = MigrationRunner(pool)
    runner.load_directory(_directory(directory))
    return runner


@app.command()
def generate(
    entities: str = EntitiesOption,
    description: str = typer.Option("", "--message", "-m", help="Migration description"),
    version: str | None = typer.Option(None, "--version", help="Explicit version (yyyyMMddHHmmss)"),
    directory: Path | None = DirOption,
    database: str | None = DatabaseOption,
    drop_columns: bool | None = DropColumnsOption,
    strict: bool | None = StrictOption,
    json_out: bool = JsonOption,
) -> None:
    """Write the pending schema changes as a reversible migration file."""
    with handle_errors(), open_pool(database) as pool:
        sync = build_synchronizer(entities, pool, drop_columns, strict)
        generated = sync.generate(description=description, version=version, directory=_directory(directory))

    if generated is None:
        if json_out:
            print_json({"generated": None})
        else:
            console.print("[green]No changes; nothing generated.[/green]")
        return

    migration = generated.migration
    if json_out:
        print_json(
            {
                "generated": migration.version,
                "path": str(generated.path),
                "up": list(migration.up_statements),
                "down": list(migration.down_statements),
                "warnings": [to_dict(w) for w in generated.warnings],
            }
        )
        return

    print_warnings(generated.warnings)
    console.print(f"[green]Generated[/green] {migration.version}: {generated.path}", highlight=False)


@app.command()
def up(
    directory: Path | None = DirOption,
    database: str | None = DatabaseOption,
    json_out: bool = JsonOption,
) -> None:
    """Apply all pending migrations in version order."""
    with handle_errors(), open_pool(database) as pool:
        result = _runner(pool, directory).apply()

    if json_out:
        print_json({"applied": result.applied, "skipped": result.skipped})
        return
    if not result.applied:
        console.print("[green]Nothing to apply.[/green]")
    for version in result.applied:
        console.print(f"[green]Applied[/green] {version}", highlight=False)


@app.command()
def down(
    steps: int = typer.Option(1, "--steps", "-n", min=1, help="Number of migrations to roll back"),
    directory: Path | None = DirOption,
    database: str | None = DatabaseOption,
    json_out: bool = JsonOption,
) -> None:
    """Roll back the most recently applied migrations."""
    with handle_errors(), open_pool(database) as pool:
        result = _runner(pool, directory).rollback(steps)

    if json_out:
        print_json({"rolled_back": result.rolled_back})
        return
    if not result.rolled_back:
        console.print("[yellow]Nothing to roll back.[/yellow]")
    for version in result.rolled_back:
        console.print(f"[green]Rolled back[/green] {version}", highlight=False)


@app.command()
def status(
    directory: Path | None = DirOption,
    database: str | None = DatabaseOption,
    json_out: bool = JsonOption,
) -> None:
    """List known and applied migrations."""
    with handle_errors(), open_pool(database) as pool:
        rows = [to_dict(s) for s in _runner(pool, directory).status()]

    if json_out:
        print_json(rows)
        return
    print_table(rows, title="Migrations")
