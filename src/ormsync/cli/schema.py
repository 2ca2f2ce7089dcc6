"""
CLI: ``ormsync schema`` -- plan and apply schema synchronization.
"""

from __future__ import annotations

import typer

from ormsync.cli.utils import (
    DatabaseOption,
    EntitiesOption,
    JsonOption,
    console,
    handle_errors,
    load_registry,
    open_pool,
    print_json,
    print_sql,
    print_warnings,
    to_dict,
)
from ormsync.core.config import get_settings
from ormsync.core.pool import ConnectionPool
from ormsync.schema.sync import SchemaSynchronizer

app = typer.Typer(no_args_is_help=True)

DropColumnsOption = typer.Option(
    None, "--drop-columns/--keep-columns", help="Drop undeclared columns (default: ORMSYNC_AUTO_DROP_COLUMNS)"
)
StrictOption = typer.Option(None, "--strict/--lenient", help="Fail on circular references")


def build_synchronizer(
    entities: str,
    pool: ConnectionPool,
    drop_columns: bool | None = None,
    strict: bool | None = None,
) -> SchemaSynchronizer:
    settings = get_settings()
    return SchemaSynchronizer(
        load_registry(entities),
        pool,
        auto_drop_columns=settings.auto_drop_columns if drop_columns is None else drop_columns,
        fail_on_cycles=settings.fail_on_cycles if strict is None else strict,
    )


@app.command()
def plan(
    entities: str = EntitiesOption,
    database: str | None = DatabaseOption,
    drop_columns: bool | None = DropColumnsOption,
    strict: bool | None = StrictOption,
    json_out: bool = JsonOption,
) -> None:
    """Show the DDL a sync would execute, without executing it."""
    with handle_errors(), open_pool(database) as pool:
        sync = build_synchronizer(entities, pool, drop_columns, strict)
        result = sync.plan()
        statements = [(op, sync.ddl.render(op)) for op in result.operations]

    if json_out:
        print_json(
            {
                "order": result.order,
                "operations": [
                    {"kind": op.kind, "table": op.table, "description": op.describe(), "statements": sql}
                    for op, sql in statements
                ],
                "warnings": [to_dict(w) for w in result.warnings],
            }
        )
        return

    print_warnings(result.warnings)
    if result.is_empty:
        console.print("[green]Schema is up to date.[/green]")
        return
    for op, sql in statements:
        console.print(f"[bold]-- {op.describe()}[/bold]", highlight=False)
        for statement in sql:
            print_sql(statement + ";")


@app.command()
def sync(
    entities: str = EntitiesOption,
    database: str | None = DatabaseOption,
    drop_columns: bool | None = DropColumnsOption,
    strict: bool | None = StrictOption,
    json_out: bool = JsonOption,
) -> None:
    """Apply schema changes now, statement by statement."""
    with handle_errors(), open_pool(database) as pool:
        result = build_synchronizer(entities, pool, drop_columns, strict).apply()

    if json_out:
        print_json(
            {
                "executed": result.executed,
                "warnings": [to_dict(w) for w in result.plan.warnings],
            }
        )
        return

    print_warnings(result.plan.warnings)
    if not result.executed:
        console.print("[green]Schema is up to date.[/green]")
    else:
        console.print(f"[green]Executed {len(result.executed)} statement(s).[/green]")
