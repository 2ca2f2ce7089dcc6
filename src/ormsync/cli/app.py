"""
Root Typer application for the ormsync CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from ormsync.cli.utils import handle_errors
from ormsync.core.config import get_settings
from ormsync.core.logging import configure_logging

app = Typer(
    name="ormsync",
    help="ormsync: schema synchronization and migrations for declared entities.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from ormsync import __version__

        typer.echo(f"ormsync {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Log level (default: ORMSYNC_LOG_LEVEL)"),
) -> None:
    """ormsync CLI: plan, sync and migrate database schemas."""
    with handle_errors():
        settings = get_settings()
    configure_logging(level=log_level or settings.log_level, json_format=settings.log_json)


# ── Sub-command registration ─────────────────────────────────────────────

from ormsync.cli.db import app as db_app  # noqa: E402
from ormsync.cli.migrate import app as migrate_app  # noqa: E402
from ormsync.cli.schema import app as schema_app  # noqa: E402

app.add_typer(schema_app, name="schema", help="Plan and apply schema synchronization.")
app.add_typer(migrate_app, name="migrate", help="Generate and run migrations.")
app.add_typer(db_app, name="db", help="Database management.")


if __name__ == "__main__":
    app()
