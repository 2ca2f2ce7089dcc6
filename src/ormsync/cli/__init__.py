"""ormsync command-line interface."""

from ormsync.cli.app import app

__all__ = ["app"]
