"""CLI package for rip.

This package contains the Typer application and all subcommands.
"""

from rip.cli.main import app

__all__ = ["app"]
