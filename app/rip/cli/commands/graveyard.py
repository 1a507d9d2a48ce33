"""Graveyard command for printing the graveyard location."""

from typing import Annotated

import typer

from rip.cli.types import get_graveyard


def graveyard(
    ctx: typer.Context,
    seance: Annotated[
        bool,
        typer.Option(
            "--seance",
            "-s",
            help="Print the graveyard subdirectory of the current directory.",
        ),
    ] = False,
) -> None:
    """Print the graveyard path."""
    yard = get_graveyard(ctx)
    typer.echo(str(yard.seance_root() if seance else yard.root))
