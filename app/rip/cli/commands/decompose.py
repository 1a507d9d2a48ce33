"""Decompose command for permanently emptying the graveyard."""

from typing import Annotated

import typer

from rip.cli.types import get_graveyard
from rip.core.errors import RipError
from rip.utils.formatting import print_error, print_info, print_success


def decompose(
    ctx: typer.Context,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Skip confirmation prompt.",
        ),
    ] = False,
) -> None:
    """Permanently delete the entire graveyard."""
    graveyard = get_graveyard(ctx)

    if not yes and not typer.confirm("Really unlink the entire graveyard?", default=False):
        print_info("Cancelled.")
        return

    try:
        graveyard.decompose()
    except RipError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    print_success(f"Decomposed {graveyard.root}")
