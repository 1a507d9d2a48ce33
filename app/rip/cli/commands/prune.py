"""Prune command for dropping stale graveyard records."""

import typer

from rip.cli.types import get_graveyard
from rip.core.errors import RipError
from rip.utils.formatting import print_error, print_info, print_success


def prune(ctx: typer.Context) -> None:
    """Forget records whose graveyard files were deleted by hand."""
    graveyard = get_graveyard(ctx)
    try:
        pruned = graveyard.prune()
    except RipError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    if not pruned:
        print_info("Record is clean.")
        return
    for entry in pruned:
        print_info(f"Forgot {entry.original_path}")
    print_success(f"Pruned {len(pruned)} stale record(s).")
