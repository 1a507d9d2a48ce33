"""Unbury command for restoring files from the graveyard.

This module provides the `rip unbury` command. Without targets it
restores the most recently buried item.
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from rip.cli.types import get_graveyard
from rip.core.errors import RipError
from rip.core.exhume import EntryPredicate, match_all, matches_grave, matches_path, within
from rip.core.namer import canonicalize
from rip.utils.formatting import console, print_error, print_info


def unbury(
    ctx: typer.Context,
    targets: Annotated[
        list[Path] | None,
        typer.Argument(
            help="Original paths or graveyard paths to restore. "
            "Defaults to the most recently buried item.",
            show_default=False,
        ),
    ] = None,
    seance: Annotated[
        bool,
        typer.Option(
            "--seance",
            "-s",
            help="Restore everything buried from the current directory.",
        ),
    ] = False,
) -> None:
    """Restore buried files to where they came from.

    Examples:
        rip unbury                 # Restore the last buried item
        rip unbury notes.txt       # Restore the newest burial of notes.txt
        rip unbury -s              # Restore everything buried from here
    """
    graveyard = get_graveyard(ctx)
    predicates: list[EntryPredicate] = []

    if seance:
        try:
            listings = graveyard.list(within(Path.cwd().resolve()))
        except RipError as e:
            print_error(str(e))
            raise typer.Exit(code=1) from e
        predicates.extend(matches_grave(listing.entry.graveyard_path) for listing in listings)

    for target in targets or []:
        path = canonicalize(target)
        if graveyard.contains(path):
            predicates.append(matches_grave(path))
        else:
            predicates.append(matches_path(path))

    if not predicates:
        if seance:
            print_info("Nothing buried from this directory.")
            return
        predicates.append(match_all())

    failed = False
    for predicate in predicates:
        try:
            info = graveyard.exhume(predicate)
        except RipError as e:
            print_error(str(e))
            failed = True
            continue
        console.print(
            f"Returned [grave]{escape(str(info.entry.graveyard_path))}[/] "
            f"to [original]{escape(str(info.restored_to))}[/]"
        )

    if failed:
        raise typer.Exit(code=1)
