"""Bury command for sending files to the graveyard.

This module provides the `rip bury` command. Items that already live in
the graveyard are offered for permanent deletion instead.
"""

import itertools
import stat
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from rip.cli.types import get_graveyard
from rip.core.errors import PartialBury, RipError
from rip.core.graveyard import Graveyard
from rip.core.transfer import tree_size
from rip.utils.formatting import (
    console,
    format_size,
    print_error,
    print_info,
    print_success,
    print_warning,
)

# How much of a target --inspect shows
LINES_TO_INSPECT = 6
FILES_TO_INSPECT = 6


def bury(
    ctx: typer.Context,
    targets: Annotated[
        list[Path],
        typer.Argument(help="Files or directories to remove.", show_default=False),
    ],
    inspect: Annotated[
        bool,
        typer.Option(
            "--inspect",
            "-i",
            help="Print some info about each target before burying it.",
        ),
    ] = False,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Permanently delete items already in the graveyard without asking.",
        ),
    ] = False,
) -> None:
    """Bury files or directories in the graveyard.

    Examples:
        rip bury notes.txt build/
        rip bury -i big.log       # Preview before burying
    """
    graveyard = get_graveyard(ctx)
    failed = False

    for target in targets:
        if graveyard.contains(target):
            failed |= not _destroy_buried(graveyard, target, force)
            continue

        if inspect and not _inspect_and_confirm(target):
            print_info(f"Skipping {target}")
            continue

        try:
            info = graveyard.bury(target)
        except PartialBury as e:
            print_error(str(e))
            if e.entry is not None:
                print_warning(f"The complete copy is recorded at {e.entry.graveyard_path}")
            failed = True
            continue
        except RipError as e:
            print_error(str(e))
            failed = True
            continue

        if ctx.obj.get("verbose"):
            print_info(
                f"Buried {target} at {info.entry.graveyard_path} ({format_size(info.size_bytes)})"
            )

    if failed:
        raise typer.Exit(code=1)


def _destroy_buried(graveyard: Graveyard, target: Path, force: bool) -> bool:
    """Offer to permanently delete an item already in the graveyard.

    Returns:
        False if the deletion was attempted and failed, True otherwise.
    """
    prompt = f"{target} is already in the graveyard.\nPermanently unlink it?"
    if not force and not typer.confirm(prompt, default=False):
        print_info(f"Skipping {target}")
        return True
    try:
        deleted = graveyard.destroy(target)
    except RipError as e:
        print_error(str(e))
        return False
    print_success(f"Permanently deleted {deleted}")
    return True


def _inspect_and_confirm(target: Path) -> bool:
    """Show a short preview of ``target`` and ask whether to bury it.

    Directories show their total size and first few entries, regular
    files their size and first few lines.
    """
    try:
        st = target.lstat()
    except OSError:
        # Let the bury itself report the problem
        return True

    name = escape(str(target))
    if stat.S_ISDIR(st.st_mode):
        console.print(f"{name}: directory, {format_size(tree_size(target))} including:")
        try:
            children = sorted(target.iterdir())
        except OSError as e:
            console.print(f"Error reading {name}: {escape(str(e))}")
            children = []
        for child in children[:FILES_TO_INSPECT]:
            console.print(escape(str(child)))
    else:
        console.print(f"{name}: file, {format_size(st.st_size)}")
        if stat.S_ISREG(st.st_mode):
            try:
                with target.open(encoding="utf-8", errors="replace") as f:
                    for line in itertools.islice(f, LINES_TO_INSPECT):
                        console.print(f"> {escape(line.rstrip())}")
            except OSError:
                console.print(f"Error reading {name}")

    return typer.confirm(f"Send {target} to the graveyard?", default=False)
