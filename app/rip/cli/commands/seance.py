"""Seance command for listing the graveyard.

This module provides the `rip seance` command, which shows what was
buried from the current directory (or from anywhere, with --all).
"""

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from rip.cli.types import get_graveyard
from rip.core.errors import RipError
from rip.core.exhume import within
from rip.models.entry import GraveListing
from rip.utils.formatting import (
    console,
    create_grave_table,
    format_size,
    format_timestamp,
    print_error,
    print_info,
    print_warning,
)


def seance(
    ctx: typer.Context,
    show_all: Annotated[
        bool,
        typer.Option(
            "--all",
            "-a",
            help="List the whole graveyard, not just the current directory.",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """List buried files, most recent first."""
    graveyard = get_graveyard(ctx)
    predicate = None if show_all else within(Path.cwd().resolve())

    try:
        listings = graveyard.list(predicate)
    except RipError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    for corrupt in graveyard.store.corrupt_rows:
        print_warning(str(corrupt))

    if json_output:
        _print_json(listings)
        return

    if not listings:
        print_info("No files in the graveyard.")
        return

    _print_table(listings)


def _print_table(listings: list[GraveListing]) -> None:
    """Print listings as a Rich table."""
    table = create_grave_table()
    for listing in listings:
        entry = listing.entry
        path = escape(str(entry.graveyard_path))
        if entry.was_directory:
            path = f"[directory]{path}/[/]"
        table.add_row(
            format_timestamp(entry.deletion_timestamp),
            path,
            format_size(listing.size_bytes),
        )
    console.print(table)


def _print_json(listings: list[GraveListing]) -> None:
    """Print listings as JSON for scripting."""
    output = [{**listing.entry.to_dict(), "size_bytes": listing.size_bytes} for listing in listings]
    console.print_json(json.dumps(output))
