"""Main CLI application entry point.

Defines the Typer application and global options.
"""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.logging import RichHandler

from rip import __version__
from rip.cli.commands import bury, decompose, graveyard, prune, seance, unbury
from rip.utils.formatting import err_console

# Create main Typer app
app = typer.Typer(
    name="rip",
    help="A safe and ergonomic alternative to rm.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"rip version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    graveyard_dir: Annotated[
        Path | None,
        typer.Option(
            "--graveyard",
            "-g",
            help="Directory where deleted files rest.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
) -> None:
    """rip - bury files in a graveyard instead of deleting them.

    Buried files can be listed with [bold]seance[/bold] and restored
    with [bold]unbury[/bold].
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_time=False, show_path=False)],
    )
    # Store options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["graveyard_flag"] = graveyard_dir


# Register commands
app.command(name="bury")(bury.bury)
app.command(name="unbury")(unbury.unbury)
app.command(name="seance")(seance.seance)
app.command(name="prune")(prune.prune)
app.command(name="decompose")(decompose.decompose)
app.command(name="graveyard")(graveyard.graveyard)


if __name__ == "__main__":
    app()
