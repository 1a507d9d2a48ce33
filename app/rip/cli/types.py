"""Shared helpers for CLI commands.

This module builds the Graveyard a command operates on from the
global options and the configuration file.
"""

import typer

from rip.core.config import load_config
from rip.core.errors import ConfigError
from rip.core.graveyard import Graveyard
from rip.core.paths import resolve_graveyard
from rip.utils.formatting import print_error


def get_graveyard(ctx: typer.Context) -> Graveyard:
    """Get the Graveyard selected by the global options.

    The instance is cached on the context object.

    Args:
        ctx: Typer context of the running command.

    Returns:
        Graveyard for the resolved root.

    Raises:
        typer.Exit: If the configuration file is invalid.
    """
    obj = ctx.ensure_object(dict)
    cached = obj.get("graveyard")
    if isinstance(cached, Graveyard):
        return cached

    try:
        config = load_config()
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    root = resolve_graveyard(obj.get("graveyard_flag"), config.graveyard)
    graveyard = Graveyard(
        root,
        lock_timeout=config.lock_timeout,
        naming_attempts=config.naming_attempts,
    )
    obj["graveyard"] = graveyard
    return graveyard
