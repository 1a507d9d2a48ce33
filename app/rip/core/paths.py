"""XDG-compliant path management for rip.

This module provides the standard locations rip reads and writes:

- Config: ~/.config/rip/config.toml
- Graveyard: $RIP_GRAVEYARD, or $XDG_DATA_HOME/graveyard, or
  <tmp>/graveyard-<user>
"""

import getpass
import os
import tempfile
from pathlib import Path

# Application identifier for directory naming
APP_NAME = "rip"

# Environment variable that overrides the graveyard location
GRAVEYARD_ENV = "RIP_GRAVEYARD"


def _get_xdg_dir(env_var: str, default_subdir: str) -> Path:
    """Get XDG directory respecting environment variable override.

    Args:
        env_var: XDG environment variable name (e.g., "XDG_CONFIG_HOME").
        default_subdir: Default subdirectory under home (e.g., ".config").

    Returns:
        Path to the application-specific directory.
    """
    base = os.environ.get(env_var)
    if base:
        return Path(base) / APP_NAME
    return Path.home() / default_subdir / APP_NAME


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Returns:
        Path to ~/.config/rip/ (or XDG_CONFIG_HOME/rip/).
    """
    return _get_xdg_dir("XDG_CONFIG_HOME", ".config")


def get_config_path() -> Path:
    """Get the configuration file path.

    Returns:
        Path to ~/.config/rip/config.toml.
    """
    return get_config_dir() / "config.toml"


def get_theme_path() -> Path:
    """Get the user theme file path.

    Returns:
        Path to ~/.config/rip/theme.toml.
    """
    return get_config_dir() / "theme.toml"


def _get_user() -> str:
    """Name of the current user, for the per-user temp graveyard."""
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


def get_default_graveyard() -> Path:
    """Get the graveyard used when nothing else is configured.

    Returns:
        $XDG_DATA_HOME/graveyard if XDG_DATA_HOME is set,
        otherwise <tmp>/graveyard-<user>.
    """
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "graveyard"
    return Path(tempfile.gettempdir()) / f"graveyard-{_get_user()}"


def resolve_graveyard(flag: Path | None = None, configured: Path | None = None) -> Path:
    """Resolve the graveyard root from all configuration sources.

    Priority:
    1. Explicit ``--graveyard`` flag
    2. RIP_GRAVEYARD environment variable
    3. ``graveyard`` key of the config file
    4. Default location (see ``get_default_graveyard``)

    Args:
        flag: Value of the command line flag, if given.
        configured: Value from the config file, if set.

    Returns:
        Graveyard root (not created).
    """
    if flag is not None:
        return flag.expanduser()
    env_value = os.environ.get(GRAVEYARD_ENV)
    if env_value:
        return Path(env_value).expanduser()
    if configured is not None:
        return configured.expanduser()
    return get_default_graveyard()
