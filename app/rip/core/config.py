"""Configuration for rip.

This module provides the configuration model and loader. Settings are
read from ~/.config/rip/config.toml; every key is optional:

    graveyard = "~/.local/share/graveyard"
    lock_timeout = 10.0
    naming_attempts = 1000
"""

import logging
import tomllib
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from rip.core.errors import ConfigError
from rip.core.namer import DEFAULT_NAMING_ATTEMPTS
from rip.core.paths import get_config_path
from rip.core.record import DEFAULT_LOCK_TIMEOUT

logger = logging.getLogger(__name__)


class RipConfig(BaseModel):
    """Settings handed to the graveyard core.

    Attributes:
        graveyard: Graveyard root. None means "use the default location".
        lock_timeout: Seconds to wait for the record lock.
        naming_attempts: Bound on ``~N`` suffixes tried per destination.
    """

    model_config = ConfigDict(extra="forbid")

    graveyard: Annotated[
        Path | None,
        Field(description="Graveyard root directory"),
    ] = None
    lock_timeout: Annotated[
        float,
        Field(gt=0, le=600, description="Record lock timeout in seconds"),
    ] = DEFAULT_LOCK_TIMEOUT
    naming_attempts: Annotated[
        int,
        Field(ge=1, le=100_000, description="Maximum ~N suffixes tried per name"),
    ] = DEFAULT_NAMING_ATTEMPTS

    @field_validator("graveyard")
    @classmethod
    def expand_user(cls, v: Path | None) -> Path | None:
        """Expand ``~`` in the graveyard path."""
        return v.expanduser() if v is not None else None


def load_config(path: Path | None = None) -> RipConfig:
    """Load configuration from a TOML file.

    A missing file is not an error: defaults are returned.

    Args:
        path: Path to the config file. If None, uses the default config path.

    Returns:
        Validated RipConfig object.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        logger.debug("No config file at %s, using defaults", config_path)
        return RipConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax in {config_path}: {e}", config_path) from e
    except OSError as e:
        raise ConfigError(f"Failed to read config {config_path}: {e}", config_path) from e

    try:
        return RipConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config content in {config_path}: {e}", config_path) from e
