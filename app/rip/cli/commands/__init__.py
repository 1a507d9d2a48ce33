"""CLI commands for rip.

This package contains all subcommand implementations.
"""

from rip.cli.commands import bury, decompose, graveyard, prune, seance, unbury

__all__ = ["bury", "decompose", "graveyard", "prune", "seance", "unbury"]
