"""rip - a safe and ergonomic alternative to rm.

Deleted files are buried in a graveyard and can be exhumed later.
"""

__version__ = "0.9.0"
