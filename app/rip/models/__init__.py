"""Data models for rip.

This package contains the record entry and result models shared by the
core engines and the CLI.
"""

from rip.models.entry import BuriedInfo, Entry, GraveListing, RestoredInfo, create_entry

__all__ = [
    "BuriedInfo",
    "Entry",
    "GraveListing",
    "RestoredInfo",
    "create_entry",
]
