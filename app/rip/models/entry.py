"""Record entry model.

This module defines the data structures for a single bury event as
stored in the graveyard record, plus the result types returned by the
bury, exhume and seance operations.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Number of fields in a serialized record row
ROW_FIELDS = 4


@dataclass(frozen=True, slots=True)
class Entry:
    """Record of a single bury event.

    Attributes:
        original_path: Absolute, canonical path the item was buried from.
        graveyard_path: Absolute path of the item inside the graveyard.
            Unique among all entries ever written.
        deletion_timestamp: When the item was buried (timezone-aware).
        was_directory: Whether the buried item was a directory.
    """

    original_path: Path
    graveyard_path: Path
    deletion_timestamp: datetime
    was_directory: bool = False

    def __post_init__(self) -> None:
        """Validate entry data after initialization."""
        if not self.original_path.is_absolute():
            msg = f"Original path must be absolute: {self.original_path}"
            raise ValueError(msg)
        if not self.graveyard_path.is_absolute():
            msg = f"Graveyard path must be absolute: {self.graveyard_path}"
            raise ValueError(msg)
        if self.deletion_timestamp.tzinfo is None:
            msg = "Deletion timestamp must be timezone-aware"
            raise ValueError(msg)

    def to_row(self) -> list[str]:
        """Serialize to a record row.

        Returns:
            Fields in on-disk order: original, graveyard, timestamp, flag.
        """
        return [
            str(self.original_path),
            str(self.graveyard_path),
            self.deletion_timestamp.isoformat(),
            "1" if self.was_directory else "0",
        ]

    @classmethod
    def from_row(cls, row: list[str]) -> Entry:
        """Deserialize from a record row.

        Args:
            row: Fields as produced by ``to_row``.

        Returns:
            Entry instance.

        Raises:
            ValueError: If the field count, timestamp or flag is invalid.
        """
        if len(row) != ROW_FIELDS:
            msg = f"Expected {ROW_FIELDS} fields, got {len(row)}"
            raise ValueError(msg)
        original, grave, timestamp, flag = row
        if flag not in ("0", "1"):
            msg = f"Invalid directory flag {flag!r}"
            raise ValueError(msg)
        if not original or not grave:
            msg = "Empty path field"
            raise ValueError(msg)
        return cls(
            original_path=Path(original),
            graveyard_path=Path(grave),
            deletion_timestamp=datetime.fromisoformat(timestamp),
            was_directory=flag == "1",
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output.

        Returns:
            Dictionary representation of the entry.
        """
        return {
            "original_path": str(self.original_path),
            "graveyard_path": str(self.graveyard_path),
            "deletion_timestamp": self.deletion_timestamp.isoformat(),
            "was_directory": self.was_directory,
        }


@dataclass(frozen=True, slots=True)
class BuriedInfo:
    """Result of a successful bury.

    Attributes:
        entry: The record entry that was appended.
        size_bytes: Aggregate size of the buried item.
    """

    entry: Entry
    size_bytes: int


@dataclass(frozen=True, slots=True)
class RestoredInfo:
    """Result of a successful exhume.

    Attributes:
        entry: The record entry that was removed.
        restored_to: Path the item now lives at.
    """

    entry: Entry
    restored_to: Path


@dataclass(frozen=True, slots=True)
class GraveListing:
    """A record entry annotated with its on-disk size.

    Attributes:
        entry: The record entry.
        size_bytes: Size of the graveyard item, summed for directories.
    """

    entry: Entry
    size_bytes: int


def create_entry(original_path: Path, graveyard_path: Path, was_directory: bool) -> Entry:
    """Factory function to create a new Entry stamped with the current time.

    Args:
        original_path: Canonical path the item was buried from.
        graveyard_path: Reserved destination inside the graveyard.
        was_directory: Whether the item is a directory.

    Returns:
        New Entry with the current UTC timestamp.
    """
    return Entry(
        original_path=original_path,
        graveyard_path=graveyard_path,
        deletion_timestamp=datetime.now(UTC),
        was_directory=was_directory,
    )
