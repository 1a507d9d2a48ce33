"""Error taxonomy for graveyard operations.

Every error carries the offending path so the CLI layer can render a
useful diagnostic without inspecting the exception chain.
"""

from pathlib import Path


class RipError(Exception):
    """Base exception for all graveyard errors.

    Attributes:
        path: Path the failed operation was acting on, if any.
    """

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class AccessDenied(RipError):
    """Raised when the caller lacks permission to move a path.

    The source is left untouched.
    """


class LockContention(RipError):
    """Raised when the record lock cannot be acquired within the timeout."""


class CorruptRecord(RipError):
    """A record row that could not be parsed.

    Never raised by the record store: instances are collected on
    ``RecordStore.corrupt_rows`` and logged so the read can continue.

    Attributes:
        line: Line number (1-based) of the offending row.
        row: Raw fields of the row.
    """

    def __init__(self, message: str, path: Path | str | None, line: int, row: list[str]) -> None:
        super().__init__(message, path)
        self.line = line
        self.row = row


class RecordFormatError(RipError):
    """Raised when the record file does not have the expected shape."""


class MissingHeader(RecordFormatError):
    """Raised when the record has no recognised header row."""


class RecordVersionMismatch(RecordFormatError):
    """Raised when the record header carries an unsupported version."""


class PartialBury(RipError):
    """Raised when a bury could not complete cleanly.

    Attributes:
        entry: Record entry that was written despite the failure, if any.
            Set only when the graveyard holds the sole complete copy.
    """

    def __init__(self, message: str, path: Path | str | None = None, entry: object = None) -> None:
        super().__init__(message, path)
        self.entry = entry


class CrossDeviceCopyFailure(PartialBury):
    """Raised when copying across filesystems fails.

    The partial destination is removed and the original stays intact.
    """


class DestinationOccupied(RipError):
    """Raised when a restore or graveyard destination is already taken."""


class MissingGraveyardFile(RipError):
    """Raised when a record entry points at a vanished graveyard path."""


class NotFound(RipError):
    """Raised when a path or a matching record entry does not exist."""


class ConfigError(RipError):
    """Raised when the configuration file cannot be loaded or validated."""


class InsideGraveyard(RipError):
    """Raised when asked to bury the graveyard, an ancestor of it, or an item in it.

    Items already in the graveyard can only be destroyed permanently.
    """
