"""Persistent record of buried items.

This module provides the RecordStore class, the only writer of the
graveyard record. The record is a tab-separated text file with one
versioned header row followed by one row per buried item:

    #rip-record  v2  original_path  graveyard_path  deletion_timestamp  was_directory
    /tmp/a/file.txt  /graveyard/tmp/a/file.txt  2026-01-26T14:30:00+00:00  0

Fields are quoted by the csv module whenever they contain a tab, a
quote or a line break, so any path round-trips exactly.

Graveyard paths of removed entries are appended to a sidecar ledger
(``.record.retired``) so a name handed out once is never handed out
again, even after its entry left the record.
"""

import csv
import io
import logging
import os
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import TextIO

from rip.core.errors import CorruptRecord, MissingHeader, RecordVersionMismatch, RipError
from rip.core.lock import ProcessLock
from rip.core.namer import PathKey
from rip.models.entry import Entry

logger = logging.getLogger(__name__)

RECORD_FILENAME = ".record"
LOCK_FILENAME = ".record.lock"
RETIRED_FILENAME = ".record.retired"

RECORD_MAGIC = "#rip-record"
RECORD_VERSION = "v2"
RECORD_HEADER = [
    RECORD_MAGIC,
    RECORD_VERSION,
    "original_path",
    "graveyard_path",
    "deletion_timestamp",
    "was_directory",
]

# Header written by the original rip, whose rows are not compatible
LEGACY_HEADER = ["Time", "Original", "Destination"]

DEFAULT_LOCK_TIMEOUT = 10.0

# Paths are bytes on POSIX; undecodable bytes survive via surrogateescape
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


class RecordDialect(csv.Dialect):
    """CSV dialect of the record file."""

    delimiter = "\t"
    quotechar = '"'
    doublequote = True
    skipinitialspace = False
    lineterminator = "\n"
    quoting = csv.QUOTE_MINIMAL


@dataclass(frozen=True, slots=True)
class _Row:
    """One record row as read from disk.

    Attributes:
        text: The row's exact text, written back unchanged on rewrite.
        fields: Parsed fields; empty if the csv reader rejected the row.
        entry: The parsed entry, or None if the row is corrupt.
    """

    text: str
    fields: list[str]
    entry: Entry | None


class _LineTap:
    """Line iterator that remembers the lines consumed for the current row."""

    def __init__(self, f: TextIO) -> None:
        self._f = f
        self.lines: list[str] = []

    def __iter__(self) -> "_LineTap":
        return self

    def __next__(self) -> str:
        line = next(self._f)
        self.lines.append(line)
        return line

    def take(self) -> str:
        """Return the consumed lines as one newline-terminated string and reset."""
        text = "".join(self.lines)
        self.lines = []
        return text if text.endswith("\n") else text + "\n"


def _entry_key(entry: Entry) -> tuple[PathKey, PathKey, str, bool]:
    """Identity of an entry under platform path equality."""
    return (
        PathKey.of(entry.original_path),
        PathKey.of(entry.graveyard_path),
        entry.deletion_timestamp.isoformat(),
        entry.was_directory,
    )


class RecordStore:
    """Lock-guarded log of bury events for one graveyard.

    Every mutation happens inside the exclusive record lock, so any
    number of independent processes can share a graveyard. Use
    ``open()`` to hold the lock across several operations; the
    individual methods take it themselves otherwise.

    Attributes:
        corrupt_rows: Rows skipped by the most recent read.
    """

    def __init__(self, graveyard: Path, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        """Initialize RecordStore.

        Args:
            graveyard: Graveyard root holding the record.
            lock_timeout: Seconds to wait for the record lock.
        """
        self._graveyard = graveyard
        self._lock = ProcessLock(graveyard / LOCK_FILENAME, timeout=lock_timeout)
        self.corrupt_rows: list[CorruptRecord] = []

    @property
    def path(self) -> Path:
        """Path to the record file."""
        return self._graveyard / RECORD_FILENAME

    @property
    def retired_path(self) -> Path:
        """Path to the ledger of retired graveyard paths."""
        return self._graveyard / RETIRED_FILENAME

    @contextmanager
    def open(self, shared: bool = False) -> Iterator["RecordStore"]:
        """Hold the record lock for the duration of the block.

        An exclusive open creates the record with its header if it does
        not exist yet.

        Args:
            shared: Take a shared lock, for reading only.

        Yields:
            This store.

        Raises:
            LockContention: If the lock is not obtained within the timeout.
        """
        with self._lock.acquire(shared=shared):
            if not shared:
                self._ensure_exists()
            yield self

    def append(self, entry: Entry) -> None:
        """Append one entry to the record.

        The row is written with a single write and fsynced before the
        lock is released, so concurrent appends never interleave.

        Args:
            entry: The entry to record.

        Raises:
            LockContention: If the lock is not obtained within the timeout.
            RipError: If the record cannot be written.
        """
        with self.open():
            try:
                with self.path.open("a", encoding=_ENCODING, errors=_ERRORS, newline="") as f:
                    if f.tell() == 0:
                        f.write(_format_row(RECORD_HEADER))
                    f.write(_format_row(entry.to_row()))
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as e:
                msg = f"Failed to write record {self.path}: {e}"
                raise RipError(msg, self.path) from e
        logger.debug("Recorded %s -> %s", entry.original_path, entry.graveyard_path)

    def read_all(self) -> list[Entry]:
        """Read every parseable entry, oldest first.

        Malformed rows are skipped, logged and collected on
        ``corrupt_rows`` so a damaged record never blocks the tool.

        Returns:
            Entries in record order. Empty if the record doesn't exist.

        Raises:
            MissingHeader: If the record has no recognised header.
            RecordVersionMismatch: If the header has another version.
        """
        if not self.path.exists() and not self._lock.held:
            self.corrupt_rows = []
            return []
        with self.open(shared=True):
            return [row.entry for row in self._read_rows() if row.entry is not None]

    def remove(self, entries: Iterable[Entry]) -> int:
        """Remove entries from the record.

        A row is removed only if it matches a given entry in every
        field, so a newer burial that happens to share a graveyard path
        is never dropped in its place. The graveyard paths of removed
        rows are retired before the record is rewritten to a temporary
        file and renamed into place, so a crash never leaves a truncated
        record. Corrupt rows are carried over verbatim.

        Args:
            entries: Entries to drop.

        Returns:
            Number of rows removed.

        Raises:
            LockContention: If the lock is not obtained within the timeout.
            RipError: If the record cannot be rewritten.
        """
        targets = {_entry_key(entry) for entry in entries}
        if not targets:
            return 0
        with self.open():
            kept: list[_Row] = []
            removed: list[Entry] = []
            for row in self._read_rows():
                if row.entry is not None and _entry_key(row.entry) in targets:
                    removed.append(row.entry)
                else:
                    kept.append(row)
            if removed:
                self._retire(removed)
                self._rewrite(kept)
        logger.debug("Removed %d row(s) from %s", len(removed), self.path)
        return len(removed)

    def used_graves(self) -> set[PathKey]:
        """Keys of every graveyard path this graveyard has handed out.

        Covers the paths of current rows, corrupt ones included where
        the field can be read, and the retired ledger. Hold the
        exclusive lock across this call and the reservation that depends
        on it.

        Returns:
            Platform equality keys of all used graveyard paths.
        """
        with self.open(shared=True):
            keys = {PathKey.of(row.fields[1]) for row in self._read_rows() if len(row.fields) > 1}
            keys.update(self._read_retired())
        return keys

    def _ensure_exists(self) -> None:
        """Create the record with its header if it is missing."""
        try:
            with self.path.open("x", encoding=_ENCODING, errors=_ERRORS, newline="") as f:
                f.write(_format_row(RECORD_HEADER))
        except FileExistsError:
            return
        except OSError as e:
            msg = f"Failed to create record {self.path}: {e}"
            raise RipError(msg, self.path) from e
        logger.debug("Created record %s", self.path)

    def _read_rows(self) -> list[_Row]:
        """Parse the record. Caller must hold the lock."""
        self.corrupt_rows = []
        if not self.path.exists():
            return []
        rows: list[_Row] = []
        with self.path.open(encoding=_ENCODING, errors=_ERRORS, newline="") as f:
            tap = _LineTap(f)
            reader = csv.reader(tap, dialect=RecordDialect)
            header = next(reader, None)
            if header is None:
                return []
            self._check_header(header)
            while True:
                tap.lines = []
                try:
                    raw = next(reader)
                except StopIteration:
                    break
                except csv.Error as e:
                    self._skip(reader.line_num, [], str(e))
                    rows.append(_Row(tap.take(), [], None))
                    continue
                text = tap.take()
                if not raw:
                    continue
                try:
                    rows.append(_Row(text, raw, Entry.from_row(raw)))
                except ValueError as e:
                    self._skip(reader.line_num, raw, str(e))
                    rows.append(_Row(text, raw, None))
        return rows

    def _read_retired(self) -> set[PathKey]:
        """Parse the retired ledger. Caller must hold the lock."""
        if not self.retired_path.exists():
            return set()
        keys: set[PathKey] = set()
        with self.retired_path.open(encoding=_ENCODING, errors=_ERRORS, newline="") as f:
            reader = csv.reader(f, dialect=RecordDialect)
            while True:
                try:
                    raw = next(reader)
                except StopIteration:
                    break
                except csv.Error as e:
                    logger.warning("Skipping corrupt retired line %d: %s", reader.line_num, e)
                    continue
                if raw and raw[0]:
                    keys.add(PathKey.of(raw[0]))
        return keys

    def _skip(self, line: int, raw: list[str], reason: str) -> None:
        logger.warning("Skipping corrupt record line %d: %s", line, reason)
        self.corrupt_rows.append(
            CorruptRecord(f"Corrupt record line {line}: {reason}", self.path, line, raw)
        )

    def _check_header(self, header: list[str]) -> None:
        if header == RECORD_HEADER:
            return
        if header and header[0] == RECORD_MAGIC:
            found = header[1] if len(header) > 1 else "unknown"
            msg = f"Record {self.path} has format {found}, expected {RECORD_VERSION}"
            raise RecordVersionMismatch(msg, self.path)
        if header[: len(LEGACY_HEADER)] == LEGACY_HEADER:
            msg = (
                f"Record {self.path} was written by an older rip. "
                "Move it aside to start a fresh record."
            )
            raise MissingHeader(msg, self.path)
        msg = f"Record {self.path} has no header row"
        raise MissingHeader(msg, self.path)

    def _retire(self, entries: list[Entry]) -> None:
        """Append graveyard paths to the retired ledger."""
        try:
            with self.retired_path.open("a", encoding=_ENCODING, errors=_ERRORS, newline="") as f:
                f.write("".join(_format_row([str(entry.graveyard_path)]) for entry in entries))
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            msg = f"Failed to write {self.retired_path}: {e}"
            raise RipError(msg, self.retired_path) from e

    def _rewrite(self, rows: list[_Row]) -> None:
        """Atomically replace the record with ``rows``."""
        tmp_path: Path | None = None
        try:
            with NamedTemporaryFile(
                mode="w",
                encoding=_ENCODING,
                errors=_ERRORS,
                newline="",
                dir=self._graveyard,
                prefix=f"{RECORD_FILENAME}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_path = Path(f.name)
                f.write(_format_row(RECORD_HEADER))
                for row in rows:
                    f.write(row.text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            msg = f"Failed to rewrite record {self.path}: {e}"
            raise RipError(msg, self.path) from e


def _format_row(fields: list[str]) -> str:
    """Serialize one row, including its line terminator."""
    buffer = io.StringIO()
    csv.writer(buffer, dialect=RecordDialect).writerow(fields)
    return buffer.getvalue()
