"""Unit tests for RecordStore.

Tests for appending, reading and rewriting the graveyard record.
"""

import csv
import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import patch

import pytest
from rip.core.errors import MissingHeader, RecordVersionMismatch, RipError
from rip.core.namer import PathKey
from rip.core.record import RECORD_FILENAME, RecordStore
from rip.models.entry import Entry

HEADER_LINE = "#rip-record\tv2\toriginal_path\tgraveyard_path\tdeletion_timestamp\twas_directory\n"


def make_entry(yard_root: Path, name: str, minutes: int = 0, was_directory: bool = False) -> Entry:
    """Create an entry buried from /work/<name>."""
    return Entry(
        original_path=Path("/work") / name,
        graveyard_path=yard_root / "work" / name,
        deletion_timestamp=datetime(2026, 1, 26, 14, 0, tzinfo=UTC) + timedelta(minutes=minutes),
        was_directory=was_directory,
    )


class TestRecordStoreOpen:
    """Tests for record creation."""

    def test_exclusive_open_creates_header(self, store: RecordStore) -> None:
        """The record is created with its header."""
        with store.open():
            pass
        assert store.path.read_text() == HEADER_LINE

    def test_shared_open_does_not_create(self, store: RecordStore) -> None:
        """Readers never create the record."""
        with store.open(shared=True):
            pass
        assert not store.path.exists()

    def test_path(self, store: RecordStore, yard_root: Path) -> None:
        """Record lives at the graveyard root."""
        assert store.path == yard_root / RECORD_FILENAME


class TestRecordStoreAppend:
    """Tests for RecordStore.append."""

    def test_append_and_read(self, store: RecordStore, yard_root: Path) -> None:
        """Appended entries are read back in order."""
        first = make_entry(yard_root, "a.txt")
        second = make_entry(yard_root, "dir", minutes=1, was_directory=True)

        store.append(first)
        store.append(second)

        assert store.read_all() == [first, second]
        assert store.corrupt_rows == []

    def test_append_writes_one_line(self, store: RecordStore, yard_root: Path) -> None:
        """Each entry is a single tab-separated line."""
        store.append(make_entry(yard_root, "a.txt"))

        lines = store.path.read_text().splitlines()
        assert lines[1] == (
            f"/work/a.txt\t{yard_root}/work/a.txt\t2026-01-26T14:00:00+00:00\t0"
        )

    def test_append_to_empty_file_writes_header(self, store: RecordStore, yard_root: Path) -> None:
        """A zero-byte record gets its header on first append."""
        store.path.touch()
        entry = make_entry(yard_root, "a.txt")

        store.append(entry)

        assert store.path.read_text().startswith(HEADER_LINE)
        assert store.read_all() == [entry]

    @pytest.mark.parametrize(
        "name",
        ["tab\there", "new\nline", 'quote"d', "crlf\r\nname", "ünïcödé"],
    )
    def test_special_characters_round_trip(
        self, store: RecordStore, yard_root: Path, name: str
    ) -> None:
        """Paths with delimiters, quotes and line breaks survive."""
        entry = make_entry(yard_root, name)
        store.append(entry)
        assert store.read_all() == [entry]

    def test_append_failure_raises_rip_error(self, store: RecordStore, yard_root: Path) -> None:
        """Write failures surface as RipError."""
        with patch("rip.core.record.os.fsync", side_effect=OSError(28, "No space left")):
            with pytest.raises(RipError, match="Failed to write record"):
                store.append(make_entry(yard_root, "a.txt"))


class TestRecordStoreRead:
    """Tests for RecordStore.read_all."""

    def test_missing_record(self, store: RecordStore) -> None:
        """No record means no entries."""
        assert store.read_all() == []
        assert not store.path.exists()

    def test_missing_graveyard(self, tmp_path: Path) -> None:
        """A graveyard that doesn't exist reads as empty."""
        store = RecordStore(tmp_path / "nowhere")
        assert store.read_all() == []
        assert not (tmp_path / "nowhere").exists()

    def test_empty_record(self, store: RecordStore) -> None:
        """A zero-byte record reads as empty."""
        store.path.touch()
        assert store.read_all() == []

    def test_corrupt_rows_skipped(
        self, store: RecordStore, yard_root: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Malformed rows are skipped, logged and collected."""
        good = make_entry(yard_root, "a.txt")
        store.append(good)
        with store.path.open("a") as f:
            f.write("only-one-field\n")
            f.write("/x\t/g/x\tnot-a-time\t0\n")

        with caplog.at_level(logging.WARNING, logger="rip.core.record"):
            entries = store.read_all()

        assert entries == [good]
        assert [c.line for c in store.corrupt_rows] == [3, 4]
        assert store.corrupt_rows[0].row == ["only-one-field"]
        assert "Skipping corrupt record line 3" in caplog.text

    def test_blank_lines_ignored(self, store: RecordStore, yard_root: Path) -> None:
        """Empty lines are not corrupt rows."""
        entry = make_entry(yard_root, "a.txt")
        store.append(entry)
        with store.path.open("a") as f:
            f.write("\n")

        assert store.read_all() == [entry]
        assert store.corrupt_rows == []

    def test_missing_header(self, store: RecordStore) -> None:
        """A record without header is rejected."""
        store.path.write_text("/a\t/g/a\t2026-01-26T14:00:00+00:00\t0\n")
        with pytest.raises(MissingHeader):
            store.read_all()

    def test_legacy_header(self, store: RecordStore) -> None:
        """Records from older rip releases are detected."""
        store.path.write_text("Time\tOriginal\tDestination\n")
        with pytest.raises(MissingHeader, match="older rip"):
            store.read_all()

    def test_version_mismatch(self, store: RecordStore) -> None:
        """A different format version is rejected."""
        store.path.write_text("#rip-record\tv3\toriginal_path\n")
        with pytest.raises(RecordVersionMismatch, match="v3"):
            store.read_all()

    def test_read_never_writes(self, store: RecordStore, yard_root: Path) -> None:
        """Reading leaves the file byte-for-byte unchanged."""
        store.append(make_entry(yard_root, "a.txt"))
        with store.path.open("a") as f:
            f.write("garbage\n")
        before = store.path.read_bytes()

        store.read_all()

        assert store.path.read_bytes() == before


class TestRecordStoreRemove:
    """Tests for RecordStore.remove."""

    def test_remove_matching(self, store: RecordStore, yard_root: Path) -> None:
        """Only the given entries are dropped."""
        a = make_entry(yard_root, "a.txt")
        b = make_entry(yard_root, "b.txt", minutes=1)
        c = make_entry(yard_root, "c.txt", minutes=2)
        for entry in (a, b, c):
            store.append(entry)

        removed = store.remove([b])

        assert removed == 1
        assert store.read_all() == [a, c]

    def test_remove_requires_whole_entry(self, store: RecordStore, yard_root: Path) -> None:
        """A row sharing only the graveyard path is not removed."""
        a = make_entry(yard_root, "a.txt")
        store.append(a)
        lookalike = Entry(
            original_path=a.original_path,
            graveyard_path=a.graveyard_path,
            deletion_timestamp=datetime.now(UTC),
        )

        assert store.remove([lookalike]) == 0
        assert store.read_all() == [a]

    def test_remove_retires_graveyard_path(self, store: RecordStore, yard_root: Path) -> None:
        """Removed graveyard paths stay in use."""
        a = make_entry(yard_root, "a.txt")
        b = make_entry(yard_root, "b.txt", minutes=1)
        store.append(a)
        store.append(b)

        store.remove([a])

        assert store.read_all() == [b]
        assert store.used_graves() == {PathKey.of(a.graveyard_path), PathKey.of(b.graveyard_path)}

    def test_used_graves_empty(self, store: RecordStore) -> None:
        """A fresh graveyard has used no names."""
        assert store.used_graves() == set()

    def test_remove_absent_entry(self, store: RecordStore, yard_root: Path) -> None:
        """Removing an unknown entry changes nothing."""
        store.append(make_entry(yard_root, "a.txt"))
        before = store.path.read_bytes()

        assert store.remove([make_entry(yard_root, "zzz")]) == 0
        assert store.path.read_bytes() == before

    def test_remove_nothing(self, store: RecordStore) -> None:
        """An empty removal is a no-op."""
        assert store.remove([]) == 0
        assert not store.path.exists()

    def test_corrupt_rows_preserved(self, store: RecordStore, yard_root: Path) -> None:
        """Rewrites carry unparseable rows over verbatim."""
        a = make_entry(yard_root, "a.txt")
        b = make_entry(yard_root, "b.txt", minutes=1)
        store.append(a)
        with store.path.open("a") as f:
            f.write("junk\trow\n")
        store.append(b)

        store.remove([a])

        assert store.path.read_text().splitlines()[1] == "junk\trow"
        assert store.read_all() == [b]
        assert len(store.corrupt_rows) == 1

    def test_unreadable_rows_preserved(self, store: RecordStore, yard_root: Path) -> None:
        """Rows the csv reader rejects survive a rewrite byte for byte."""
        a = make_entry(yard_root, "a.txt")
        b = make_entry(yard_root, "b.txt", minutes=1)
        oversized = "x" * (csv.field_size_limit() + 10) + "\ty\n"
        store.append(a)
        with store.path.open("a") as f:
            f.write(oversized)
        store.append(b)

        store.remove([a])

        assert oversized in store.path.read_text()
        assert store.read_all() == [b]
        assert len(store.corrupt_rows) == 1

    def test_no_temp_files_left(self, store: RecordStore, yard_root: Path) -> None:
        """The rewrite leaves no temporary files behind."""
        a = make_entry(yard_root, "a.txt")
        store.append(a)
        store.remove([a])

        leftovers = [p.name for p in yard_root.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    def test_failed_rewrite_keeps_record(self, store: RecordStore, yard_root: Path) -> None:
        """If the rename fails the old record stays intact."""
        a = make_entry(yard_root, "a.txt")
        store.append(a)
        before = store.path.read_bytes()

        with patch("rip.core.record.os.replace", side_effect=OSError(5, "I/O error")):
            with pytest.raises(RipError, match="Failed to rewrite record"):
                store.remove([a])

        assert store.path.read_bytes() == before
        assert [p for p in yard_root.iterdir() if p.name.endswith(".tmp")] == []
