"""Unit tests for the exhume engine.

Tests for entry selection and restoring items to their original paths.
"""

import os
import shutil
import stat
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import patch

import pytest
from rip.core.errors import DestinationOccupied, MissingGraveyardFile, NotFound
from rip.core.exhume import (
    exhume,
    match_all,
    matches_grave,
    matches_path,
    newest,
    within,
)
from rip.core.graveyard import Graveyard
from rip.models.entry import Entry


def stamped(name: str, minutes: int) -> Entry:
    """Create an entry with a timestamp offset from a fixed base."""
    return Entry(
        original_path=Path("/work") / name,
        graveyard_path=Path("/graveyard/work") / name,
        deletion_timestamp=datetime(2026, 1, 26, tzinfo=UTC) + timedelta(minutes=minutes),
    )


class TestPredicates:
    """Tests for entry predicates."""

    def test_match_all(self) -> None:
        """match_all accepts anything."""
        assert match_all()(stamped("a", 0))

    def test_matches_path_is_exact(self) -> None:
        """Only the exact original path matches."""
        predicate = matches_path("/work/a")
        assert predicate(stamped("a", 0))
        assert not predicate(stamped("ab", 0))

    def test_matches_grave(self) -> None:
        """Graveyard paths select a single entry."""
        assert matches_grave("/graveyard/work/a")(stamped("a", 0))
        assert not matches_grave("/graveyard/work/a")(stamped("b", 0))

    def test_within(self) -> None:
        """Directory scope matches the directory and below."""
        predicate = within("/work")
        assert predicate(stamped("a", 0))
        assert not within("/wor")(stamped("a", 0))


class TestNewest:
    """Tests for newest function."""

    def test_latest_timestamp_wins(self) -> None:
        """The most recent timestamp is chosen."""
        entries = [stamped("a", 5), stamped("b", 10), stamped("c", 1)]
        assert newest(entries).original_path == Path("/work/b")

    def test_later_row_wins_ties(self) -> None:
        """Equal timestamps fall back to record order."""
        entries = [stamped("a", 5), stamped("b", 5)]
        assert newest(entries).original_path == Path("/work/b")


class TestExhume:
    """Tests for exhume function."""

    def test_restores_file(self, graveyard: Graveyard, workdir: Path) -> None:
        """Content and permissions come back; the row goes away."""
        source = workdir / "file.txt"
        source.write_text("hello")
        source.chmod(0o640)
        graveyard.bury(source)

        info = exhume(match_all(), graveyard.store)

        assert info.restored_to == source
        assert source.read_text() == "hello"
        assert stat.S_IMODE(source.stat().st_mode) == 0o640
        assert not os.path.lexists(info.entry.graveyard_path)
        assert graveyard.store.read_all() == []

    def test_restores_directory(self, graveyard: Graveyard, workdir: Path) -> None:
        """Directories come back whole."""
        source = workdir / "build"
        (source / "sub").mkdir(parents=True)
        (source / "sub" / "x").write_text("x")
        graveyard.bury(source)

        exhume(matches_path(source), graveyard.store)

        assert (source / "sub" / "x").read_text() == "x"

    def test_restores_symlink(self, graveyard: Graveyard, workdir: Path) -> None:
        """Links come back as links."""
        target = workdir / "target"
        target.write_text("t")
        link = workdir / "link"
        link.symlink_to(target)
        graveyard.bury(link)

        exhume(matches_path(link), graveyard.store)

        assert link.is_symlink()
        assert os.readlink(link) == str(target)

    def test_recreates_missing_parents(self, graveyard: Graveyard, workdir: Path) -> None:
        """Parent directories removed since burial are recreated."""
        source = workdir / "a" / "b" / "file.txt"
        source.parent.mkdir(parents=True)
        source.write_text("x")
        graveyard.bury(source)
        shutil.rmtree(workdir / "a")

        exhume(matches_path(source), graveyard.store)

        assert source.read_text() == "x"

    def test_newest_of_same_path(self, graveyard: Graveyard, workdir: Path) -> None:
        """Repeated burials come back most recent first."""
        source = workdir / "file.txt"
        source.write_text("first")
        graveyard.bury(source)
        source.write_text("second")
        graveyard.bury(source)

        exhume(matches_path(source), graveyard.store)
        assert source.read_text() == "second"

        source.unlink()
        exhume(matches_path(source), graveyard.store)
        assert source.read_text() == "first"
        assert graveyard.store.read_all() == []

    def test_match_all_picks_latest_burial(self, graveyard: Graveyard, workdir: Path) -> None:
        """Without a filter the last buried item is restored."""
        for name in ("a", "b", "c"):
            (workdir / name).write_text(name)
            graveyard.bury(workdir / name)

        info = exhume(match_all(), graveyard.store)

        assert info.restored_to == workdir / "c"
        assert not (workdir / "a").exists()

    def test_select_by_graveyard_path(self, graveyard: Graveyard, workdir: Path) -> None:
        """An explicit graveyard path restores that exact entry."""
        source = workdir / "file.txt"
        source.write_text("first")
        first = graveyard.bury(source)
        source.write_text("second")
        graveyard.bury(source)

        exhume(matches_grave(first.entry.graveyard_path), graveyard.store)

        assert source.read_text() == "first"
        assert len(graveyard.store.read_all()) == 1


class TestExhumeFailures:
    """Tests for exhume error handling."""

    def test_no_match(self, graveyard: Graveyard, workdir: Path) -> None:
        """NotFound leaves the record byte-identical."""
        source = workdir / "file.txt"
        source.write_text("x")
        graveyard.bury(source)
        before = graveyard.store.path.read_bytes()

        with pytest.raises(NotFound):
            exhume(matches_path(workdir / "other"), graveyard.store)

        assert graveyard.store.path.read_bytes() == before

    def test_destination_occupied(self, graveyard: Graveyard, workdir: Path) -> None:
        """An existing original path blocks the restore without changes."""
        source = workdir / "file.txt"
        source.write_text("buried")
        info = graveyard.bury(source)
        source.write_text("new file")
        before = graveyard.store.path.read_bytes()

        with pytest.raises(DestinationOccupied):
            exhume(matches_path(source), graveyard.store)

        assert source.read_text() == "new file"
        assert info.entry.graveyard_path.read_text() == "buried"
        assert graveyard.store.path.read_bytes() == before

    def test_missing_graveyard_file(self, graveyard: Graveyard, workdir: Path) -> None:
        """Vanished graveyard items are reported and pruned."""
        source = workdir / "file.txt"
        source.write_text("x")
        info = graveyard.bury(source)
        info.entry.graveyard_path.unlink()

        with pytest.raises(MissingGraveyardFile):
            exhume(matches_path(source), graveyard.store)

        assert graveyard.store.read_all() == []
        assert not source.exists()

    def test_stale_match_skipped(self, graveyard: Graveyard, workdir: Path) -> None:
        """A stale newer entry is pruned and the next one restored."""
        source = workdir / "file.txt"
        source.write_text("first")
        graveyard.bury(source)
        source.write_text("second")
        second = graveyard.bury(source)
        second.entry.graveyard_path.unlink()

        info = exhume(matches_path(source), graveyard.store)

        assert source.read_text() == "first"
        assert info.entry != second.entry
        assert graveyard.store.read_all() == []

    def test_vanishes_during_move(self, graveyard: Graveyard, workdir: Path) -> None:
        """An item disappearing mid-restore leaves no placeholder."""
        source = workdir / "file.txt"
        source.write_text("x")
        graveyard.bury(source)

        with patch("rip.core.exhume.relocate", side_effect=NotFound("gone")):
            with pytest.raises(MissingGraveyardFile):
                exhume(matches_path(source), graveyard.store)

        assert not os.path.lexists(source)

    def test_second_exhume_finds_nothing(
        self, graveyard: Graveyard, yard_root: Path, workdir: Path
    ) -> None:
        """An entry restored by one handle is gone for another."""
        source = workdir / "file.txt"
        source.write_text("x")
        info = graveyard.bury(source)
        other = Graveyard(yard_root, lock_timeout=2.0)

        exhume(matches_grave(info.entry.graveyard_path), graveyard.store)

        with pytest.raises(NotFound):
            exhume(matches_grave(info.entry.graveyard_path), other.store)
        assert source.read_text() == "x"
