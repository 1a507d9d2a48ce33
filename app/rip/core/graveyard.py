"""Graveyard facade.

This module provides the Graveyard class, the entry point used by the
CLI. It binds a graveyard root to its record store and forwards to the
bury, exhume and seance engines.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from rip.core.bury import bury, destroy
from rip.core.errors import AccessDenied, NotFound, RipError
from rip.core.exhume import EntryPredicate, exhume, match_all
from rip.core.namer import DEFAULT_NAMING_ATTEMPTS, canonicalize, is_within, join_absolute
from rip.core.record import DEFAULT_LOCK_TIMEOUT, RecordStore
from rip.core.seance import prune, seance
from rip.models.entry import BuriedInfo, Entry, GraveListing, RestoredInfo

logger = logging.getLogger(__name__)

# Permissions of a newly created graveyard root
GRAVEYARD_MODE = 0o700


class Graveyard:
    """A graveyard root together with its record.

    Each instance owns its own RecordStore handle, so several graveyards
    (or several isolated test graveyards) can be used side by side.

    Attributes:
        root: Canonical graveyard root.
        store: Record store of this graveyard.
    """

    def __init__(
        self,
        root: os.PathLike[str] | str,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        naming_attempts: int = DEFAULT_NAMING_ATTEMPTS,
    ) -> None:
        """Initialize Graveyard.

        Args:
            root: Graveyard root. Created lazily on first bury.
            lock_timeout: Seconds to wait for the record lock.
            naming_attempts: Bound on ``~N`` suffixes tried per destination.
        """
        self.root = Path(root).expanduser().resolve()
        self.store = RecordStore(self.root, lock_timeout=lock_timeout)
        self._naming_attempts = naming_attempts

    def ensure(self) -> Path:
        """Create the graveyard root if it doesn't exist.

        Returns:
            The graveyard root.

        Raises:
            AccessDenied: If the root cannot be created.
        """
        if self.root.is_dir():
            return self.root
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            self.root.chmod(GRAVEYARD_MODE)
        except PermissionError as e:
            msg = f"Cannot create graveyard {self.root}: Permission denied"
            raise AccessDenied(msg, self.root) from e
        except OSError as e:
            msg = f"Cannot create graveyard {self.root}: {e}"
            raise RipError(msg, self.root) from e
        logger.debug("Created graveyard %s", self.root)
        return self.root

    def bury(
        self, path: os.PathLike[str] | str, cwd: os.PathLike[str] | str | None = None
    ) -> BuriedInfo:
        """Move ``path`` into the graveyard. See ``rip.core.bury.bury``."""
        self.ensure()
        return bury(
            path,
            self.root,
            self.store,
            cwd=cwd,
            naming_attempts=self._naming_attempts,
        )

    def exhume(self, predicate: EntryPredicate | None = None) -> RestoredInfo:
        """Restore the newest item matching ``predicate``. See ``rip.core.exhume.exhume``.

        Without a predicate the most recently buried item is restored.
        """
        if not self.store.path.exists():
            msg = "No files in the graveyard"
            raise NotFound(msg, self.root)
        return exhume(predicate or match_all(), self.store)

    def list(self, predicate: EntryPredicate | None = None) -> list[GraveListing]:
        """List buried items, newest first. See ``rip.core.seance.seance``."""
        if not self.store.path.exists():
            return []
        return seance(self.store, predicate)

    def prune(self, predicate: EntryPredicate | None = None) -> list[Entry]:
        """Drop record entries whose graveyard item is gone."""
        if not self.store.path.exists():
            return []
        return prune(self.store, predicate)

    def destroy(
        self, path: os.PathLike[str] | str, cwd: os.PathLike[str] | str | None = None
    ) -> Path:
        """Permanently delete ``path`` without recording it.

        Returns:
            The canonical path that was deleted.
        """
        target = canonicalize(path, cwd)
        destroy(target)
        return target

    def decompose(self) -> None:
        """Permanently delete the whole graveyard, record included."""
        if not self.root.exists():
            return
        with self.store.open():
            try:
                shutil.rmtree(self.root)
            except OSError as e:
                msg = f"Failed to remove graveyard {self.root}: {e}"
                raise RipError(msg, self.root) from e
        logger.info("Decomposed graveyard %s", self.root)

    def contains(
        self, path: os.PathLike[str] | str, cwd: os.PathLike[str] | str | None = None
    ) -> bool:
        """Check whether ``path`` lies inside this graveyard."""
        return is_within(canonicalize(path, cwd), self.root)

    def seance_root(self, cwd: os.PathLike[str] | str | None = None) -> Path:
        """Return the graveyard mirror of a directory (default: the working directory)."""
        directory = Path(cwd) if cwd is not None else Path.cwd()
        return join_absolute(self.root, directory.resolve())
