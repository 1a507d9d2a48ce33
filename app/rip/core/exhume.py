"""Exhume engine: restore buried items to where they came from.

The record lock is held from the moment the record is re-read until
the restored entry has been removed, so two processes exhuming the same
entry can never both restore it: the second one re-reads the record
after the first has finished and no longer finds the entry.
"""

import logging
import os
from collections.abc import Callable
from pathlib import Path

from rip.core.errors import (
    AccessDenied,
    CrossDeviceCopyFailure,
    DestinationOccupied,
    MissingGraveyardFile,
    NotFound,
    PartialBury,
    RipError,
)
from rip.core.namer import is_within, release, reserve, same_path
from rip.core.record import RecordStore
from rip.core.transfer import relocate
from rip.models.entry import Entry, RestoredInfo

logger = logging.getLogger(__name__)

# Caller-supplied selector over record entries
EntryPredicate = Callable[[Entry], bool]


def match_all() -> EntryPredicate:
    """Match every entry (restore the most recently buried item)."""
    return lambda entry: True


def matches_path(path: os.PathLike[str] | str) -> EntryPredicate:
    """Match entries buried from exactly ``path``."""
    return lambda entry: same_path(entry.original_path, path)


def matches_grave(graveyard_path: os.PathLike[str] | str) -> EntryPredicate:
    """Match the entry stored at ``graveyard_path`` in the graveyard."""
    return lambda entry: same_path(entry.graveyard_path, graveyard_path)


def within(directory: os.PathLike[str] | str) -> EntryPredicate:
    """Match entries buried from ``directory`` or anywhere beneath it."""
    return lambda entry: is_within(entry.original_path, directory)


def newest(entries: list[Entry]) -> Entry:
    """Pick the most recently buried entry; later rows win ties."""
    indexed = list(enumerate(entries))
    return max(indexed, key=lambda pair: (pair[1].deletion_timestamp, pair[0]))[1]


def exhume(predicate: EntryPredicate, store: RecordStore) -> RestoredInfo:
    """Restore the most recently buried item matching ``predicate``.

    Matching entries whose graveyard item has disappeared are pruned
    from the record on the way.

    Args:
        predicate: Selects candidate entries.
        store: Record store of the graveyard.

    Returns:
        RestoredInfo with the removed entry and where it was restored.

    Raises:
        NotFound: If no entry matches; the record is left unchanged.
        MissingGraveyardFile: If every match has lost its graveyard item.
        DestinationOccupied: If the original path exists; nothing changes.
        AccessDenied: If the item cannot be moved back.
        LockContention: If the record lock cannot be acquired.
    """
    with store.open():
        matches = [entry for entry in store.read_all() if predicate(entry)]
        if not matches:
            msg = "No matching files in the graveyard"
            raise NotFound(msg)

        live = [entry for entry in matches if os.path.lexists(entry.graveyard_path)]
        stale = [entry for entry in matches if entry not in live]
        if stale:
            pruned = store.remove(stale)
            logger.info("Pruned %d record entries whose graveyard item is gone", pruned)
        if not live:
            gone = newest(stale)
            msg = f"{gone.graveyard_path} is missing from the graveyard"
            raise MissingGraveyardFile(msg, gone.graveyard_path)

        entry = newest(live)
        restored_to = _restore(entry)
        store.remove([entry])

    logger.info("Returned %s to %s", entry.graveyard_path, restored_to)
    return RestoredInfo(entry=entry, restored_to=restored_to)


def _restore(entry: Entry) -> Path:
    """Move an entry's graveyard item back to its original path."""
    grave = entry.graveyard_path
    dest = entry.original_path
    if os.path.lexists(dest):
        msg = f"Cannot restore {grave}: {dest} already exists"
        raise DestinationOccupied(msg, dest)

    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        msg = f"Permission denied: cannot create {dest.parent}"
        raise AccessDenied(msg, dest.parent) from e
    except OSError as e:
        msg = f"Cannot create {dest.parent}: {e}"
        raise RipError(msg, dest.parent) from e

    is_dir = grave.is_dir() and not grave.is_symlink()
    if not reserve(dest, is_dir):
        msg = f"Cannot restore {grave}: {dest} already exists"
        raise DestinationOccupied(msg, dest)

    try:
        relocate(grave, dest)
    except NotFound as e:
        release(dest)
        msg = f"{grave} is missing from the graveyard"
        raise MissingGraveyardFile(msg, grave) from e
    except CrossDeviceCopyFailure:
        raise
    except PartialBury as e:
        # The restored copy is complete; only graveyard leftovers remain
        logger.warning("Restored %s but could not clear %s: %s", dest, grave, e)
    except RipError:
        release(dest)
        raise
    return dest
