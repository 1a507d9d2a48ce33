"""Bury engine: relocate items into the graveyard and record them.

A bury either fully succeeds (the item lives in the graveyard and the
record has a row for it) or fully fails (the item is where it was and
no row is written). The one exception is a cross-device move whose
original could only be partly deleted after a verified copy: the entry
is then recorded anyway, because the graveyard holds the only complete
copy, and PartialBury is raised carrying that entry.
"""

import logging
import os
import shutil
import stat
from pathlib import Path

from rip.core.errors import (
    AccessDenied,
    CrossDeviceCopyFailure,
    InsideGraveyard,
    NotFound,
    PartialBury,
    RipError,
)
from rip.core.namer import (
    DEFAULT_NAMING_ATTEMPTS,
    canonicalize,
    claim_destination,
    is_within,
    release,
    reserve,
)
from rip.core.record import RecordStore
from rip.core.transfer import relocate, tree_size, wrap_os_error
from rip.models.entry import BuriedInfo, create_entry

logger = logging.getLogger(__name__)


def bury(
    source: os.PathLike[str] | str,
    root: Path,
    store: RecordStore,
    *,
    cwd: os.PathLike[str] | str | None = None,
    naming_attempts: int = DEFAULT_NAMING_ATTEMPTS,
) -> BuriedInfo:
    """Move an item into the graveyard and record it.

    Args:
        source: File, link or directory to bury, relative to ``cwd``.
        root: Canonical graveyard root. Must exist.
        store: Record store of that graveyard.
        cwd: Directory relative paths are interpreted against.
        naming_attempts: Bound on ``~N`` suffixes tried for the destination.

    Returns:
        BuriedInfo with the new entry and the item's aggregate size.

    Raises:
        NotFound: If the source does not exist.
        InsideGraveyard: If the source is in the graveyard or contains it.
        AccessDenied: If the source cannot be moved.
        DestinationOccupied: If no free graveyard name was found.
        PartialBury: See module docstring.
        LockContention: If the record lock cannot be acquired.
    """
    original = canonicalize(source, cwd)
    try:
        mode = original.lstat().st_mode
    except FileNotFoundError:
        msg = f"Cannot remove {source}: no such file or directory"
        raise NotFound(msg, original) from None
    except OSError as e:
        raise wrap_os_error(e, original) from e

    if is_within(original, root):
        msg = f"{original} is already in the graveyard"
        raise InsideGraveyard(msg, original)
    if is_within(root, original):
        msg = f"Cannot bury {original}: it contains the graveyard {root}"
        raise InsideGraveyard(msg, original)

    parent = original.parent
    if not os.access(parent, os.W_OK | os.X_OK):
        msg = f"Permission denied: cannot remove {original} from {parent}"
        raise AccessDenied(msg, original)

    is_dir = stat.S_ISDIR(mode)
    size = tree_size(original)
    # Names retired by an exhume stay off limits
    with store.open():
        dest = claim_destination(
            original, root, is_dir, naming_attempts, taken=store.used_graves()
        )

    try:
        relocate(original, dest)
    except CrossDeviceCopyFailure:
        raise
    except PartialBury as e:
        entry = create_entry(original, dest, is_dir)
        store.append(entry)
        e.entry = entry
        logger.error("Buried %s but parts of the original remain", original)
        raise
    except RipError:
        release(dest)
        raise

    entry = create_entry(original, dest, is_dir)
    try:
        store.append(entry)
    except RipError as e:
        logger.error("Could not record %s, moving it back: %s", original, e)
        _roll_back(dest, original, e)
        raise

    logger.info("Buried %s at %s", original, dest)
    return BuriedInfo(entry=entry, size_bytes=size)


def destroy(path: os.PathLike[str] | str) -> None:
    """Permanently delete an item without recording it.

    Nothing is written to the record: an unrecorded deletion must never
    be advertised as recoverable.

    Args:
        path: File, link or directory to delete.

    Raises:
        NotFound: If the path does not exist.
        AccessDenied: If the path cannot be deleted.
    """
    target = Path(path)
    try:
        # Directories (but not symlinks to directories)
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        # Files, symlinks, and dead symlinks
        elif target.exists() or target.is_symlink():
            target.unlink()
        else:
            msg = f"Cannot remove {target}: no such file or directory"
            raise NotFound(msg, target)
    except OSError as e:
        raise wrap_os_error(e, target) from e
    logger.info("Permanently deleted %s", target)


def _roll_back(dest: Path, original: Path, cause: RipError) -> None:
    """Move a freshly buried item back after its record append failed."""
    is_dir = dest.is_dir() and not dest.is_symlink()
    try:
        if not reserve(original, is_dir):
            msg = f"{original} was recreated while burying it"
            raise RipError(msg, original)
        relocate(dest, original)
    except RipError as e:
        msg = f"{original} is in the graveyard at {dest} but could not be recorded: {cause}"
        raise PartialBury(msg, original) from e
