"""Moving, copying and measuring filesystem items.

Items are moved with a plain rename whenever source and destination
share a filesystem, which keeps permissions, timestamps and
symlink-ness for free. Across filesystems the item is copied, the copy
is verified, and only then is the original deleted.
"""

import errno
import logging
import os
import shutil
import stat
import sys
from collections.abc import Callable, Iterator
from pathlib import Path

from rip.core.errors import (
    AccessDenied,
    CrossDeviceCopyFailure,
    NotFound,
    PartialBury,
    RipError,
)

logger = logging.getLogger(__name__)


def relocate(source: Path, dest: Path) -> None:
    """Move ``source`` onto the placeholder reserved at ``dest``.

    Args:
        source: Existing file, link or directory.
        dest: Placeholder created by ``namer.reserve`` for this item.

    Raises:
        AccessDenied: If the source cannot be moved; it is left untouched.
        NotFound: If the source vanished.
        CrossDeviceCopyFailure: If the cross-device copy failed; the
            partial destination is removed and the source left intact.
        PartialBury: If the copy succeeded but the source could only be
            partly removed.
        RipError: For any other filesystem error.
    """
    try:
        _replace(source, dest)
        logger.debug("Renamed %s to %s", source, dest)
        return
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise wrap_os_error(e, source) from e

    logger.info("%s is on another filesystem than %s, copying", source, dest)
    check_removable(source)
    copy_then_delete(source, dest)


def copy_then_delete(source: Path, dest: Path) -> None:
    """Copy ``source`` over the placeholder at ``dest``, then delete it.

    The original is deleted only after every node of the copy has been
    verified.

    Raises:
        CrossDeviceCopyFailure: If copying or verification failed.
        PartialBury: If deleting the original failed after a good copy.
    """
    try:
        copy_item(source, dest)
        verify_copy(source, dest)
    except OSError as e:
        discard(dest)
        msg = f"Failed to copy {source} to {dest}: {e}"
        raise CrossDeviceCopyFailure(msg, source) from e

    try:
        remove_item(source)
    except OSError as e:
        msg = f"Copied {source} to {dest} but could not remove the original: {e}"
        raise PartialBury(msg, source) from e


def copy_item(source: Path, dest: Path) -> None:
    """Copy one item, preserving mode, timestamps and symlink-ness.

    ``dest`` is an empty placeholder of the matching kind.
    """
    mode = source.lstat().st_mode
    if stat.S_ISLNK(mode):
        _swap_in(dest, lambda tmp: os.symlink(os.readlink(source), tmp))
    elif stat.S_ISDIR(mode):
        shutil.copytree(
            source,
            dest,
            symlinks=True,
            copy_function=_copy_node,
            dirs_exist_ok=True,
        )
    elif stat.S_ISFIFO(mode):
        _swap_in(dest, lambda tmp: _copy_node(str(source), str(tmp)))
    else:
        _copy_node(str(source), str(dest))


def verify_copy(source: Path, dest: Path) -> None:
    """Check that every node under ``source`` exists under ``dest``.

    Node kinds must match and regular files must have the same size.

    Raises:
        OSError: On the first missing or mismatched node.
    """
    for node in iter_tree(source):
        copied = dest / node.relative_to(source)
        src_stat = node.lstat()
        try:
            dst_stat = copied.lstat()
        except FileNotFoundError as e:
            msg = f"Copy is missing {copied}"
            raise OSError(errno.ENOENT, msg) from e
        if stat.S_IFMT(src_stat.st_mode) != stat.S_IFMT(dst_stat.st_mode):
            msg = f"Copy of {node} has a different file type"
            raise OSError(errno.EIO, msg)
        if stat.S_ISREG(src_stat.st_mode) and src_stat.st_size != dst_stat.st_size:
            msg = f"Copy of {node} is {dst_stat.st_size} bytes, expected {src_stat.st_size}"
            raise OSError(errno.EIO, msg)


def check_removable(path: Path) -> None:
    """Make sure ``path`` and everything below it can be deleted.

    Raises:
        AccessDenied: If a directory in the way is not writable.
    """
    dirs = [path.parent]
    if path.is_dir() and not path.is_symlink():
        dirs.extend(node for node in iter_tree(path) if node.is_dir() and not node.is_symlink())
    for directory in dirs:
        if not os.access(directory, os.W_OK | os.X_OK):
            msg = f"Permission denied: cannot remove entries from {directory}"
            raise AccessDenied(msg, directory)


def remove_item(path: Path) -> None:
    """Delete a file, link or directory tree."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def discard(path: Path) -> None:
    """Best-effort removal of a partial copy."""
    try:
        remove_item(path)
    except FileNotFoundError:
        return
    except OSError as e:
        logger.warning("Could not clean up partial copy %s: %s", path, e)


def tree_size(path: Path) -> int:
    """Get size in bytes for a path.

    For files and links, returns their own size. For directories,
    returns the sum of everything below. Unreadable entries count as 0.
    """
    try:
        st = path.lstat()
    except OSError:
        return 0
    if not stat.S_ISDIR(st.st_mode):
        return st.st_size

    total = 0
    for dirpath, dirnames, filenames in os.walk(path):
        for name in filenames + dirnames:
            child = os.path.join(dirpath, name)
            try:
                child_stat = os.lstat(child)
            except OSError:
                continue
            if not stat.S_ISDIR(child_stat.st_mode):
                total += child_stat.st_size
    return total


def iter_tree(root: Path) -> Iterator[Path]:
    """Yield ``root`` and every node beneath it, without following links.

    Raises:
        OSError: If a directory cannot be listed.
    """
    yield root
    if not root.is_dir() or root.is_symlink():
        return
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        for name in dirnames + filenames:
            yield Path(dirpath) / name


def wrap_os_error(error: OSError, path: Path) -> RipError:
    """Translate an OSError into the rip error taxonomy."""
    if isinstance(error, PermissionError):
        return AccessDenied(f"Permission denied: {path}", path)
    if isinstance(error, FileNotFoundError):
        return NotFound(f"No such file or directory: {path}", path)
    return RipError(f"{error.strerror or error}: {path}", path)


def _replace(source: Path, dest: Path) -> None:
    """Rename ``source`` over its placeholder."""
    if sys.platform == "win32" and dest.is_dir():
        # Windows cannot rename over an existing directory
        dest.rmdir()
        os.rename(source, dest)
        return
    os.replace(source, dest)


def _swap_in(dest: Path, create: Callable[[Path], object]) -> None:
    """Create a node next to ``dest`` and rename it over the placeholder."""
    tmp = dest.with_name(f".{dest.name}.{os.getpid()}.tmp")
    create(tmp)
    try:
        os.replace(tmp, dest)
    except OSError:
        tmp.unlink()
        raise


def _copy_node(src: str, dst: str) -> str:
    """Copy function for copytree that also handles FIFOs."""
    mode = os.lstat(src).st_mode
    if stat.S_ISFIFO(mode):
        os.mkfifo(dst, stat.S_IMODE(mode))
        shutil.copystat(src, dst, follow_symlinks=False)
        return dst
    if not stat.S_ISREG(mode):
        msg = f"Cannot copy special file {src}"
        raise OSError(errno.EINVAL, msg)
    return shutil.copy2(src, dst)


def _raise(error: OSError) -> None:
    raise error
