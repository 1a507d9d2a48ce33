"""Path canonicalization and graveyard naming.

Every buried item mirrors its absolute original path under the
graveyard root, so items with the same name in different directories
never collide. Repeated burials of the same path get a ``~N`` suffix.

Destinations are reserved atomically (an exclusive-create placeholder
for files and links, ``mkdir`` for directories) right before the move,
so two processes can never pick the same destination.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Collection
from dataclasses import dataclass
from pathlib import Path, PurePath

from rip.core.errors import DestinationOccupied

logger = logging.getLogger(__name__)

# Separator between a grave name and its disambiguating counter
GRAVE_SUFFIX = "~"

# Upper bound on suffixes tried before giving up on a destination
DEFAULT_NAMING_ATTEMPTS = 1000

# Default filesystems on Windows and macOS compare names case-insensitively
_CASE_INSENSITIVE = sys.platform in ("win32", "darwin")


@dataclass(frozen=True, slots=True)
class PathKey:
    """Platform-aware equality key for a filesystem path.

    Two paths with equal keys name the same location on this platform:
    separators and redundant components are normalized, and case is
    folded where the default filesystem ignores it.

    Attributes:
        value: Normalized string form of the path.
    """

    value: str

    @classmethod
    def of(cls, path: os.PathLike[str] | str) -> PathKey:
        """Build the key for a path."""
        text = os.path.normcase(os.path.normpath(os.fspath(path)))
        if _CASE_INSENSITIVE:
            text = text.casefold()
        return cls(text)

    def contains(self, other: PathKey) -> bool:
        """Check whether ``other`` is this path or lies beneath it."""
        if other.value == self.value:
            return True
        prefix = self.value if self.value.endswith(os.sep) else self.value + os.sep
        return other.value.startswith(prefix)


def same_path(a: os.PathLike[str] | str, b: os.PathLike[str] | str) -> bool:
    """Compare two paths with platform equality rules."""
    return PathKey.of(a) == PathKey.of(b)


def is_within(path: os.PathLike[str] | str, root: os.PathLike[str] | str) -> bool:
    """Check whether ``path`` is ``root`` or lies beneath it."""
    return PathKey.of(root).contains(PathKey.of(path))


def canonicalize(path: os.PathLike[str] | str, cwd: os.PathLike[str] | str | None = None) -> Path:
    """Resolve a user-supplied path to its canonical absolute form.

    Relative paths are joined to ``cwd`` (default: the working
    directory) and normalized lexically. Symlinks are resolved in the
    parent components only, so a link passed as the final component
    stays the subject of the operation rather than its target.

    Args:
        path: Path as given by the caller.
        cwd: Directory relative paths are interpreted against.

    Returns:
        Absolute path with a fully resolved parent.
    """
    base = Path(cwd) if cwd is not None else Path.cwd()
    joined = Path(os.path.normpath(base.absolute() / Path(path)))
    if not joined.name:
        # Filesystem root or bare drive
        return joined
    return joined.parent.resolve() / joined.name


def join_absolute(root: os.PathLike[str] | str, path: os.PathLike[str] | str) -> Path:
    """Mirror an absolute path underneath ``root``.

    The anchor is stripped; a Windows drive letter or UNC share is kept
    as a plain leading component (``C:\\x`` becomes ``<root>/C/x``).

    Args:
        root: Directory to mirror into.
        path: Absolute path to mirror.

    Returns:
        The mirrored path.
    """
    pure = PurePath(path)
    dest = Path(root)
    drive = pure.drive.replace(":", "").strip("\\/")
    if drive:
        dest = dest.joinpath(*(part for part in drive.replace("\\", "/").split("/") if part))
    parts = pure.parts[1:] if pure.anchor else pure.parts
    return dest.joinpath(*parts)


def with_suffix_counter(path: Path, counter: int) -> Path:
    """Return the ``name~N`` sibling of a path."""
    return path.with_name(f"{path.name}{GRAVE_SUFFIX}{counter}")


def graveyard_destination(
    original: os.PathLike[str] | str,
    root: os.PathLike[str] | str,
    attempts: int = DEFAULT_NAMING_ATTEMPTS,
) -> Path:
    """Compute where ``original`` would be buried, without reserving it.

    Args:
        original: Canonical absolute path being buried.
        root: Graveyard root.
        attempts: Maximum number of candidates to examine.

    Returns:
        The mirrored path, or its first unoccupied ``~N`` sibling.

    Raises:
        DestinationOccupied: If every candidate is taken.
    """
    base = join_absolute(root, original)
    for counter in range(attempts):
        candidate = base if counter == 0 else with_suffix_counter(base, counter)
        if not os.path.lexists(candidate):
            return candidate
    msg = f"No free graveyard name for {original} after {attempts} attempts"
    raise DestinationOccupied(msg, base)


def reserve(path: Path, is_dir: bool) -> bool:
    """Atomically create a placeholder at ``path``.

    Args:
        path: Location to reserve. Its parent must exist.
        is_dir: Reserve an empty directory instead of an empty file.

    Returns:
        True if the placeholder was created, False if the path is taken.
    """
    try:
        if is_dir:
            os.mkdir(path, 0o700)
        else:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            os.close(fd)
    except FileExistsError:
        return False
    return True


def release(path: Path) -> None:
    """Remove a placeholder created by ``reserve`` if it is still empty.

    Anything that is no longer an empty placeholder is left alone.
    """
    try:
        if path.is_symlink():
            return
        if path.is_dir():
            path.rmdir()
        elif path.is_file() and path.stat().st_size == 0:
            path.unlink()
    except OSError as e:
        logger.debug("Leaving placeholder %s in place: %s", path, e)


def claim_destination(
    original: Path,
    root: Path,
    is_dir: bool,
    attempts: int = DEFAULT_NAMING_ATTEMPTS,
    taken: Collection[PathKey] = frozenset(),
) -> Path:
    """Reserve a unique graveyard destination for ``original``.

    Missing mirror directories are created on the way. A mirror
    component already occupied by a buried file or link is
    disambiguated with a ``~N`` suffix, and so is the final name.

    Args:
        original: Canonical absolute path being buried.
        root: Graveyard root.
        is_dir: Whether the item being buried is a directory.
        attempts: Bound on suffixes tried per component.
        taken: Graveyard paths handed out before, skipped even when
            nothing exists at them any more.

    Returns:
        A reserved placeholder path, ready to be replaced by the item.

    Raises:
        DestinationOccupied: If no free name is found within ``attempts``.
    """
    base = join_absolute(root, original)
    parent = _mirror_parent(root, base.relative_to(root).parts[:-1], attempts)
    name = base.name
    for counter in range(attempts):
        candidate = parent / name if counter == 0 else with_suffix_counter(parent / name, counter)
        if PathKey.of(candidate) in taken:
            logger.debug("Graveyard destination %s was used before", candidate)
            continue
        if reserve(candidate, is_dir):
            logger.debug("Reserved graveyard destination %s", candidate)
            return candidate
        logger.debug("Graveyard destination %s is taken", candidate)
    msg = f"No free graveyard name for {original} after {attempts} attempts"
    raise DestinationOccupied(msg, parent / name)


def _mirror_parent(root: Path, parts: tuple[str, ...], attempts: int) -> Path:
    """Create the mirror directories for ``parts`` under ``root``.

    Args:
        root: Graveyard root (must exist).
        parts: Directory components to create, outermost first.
        attempts: Bound on suffixes tried per component.

    Returns:
        The innermost directory.
    """
    current = root
    for part in parts:
        candidate = current / part
        for counter in range(attempts):
            if counter:
                candidate = current / f"{part}{GRAVE_SUFFIX}{counter}"
            try:
                candidate.mkdir()
                break
            except FileExistsError:
                # A buried link must never be followed out of the graveyard
                if candidate.is_dir() and not candidate.is_symlink():
                    break
        else:
            msg = f"No free graveyard directory for {current / part} after {attempts} attempts"
            raise DestinationOccupied(msg, current / part)
        current = candidate
    return current
