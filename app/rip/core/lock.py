"""Advisory inter-process locking for the graveyard record.

The lock is taken on a sidecar file rather than on the record itself,
because rewriting the record swaps in a new inode through rename and a
lock held on the old inode would no longer exclude anybody.
"""

import errno
import logging
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from rip.core.errors import LockContention

if sys.platform == "win32":
    import msvcrt
else:
    import fcntl

logger = logging.getLogger(__name__)

# Seconds between non-blocking lock attempts
POLL_INTERVAL = 0.02

# Errors meaning "somebody else holds the lock"
_CONTENDED = {errno.EAGAIN, errno.EACCES, errno.EWOULDBLOCK, errno.EDEADLK}


class ProcessLock:
    """Reentrant advisory file lock shared between processes.

    Nested acquisitions within one instance only bump a counter, so an
    operation holding the lock can call helpers that take it again. An
    instance must not be shared between threads.

    Attributes:
        path: Lock file location.
        timeout: Seconds to wait for the lock before giving up.
    """

    def __init__(self, path: Path, timeout: float) -> None:
        self.path = path
        self.timeout = timeout
        self._fd: int | None = None
        self._depth = 0
        self._shared = False

    @property
    def held(self) -> bool:
        """Whether this instance currently holds the lock."""
        return self._depth > 0

    @contextmanager
    def acquire(self, shared: bool = False) -> Iterator[None]:
        """Hold the lock for the duration of the block.

        Args:
            shared: Take a shared (reader) lock instead of an exclusive one.
                Windows has no shared mode and always locks exclusively.

        Raises:
            LockContention: If the lock is not obtained within ``timeout``.
            RuntimeError: If an exclusive lock is requested while only a
                shared one is held.
        """
        if self._depth:
            if self._shared and not shared:
                msg = "Cannot upgrade a shared record lock to an exclusive one"
                raise RuntimeError(msg)
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self._lock(shared)
        self._depth = 1
        try:
            yield
        finally:
            self._depth = 0
            self._unlock()

    def _lock(self, shared: bool) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o600)
        deadline = time.monotonic() + self.timeout
        while True:
            try:
                _try_lock(fd, shared)
                break
            except OSError as e:
                if e.errno not in _CONTENDED:
                    os.close(fd)
                    raise
                if time.monotonic() >= deadline:
                    os.close(fd)
                    msg = f"Timed out after {self.timeout:g}s waiting for the record lock"
                    raise LockContention(msg, self.path) from e
                time.sleep(POLL_INTERVAL)
        logger.debug("Acquired %s lock on %s", "shared" if shared else "exclusive", self.path)
        self._fd = fd
        self._shared = shared

    def _unlock(self) -> None:
        if self._fd is None:
            return
        try:
            _release(self._fd)
        finally:
            os.close(self._fd)
            self._fd = None
            self._shared = False
        logger.debug("Released lock on %s", self.path)


if sys.platform == "win32":

    def _try_lock(fd: int, shared: bool) -> None:
        os.lseek(fd, 0, os.SEEK_SET)
        msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)

    def _release(fd: int) -> None:
        os.lseek(fd, 0, os.SEEK_SET)
        msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)

else:

    def _try_lock(fd: int, shared: bool) -> None:
        fcntl.flock(fd, (fcntl.LOCK_SH if shared else fcntl.LOCK_EX) | fcntl.LOCK_NB)

    def _release(fd: int) -> None:
        fcntl.flock(fd, fcntl.LOCK_UN)
