"""Advisory lock serialising mutating commands on one data directory.

The lock file sits beside the data directory rather than inside it, so
``destroy`` can remove the whole tree while holding the lock.
"""
from __future__ import annotations

import fcntl
import logging
import os
from pathlib import Path
from types import TracebackType

from clusterctl.errors import ClusterLockedError

logger = logging.getLogger(__name__)


class DataDirLock:
    """Non-blocking exclusive ``flock`` held for the life of a ``with`` block.

    Example
    -------
    ::

        with DataDirLock(config.lock_path):
            controller.destroy()
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._fd: int | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        """Take the lock.

        Raises
        ------
        ClusterLockedError
            If another process already holds it.
        """
        if self._fd is not None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            raise ClusterLockedError(str(self._path)) from None
        except OSError:
            os.close(fd)
            raise
        self._fd = fd
        logger.debug("Acquired lock %s", self._path)

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
        logger.debug("Released lock %s", self._path)

    def __enter__(self) -> "DataDirLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
