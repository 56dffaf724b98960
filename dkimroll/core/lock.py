"""
Advisory lock held for the duration of a rollover run.
"""

from __future__ import annotations

import fcntl
import logging
import os
from pathlib import Path  # noqa: TC003
from types import TracebackType

from dkimroll.common.exceptions import LockError

logger = logging.getLogger(__name__)


class RunLock:
    """Non-blocking exclusive ``flock`` on a lock file."""

    def __init__(self, path: Path):
        self.path = path
        self._fd: int | None = None

    def acquire(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o600)
        except OSError as err:
            msg = f"Cannot open lock file {self.path}: {err}"
            raise LockError(msg) from err
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as err:
            os.close(fd)
            msg = f"Another rollover run holds {self.path}"
            raise LockError(msg) from err
        self._fd = fd
        logger.debug("Acquired lock %s", self.path)

    def release(self) -> None:
        if self._fd is None:
            return
        fcntl.flock(self._fd, fcntl.LOCK_UN)
        os.close(self._fd)
        self._fd = None
        logger.debug("Released lock %s", self.path)

    @property
    def locked(self) -> bool:
        return self._fd is not None

    def __enter__(self) -> RunLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
