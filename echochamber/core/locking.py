# echochamber/core/locking.py
from __future__ import annotations
import fcntl
import os
from contextlib import contextmanager
from typing import BinaryIO, Iterator

import structlog

from echochamber.core.errors import LockError

log = structlog.get_logger()


@contextmanager
def locked(path: str, shared: bool) -> Iterator[BinaryIO]:
    """
    Whole-file advisory lock (flock) held for the duration of the block.
    Yields the file opened read/write with the position at 0.
    The kernel drops flock locks when the holder dies, so a crashed
    publisher never wedges everyone else.
    """
    fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o666)
    fh = os.fdopen(fd, "r+b")
    try:
        try:
            fcntl.flock(fh.fileno(), fcntl.LOCK_SH if shared else fcntl.LOCK_EX)
        except OSError as e:
            raise LockError(f"could not lock {path}: {e}") from e
        try:
            yield fh
        except BaseException:
            # the body's error wins; closing the fd below drops the lock anyway
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
            except OSError as e:
                log.warning("lock.unlock_failed", path=path, err=str(e))
            raise
        try:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
        except OSError as e:
            raise LockError(f"could not unlock {path}: {e}") from e
    finally:
        fh.close()
