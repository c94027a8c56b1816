# echochamber/core/wakeup.py
from __future__ import annotations
import errno
import os
import select
import uuid
from typing import Optional

import structlog

from echochamber.core.errors import ChannelInitError

log = structlog.get_logger()

FIFO_SUFFIX = ".fifo"
TMP_SUFFIX = ".tmp"


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def _owner_pid(name: str) -> Optional[int]:
    # names are "[.]<pid>-<token><suffix>"
    head = name.lstrip(".").split("-", 1)[0]
    return int(head) if head.isdigit() else None


class WakeupChannel:
    """
    Broadcast wakeup over named pipes.

    The channel path is a directory; every subscriber owns one FIFO in it for
    as long as it waits. signal() pokes each FIFO once, so all blocked
    subscribers wake on every publish. A wakeup sent while a subscriber is busy
    stays buffered in its pipe until the next wait().
    """
    def __init__(self, path: str, mode: int = 0o777):
        self.path = path
        try:
            if not os.path.isdir(path):
                os.makedirs(path, exist_ok=True)
                try:
                    os.chmod(path, mode)
                except OSError as e:
                    log.warning("wakeup.chmod_failed", path=path, mode=oct(mode), err=str(e))
        except OSError as e:
            raise ChannelInitError(f"failed to create wakeup channel at {path}: {e}") from e

    def signal(self) -> int:
        """Wake every registered waiter. Returns how many were poked."""
        woken = 0
        for name in os.listdir(self.path):
            if name.endswith(TMP_SUFFIX):
                # half-registered waiter; only stale if its process is gone
                pid = _owner_pid(name)
                if pid is not None and not _pid_alive(pid):
                    self._prune(os.path.join(self.path, name))
                continue
            if not name.endswith(FIFO_SUFFIX):
                continue
            fifo = os.path.join(self.path, name)
            try:
                fd = os.open(fifo, os.O_WRONLY | os.O_NONBLOCK)
            except FileNotFoundError:
                continue
            except OSError as e:
                if e.errno != errno.ENXIO:
                    raise
                # no reader: its owner is gone
                self._prune(fifo)
                continue
            try:
                os.write(fd, b"\x01")
            except BlockingIOError:
                pass  # pipe full, a wakeup is already pending
            finally:
                os.close(fd)
            woken += 1
        return woken

    def waiter(self) -> "Waiter":
        return Waiter(self.path)

    def _prune(self, fifo: str) -> None:
        try:
            os.unlink(fifo)
        except FileNotFoundError:
            return
        log.info("wakeup.prune", fifo=fifo)


class Waiter:
    """A subscriber's private FIFO. Use as a context manager."""
    def __init__(self, directory: str):
        token = f"{os.getpid()}-{uuid.uuid4().hex[:12]}"
        tmp = os.path.join(directory, f".{token}{TMP_SUFFIX}")
        self.path = os.path.join(directory, token + FIFO_SUFFIX)
        self._rfd: Optional[int] = None
        self._wfd: Optional[int] = None
        os.mkfifo(tmp, 0o666)
        try:
            os.chmod(tmp, 0o666)
            self._rfd = os.open(tmp, os.O_RDONLY | os.O_NONBLOCK)
            # our own writer keeps select() from reporting EOF once publishers hang up
            self._wfd = os.open(tmp, os.O_WRONLY | os.O_NONBLOCK)
            # only visible to signal() once a reader exists, so it is never mistaken for stale
            os.rename(tmp, self.path)
        except OSError:
            for fd in (self._wfd, self._rfd):
                if fd is not None:
                    os.close(fd)
            self._rfd = self._wfd = None
            os.unlink(tmp)
            raise

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until signalled or until timeout seconds pass. True if signalled."""
        if self._rfd is None:
            raise ValueError("waiter is closed")
        ready, _, _ = select.select([self._rfd], [], [], timeout)
        if not ready:
            return False
        self._drain()
        return True

    def _drain(self) -> None:
        while True:
            try:
                if not os.read(self._rfd, 4096):
                    return
            except BlockingIOError:
                return

    def close(self) -> None:
        if self._rfd is None:
            return
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass
        os.close(self._wfd)
        os.close(self._rfd)
        self._rfd = self._wfd = None

    def __enter__(self) -> "Waiter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
