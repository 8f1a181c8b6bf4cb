"""
Run guards: single-instance process lock and disk-space pre-flight.

The working directory is shared by every invocation using the same
configuration, so two overlapping runs would empty each other's files.
ProcessGuard claims a lock file holding the owner's PID; a lock whose
owner is no longer alive is considered stale and reclaimed. Reclaiming
happens under an flock on the stale file, so two processes that find the
same stale lock cannot both end up holding it.
"""

from __future__ import annotations

import errno
import fcntl
import os
import shutil
import signal
from pathlib import Path
from types import FrameType
from typing import Any

from pygnss_ppp.core.exceptions import LockError, PreflightError
from pygnss_ppp.utils.logging import get_logger


logger = get_logger(__name__)


def pid_alive(pid: int) -> bool:
    """Check whether a process with this PID exists."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but belongs to another user
        return True
    return True


class ProcessGuard:
    """File-based advisory mutex with a liveness check.

    Usage:
        with ProcessGuard(Path("/tmp/pygnss_ppp.lock")):
            pipeline.run(options)

    The lock is released on normal exit, on exceptions (including
    KeyboardInterrupt) and on SIGTERM, which is turned into SystemExit
    while the guard is held.
    """

    def __init__(self, lock_path: Path | str, handle_sigterm: bool = True):
        self.lock_path = Path(lock_path)
        self.handle_sigterm = handle_sigterm
        self._held = False
        self._previous_handler: Any = None

    @property
    def held(self) -> bool:
        return self._held

    def read_owner(self) -> int | None:
        """PID recorded in the lock file, if readable."""
        try:
            return int(self.lock_path.read_text().strip())
        except (OSError, ValueError):
            return None

    def _claim(self) -> bool:
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except OSError as e:
            if e.errno == errno.EEXIST:
                return False
            raise
        with os.fdopen(fd, "w") as f:
            f.write(f"{os.getpid()}\n")
        return True

    def _reclaim(self) -> bool:
        """Replace a stale lock with our own; False if someone else got it.

        The stale file is flocked before it is unlinked. A concurrent
        reclaimer either fails to get the flock, or gets it after we are
        done and sees that the path now names a different file.
        """
        try:
            fd = os.open(self.lock_path, os.O_RDONLY)
        except FileNotFoundError:
            return self._claim()

        try:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                return False

            held = os.fstat(fd)
            try:
                current = os.stat(self.lock_path)
            except FileNotFoundError:
                return self._claim()
            if (held.st_dev, held.st_ino) != (current.st_dev, current.st_ino):
                # Replaced since we opened it; only O_EXCL decides now
                return self._claim()

            owner = self.read_owner()
            if owner is not None and pid_alive(owner):
                return False
            self.lock_path.unlink()
            return self._claim()
        finally:
            os.close(fd)

    def acquire(self) -> None:
        """Claim the lock or raise LockError if a live owner holds it."""
        if self._held:
            return

        self.lock_path.parent.mkdir(parents=True, exist_ok=True)

        if not self._claim():
            owner = self.read_owner()
            if owner is not None and pid_alive(owner):
                raise LockError(str(self.lock_path), owner)

            logger.warning("Removing stale lock", path=str(self.lock_path), pid=owner)
            if not self._reclaim():
                raise LockError(str(self.lock_path), self.read_owner())

        self._held = True
        if self.handle_sigterm:
            self._install_sigterm()
        logger.debug("Lock acquired", path=str(self.lock_path), pid=os.getpid())

    def release(self) -> None:
        """Delete the lock if this process holds it."""
        if not self._held:
            return

        if self.read_owner() == os.getpid():
            self.lock_path.unlink(missing_ok=True)
        self._held = False
        self._restore_sigterm()
        logger.debug("Lock released", path=str(self.lock_path))

    def _install_sigterm(self) -> None:
        def _terminate(signum: int, frame: FrameType | None) -> None:
            raise SystemExit(128 + signum)

        try:
            self._previous_handler = signal.signal(signal.SIGTERM, _terminate)
        except ValueError:
            # Not in the main thread; SIGTERM cannot be trapped here
            self._previous_handler = None

    def _restore_sigterm(self) -> None:
        if self._previous_handler is not None:
            signal.signal(signal.SIGTERM, self._previous_handler)
            self._previous_handler = None

    def __enter__(self) -> ProcessGuard:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


def disk_usage_percent(path: Path | str) -> float:
    """Used space of the volume holding ``path``, in percent."""
    path = Path(path)
    # Walk up to an existing ancestor; the output tree may not exist yet
    while not path.exists() and path != path.parent:
        path = path.parent
    usage = shutil.disk_usage(path)
    return usage.used / usage.total * 100.0


def check_disk_space(path: Path | str, max_used_percent: float) -> float:
    """Abort the run if the output volume is nearly full.

    Returns:
        Current usage in percent

    Raises:
        PreflightError: If usage is at or above the threshold
    """
    used = disk_usage_percent(path)
    if used >= max_used_percent:
        raise PreflightError(
            f"Output volume for {path} is {used:.1f}% full "
            f"(limit {max_used_percent:.1f}%)"
        )
    return used
