"""Advisory single-writer lock on a workspace directory.

Only prevents two kernel processes from serving the same workspace; it
does not stop unrelated processes from touching the files.  The OS lock
(via ``filelock``) is authoritative, the ``.lock`` marker file is
incidental.

Acquisition never waits: contention means double launch or stale state,
which needs a human, not a retry.

Key entities:
  - LockHandle: held lock; release() or use as a context manager.
  - try_acquire(): non-blocking acquisition → LockHandle.
  - is_locked(): probe that never leaves a lock behind.
"""

from __future__ import annotations

import logging
from pathlib import Path
from types import TracebackType

from filelock import FileLock, Timeout

from ..errors import LockContentionError, WorkspaceLockError

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = ".lock"


def lock_file_for(workspace_dir: Path) -> Path:
    return workspace_dir / LOCK_FILE_NAME


class LockHandle:
    """Proof of ownership of a workspace. Only try_acquire() creates one."""

    def __init__(self, workspace_dir: Path, lock: FileLock) -> None:
        self.workspace_dir = workspace_dir
        self._lock = lock

    @property
    def lock_file(self) -> Path:
        return Path(self._lock.lock_file)

    @property
    def is_held(self) -> bool:
        return self._lock.is_locked

    def release(self) -> None:
        """Release the OS lock, then remove the marker file.

        Safe to call more than once.  Failing to delete the marker is
        logged only.
        """
        if not self._lock.is_locked:
            return
        self._lock.release(force=True)
        try:
            self.lock_file.unlink(missing_ok=True)
        except OSError as e:
            logger.error("remove workspace lock [%s] failed: %s", self.lock_file, e)
        logger.debug("Workspace lock released: %s", self.workspace_dir)

    def __enter__(self) -> LockHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"LockHandle({str(self.workspace_dir)!r}, held={self.is_held})"


def try_acquire(workspace_dir: Path) -> LockHandle:
    """Lock the workspace without blocking.

    Raises:
        LockContentionError: If another process holds the lock.
        WorkspaceLockError: If the marker file cannot be opened.
    """
    lock = FileLock(str(lock_file_for(workspace_dir)), thread_local=False)
    try:
        lock.acquire(timeout=0)
    except Timeout as e:
        raise LockContentionError(workspace_dir) from e
    except OSError as e:
        raise WorkspaceLockError(
            f"lock workspace [{workspace_dir}] failed: {e}"
        ) from e
    logger.debug("Workspace lock acquired: %s", workspace_dir)
    return LockHandle(workspace_dir, lock)


def is_locked(workspace_dir: Path) -> bool:
    """Return True if another process currently serves workspace_dir.

    Missing directories and missing markers are unlocked.  A marker that
    cannot be locked for any reason counts as locked, since try_acquire()
    would fail on it too.  The probe lock is released before returning,
    and the marker is left as found.
    """
    if not workspace_dir.is_dir():
        return False
    marker = lock_file_for(workspace_dir)
    if not marker.exists():
        return False

    probe = FileLock(str(marker), thread_local=False)
    try:
        probe.acquire(timeout=0)
    except Timeout:
        return True
    except OSError as e:
        logger.warning("probe workspace lock [%s] failed: %s", workspace_dir, e)
        return True
    probe.release(force=True)
    return False
