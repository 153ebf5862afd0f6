"""Kernel error taxonomy and process exit codes.

Every error raised on the boot path is a KernelError carrying the exit
code a supervising launcher uses to decide what to do next (prompt the
user, pick another workspace, give up).  ``fatal`` separates errors that
must terminate the process from ones that are logged and survived.

main.main() is the only place that turns a KernelError into an exit.
"""

from __future__ import annotations

EXIT_CODE_OK = 0
EXIT_CODE_FATAL = 1
EXIT_CODE_WORKSPACE_LOCKED = 24
EXIT_CODE_INIT_WORKSPACE_ERR = 25


class KernelError(Exception):
    """Base class for boot-path errors."""

    exit_code: int = EXIT_CODE_FATAL
    fatal: bool = True


class ConfigIOError(KernelError):
    """The workspace registry could not be read, parsed or written.

    Recoverable: the registry is a convenience index, not the workspace.
    """

    fatal = False


class DirectoryError(KernelError):
    """A required workspace directory could not be created or verified."""

    exit_code = EXIT_CODE_INIT_WORKSPACE_ERR


class WorkspaceLockError(KernelError):
    """The lock marker file could not be opened or locked for I/O reasons."""

    exit_code = EXIT_CODE_INIT_WORKSPACE_ERR


class LockContentionError(KernelError):
    """Another kernel process already holds the workspace lock."""

    exit_code = EXIT_CODE_WORKSPACE_LOCKED

    def __init__(self, workspace_dir: object) -> None:
        super().__init__(f"workspace [{workspace_dir}] is locked by another process")
        self.workspace_dir = workspace_dir


AlreadyLocked = LockContentionError


class AuthorizationGateError(KernelError):
    """Container deployment started without an access auth code."""

    exit_code = EXIT_CODE_FATAL
