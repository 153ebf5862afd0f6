"""Application entry point — CLI dispatcher and kernel bootstrap.

Handles two execution modes:
  1. `notekernel workspaces` — list registered workspaces and whether each
     is currently served by a running kernel.
  2. Default — parse flags, pass the access gate, resolve and lock the
     workspace, create the directory tree, then hold the workspace until
     SIGINT/SIGTERM.

All boot-path failures surface as KernelError and are turned into a log
line plus a distinguished exit code in exactly one place: main().
"""

from __future__ import annotations

import atexit
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from .boot import BootSequencer
from .errors import EXIT_CODE_FATAL, KernelError

if TYPE_CHECKING:
    from .kernel_context import KernelContext
    from .settings import KernelConfig

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Progress budget for the steps owned by this module; the remainder is
# reported by the storage, index and listener subsystems.
_PROGRESS_KERNEL_START = 3
_PROGRESS_WORKSPACE_READY = 2


def _use_log_file(path: Path) -> None:
    """Send package logs to path, replacing any previous log file."""
    pkg_logger = logging.getLogger("notekernel")
    for handler in list(pkg_logger.handlers):
        if isinstance(handler, logging.FileHandler):
            pkg_logger.removeHandler(handler)
            handler.close()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as e:
        logger.warning("Cannot open log file %s: %s", path, e)
        return
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    pkg_logger.addHandler(handler)


def _list_workspaces() -> None:
    """Print every registered workspace with its lock state."""
    from .settings import load_settings
    from .workspace.lock import is_locked
    from .workspace.registry import PathRegistry

    try:
        config = load_settings([])
    except ValueError as e:
        print(f"Error: {e}\n")
        print("Check your settings.toml configuration.")
        sys.exit(EXIT_CODE_FATAL)
    registry = PathRegistry(config.registry_file)
    if not registry.exists():
        print("No workspaces registered yet.")
        return
    try:
        paths = registry.load()
    except KernelError as e:
        print(f"Error: {e}")
        sys.exit(EXIT_CODE_FATAL)
    if not paths:
        print("No workspaces registered yet.")
        return
    for path in paths:
        state = "locked" if is_locked(path) else "free"
        print(f"{state:<7} {path}")


def boot(
    config: KernelConfig, boot_seq: BootSequencer | None = None
) -> KernelContext:
    """Run the kernel's part of the boot sequence and return its context.

    Nothing inside the workspace is modified until its lock is held, so a
    second launch on a served workspace fails without disturbing the owner.

    Raises:
        KernelError: On any boot-path failure (gate, directories, lock).
    """
    from .kernel_context import create_kernel_context
    from .settings import check_access_gate
    from .workspace.lock import try_acquire
    from .workspace.registry import PathRegistry
    from .workspace.resolver import WorkspaceResolver, init_path_dirs, prepare_temp

    boot_seq = boot_seq if boot_seq is not None else BootSequencer()
    boot_seq.advance(_PROGRESS_KERNEL_START, "Booting kernel...")

    check_access_gate(config)

    _use_log_file(config.boot_log_file)

    registry = PathRegistry(config.registry_file)
    resolver = WorkspaceResolver(registry)
    layout = resolver.resolve(config.workspace or None)

    # A workspace is served by one kernel process only
    lock = try_acquire(layout.workspace_dir)
    atexit.register(lock.release)

    try:
        prepare_temp(layout)
        _use_log_file(layout.log_path)
        init_path_dirs(layout)
    except KernelError:
        lock.release()
        raise

    ctx = create_kernel_context(config, layout, registry, boot=boot_seq, lock=lock)
    boot_seq.advance(_PROGRESS_WORKSPACE_READY, "Workspace ready")
    logger.info(
        "Kernel [v%s] workspace=%s mode=%s container=%s port=%s readonly=%s",
        boot_seq.version,
        layout.workspace_dir,
        config.mode,
        config.container,
        config.server_port,
        config.readonly,
    )
    return ctx


def _serve_until_signalled(ctx: KernelContext) -> None:
    """Hold the workspace until SIGINT/SIGTERM, then release it."""
    stop_event = threading.Event()

    def _stop(signum: int, frame: object) -> None:
        logger.info("Received signal %d, shutting down", signum)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _stop)

    ctx.boot.mark_booted()
    try:
        while not stop_event.wait(timeout=1.0):
            pass
    finally:
        ctx.release()


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    if argv is None:
        argv = sys.argv[1:]

    if argv and argv[0] == "workspaces":
        _list_workspaces()
        return

    logging.basicConfig(format=_LOG_FORMAT, level=logging.WARNING)
    logging.getLogger("notekernel").setLevel(logging.DEBUG)

    from .settings import load_settings

    try:
        config = load_settings(argv)
    except ValueError as e:
        print(f"Error: {e}\n")
        print("Check your settings.toml configuration.")
        sys.exit(EXIT_CODE_FATAL)

    try:
        ctx = boot(config)
    except KernelError as e:
        logger.error("%s", e)
        sys.exit(e.exit_code)

    _serve_until_signalled(ctx)


if __name__ == "__main__":
    main()
