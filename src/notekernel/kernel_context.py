"""KernelContext — bundles the boot configuration with its runtime services.

Built once during boot and handed to every subsystem in place of
process-wide globals.  Everything on it is read-only after boot except
``boot`` (progress) and ``registry`` (rarely rewritten workspace list).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from .boot import BootSequencer
from .session import SessionWorkspaceBinding, WrongAuthCounter

if TYPE_CHECKING:
    from .settings import KernelConfig
    from .workspace.lock import LockHandle
    from .workspace.registry import PathRegistry
    from .workspace.resolver import WorkspaceLayout


@dataclass
class KernelContext:
    """Runtime context for the kernel process."""

    config: KernelConfig
    layout: WorkspaceLayout
    registry: PathRegistry
    boot: BootSequencer
    lock: LockHandle | None = None

    auth_counter: WrongAuthCounter = field(default_factory=WrongAuthCounter)
    sessions: SessionWorkspaceBinding = field(init=False)

    def __post_init__(self) -> None:
        self.sessions = SessionWorkspaceBinding(
            self.layout.workspace_dir, self.auth_counter
        )

    @property
    def workspace_dir(self) -> Path:
        return self.layout.workspace_dir

    @property
    def themes_dir(self) -> Path:
        """Theme assets come from the working dir in dev mode."""
        if self.config.is_dev:
            return self.config.working_dir / "appearance" / "themes"
        return self.layout.conf_dir / "appearance" / "themes"

    @property
    def icons_dir(self) -> Path:
        if self.config.is_dev:
            return self.config.working_dir / "appearance" / "icons"
        return self.layout.conf_dir / "appearance" / "icons"

    def data_dir_for(self, tenant: str) -> Path:
        return self.layout.data_dir_for(tenant)

    def release(self) -> None:
        """Release the workspace lock if this context holds it."""
        if self.lock is not None:
            self.lock.release()


def create_kernel_context(
    config: KernelConfig,
    layout: WorkspaceLayout,
    registry: PathRegistry,
    boot: BootSequencer | None = None,
    lock: LockHandle | None = None,
) -> KernelContext:
    """Build a KernelContext once the workspace is resolved and locked."""
    return KernelContext(
        config=config,
        layout=layout,
        registry=registry,
        boot=boot if boot is not None else BootSequencer(),
        lock=lock,
    )
