"""Active workspace selection and directory layout.

Picks the workspace for this run (explicit override > most recently used
registry entry > platform default), makes sure it exists and records it in
the registry.  The scratch temp tree is reset separately, by the process
that won the workspace lock.

Layout under the workspace root:
  conf/  data/  repo/  history/  temp/
  temp/os/          scratch dir, wiped every boot, published as TMPDIR
  temp/*.db         index database files
  data/snippets/    user snippets

Key entities:
  - WorkspaceLayout: frozen dataclass of every derived path.
  - WorkspaceResolver: resolve(override) → WorkspaceLayout.
  - prepare_temp(): reset the scratch temp tree (lock holder only).
  - init_path_dirs() / init_tenant_dirs(): create the data tree.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from ..errors import DirectoryError, KernelError
from .registry import PathRegistry

logger = logging.getLogger(__name__)

DEFAULT_WORKSPACE_NAME = "NoteKernel"
DB_NAME = "notekernel.db"
LOG_NAME = "notekernel.log"

# Subdirectories created under data/ (and under each tenant's data dir)
DATA_SUBDIRS = (
    "assets",
    "templates",
    "widgets",
    "plugins",
    "emojis",
    "public",
)

# Environment variables conventionally consulted for the temp dir
TEMP_ENV_VARS = ("TMPDIR", "TEMP", "TMP")


def default_workspace_dir(
    home: Path | None = None,
    environ: Mapping[str, str] | None = None,
    platform: str | None = None,
) -> Path:
    """Return the default workspace dir (``~/NoteKernel``).

    On Windows the user profile dir wins over the home dir when set.
    """
    home = home if home is not None else Path.home()
    environ = environ if environ is not None else os.environ
    platform = platform if platform is not None else sys.platform
    if platform == "win32":
        user_profile = environ.get("USERPROFILE", "")
        if user_profile:
            return Path(user_profile) / DEFAULT_WORKSPACE_NAME
    return home / DEFAULT_WORKSPACE_NAME


@dataclass(frozen=True)
class WorkspaceLayout:
    """Derived paths for one workspace; fixed for the process lifetime."""

    workspace_dir: Path

    @property
    def name(self) -> str:
        return self.workspace_dir.name

    @property
    def conf_dir(self) -> Path:
        return self.workspace_dir / "conf"

    @property
    def data_dir(self) -> Path:
        return self.workspace_dir / "data"

    @property
    def repo_dir(self) -> Path:
        return self.workspace_dir / "repo"

    @property
    def history_dir(self) -> Path:
        return self.workspace_dir / "history"

    @property
    def temp_dir(self) -> Path:
        return self.workspace_dir / "temp"

    @property
    def os_temp_dir(self) -> Path:
        return self.temp_dir / "os"

    @property
    def temp_repo_dir(self) -> Path:
        return self.temp_dir / "repo"

    @property
    def db_path(self) -> Path:
        return self.temp_dir / DB_NAME

    @property
    def history_db_path(self) -> Path:
        return self.temp_dir / "history.db"

    @property
    def asset_content_db_path(self) -> Path:
        return self.temp_dir / "asset_content.db"

    @property
    def block_tree_db_path(self) -> Path:
        return self.temp_dir / "blocktree.db"

    @property
    def snippets_dir(self) -> Path:
        return self.data_dir / "snippets"

    @property
    def log_path(self) -> Path:
        return self.temp_dir / LOG_NAME

    @property
    def lock_file(self) -> Path:
        return self.workspace_dir / ".lock"

    def data_dir_for(self, tenant: str) -> Path:
        """Return the data dir for a tenant (``data<tenant>``).

        An empty tenant maps to the shared data dir.
        """
        if not tenant:
            return self.data_dir
        return self.workspace_dir / f"data{tenant}"


def _mkdirs(path: Path, what: str) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryError(f"create {what} folder [{path}] failed: {e}") from e


def _init_data_tree(data_dir: Path) -> None:
    _mkdirs(data_dir, "data")
    for sub in DATA_SUBDIRS:
        _mkdirs(data_dir / sub, f"data {sub}")


def init_path_dirs(layout: WorkspaceLayout) -> None:
    """Create conf/, data/ (with its subdirectories) and temp/.

    Raises:
        DirectoryError: If any directory cannot be created.
    """
    _mkdirs(layout.conf_dir, "conf")
    _mkdirs(layout.temp_dir, "temp")
    _init_data_tree(layout.data_dir)


def init_tenant_dirs(layout: WorkspaceLayout, tenant: str) -> None:
    """Create the data tree for one tenant; no-op for an empty tenant.

    Raises:
        DirectoryError: If any directory cannot be created.
    """
    if not tenant:
        return
    _init_data_tree(layout.data_dir_for(tenant))
    logger.debug("Tenant data tree ready for %s", tenant)


def publish_temp_dir(path: Path) -> None:
    """Point the temp-dir env vars (and the tempfile module) at path."""
    for name in TEMP_ENV_VARS:
        os.environ[name] = str(path)
    tempfile.tempdir = None


def prepare_temp(layout: WorkspaceLayout) -> None:
    """Wipe and recreate temp/os, drop temp/repo, publish temp/os.

    Destroys the previous run's scratch files, so only the process that
    holds the workspace lock may call it.

    Raises:
        DirectoryError: If the scratch temp dir cannot be created.
    """
    shutil.rmtree(layout.os_temp_dir, ignore_errors=True)
    _mkdirs(layout.os_temp_dir, "os tmp")
    shutil.rmtree(layout.temp_repo_dir, ignore_errors=True)
    publish_temp_dir(layout.os_temp_dir)


class WorkspaceResolver:
    """Decides which workspace this process serves."""

    def __init__(
        self,
        registry: PathRegistry,
        default_dir: Path | None = None,
    ) -> None:
        self.registry = registry
        self.default_dir = default_dir if default_dir is not None else default_workspace_dir()

    def _ensure_registry_dir(self) -> None:
        _mkdirs(self.registry.conf_file.parent, "user home conf")

    def _load_registry(self) -> list[Path]:
        try:
            return self.registry.load()
        except KernelError as e:
            if e.fatal:
                raise
            logger.error("%s", e)
            return []

    def _save_registry(self, paths: list[Path]) -> None:
        try:
            self.registry.save(paths)
        except KernelError as e:
            if e.fatal:
                raise
            logger.error("%s", e)

    def select(self, override: Path | str | None = None) -> tuple[Path, list[Path]]:
        """Pick the target workspace.

        On first run (no registry file yet) the registry's directory is
        created; nothing inside any workspace is touched.

        Returns:
            (target, registered) where registered is the loaded registry.
        """
        registered: list[Path] = []
        if not self.registry.exists():
            self._ensure_registry_dir()
            target = self.default_dir
        else:
            registered = self._load_registry()
            target = registered[-1] if registered else self.default_dir

        if override:
            target = Path(os.path.abspath(os.path.expanduser(str(override))))
        return target, registered

    def resolve(self, override: Path | str | None = None) -> WorkspaceLayout:
        """Select, create and record the active workspace.

        A remembered or requested workspace that is no longer a directory
        never fails the boot: the default workspace is created and used.
        The temp tree is left alone; call prepare_temp() once the
        workspace lock is held.

        Raises:
            DirectoryError: If the default workspace cannot be created.
        """
        target, registered = self.select(override)

        if not target.is_dir():
            logger.warning(
                "use the default workspace [%s] since the specified workspace [%s] is not a dir",
                self.default_dir,
                target,
            )
            _mkdirs(self.default_dir, "default workspace")
            target = self.default_dir

        # Re-append so the active workspace is always the most recent entry
        target_key = os.path.abspath(target)
        history = [p for p in registered if os.path.abspath(p) != target_key]
        self._save_registry([*history, target])

        layout = WorkspaceLayout(workspace_dir=target)
        logger.info("Workspace resolved to %s", layout.workspace_dir)
        return layout
