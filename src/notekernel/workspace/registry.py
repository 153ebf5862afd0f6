"""Persisted list of previously used workspace directories.

The registry lives in the user-global config dir (not inside any
workspace) so candidates can be enumerated before one is chosen.  It is a
JSON array of absolute path strings, most recently used last.

Key entities:
  - PathRegistry: load() / save() against workspace.json.
  - dedupe(): order-preserving removal of duplicate paths.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

from ..errors import ConfigIOError
from ..utils import user_conf_dir

logger = logging.getLogger(__name__)

REGISTRY_FILE_NAME = "workspace.json"


def dedupe(paths: Iterable[Path | str]) -> list[Path]:
    """Drop duplicate paths, keeping the first occurrence of each."""
    seen: set[str] = set()
    result: list[Path] = []
    for p in paths:
        key = os.path.abspath(str(p))
        if key in seen:
            continue
        seen.add(key)
        result.append(Path(key))
    return result


def default_registry_file() -> Path:
    return user_conf_dir() / REGISTRY_FILE_NAME


class PathRegistry:
    """Reads and writes the workspace registry file."""

    def __init__(self, conf_file: Path | None = None) -> None:
        self.conf_file = conf_file if conf_file is not None else default_registry_file()

    def exists(self) -> bool:
        return self.conf_file.exists()

    def load(self) -> list[Path]:
        """Return registered workspaces that still exist, deduplicated.

        Trailing whitespace left behind by hand edits is stripped before
        the directory check.

        Raises:
            ConfigIOError: If the file cannot be read or is not a JSON
                array of strings.
        """
        try:
            raw = self.conf_file.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigIOError(
                f"read workspace conf [{self.conf_file}] failed: {e}"
            ) from e

        try:
            entries = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigIOError(
                f"unmarshal workspace conf [{self.conf_file}] failed: {e}"
            ) from e
        if not isinstance(entries, list) or not all(
            isinstance(e, str) for e in entries
        ):
            raise ConfigIOError(
                f"unmarshal workspace conf [{self.conf_file}] failed: "
                "expected a JSON array of strings"
            )

        kept = []
        for entry in entries:
            entry = entry.rstrip(" \t\n")
            if entry and Path(entry).is_dir():
                kept.append(entry)
        return dedupe(kept)

    def save(self, paths: Iterable[Path | str]) -> None:
        """Deduplicate and atomically write the registry.

        Writes to a temp file in the same directory, fsyncs, then
        ``os.replace``s it over the target so a crash never leaves a
        truncated registry behind.

        Raises:
            ConfigIOError: On serialization or write failure.
        """
        unique = dedupe(paths)
        try:
            payload = json.dumps([str(p) for p in unique], ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise ConfigIOError(
                f"marshal workspace conf [{self.conf_file}] failed: {e}"
            ) from e

        temp_path: str | None = None
        try:
            self.conf_file.parent.mkdir(parents=True, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(
                suffix=".tmp",
                prefix=self.conf_file.name + ".",
                dir=self.conf_file.parent,
            )
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.conf_file)
            temp_path = None
        except OSError as e:
            raise ConfigIOError(
                f"write workspace conf [{self.conf_file}] failed: {e}"
            ) from e
        finally:
            if temp_path is not None:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
        logger.debug("Saved %d workspace paths to %s", len(unique), self.conf_file)
