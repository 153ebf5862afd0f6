"""Shared helpers — user-global config dir, bool parsing, container detection."""

from __future__ import annotations

import os
from pathlib import Path

CONF_DIR_ENV = "NOTEKERNEL_CONF_DIR"
CONTAINER_ENV = "NOTEKERNEL_CONTAINER"

_TRUE_VALUES = {"1", "t", "T", "true", "TRUE", "True"}
_FALSE_VALUES = {"0", "f", "F", "false", "FALSE", "False"}


def user_conf_dir() -> Path:
    """Return the per-user config directory (not tied to any workspace).

    ``NOTEKERNEL_CONF_DIR`` overrides the default ``~/.config/notekernel``.
    """
    override = os.environ.get(CONF_DIR_ENV, "").strip()
    if override:
        return Path(os.path.expanduser(override))
    return Path.home() / ".config" / "notekernel"


def parse_bool(value: str) -> bool:
    """Parse a boolean flag value.

    Raises:
        ValueError: If the value is not a recognised boolean literal.
    """
    value = value.strip()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean value: {value!r}")


def running_in_container() -> bool:
    """Detect a Docker-style container deployment."""
    forced = os.environ.get(CONTAINER_ENV, "")
    if forced:
        try:
            return parse_bool(forced)
        except ValueError:
            pass
    return Path("/.dockerenv").exists()
