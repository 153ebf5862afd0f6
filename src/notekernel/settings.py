"""Kernel settings — reads .env + settings.toml + command line into KernelConfig.

Command-line flags are parsed once at boot and frozen for the process
lifetime.  An optional ``[kernel]`` table in ``<conf dir>/settings.toml``
supplies defaults for flags that were not given.

Key entities:
  - KernelConfig: frozen dataclass with all resolved boot configuration.
  - load_settings(): parse .env + settings.toml + argv → KernelConfig.
  - check_access_gate(): refuse unauthenticated container deployments.
"""

from __future__ import annotations

import argparse
import logging
import os
import tomllib
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .errors import AuthorizationGateError
from .utils import parse_bool, running_in_container, user_conf_dir
from .workspace.registry import REGISTRY_FILE_NAME

logger = logging.getLogger(__name__)

ACCESS_AUTH_CODE_BYPASS_ENV = "NOTEKERNEL_ACCESS_AUTH_CODE_BYPASS"

CONTAINER_STD = "std"
CONTAINER_DOCKER = "docker"

FIXED_PORT = "6806"
MODES = ("dev", "prod")

# Keys that can appear in [kernel] of settings.toml
_TOML_KEYS = {"port", "lang", "mode", "readonly"}


# ---------------------------------------------------------------------------
# KernelConfig
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KernelConfig:
    """Resolved boot configuration.

    Built once by load_settings(); nothing reads argv or the environment
    after that.
    """

    # Workspace
    workspace: str = ""  # explicit override, empty = resolve normally
    working_dir: Path = field(default_factory=Path.cwd)

    # Serving
    port: str = "0"
    ssl: bool = False
    lang: str = "en_US"
    mode: str = "prod"

    # Access
    readonly: bool = False
    access_auth_code: str = ""
    access_auth_code_bypass: bool = False

    # Deployment
    in_container: bool = False
    conf_dir: Path = field(default_factory=user_conf_dir)

    @property
    def is_dev(self) -> bool:
        return self.mode == "dev"

    @property
    def container(self) -> str:
        return CONTAINER_DOCKER if self.in_container else CONTAINER_STD

    @property
    def server_port(self) -> str:
        """Container deployments always listen on the fixed port."""
        if self.in_container:
            return FIXED_PORT
        return self.port

    @property
    def registry_file(self) -> Path:
        return self.conf_dir / REGISTRY_FILE_NAME

    @property
    def boot_log_file(self) -> Path:
        return self.conf_dir / "kernel.log"


# ---------------------------------------------------------------------------
# load_settings
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="notekernel", allow_abbrev=False)
    parser.add_argument(
        "--workspace", default="", help="dir path of the workspace, default to ~/NoteKernel/"
    )
    parser.add_argument("--wd", default="", help="working directory of the kernel")
    parser.add_argument("--port", default=None, help="port of the HTTP server")
    parser.add_argument("--readonly", default=None, help="read-only mode")
    parser.add_argument("--accessAuthCode", dest="access_auth_code", default="", help="access auth code")
    parser.add_argument(
        "--ssl", nargs="?", const="true", default=None, help="for https and wss"
    )
    parser.add_argument("--lang", default=None, help="UI language, e.g. en_US")
    parser.add_argument("--mode", default=None, choices=MODES, help="dev/prod")
    return parser


def _read_toml_defaults(conf_dir: Path) -> dict:
    toml_path = conf_dir / "settings.toml"
    if not toml_path.is_file():
        return {}
    with open(toml_path, "rb") as f:
        raw = tomllib.load(f)
    section = raw.get("kernel", {})
    unknown = set(section) - _TOML_KEYS
    if unknown:
        logger.warning("Ignoring unknown [kernel] keys in %s: %s", toml_path, sorted(unknown))
    return {k: v for k, v in section.items() if k in _TOML_KEYS}


def _bool_or_false(value: object, name: str) -> bool:
    if isinstance(value, bool):
        return value
    try:
        return parse_bool(str(value))
    except ValueError:
        logger.warning("Invalid boolean for %s: %r, using false", name, value)
        return False


def load_settings(
    argv: Sequence[str] | None = None,
    conf_dir: Path | None = None,
) -> KernelConfig:
    """Read .env, settings.toml and argv and return a KernelConfig.

    Args:
        argv: Command-line arguments (without the program name).
              Defaults to ``sys.argv[1:]``.
        conf_dir: Override for the user config directory.
                  Defaults to ``user_conf_dir()``.

    Raises:
        ValueError: If settings.toml is malformed or names an unknown mode.
    """
    if conf_dir is None:
        conf_dir = user_conf_dir()

    # Load .env files (local cwd first, then conf_dir)
    local_env = Path(".env")
    global_env = conf_dir / ".env"
    if local_env.is_file():
        load_dotenv(local_env)
    if global_env.is_file():
        load_dotenv(global_env)

    args = build_parser().parse_args(argv)
    try:
        defaults = _read_toml_defaults(conf_dir)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid settings.toml in {conf_dir}: {e}") from e

    def _get(key: str, cli_value, default):
        """CLI > settings.toml > default."""
        if cli_value is not None:
            return cli_value
        return defaults.get(key, default)

    mode = str(_get("mode", args.mode, "prod"))
    if mode not in MODES:
        raise ValueError(f"mode must be one of {MODES}, got '{mode}'")

    bypass_raw = os.getenv(ACCESS_AUTH_CODE_BYPASS_ENV, "")
    bypass = _bool_or_false(bypass_raw, ACCESS_AUTH_CODE_BYPASS_ENV) if bypass_raw else False

    return KernelConfig(
        workspace=args.workspace,
        working_dir=Path(args.wd) if args.wd else Path.cwd(),
        port=str(_get("port", args.port, "0")),
        ssl=_bool_or_false(args.ssl, "ssl") if args.ssl is not None else False,
        lang=str(_get("lang", args.lang, "en_US")),
        mode=mode,
        readonly=_bool_or_false(_get("readonly", args.readonly, False), "readonly"),
        access_auth_code=args.access_auth_code,
        access_auth_code_bypass=bypass,
        in_container=running_in_container(),
        conf_dir=conf_dir,
    )


def check_access_gate(config: KernelConfig) -> None:
    """Refuse to expose a container deployment without an access auth code.

    Raises:
        AuthorizationGateError: If running in a container with no access
            auth code and the bypass env var is not set to true.
    """
    if not config.in_container or config.access_auth_code:
        return
    if config.access_auth_code_bypass:
        logger.warning(
            "bypass access auth code check since the env [%s] is set to [true]",
            ACCESS_AUTH_CODE_BYPASS_ENV,
        )
        return
    raise AuthorizationGateError(
        "the access authorization code command line parameter (--accessAuthCode) "
        "must be set when deploying via Docker"
    )
