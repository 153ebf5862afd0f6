"""Tests for settings.py — KernelConfig, load_settings and the access gate."""

import os
from pathlib import Path

import pytest

from notekernel.errors import AuthorizationGateError, EXIT_CODE_FATAL
from notekernel.settings import (
    ACCESS_AUTH_CODE_BYPASS_ENV,
    FIXED_PORT,
    KernelConfig,
    check_access_gate,
    load_settings,
)
from notekernel.utils import parse_bool


@pytest.fixture(autouse=True)
def _isolate_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a stray ./.env from leaking into load_settings()."""
    work = tmp_path / "cwd"
    work.mkdir()
    monkeypatch.chdir(work)
    monkeypatch.delenv(ACCESS_AUTH_CODE_BYPASS_ENV, raising=False)
    monkeypatch.setenv("NOTEKERNEL_CONTAINER", "false")


@pytest.fixture
def conf_dir(tmp_path: Path) -> Path:
    d = tmp_path / "conf"
    d.mkdir()
    return d


# ---------------------------------------------------------------------------
# KernelConfig unit tests
# ---------------------------------------------------------------------------


class TestKernelConfig:
    def test_defaults(self, tmp_path: Path):
        cfg = KernelConfig(conf_dir=tmp_path)
        assert cfg.workspace == ""
        assert cfg.port == "0"
        assert cfg.mode == "prod"
        assert cfg.readonly is False
        assert cfg.is_dev is False
        assert cfg.container == "std"

    def test_derived_paths(self, tmp_path: Path):
        cfg = KernelConfig(conf_dir=tmp_path)
        assert cfg.registry_file == tmp_path / "workspace.json"
        assert cfg.boot_log_file == tmp_path / "kernel.log"

    def test_container_uses_fixed_port(self):
        cfg = KernelConfig(port="1234", in_container=True)
        assert cfg.container == "docker"
        assert cfg.server_port == FIXED_PORT

    def test_std_uses_configured_port(self):
        assert KernelConfig(port="1234").server_port == "1234"


# ---------------------------------------------------------------------------
# load_settings tests
# ---------------------------------------------------------------------------


class TestLoadSettings:
    def test_command_line_flags(self, conf_dir: Path, tmp_path: Path):
        cfg = load_settings(
            [
                "--workspace",
                str(tmp_path / "ws"),
                "--wd",
                str(tmp_path / "app"),
                "--readonly",
                "true",
                "--accessAuthCode",
                "s3cret",
                "--mode",
                "dev",
                "--port",
                "6807",
                "--ssl",
                "--lang",
                "fr_FR",
            ],
            conf_dir=conf_dir,
        )
        assert cfg.workspace == str(tmp_path / "ws")
        assert cfg.working_dir == tmp_path / "app"
        assert cfg.readonly is True
        assert cfg.access_auth_code == "s3cret"
        assert cfg.is_dev is True
        assert cfg.port == "6807"
        assert cfg.ssl is True
        assert cfg.lang == "fr_FR"
        assert cfg.conf_dir == conf_dir

    def test_defaults_without_flags(self, conf_dir: Path):
        cfg = load_settings([], conf_dir=conf_dir)
        assert cfg.workspace == ""
        assert cfg.working_dir == Path.cwd()
        assert cfg.mode == "prod"
        assert cfg.readonly is False
        assert cfg.in_container is False

    def test_invalid_readonly_is_false(self, conf_dir: Path):
        cfg = load_settings(["--readonly", "maybe"], conf_dir=conf_dir)
        assert cfg.readonly is False

    @pytest.mark.parametrize(
        ("argv", "expected"),
        [
            ([], False),
            (["--ssl"], True),
            (["--ssl=true"], True),
            (["--ssl=false"], False),
            (["--ssl", "0", "--lang", "de_DE"], False),
        ],
    )
    def test_ssl_accepts_optional_bool(self, conf_dir: Path, argv, expected):
        assert load_settings(argv, conf_dir=conf_dir).ssl is expected

    def test_invalid_mode_rejected(self, conf_dir: Path):
        with pytest.raises(SystemExit):
            load_settings(["--mode", "staging"], conf_dir=conf_dir)

    def test_toml_supplies_defaults(self, conf_dir: Path):
        (conf_dir / "settings.toml").write_text(
            '[kernel]\nport = 7000\nlang = "ja_JP"\nreadonly = true\n'
        )
        cfg = load_settings([], conf_dir=conf_dir)
        assert cfg.port == "7000"
        assert cfg.lang == "ja_JP"
        assert cfg.readonly is True

    def test_cli_overrides_toml(self, conf_dir: Path):
        (conf_dir / "settings.toml").write_text('[kernel]\nmode = "dev"\nport = 7000\n')
        cfg = load_settings(["--mode", "prod", "--port", "7001"], conf_dir=conf_dir)
        assert cfg.mode == "prod"
        assert cfg.port == "7001"

    def test_toml_bad_mode_raises(self, conf_dir: Path):
        (conf_dir / "settings.toml").write_text('[kernel]\nmode = "staging"\n')
        with pytest.raises(ValueError, match="mode"):
            load_settings([], conf_dir=conf_dir)

    def test_malformed_toml_raises(self, conf_dir: Path):
        (conf_dir / "settings.toml").write_text("[kernel\n")
        with pytest.raises(ValueError, match="settings.toml"):
            load_settings([], conf_dir=conf_dir)

    def test_unknown_toml_keys_warned(self, conf_dir: Path, caplog):
        (conf_dir / "settings.toml").write_text("[kernel]\ncolour = 'blue'\n")
        with caplog.at_level("WARNING"):
            load_settings([], conf_dir=conf_dir)
        assert "colour" in caplog.text

    def test_bypass_from_dotenv(self, conf_dir: Path):
        (conf_dir / ".env").write_text(f"{ACCESS_AUTH_CODE_BYPASS_ENV}=true\n")
        try:
            cfg = load_settings([], conf_dir=conf_dir)
        finally:
            # load_dotenv writes straight into os.environ
            os.environ.pop(ACCESS_AUTH_CODE_BYPASS_ENV, None)
        assert cfg.access_auth_code_bypass is True

    def test_container_detected_from_env(
        self, conf_dir: Path, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setenv("NOTEKERNEL_CONTAINER", "1")
        cfg = load_settings([], conf_dir=conf_dir)
        assert cfg.in_container is True
        assert cfg.server_port == FIXED_PORT


# ---------------------------------------------------------------------------
# check_access_gate
# ---------------------------------------------------------------------------


class TestAccessGate:
    def test_std_without_code_passes(self):
        check_access_gate(KernelConfig(in_container=False))

    def test_container_with_code_passes(self):
        check_access_gate(KernelConfig(in_container=True, access_auth_code="x"))

    def test_container_without_code_fails(self):
        with pytest.raises(AuthorizationGateError, match="accessAuthCode") as exc_info:
            check_access_gate(KernelConfig(in_container=True))
        assert exc_info.value.exit_code == EXIT_CODE_FATAL
        assert exc_info.value.fatal is True

    def test_container_bypass_passes_with_warning(self, caplog):
        with caplog.at_level("WARNING"):
            check_access_gate(
                KernelConfig(in_container=True, access_auth_code_bypass=True)
            )
        assert "bypass access auth code check" in caplog.text


class TestParseBool:
    @pytest.mark.parametrize("value", ["1", "t", "T", "true", "TRUE", "True"])
    def test_true_values(self, value):
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", ["0", "f", "F", "false", "FALSE", "False"])
    def test_false_values(self, value):
        assert parse_bool(value) is False

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_bool("yes")
