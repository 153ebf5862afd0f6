"""Root conftest — sets env vars BEFORE any notekernel module is imported.

Pins the user config dir to a throwaway directory so tests never touch
the real ~/.config/notekernel registry, and disables container detection
so the access gate behaves the same on CI runners inside Docker.
"""

import os
import tempfile

import pytest

# Force-set (not setdefault) to prevent real env vars from leaking into tests
os.environ["NOTEKERNEL_CONF_DIR"] = tempfile.mkdtemp(prefix="notekernel-test-")
os.environ["NOTEKERNEL_CONTAINER"] = "false"
os.environ.pop("NOTEKERNEL_ACCESS_AUTH_CODE_BYPASS", None)


@pytest.fixture(autouse=True)
def _restore_temp_dir():
    """Undo TMPDIR/TEMP/TMP publication done by the workspace resolver."""
    saved = {name: os.environ.get(name) for name in ("TMPDIR", "TEMP", "TMP")}
    saved_tempdir = tempfile.tempdir
    yield
    for name, value in saved.items():
        if value is None:
            os.environ.pop(name, None)
        else:
            os.environ[name] = value
    tempfile.tempdir = saved_tempdir
