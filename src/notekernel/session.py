"""Per-session, per-workspace authentication state.

A browser session is owned by the HTTP layer; this module only shapes
what is stored inside it.  State is partitioned by workspace path so one
session's access auth code or captcha never leaks to a different
workspace served from the same machine.

Key entities:
  - WorkspaceSession: access auth code + captcha for one workspace.
  - SessionData: <workspace path, WorkspaceSession> map, JSON round-trip.
  - SessionWorkspaceBinding: get/remove the entry for the active workspace.
  - WrongAuthCounter: process-wide failed-auth counter → captcha gate.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

CAPTCHA_THRESHOLD = 3


@dataclass
class WorkspaceSession:
    access_auth_code: str = ""
    captcha: str = ""

    def to_dict(self) -> dict:
        return {"accessAuthCode": self.access_auth_code, "captcha": self.captcha}

    @classmethod
    def from_dict(cls, data: dict) -> WorkspaceSession:
        return cls(
            access_auth_code=str(data.get("accessAuthCode", "")),
            captcha=str(data.get("captcha", "")),
        )


@dataclass
class SessionData:
    # workspace path -> WorkspaceSession
    workspaces: dict[str, WorkspaceSession] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(
            {"workspaces": {k: v.to_dict() for k, v in self.workspaces.items()}}
        )

    @classmethod
    def from_json(cls, raw: str | None) -> SessionData:
        """Decode stored session data; anything unreadable yields an empty session."""
        if not raw:
            return cls()
        try:
            data = json.loads(raw)
            workspaces = data.get("workspaces") or {}
            return cls(
                workspaces={
                    str(path): WorkspaceSession.from_dict(entry)
                    for path, entry in workspaces.items()
                }
            )
        except (json.JSONDecodeError, AttributeError, TypeError) as e:
            logger.warning("Discarding unreadable session data: %s", e)
            return cls()


class WrongAuthCounter:
    """Counts failed authorizations for the whole process."""

    def __init__(self, threshold: int = CAPTCHA_THRESHOLD) -> None:
        self.threshold = threshold
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    def increment(self) -> int:
        with self._lock:
            self._count += 1
            return self._count

    def reset(self) -> None:
        with self._lock:
            self._count = 0

    def needs_captcha(self) -> bool:
        return self.count > self.threshold


class SessionWorkspaceBinding:
    """Binds session state to the workspace this process serves."""

    def __init__(
        self, workspace_dir: Path | str, counter: WrongAuthCounter | None = None
    ) -> None:
        self.workspace_key = os.path.abspath(str(workspace_dir))
        self.counter = counter if counter is not None else WrongAuthCounter()

    def get_or_create(self, session: SessionData) -> WorkspaceSession:
        """Return the active workspace's entry, creating it if missing."""
        entry = session.workspaces.get(self.workspace_key)
        if entry is None:
            entry = WorkspaceSession()
            session.workspaces[self.workspace_key] = entry
        return entry

    def remove(self, session: SessionData) -> None:
        """Drop the active workspace's entry; other workspaces are kept."""
        session.workspaces.pop(self.workspace_key, None)

    def needs_captcha(self) -> bool:
        return self.counter.needs_captcha()
