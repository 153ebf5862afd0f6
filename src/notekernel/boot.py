"""Boot progress tracking and readiness signal.

Subsystems initializing on separate threads (storage, index warmup,
listener start) report progress here; request handlers poll it or block
until the kernel is ready.

Progress runs from 0 to 100 and only grows.  Deltas are not clamped:
callers budget them to sum to exactly 100, and overshoot is kept as-is.
Once progress reaches 100 the state is terminal and further updates are
ignored.
"""

from __future__ import annotations

import logging
import threading
from typing import NamedTuple

from . import __version__

logger = logging.getLogger(__name__)

BOOTED_PROGRESS = 100
FINISHING_DETAILS = "Finishing boot..."


class BootState(NamedTuple):
    progress: int
    details: str


class BootSequencer:
    """Thread-safe, monotonic boot progress counter."""

    def __init__(self, version: str = __version__) -> None:
        self.version = version
        self._progress = 0
        self._details = ""
        self._cond = threading.Condition(threading.Lock())

    def _format(self, details: str) -> str:
        return f"v{self.version} {details}"

    def advance(self, delta: int, details: str) -> None:
        """Add delta to progress and replace the status text.

        No-op once booted.

        Raises:
            ValueError: If delta is not a positive integer.
        """
        if isinstance(delta, bool) or not isinstance(delta, int) or delta <= 0:
            raise ValueError(f"boot progress delta must be a positive int, got {delta!r}")
        with self._cond:
            if self._progress >= BOOTED_PROGRESS:
                return
            self._progress += delta
            self._details = self._format(details)
            if self._progress >= BOOTED_PROGRESS:
                self._cond.notify_all()

    def set_details(self, details: str) -> None:
        """Update the status text only; no-op once booted."""
        with self._cond:
            if self._progress >= BOOTED_PROGRESS:
                return
            self._details = self._format(details)

    def mark_booted(self) -> None:
        """Force the terminal state. Idempotent."""
        with self._cond:
            already = self._progress >= BOOTED_PROGRESS
            self._details = self._format(FINISHING_DETAILS)
            self._progress = BOOTED_PROGRESS
            self._cond.notify_all()
        if not already:
            logger.info("kernel booted")

    @property
    def progress(self) -> int:
        with self._cond:
            return self._progress

    def snapshot(self) -> BootState:
        with self._cond:
            return BootState(self._progress, self._details)

    def is_ready(self) -> bool:
        return self.progress >= BOOTED_PROGRESS

    def wait_ready(self, timeout: float | None = None) -> bool:
        """Block until booted or timeout; return whether the kernel is ready."""
        with self._cond:
            return self._cond.wait_for(
                lambda: self._progress >= BOOTED_PROGRESS, timeout=timeout
            )

    def to_dict(self) -> dict:
        """Polling payload for the readiness endpoint."""
        state = self.snapshot()
        return {"progress": state.progress, "details": state.details}
