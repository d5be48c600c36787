"""
Health file writer for the bridge daemon.

Writes a JSON health file at a configurable path with four fields:
- last_cycle_ts: ISO timestamp of the most recent finished cycle.
- last_success_ts: ISO timestamp of the most recent cycle that dispatched.
- last_status: CycleStatus value of the most recent cycle.
- sensors_sent: Number of states written in the most recent cycle.

The file is rewritten after every cycle, providing a simple liveness signal
that a Docker HEALTHCHECK or the supervisor watchdog can inspect.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-112)

TODO:
- None
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from solarsynk.src.models import CycleResult, CycleStatus

logger = logging.getLogger(__name__)


class HealthWriter:
    """Writes bridge health status to a JSON file.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_cycle_ts: str | None = None
        self._last_success_ts: str | None = None
        self._last_status: str | None = None
        self._sensors_sent: int = 0

    def record_cycle(self, result: CycleResult) -> None:
        """Record the outcome of one cycle and write the health file."""
        now = datetime.now(tz=UTC).isoformat()
        self._last_cycle_ts = now
        self._last_status = result.status.value
        self._sensors_sent = len(result.dispatch.sent) if result.dispatch else 0
        if result.status is CycleStatus.OK:
            self._last_success_ts = now
        self._write()

    def _write(self) -> None:
        """Write the health JSON file with current state."""
        data = {
            "last_cycle_ts": self._last_cycle_ts,
            "last_success_ts": self._last_success_ts,
            "last_status": self._last_status,
            "sensors_sent": self._sensors_sent,
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data))
        except OSError:
            logger.warning("Failed to write health file %s", self.path, exc_info=True)
