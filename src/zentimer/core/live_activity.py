"""Live activity: mirrors published timer state for a widget or lock screen."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from zentimer.config import WIDGET_FILE
from zentimer.core.controller import TimerStatus
from zentimer.core.timer import TimerState

logger = logging.getLogger(__name__)


def widget_payload(status: TimerStatus) -> dict[str, Any]:
    """Return the JSON-ready projection a widget renders."""
    return {
        "state": status.state.value,
        "remaining_seconds": status.remaining_seconds,
        "duration_seconds": status.duration_seconds,
        "formatted_time": status.formatted_time,
        "progress": round(status.progress, 4),
        "deadline": status.deadline,
        "is_running": status.state == TimerState.RUNNING,
    }


class LiveActivityMirror:
    """Subscriber that starts, updates and ends the widget projection.

    The activity exists while a session is running, paused or just finished,
    and is removed when the timer returns to idle. Write failures are logged;
    the widget simply goes stale.
    """

    def __init__(self, config_dir: Path) -> None:
        self._config_dir = config_dir
        self._path = config_dir / WIDGET_FILE
        self._last: Optional[dict[str, Any]] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def active(self) -> bool:
        return self._path.exists()

    def __call__(self, status: TimerStatus) -> None:
        if status.state == TimerState.IDLE:
            self._end()
            return
        payload = widget_payload(status)
        if payload == self._last:
            return
        try:
            self._config_dir.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w") as f:
                json.dump(payload, f)
        except OSError as exc:
            logger.warning("Could not update live activity: %s", exc)
            return
        if self._last is None:
            logger.info("Live activity started")
        self._last = payload

    def _end(self) -> None:
        self._last = None
        try:
            self._path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning("Could not end live activity: %s", exc)
            return
        logger.info("Live activity ended")
