"""Cooperative tick source driving the controller while a session runs."""

from __future__ import annotations

import logging
import time
from typing import Callable

from zentimer.config import TICK_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class Ticker:
    """A ~1 Hz tick handle that the controller arms and cancels.

    Arming and cancelling are idempotent. The ticks themselves are driven on
    the caller's thread by :meth:`run`, so the callback never races with
    other mutations of the controller.
    """

    def __init__(self, interval: float = TICK_INTERVAL_SECONDS) -> None:
        self._interval = interval
        self._armed = False

    @property
    def armed(self) -> bool:
        return self._armed

    def arm(self) -> None:
        if not self._armed:
            logger.debug("Tick armed")
        self._armed = True

    def cancel(self) -> None:
        if self._armed:
            logger.debug("Tick cancelled")
        self._armed = False

    def run(self, callback: Callable[[], None]) -> None:
        """Call *callback* every interval until the ticker is cancelled."""
        while self._armed:
            time.sleep(self._interval)
            if not self._armed:
                break
            callback()
