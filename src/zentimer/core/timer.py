"""Timer core: the single live countdown session as a pure state machine."""

from __future__ import annotations

import math
from enum import Enum
from typing import Optional

from zentimer.config import DEFAULT_MINUTES, MAX_DIAL_MINUTES, MIN_MINUTES


class TimerState(Enum):
    """Possible states of the timer."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


def clamp_minutes(minutes: int, upper: int = MAX_DIAL_MINUTES) -> int:
    """Clamp *minutes* to ``[MIN_MINUTES, upper]``."""
    return max(MIN_MINUTES, min(upper, int(minutes)))


def minutes_from_progress(progress: float) -> int:
    """Quantise a dial fraction (0.0--1.0) to a whole minute count (1--60)."""
    fraction = max(0.0, min(1.0, float(progress)))
    # round() rounds half to even; the dial rounds half up.
    return clamp_minutes(math.floor(fraction * MAX_DIAL_MINUTES + 0.5))


def format_remaining(seconds: int) -> str:
    """Format *seconds* as ``MM:SS``; minutes are not wrapped at an hour."""
    total = max(int(seconds), 0)
    return f"{total // 60:02d}:{total % 60:02d}"


def seconds_until(deadline: float, now: float) -> int:
    """Whole seconds left before *deadline*, never negative.

    Rounded up so the display only reads ``00:00`` once the deadline has
    actually passed.
    """
    return max(math.ceil(deadline - now), 0)


class TimerSession:
    """The countdown session owned by :class:`TimerController`.

    Contains no I/O and no scheduling; every method is a total function over
    the state enum and keeps the invariants::

        0 <= remaining_seconds <= duration_seconds
        deadline is not None  <=>  state is RUNNING
    """

    def __init__(self, minutes: int = DEFAULT_MINUTES) -> None:
        self.state: TimerState = TimerState.IDLE
        self.duration_seconds: int = clamp_minutes(minutes) * 60
        self.remaining_seconds: int = self.duration_seconds
        self.deadline: Optional[float] = None
        self.started_at: Optional[float] = None

    @property
    def minutes(self) -> int:
        return self.duration_seconds // 60

    # -- transitions ---------------------------------------------------------

    def configure(self, minutes: int) -> None:
        """Set the duration to *minutes* (already clamped by the caller)."""
        self.duration_seconds = minutes * 60
        self.remaining_seconds = self.duration_seconds

    def begin(self, now: float) -> float:
        """Enter RUNNING with ``deadline = now + remaining`` and return it."""
        self.deadline = now + self.remaining_seconds
        self.started_at = now
        self.state = TimerState.RUNNING
        return self.deadline

    def resume_from(self, deadline: float, duration_seconds: int, started_at: float, now: float) -> None:
        """Re-enter RUNNING from a persisted deadline without moving it."""
        self.duration_seconds = duration_seconds
        self.deadline = deadline
        self.started_at = started_at
        self.remaining_seconds = min(seconds_until(deadline, now), duration_seconds)
        self.state = TimerState.RUNNING

    def refresh(self, now: float) -> int:
        """Recompute remaining seconds from the deadline and return them."""
        if self.state == TimerState.RUNNING and self.deadline is not None:
            self.remaining_seconds = min(
                seconds_until(self.deadline, now), self.duration_seconds
            )
        return self.remaining_seconds

    def freeze(self, now: float) -> None:
        """Leave RUNNING for PAUSED, keeping the remaining time."""
        self.refresh(now)
        self.deadline = None
        self.state = TimerState.PAUSED

    def finish(self) -> None:
        """Enter COMPLETED with nothing left on the clock."""
        self.remaining_seconds = 0
        self.deadline = None
        self.state = TimerState.COMPLETED

    def clear(self) -> None:
        """Return to IDLE with the full configured duration."""
        self.remaining_seconds = self.duration_seconds
        self.deadline = None
        self.started_at = None
        self.state = TimerState.IDLE
