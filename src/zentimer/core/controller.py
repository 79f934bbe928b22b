"""Timer controller: owns the session, its persistence and its side effects.

All commands run synchronously on the caller's thread and are total:
commands issued in a state that does not allow them are ignored, inputs out
of range are clamped, and storage or notification failures are logged and
absorbed so the in-memory session stays authoritative.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

from zentimer.config import (
    MAX_ADJUST_MINUTES,
    MAX_DIAL_MINUTES,
    RECENT_COMPLETION_SECONDS,
    SCHEDULING_ADVISORY,
    STALE_SNAPSHOT_SECONDS,
)
from zentimer.core.effects import AlertEffectsPlayer
from zentimer.core.notifications import (
    NotificationAction,
    NotificationPayload,
    NotificationScheduler,
    NotificationSchedulingError,
)
from zentimer.core.preferences import AlertEffect, AlertPreferences
from zentimer.core.storage import (
    KeyValueStore,
    PersistedSnapshot,
    StorageError,
    clear_snapshot,
    load_preferences,
    load_snapshot,
    save_preferences,
    save_snapshot,
)
from zentimer.core.ticker import Ticker
from zentimer.core.timer import (
    TimerSession,
    TimerState,
    clamp_minutes,
    format_remaining,
    minutes_from_progress,
)

logger = logging.getLogger(__name__)

_STATUS_TEXT = {
    TimerState.IDLE: "Drag to set time",
    TimerState.RUNNING: "Running",
    TimerState.PAUSED: "Paused",
    TimerState.COMPLETED: "Finished",
}


@dataclass(frozen=True)
class TimerStatus:
    """Read-only projection published to the UI and the widget."""

    remaining_seconds: int
    duration_seconds: int
    state: TimerState
    haptic_enabled: bool
    flash_enabled: bool
    sound_enabled: bool
    quiet_mode_enabled: bool
    deadline: Optional[float] = None
    drag_progress: Optional[float] = None
    advisory: Optional[str] = None

    @property
    def minutes(self) -> int:
        return self.duration_seconds // 60

    @property
    def is_dragging(self) -> bool:
        return self.drag_progress is not None

    @property
    def formatted_time(self) -> str:
        return format_remaining(self.remaining_seconds)

    @property
    def progress(self) -> float:
        """Fraction of the session still to run."""
        if self.duration_seconds <= 0:
            return 1.0
        return self.remaining_seconds / self.duration_seconds

    @property
    def set_time_progress(self) -> float:
        """Dial handle position: the raw drag fraction while dragging."""
        if self.drag_progress is not None:
            return self.drag_progress
        return self.minutes / MAX_DIAL_MINUTES

    @property
    def status_text(self) -> str:
        return _STATUS_TEXT[self.state]


class TimerController:
    """Drives one :class:`TimerSession` through idle, running, paused and completed.

    Time is kept as a wall-clock deadline while running; every observation
    recomputes the remaining seconds from it, so missed ticks and process
    suspension never cause drift. A running session is persisted as a
    :class:`PersistedSnapshot` and rebuilt by :meth:`restore_on_launch`.

    Completion can be detected by the tick, by the delivered notification, or
    when the app returns to the foreground. All three go through
    :meth:`_finish_once`, which fires the alert at most once per deadline.
    """

    def __init__(
        self,
        store: KeyValueStore,
        scheduler: NotificationScheduler,
        effects: AlertEffectsPlayer,
        ticker: Optional[Ticker] = None,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._effects = effects
        self._ticker = ticker if ticker is not None else Ticker()
        self._session = TimerSession()
        self._preferences = self._load_preferences()
        self._drag_progress: Optional[float] = None
        self._foreground = True
        self._restored = False
        self._handled_deadline: Optional[float] = None
        self._advisory: Optional[str] = None
        self._advisory_shown = False
        self._subscribers: list[Callable[[TimerStatus], None]] = []

        scheduler.on_user_action = self.handle_notification_action
        scheduler.on_delivered = self.handle_notification_delivered

    # -- observation ---------------------------------------------------------

    @property
    def status(self) -> TimerStatus:
        session = self._session
        prefs = self._preferences
        return TimerStatus(
            remaining_seconds=session.remaining_seconds,
            duration_seconds=session.duration_seconds,
            state=session.state,
            haptic_enabled=prefs.haptic_enabled,
            flash_enabled=prefs.flash_enabled,
            sound_enabled=prefs.sound_enabled,
            quiet_mode_enabled=prefs.quiet_mode_enabled,
            deadline=session.deadline,
            drag_progress=self._drag_progress,
            advisory=self._advisory,
        )

    @property
    def preferences(self) -> AlertPreferences:
        return self._preferences

    @property
    def ticker(self) -> Ticker:
        return self._ticker

    def subscribe(self, callback: Callable[[TimerStatus], None]) -> Callable[[], None]:
        """Call *callback* with every published status; returns an unsubscriber."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # -- launch --------------------------------------------------------------

    def restore_on_launch(self) -> None:
        """Rebuild the session from the persisted snapshot, once per process.

        Commands are ignored until this has run.
        """
        if self._restored:
            return
        self._restored = True

        try:
            snapshot = load_snapshot(self._store)
        except StorageError as exc:
            logger.warning("Discarding unreadable timer snapshot: %s", exc)
            self._clear_snapshot()
            self._publish()
            return
        if snapshot is None:
            self._publish()
            return

        now = time.time()
        if snapshot.started_at is not None and now - snapshot.started_at > STALE_SNAPSHOT_SECONDS:
            logger.info("Timer snapshot is stale; starting idle")
            self._scheduler.cancel()
            self._clear_snapshot()
            self._publish()
            return

        remaining = snapshot.deadline - now
        if remaining > 0:
            self._session.resume_from(
                snapshot.deadline,
                snapshot.duration_seconds,
                snapshot.started_at if snapshot.started_at is not None else now,
                now,
            )
            self._ticker.arm()
            logger.info("Restored running timer: %s left", format_remaining(self._session.remaining_seconds))
            self._publish()
            return

        self._session.configure(snapshot.duration_seconds // 60)
        if remaining > -RECENT_COMPLETION_SECONDS:
            logger.info("Timer finished %.0fs before launch", -remaining)
            self._finish_once(snapshot.deadline, alert=True, withdraw_notification=False)
            return

        logger.info("Timer finished long before launch; starting idle")
        self._handled_deadline = snapshot.deadline
        self._scheduler.cancel()
        self._clear_snapshot()
        self._publish()

    # -- duration ------------------------------------------------------------

    def set_duration(self, minutes: int) -> None:
        """Set the duration in whole minutes (idle only, clamped to 1-60)."""
        if not self._accepts_commands("set_duration", idle_only=True):
            return
        self._session.configure(clamp_minutes(minutes))
        self._publish()

    def set_duration_from_angle(self, progress: float) -> None:
        """Set the duration from a dial fraction, keeping the raw fraction for rendering."""
        if not self._accepts_commands("set_duration_from_angle", idle_only=True):
            return
        self._drag_progress = max(0.0, min(1.0, float(progress)))
        self._session.configure(minutes_from_progress(self._drag_progress))
        self._publish()

    def end_drag(self) -> None:
        """Drop the raw drag fraction once the gesture ends."""
        if self._drag_progress is None:
            return
        self._drag_progress = None
        self._publish()

    def adjust_duration(self, delta_minutes: int) -> None:
        """Step the duration by *delta_minutes* (idle only, clamped to 1-99)."""
        if not self._accepts_commands("adjust_duration", idle_only=True):
            return
        minutes = clamp_minutes(self._session.minutes + delta_minutes, MAX_ADJUST_MINUTES)
        self._session.configure(minutes)
        self._publish()

    # -- lifecycle commands --------------------------------------------------

    def start(self) -> None:
        """Run from idle or resume from paused, persisting and scheduling the deadline."""
        if not self._accepts_commands("start"):
            return
        if self._session.state not in (TimerState.IDLE, TimerState.PAUSED):
            logger.debug("start() ignored in %s state", self._session.state.value)
            return

        session = self._session
        deadline = session.begin(time.time())
        self._save_snapshot(
            PersistedSnapshot(
                deadline=deadline,
                duration_seconds=session.duration_seconds,
                started_at=session.started_at,
            )
        )
        self._schedule_notification(deadline)
        self._ticker.arm()
        logger.info("Timer started: %s until %.0f", format_remaining(session.remaining_seconds), deadline)
        self._publish()

    def pause(self) -> None:
        """Freeze the remaining time.

        The pending notification and the snapshot are withdrawn with it; a
        later :meth:`start` schedules and persists the new deadline.
        """
        if not self._accepts_commands("pause"):
            return
        if self._session.state != TimerState.RUNNING:
            logger.debug("pause() ignored in %s state", self._session.state.value)
            return
        now = time.time()
        if self._reconcile(now):
            return

        self._session.freeze(now)
        self._ticker.cancel()
        self._scheduler.cancel()
        self._clear_snapshot()
        logger.info("Timer paused: %s left", format_remaining(self._session.remaining_seconds))
        self._publish()

    def reset(self) -> None:
        """Stop the session and restore the full duration."""
        if not self._accepts_commands("reset"):
            return
        self._ticker.cancel()
        self._scheduler.cancel()
        self._clear_snapshot()
        self._session.clear()
        logger.info("Timer reset to %s", format_remaining(self._session.remaining_seconds))
        self._publish()

    def tick(self) -> None:
        """Recompute the remaining time from the deadline (~1 Hz while running)."""
        if self._session.state != TimerState.RUNNING:
            self._ticker.cancel()
            return
        if not self._reconcile(time.time()):
            self._publish()

    # -- preferences ---------------------------------------------------------

    def toggle(self, effect: AlertEffect) -> None:
        """Flip one alert preference and persist it."""
        if not self._accepts_commands(f"toggle({effect.value})"):
            return
        self._preferences = self._preferences.toggled(effect)
        try:
            save_preferences(self._store, self._preferences)
        except StorageError as exc:
            logger.warning("Could not save alert preferences: %s", exc)
        self._publish()

    def toggle_haptic(self) -> None:
        self.toggle(AlertEffect.HAPTIC)

    def toggle_flash(self) -> None:
        self.toggle(AlertEffect.FLASH)

    def toggle_sound(self) -> None:
        self.toggle(AlertEffect.SOUND)

    def toggle_quiet_mode(self) -> None:
        self.toggle(AlertEffect.QUIET)

    def dismiss_advisory(self) -> None:
        """Clear the notification advisory once it has been shown."""
        if self._advisory is None:
            return
        self._advisory = None
        self._publish()

    # -- app lifecycle and notification callbacks ----------------------------

    def on_app_backgrounded(self) -> None:
        self._foreground = False
        logger.debug("App moved to background")

    def on_app_foregrounded(self) -> None:
        """Catch up with time that passed while the app was in the background."""
        self._foreground = True
        logger.debug("App is active")
        if not self._restored or self._session.state != TimerState.RUNNING:
            return
        if not self._reconcile(time.time()):
            self._ticker.arm()
            self._publish()

    def handle_notification_delivered(self, deadline: float) -> None:
        """Complete the running session whose notification for *deadline* fired."""
        session = self._session
        if session.state != TimerState.RUNNING or session.deadline is None:
            logger.debug("Notification for %.0f arrived with no running timer", deadline)
            return
        if not math.isclose(session.deadline, deadline, abs_tol=1e-3):
            logger.debug("Notification for %.0f belongs to an older session", deadline)
            return
        self._finish_once(session.deadline, alert=self._foreground)

    def handle_notification_action(self, action: NotificationAction) -> None:
        """Route a notification action: stop resets, restart resets and starts."""
        if action == NotificationAction.STOP:
            self.reset()
        elif action == NotificationAction.RESTART:
            self.reset()
            self.start()
        else:
            self.on_app_foregrounded()

    # -- private helpers -----------------------------------------------------

    def _accepts_commands(self, command: str, idle_only: bool = False) -> bool:
        if not self._restored:
            logger.debug("%s() ignored before restore_on_launch()", command)
            return False
        if idle_only and self._session.state != TimerState.IDLE:
            logger.debug("%s() ignored in %s state", command, self._session.state.value)
            return False
        return True

    def _reconcile(self, now: float) -> bool:
        """Refresh a running session; finish it if its deadline has passed.

        Returns ``True`` when the session completed.
        """
        session = self._session
        if session.refresh(now) > 0 or session.deadline is None:
            return False
        self._finish_once(session.deadline, alert=self._foreground)
        return True

    def _finish_once(self, deadline: float, alert: bool, withdraw_notification: bool = True) -> None:
        """Mark the session for *deadline* completed and alert at most once.

        A notification that was already due before launch is left for delivery;
        its delivery is then a no-op for this deadline.
        """
        if self._handled_deadline is not None and math.isclose(
            self._handled_deadline, deadline, abs_tol=1e-3
        ):
            logger.debug("Completion for %.0f already handled", deadline)
            return
        self._handled_deadline = deadline
        self._ticker.cancel()
        self._session.finish()
        self._clear_snapshot()
        if alert and withdraw_notification:
            # The in-app alert replaces the banner for this deadline.
            self._scheduler.cancel()
        if alert:
            self._effects.play(self._preferences)
        logger.info("Timer completed (%s)", "alerted" if alert else "left to notification")
        self._publish()

    def _schedule_notification(self, deadline: float) -> None:
        payload = NotificationPayload.for_session(self._session.minutes)
        try:
            self._scheduler.schedule(deadline, payload)
        except NotificationSchedulingError as exc:
            logger.warning("Could not schedule completion notification: %s", exc)
            if not self._advisory_shown:
                self._advisory_shown = True
                self._advisory = SCHEDULING_ADVISORY

    def _save_snapshot(self, snapshot: PersistedSnapshot) -> None:
        try:
            save_snapshot(self._store, snapshot)
        except StorageError as exc:
            logger.warning("Could not persist timer snapshot: %s", exc)

    def _clear_snapshot(self) -> None:
        try:
            clear_snapshot(self._store)
        except StorageError as exc:
            logger.warning("Could not delete timer snapshot: %s", exc)

    def _load_preferences(self) -> AlertPreferences:
        try:
            return load_preferences(self._store)
        except StorageError as exc:
            logger.warning("Using default alert preferences: %s", exc)
            return AlertPreferences()

    def _publish(self) -> None:
        status = self.status
        for callback in list(self._subscribers):
            callback(status)
