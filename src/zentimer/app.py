"""Composition root: one explicitly owned controller per process."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from zentimer.config import default_config_dir
from zentimer.core.controller import TimerController
from zentimer.core.effects import AlertEffectsPlayer, EffectsBackend, TerminalEffects
from zentimer.core.live_activity import LiveActivityMirror
from zentimer.core.notifications import FileNotificationScheduler
from zentimer.core.storage import KeyValueStore
from zentimer.core.ticker import Ticker


class ZenTimerApp:
    """Builds the controller and its collaborators and drives the app lifecycle.

    Lifecycle events are plain method calls on this instance; nothing is
    looked up through module-level state.
    """

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        backend: Optional[EffectsBackend] = None,
        focus_probe: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.config_dir: Path = config_dir if config_dir is not None else default_config_dir()
        self.store = KeyValueStore(self.config_dir)
        self.scheduler = FileNotificationScheduler(self.store)
        self.effects = AlertEffectsPlayer(
            backend if backend is not None else TerminalEffects(),
            focus_probe=focus_probe,
        )
        self.ticker = Ticker()
        self.controller = TimerController(self.store, self.scheduler, self.effects, self.ticker)
        self.live_activity = LiveActivityMirror(self.config_dir)
        self.controller.subscribe(self.live_activity)

    def launch(self) -> TimerController:
        """Restore persisted state before any command is accepted."""
        self.controller.restore_on_launch()
        return self.controller

    def run_foreground(self) -> None:
        """Tick the controller on this thread until the session stops running."""
        self.controller.on_app_foregrounded()
        self.ticker.run(self.controller.tick)

    def background(self) -> None:
        self.controller.on_app_backgrounded()

    def shutdown(self, timeout: float = 5.0) -> None:
        """Let any alert sequence finish before the process exits."""
        self.effects.wait(timeout)
