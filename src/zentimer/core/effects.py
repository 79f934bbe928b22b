"""Completion alert effects: haptic, flash and sound sequences."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

import click

from zentimer.core.preferences import AlertEffect, AlertPreferences

logger = logging.getLogger(__name__)

# Seconds to wait before each pulse.
HAPTIC_PATTERN = (0.0, 0.4, 0.4)
FLASH_PULSES = 3
FLASH_ON_SECONDS = 0.3
FLASH_OFF_SECONDS = 0.3
CHIME_REPEATS = 2
CHIME_GAP_SECONDS = 0.8


class EffectsBackend:
    """Hardware boundary. Missing hardware must silently no-op."""

    def vibrate(self) -> None:
        raise NotImplementedError

    def set_torch(self, on: bool) -> None:
        raise NotImplementedError

    def chime(self) -> None:
        raise NotImplementedError


class TerminalEffects(EffectsBackend):
    """Backend for a terminal: the bell is the only output device."""

    def vibrate(self) -> None:
        logger.debug("No haptic engine; skipping pulse")

    def set_torch(self, on: bool) -> None:
        logger.debug("No torch; skipping flash %s", "on" if on else "off")

    def chime(self) -> None:
        click.echo("\a", nl=False, err=True)


def _start_daemon(target: Callable[[], None]) -> Optional[threading.Thread]:
    thread = threading.Thread(target=target, name="zentimer-alert", daemon=True)
    thread.start()
    return thread


class AlertEffectsPlayer:
    """Plays the completion alert without blocking or raising.

    Each enabled effect runs its own sequence on a background thread.
    Quiet mode leaves only the haptic sequence, and drops that too while the
    host reports a system focus/silent mode.
    """

    def __init__(
        self,
        backend: EffectsBackend,
        focus_probe: Optional[Callable[[], bool]] = None,
        spawn: Callable[[Callable[[], None]], Optional[threading.Thread]] = _start_daemon,
    ) -> None:
        self._backend = backend
        self._focus_probe = focus_probe
        self._spawn = spawn
        self._threads: list[threading.Thread] = []

    def effects_for(self, preferences: AlertPreferences) -> list[AlertEffect]:
        """Return the effects that will actually play for *preferences*."""
        if preferences.quiet_mode_enabled:
            if not preferences.haptic_enabled or self._host_focus_active():
                return []
            return [AlertEffect.HAPTIC]
        return [
            effect
            for effect in (AlertEffect.HAPTIC, AlertEffect.FLASH, AlertEffect.SOUND)
            if preferences.is_enabled(effect)
        ]

    def play(self, preferences: AlertPreferences) -> None:
        effects = self.effects_for(preferences)
        logger.info("Playing alert: %s", ", ".join(e.value for e in effects) or "nothing")
        for effect in effects:
            try:
                thread = self._spawn(self._sequence(effect))
            except RuntimeError as exc:
                logger.warning("Could not start %s alert: %s", effect.value, exc)
                continue
            if thread is not None:
                self._threads.append(thread)

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until started sequences finish (used before process exit)."""
        for thread in self._threads:
            thread.join(timeout)
        self._threads = [t for t in self._threads if t.is_alive()]

    # -- sequences -----------------------------------------------------------

    def _host_focus_active(self) -> bool:
        if self._focus_probe is None:
            return False
        try:
            return bool(self._focus_probe())
        except Exception:
            logger.warning("Focus-mode probe failed; assuming focus is off", exc_info=True)
            return False

    def _sequence(self, effect: AlertEffect) -> Callable[[], None]:
        steps = {
            AlertEffect.HAPTIC: self._haptic,
            AlertEffect.FLASH: self._flash,
            AlertEffect.SOUND: self._sound,
        }[effect]

        def run() -> None:
            try:
                steps()
            except Exception:
                logger.warning("%s alert failed", effect.value, exc_info=True)

        return run

    def _haptic(self) -> None:
        for delay in HAPTIC_PATTERN:
            if delay:
                time.sleep(delay)
            self._backend.vibrate()

    def _flash(self) -> None:
        try:
            for _ in range(FLASH_PULSES):
                self._backend.set_torch(True)
                time.sleep(FLASH_ON_SECONDS)
                self._backend.set_torch(False)
                time.sleep(FLASH_OFF_SECONDS)
        finally:
            self._backend.set_torch(False)

    def _sound(self) -> None:
        for index in range(CHIME_REPEATS):
            if index:
                time.sleep(CHIME_GAP_SECONDS)
            self._backend.chime()
