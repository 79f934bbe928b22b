"""Completion-alert preferences."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum


class AlertEffect(Enum):
    """User-toggleable parts of the completion alert."""

    HAPTIC = "haptic"
    FLASH = "flash"
    SOUND = "sound"
    QUIET = "quiet"


_FIELDS = {
    AlertEffect.HAPTIC: "haptic_enabled",
    AlertEffect.FLASH: "flash_enabled",
    AlertEffect.SOUND: "sound_enabled",
    AlertEffect.QUIET: "quiet_mode_enabled",
}


@dataclass(frozen=True)
class AlertPreferences:
    """Which completion effects the user wants.

    Persisted independently of the timer session and changed only through
    :meth:`toggled`.
    """

    haptic_enabled: bool = True
    flash_enabled: bool = False
    sound_enabled: bool = False
    quiet_mode_enabled: bool = False

    def is_enabled(self, effect: AlertEffect) -> bool:
        return getattr(self, _FIELDS[effect])

    def toggled(self, effect: AlertEffect) -> "AlertPreferences":
        """Return a copy with *effect* flipped."""
        field = _FIELDS[effect]
        return replace(self, **{field: not getattr(self, field)})
