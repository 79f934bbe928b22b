"""Configuration constants for zentimer."""

from __future__ import annotations

import os
from pathlib import Path

# Directories and files
CONFIG_DIR_ENV = "ZENTIMER_HOME"
STATE_FILE = "state.json"
WIDGET_FILE = "widget.json"
LOG_DIR = "logs"
LOG_FILE = "zentimer.log"

# Duration bounds (minutes)
MIN_MINUTES = 1
MAX_DIAL_MINUTES = 60
MAX_ADJUST_MINUTES = 99  # stepper allows more than the dial
DEFAULT_MINUTES = 25

# Timing
TICK_INTERVAL_SECONDS = 1.0
STALE_SNAPSHOT_SECONDS = 24 * 60 * 60
RECENT_COMPLETION_SECONDS = 60

# Storage keys
KEY_DEADLINE = "timer.deadline"
KEY_DURATION = "timer.durationSeconds"
KEY_STARTED_AT = "timer.startedAt"
KEY_HAPTIC = "prefs.hapticEnabled"
KEY_FLASH = "prefs.flashEnabled"
KEY_SOUND = "prefs.soundEnabled"
KEY_QUIET = "prefs.quietModeEnabled"
KEY_PENDING_NOTIFICATION = "notification.pending"

# Notification
NOTIFICATION_ID = "zentimer.timer-complete"
NOTIFICATION_CATEGORY = "TIMER_COMPLETE"
NOTIFICATION_TITLE = "Focus session complete"

SCHEDULING_ADVISORY = (
    "Notifications are unavailable. The timer will only alert you while the app is open."
)


def default_config_dir() -> Path:
    """Return ``$ZENTIMER_HOME`` if set, otherwise ``~/.config/zentimer``."""
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "zentimer"
