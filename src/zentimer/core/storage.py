"""Durable key-value storage for the timer snapshot and alert preferences."""

from __future__ import annotations

import fcntl
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from zentimer.config import (
    DEFAULT_MINUTES,
    KEY_DEADLINE,
    KEY_DURATION,
    KEY_FLASH,
    KEY_HAPTIC,
    KEY_QUIET,
    KEY_SOUND,
    KEY_STARTED_AT,
    STATE_FILE,
)
from zentimer.core.preferences import AlertPreferences

logger = logging.getLogger(__name__)

_SNAPSHOT_KEYS = (KEY_DEADLINE, KEY_DURATION, KEY_STARTED_AT)


class StorageError(Exception):
    """Raised when the key-value file cannot be read or written."""


class KeyValueStore:
    """Flat JSON key-value file, re-read on every access.

    Every mutation rewrites the whole document under an exclusive lock, so a
    multi-key update is never observed half-applied.
    """

    def __init__(self, config_dir: Path) -> None:
        self._config_dir = config_dir
        self._path = config_dir / STATE_FILE

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def get_many(self, *keys: str) -> dict[str, Any]:
        """Return the present *keys* from a single read of the file."""
        data = self._read()
        return {key: data[key] for key in keys if key in data}

    def update(self, values: Mapping[str, Any]) -> None:
        """Set every key in *values* in one write."""
        data = self._read_for_write()
        data.update(values)
        self._write(data)

    def delete(self, *keys: str) -> None:
        data = self._read_for_write()
        if not any(key in data for key in keys):
            return
        for key in keys:
            data.pop(key, None)
        self._write(data)

    # -- file access ---------------------------------------------------------

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path) as f:
                fcntl.flock(f, fcntl.LOCK_SH)
                data = json.load(f)
        except (OSError, ValueError) as exc:
            raise StorageError(f"cannot read {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"{self._path} does not hold a JSON object")
        return data

    def _read_for_write(self) -> dict[str, Any]:
        try:
            return self._read()
        except StorageError as exc:
            logger.warning("Overwriting unreadable state file: %s", exc)
            return {}

    def _write(self, data: dict[str, Any]) -> None:
        try:
            self._config_dir.mkdir(parents=True, exist_ok=True)
            with open(self._path, "a+") as f:
                fcntl.flock(f, fcntl.LOCK_EX)
                f.seek(0)
                f.truncate()
                json.dump(data, f, indent=2, sort_keys=True)
        except (OSError, TypeError) as exc:
            raise StorageError(f"cannot write {self._path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Timer snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PersistedSnapshot:
    """Minimal record needed to rebuild a running session after process death."""

    deadline: float
    duration_seconds: int
    started_at: Optional[float] = None


def _inferred_duration(deadline: float, started_at: Optional[float]) -> int:
    """Duration for a snapshot that predates ``timer.durationSeconds``."""
    if started_at is not None:
        span = round(deadline - started_at)
        if span > 0 and span % 60 == 0:
            return int(span)
    return DEFAULT_MINUTES * 60


def load_snapshot(store: KeyValueStore) -> Optional[PersistedSnapshot]:
    """Return the stored snapshot, or ``None`` when no session was running.

    Only a missing deadline means there is no session. A missing duration is
    taken from ``deadline - started_at`` when that is a whole number of
    minutes, otherwise the default duration.

    Raises :class:`StorageError` if the file is unreadable or a stored value
    is malformed.
    """
    record = store.get_many(*_SNAPSHOT_KEYS)
    if record.get(KEY_DEADLINE) is None:
        return None
    duration = record.get(KEY_DURATION)
    started_at = record.get(KEY_STARTED_AT)
    try:
        deadline = float(record[KEY_DEADLINE])
        started = float(started_at) if started_at is not None else None
        snapshot = PersistedSnapshot(
            deadline=deadline,
            duration_seconds=(
                int(duration) if duration is not None else _inferred_duration(deadline, started)
            ),
            started_at=started,
        )
    except (TypeError, ValueError) as exc:
        raise StorageError(f"malformed timer snapshot: {exc}") from exc
    if snapshot.duration_seconds <= 0 or snapshot.duration_seconds % 60:
        raise StorageError(f"malformed timer snapshot: duration {snapshot.duration_seconds}")
    return snapshot


def save_snapshot(store: KeyValueStore, snapshot: PersistedSnapshot) -> None:
    store.update(
        {
            KEY_DEADLINE: snapshot.deadline,
            KEY_DURATION: snapshot.duration_seconds,
            KEY_STARTED_AT: snapshot.started_at,
        }
    )


def clear_snapshot(store: KeyValueStore) -> None:
    store.delete(*_SNAPSHOT_KEYS)


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------


def load_preferences(store: KeyValueStore) -> AlertPreferences:
    defaults = AlertPreferences()
    return AlertPreferences(
        haptic_enabled=bool(store.get(KEY_HAPTIC, defaults.haptic_enabled)),
        flash_enabled=bool(store.get(KEY_FLASH, defaults.flash_enabled)),
        sound_enabled=bool(store.get(KEY_SOUND, defaults.sound_enabled)),
        quiet_mode_enabled=bool(store.get(KEY_QUIET, defaults.quiet_mode_enabled)),
    )


def save_preferences(store: KeyValueStore, preferences: AlertPreferences) -> None:
    store.update(
        {
            KEY_HAPTIC: preferences.haptic_enabled,
            KEY_FLASH: preferences.flash_enabled,
            KEY_SOUND: preferences.sound_enabled,
            KEY_QUIET: preferences.quiet_mode_enabled,
        }
    )
