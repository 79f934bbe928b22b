"""Tests for the key-value store, the timer snapshot and preference persistence."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from zentimer.core.preferences import AlertPreferences
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

# ---------------------------------------------------------------------------
# Helper: read the persisted JSON state file
# ---------------------------------------------------------------------------


def _read_state(config_dir: Path) -> dict:
    """Read and return the state.json content as a dict."""
    return json.loads((config_dir / "state.json").read_text())


# ---------------------------------------------------------------------------
# KeyValueStore
# ---------------------------------------------------------------------------


class TestKeyValueStore:
    def test_missing_file_reads_as_empty(self, tmp_path: Path) -> None:
        store = KeyValueStore(tmp_path)
        assert store.get("timer.deadline") is None
        assert store.get("prefs.hapticEnabled", True) is True

    def test_update_writes_all_keys(self, tmp_path: Path) -> None:
        store = KeyValueStore(tmp_path)
        store.update({"a": 1, "b": "two"})
        assert _read_state(tmp_path) == {"a": 1, "b": "two"}

    def test_update_keeps_other_keys(self, tmp_path: Path) -> None:
        store = KeyValueStore(tmp_path)
        store.update({"a": 1})
        store.update({"b": 2})
        assert _read_state(tmp_path) == {"a": 1, "b": 2}

    def test_delete_removes_only_named_keys(self, tmp_path: Path) -> None:
        store = KeyValueStore(tmp_path)
        store.update({"a": 1, "b": 2, "c": 3})
        store.delete("a", "c")
        assert _read_state(tmp_path) == {"b": 2}

    def test_delete_of_absent_keys_does_not_create_file(self, tmp_path: Path) -> None:
        store = KeyValueStore(tmp_path)
        store.delete("missing")
        assert not (tmp_path / "state.json").exists()

    def test_get_many_returns_present_keys(self, tmp_path: Path) -> None:
        store = KeyValueStore(tmp_path)
        store.update({"a": 1, "b": 2, "c": 3})
        assert store.get_many("a", "c", "missing") == {"a": 1, "c": 3}

    def test_creates_missing_config_dir(self, tmp_path: Path) -> None:
        config_dir = tmp_path / "nested" / "config" / "dir"
        store = KeyValueStore(config_dir)
        store.update({"a": 1})
        assert (config_dir / "state.json").exists()

    def test_corrupt_file_raises_storage_error_on_read(self, tmp_path: Path) -> None:
        (tmp_path / "state.json").write_text("{not json")
        store = KeyValueStore(tmp_path)
        with pytest.raises(StorageError):
            store.get("a")

    def test_non_object_document_raises_storage_error(self, tmp_path: Path) -> None:
        (tmp_path / "state.json").write_text("[1, 2]")
        with pytest.raises(StorageError):
            KeyValueStore(tmp_path).get("a")

    def test_update_overwrites_corrupt_file(self, tmp_path: Path) -> None:
        (tmp_path / "state.json").write_text("{not json")
        store = KeyValueStore(tmp_path)
        store.update({"a": 1})
        assert _read_state(tmp_path) == {"a": 1}

    def test_unwritable_location_raises_storage_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        store = KeyValueStore(blocker / "config")
        with pytest.raises(StorageError):
            store.update({"a": 1})


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


class TestSnapshot:
    def test_save_uses_documented_keys(self, tmp_path: Path) -> None:
        store = KeyValueStore(tmp_path)
        save_snapshot(store, PersistedSnapshot(1_706_746_200.0, 600, 1_706_745_600.0))
        assert _read_state(tmp_path) == {
            "timer.deadline": 1_706_746_200.0,
            "timer.durationSeconds": 600,
            "timer.startedAt": 1_706_745_600.0,
        }

    def test_load_returns_saved_snapshot(self, tmp_path: Path) -> None:
        store = KeyValueStore(tmp_path)
        snapshot = PersistedSnapshot(2_000.0, 300, 1_700.0)
        save_snapshot(store, snapshot)
        assert load_snapshot(store) == snapshot

    def test_no_deadline_means_no_snapshot(self, tmp_path: Path) -> None:
        store = KeyValueStore(tmp_path)
        store.update({"timer.durationSeconds": 300})
        assert load_snapshot(store) is None

    def test_missing_started_at_is_allowed(self, tmp_path: Path) -> None:
        store = KeyValueStore(tmp_path)
        store.update({"timer.deadline": 2_000.0, "timer.durationSeconds": 300})
        assert load_snapshot(store) == PersistedSnapshot(2_000.0, 300, None)

    def test_snapshot_is_built_from_one_read(self, tmp_path: Path) -> None:
        store = KeyValueStore(tmp_path)
        save_snapshot(store, PersistedSnapshot(2_000.0, 300, 1_700.0))
        with patch.object(store, "_read", wraps=store._read) as read:
            load_snapshot(store)
        assert read.call_count == 1

    def test_missing_duration_is_derived_from_start(self, tmp_path: Path) -> None:
        store = KeyValueStore(tmp_path)
        store.update({"timer.deadline": 2_000.0, "timer.startedAt": 1_400.0})
        assert load_snapshot(store) == PersistedSnapshot(2_000.0, 600, 1_400.0)

    @pytest.mark.parametrize("started_at", [None, 1_910.0, 2_100.0])
    def test_missing_duration_falls_back_to_default(
        self, tmp_path: Path, started_at: object
    ) -> None:
        store = KeyValueStore(tmp_path)
        values = {"timer.deadline": 2_000.0}
        if started_at is not None:
            values["timer.startedAt"] = started_at
        store.update(values)
        assert load_snapshot(store).duration_seconds == 25 * 60

    @pytest.mark.parametrize(
        "duration",
        ["abc", 0, -60, 90],
    )
    def test_malformed_duration_raises(self, tmp_path: Path, duration: object) -> None:
        store = KeyValueStore(tmp_path)
        store.update({"timer.deadline": 2_000.0, "timer.durationSeconds": duration})
        with pytest.raises(StorageError):
            load_snapshot(store)

    def test_clear_removes_snapshot_but_keeps_preferences(self, tmp_path: Path) -> None:
        store = KeyValueStore(tmp_path)
        save_preferences(store, AlertPreferences(flash_enabled=True))
        save_snapshot(store, PersistedSnapshot(2_000.0, 300, 1_700.0))
        clear_snapshot(store)
        assert load_snapshot(store) is None
        assert load_preferences(store).flash_enabled is True


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------


class TestPreferencesPersistence:
    def test_defaults_when_nothing_saved(self, tmp_path: Path) -> None:
        assert load_preferences(KeyValueStore(tmp_path)) == AlertPreferences()

    def test_round_trip(self, tmp_path: Path) -> None:
        store = KeyValueStore(tmp_path)
        prefs = AlertPreferences(
            haptic_enabled=False, flash_enabled=True, sound_enabled=True, quiet_mode_enabled=True
        )
        save_preferences(store, prefs)
        assert load_preferences(KeyValueStore(tmp_path)) == prefs

    def test_saved_under_documented_keys(self, tmp_path: Path) -> None:
        save_preferences(KeyValueStore(tmp_path), AlertPreferences())
        assert _read_state(tmp_path) == {
            "prefs.hapticEnabled": True,
            "prefs.flashEnabled": False,
            "prefs.soundEnabled": False,
            "prefs.quietModeEnabled": False,
        }
