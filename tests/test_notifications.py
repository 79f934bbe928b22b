"""Tests for the file-backed notification scheduler."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from zentimer.core.notifications import (
    FileNotificationScheduler,
    NotificationAction,
    NotificationPayload,
    NotificationSchedulingError,
)
from zentimer.core.storage import KeyValueStore, StorageError

NOW = 1_700_000_000.0


def _payload() -> NotificationPayload:
    return NotificationPayload.for_session(25)


class TestPayload:
    def test_defaults_match_completion_category(self) -> None:
        payload = _payload()
        assert payload.category == "TIMER_COMPLETE"
        assert payload.actions == ("stop", "restart")
        assert payload.title == "Focus session complete"
        assert payload.body == "Your 25 minutes focus session has finished."

    def test_singular_minute(self) -> None:
        assert "1 minute focus" in NotificationPayload.for_session(1).body


class TestSchedule:
    def test_schedule_returns_fixed_id(self, tmp_path: Path) -> None:
        scheduler = FileNotificationScheduler(KeyValueStore(tmp_path))
        first = scheduler.schedule(NOW + 60, _payload())
        second = scheduler.schedule(NOW + 120, _payload())
        assert first == second

    def test_second_schedule_supersedes_first(self, tmp_path: Path) -> None:
        scheduler = FileNotificationScheduler(KeyValueStore(tmp_path))
        scheduler.schedule(NOW + 60, _payload())
        scheduler.schedule(NOW + 120, _payload())
        assert scheduler.pending().fire_at == NOW + 120

    def test_pending_survives_a_new_scheduler(self, tmp_path: Path) -> None:
        FileNotificationScheduler(KeyValueStore(tmp_path)).schedule(NOW + 60, _payload())
        pending = FileNotificationScheduler(KeyValueStore(tmp_path)).pending()
        assert pending is not None
        assert pending.payload == _payload()

    def test_unauthorized_scheduler_refuses(self, tmp_path: Path) -> None:
        scheduler = FileNotificationScheduler(KeyValueStore(tmp_path), authorized=False)
        with pytest.raises(NotificationSchedulingError):
            scheduler.schedule(NOW + 60, _payload())
        assert scheduler.pending() is None

    def test_storage_failure_becomes_scheduling_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        scheduler = FileNotificationScheduler(KeyValueStore(blocker / "config"))
        with pytest.raises(NotificationSchedulingError):
            scheduler.schedule(NOW + 60, _payload())

    def test_malformed_record_raises_storage_error(self, tmp_path: Path) -> None:
        store = KeyValueStore(tmp_path)
        store.update({"notification.pending": {"fire_at": "later"}})
        with pytest.raises(StorageError):
            FileNotificationScheduler(store).pending()


class TestCancel:
    def test_cancel_removes_pending(self, tmp_path: Path) -> None:
        scheduler = FileNotificationScheduler(KeyValueStore(tmp_path))
        scheduler.schedule(NOW + 60, _payload())
        scheduler.cancel()
        assert scheduler.pending() is None

    def test_cancel_is_idempotent(self, tmp_path: Path) -> None:
        scheduler = FileNotificationScheduler(KeyValueStore(tmp_path))
        scheduler.cancel()
        scheduler.cancel()
        assert scheduler.pending() is None


class TestDeliverDue:
    def test_not_delivered_before_fire_time(self, tmp_path: Path) -> None:
        scheduler = FileNotificationScheduler(KeyValueStore(tmp_path))
        scheduler.schedule(NOW + 60, _payload())
        with patch("zentimer.core.notifications.time") as mock_time:
            mock_time.time.return_value = NOW + 59
            assert scheduler.deliver_due() is None
        assert scheduler.pending() is not None

    def test_delivered_once_after_fire_time(self, tmp_path: Path) -> None:
        scheduler = FileNotificationScheduler(KeyValueStore(tmp_path))
        scheduler.on_delivered = MagicMock()
        scheduler.schedule(NOW + 60, _payload())
        with patch("zentimer.core.notifications.time") as mock_time:
            mock_time.time.return_value = NOW + 60
            delivered = scheduler.deliver_due()
            again = scheduler.deliver_due()
        assert delivered is not None
        assert delivered.payload == _payload()
        assert again is None
        scheduler.on_delivered.assert_called_once_with(NOW + 60)

    def test_nothing_pending(self, tmp_path: Path) -> None:
        scheduler = FileNotificationScheduler(KeyValueStore(tmp_path))
        assert scheduler.deliver_due() is None


class TestRespond:
    def test_forwards_action_to_owner(self, tmp_path: Path) -> None:
        scheduler = FileNotificationScheduler(KeyValueStore(tmp_path))
        scheduler.on_user_action = MagicMock()
        scheduler.respond(NotificationAction.RESTART)
        scheduler.on_user_action.assert_called_once_with(NotificationAction.RESTART)

    def test_without_owner_is_a_no_op(self, tmp_path: Path) -> None:
        FileNotificationScheduler(KeyValueStore(tmp_path)).respond(NotificationAction.STOP)
