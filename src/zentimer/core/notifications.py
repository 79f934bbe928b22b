"""Completion notifications scheduled independently of the in-process timer."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from zentimer.config import (
    KEY_PENDING_NOTIFICATION,
    NOTIFICATION_CATEGORY,
    NOTIFICATION_ID,
    NOTIFICATION_TITLE,
)
from zentimer.core.storage import KeyValueStore, StorageError

logger = logging.getLogger(__name__)


class NotificationAction(Enum):
    """What the user did with a delivered notification."""

    OPEN = "open"
    STOP = "stop"
    RESTART = "restart"


class NotificationSchedulingError(Exception):
    """Raised when the platform refuses to schedule a notification."""


@dataclass(frozen=True)
class NotificationPayload:
    title: str
    body: str
    category: str = NOTIFICATION_CATEGORY
    actions: tuple[str, ...] = field(
        default=(NotificationAction.STOP.value, NotificationAction.RESTART.value)
    )

    @classmethod
    def for_session(cls, minutes: int) -> "NotificationPayload":
        unit = "minute" if minutes == 1 else "minutes"
        return cls(
            title=NOTIFICATION_TITLE,
            body=f"Your {minutes} {unit} focus session has finished.",
        )


class NotificationScheduler:
    """Contract for the notification subsystem.

    At most one notification is pending at a time: scheduling again replaces
    the previous one under the same fixed id. ``on_user_action`` and
    ``on_delivered`` are inbound callbacks assigned by the owner.
    """

    def __init__(self) -> None:
        self.on_user_action: Optional[Callable[[NotificationAction], None]] = None
        self.on_delivered: Optional[Callable[[float], None]] = None

    def schedule(self, deadline: float, payload: NotificationPayload) -> str:
        raise NotImplementedError

    def cancel(self) -> None:
        raise NotImplementedError

    def respond(self, action: NotificationAction) -> None:
        """Forward the user's interaction to the owner, if one is listening."""
        logger.info("Notification action: %s", action.value)
        if self.on_user_action is not None:
            self.on_user_action(action)


@dataclass(frozen=True)
class PendingNotification:
    fire_at: float
    payload: NotificationPayload
    identifier: str = NOTIFICATION_ID


class FileNotificationScheduler(NotificationScheduler):
    """Keeps the pending notification in the key-value store.

    The record outlives the process that scheduled it; whichever process
    calls :meth:`deliver_due` after the fire time delivers it exactly once.
    """

    def __init__(self, store: KeyValueStore, authorized: bool = True) -> None:
        super().__init__()
        self._store = store
        self._authorized = authorized

    def schedule(self, deadline: float, payload: NotificationPayload) -> str:
        if not self._authorized:
            raise NotificationSchedulingError("notifications are not authorized")
        record = {
            "id": NOTIFICATION_ID,
            "fire_at": deadline,
            "title": payload.title,
            "body": payload.body,
            "category": payload.category,
            "actions": list(payload.actions),
        }
        try:
            self._store.update({KEY_PENDING_NOTIFICATION: record})
        except StorageError as exc:
            raise NotificationSchedulingError(str(exc)) from exc
        logger.info("Scheduled notification %s for %.0f", NOTIFICATION_ID, deadline)
        return NOTIFICATION_ID

    def cancel(self) -> None:
        try:
            self._store.delete(KEY_PENDING_NOTIFICATION)
        except StorageError as exc:
            logger.warning("Could not cancel notification: %s", exc)

    def pending(self) -> Optional[PendingNotification]:
        record = self._store.get(KEY_PENDING_NOTIFICATION)
        if not record:
            return None
        try:
            return PendingNotification(
                fire_at=float(record["fire_at"]),
                payload=NotificationPayload(
                    title=record["title"],
                    body=record["body"],
                    category=record.get("category", NOTIFICATION_CATEGORY),
                    actions=tuple(record.get("actions", ())),
                ),
                identifier=record.get("id", NOTIFICATION_ID),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageError(f"malformed pending notification: {exc}") from exc

    def deliver_due(self) -> Optional[PendingNotification]:
        """Deliver the pending notification if its fire time has passed."""
        notification = self.pending()
        if notification is None or notification.fire_at > time.time():
            return None
        self._store.delete(KEY_PENDING_NOTIFICATION)
        logger.info("Delivered notification %s", notification.identifier)
        if self.on_delivered is not None:
            self.on_delivered(notification.fire_at)
        return notification
