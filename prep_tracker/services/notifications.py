"""Where user-facing notifications go.

The UI layer supplies a sink; the library only decides *what* to show.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from prep_tracker.core.metrics import NOTIFICATIONS
from prep_tracker.models.notification import Notification, NotificationKind

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationSink(Protocol):
    def notify(self, notification: Notification) -> None:
        """Show a non-blocking toast.  Must not raise."""
        ...


class InMemoryNotificationSink:
    """Collects notifications; used by tests and headless runs."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        NOTIFICATIONS.labels(kind=notification.kind.value).inc()
        self.notifications.append(notification)

    def of_kind(self, kind: NotificationKind) -> list[Notification]:
        return [n for n in self.notifications if n.kind == kind]

    def clear(self) -> None:
        self.notifications.clear()


class LoggingNotificationSink:
    """Writes notifications to the log; the companion worker's sink."""

    def notify(self, notification: Notification) -> None:
        NOTIFICATIONS.labels(kind=notification.kind.value).inc()
        level = logging.WARNING if notification.kind is NotificationKind.ERROR else logging.INFO
        logger.log(level, "%s: %s", notification.title, notification.description)
