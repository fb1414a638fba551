"""Fire-and-forget notification dispatch."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Protocol

from loan_tracker.models.base import Notification
from loan_tracker.models.enums import NotificationType

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def send(self, notification: Notification) -> None: ...

    def close(self) -> None: ...


class NotificationDispatcher:
    """Fan notifications out to sinks without ever failing the caller."""

    def __init__(self, sinks: list[NotificationSink] | None = None) -> None:
        self.sinks = list(sinks or [])

    def notify(
        self,
        user_id: str | None,
        notification_type: NotificationType,
        title: str,
        message: str,
        loan_id: str | None = None,
        priority: str = "normal",
    ) -> Notification | None:
        """Build and deliver a notification.

        Returns ``None`` when there is no recipient. Sink errors are logged
        and swallowed so the primary mutation is never affected.
        """
        if not user_id:
            return None
        notification = Notification(
            notification_id=uuid.uuid4().hex,
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            message=message,
            loan_id=loan_id,
            priority=priority,
            created_at=datetime.now(timezone.utc),
        )
        for sink in self.sinks:
            try:
                sink.send(notification)
            except Exception:
                logger.exception(
                    "Notification sink %s failed for %s",
                    type(sink).__name__,
                    notification_type.value,
                    extra={"loan_id": loan_id},
                )
        return notification

    def close(self) -> None:
        for sink in self.sinks:
            try:
                sink.close()
            except Exception:
                logger.exception("Failed to close notification sink %s", type(sink).__name__)
