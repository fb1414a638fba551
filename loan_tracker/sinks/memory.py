"""Sink that keeps notifications in memory."""

from dataclasses import dataclass, field

from loan_tracker.models.base import Notification


@dataclass
class MemorySink:
    """Collect notifications, e.g. for scenarios and tests."""

    notifications: list[Notification] = field(default_factory=list)

    def send(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def for_user(self, user_id: str) -> list[Notification]:
        return [n for n in self.notifications if n.user_id == user_id]

    def close(self) -> None:
        pass
