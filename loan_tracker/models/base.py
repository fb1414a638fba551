"""Envelope models shared across components."""

from dataclasses import dataclass, field
from datetime import datetime

from loan_tracker.models.enums import NotificationType


@dataclass
class Notification:
    """Message addressed to a single user.

    Messages name the loan and the action only; amounts stay inside the
    encrypted bundle.
    """

    notification_id: str
    user_id: str  # Recipient
    notification_type: NotificationType
    title: str
    message: str
    loan_id: str | None = None
    priority: str = "normal"  # low, normal, high
    created_at: datetime = field(default_factory=datetime.now)
