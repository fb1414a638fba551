"""Domain models for loan-tracker."""

from loan_tracker.models.audit import AuditEntry
from loan_tracker.models.base import Notification
from loan_tracker.models.enums import (
    AcceptanceStatus,
    AuditAction,
    ChangeStatus,
    ChangeType,
    CollaboratorRole,
    InvitationStatus,
    LoanDirection,
    LoanStatus,
    NotificationType,
)
from loan_tracker.models.loan import (
    Addition,
    Collaborator,
    Comment,
    CounterpartyContact,
    Loan,
    Payment,
    PendingChange,
    SensitiveFields,
)

__all__ = [
    "AcceptanceStatus",
    "Addition",
    "AuditAction",
    "AuditEntry",
    "ChangeStatus",
    "ChangeType",
    "Collaborator",
    "CollaboratorRole",
    "Comment",
    "CounterpartyContact",
    "InvitationStatus",
    "Loan",
    "LoanDirection",
    "LoanStatus",
    "Notification",
    "NotificationType",
    "Payment",
    "PendingChange",
    "SensitiveFields",
]
