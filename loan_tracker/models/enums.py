"""Enumeration types for loan entities."""

from enum import Enum


class LoanStatus(str, Enum):
    ACTIVE = "active"
    PAID = "paid"
    CANCELLED = "cancelled"


class LoanDirection(str, Enum):
    """Direction from the owner's perspective."""

    LENT = "lent"
    BORROWED = "borrowed"


class AcceptanceStatus(str, Enum):
    """Counterparty acceptance of a proposed loan."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class CollaboratorRole(str, Enum):
    OWNER = "owner"
    COLLABORATOR = "collaborator"
    VIEWER = "viewer"


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class ChangeType(str, Enum):
    PAYMENT = "payment"
    LOAN_ADDITION = "loan_addition"
    PAYMENT_EDIT = "payment_edit"
    ADDITION_EDIT = "addition_edit"
    PAYMENT_DELETION = "payment_deletion"
    ADDITION_DELETION = "addition_deletion"


class ChangeStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationType(str, Enum):
    LOAN_REQUEST = "loan_request"
    LOAN_APPROVED = "loan_approved"
    LOAN_REJECTED = "loan_rejected"
    LOAN_INVITE = "loan_invite"
    PAYMENT_ADDED = "payment_added"
    APPROVAL_REQUEST = "approval_request"
    CHANGE_APPROVED = "change_approved"
    CHANGE_REJECTED = "change_rejected"
    COMMENT_ADDED = "comment_added"
    LOAN_SETTLED = "loan_settled"


class AuditAction(str, Enum):
    LOAN_CREATED = "loan_created"
    LOAN_UPDATED = "loan_updated"
    LOAN_DELETED = "loan_deleted"
    LOAN_ACCEPTED = "loan_accepted"
    LOAN_REJECTED = "loan_rejected"
    PAYMENT_ADDED = "payment_added"
    PAYMENT_EDITED = "payment_edited"
    PAYMENT_DELETED = "payment_deleted"
    ADDITION_ADDED = "addition_added"
    ADDITION_EDITED = "addition_edited"
    ADDITION_DELETED = "addition_deleted"
    COMMENT_ADDED = "comment_added"
    COMMENT_EDITED = "comment_edited"
    COMMENT_DELETED = "comment_deleted"
    CHANGE_REQUESTED = "change_requested"
    CHANGE_APPROVED = "change_approved"
    CHANGE_REJECTED = "change_rejected"
    COLLABORATOR_INVITED = "collaborator_invited"
    INVITATION_RESPONDED = "invitation_responded"
