"""Approval workflow for collaborative loans.

A mutation either applies immediately (``DIRECT``) or is queued as a
:class:`PendingChange` (``QUEUED``) when the loan requires collaboration
and the actor is not its owner. A queued change is resolved exactly once:
approval replays it through the ledger against the loan as it is *now*;
rejection discards it.

Loan acceptance is a separate two-state flow: the invited counterparty
accepts or rejects a proposed loan, and only accepted loans can be mutated.
"""

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from loan_tracker import ledger
from loan_tracker.exceptions import (
    AuthorizationError,
    ChangeAlreadyResolvedError,
    EntityNotFoundError,
    LoanNotPendingError,
    SelfReviewError,
    StateConflict,
    ValidationError,
)
from loan_tracker.models.enums import (
    AcceptanceStatus,
    ChangeStatus,
    ChangeType,
    CollaboratorRole,
    InvitationStatus,
    LoanDirection,
    LoanStatus,
)
from loan_tracker.models.loan import Collaborator, Loan, PendingChange
from loan_tracker.money import to_positive_money
from loan_tracker.serialization import parse_date, serialize_value

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    DIRECT = "direct"
    QUEUED = "queued"


def _now() -> datetime:
    return datetime.now(timezone.utc)


# --------------------------------------------------------------------------
# Guards
# --------------------------------------------------------------------------


def ensure_mutable(loan: Loan) -> None:
    """Reject mutations on loans that are not accepted or are cancelled."""
    if loan.acceptance_status != AcceptanceStatus.ACCEPTED:
        raise StateConflict(f"Loan {loan.loan_id} has not been accepted by the counterparty")
    if loan.status == LoanStatus.CANCELLED:
        raise StateConflict(f"Loan {loan.loan_id} is cancelled")


def ensure_can_edit(loan: Loan, actor_id: str) -> None:
    if not loan.can_edit(actor_id):
        raise AuthorizationError("Not authorized to modify this loan")


def ensure_can_view(loan: Loan, actor_id: str) -> None:
    if not loan.can_view(actor_id):
        raise AuthorizationError("Access denied")


def ensure_payment_editor(loan: Loan, payment_id: str, actor_id: str) -> None:
    """Payments may be edited or deleted by their payer or the owner."""
    for payment in loan.sensitive.payments:
        if payment.payment_id == payment_id:
            if payment.paid_by != actor_id and not loan.is_owner(actor_id):
                raise AuthorizationError("Not authorized to modify this payment")
            return
    raise EntityNotFoundError(f"Payment {payment_id} not found")


def decide(loan: Loan, actor_id: str) -> Decision:
    """Whether a mutation by ``actor_id`` applies now or waits for approval."""
    if loan.requires_collaboration and not loan.is_owner(actor_id):
        return Decision.QUEUED
    return Decision.DIRECT


# --------------------------------------------------------------------------
# Change payloads
# --------------------------------------------------------------------------


def _require_target(items: list, attr: str, target_id: Any, label: str) -> None:
    if not target_id:
        raise ValidationError(f"{label} id is required")
    if not any(getattr(item, attr) == target_id for item in items):
        raise EntityNotFoundError(f"{label} {target_id} not found")


def validate_change(loan: Loan, change_type: ChangeType, data: dict) -> None:
    """Check a payload's shape and that its target sub-record exists.

    Balance checks are left to application time, which runs against the
    snapshot current at that moment.
    """
    bundle = loan.sensitive
    if change_type in (ChangeType.PAYMENT, ChangeType.LOAN_ADDITION):
        to_positive_money(data.get("amount"))
    elif change_type == ChangeType.PAYMENT_EDIT:
        _require_target(bundle.payments, "payment_id", data.get("payment_id"), "Payment")
        if data.get("amount") is not None:
            to_positive_money(data["amount"])
    elif change_type == ChangeType.ADDITION_EDIT:
        _require_target(bundle.additions, "addition_id", data.get("addition_id"), "Addition")
        if data.get("amount") is None and data.get("description") is None:
            raise ValidationError("Nothing to update: provide amount or description")
        if data.get("amount") is not None:
            to_positive_money(data["amount"])
    elif change_type == ChangeType.PAYMENT_DELETION:
        _require_target(bundle.payments, "payment_id", data.get("payment_id"), "Payment")
    elif change_type == ChangeType.ADDITION_DELETION:
        _require_target(bundle.additions, "addition_id", data.get("addition_id"), "Addition")


def _apply_payment(loan: Loan, data: dict, actor_id: str, actor_name: str) -> Any:
    return ledger.apply_payment(
        loan,
        data["amount"],
        paid_by=actor_id,
        paid_on=parse_date(data.get("date")),
        method=data.get("method"),
        notes=data.get("notes"),
    )


def _apply_addition(loan: Loan, data: dict, actor_id: str, actor_name: str) -> Any:
    return ledger.apply_addition(
        loan,
        data["amount"],
        added_by=actor_id,
        added_by_name=actor_name,
        added_on=parse_date(data.get("date")),
        description=data.get("description"),
    )


def _edit_payment(loan: Loan, data: dict, actor_id: str, actor_name: str) -> Any:
    return ledger.edit_payment(
        loan,
        data["payment_id"],
        amount=data.get("amount"),
        paid_on=parse_date(data.get("date")),
        method=data.get("method"),
        notes=data.get("notes"),
    )


def _edit_addition(loan: Loan, data: dict, actor_id: str, actor_name: str) -> Any:
    return ledger.edit_addition(
        loan,
        data["addition_id"],
        editor_id=actor_id,
        editor_name=actor_name,
        amount=data.get("amount"),
        description=data.get("description"),
    )


def _delete_payment(loan: Loan, data: dict, actor_id: str, actor_name: str) -> Any:
    return ledger.delete_payment(loan, data["payment_id"])


def _delete_addition(loan: Loan, data: dict, actor_id: str, actor_name: str) -> Any:
    return ledger.delete_addition(loan, data["addition_id"], actor_id, actor_name)


APPLIERS: dict[ChangeType, Callable[[Loan, dict, str, str], Any]] = {
    ChangeType.PAYMENT: _apply_payment,
    ChangeType.LOAN_ADDITION: _apply_addition,
    ChangeType.PAYMENT_EDIT: _edit_payment,
    ChangeType.ADDITION_EDIT: _edit_addition,
    ChangeType.PAYMENT_DELETION: _delete_payment,
    ChangeType.ADDITION_DELETION: _delete_addition,
}


def apply_change(loan: Loan, change_type: ChangeType, data: dict, actor_id: str, actor_name: str) -> Any:
    """Run a mutation through the ledger and return the affected sub-record.

    ``actor_id`` is the identity recorded on the new sub-record (payer,
    adder). For approved changes that is the original requester.
    """
    return APPLIERS[change_type](loan, data, actor_id, actor_name)


def queue_change(
    loan: Loan,
    change_type: ChangeType,
    data: dict,
    requester_id: str,
    requester_name: str,
) -> PendingChange:
    """Validate a payload and append it to the loan as a pending change."""
    validate_change(loan, change_type, data)
    change = PendingChange(
        change_id=uuid.uuid4().hex,
        change_type=change_type,
        data={k: serialize_value(v) for k, v in data.items() if v is not None},
        requested_by=requester_id,
        requested_by_name=requester_name,
        requested_at=_now(),
    )
    loan.sensitive.pending_changes.append(change)
    logger.info(
        "Queued %s for approval",
        change_type.value,
        extra={"loan_id": loan.loan_id, "actor_id": requester_id, "change_id": change.change_id},
    )
    return change


# --------------------------------------------------------------------------
# Review
# --------------------------------------------------------------------------


def _reviewable_change(loan: Loan, change_id: str, reviewer_id: str) -> PendingChange:
    change = loan.find_pending_change(change_id)
    if change is None:
        raise EntityNotFoundError(f"Pending change {change_id} not found")
    if change.is_resolved:
        raise ChangeAlreadyResolvedError(f"Pending change {change_id} was already {change.status.value}")
    if change.requested_by == reviewer_id:
        raise SelfReviewError("You cannot review your own change")
    if not (loan.is_owner(reviewer_id) or loan.is_counterparty(reviewer_id)):
        raise AuthorizationError("Only the loan owner or counterparty can review changes")
    return change


def approve_change(loan: Loan, change_id: str, reviewer_id: str, reviewer_name: str) -> tuple[PendingChange, Any]:
    """Apply a pending change to the current snapshot and mark it approved.

    If application fails (for example, a payment now exceeds the balance)
    the error propagates and the change stays pending.

    Returns
    -------
    tuple[PendingChange, Any]
        The resolved change and the affected sub-record.
    """
    change = _reviewable_change(loan, change_id, reviewer_id)
    result = apply_change(
        loan,
        change.change_type,
        change.data,
        change.requested_by,
        change.requested_by_name,
    )
    change.status = ChangeStatus.APPROVED
    change.reviewed_by = reviewer_id
    change.reviewed_by_name = reviewer_name
    change.reviewed_at = _now()
    return change, result


def reject_change(
    loan: Loan,
    change_id: str,
    reviewer_id: str,
    reviewer_name: str,
    reason: str | None = None,
) -> PendingChange:
    """Discard a pending change and mark it rejected."""
    change = _reviewable_change(loan, change_id, reviewer_id)
    change.status = ChangeStatus.REJECTED
    change.reviewed_by = reviewer_id
    change.reviewed_by_name = reviewer_name
    change.reviewed_at = _now()
    change.rejection_reason = reason or None
    return change


# --------------------------------------------------------------------------
# Loan acceptance and collaborators
# --------------------------------------------------------------------------


def _ensure_pending_acceptance(loan: Loan, actor_id: str) -> None:
    if not loan.is_counterparty(actor_id):
        raise AuthorizationError("Only the invited counterparty can respond to this loan")
    if loan.acceptance_status != AcceptanceStatus.PENDING:
        raise LoanNotPendingError(f"Loan {loan.loan_id} is not pending (status: {loan.acceptance_status.value})")


def accept_loan(loan: Loan, actor_id: str) -> Collaborator:
    """Counterparty accepts a proposed loan and joins it as a collaborator.

    Lent, non-collaborative loans give the borrower read-only access;
    otherwise the counterparty may co-manage the loan.
    """
    _ensure_pending_acceptance(loan, actor_id)
    loan.acceptance_status = AcceptanceStatus.ACCEPTED

    if loan.direction == LoanDirection.LENT and not loan.requires_collaboration:
        role = CollaboratorRole.VIEWER
    else:
        role = CollaboratorRole.COLLABORATOR

    now = _now()
    collaborator = loan.collaborator(actor_id)
    if collaborator is None:
        collaborator = Collaborator(
            user_id=actor_id,
            role=role,
            status=InvitationStatus.ACCEPTED,
            invited_by=loan.owner_id,
            invited_at=loan.created_at or now,
            responded_at=now,
        )
        loan.collaborators.append(collaborator)
    else:
        collaborator.role = role
        collaborator.status = InvitationStatus.ACCEPTED
        collaborator.responded_at = now
    return collaborator


def reject_loan(loan: Loan, actor_id: str) -> None:
    """Counterparty rejects a proposed loan; the loan is cancelled."""
    _ensure_pending_acceptance(loan, actor_id)
    loan.acceptance_status = AcceptanceStatus.REJECTED
    loan.status = LoanStatus.CANCELLED


def invite_collaborator(loan: Loan, actor_id: str, user_id: str, role: CollaboratorRole) -> Collaborator:
    """Owner invites another user to view or co-manage the loan."""
    if not loan.is_owner(actor_id):
        raise AuthorizationError("Only the loan owner can invite collaborators")
    if loan.is_owner(user_id):
        raise ValidationError("The owner cannot be invited to their own loan")
    if loan.collaborator(user_id) is not None:
        raise StateConflict(f"User {user_id} is already a collaborator")
    collaborator = Collaborator(
        user_id=user_id,
        role=role,
        status=InvitationStatus.PENDING,
        invited_by=actor_id,
        invited_at=_now(),
    )
    loan.collaborators.append(collaborator)
    return collaborator


def respond_to_invitation(loan: Loan, user_id: str, accept: bool) -> Collaborator:
    """Invitee accepts or declines a pending invitation."""
    collaborator = loan.collaborator(user_id)
    if collaborator is None:
        raise EntityNotFoundError("No invitation found for this user")
    if collaborator.status != InvitationStatus.PENDING:
        raise StateConflict(f"Invitation already {collaborator.status.value}")
    collaborator.status = InvitationStatus.ACCEPTED if accept else InvitationStatus.DECLINED
    collaborator.responded_at = _now()
    return collaborator
