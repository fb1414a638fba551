"""Loan service: orchestrates repository, approval workflow, ledger and side effects.

Every mutation follows the same cycle:

1. load and decrypt the loan (optionally checking the caller's version),
2. authorize and decide whether the change applies now or is queued,
3. apply it to the in-memory snapshot,
4. seal and write it back conditioned on the version observed in step 1,
5. record an audit entry and send notifications (both best effort).

A lost race in step 4 surfaces as :class:`ConcurrencyConflict`; the caller
is expected to reload and retry the whole cycle.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from loan_tracker import approval, ledger
from loan_tracker.audit import AuditTrail
from loan_tracker.exceptions import AuthorizationError, ConcurrencyConflict, ValidationError
from loan_tracker.identity import UserDirectory
from loan_tracker.models.audit import AuditEntry
from loan_tracker.models.enums import (
    AcceptanceStatus,
    AuditAction,
    ChangeType,
    CollaboratorRole,
    InvitationStatus,
    LoanDirection,
    LoanStatus,
    NotificationType,
)
from loan_tracker.models.loan import Collaborator, Comment, CounterpartyContact, Loan, PendingChange, SensitiveFields
from loan_tracker.money import to_positive_money
from loan_tracker.notifications import NotificationDispatcher
from loan_tracker.store.repository import LoanRepository

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")
MAX_COUNTERPARTY_NAME = 100
MAX_PHONE_LENGTH = 20
MAX_TAG_LENGTH = 50

AUDIT_ACTIONS = {
    ChangeType.PAYMENT: AuditAction.PAYMENT_ADDED,
    ChangeType.PAYMENT_EDIT: AuditAction.PAYMENT_EDITED,
    ChangeType.PAYMENT_DELETION: AuditAction.PAYMENT_DELETED,
    ChangeType.LOAN_ADDITION: AuditAction.ADDITION_ADDED,
    ChangeType.ADDITION_EDIT: AuditAction.ADDITION_EDITED,
    ChangeType.ADDITION_DELETION: AuditAction.ADDITION_DELETED,
}

CHANGE_LABELS = {
    ChangeType.PAYMENT: "a payment",
    ChangeType.PAYMENT_EDIT: "a payment edit",
    ChangeType.PAYMENT_DELETION: "a payment deletion",
    ChangeType.LOAN_ADDITION: "a loan addition",
    ChangeType.ADDITION_EDIT: "an addition edit",
    ChangeType.ADDITION_DELETION: "an addition deletion",
}


@dataclass
class MutationResult:
    """Outcome of a mutation request.

    ``applied`` is ``False`` when the change was queued for approval; then
    ``pending_change`` is set and the balances are untouched.
    """

    loan: Loan
    applied: bool
    record: Any = None
    pending_change: PendingChange | None = None


def _flag(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{field_name} must be true or false")
    return value


def _record_id(record: Any) -> str | None:
    for attr in ("payment_id", "addition_id", "comment_id", "change_id"):
        value = getattr(record, attr, None)
        if value:
            return value
    return None


class LoanService:
    """Entry point for every loan operation."""

    def __init__(
        self,
        repository: LoanRepository,
        audit: AuditTrail,
        notifier: NotificationDispatcher,
        users: UserDirectory,
    ) -> None:
        self.repository = repository
        self.audit = audit
        self.notifier = notifier
        self.users = users

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _load(self, loan_id: str, expected_version: int | None = None) -> Loan:
        loan = self.repository.load(loan_id)
        if expected_version is not None and loan.version != expected_version:
            raise ConcurrencyConflict(
                f"Loan {loan_id} is at version {loan.version}, not {expected_version}; reload and retry"
            )
        return loan

    def _commit(self, loan: Loan, actor_id: str, observed_version: int) -> Loan:
        loan.last_modified_by = actor_id
        return self.repository.save(loan, observed_version)

    def _audit(self, loan: Loan, action: AuditAction, actor_id: str, **details: Any) -> None:
        self.audit.record(
            loan.loan_id,
            action,
            actor_id,
            self.users.display_name(actor_id),
            details={k: v for k, v in details.items() if v is not None},
        )

    def _parties(self, loan: Loan) -> set[str]:
        parties = {loan.owner_id}
        if loan.counterparty_user_id:
            parties.add(loan.counterparty_user_id)
        parties.update(c.user_id for c in loan.collaborators if c.status == InvitationStatus.ACCEPTED)
        return parties

    def _notify_others(
        self,
        loan: Loan,
        actor_id: str | None,
        notification_type: NotificationType,
        title: str,
        message: str,
        recipients: set[str] | None = None,
    ) -> None:
        for user_id in sorted((recipients if recipients is not None else self._parties(loan)) - {actor_id}):
            self.notifier.notify(user_id, notification_type, title, message, loan_id=loan.loan_id)

    # ------------------------------------------------------------------
    # Loans
    # ------------------------------------------------------------------

    def create_loan(
        self,
        actor_id: str,
        amount: Any,
        currency: str,
        direction: str | LoanDirection,
        counterparty: dict,
        description: str = "",
        category: str | None = None,
        tags: list[str] | None = None,
        due_date: date | None = None,
        requires_collaboration: bool = False,
    ) -> Loan:
        """Create a loan owned by ``actor_id``.

        When the counterparty is a registered user (``counterparty["user_id"]``)
        the loan waits for their acceptance before it can be mutated.
        """
        principal = to_positive_money(amount)
        currency_code = (currency or "").strip().upper()
        if not CURRENCY_PATTERN.match(currency_code):
            raise ValidationError("Currency must be a 3-letter code")
        try:
            loan_direction = LoanDirection(direction)
        except ValueError as exc:
            raise ValidationError("Direction must be lent or borrowed") from exc

        contact, counterparty_user_id = self._validate_counterparty(counterparty, actor_id)

        now = datetime.now(timezone.utc)
        loan = Loan(
            loan_id=uuid.uuid4().hex,
            owner_id=actor_id,
            currency=currency_code,
            direction=loan_direction,
            sensitive=SensitiveFields.new(
                principal,
                contact,
                description=(description or "").strip(),
                category=category or None,
                tags=self._validate_tags(tags),
            ),
            counterparty_user_id=counterparty_user_id,
            acceptance_status=AcceptanceStatus.PENDING if counterparty_user_id else AcceptanceStatus.ACCEPTED,
            requires_collaboration=_flag(requires_collaboration, "requires_collaboration"),
            due_date=due_date,
            created_at=now,
            updated_at=now,
            last_modified_by=actor_id,
        )
        self.repository.create(loan)
        logger.info("Loan created", extra={"loan_id": loan.loan_id, "actor_id": actor_id})

        self._audit(loan, AuditAction.LOAN_CREATED, actor_id, direction=loan.direction.value, currency=loan.currency)
        if counterparty_user_id:
            self.notifier.notify(
                counterparty_user_id,
                NotificationType.LOAN_REQUEST,
                "New loan request",
                f"{self.users.display_name(actor_id)} added you to a loan and is waiting for your approval",
                loan_id=loan.loan_id,
                priority="high",
            )
        return loan

    def _validate_counterparty(self, counterparty: Any, actor_id: str) -> tuple[CounterpartyContact, str | None]:
        if not isinstance(counterparty, dict):
            raise ValidationError("Counterparty name is required")
        name = (counterparty.get("name") or "").strip()
        if not name:
            raise ValidationError("Counterparty name is required")
        if len(name) > MAX_COUNTERPARTY_NAME:
            raise ValidationError(f"Counterparty name cannot exceed {MAX_COUNTERPARTY_NAME} characters")
        email = (counterparty.get("email") or "").strip().lower() or None
        if email and not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format")
        phone = (counterparty.get("phone") or "").strip() or None
        if phone and len(phone) > MAX_PHONE_LENGTH:
            raise ValidationError(f"Phone cannot exceed {MAX_PHONE_LENGTH} characters")
        user_id = counterparty.get("user_id") or None
        if user_id == actor_id:
            raise ValidationError("You cannot be your own counterparty")
        return CounterpartyContact(name=name, email=email, phone=phone), user_id

    def _validate_tags(self, tags: Any) -> list[str]:
        if tags is None:
            return []
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise ValidationError("Tags must be a list of strings")
        cleaned = [t.strip() for t in tags if t.strip()]
        if any(len(t) > MAX_TAG_LENGTH for t in cleaned):
            raise ValidationError(f"Tags cannot exceed {MAX_TAG_LENGTH} characters")
        return cleaned

    def get_loan(self, loan_id: str, actor_id: str) -> Loan:
        """Decrypted loan, if the actor may view it."""
        loan = self.repository.load(loan_id)
        approval.ensure_can_view(loan, actor_id)
        return loan

    def list_loans(
        self,
        actor_id: str,
        status: str | LoanStatus | None = None,
        direction: str | LoanDirection | None = None,
    ) -> list[Loan]:
        """Decrypted loans the actor owns, is counterparty on, or collaborates on."""
        try:
            status_filter = LoanStatus(status) if status else None
            direction_filter = LoanDirection(direction) if direction else None
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        loans = self.repository.find_for_user(actor_id, status=status_filter, direction=direction_filter)
        return [loan for loan in loans if loan.can_view(actor_id)]

    def update_loan(
        self,
        loan_id: str,
        actor_id: str,
        changes: dict,
        expected_version: int | None = None,
    ) -> Loan:
        """Owner edits descriptive fields, cancels or reopens a loan.

        Supported keys: ``description``, ``category``, ``tags``,
        ``due_date``, ``counterparty`` (contact details), ``status``
        (``cancelled`` or ``active``) and ``requires_collaboration``.
        """
        loan = self._load(loan_id, expected_version)
        if not loan.is_owner(actor_id):
            raise AuthorizationError("Only the loan owner can update loan details")
        observed = loan.version
        bundle = loan.sensitive
        updated = []

        if "description" in changes:
            bundle.description = (changes["description"] or "").strip()
            updated.append("description")
        if "category" in changes:
            bundle.category = changes["category"] or None
            updated.append("category")
        if "tags" in changes:
            bundle.tags = self._validate_tags(changes["tags"])
            updated.append("tags")
        if "due_date" in changes:
            loan.due_date = changes["due_date"]
            updated.append("due_date")
        if "counterparty" in changes:
            contact = changes["counterparty"] or {}
            if not isinstance(contact, dict):
                raise ValidationError("Counterparty must be an object")
            merged = {
                "name": bundle.counterparty.name,
                "email": bundle.counterparty.email,
                "phone": bundle.counterparty.phone,
                **contact,
            }
            merged.pop("user_id", None)
            bundle.counterparty, _ = self._validate_counterparty(merged, actor_id)
            updated.append("counterparty")
        if "requires_collaboration" in changes:
            loan.requires_collaboration = _flag(changes["requires_collaboration"], "requires_collaboration")
            updated.append("requires_collaboration")
        if "status" in changes:
            self._change_status(loan, changes["status"])
            updated.append("status")

        if not updated:
            raise ValidationError("No supported fields to update")

        self._commit(loan, actor_id, observed)
        self._audit(loan, AuditAction.LOAN_UPDATED, actor_id, fields=updated, status=loan.status.value)
        return loan

    def _change_status(self, loan: Loan, status: Any) -> None:
        try:
            target = LoanStatus(status)
        except ValueError as exc:
            raise ValidationError("Status must be active or cancelled") from exc
        if target == LoanStatus.CANCELLED:
            loan.status = LoanStatus.CANCELLED
        elif target == LoanStatus.ACTIVE:
            loan.status = LoanStatus.ACTIVE
            ledger.settle_status(loan)
        else:
            raise ValidationError("Paid status is derived from the remaining balance")

    def delete_loan(self, loan_id: str, actor_id: str, expected_version: int | None = None) -> None:
        """Owner deletes a loan; guarded by the observed version."""
        loan = self._load(loan_id, expected_version)
        if not loan.is_owner(actor_id):
            raise AuthorizationError("Only the loan owner can delete this loan")
        self.repository.delete(loan_id, loan.version)
        logger.info("Loan deleted", extra={"loan_id": loan_id, "actor_id": actor_id})
        self._audit(loan, AuditAction.LOAN_DELETED, actor_id)

    # ------------------------------------------------------------------
    # Payments and additions
    # ------------------------------------------------------------------

    def _mutate(
        self,
        loan_id: str,
        actor_id: str,
        change_type: ChangeType,
        data: dict,
        expected_version: int | None,
    ) -> MutationResult:
        loan = self._load(loan_id, expected_version)
        approval.ensure_can_edit(loan, actor_id)
        approval.ensure_mutable(loan)
        if change_type in (ChangeType.PAYMENT_EDIT, ChangeType.PAYMENT_DELETION):
            approval.ensure_payment_editor(loan, data.get("payment_id"), actor_id)

        observed = loan.version
        actor_name = self.users.display_name(actor_id)

        if approval.decide(loan, actor_id) == approval.Decision.QUEUED:
            change = approval.queue_change(loan, change_type, data, actor_id, actor_name)
            self._commit(loan, actor_id, observed)
            self._audit(
                loan,
                AuditAction.CHANGE_REQUESTED,
                actor_id,
                change_id=change.change_id,
                change_type=change_type.value,
            )
            reviewers = {loan.owner_id, loan.counterparty_user_id} - {None}
            self._notify_others(
                loan,
                actor_id,
                NotificationType.APPROVAL_REQUEST,
                "Approval needed",
                f"{actor_name} submitted {CHANGE_LABELS[change_type]} for your approval",
                recipients=reviewers,
            )
            return MutationResult(loan=loan, applied=False, pending_change=change)

        previous_status = loan.status
        record = approval.apply_change(loan, change_type, data, actor_id, actor_name)
        self._commit(loan, actor_id, observed)
        logger.info(
            "Applied %s",
            change_type.value,
            extra={"loan_id": loan.loan_id, "actor_id": actor_id, "version": loan.version},
        )
        self._audit(loan, AUDIT_ACTIONS[change_type], actor_id, record_id=_record_id(record))
        self._after_apply(loan, actor_id, actor_name, change_type, previous_status)
        return MutationResult(loan=loan, applied=True, record=record)

    def _after_apply(
        self,
        loan: Loan,
        actor_id: str,
        actor_name: str,
        change_type: ChangeType,
        previous_status: LoanStatus,
    ) -> None:
        if change_type == ChangeType.PAYMENT:
            self._notify_others(
                loan, actor_id, NotificationType.PAYMENT_ADDED, "Payment recorded", f"{actor_name} recorded a payment"
            )
        if previous_status != LoanStatus.PAID and loan.status == LoanStatus.PAID:
            self._notify_others(
                loan, None, NotificationType.LOAN_SETTLED, "Loan settled", "A loan you share has been fully paid"
            )

    def add_payment(
        self,
        loan_id: str,
        actor_id: str,
        amount: Any,
        paid_on: date | None = None,
        method: str | None = None,
        notes: str | None = None,
        expected_version: int | None = None,
    ) -> MutationResult:
        """Record a payment, or queue it on a collaborative loan."""
        data = {"amount": to_positive_money(amount), "date": paid_on, "method": method, "notes": notes}
        return self._mutate(loan_id, actor_id, ChangeType.PAYMENT, data, expected_version)

    def edit_payment(
        self,
        loan_id: str,
        actor_id: str,
        payment_id: str,
        amount: Any = None,
        paid_on: date | None = None,
        method: str | None = None,
        notes: str | None = None,
        expected_version: int | None = None,
    ) -> MutationResult:
        data = {
            "payment_id": payment_id,
            "amount": to_positive_money(amount) if amount is not None else None,
            "date": paid_on,
            "method": method,
            "notes": notes,
        }
        return self._mutate(loan_id, actor_id, ChangeType.PAYMENT_EDIT, data, expected_version)

    def delete_payment(
        self,
        loan_id: str,
        actor_id: str,
        payment_id: str,
        expected_version: int | None = None,
    ) -> MutationResult:
        return self._mutate(
            loan_id, actor_id, ChangeType.PAYMENT_DELETION, {"payment_id": payment_id}, expected_version
        )

    def add_addition(
        self,
        loan_id: str,
        actor_id: str,
        amount: Any,
        description: str | None = None,
        added_on: date | None = None,
        expected_version: int | None = None,
    ) -> MutationResult:
        """Draw extra principal, or queue it on a collaborative loan."""
        data = {"amount": to_positive_money(amount), "description": description, "date": added_on}
        return self._mutate(loan_id, actor_id, ChangeType.LOAN_ADDITION, data, expected_version)

    def edit_addition(
        self,
        loan_id: str,
        actor_id: str,
        addition_id: str,
        amount: Any = None,
        description: str | None = None,
        expected_version: int | None = None,
    ) -> MutationResult:
        if amount is None and description is None:
            raise ValidationError("Nothing to update: provide amount or description")
        data = {
            "addition_id": addition_id,
            "amount": to_positive_money(amount) if amount is not None else None,
            "description": description,
        }
        return self._mutate(loan_id, actor_id, ChangeType.ADDITION_EDIT, data, expected_version)

    def delete_addition(
        self,
        loan_id: str,
        actor_id: str,
        addition_id: str,
        expected_version: int | None = None,
    ) -> MutationResult:
        return self._mutate(
            loan_id, actor_id, ChangeType.ADDITION_DELETION, {"addition_id": addition_id}, expected_version
        )

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def add_comment(
        self,
        loan_id: str,
        actor_id: str,
        message: Any,
        expected_version: int | None = None,
    ) -> MutationResult:
        """Anyone who can view a loan may comment on it."""
        loan = self._load(loan_id, expected_version)
        approval.ensure_can_view(loan, actor_id)
        observed = loan.version
        actor_name = self.users.display_name(actor_id)
        comment = ledger.add_comment(loan, actor_id, actor_name, message)
        self._commit(loan, actor_id, observed)
        self._audit(loan, AuditAction.COMMENT_ADDED, actor_id, record_id=comment.comment_id)
        self._notify_others(
            loan, actor_id, NotificationType.COMMENT_ADDED, "New comment", f"{actor_name} commented on a loan"
        )
        return MutationResult(loan=loan, applied=True, record=comment)

    def edit_comment(
        self,
        loan_id: str,
        actor_id: str,
        comment_id: str,
        message: Any,
        expected_version: int | None = None,
    ) -> MutationResult:
        loan = self._load(loan_id, expected_version)
        approval.ensure_can_view(loan, actor_id)
        observed = loan.version
        comment = ledger.edit_comment(loan, comment_id, actor_id, message)
        self._commit(loan, actor_id, observed)
        self._audit(loan, AuditAction.COMMENT_EDITED, actor_id, record_id=comment_id)
        return MutationResult(loan=loan, applied=True, record=comment)

    def delete_comment(
        self,
        loan_id: str,
        actor_id: str,
        comment_id: str,
        expected_version: int | None = None,
    ) -> MutationResult:
        loan = self._load(loan_id, expected_version)
        approval.ensure_can_view(loan, actor_id)
        observed = loan.version
        comment: Comment = ledger.delete_comment(loan, comment_id, actor_id)
        self._commit(loan, actor_id, observed)
        self._audit(loan, AuditAction.COMMENT_DELETED, actor_id, record_id=comment.comment_id)
        return MutationResult(loan=loan, applied=True, record=comment)

    # ------------------------------------------------------------------
    # Pending changes
    # ------------------------------------------------------------------

    def approve_change(
        self,
        loan_id: str,
        change_id: str,
        actor_id: str,
        expected_version: int | None = None,
    ) -> MutationResult:
        """Apply a queued change against the current loan and mark it approved."""
        loan = self._load(loan_id, expected_version)
        approval.ensure_mutable(loan)
        observed = loan.version
        previous_status = loan.status
        actor_name = self.users.display_name(actor_id)

        change, record = approval.approve_change(loan, change_id, actor_id, actor_name)
        self._commit(loan, actor_id, observed)
        logger.info(
            "Approved %s",
            change.change_type.value,
            extra={"loan_id": loan.loan_id, "actor_id": actor_id, "change_id": change_id},
        )
        self._audit(
            loan,
            AuditAction.CHANGE_APPROVED,
            actor_id,
            change_id=change_id,
            change_type=change.change_type.value,
            record_id=_record_id(record),
        )
        self.notifier.notify(
            change.requested_by,
            NotificationType.CHANGE_APPROVED,
            "Change approved",
            f"{actor_name} approved your {change.change_type.value.replace('_', ' ')} request",
            loan_id=loan.loan_id,
        )
        if previous_status != LoanStatus.PAID and loan.status == LoanStatus.PAID:
            self._notify_others(
                loan, None, NotificationType.LOAN_SETTLED, "Loan settled", "A loan you share has been fully paid"
            )
        return MutationResult(loan=loan, applied=True, record=record, pending_change=change)

    def reject_change(
        self,
        loan_id: str,
        change_id: str,
        actor_id: str,
        reason: str | None = None,
        expected_version: int | None = None,
    ) -> MutationResult:
        """Discard a queued change."""
        loan = self._load(loan_id, expected_version)
        observed = loan.version
        actor_name = self.users.display_name(actor_id)

        change = approval.reject_change(loan, change_id, actor_id, actor_name, reason)
        self._commit(loan, actor_id, observed)
        self._audit(
            loan,
            AuditAction.CHANGE_REJECTED,
            actor_id,
            change_id=change_id,
            change_type=change.change_type.value,
        )
        self.notifier.notify(
            change.requested_by,
            NotificationType.CHANGE_REJECTED,
            "Change rejected",
            f"{actor_name} rejected your {change.change_type.value.replace('_', ' ')} request",
            loan_id=loan.loan_id,
        )
        return MutationResult(loan=loan, applied=False, pending_change=change)

    # ------------------------------------------------------------------
    # Acceptance and collaborators
    # ------------------------------------------------------------------

    def accept_loan(self, loan_id: str, actor_id: str, expected_version: int | None = None) -> Loan:
        """Invited counterparty accepts the loan."""
        loan = self._load(loan_id, expected_version)
        observed = loan.version
        approval.accept_loan(loan, actor_id)
        self._commit(loan, actor_id, observed)
        self._audit(loan, AuditAction.LOAN_ACCEPTED, actor_id)
        self.notifier.notify(
            loan.owner_id,
            NotificationType.LOAN_APPROVED,
            "Loan accepted",
            f"{self.users.display_name(actor_id)} accepted your loan",
            loan_id=loan.loan_id,
        )
        return loan

    def reject_loan(self, loan_id: str, actor_id: str, expected_version: int | None = None) -> Loan:
        """Invited counterparty rejects the loan, cancelling it."""
        loan = self._load(loan_id, expected_version)
        observed = loan.version
        approval.reject_loan(loan, actor_id)
        self._commit(loan, actor_id, observed)
        self._audit(loan, AuditAction.LOAN_REJECTED, actor_id)
        self.notifier.notify(
            loan.owner_id,
            NotificationType.LOAN_REJECTED,
            "Loan rejected",
            f"{self.users.display_name(actor_id)} rejected your loan",
            loan_id=loan.loan_id,
        )
        return loan

    def invite_collaborator(
        self,
        loan_id: str,
        actor_id: str,
        user_id: str,
        role: str | CollaboratorRole = CollaboratorRole.VIEWER,
        expected_version: int | None = None,
    ) -> Collaborator:
        if not user_id:
            raise ValidationError("user_id is required")
        try:
            collaborator_role = CollaboratorRole(role)
        except ValueError as exc:
            raise ValidationError("Role must be owner, collaborator or viewer") from exc
        loan = self._load(loan_id, expected_version)
        observed = loan.version
        collaborator = approval.invite_collaborator(loan, actor_id, user_id, collaborator_role)
        self._commit(loan, actor_id, observed)
        self._audit(
            loan, AuditAction.COLLABORATOR_INVITED, actor_id, user_id=user_id, role=collaborator_role.value
        )
        self.notifier.notify(
            user_id,
            NotificationType.LOAN_INVITE,
            "Loan invitation",
            f"{self.users.display_name(actor_id)} invited you to a loan",
            loan_id=loan.loan_id,
        )
        return collaborator

    def respond_to_invitation(
        self,
        loan_id: str,
        actor_id: str,
        accept: bool,
        expected_version: int | None = None,
    ) -> Collaborator:
        loan = self._load(loan_id, expected_version)
        observed = loan.version
        collaborator = approval.respond_to_invitation(loan, actor_id, accept)
        self._commit(loan, actor_id, observed)
        self._audit(loan, AuditAction.INVITATION_RESPONDED, actor_id, status=collaborator.status.value)
        return collaborator

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def audit_trail(self, loan_id: str, actor_id: str) -> tuple[list[AuditEntry], dict[str, Any]]:
        """Entries for a loan and the result of re-verifying their chain."""
        self.get_loan(loan_id, actor_id)
        entries = self.audit.entries(loan_id)
        return entries, self.audit.verify(loan_id)
