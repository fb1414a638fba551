"""Loan aggregate and its embedded sub-records.

The aggregate is split in two: :class:`Loan` carries the queryable,
non-sensitive attributes and a :class:`SensitiveFields` bundle that is
only ever materialized in memory and is sealed before persistence.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from loan_tracker.models.enums import (
    AcceptanceStatus,
    ChangeStatus,
    ChangeType,
    CollaboratorRole,
    InvitationStatus,
    LoanDirection,
    LoanStatus,
)
from loan_tracker.money import ZERO, to_money
from loan_tracker.serialization import parse_date, parse_datetime, serialize_value


def _pick(data: dict, *keys: str, default: Any = None) -> Any:
    """Return the first present key, so legacy camelCase bundles still load."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _money(value: Any) -> Decimal:
    return ZERO if value is None else to_money(value, limit=None)


@dataclass
class CounterpartyContact:
    """Counterparty contact details (sensitive)."""

    name: str
    email: str | None = None
    phone: str | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> "CounterpartyContact":
        data = data or {}
        return cls(
            name=_pick(data, "name", default=""),
            email=_pick(data, "email"),
            phone=_pick(data, "phone"),
        )


@dataclass
class Payment:
    """Payment against the outstanding balance."""

    payment_id: str
    amount: Decimal
    paid_on: date
    paid_by: str
    method: str | None = None
    notes: str | None = None
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Payment":
        return cls(
            payment_id=str(_pick(data, "payment_id", "_id", "id")),
            amount=_money(_pick(data, "amount")),
            paid_on=parse_date(_pick(data, "paid_on", "date")),
            paid_by=_pick(data, "paid_by", "paidBy", "userId", default=""),
            method=_pick(data, "method"),
            notes=_pick(data, "notes"),
            version=int(_pick(data, "version", default=1)),
            created_at=parse_datetime(_pick(data, "created_at", "createdAt")),
            updated_at=parse_datetime(_pick(data, "updated_at", "updatedAt")),
        )


@dataclass
class Addition:
    """Extra principal drawn after loan creation."""

    addition_id: str
    amount: Decimal
    added_on: date
    added_by: str
    added_by_name: str
    description: str | None = None
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Addition":
        return cls(
            addition_id=str(_pick(data, "addition_id", "_id", "id")),
            amount=_money(_pick(data, "amount")),
            added_on=parse_date(_pick(data, "added_on", "date")),
            added_by=_pick(data, "added_by", "addedBy", default=""),
            added_by_name=_pick(data, "added_by_name", "addedByName", default="User"),
            description=_pick(data, "description"),
            version=int(_pick(data, "version", default=1)),
            created_at=parse_datetime(_pick(data, "created_at", "createdAt")),
            updated_at=parse_datetime(_pick(data, "updated_at", "updatedAt")),
        )


@dataclass
class Comment:
    """Free-text note on a loan."""

    comment_id: str
    user_id: str
    user_name: str
    message: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Comment":
        return cls(
            comment_id=str(_pick(data, "comment_id", "_id", "id")),
            user_id=_pick(data, "user_id", "userId", default=""),
            user_name=_pick(data, "user_name", "userName", default="User"),
            message=_pick(data, "message", default=""),
            created_at=parse_datetime(_pick(data, "created_at", "createdAt")),
            updated_at=parse_datetime(_pick(data, "updated_at", "updatedAt")),
        )


@dataclass
class PendingChange:
    """Mutation queued until the counterparty approves or rejects it."""

    change_id: str
    change_type: ChangeType
    data: dict
    requested_by: str
    requested_by_name: str
    status: ChangeStatus = ChangeStatus.PENDING
    requested_at: datetime | None = None
    reviewed_by: str | None = None
    reviewed_by_name: str | None = None
    reviewed_at: datetime | None = None
    rejection_reason: str | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status != ChangeStatus.PENDING

    @classmethod
    def from_dict(cls, data: dict) -> "PendingChange":
        return cls(
            change_id=str(_pick(data, "change_id", "_id", "id")),
            change_type=ChangeType(_pick(data, "change_type", "type")),
            data=dict(_pick(data, "data", default={})),
            requested_by=_pick(data, "requested_by", "requestedBy", default=""),
            requested_by_name=_pick(data, "requested_by_name", "requestedByName", default="User"),
            status=ChangeStatus(_pick(data, "status", default="pending")),
            requested_at=parse_datetime(_pick(data, "requested_at", "requestedAt")),
            reviewed_by=_pick(data, "reviewed_by", "reviewedBy"),
            reviewed_by_name=_pick(data, "reviewed_by_name", "reviewedByName"),
            reviewed_at=parse_datetime(_pick(data, "reviewed_at", "reviewedAt")),
            rejection_reason=_pick(data, "rejection_reason", "rejectionReason"),
        )


@dataclass
class Collaborator:
    """User invited to view or co-manage a loan."""

    user_id: str
    role: CollaboratorRole
    status: InvitationStatus
    invited_by: str
    invited_at: datetime | None = None
    responded_at: datetime | None = None

    @property
    def can_mutate(self) -> bool:
        return self.status == InvitationStatus.ACCEPTED and self.role in (
            CollaboratorRole.OWNER,
            CollaboratorRole.COLLABORATOR,
        )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "role": self.role.value,
            "status": self.status.value,
            "invited_by": self.invited_by,
            "invited_at": serialize_value(self.invited_at),
            "responded_at": serialize_value(self.responded_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Collaborator":
        return cls(
            user_id=_pick(data, "user_id", "userId"),
            role=CollaboratorRole(_pick(data, "role", default="viewer")),
            status=InvitationStatus(_pick(data, "status", default="pending")),
            invited_by=_pick(data, "invited_by", "invitedBy", default=""),
            invited_at=parse_datetime(_pick(data, "invited_at", "invitedAt")),
            responded_at=parse_datetime(_pick(data, "responded_at", "respondedAt")),
        )


@dataclass
class SensitiveFields:
    """Everything that is encrypted at rest.

    Constructed deliberately before sealing; never inferred from whichever
    attributes happen to be set on a loan.
    """

    counterparty: CounterpartyContact
    original_amount: Decimal
    amount: Decimal
    remaining_amount: Decimal
    base_original_amount: Decimal | None = None
    description: str = ""
    category: str | None = None
    tags: list[str] = field(default_factory=list)
    payments: list[Payment] = field(default_factory=list)
    additions: list[Addition] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    pending_changes: list[PendingChange] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.base_original_amount is None:
            self.base_original_amount = self.original_amount

    @classmethod
    def new(cls, principal: Decimal, counterparty: CounterpartyContact, **kwargs: Any) -> "SensitiveFields":
        """Bundle for a freshly created loan: every running total starts at the principal."""
        return cls(
            counterparty=counterparty,
            original_amount=principal,
            amount=principal,
            remaining_amount=principal,
            **kwargs,
        )

    @classmethod
    def empty(cls) -> "SensitiveFields":
        """Placeholder for records whose bundle was never written."""
        return cls.new(ZERO, CounterpartyContact(name=""))

    def to_dict(self) -> dict:
        return {
            "counterparty": serialize_value(self.counterparty),
            "original_amount": serialize_value(self.original_amount),
            "base_original_amount": serialize_value(self.base_original_amount),
            "amount": serialize_value(self.amount),
            "remaining_amount": serialize_value(self.remaining_amount),
            "description": self.description,
            "category": self.category,
            "tags": list(self.tags),
            "payments": serialize_value(self.payments),
            "additions": serialize_value(self.additions),
            "comments": serialize_value(self.comments),
            "pending_changes": serialize_value(self.pending_changes),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SensitiveFields":
        """Load a bundle, accepting both current and legacy camelCase keys.

        Legacy bundles sometimes lack ``originalAmount``; the current
        ``amount`` minus the additions is used then.
        """
        additions = [Addition.from_dict(a) for a in _pick(data, "additions", "loanAdditions", default=[])]
        amount = _money(_pick(data, "amount"))
        original = _pick(data, "original_amount", "originalAmount")
        if original is None:
            original_amount = amount - sum((a.amount for a in additions), ZERO)
        else:
            original_amount = _money(original)
        base = _pick(data, "base_original_amount", "baseOriginalAmount")
        return cls(
            counterparty=CounterpartyContact.from_dict(_pick(data, "counterparty")),
            original_amount=original_amount,
            base_original_amount=_money(base) if base is not None else None,
            amount=amount,
            remaining_amount=_money(_pick(data, "remaining_amount", "remainingAmount", default=amount)),
            description=_pick(data, "description", default=""),
            category=_pick(data, "category"),
            tags=list(_pick(data, "tags", default=[])),
            payments=[Payment.from_dict(p) for p in _pick(data, "payments", default=[])],
            additions=additions,
            comments=[Comment.from_dict(c) for c in _pick(data, "comments", default=[])],
            pending_changes=[
                PendingChange.from_dict(c) for c in _pick(data, "pending_changes", "pendingChanges", default=[])
            ],
        )


@dataclass
class Loan:
    """Decrypted loan aggregate (in memory only)."""

    loan_id: str
    owner_id: str
    currency: str
    direction: LoanDirection
    sensitive: SensitiveFields
    status: LoanStatus = LoanStatus.ACTIVE
    counterparty_user_id: str | None = None
    acceptance_status: AcceptanceStatus = AcceptanceStatus.ACCEPTED
    requires_collaboration: bool = False
    due_date: date | None = None
    collaborators: list[Collaborator] = field(default_factory=list)
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_modified_by: str | None = None

    def is_owner(self, user_id: str) -> bool:
        return user_id == self.owner_id

    def is_counterparty(self, user_id: str) -> bool:
        return self.counterparty_user_id is not None and user_id == self.counterparty_user_id

    def collaborator(self, user_id: str) -> Collaborator | None:
        for collaborator in self.collaborators:
            if collaborator.user_id == user_id:
                return collaborator
        return None

    def can_view(self, user_id: str) -> bool:
        """Owner, counterparty and any non-declined collaborator may read."""
        if self.is_owner(user_id) or self.is_counterparty(user_id):
            return True
        collaborator = self.collaborator(user_id)
        return collaborator is not None and collaborator.status != InvitationStatus.DECLINED

    def can_edit(self, user_id: str) -> bool:
        """Owner or accepted collaborator with owner/collaborator role."""
        if self.is_owner(user_id):
            return True
        collaborator = self.collaborator(user_id)
        return collaborator is not None and collaborator.can_mutate

    def find_pending_change(self, change_id: str) -> PendingChange | None:
        for change in self.sensitive.pending_changes:
            if change.change_id == change_id:
                return change
        return None

    def to_dict(self) -> dict:
        """Decrypted view for callers; never includes the sealed bundle."""
        data = {
            "loan_id": self.loan_id,
            "owner_id": self.owner_id,
            "currency": self.currency,
            "direction": self.direction.value,
            "status": self.status.value,
            "counterparty_user_id": self.counterparty_user_id,
            "acceptance_status": self.acceptance_status.value,
            "requires_collaboration": self.requires_collaboration,
            "due_date": serialize_value(self.due_date),
            "collaborators": [c.to_dict() for c in self.collaborators],
            "version": self.version,
            "created_at": serialize_value(self.created_at),
            "updated_at": serialize_value(self.updated_at),
            "last_modified_by": self.last_modified_by,
        }
        data.update(self.sensitive.to_dict())
        return data
