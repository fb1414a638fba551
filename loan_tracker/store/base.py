"""Persisted loan representation and the store contract."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Protocol

from loan_tracker.models.enums import AcceptanceStatus, LoanDirection, LoanStatus
from loan_tracker.models.loan import Collaborator


@dataclass
class LoanRecord:
    """Row as stored: queryable columns plus the sealed bundle.

    Holds no plaintext sensitive values. ``encrypted_data`` and
    ``version`` are always written together.
    """

    loan_id: str
    owner_id: str
    currency: str
    direction: LoanDirection
    status: LoanStatus
    acceptance_status: AcceptanceStatus
    encrypted_data: str
    version: int
    counterparty_user_id: str | None = None
    requires_collaboration: bool = False
    due_date: date | None = None
    collaborators: list[Collaborator] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_modified_by: str | None = None

    def involves(self, user_id: str) -> bool:
        """Owner, counterparty or listed collaborator."""
        return (
            self.owner_id == user_id
            or self.counterparty_user_id == user_id
            or any(c.user_id == user_id for c in self.collaborators)
        )


class LoanStore(Protocol):
    """Backing store with an atomic compare-and-swap on ``version``."""

    def insert(self, record: LoanRecord) -> None:
        """Store a new record; raise ``StoreError`` if the id exists."""

    def get(self, loan_id: str) -> LoanRecord | None:
        """Fetch a record by id."""

    def compare_and_swap(self, record: LoanRecord, expected_version: int) -> bool:
        """Replace the stored row only if its version equals ``expected_version``.

        Returns ``False`` when no row matched (lost race or deleted).
        """

    def delete(self, loan_id: str, expected_version: int) -> bool:
        """Delete only if the stored version equals ``expected_version``."""

    def find_for_user(
        self,
        user_id: str,
        status: LoanStatus | None = None,
        direction: LoanDirection | None = None,
    ) -> list[LoanRecord]:
        """Records the user owns, is counterparty on, or collaborates on."""
