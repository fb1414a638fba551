"""Repository: the only path between decrypted loans and stored records.

``load`` always opens the bundle on the way out and ``create``/``save``
always seal it on the way in. ``save`` takes the version the caller read
and fails with :class:`ConcurrencyConflict` if another writer got there
first.
"""

import logging
from datetime import datetime, timezone

from loan_tracker.codec import Codec
from loan_tracker.exceptions import ConcurrencyConflict, DecryptionError, EntityNotFoundError
from loan_tracker.models.enums import LoanDirection, LoanStatus
from loan_tracker.models.loan import Loan, SensitiveFields
from loan_tracker.store.base import LoanRecord, LoanStore

logger = logging.getLogger(__name__)


class LoanRepository:
    """Seal/open loans around a :class:`LoanStore`."""

    def __init__(self, store: LoanStore, codec: Codec) -> None:
        self.store = store
        self.codec = codec

    def _to_record(self, loan: Loan, version: int) -> LoanRecord:
        return LoanRecord(
            loan_id=loan.loan_id,
            owner_id=loan.owner_id,
            currency=loan.currency,
            direction=loan.direction,
            status=loan.status,
            acceptance_status=loan.acceptance_status,
            encrypted_data=self.codec.seal(loan.sensitive),
            version=version,
            counterparty_user_id=loan.counterparty_user_id,
            requires_collaboration=loan.requires_collaboration,
            due_date=loan.due_date,
            collaborators=list(loan.collaborators),
            created_at=loan.created_at,
            updated_at=loan.updated_at,
            last_modified_by=loan.last_modified_by,
        )

    def _to_loan(self, record: LoanRecord) -> Loan:
        try:
            sensitive = self.codec.open(record.encrypted_data)
        except DecryptionError:
            logger.error(
                "Encrypted bundle for loan %s failed to decrypt",
                record.loan_id,
                extra={"loan_id": record.loan_id, "version": record.version},
            )
            raise
        if sensitive is None:
            if record.encrypted_data:
                # Stored data is never replaced by an empty bundle
                logger.error(
                    "Loan %s has an unreadable legacy bundle",
                    record.loan_id,
                    extra={"loan_id": record.loan_id, "version": record.version},
                )
                raise DecryptionError(f"Loan {record.loan_id} has an unreadable bundle")
            sensitive = SensitiveFields.empty()
        return Loan(
            loan_id=record.loan_id,
            owner_id=record.owner_id,
            currency=record.currency,
            direction=record.direction,
            sensitive=sensitive,
            status=record.status,
            counterparty_user_id=record.counterparty_user_id,
            acceptance_status=record.acceptance_status,
            requires_collaboration=record.requires_collaboration,
            due_date=record.due_date,
            collaborators=list(record.collaborators),
            version=record.version,
            created_at=record.created_at,
            updated_at=record.updated_at,
            last_modified_by=record.last_modified_by,
        )

    def create(self, loan: Loan) -> Loan:
        """Persist a new loan at version 1."""
        loan.version = 1
        loan.created_at = loan.created_at or datetime.now(timezone.utc)
        self.store.insert(self._to_record(loan, version=1))
        logger.debug("Created loan %s", loan.loan_id, extra={"loan_id": loan.loan_id})
        return loan

    def load(self, loan_id: str) -> Loan:
        """Fetch and decrypt a loan.

        Raises
        ------
        EntityNotFoundError
            If no such loan exists.
        DecryptionError
            If the bundle fails authentication.
        """
        record = self.store.get(loan_id)
        if record is None:
            raise EntityNotFoundError(f"Loan {loan_id} not found")
        return self._to_loan(record)

    def save(self, loan: Loan, expected_version: int) -> Loan:
        """Seal and write a loan only if the stored version is still ``expected_version``.

        On success ``loan.version`` becomes ``expected_version + 1``.

        Raises
        ------
        ConcurrencyConflict
            If the conditional write matched no row.
        """
        loan.updated_at = datetime.now(timezone.utc)
        record = self._to_record(loan, version=expected_version + 1)
        if not self.store.compare_and_swap(record, expected_version):
            logger.info(
                "Version conflict saving loan %s at version %d",
                loan.loan_id,
                expected_version,
                extra={"loan_id": loan.loan_id, "version": expected_version},
            )
            raise ConcurrencyConflict(
                f"Loan {loan.loan_id} was modified by someone else; reload and retry"
            )
        loan.version = expected_version + 1
        return loan

    def delete(self, loan_id: str, expected_version: int) -> None:
        """Delete a loan if the stored version is still ``expected_version``."""
        if not self.store.delete(loan_id, expected_version):
            if self.store.get(loan_id) is None:
                raise EntityNotFoundError(f"Loan {loan_id} not found")
            raise ConcurrencyConflict(f"Loan {loan_id} was modified by someone else; reload and retry")

    def find_for_user(
        self,
        user_id: str,
        status: LoanStatus | None = None,
        direction: LoanDirection | None = None,
    ) -> list[Loan]:
        """Decrypted loans visible to a user."""
        return [self._to_loan(r) for r in self.store.find_for_user(user_id, status=status, direction=direction)]
