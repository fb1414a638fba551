"""In-memory stores for tests, local development and seeding."""

import copy
import threading
from dataclasses import dataclass, field

from loan_tracker.exceptions import StoreError
from loan_tracker.models.audit import AuditEntry
from loan_tracker.models.enums import LoanDirection, LoanStatus
from loan_tracker.store.base import LoanRecord


@dataclass
class InMemoryLoanStore:
    """Dict-backed loan store.

    The lock stands in for the database's row-level atomicity so that
    ``compare_and_swap`` behaves like a conditional UPDATE. Records are
    copied on the way in and out; callers never share state with the store.
    """

    _records: dict[str, LoanRecord] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def insert(self, record: LoanRecord) -> None:
        with self._lock:
            if record.loan_id in self._records:
                raise StoreError(f"Loan {record.loan_id} already exists")
            self._records[record.loan_id] = copy.deepcopy(record)

    def get(self, loan_id: str) -> LoanRecord | None:
        with self._lock:
            record = self._records.get(loan_id)
            return copy.deepcopy(record) if record else None

    def compare_and_swap(self, record: LoanRecord, expected_version: int) -> bool:
        with self._lock:
            current = self._records.get(record.loan_id)
            if current is None or current.version != expected_version:
                return False
            self._records[record.loan_id] = copy.deepcopy(record)
            return True

    def delete(self, loan_id: str, expected_version: int) -> bool:
        with self._lock:
            current = self._records.get(loan_id)
            if current is None or current.version != expected_version:
                return False
            del self._records[loan_id]
            return True

    def find_for_user(
        self,
        user_id: str,
        status: LoanStatus | None = None,
        direction: LoanDirection | None = None,
    ) -> list[LoanRecord]:
        with self._lock:
            matches = [
                copy.deepcopy(r)
                for r in self._records.values()
                if r.involves(user_id)
                and (status is None or r.status == status)
                and (direction is None or r.direction == direction)
            ]
        return sorted(matches, key=lambda r: r.created_at.timestamp() if r.created_at else 0.0, reverse=True)

    def __len__(self) -> int:
        return len(self._records)


@dataclass
class InMemoryAuditStore:
    """Per-loan lists of audit entries."""

    _entries: dict[str, list[AuditEntry]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def append(self, entry: AuditEntry) -> None:
        with self._lock:
            chain = self._entries.setdefault(entry.loan_id, [])
            if len(chain) + 1 != entry.sequence:
                raise StoreError(f"Audit sequence {entry.sequence} already taken for loan {entry.loan_id}")
            chain.append(entry)

    def last(self, loan_id: str) -> AuditEntry | None:
        with self._lock:
            chain = self._entries.get(loan_id)
            return chain[-1] if chain else None

    def entries(self, loan_id: str) -> list[AuditEntry]:
        with self._lock:
            return list(self._entries.get(loan_id, []))
