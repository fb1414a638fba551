"""Loan and audit persistence."""

from loan_tracker.store.base import LoanRecord, LoanStore
from loan_tracker.store.memory import InMemoryAuditStore, InMemoryLoanStore
from loan_tracker.store.repository import LoanRepository

__all__ = [
    "InMemoryAuditStore",
    "InMemoryLoanStore",
    "LoanRecord",
    "LoanRepository",
    "LoanStore",
]
