"""Scripted end-to-end scenarios."""

from loan_tracker.scenarios.shared_loan import SharedLoanScenario

__all__ = ["SharedLoanScenario"]
