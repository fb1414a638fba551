"""Synthetic request generators."""

from loan_tracker.generators.loan import LoanRequestGenerator, UserGenerator

__all__ = ["LoanRequestGenerator", "UserGenerator"]
