"""Shared-loan lifecycle scenario.

Drives the API the way two real users would: the owner proposes a loan,
the counterparty accepts, both record payments and additions, and queued
changes on collaborative loans are approved or rejected by the owner.
Used to seed databases and as an end-to-end smoke test.
"""

from __future__ import annotations

import logging
from collections import Counter
from decimal import Decimal
from typing import Any

from loan_tracker.api import LoanApi
from loan_tracker.generators.loan import LoanRequestGenerator, SyntheticUser, UserGenerator
from loan_tracker.identity import StaticIdentityVerifier, StaticUserDirectory

logger = logging.getLogger(__name__)


class SharedLoanScenario:
    """Generate loans between synthetic users and walk them through their lifecycle.

    This scenario creates:
    - A pool of users registered with the identity verifier and directory
    - Loans between random pairs, accepted (or occasionally rejected) by the counterparty
    - Payments and additions from both sides; counterparty changes on
      collaborative loans are queued and then approved or rejected
    - Comments on a share of loans
    """

    def __init__(
        self,
        api: LoanApi,
        identity: StaticIdentityVerifier,
        users: StaticUserDirectory,
        num_users: int = 10,
        num_loans: int = 20,
        activity_per_loan: int = 4,
        rejection_rate: float = 0.1,
        seed: int | None = None,
    ) -> None:
        """Initialize shared loan scenario.

        Parameters
        ----------
        api : LoanApi
            Boundary to drive.
        identity : StaticIdentityVerifier
            Verifier the scenario registers user tokens with.
        users : StaticUserDirectory
            Directory the scenario registers display names with.
        num_users : int
            Number of users to generate (at least 2).
        num_loans : int
            Number of loans to create.
        activity_per_loan : int
            Payments/additions attempted per loan.
        rejection_rate : float
            Share of loan proposals and queued changes that get rejected.
        seed : int | None
            Random seed for reproducibility.
        """
        self.api = api
        self.identity = identity
        self.users = users
        self.num_users = max(2, num_users)
        self.num_loans = num_loans
        self.activity_per_loan = activity_per_loan
        self.rejection_rate = rejection_rate
        self.seed = seed

        self.user_generator = UserGenerator(seed=seed)
        self.request_generator = LoanRequestGenerator(seed=seed)
        self.rng = self.request_generator.rng
        self.stats: Counter[str] = Counter()
        self.loan_ids: list[str] = []

    def _register_users(self) -> list[SyntheticUser]:
        pool = list(self.user_generator.generate_batch(self.num_users))
        for user in pool:
            self.identity.register(user.token, user.user_id)
            self.users.register(user.user_id, user.display_name)
        return pool

    def _check(self, response: Any, label: str) -> dict | None:
        """Count an outcome; conflicts and validation errors are expected noise."""
        if response.ok:
            self.stats[label] += 1
            return response.body["data"]
        self.stats[f"{label}_{response.body['error']['code']}"] += 1
        return None

    def run(self) -> dict[str, Any]:
        """Run the scenario.

        Returns
        -------
        dict[str, Any]
            Outcome counters and the created loan ids.
        """
        logger.info("Running shared loan scenario: users=%d, loans=%d", self.num_users, self.num_loans)
        pool = self._register_users()

        for _ in range(self.num_loans):
            owner, counterparty = self.rng.sample(pool, 2)
            self._run_loan(owner, counterparty)

        logger.info("Scenario complete: %s", dict(self.stats))
        return {"loan_ids": list(self.loan_ids), "stats": dict(self.stats)}

    def _run_loan(self, owner: SyntheticUser, counterparty: SyntheticUser) -> None:
        body = self.request_generator.loan_request(counterparty=counterparty)
        created = self._check(self.api.create_loan(owner.token, body), "loan_created")
        if created is None:
            return
        loan_id = created["loan"]["loan_id"]
        self.loan_ids.append(loan_id)

        if self.rng.random() < self.rejection_rate:
            self._check(self.api.reject_loan(counterparty.token, loan_id), "loan_rejected")
            return
        self._check(self.api.accept_loan(counterparty.token, loan_id), "loan_accepted")

        for _ in range(self.activity_per_loan):
            actor = self.rng.choice([owner, counterparty])
            loan = self.api.get_loan(actor.token, loan_id).body["data"]["loan"]
            remaining = Decimal(loan["remaining_amount"])
            if remaining > 0 and self.rng.random() < 0.7:
                response = self.api.add_payment(
                    actor.token, loan_id, self.request_generator.payment_request(remaining)
                )
                data = self._check(response, "payment")
            else:
                response = self.api.add_addition(actor.token, loan_id, self.request_generator.addition_request())
                data = self._check(response, "addition")

            if data and "pending_change" in data:
                self._review(owner, loan_id, data["pending_change"]["change_id"])

        if self.rng.random() < 0.5:
            commenter = self.rng.choice([owner, counterparty])
            self._check(
                self.api.add_comment(commenter.token, loan_id, self.request_generator.comment_request()),
                "comment",
            )

    def _review(self, owner: SyntheticUser, loan_id: str, change_id: str) -> None:
        if self.rng.random() < self.rejection_rate:
            self._check(
                self.api.reject_change(owner.token, loan_id, change_id, {"reason": "Does not match my records"}),
                "change_rejected",
            )
        else:
            self._check(self.api.approve_change(owner.token, loan_id, change_id), "change_approved")
