"""Generators for users and loan request bodies."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Iterator

from loan_tracker.generators.base import BaseGenerator
from loan_tracker.models.enums import LoanDirection
from loan_tracker.money import quantize


@dataclass
class SyntheticUser:
    """A user with a bearer token for the static identity verifier."""

    user_id: str
    display_name: str
    email: str
    token: str


class UserGenerator(BaseGenerator):
    """Generate synthetic users."""

    def generate(self) -> SyntheticUser:
        """Generate a single user."""
        return SyntheticUser(
            user_id=f"user-{self.fake.uuid4()[:12]}",
            display_name=self.fake.name(),
            email=self.fake.unique.email(),
            token=self.fake.sha256()[:32],
        )

    def generate_batch(self, count: int) -> Iterator[SyntheticUser]:
        """Generate multiple users.

        Parameters
        ----------
        count : int
            Number of users to generate.

        Yields
        ------
        SyntheticUser
            Generated users.
        """
        for _ in range(count):
            yield self.generate()


class LoanRequestGenerator(BaseGenerator):
    """Generate JSON-like bodies for loan, payment, addition and comment requests."""

    CURRENCIES = ["USD", "EUR", "GBP", "PKR", "BRL"]
    CURRENCY_WEIGHTS = [0.40, 0.20, 0.10, 0.20, 0.10]

    CATEGORIES = ["personal", "family", "business", "education", "medical", "travel"]

    # Principal ranges (major units)
    PRINCIPAL_RANGE = (50, 20000)

    def loan_request(
        self,
        counterparty: SyntheticUser | None = None,
        requires_collaboration: bool | None = None,
    ) -> dict[str, Any]:
        """Body for creating a loan.

        Parameters
        ----------
        counterparty : SyntheticUser | None
            Registered counterparty; an unregistered one is invented when ``None``.
        requires_collaboration : bool | None
            Force the collaborative flag (random when ``None``).
        """
        # Log-normal principal: many small loans, a few large ones
        principal = self.rng.lognormvariate(mu=6.5, sigma=1.0)
        principal = max(self.PRINCIPAL_RANGE[0], min(principal, self.PRINCIPAL_RANGE[1]))

        if counterparty is not None:
            party = {"user_id": counterparty.user_id, "name": counterparty.display_name, "email": counterparty.email}
        else:
            party = {"name": self.fake.name(), "phone": self.fake.numerify("+1##########")}

        if requires_collaboration is None:
            requires_collaboration = self.rng.random() < 0.5

        due = date.today() + timedelta(days=self.rng.randint(30, 365))
        return {
            "amount": str(quantize(Decimal(str(principal)))),
            "currency": self.rng.choices(self.CURRENCIES, weights=self.CURRENCY_WEIGHTS, k=1)[0],
            "direction": self.rng.choice(list(LoanDirection)).value,
            "counterparty": party,
            "description": self.fake.sentence(nb_words=6).rstrip("."),
            "category": self.rng.choice(self.CATEGORIES),
            "tags": self.fake.words(nb=self.rng.randint(0, 3)),
            "due_date": due.isoformat(),
            "requires_collaboration": requires_collaboration,
        }

    def payment_request(self, remaining: Decimal) -> dict[str, Any]:
        """Body for a payment of 10-60% of the remaining balance (at least one cent)."""
        share = Decimal(str(self.rng.uniform(0.10, 0.60)))
        amount = max(Decimal("0.01"), quantize(remaining * share))
        return {
            "amount": str(min(amount, remaining)),
            "date": date.today().isoformat(),
            "method": self.rng.choice(["cash", "bank_transfer", "card", "mobile_wallet"]),
            "notes": self.fake.sentence(nb_words=4) if self.rng.random() < 0.3 else None,
        }

    def addition_request(self) -> dict[str, Any]:
        """Body for drawing extra principal."""
        amount = quantize(Decimal(str(self.rng.uniform(10, 500))))
        return {
            "amount": str(amount),
            "description": self.fake.sentence(nb_words=3).rstrip("."),
            "date": date.today().isoformat(),
        }

    def comment_request(self) -> dict[str, Any]:
        """Body for a comment."""
        return {"message": self.fake.sentence(nb_words=self.rng.randint(4, 14))}
