#!/usr/bin/env python3
"""Seed a loan tracker database with synthetic shared loans.

Builds the service from environment configuration (see
``LoanTrackerConfig.from_env``), registers synthetic users with a static
identity verifier and runs :class:`SharedLoanScenario` against it.

Examples
--------
    STORAGE_BACKEND=postgres LOAN_TRACKER_ENCRYPTION_KEY=... \\
        python scripts/seed_loans.py --init-schema --loans 200 --seed 7
"""

import argparse
import logging
import time

from loan_tracker.api import LoanApi
from loan_tracker.bootstrap import build_service
from loan_tracker.config import LoanTrackerConfig
from loan_tracker.identity import StaticIdentityVerifier, StaticUserDirectory
from loan_tracker.logging import setup_logging
from loan_tracker.scenarios import SharedLoanScenario

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed synthetic shared loans")
    parser.add_argument("--users", type=int, default=10, help="Number of synthetic users")
    parser.add_argument("--loans", type=int, default=20, help="Number of loans to create")
    parser.add_argument("--activity", type=int, default=4, help="Payments/additions per loan")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--init-schema", action="store_true", help="Create PostgreSQL tables first")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    config = LoanTrackerConfig.from_env()
    setup_logging(level=config.log_level, format_type=config.log_format)

    identity = StaticIdentityVerifier()
    users = StaticUserDirectory()
    service = build_service(config, users=users, init_schema=args.init_schema)
    api = LoanApi(service, identity)

    scenario = SharedLoanScenario(
        api,
        identity,
        users,
        num_users=args.users,
        num_loans=args.loans,
        activity_per_loan=args.activity,
        seed=args.seed,
    )

    t0 = time.perf_counter()
    try:
        result = scenario.run()
    finally:
        service.notifier.close()
    logger.info(
        "Seeded %d loans in %.1fs", len(result["loan_ids"]), time.perf_counter() - t0
    )
    for label, count in sorted(result["stats"].items()):
        logger.info("  %-32s %d", label, count)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
