"""Pytest configuration and fixtures."""

import pytest

from loan_tracker.api import LoanApi
from loan_tracker.audit import AuditTrail
from loan_tracker.codec import Codec, derive_key
from loan_tracker.identity import StaticIdentityVerifier, StaticUserDirectory
from loan_tracker.notifications import NotificationDispatcher
from loan_tracker.service import LoanService
from loan_tracker.sinks.memory import MemorySink
from loan_tracker.store.memory import InMemoryAuditStore, InMemoryLoanStore
from loan_tracker.store.repository import LoanRepository

TEST_KEY = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"

OWNER = "user-owner"
COUNTERPARTY = "user-counterparty"
OUTSIDER = "user-outsider"


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def codec() -> Codec:
    """Codec with a fixed test key."""
    return Codec(derive_key(TEST_KEY))


@pytest.fixture
def loan_store() -> InMemoryLoanStore:
    return InMemoryLoanStore()


@pytest.fixture
def audit_store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


@pytest.fixture
def repository(loan_store: InMemoryLoanStore, codec: Codec) -> LoanRepository:
    return LoanRepository(loan_store, codec)


@pytest.fixture
def sink() -> MemorySink:
    """Notification sink that records everything sent."""
    return MemorySink()


@pytest.fixture
def users() -> StaticUserDirectory:
    return StaticUserDirectory({OWNER: "Olivia Owner", COUNTERPARTY: "Carl Counterparty", OUTSIDER: "Otto Outsider"})


@pytest.fixture
def identity() -> StaticIdentityVerifier:
    return StaticIdentityVerifier({"owner-token": OWNER, "cp-token": COUNTERPARTY, "outsider-token": OUTSIDER})


@pytest.fixture
def service(
    repository: LoanRepository,
    audit_store: InMemoryAuditStore,
    sink: MemorySink,
    users: StaticUserDirectory,
) -> LoanService:
    """Service over in-memory stores."""
    return LoanService(
        repository=repository,
        audit=AuditTrail(audit_store),
        notifier=NotificationDispatcher([sink]),
        users=users,
    )


@pytest.fixture
def api(service: LoanService, identity: StaticIdentityVerifier) -> LoanApi:
    return LoanApi(service, identity)


@pytest.fixture
def counterparty_body() -> dict:
    """Counterparty that is a registered user."""
    return {"user_id": COUNTERPARTY, "name": "Carl Counterparty", "email": "carl@example.com"}
