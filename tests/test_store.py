"""Tests for loan and audit stores."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import psycopg
import pytest

from loan_tracker.audit import GENESIS_HASH, build_entry
from loan_tracker.exceptions import StoreError
from loan_tracker.models import (
    AcceptanceStatus,
    AuditAction,
    Collaborator,
    CollaboratorRole,
    InvitationStatus,
    LoanDirection,
    LoanStatus,
)
from loan_tracker.store.base import LoanRecord
from loan_tracker.store.memory import InMemoryAuditStore, InMemoryLoanStore


def _record(loan_id: str = "loan-1", version: int = 1, **kwargs: object) -> LoanRecord:
    defaults = {
        "loan_id": loan_id,
        "owner_id": "owner",
        "currency": "USD",
        "direction": LoanDirection.LENT,
        "status": LoanStatus.ACTIVE,
        "acceptance_status": AcceptanceStatus.ACCEPTED,
        "encrypted_data": "aa:bb:cc",
        "version": version,
        "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }
    defaults.update(kwargs)
    return LoanRecord(**defaults)


class TestInMemoryLoanStore:
    """Tests for InMemoryLoanStore."""

    def test_insert_and_get(self, loan_store: InMemoryLoanStore) -> None:
        loan_store.insert(_record())

        record = loan_store.get("loan-1")

        assert record is not None
        assert record.encrypted_data == "aa:bb:cc"
        assert len(loan_store) == 1

    def test_get_returns_copy(self, loan_store: InMemoryLoanStore) -> None:
        loan_store.insert(_record())

        loan_store.get("loan-1").encrypted_data = "changed"

        assert loan_store.get("loan-1").encrypted_data == "aa:bb:cc"

    def test_duplicate_insert(self, loan_store: InMemoryLoanStore) -> None:
        loan_store.insert(_record())

        with pytest.raises(StoreError):
            loan_store.insert(_record())

    def test_get_missing(self, loan_store: InMemoryLoanStore) -> None:
        assert loan_store.get("missing") is None

    def test_compare_and_swap(self, loan_store: InMemoryLoanStore) -> None:
        loan_store.insert(_record())

        assert loan_store.compare_and_swap(_record(version=2, encrypted_data="11:22:33"), expected_version=1) is True
        assert loan_store.compare_and_swap(_record(version=2, encrypted_data="44:55:66"), expected_version=1) is False

        stored = loan_store.get("loan-1")
        assert stored.version == 2
        assert stored.encrypted_data == "11:22:33"

    def test_compare_and_swap_missing(self, loan_store: InMemoryLoanStore) -> None:
        assert loan_store.compare_and_swap(_record(version=2), expected_version=1) is False

    def test_delete_is_versioned(self, loan_store: InMemoryLoanStore) -> None:
        loan_store.insert(_record())

        assert loan_store.delete("loan-1", expected_version=5) is False
        assert loan_store.delete("loan-1", expected_version=1) is True
        assert loan_store.get("loan-1") is None

    def test_find_for_user(self, loan_store: InMemoryLoanStore) -> None:
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        loan_store.insert(_record("owned", created_at=base))
        loan_store.insert(_record("as-counterparty", owner_id="other", counterparty_user_id="owner", created_at=base + timedelta(days=1)))
        loan_store.insert(
            _record(
                "as-collaborator",
                owner_id="other",
                collaborators=[Collaborator("owner", CollaboratorRole.VIEWER, InvitationStatus.PENDING, "other")],
                created_at=base + timedelta(days=2),
            )
        )
        loan_store.insert(_record("unrelated", owner_id="other"))

        found = loan_store.find_for_user("owner")

        assert [r.loan_id for r in found] == ["as-collaborator", "as-counterparty", "owned"]

    def test_find_for_user_filters(self, loan_store: InMemoryLoanStore) -> None:
        loan_store.insert(_record("active"))
        loan_store.insert(_record("paid", status=LoanStatus.PAID))
        loan_store.insert(_record("borrowed", direction=LoanDirection.BORROWED))

        assert [r.loan_id for r in loan_store.find_for_user("owner", status=LoanStatus.PAID)] == ["paid"]
        assert [r.loan_id for r in loan_store.find_for_user("owner", direction=LoanDirection.BORROWED)] == [
            "borrowed"
        ]


class TestInMemoryAuditStore:
    """Tests for InMemoryAuditStore."""

    def test_append_and_read(self, audit_store: InMemoryAuditStore) -> None:
        entry = build_entry("loan-1", 1, AuditAction.LOAN_CREATED, "owner", "Olivia", GENESIS_HASH)

        audit_store.append(entry)

        assert audit_store.last("loan-1") == entry
        assert audit_store.entries("loan-1") == [entry]
        assert audit_store.last("loan-2") is None

    def test_duplicate_sequence_rejected(self, audit_store: InMemoryAuditStore) -> None:
        entry = build_entry("loan-1", 1, AuditAction.LOAN_CREATED, "owner", "Olivia", GENESIS_HASH)
        audit_store.append(entry)

        with pytest.raises(StoreError):
            audit_store.append(entry)


class TestPostgresLoanStore:
    """Tests for PostgresLoanStore with a mocked connection."""

    @pytest.fixture
    def mock_conn(self) -> MagicMock:
        conn = MagicMock()
        cursor = conn.cursor.return_value.__enter__.return_value
        cursor.description = None
        cursor.rowcount = 1
        return conn

    @pytest.fixture
    def cursor(self, mock_conn: MagicMock) -> MagicMock:
        return mock_conn.cursor.return_value.__enter__.return_value

    @patch("loan_tracker.store.postgres.psycopg.connect")
    def test_init_connects_with_dict_rows(self, mock_connect: MagicMock) -> None:
        from psycopg.rows import dict_row

        from loan_tracker.store.postgres import PostgresLoanStore

        PostgresLoanStore("postgresql://localhost/loans")

        mock_connect.assert_called_once_with("postgresql://localhost/loans", row_factory=dict_row)

    @patch("loan_tracker.store.postgres.psycopg.connect")
    def test_create_schema(self, mock_connect: MagicMock, mock_conn: MagicMock, cursor: MagicMock) -> None:
        from loan_tracker.store.postgres import SCHEMA_SQL, PostgresLoanStore

        mock_connect.return_value = mock_conn
        PostgresLoanStore("dsn").create_schema()

        cursor.execute.assert_called_once_with(SCHEMA_SQL)
        mock_conn.commit.assert_called_once()

    @patch("loan_tracker.store.postgres.psycopg.connect")
    def test_compare_and_swap_is_conditional_update(
        self, mock_connect: MagicMock, mock_conn: MagicMock, cursor: MagicMock
    ) -> None:
        from loan_tracker.store.postgres import PostgresLoanStore

        mock_connect.return_value = mock_conn
        store = PostgresLoanStore("dsn")

        assert store.compare_and_swap(_record(version=3), expected_version=2) is True

        sql, params = cursor.execute.call_args[0]
        assert sql.startswith("UPDATE loans SET")
        assert "WHERE loan_id = %(loan_id)s AND version = %(expected_version)s" in sql
        assert params["expected_version"] == 2
        assert params["version"] == 3
        assert params["direction"] == "lent"

    @patch("loan_tracker.store.postgres.psycopg.connect")
    def test_compare_and_swap_lost_race(
        self, mock_connect: MagicMock, mock_conn: MagicMock, cursor: MagicMock
    ) -> None:
        from loan_tracker.store.postgres import PostgresLoanStore

        mock_connect.return_value = mock_conn
        cursor.rowcount = 0

        assert PostgresLoanStore("dsn").compare_and_swap(_record(version=3), expected_version=2) is False

    @patch("loan_tracker.store.postgres.psycopg.connect")
    def test_get_maps_row(self, mock_connect: MagicMock, mock_conn: MagicMock, cursor: MagicMock) -> None:
        from loan_tracker.store.postgres import PostgresLoanStore

        mock_connect.return_value = mock_conn
        cursor.description = [("loan_id",)]
        cursor.fetchall.return_value = [
            {
                "loan_id": "loan-1",
                "owner_id": "owner",
                "currency": "USD",
                "direction": "borrowed",
                "status": "paid",
                "acceptance_status": "pending",
                "encrypted_data": "aa:bb:cc",
                "version": 4,
                "counterparty_user_id": "bob",
                "requires_collaboration": True,
                "due_date": None,
                "collaborators": [{"user_id": "bob", "role": "collaborator", "status": "accepted"}],
                "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
                "updated_at": None,
                "last_modified_by": "owner",
            }
        ]

        record = PostgresLoanStore("dsn").get("loan-1")

        assert record.direction == LoanDirection.BORROWED
        assert record.status == LoanStatus.PAID
        assert record.acceptance_status == AcceptanceStatus.PENDING
        assert record.version == 4
        assert record.collaborators[0].role == CollaboratorRole.COLLABORATOR

    @patch("loan_tracker.store.postgres.psycopg.connect")
    def test_database_error_rolls_back(
        self, mock_connect: MagicMock, mock_conn: MagicMock, cursor: MagicMock
    ) -> None:
        from loan_tracker.store.postgres import PostgresLoanStore

        mock_connect.return_value = mock_conn
        cursor.execute.side_effect = psycopg.OperationalError("connection lost")

        with pytest.raises(StoreError, match="connection lost"):
            PostgresLoanStore("dsn").insert(_record())

        mock_conn.rollback.assert_called_once()

    @patch("loan_tracker.store.postgres.psycopg.connect")
    def test_find_for_user_filters(self, mock_connect: MagicMock, mock_conn: MagicMock, cursor: MagicMock) -> None:
        from loan_tracker.store.postgres import PostgresLoanStore

        mock_connect.return_value = mock_conn
        cursor.description = [("loan_id",)]
        cursor.fetchall.return_value = []

        assert PostgresLoanStore("dsn").find_for_user("owner", status=LoanStatus.ACTIVE) == []

        sql, params = cursor.execute.call_args[0]
        assert "collaborators @> %(member)s" in sql
        assert "AND status = %(status)s" in sql
        assert params["status"] == "active"


class TestPostgresAuditStore:
    """Tests for PostgresAuditStore with a mocked connection."""

    @patch("loan_tracker.store.postgres.psycopg.connect")
    def test_append_duplicate_raises_store_error(self, mock_connect: MagicMock) -> None:
        from loan_tracker.store.postgres import PostgresAuditStore

        conn = mock_connect.return_value
        cursor = conn.cursor.return_value.__enter__.return_value
        cursor.execute.side_effect = psycopg.errors.UniqueViolation("duplicate key")
        entry = build_entry("loan-1", 1, AuditAction.LOAN_CREATED, "owner", "Olivia", GENESIS_HASH)

        with pytest.raises(StoreError):
            PostgresAuditStore("dsn").append(entry)

        conn.rollback.assert_called_once()

    @patch("loan_tracker.store.postgres.psycopg.connect")
    def test_entries_normalizes_timestamps(self, mock_connect: MagicMock) -> None:
        from loan_tracker.store.postgres import PostgresAuditStore

        entry = build_entry("loan-1", 1, AuditAction.LOAN_CREATED, "owner", "Olivia", GENESIS_HASH)
        local = entry.timestamp.astimezone(timezone(timedelta(hours=-5)))
        cursor = mock_connect.return_value.cursor.return_value.__enter__.return_value
        cursor.fetchall.return_value = [
            {
                "loan_id": entry.loan_id,
                "sequence": entry.sequence,
                "action": entry.action.value,
                "actor_id": entry.actor_id,
                "actor_name": entry.actor_name,
                "timestamp": local,
                "details": entry.details,
                "previous_hash": entry.previous_hash,
                "hash": entry.hash,
            }
        ]

        entries = PostgresAuditStore("dsn").entries("loan-1")

        assert entries == [entry]
