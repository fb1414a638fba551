"""PostgreSQL stores for loans and audit entries."""

import logging
from datetime import timezone
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from loan_tracker.exceptions import StoreError
from loan_tracker.models.audit import AuditEntry
from loan_tracker.models.enums import AcceptanceStatus, AuditAction, LoanDirection, LoanStatus
from loan_tracker.models.loan import Collaborator
from loan_tracker.store.base import LoanRecord

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS loans (
    loan_id                 TEXT PRIMARY KEY,
    owner_id                TEXT NOT NULL,
    currency                CHAR(3) NOT NULL,
    direction               TEXT NOT NULL,
    status                  TEXT NOT NULL,
    acceptance_status       TEXT NOT NULL,
    counterparty_user_id    TEXT,
    requires_collaboration  BOOLEAN NOT NULL DEFAULT FALSE,
    due_date                DATE,
    collaborators           JSONB NOT NULL DEFAULT '[]'::jsonb,
    encrypted_data          TEXT NOT NULL,
    version                 INTEGER NOT NULL,
    created_at              TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at              TIMESTAMPTZ,
    last_modified_by        TEXT
);

CREATE INDEX IF NOT EXISTS idx_loans_owner ON loans (owner_id, status);
CREATE INDEX IF NOT EXISTS idx_loans_counterparty ON loans (counterparty_user_id);
CREATE INDEX IF NOT EXISTS idx_loans_collaborators ON loans USING GIN (collaborators jsonb_path_ops);

CREATE TABLE IF NOT EXISTS loan_audit_log (
    loan_id         TEXT NOT NULL,
    sequence        INTEGER NOT NULL,
    action          TEXT NOT NULL,
    actor_id        TEXT NOT NULL,
    actor_name      TEXT NOT NULL,
    timestamp       TIMESTAMPTZ NOT NULL,
    details         JSONB NOT NULL DEFAULT '{}'::jsonb,
    previous_hash   CHAR(64) NOT NULL,
    hash            CHAR(64) NOT NULL,
    PRIMARY KEY (loan_id, sequence)
);
"""

LOAN_COLUMNS = [
    "loan_id",
    "owner_id",
    "currency",
    "direction",
    "status",
    "acceptance_status",
    "counterparty_user_id",
    "requires_collaboration",
    "due_date",
    "collaborators",
    "encrypted_data",
    "version",
    "created_at",
    "updated_at",
    "last_modified_by",
]

AUDIT_COLUMNS = [
    "loan_id",
    "sequence",
    "action",
    "actor_id",
    "actor_name",
    "timestamp",
    "details",
    "previous_hash",
    "hash",
]


def _record_params(record: LoanRecord) -> dict[str, Any]:
    return {
        "loan_id": record.loan_id,
        "owner_id": record.owner_id,
        "currency": record.currency,
        "direction": record.direction.value,
        "status": record.status.value,
        "acceptance_status": record.acceptance_status.value,
        "counterparty_user_id": record.counterparty_user_id,
        "requires_collaboration": record.requires_collaboration,
        "due_date": record.due_date,
        "collaborators": Jsonb([c.to_dict() for c in record.collaborators]),
        "encrypted_data": record.encrypted_data,
        "version": record.version,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
        "last_modified_by": record.last_modified_by,
    }


def _row_to_record(row: dict[str, Any]) -> LoanRecord:
    return LoanRecord(
        loan_id=row["loan_id"],
        owner_id=row["owner_id"],
        currency=row["currency"].strip(),
        direction=LoanDirection(row["direction"]),
        status=LoanStatus(row["status"]),
        acceptance_status=AcceptanceStatus(row["acceptance_status"]),
        encrypted_data=row["encrypted_data"],
        version=row["version"],
        counterparty_user_id=row["counterparty_user_id"],
        requires_collaboration=row["requires_collaboration"],
        due_date=row["due_date"],
        collaborators=[Collaborator.from_dict(c) for c in row["collaborators"] or []],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        last_modified_by=row["last_modified_by"],
    )


def _row_to_entry(row: dict[str, Any]) -> AuditEntry:
    # Hashes were computed over UTC timestamps; normalize the session zone away.
    return AuditEntry(
        loan_id=row["loan_id"],
        sequence=row["sequence"],
        action=AuditAction(row["action"]),
        actor_id=row["actor_id"],
        actor_name=row["actor_name"],
        timestamp=row["timestamp"].astimezone(timezone.utc),
        details=row["details"] or {},
        previous_hash=row["previous_hash"],
        hash=row["hash"],
    )


class PostgresLoanStore:
    """Loan store over a single psycopg connection.

    ``compare_and_swap`` is one conditional UPDATE, so the bundle, the
    version and every other column change together or not at all.
    """

    def __init__(self, connection_string: str) -> None:
        """Initialize store.

        Parameters
        ----------
        connection_string : str
            PostgreSQL connection string.
        """
        self.connection_string = connection_string
        self.conn = psycopg.connect(connection_string, row_factory=dict_row)

    def create_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        with self.conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
        self.conn.commit()
        logger.info("Loan schema ready")

    def _execute(self, sql: str, params: Any = None) -> Any:
        try:
            with self.conn.cursor() as cur:
                cur.execute(sql, params)
                rows = cur.fetchall() if cur.description else None
                rowcount = cur.rowcount
            self.conn.commit()
        except psycopg.Error as exc:
            self.conn.rollback()
            logger.error("Database error: %s", exc)
            raise StoreError(str(exc)) from exc
        return rows, rowcount

    def insert(self, record: LoanRecord) -> None:
        columns = ", ".join(LOAN_COLUMNS)
        placeholders = ", ".join(f"%({c})s" for c in LOAN_COLUMNS)
        self._execute(f"INSERT INTO loans ({columns}) VALUES ({placeholders})", _record_params(record))  # noqa: S608

    def get(self, loan_id: str) -> LoanRecord | None:
        rows, _ = self._execute("SELECT * FROM loans WHERE loan_id = %(loan_id)s", {"loan_id": loan_id})
        return _row_to_record(rows[0]) if rows else None

    def compare_and_swap(self, record: LoanRecord, expected_version: int) -> bool:
        params = _record_params(record)
        params["expected_version"] = expected_version
        assignments = ", ".join(f"{c} = %({c})s" for c in LOAN_COLUMNS if c != "loan_id")
        _, rowcount = self._execute(
            f"UPDATE loans SET {assignments} "  # noqa: S608
            "WHERE loan_id = %(loan_id)s AND version = %(expected_version)s",
            params,
        )
        return rowcount == 1

    def delete(self, loan_id: str, expected_version: int) -> bool:
        _, rowcount = self._execute(
            "DELETE FROM loans WHERE loan_id = %(loan_id)s AND version = %(expected_version)s",
            {"loan_id": loan_id, "expected_version": expected_version},
        )
        return rowcount == 1

    def find_for_user(
        self,
        user_id: str,
        status: LoanStatus | None = None,
        direction: LoanDirection | None = None,
    ) -> list[LoanRecord]:
        sql = (
            "SELECT * FROM loans "
            "WHERE (owner_id = %(user_id)s OR counterparty_user_id = %(user_id)s "
            "OR collaborators @> %(member)s)"
        )
        params: dict[str, Any] = {"user_id": user_id, "member": Jsonb([{"user_id": user_id}])}
        if status is not None:
            sql += " AND status = %(status)s"
            params["status"] = status.value
        if direction is not None:
            sql += " AND direction = %(direction)s"
            params["direction"] = direction.value
        sql += " ORDER BY created_at DESC"
        rows, _ = self._execute(sql, params)
        return [_row_to_record(row) for row in rows or []]

    def close(self) -> None:
        """Close the connection."""
        self.conn.close()


class PostgresAuditStore:
    """Audit log table; the primary key rejects a duplicate sequence."""

    def __init__(self, connection_string: str) -> None:
        self.connection_string = connection_string
        self.conn = psycopg.connect(connection_string, row_factory=dict_row)

    def append(self, entry: AuditEntry) -> None:
        columns = ", ".join(AUDIT_COLUMNS)
        placeholders = ", ".join(f"%({c})s" for c in AUDIT_COLUMNS)
        params = {
            "loan_id": entry.loan_id,
            "sequence": entry.sequence,
            "action": entry.action.value,
            "actor_id": entry.actor_id,
            "actor_name": entry.actor_name,
            "timestamp": entry.timestamp,
            "details": Jsonb(entry.details),
            "previous_hash": entry.previous_hash,
            "hash": entry.hash,
        }
        try:
            with self.conn.cursor() as cur:
                cur.execute(f"INSERT INTO loan_audit_log ({columns}) VALUES ({placeholders})", params)  # noqa: S608
            self.conn.commit()
        except psycopg.Error as exc:
            self.conn.rollback()
            raise StoreError(str(exc)) from exc

    def _select(self, sql: str, loan_id: str) -> list[AuditEntry]:
        try:
            with self.conn.cursor() as cur:
                cur.execute(sql, {"loan_id": loan_id})
                rows = cur.fetchall()
            self.conn.commit()
        except psycopg.Error as exc:
            self.conn.rollback()
            raise StoreError(str(exc)) from exc
        return [_row_to_entry(row) for row in rows]

    def last(self, loan_id: str) -> AuditEntry | None:
        rows = self._select(
            "SELECT * FROM loan_audit_log WHERE loan_id = %(loan_id)s ORDER BY sequence DESC LIMIT 1",
            loan_id,
        )
        return rows[0] if rows else None

    def entries(self, loan_id: str) -> list[AuditEntry]:
        return self._select("SELECT * FROM loan_audit_log WHERE loan_id = %(loan_id)s ORDER BY sequence", loan_id)

    def close(self) -> None:
        self.conn.close()
