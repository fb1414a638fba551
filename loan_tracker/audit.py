"""Hash-chained audit trail.

Each loan has its own append-only log. An entry's hash is SHA-256 over the
canonical JSON of its content followed by the previous entry's hash, so any
edit, reorder or deletion breaks every later link. Verification is a pure
fold over the entries.

Recording is best effort: a failing audit store is logged and never blocks
or rolls back the mutation it describes.
"""

import hashlib
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from loan_tracker.exceptions import StoreError
from loan_tracker.models.audit import AuditEntry
from loan_tracker.models.enums import AuditAction
from loan_tracker.serialization import canonical_json

logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64
APPEND_ATTEMPTS = 3

# Keys that would leak sensitive values into the unencrypted log
REDACTED_DETAIL_KEYS = frozenset(
    {"amount", "description", "notes", "message", "email", "phone", "name", "reason", "category", "tags"}
)


def compute_entry_hash(previous_hash: str, content: dict) -> str:
    """Digest of an entry's content chained to its predecessor."""
    payload = canonical_json(content) + previous_hash
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def build_entry(
    loan_id: str,
    sequence: int,
    action: AuditAction,
    actor_id: str,
    actor_name: str,
    previous_hash: str,
    details: dict | None = None,
    timestamp: datetime | None = None,
) -> AuditEntry:
    """Create a sealed entry whose hash covers its content and ``previous_hash``."""
    unsigned = AuditEntry(
        loan_id=loan_id,
        sequence=sequence,
        action=action,
        actor_id=actor_id,
        actor_name=actor_name,
        timestamp=timestamp or datetime.now(timezone.utc),
        details={k: v for k, v in (details or {}).items() if k not in REDACTED_DETAIL_KEYS},
        previous_hash=previous_hash,
    )
    return replace(unsigned, hash=compute_entry_hash(previous_hash, unsigned.content()))


def verify_chain(entries: Iterable[AuditEntry]) -> dict[str, Any]:
    """Recompute every link of a chain.

    Returns
    -------
    dict
        ``{"valid": bool, "entries": int, "broken_at": int | None, "reason": str | None}``
        where ``broken_at`` is the sequence number of the first bad entry.
    """
    previous_hash = GENESIS_HASH
    expected_sequence = 1
    count = 0
    for entry in entries:
        count += 1
        if entry.sequence != expected_sequence:
            return _broken(count, entry.sequence, f"expected sequence {expected_sequence}")
        if entry.previous_hash != previous_hash:
            return _broken(count, entry.sequence, "previous_hash does not match preceding entry")
        if compute_entry_hash(entry.previous_hash, entry.content()) != entry.hash:
            return _broken(count, entry.sequence, "hash does not match entry content")
        previous_hash = entry.hash
        expected_sequence += 1
    return {"valid": True, "entries": count, "broken_at": None, "reason": None}


def _broken(count: int, sequence: int, reason: str) -> dict[str, Any]:
    return {"valid": False, "entries": count, "broken_at": sequence, "reason": reason}


class AuditStore(Protocol):
    """Persistence for audit entries."""

    def append(self, entry: AuditEntry) -> None:
        """Store an entry; raise ``StoreError`` if its sequence is already taken."""

    def last(self, loan_id: str) -> AuditEntry | None:
        """Most recent entry for a loan."""

    def entries(self, loan_id: str) -> list[AuditEntry]:
        """All entries for a loan in sequence order."""


class AuditTrail:
    """Append and verify per-loan audit chains."""

    def __init__(self, store: AuditStore) -> None:
        self.store = store

    def record(
        self,
        loan_id: str,
        action: AuditAction,
        actor_id: str,
        actor_name: str,
        details: dict | None = None,
    ) -> AuditEntry | None:
        """Append an entry. Failures are logged and ``None`` is returned.

        Two writers racing for the same sequence number are resolved by the
        store rejecting the duplicate; the loser rebuilds on the new tail.
        """
        try:
            for _ in range(APPEND_ATTEMPTS):
                last = self.store.last(loan_id)
                entry = build_entry(
                    loan_id=loan_id,
                    sequence=last.sequence + 1 if last else 1,
                    action=action,
                    actor_id=actor_id,
                    actor_name=actor_name,
                    previous_hash=last.hash if last else GENESIS_HASH,
                    details=details,
                )
                try:
                    self.store.append(entry)
                except StoreError:
                    logger.debug("Audit sequence %d taken, retrying", entry.sequence, extra={"loan_id": loan_id})
                    continue
                return entry
            logger.error("Gave up appending audit entry %s", action.value, extra={"loan_id": loan_id})
        except Exception:
            logger.exception("Failed to record audit entry %s", action.value, extra={"loan_id": loan_id})
        return None

    def entries(self, loan_id: str) -> list[AuditEntry]:
        return self.store.entries(loan_id)

    def verify(self, loan_id: str) -> dict[str, Any]:
        return verify_chain(self.store.entries(loan_id))
