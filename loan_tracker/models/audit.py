"""Audit log entry model."""

from dataclasses import dataclass, field
from datetime import datetime

from loan_tracker.models.enums import AuditAction


@dataclass(frozen=True)
class AuditEntry:
    """Append-only, hash-chained audit record for one loan."""

    loan_id: str
    sequence: int  # 1, 2, 3, ... per loan
    action: AuditAction
    actor_id: str
    actor_name: str
    timestamp: datetime
    details: dict = field(default_factory=dict)  # Identifiers and change types only
    previous_hash: str = ""
    hash: str = ""

    def content(self) -> dict:
        """Hashed portion of the entry (everything except the hashes)."""
        return {
            "loan_id": self.loan_id,
            "sequence": self.sequence,
            "action": self.action,
            "actor_id": self.actor_id,
            "actor_name": self.actor_name,
            "timestamp": self.timestamp,
            "details": self.details,
        }
