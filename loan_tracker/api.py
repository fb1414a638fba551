"""Request-shape boundary over :class:`LoanService`.

Each method takes the caller's credential plus a JSON-like body and
returns an :class:`ApiResponse`. Transport routing is left to the host
application. Every error is converted here; nothing propagates to the
caller, and responses always carry decrypted loans and never the sealed
bundle.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable

from loan_tracker import ledger
from loan_tracker.exceptions import LoanTrackerError, ValidationError
from loan_tracker.identity import IdentityVerifier
from loan_tracker.models.loan import Loan
from loan_tracker.serialization import parse_date, serialize_value, to_dict
from loan_tracker.service import LoanService, MutationResult

logger = logging.getLogger(__name__)


@dataclass
class ApiResponse:
    """HTTP-equivalent status and JSON body."""

    status: int
    body: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def loan_view(loan: Loan) -> dict:
    """Decrypted loan plus derived totals, as returned to callers."""
    data = loan.to_dict()
    data.pop("encrypted_data", None)
    data["total_paid"] = serialize_value(ledger.total_paid(loan))
    data["total_additions"] = serialize_value(ledger.total_additions(loan))
    data["effective_principal"] = serialize_value(ledger.effective_principal(loan))
    return data


def _body(body: Any) -> dict:
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _date(body: dict, key: str) -> date | None:
    try:
        return parse_date(body.get(key))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{key} must be an ISO-8601 date") from exc


def _version(body: dict) -> int | None:
    value = body.get("version", body.get("expected_version"))
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("version must be an integer")
    return value


def _text(body: dict, key: str) -> str | None:
    value = body.get(key)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value


class LoanApi:
    """Structured request/response facade."""

    def __init__(self, service: LoanService, identity: IdentityVerifier) -> None:
        self.service = service
        self.identity = identity

    def _call(self, operation: str, handler: Callable[[], tuple[int, Any, str | None]]) -> ApiResponse:
        try:
            status, data, message = handler()
        except LoanTrackerError as exc:
            if exc.status_code >= 500:
                logger.error("%s failed: %s", operation, exc)
            else:
                logger.info("%s rejected (%s): %s", operation, exc.code, exc)
            return ApiResponse(
                exc.status_code,
                {
                    "success": False,
                    "error": {"code": exc.code, "message": str(exc), "retryable": exc.retryable},
                },
            )
        except Exception:
            logger.exception("Unhandled error in %s", operation)
            return ApiResponse(
                500,
                {
                    "success": False,
                    "error": {"code": "internal_error", "message": "Internal server error", "retryable": False},
                },
            )
        body: dict[str, Any] = {"success": True, "data": data}
        if message:
            body["message"] = message
        return ApiResponse(status, body)

    @staticmethod
    def _mutation(result: MutationResult, key: str, applied_message: str, queued_message: str) -> tuple:
        if result.applied:
            return 201, {key: to_dict(result.record), "loan": loan_view(result.loan)}, applied_message
        return 201, {"pending_change": to_dict(result.pending_change)}, queued_message

    # ------------------------------------------------------------------
    # Loans
    # ------------------------------------------------------------------

    def create_loan(self, credential: str | None, body: Any) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            data = _body(body)
            loan = self.service.create_loan(
                actor,
                amount=data.get("amount"),
                currency=_text(data, "currency") or "",
                direction=_text(data, "direction") or "",
                counterparty=data.get("counterparty"),
                description=_text(data, "description") or "",
                category=_text(data, "category"),
                tags=data.get("tags"),
                due_date=_date(data, "due_date"),
                requires_collaboration=data.get("requires_collaboration", False),
            )
            return 201, {"loan": loan_view(loan)}, "Loan created"

        return self._call("create_loan", handler)

    def get_loan(self, credential: str | None, loan_id: str) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            return 200, {"loan": loan_view(self.service.get_loan(loan_id, actor))}, None

        return self._call("get_loan", handler)

    def list_loans(self, credential: str | None, query: Any = None) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            params = _body(query)
            loans = self.service.list_loans(actor, status=params.get("status"), direction=params.get("direction"))
            return 200, {"loans": [loan_view(loan) for loan in loans]}, None

        return self._call("list_loans", handler)

    def update_loan(self, credential: str | None, loan_id: str, body: Any) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            data = _body(body)
            changes = {k: v for k, v in data.items() if k not in ("version", "expected_version")}
            if "due_date" in changes:
                changes["due_date"] = _date(data, "due_date")
            loan = self.service.update_loan(loan_id, actor, changes, expected_version=_version(data))
            return 200, {"loan": loan_view(loan)}, "Loan updated"

        return self._call("update_loan", handler)

    def delete_loan(self, credential: str | None, loan_id: str, body: Any = None) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            self.service.delete_loan(loan_id, actor, expected_version=_version(_body(body)))
            return 200, {"loan_id": loan_id}, "Loan deleted"

        return self._call("delete_loan", handler)

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def add_payment(self, credential: str | None, loan_id: str, body: Any) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            data = _body(body)
            result = self.service.add_payment(
                loan_id,
                actor,
                amount=data.get("amount"),
                paid_on=_date(data, "date"),
                method=_text(data, "method"),
                notes=_text(data, "notes"),
                expected_version=_version(data),
            )
            return self._mutation(result, "payment", "Payment added", "Payment submitted for approval")

        return self._call("add_payment", handler)

    def edit_payment(self, credential: str | None, loan_id: str, payment_id: str, body: Any) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            data = _body(body)
            result = self.service.edit_payment(
                loan_id,
                actor,
                payment_id,
                amount=data.get("amount"),
                paid_on=_date(data, "date"),
                method=_text(data, "method"),
                notes=_text(data, "notes"),
                expected_version=_version(data),
            )
            return self._mutation(result, "payment", "Payment updated", "Payment edit submitted for approval")

        return self._call("edit_payment", handler)

    def delete_payment(self, credential: str | None, loan_id: str, payment_id: str, body: Any = None) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            result = self.service.delete_payment(
                loan_id, actor, payment_id, expected_version=_version(_body(body))
            )
            return self._mutation(result, "payment", "Payment deleted", "Payment deletion submitted for approval")

        return self._call("delete_payment", handler)

    # ------------------------------------------------------------------
    # Additions
    # ------------------------------------------------------------------

    def add_addition(self, credential: str | None, loan_id: str, body: Any) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            data = _body(body)
            result = self.service.add_addition(
                loan_id,
                actor,
                amount=data.get("amount"),
                description=_text(data, "description"),
                added_on=_date(data, "date"),
                expected_version=_version(data),
            )
            return self._mutation(result, "addition", "Amount added", "Loan addition submitted for approval")

        return self._call("add_addition", handler)

    def edit_addition(self, credential: str | None, loan_id: str, addition_id: str, body: Any) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            data = _body(body)
            result = self.service.edit_addition(
                loan_id,
                actor,
                addition_id,
                amount=data.get("amount"),
                description=_text(data, "description"),
                expected_version=_version(data),
            )
            return self._mutation(result, "addition", "Addition updated", "Addition edit submitted for approval")

        return self._call("edit_addition", handler)

    def delete_addition(self, credential: str | None, loan_id: str, addition_id: str, body: Any = None) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            result = self.service.delete_addition(
                loan_id, actor, addition_id, expected_version=_version(_body(body))
            )
            return self._mutation(
                result, "addition", "Addition deleted", "Addition deletion submitted for approval"
            )

        return self._call("delete_addition", handler)

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def add_comment(self, credential: str | None, loan_id: str, body: Any) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            data = _body(body)
            result = self.service.add_comment(
                loan_id, actor, data.get("message"), expected_version=_version(data)
            )
            return 201, {"comment": to_dict(result.record), "loan": loan_view(result.loan)}, "Comment added"

        return self._call("add_comment", handler)

    def edit_comment(self, credential: str | None, loan_id: str, comment_id: str, body: Any) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            data = _body(body)
            result = self.service.edit_comment(
                loan_id, actor, comment_id, data.get("message"), expected_version=_version(data)
            )
            return 200, {"comment": to_dict(result.record), "loan": loan_view(result.loan)}, "Comment updated"

        return self._call("edit_comment", handler)

    def delete_comment(self, credential: str | None, loan_id: str, comment_id: str, body: Any = None) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            result = self.service.delete_comment(
                loan_id, actor, comment_id, expected_version=_version(_body(body))
            )
            return 200, {"comment_id": comment_id, "loan": loan_view(result.loan)}, "Comment deleted"

        return self._call("delete_comment", handler)

    # ------------------------------------------------------------------
    # Pending changes
    # ------------------------------------------------------------------

    def approve_change(self, credential: str | None, loan_id: str, change_id: str, body: Any = None) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            result = self.service.approve_change(
                loan_id, change_id, actor, expected_version=_version(_body(body))
            )
            return (
                200,
                {"pending_change": to_dict(result.pending_change), "loan": loan_view(result.loan)},
                "Change approved",
            )

        return self._call("approve_change", handler)

    def reject_change(self, credential: str | None, loan_id: str, change_id: str, body: Any = None) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            data = _body(body)
            result = self.service.reject_change(
                loan_id, change_id, actor, reason=_text(data, "reason"), expected_version=_version(data)
            )
            return (
                200,
                {"pending_change": to_dict(result.pending_change), "loan": loan_view(result.loan)},
                "Change rejected",
            )

        return self._call("reject_change", handler)

    # ------------------------------------------------------------------
    # Acceptance and collaborators
    # ------------------------------------------------------------------

    def accept_loan(self, credential: str | None, loan_id: str, body: Any = None) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            loan = self.service.accept_loan(loan_id, actor, expected_version=_version(_body(body)))
            return 200, {"loan": loan_view(loan)}, "Loan accepted"

        return self._call("accept_loan", handler)

    def reject_loan(self, credential: str | None, loan_id: str, body: Any = None) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            loan = self.service.reject_loan(loan_id, actor, expected_version=_version(_body(body)))
            return 200, {"loan": loan_view(loan)}, "Loan rejected"

        return self._call("reject_loan", handler)

    def invite_collaborator(self, credential: str | None, loan_id: str, body: Any) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            data = _body(body)
            collaborator = self.service.invite_collaborator(
                loan_id,
                actor,
                _text(data, "user_id") or "",
                role=data.get("role", "viewer"),
                expected_version=_version(data),
            )
            return 201, {"collaborator": collaborator.to_dict()}, "Invitation sent"

        return self._call("invite_collaborator", handler)

    def respond_to_invitation(self, credential: str | None, loan_id: str, body: Any) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            data = _body(body)
            accept = data.get("accept")
            if not isinstance(accept, bool):
                raise ValidationError("accept must be true or false")
            collaborator = self.service.respond_to_invitation(
                loan_id, actor, accept, expected_version=_version(data)
            )
            return 200, {"collaborator": collaborator.to_dict()}, None

        return self._call("respond_to_invitation", handler)

    def audit_trail(self, credential: str | None, loan_id: str) -> ApiResponse:
        def handler() -> tuple:
            actor = self.identity.verify(credential)
            entries, verification = self.service.audit_trail(loan_id, actor)
            return 200, {"entries": [to_dict(e) for e in entries], "verification": verification}, None

        return self._call("audit_trail", handler)
