"""Principal, payment and addition accounting on a decrypted loan.

Pure in-memory operations: every function mutates the given :class:`Loan`
snapshot and returns the affected sub-record. Nothing here performs I/O or
checks who is allowed to act; that belongs to the approval workflow and
the service.

Running totals obey:

* ``amount == original_amount + sum(addition.amount)``
* ``remaining_amount >= 0``
* ``remaining_amount == 0`` iff status is ``paid`` (cancelled loans excepted)
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from loan_tracker.exceptions import AuthorizationError, EntityNotFoundError, ValidationError
from loan_tracker.models.enums import LoanStatus
from loan_tracker.models.loan import Addition, Comment, Loan, Payment
from loan_tracker.money import MAX_AMOUNT, ZERO, format_money, quantize, to_positive_money

MAX_COMMENT_LENGTH = 1000


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def settle_status(loan: Loan) -> LoanStatus:
    """Align status with the remaining balance.

    Cancelled loans keep their status; otherwise a zero balance means
    ``paid`` and a positive balance on a paid loan reopens it.
    """
    if loan.status == LoanStatus.CANCELLED:
        return loan.status
    if loan.sensitive.remaining_amount == ZERO:
        loan.status = LoanStatus.PAID
    elif loan.status == LoanStatus.PAID:
        loan.status = LoanStatus.ACTIVE
    return loan.status


def _find_payment(loan: Loan, payment_id: str) -> Payment:
    for payment in loan.sensitive.payments:
        if payment.payment_id == payment_id:
            return payment
    raise EntityNotFoundError(f"Payment {payment_id} not found")


def _find_addition(loan: Loan, addition_id: str) -> Addition:
    for addition in loan.sensitive.additions:
        if addition.addition_id == addition_id:
            return addition
    raise EntityNotFoundError(f"Addition {addition_id} not found")


def _find_comment(loan: Loan, comment_id: str) -> Comment:
    for comment in loan.sensitive.comments:
        if comment.comment_id == comment_id:
            return comment
    raise EntityNotFoundError(f"Comment {comment_id} not found")


def _ensure_principal_within_limit(total: Decimal) -> None:
    if total > MAX_AMOUNT:
        raise ValidationError(f"Loan amount cannot exceed {MAX_AMOUNT}")


def _system_comment(loan: Loan, user_id: str, user_name: str, message: str) -> Comment:
    comment = Comment(
        comment_id=_new_id(),
        user_id=user_id,
        user_name=user_name,
        message=message,
        created_at=_now(),
    )
    loan.sensitive.comments.append(comment)
    return comment


# --------------------------------------------------------------------------
# Payments
# --------------------------------------------------------------------------


def apply_payment(
    loan: Loan,
    amount: Any,
    paid_by: str,
    paid_on: date | None = None,
    method: str | None = None,
    notes: str | None = None,
) -> Payment:
    """Record a payment and reduce the remaining balance.

    Parameters
    ----------
    loan : Loan
        Decrypted loan snapshot, mutated in place.
    amount : Any
        Payment amount; must be positive and not exceed the balance.
    paid_by : str
        Identity of the payer.
    paid_on : date | None
        Payment date (default today).
    method, notes : str | None
        Optional free-text details.

    Returns
    -------
    Payment
        The appended payment.
    """
    value = to_positive_money(amount)
    bundle = loan.sensitive
    if value > bundle.remaining_amount:
        raise ValidationError(
            f"Payment amount exceeds remaining balance of {format_money(loan.currency, bundle.remaining_amount)}"
        )

    payment = Payment(
        payment_id=_new_id(),
        amount=value,
        paid_on=paid_on or _now().date(),
        paid_by=paid_by,
        method=method,
        notes=notes,
        created_at=_now(),
    )
    bundle.payments.append(payment)
    bundle.remaining_amount = quantize(bundle.remaining_amount - value)
    settle_status(loan)
    return payment


def edit_payment(
    loan: Loan,
    payment_id: str,
    amount: Any = None,
    paid_on: date | None = None,
    method: str | None = None,
    notes: str | None = None,
) -> Payment:
    """Change a payment, adjusting the balance by the amount delta.

    Raises
    ------
    ValidationError
        If the new amount would push the remaining balance below zero.
    """
    payment = _find_payment(loan, payment_id)
    bundle = loan.sensitive

    if amount is not None:
        new_amount = to_positive_money(amount)
        new_remaining = bundle.remaining_amount + payment.amount - new_amount
        if new_remaining < ZERO:
            raise ValidationError("Edited payment would make the remaining balance negative")
        bundle.remaining_amount = quantize(new_remaining)
        payment.amount = new_amount
    if paid_on is not None:
        payment.paid_on = paid_on
    if method is not None:
        payment.method = method or None
    if notes is not None:
        payment.notes = notes or None

    payment.version += 1
    payment.updated_at = _now()
    settle_status(loan)
    return payment


def delete_payment(loan: Loan, payment_id: str) -> Payment:
    """Remove a payment and restore its amount to the balance."""
    payment = _find_payment(loan, payment_id)
    bundle = loan.sensitive
    bundle.payments.remove(payment)
    bundle.remaining_amount = quantize(bundle.remaining_amount + payment.amount)
    settle_status(loan)
    return payment


# --------------------------------------------------------------------------
# Additions
# --------------------------------------------------------------------------


def apply_addition(
    loan: Loan,
    amount: Any,
    added_by: str,
    added_by_name: str,
    added_on: date | None = None,
    description: str | None = None,
) -> Addition:
    """Draw extra principal: raises both ``amount`` and ``remaining_amount``.

    ``original_amount`` is never touched. A comment documenting the
    addition is appended.
    """
    value = to_positive_money(amount)
    bundle = loan.sensitive
    _ensure_principal_within_limit(bundle.amount + value)

    addition = Addition(
        addition_id=_new_id(),
        amount=value,
        added_on=added_on or _now().date(),
        added_by=added_by,
        added_by_name=added_by_name,
        description=description or None,
        created_at=_now(),
    )
    bundle.additions.append(addition)
    bundle.amount = quantize(bundle.amount + value)
    bundle.remaining_amount = quantize(bundle.remaining_amount + value)

    message = f"Added +{format_money(loan.currency, value)}"
    if addition.description:
        message += f" ({addition.description})"
    _system_comment(loan, added_by, added_by_name, message)

    settle_status(loan)
    return addition


def edit_addition(
    loan: Loan,
    addition_id: str,
    editor_id: str,
    editor_name: str,
    amount: Any = None,
    description: str | None = None,
) -> Addition:
    """Change an addition's amount and/or description.

    The principal and the balance move by the amount delta; the balance is
    floored at zero.
    """
    if amount is None and description is None:
        raise ValidationError("Nothing to update: provide amount or description")

    addition = _find_addition(loan, addition_id)
    bundle = loan.sensitive
    parts = []

    if amount is not None:
        new_amount = to_positive_money(amount)
        delta = new_amount - addition.amount
        _ensure_principal_within_limit(bundle.amount + delta)
        addition.amount = new_amount
        bundle.amount = quantize(bundle.amount + delta)
        bundle.remaining_amount = quantize(max(ZERO, bundle.remaining_amount + delta))
        parts.append(f"amount to +{format_money(loan.currency, new_amount)}")
    if description is not None:
        addition.description = description or None
        if description:
            parts.append(f"desc: {description}")

    addition.version += 1
    addition.updated_at = _now()
    _system_comment(loan, editor_id, editor_name, " ".join(["Edited addition", *parts]))

    settle_status(loan)
    return addition


def delete_addition(loan: Loan, addition_id: str, actor_id: str, actor_name: str) -> Addition:
    """Remove an addition, taking its value back out of principal and balance."""
    addition = _find_addition(loan, addition_id)
    bundle = loan.sensitive

    bundle.additions.remove(addition)
    bundle.amount = quantize(bundle.amount - addition.amount)
    bundle.remaining_amount = quantize(max(ZERO, bundle.remaining_amount - addition.amount))
    _system_comment(
        loan,
        actor_id,
        actor_name,
        f"Deleted addition of +{format_money(loan.currency, addition.amount)}",
    )

    settle_status(loan)
    return addition


# --------------------------------------------------------------------------
# Comments
# --------------------------------------------------------------------------


def _clean_message(message: Any) -> str:
    if message is not None and not isinstance(message, str):
        raise ValidationError("Message must be text")
    text = (message or "").strip()
    if not text:
        raise ValidationError("Message is required")
    if len(text) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"Message cannot exceed {MAX_COMMENT_LENGTH} characters")
    return text


def add_comment(loan: Loan, user_id: str, user_name: str, message: Any) -> Comment:
    """Append a comment."""
    comment = Comment(
        comment_id=_new_id(),
        user_id=user_id,
        user_name=user_name,
        message=_clean_message(message),
        created_at=_now(),
    )
    loan.sensitive.comments.append(comment)
    return comment


def edit_comment(loan: Loan, comment_id: str, user_id: str, message: Any) -> Comment:
    """Replace a comment's text; only its author may do so."""
    comment = _find_comment(loan, comment_id)
    if comment.user_id != user_id:
        raise AuthorizationError("Only the author can edit this comment")
    comment.message = _clean_message(message)
    comment.updated_at = _now()
    return comment


def delete_comment(loan: Loan, comment_id: str, user_id: str) -> Comment:
    """Remove a comment; its author or the loan owner may do so."""
    comment = _find_comment(loan, comment_id)
    if comment.user_id != user_id and not loan.is_owner(user_id):
        raise AuthorizationError("Only the author or the loan owner can delete this comment")
    loan.sensitive.comments.remove(comment)
    return comment


# --------------------------------------------------------------------------
# Queries
# --------------------------------------------------------------------------


def total_paid(loan: Loan) -> Decimal:
    """Sum of all payments."""
    return quantize(sum((p.amount for p in loan.sensitive.payments), ZERO))


def total_additions(loan: Loan) -> Decimal:
    """Sum of all additions."""
    return quantize(sum((a.amount for a in loan.sensitive.additions), ZERO))


def effective_principal(loan: Loan) -> Decimal:
    """Principal fixed at creation.

    ``base_original_amount`` and ``amount - total_additions`` are legacy
    aliases kept only for reading old bundles.
    """
    return loan.sensitive.original_amount


def verify_invariants(loan: Loan) -> dict[str, Any]:
    """Check the running-total invariants of a loan.

    Returns
    -------
    dict
        ``{"valid": bool, "violations": list[str]}``.
    """
    bundle = loan.sensitive
    violations = []

    expected_amount = quantize(bundle.original_amount + total_additions(loan))
    if bundle.amount != expected_amount:
        violations.append(f"amount {bundle.amount} != original_amount + additions {expected_amount}")

    if bundle.remaining_amount < ZERO:
        violations.append(f"remaining_amount {bundle.remaining_amount} is negative")

    if loan.status != LoanStatus.CANCELLED:
        is_zero = bundle.remaining_amount == ZERO
        is_paid = loan.status == LoanStatus.PAID
        if is_zero != is_paid:
            violations.append(f"status {loan.status.value} inconsistent with remaining_amount {bundle.remaining_amount}")

    for payment in bundle.payments:
        if payment.amount <= ZERO:
            violations.append(f"payment {payment.payment_id} has non-positive amount")
    for addition in bundle.additions:
        if addition.amount <= ZERO:
            violations.append(f"addition {addition.addition_id} has non-positive amount")

    return {"valid": not violations, "violations": violations}
