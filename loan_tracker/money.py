"""Decimal helpers for currency amounts.

All money is held as ``Decimal`` quantized to cents with banker's
rounding. Floats are converted through ``str`` so ``0.1`` stays ``0.10``.
"""

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Any

from loan_tracker.exceptions import ValidationError

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
MAX_AMOUNT = Decimal("999999999999.99")


def quantize(value: Decimal) -> Decimal:
    """Round to two decimal places."""
    return value.quantize(CENTS, rounding=ROUND_HALF_EVEN)


def to_money(value: Any, field_name: str = "amount", limit: Decimal | None = MAX_AMOUNT) -> Decimal:
    """Parse a number-like value into a money ``Decimal``.

    Parameters
    ----------
    value : Any
        ``Decimal``, ``int``, ``float`` or numeric string.
    field_name : str
        Used in error messages.
    limit : Decimal | None
        Largest accepted magnitude; ``None`` disables the bound.

    Returns
    -------
    Decimal
        Value rounded to cents.

    Raises
    ------
    ValidationError
        If the value is missing, boolean, non-numeric, not finite or larger
        than ``limit`` in magnitude.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float, str)):
        try:
            parsed = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValidationError(f"{field_name} must be a number") from exc
    else:
        raise ValidationError(f"{field_name} must be a number")
    if not parsed.is_finite():
        raise ValidationError(f"{field_name} must be finite")
    if limit is not None and abs(parsed) > limit:
        raise ValidationError(f"{field_name} cannot exceed {limit}")
    try:
        return quantize(parsed)
    except InvalidOperation as exc:
        raise ValidationError(f"{field_name} must be a number") from exc


def to_positive_money(value: Any, field_name: str = "amount") -> Decimal:
    """Parse money and require it to be greater than zero."""
    amount = to_money(value, field_name)
    if amount <= ZERO:
        raise ValidationError(f"{field_name} must be positive")
    return amount


def format_money(currency: str, amount: Decimal) -> str:
    """Render an amount for human-readable notes, e.g. ``USD 200.00``."""
    return f"{currency} {quantize(amount):.2f}"
