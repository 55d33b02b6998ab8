# Overview: Decimal helpers for currency and percentage values.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value, *, field: str = "value") -> Decimal:
    """
    Coerce JSON/DB input to Decimal without passing through binary float.

    Floats are converted via their shortest repr (str), so 10.1 -> Decimal("10.1").
    Booleans are rejected even though bool is an int subclass.
    """
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
        if not result.is_finite():
            raise ValidationError(f"{field} must be a finite number")
        return result
    raise ValidationError(f"{field} must be a number")


def quantize_cents(value) -> Decimal:
    # nearest-cent rounding (half-up)
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value) -> str | None:
    """Render a Decimal with exactly two places for JSON responses."""
    if value is None:
        return None
    return str(quantize_cents(value))
