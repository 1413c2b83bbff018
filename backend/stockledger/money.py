# Overview: Exact decimal helpers for monetary values.

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .services.exceptions import ValidationError

"""
Money rules (authoritative)

- Amounts are decimal.Decimal end to end; float input is rejected outright.
- A value may not carry more fractional digits than its scale allows.
  Only derived totals (quantity x unit cost) are rounded, half-up, to cents.
"""

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def quantum(scale: int) -> Decimal:
    return Decimal(1).scaleb(-scale)


def to_money(value, *, scale: int = 2, field: str = "amount") -> Decimal:
    """Coerce int/str/Decimal input to an exact Decimal with the given scale."""
    if value is None or isinstance(value, (bool, float)):
        raise ValidationError(f"{field} must be a decimal value, got {value!r}")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValidationError(f"{field} is not a valid decimal: {value!r}") from exc
    else:
        raise ValidationError(f"{field} must be a decimal value, got {value!r}")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be finite")

    q = quantum(scale)
    if amount != amount.quantize(q):
        raise ValidationError(f"{field} has more than {scale} decimal places: {amount}")

    return amount.quantize(q)


def round_cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)
