from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

CENTS = Decimal("0.01")


def cents_to_str(cents: int | None) -> str | None:
    """Render integer cents as a two-place decimal string ("15.50")."""
    if cents is None:
        return None
    return str((Decimal(cents) / 100).quantize(CENTS))


def to_cents(value) -> int:
    """
    Convert a decimal amount (str, int, float or Decimal) to integer cents.

    Rounds half-up to the nearest cent. Raises ValueError on garbage.
    """
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite():
            raise ValueError("amount must be a decimal number")
        # quantize raises InvalidOperation past the context precision (e.g. "1e30")
        return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError):
        raise ValueError("amount must be a decimal number")
