from __future__ import annotations

from decimal import Decimal, localcontext

# Enough digits for any uint256 plus its fractional part.
_PRECISION = 100


def format_units(amount: int, decimals: int = 18) -> Decimal:
    """
    Convert an integer amount in base units to a Decimal in token units.

    Exact: 1234500000000000000 with 18 decimals == Decimal("1.2345").
    """
    if isinstance(amount, float):
        raise TypeError("amount must be an int, not float")
    if decimals < 0:
        raise ValueError("decimals must be non-negative")
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return Decimal(int(amount)).scaleb(-decimals)


def format_units_str(amount: int, decimals: int = 18) -> str:
    """Display string without exponent or trailing zeros: "1.2345", "1000"."""
    text = f"{format_units(amount, decimals):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
