"""
Money helpers for wallet arithmetic.

Balances are stored as floats in MongoDB; all arithmetic goes through
Decimal and is rounded to pesewas before being written back.
"""

import math
from decimal import Decimal, ROUND_HALF_UP

PESEWA = Decimal('0.01')


def to_decimal(value) -> Decimal:
    return Decimal(str(value or 0))


def round_amount(value) -> float:
    return float(to_decimal(value).quantize(PESEWA, rounding=ROUND_HALF_UP))


def add_amounts(a, b) -> float:
    return round_amount(to_decimal(a) + to_decimal(b))


def parse_positive_amount(value):
    """
    Parse a request amount into a positive finite float.

    Returns None for missing, non-numeric, non-finite, zero or negative input.
    Booleans are rejected even though they are ints.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(amount) or amount <= 0:
        return None
    rounded = round_amount(amount)
    return rounded if rounded > 0 else None


def format_cedis(value) -> str:
    """Format an amount as GHS display text with two decimals."""
    return f"{to_decimal(value).quantize(PESEWA, rounding=ROUND_HALF_UP):.2f}"
