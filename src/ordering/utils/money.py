"""Cent-precision money helpers.

Amounts are stored as floats on the aggregates; every comparison and every
computed total goes through ``to_money`` so that float noise never decides an
invariant.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Quantize ``value`` to cents, rounding half up."""
    if value is None:
        value = 0
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def money_equal(left, right) -> bool:
    return to_money(left) == to_money(right)
