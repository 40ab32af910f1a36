"""Conversion between dollar amounts and the integer cents stored on steps."""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

CENT = Decimal("0.01")


def dollars_to_cents(amount: Optional[Union[Decimal, int, float, str]]) -> Optional[int]:
    """
    Convert a dollar amount to integer cents, rounding half up.

    Args:
        amount: Dollar amount (None passes through)

    Returns:
        Amount in cents or None
    """
    if amount is None:
        return None
    value = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
    return int(value * 100)


def cents_to_dollars(cents: Optional[int]) -> Decimal:
    """Convert stored cents to dollars. None counts as zero."""
    if not cents:
        return Decimal("0.00")
    return (Decimal(cents) / 100).quantize(CENT)
