"""
Money helpers. All escrow arithmetic happens in integer minor units
(pence) so the admin/vendor split always sums back to the charged amount.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any

_CENT = Decimal("0.01")

# Platform commission kept by the admin; the vendor receives the rest.
PLATFORM_FEE_PERCENT = 30


@dataclass(frozen=True)
class PayoutSplit:
    amount_minor: int
    admin_fee_minor: int
    vendor_payout_minor: int


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"Not a monetary amount: {value!r}")


def to_minor_units(value: Any) -> int:
    """Convert a decimal amount to minor units, rounding half up to the nearest penny."""
    amount = to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)
    return int(amount * 100)


def from_minor_units(minor: int) -> Decimal:
    return (Decimal(minor) / 100).quantize(_CENT)


def split_payment(amount_minor: int) -> PayoutSplit:
    """
    Fixed 30/70 escrow split. The admin fee is rounded half up to a whole
    minor unit and the vendor gets the remainder, so the two parts always
    add up to amount_minor exactly.
    """
    if amount_minor <= 0:
        raise ValueError("Payment amount must be positive")
    admin_fee = (amount_minor * PLATFORM_FEE_PERCENT + 50) // 100
    return PayoutSplit(
        amount_minor=amount_minor,
        admin_fee_minor=admin_fee,
        vendor_payout_minor=amount_minor - admin_fee,
    )
