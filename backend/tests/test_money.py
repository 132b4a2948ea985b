"""
Unit tests for minor-unit conversion and the 30/70 escrow split.
"""

from decimal import Decimal

import pytest

from app.core.money import from_minor_units, split_payment, to_minor_units


def test_to_minor_units_rounds_half_up():
    assert to_minor_units("10.005") == 1001
    assert to_minor_units(Decimal("99.99")) == 9999
    assert to_minor_units(500) == 50000


def test_to_minor_units_rejects_garbage():
    with pytest.raises(ValueError):
        to_minor_units("ten pounds")


def test_from_minor_units():
    assert from_minor_units(42000) == Decimal("420.00")
    assert str(from_minor_units(1)) == "0.01"


@pytest.mark.parametrize("amount_minor, admin_fee, vendor_payout", [
    (60000, 18000, 42000),
    (1000, 300, 700),
    (9999, 3000, 6999),   # 2999.7 rounds up
    (1, 0, 1),
    (5, 2, 3),            # 1.5 rounds half up
])
def test_split_payment(amount_minor, admin_fee, vendor_payout):
    split = split_payment(amount_minor)
    assert split.admin_fee_minor == admin_fee
    assert split.vendor_payout_minor == vendor_payout


def test_split_always_sums_to_amount():
    for amount_minor in range(1, 5000, 7):
        split = split_payment(amount_minor)
        assert split.admin_fee_minor + split.vendor_payout_minor == amount_minor
        assert split.admin_fee_minor >= 0
        assert split.vendor_payout_minor >= 0


@pytest.mark.parametrize("amount_minor", [0, -100])
def test_split_rejects_non_positive(amount_minor):
    with pytest.raises(ValueError):
        split_payment(amount_minor)
