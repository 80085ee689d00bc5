from decimal import Decimal

import pytest

from backend.app.schedule.money import from_cents, to_cents


def test_to_cents_accepts_two_places():
    assert to_cents(Decimal("1000.00")) == 100000
    assert to_cents("10.5") == 1050
    assert to_cents(7) == 700


@pytest.mark.parametrize("value", ["10.005", "abc", "NaN", "Infinity"])
def test_to_cents_rejects_unrepresentable_amounts(value):
    with pytest.raises(ValueError):
        to_cents(value)


def test_from_cents_quantizes():
    assert from_cents(1050) == Decimal("10.50")
    assert str(from_cents(100000)) == "1000.00"
