from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")


def to_cents(value: Union[Decimal, int, str]) -> int:
    """
    Convert a decimal amount to integer minor units.

    Amounts finer than one cent are rejected instead of rounded.
    """
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"not a decimal amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"not a finite amount: {value!r}")
    if amount != amount.quantize(CENT):
        raise ValueError(f"amount has sub-cent precision: {value!r}")
    return int(amount * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)
