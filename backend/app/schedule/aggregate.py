from __future__ import annotations

from datetime import date
from typing import Dict, Iterable

from .records import KINDS, CashFlowTotals, Occurrence


def aggregate(
    occurrences: Iterable[Occurrence],
    window_start: date,
    window_end: date,
    *,
    realized_only: bool = False,
) -> CashFlowTotals:
    """
    Per-kind totals for occurrences due in [window_start, window_end].

    - Projection view (default): every occurrence counts once, whatever its status.
    - Realized view (realized_only=True): only paid occurrences count.
    - balance = revenue - expense; investment is capital movement, not P&L.
    """
    if window_start > window_end:
        raise ValueError("window_start must be <= window_end")

    sums: Dict[str, int] = {kind: 0 for kind in KINDS}
    for occ in occurrences:
        if not window_start <= occ.due_date <= window_end:
            continue
        if realized_only and occ.status != "paid":
            continue
        if occ.kind not in sums:
            raise ValueError(f"unknown kind on occurrence: {occ.kind!r}")
        if occ.amount < 0:
            raise ValueError(
                f"negative amount on occurrence {occ.obligation_id}@{occ.due_date.isoformat()}"
            )
        sums[occ.kind] += occ.amount

    return CashFlowTotals(
        revenue=sums["revenue"],
        expense=sums["expense"],
        investment=sums["investment"],
        balance=sums["revenue"] - sums["expense"],
    )
