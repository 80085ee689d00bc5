from __future__ import annotations

import heapq
from datetime import date
from typing import Iterable, Iterator, Mapping, Optional, Tuple

from .calendar_math import first_index_reaching, nth_occurrence
from .errors import InvalidObligation
from .records import CATEGORIES, KINDS, PERIODICITIES, ObligationTerms, ScheduledAmount

# Per-window iteration bound for open-ended schedules. Callers needing a
# longer horizon page by narrowing the window and calling again.
DEFAULT_ITERATION_CAPS: Mapping[str, int] = {
    "weekly": 104,
    "monthly": 24,
    "annual": 24,
}


def validate_obligation(obligation: ObligationTerms) -> None:
    if obligation.category not in CATEGORIES:
        raise InvalidObligation(f"unknown category: {obligation.category!r}")
    if obligation.kind not in KINDS:
        raise InvalidObligation(f"unknown kind: {obligation.kind!r}")
    if obligation.amount is None or obligation.amount <= 0:
        raise InvalidObligation("amount must be positive")
    if obligation.start_date is None:
        raise InvalidObligation("start_date is required")
    if obligation.end_date is not None and obligation.end_date < obligation.start_date:
        raise InvalidObligation("end_date must not be before start_date")

    if obligation.category == "one_off":
        return

    if not obligation.periodicity:
        raise InvalidObligation("periodicity is required for recurring obligations")
    if obligation.periodicity not in PERIODICITIES:
        raise InvalidObligation(f"unknown periodicity: {obligation.periodicity!r}")
    if obligation.due_day is not None and not 1 <= obligation.due_day <= 31:
        raise InvalidObligation(f"due_day must be within 1..31, got {obligation.due_day}")


def expand(
    obligation: ObligationTerms,
    window_start: date,
    window_end: date,
    *,
    caps: Optional[Mapping[str, int]] = None,
) -> Iterator[ScheduledAmount]:
    """
    Lazily yield (due_date, amount) for every occurrence of obligation in
    [window_start, window_end], ascending by due_date.

    Validation happens eagerly so a malformed obligation fails at the call,
    not on first iteration.
    """
    if window_start > window_end:
        raise ValueError("window_start must be <= window_end")
    if not obligation.active:
        return iter(())

    validate_obligation(obligation)

    if obligation.category == "one_off":
        if window_start <= obligation.start_date <= window_end:
            return iter((ScheduledAmount(obligation.start_date, obligation.amount),))
        return iter(())

    limits = caps or DEFAULT_ITERATION_CAPS
    return _expand_recurring(obligation, window_start, window_end, limits[obligation.periodicity])


def _expand_recurring(
    obligation: ObligationTerms,
    window_start: date,
    window_end: date,
    cap: int,
) -> Iterator[ScheduledAmount]:
    n = first_index_reaching(obligation.start_date, obligation.periodicity, window_start)
    for _ in range(cap):
        due = nth_occurrence(obligation.start_date, obligation.periodicity, n, obligation.due_day)
        if due > window_end:
            return
        if obligation.end_date is not None and due > obligation.end_date:
            return
        if due >= window_start:
            yield ScheduledAmount(due, obligation.amount)
        n += 1


def expand_many(
    obligations: Iterable[ObligationTerms],
    window_start: date,
    window_end: date,
    *,
    caps: Optional[Mapping[str, int]] = None,
) -> Iterator[Tuple[ObligationTerms, ScheduledAmount]]:
    """Merge several expansions, ascending by due_date then obligation id."""
    streams = [_keyed(ob, window_start, window_end, caps) for ob in obligations]
    for _, _, ob, scheduled in heapq.merge(*streams, key=lambda item: (item[0], item[1])):
        yield ob, scheduled


def _keyed(ob: ObligationTerms, window_start: date, window_end: date, caps: Optional[Mapping[str, int]]):
    for scheduled in expand(ob, window_start, window_end, caps=caps):
        yield scheduled.due_date, ob.id, ob, scheduled


def truncated_at(
    obligation: ObligationTerms,
    window_start: date,
    window_end: date,
    *,
    caps: Optional[Mapping[str, int]] = None,
) -> Optional[date]:
    """
    First in-window due date that expand() leaves out because of the iteration
    cap, or None when the expansion of this window is complete.
    """
    if window_start > window_end:
        raise ValueError("window_start must be <= window_end")
    if not obligation.active or obligation.category == "one_off":
        return None
    validate_obligation(obligation)

    limits = caps or DEFAULT_ITERATION_CAPS
    n = first_index_reaching(obligation.start_date, obligation.periodicity, window_start)
    n += limits[obligation.periodicity]
    due = nth_occurrence(obligation.start_date, obligation.periodicity, n, obligation.due_day)
    if due > window_end:
        return None
    if obligation.end_date is not None and due > obligation.end_date:
        return None
    return due
