from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional

from .calendar_math import as_calendar_day
from .expander import expand
from .records import ObligationTerms, Occurrence, PersistedEntry, ScheduledAmount

logger = logging.getLogger(__name__)


def _entry_rank(entry: PersistedEntry) -> tuple:
    # Stable pick if the uniqueness invariant was ever broken upstream.
    return (entry.id is None, entry.id or "")


def _index_entries(
    obligation_id: str,
    persisted_entries: Iterable[PersistedEntry],
) -> Dict[date, PersistedEntry]:
    by_day: Dict[date, PersistedEntry] = {}
    for entry in persisted_entries:
        if entry.obligation_id != obligation_id:
            continue
        day = as_calendar_day(entry.due_date)
        current = by_day.get(day)
        if current is None:
            by_day[day] = entry
            continue
        logger.warning(
            "Invariant guard: duplicate ledger entries for obligation=%s due_date=%s",
            obligation_id,
            day.isoformat(),
        )
        if _entry_rank(entry) < _entry_rank(current):
            by_day[day] = entry
    return by_day


def reconcile(
    obligation: ObligationTerms,
    occurrences: Iterable[ScheduledAmount],
    persisted_entries: Iterable[PersistedEntry],
) -> List[Occurrence]:
    """
    Merge generated (due_date, amount) pairs with persisted ledger entries.

    A persisted entry is authoritative for status, amount and paid_date.
    Entries with no generated counterpart are left out (see find_orphans).
    """
    by_day = _index_entries(obligation.id, persisted_entries)

    out: List[Occurrence] = []
    for due_date, amount in occurrences:
        day = as_calendar_day(due_date)
        entry = by_day.get(day)
        if entry is None:
            out.append(
                Occurrence(
                    obligation_id=obligation.id,
                    counterparty=obligation.counterparty,
                    service_label=obligation.service_label,
                    kind=obligation.kind,
                    due_date=day,
                    amount=amount,
                    status="pending",
                    paid_date=None,
                    persisted=False,
                    entry_id=None,
                )
            )
            continue

        out.append(
            Occurrence(
                obligation_id=obligation.id,
                counterparty=obligation.counterparty,
                service_label=obligation.service_label,
                kind=obligation.kind,
                due_date=day,
                amount=entry.amount,
                status=entry.status,
                paid_date=entry.paid_date if entry.status == "paid" else None,
                persisted=True,
                entry_id=entry.id,
            )
        )
    return out


def find_orphans(
    obligation: ObligationTerms,
    persisted_entries: Iterable[PersistedEntry],
    *,
    caps: Optional[Mapping[str, int]] = None,
) -> List[PersistedEntry]:
    """
    Entries whose due_date the obligation no longer generates, e.g. after its
    due_day or periodicity was edited. Read-only; nothing is deleted.
    """
    probe = obligation if obligation.active else replace(obligation, active=True)
    orphans: List[PersistedEntry] = []
    for entry in persisted_entries:
        if entry.obligation_id != obligation.id:
            continue
        day = as_calendar_day(entry.due_date)
        if not any(True for _ in expand(probe, day, day, caps=caps)):
            orphans.append(entry)
    return sorted(orphans, key=lambda e: (as_calendar_day(e.due_date), e.id or ""))