from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from backend.app.api.config import period_iteration_cap, weekly_iteration_cap
from backend.app.schedule.aggregate import aggregate
from backend.app.schedule.errors import InvalidObligation
from backend.app.schedule.expander import expand, expand_many, truncated_at, validate_obligation
from backend.app.schedule.records import (
    CashFlowTotals,
    ObligationTerms,
    Occurrence,
    PersistedEntry,
    ScheduledAmount,
)
from backend.app.schedule.reconcile import find_orphans, reconcile
from backend.app.services import ledger_store, obligation_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectionIssue:
    obligation_id: str
    error: str


@dataclass(frozen=True)
class Projection:
    """
    Reconciled occurrences and totals for one owner over one window.

    complete=False means at least one obligation is missing or cut short
    (see errors); totals then cover only what could be expanded.
    """
    owner_id: str
    window_start: date
    window_end: date
    realized_only: bool
    occurrences: List[Occurrence]
    totals: CashFlowTotals
    complete: bool = True
    errors: List[ProjectionIssue] = field(default_factory=list)


@dataclass(frozen=True)
class ObligationSchedule:
    obligation_id: str
    window_start: date
    window_end: date
    occurrences: List[Occurrence]
    totals: CashFlowTotals
    orphans: List[PersistedEntry]
    truncated_at: Optional[date] = None

    @property
    def complete(self) -> bool:
        return self.truncated_at is None


def iteration_caps() -> Dict[str, int]:
    period_cap = period_iteration_cap()
    return {
        "weekly": weekly_iteration_cap(),
        "monthly": period_cap,
        "annual": period_cap,
    }


def _truncation_issue(terms: ObligationTerms, cut: date) -> ProjectionIssue:
    return ProjectionIssue(
        obligation_id=terms.id,
        error=f"truncated at iteration cap; occurrences from {cut.isoformat()} are missing, page the window",
    )


def project(
    db: Session,
    owner_id: str,
    window_start: date,
    window_end: date,
    *,
    realized_only: bool = False,
) -> Projection:
    """
    Expand, reconcile and aggregate every active obligation of owner_id.

    Recomputed from current rows on every call; nothing is cached.
    PersistenceError from the store propagates untouched.
    """
    if window_start > window_end:
        raise ValueError("start_date must be on or before end_date")

    caps = iteration_caps()
    issues: List[ProjectionIssue] = []
    valid: List[ObligationTerms] = []

    for row in ledger_store.list_obligations(db, owner_id, active_only=True):
        terms = ledger_store.obligation_terms(row)
        try:
            validate_obligation(terms)
        except InvalidObligation as exc:
            logger.warning("Skipping invalid obligation %s for owner=%s: %s", row.id, owner_id, exc)
            issues.append(ProjectionIssue(obligation_id=row.id, error=str(exc)))
            continue
        cut = truncated_at(terms, window_start, window_end, caps=caps)
        if cut is not None:
            logger.warning(
                "Projection for owner=%s truncated: obligation %s capped before %s",
                owner_id,
                row.id,
                cut.isoformat(),
            )
            issues.append(_truncation_issue(terms, cut))
        valid.append(terms)

    # expand_many fixes the output order; reconcile runs per obligation
    order: List[Tuple[str, date]] = []
    scheduled: Dict[str, List[ScheduledAmount]] = {}
    by_id = {terms.id: terms for terms in valid}
    for terms, item in expand_many(valid, window_start, window_end, caps=caps):
        order.append((terms.id, item.due_date))
        scheduled.setdefault(terms.id, []).append(item)

    reconciled: Dict[Tuple[str, date], Occurrence] = {}
    for obligation_id, items in scheduled.items():
        entries = [
            ledger_store.persisted_entry(e)
            for e in ledger_store.list_ledger_entries(
                db, obligation_id, start_date=window_start, end_date=window_end
            )
        ]
        for occ in reconcile(by_id[obligation_id], items, entries):
            reconciled[(obligation_id, occ.due_date)] = occ

    occurrences = [reconciled[key] for key in order]
    return Projection(
        owner_id=owner_id,
        window_start=window_start,
        window_end=window_end,
        realized_only=realized_only,
        occurrences=occurrences,
        totals=aggregate(occurrences, window_start, window_end, realized_only=realized_only),
        complete=not issues,
        errors=issues,
    )


def obligation_schedule(
    db: Session,
    owner_id: str,
    obligation_id: str,
    window_start: date,
    window_end: date,
) -> ObligationSchedule:
    """
    Installment view for a single obligation.

    Paused (inactive) obligations still show their schedule here so their
    history stays reviewable. Orphans are listed across the whole ledger, not
    just the window.
    """
    if window_start > window_end:
        raise ValueError("start_date must be on or before end_date")

    row = obligation_service.require_obligation(db, owner_id, obligation_id)
    terms = replace(ledger_store.obligation_terms(row), active=True)
    caps = iteration_caps()

    scheduled = list(expand(terms, window_start, window_end, caps=caps))
    all_entries = [ledger_store.persisted_entry(e) for e in ledger_store.list_ledger_entries(db, row.id)]
    occurrences = reconcile(terms, scheduled, all_entries)

    return ObligationSchedule(
        obligation_id=row.id,
        window_start=window_start,
        window_end=window_end,
        occurrences=occurrences,
        totals=aggregate(occurrences, window_start, window_end),
        orphans=find_orphans(terms, all_entries, caps=caps),
        truncated_at=truncated_at(terms, window_start, window_end, caps=caps),
    )
