from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Dict, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from backend.app.models import LedgerEntry
from backend.app.schedule.errors import ConflictingLedgerEntry, PersistenceError
from backend.app.schedule.expander import expand
from backend.app.schedule.records import STATUSES, Occurrence, PersistedEntry, ScheduledAmount
from backend.app.schedule.reconcile import reconcile
from backend.app.services import audit_service, ledger_store, obligation_service
from backend.app.services.projection_service import iteration_caps

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
# Reopening an occurrence that was never paid: no entry exists, none is created.
NOTHING_TO_REOPEN = "nothing_to_reopen"


@dataclass(frozen=True)
class ToggleResult:
    outcome: str
    occurrence: Occurrence
    entry: Optional[PersistedEntry] = None


def _today() -> date:
    return date.today()


def _entry_state(row: LedgerEntry) -> Dict[str, Any]:
    return {
        "entry_id": row.id,
        "due_date": row.due_date.isoformat(),
        "amount_cents": row.amount_cents,
        "status": row.status,
        "paid_date": row.paid_date.isoformat() if row.paid_date else None,
    }


def _status_fields(new_status: str, today: date) -> Dict[str, Any]:
    if new_status == "paid":
        return {"status": "paid", "paid_date": today}
    return {"status": "pending", "paid_date": None}


def set_status(
    db: Session,
    occurrence: Occurrence,
    new_status: str,
    *,
    owner_id: str,
    actor: str,
    today: Optional[date] = None,
) -> ToggleResult:
    """
    Move one (obligation, due_date) pair to new_status.

    State machine:
      [no entry] --paid--> [paid] --pending--> [pending] --paid--> [paid] ...
    Once materialized an entry is never deleted; reopening clears paid_date only.
    """
    if new_status not in STATUSES:
        raise ValueError(f"unknown status: {new_status!r}")
    today = today or _today()

    if not occurrence.persisted and new_status == "pending":
        logger.info(
            "Reopen requested for unpaid occurrence obligation=%s due_date=%s; nothing to do",
            occurrence.obligation_id,
            occurrence.due_date.isoformat(),
        )
        return ToggleResult(outcome=NOTHING_TO_REOPEN, occurrence=occurrence, entry=None)

    before: Optional[Dict[str, Any]] = None
    if not occurrence.persisted:
        try:
            row = ledger_store.insert_ledger_entry(
                db,
                obligation_id=occurrence.obligation_id,
                due_date=occurrence.due_date,
                amount_cents=occurrence.amount,
                status="paid",
                paid_date=today,
            )
            outcome = CREATED
        except ConflictingLedgerEntry:
            logger.info(
                "Ledger entry for obligation=%s due_date=%s appeared concurrently; applying as update",
                occurrence.obligation_id,
                occurrence.due_date.isoformat(),
            )
            existing = ledger_store.get_ledger_entry(db, occurrence.obligation_id, occurrence.due_date)
            if existing is None:
                raise PersistenceError("ledger entry conflict reported but no entry found")
            before = _entry_state(existing)
            row = ledger_store.update_ledger_entry(db, existing.id, **_status_fields(new_status, today))
            outcome = UPDATED
    else:
        existing = ledger_store.get_ledger_entry(db, occurrence.obligation_id, occurrence.due_date)
        if existing is None:
            raise PersistenceError(
                f"occurrence marked persisted but no ledger entry for {occurrence.obligation_id} "
                f"on {occurrence.due_date.isoformat()}"
            )
        before = _entry_state(existing)
        row = ledger_store.update_ledger_entry(db, existing.id, **_status_fields(new_status, today))
        outcome = UPDATED

    audit_service.record_entry_toggle(
        db,
        owner_id=owner_id,
        actor=actor,
        obligation_id=occurrence.obligation_id,
        due_date=occurrence.due_date,
        new_status=new_status,
        before=before,
        after=_entry_state(row),
    )

    entry = ledger_store.persisted_entry(row)
    updated = replace(
        occurrence,
        amount=entry.amount,
        status=entry.status,
        paid_date=entry.paid_date,
        persisted=True,
        entry_id=entry.id,
    )
    return ToggleResult(outcome=outcome, occurrence=updated, entry=entry)


def resolve_occurrence(db: Session, owner_id: str, obligation_id: str, due_date: date) -> Occurrence:
    """
    Rebuild the reconciled occurrence for one (obligation, due_date).

    A persisted entry is enough on its own, so orphaned entries stay togglable.
    Otherwise the date must be one the obligation actually generates; paused
    obligations keep their schedule here, as in the schedule view.
    """
    row = obligation_service.require_obligation(db, owner_id, obligation_id)
    terms = replace(ledger_store.obligation_terms(row), active=True)

    existing = ledger_store.get_ledger_entry(db, obligation_id, due_date)
    if existing is not None:
        entry = ledger_store.persisted_entry(existing)
        return reconcile(terms, [ScheduledAmount(entry.due_date, entry.amount)], [entry])[0]

    scheduled = list(expand(terms, due_date, due_date, caps=iteration_caps()))
    if not scheduled:
        raise HTTPException(
            status_code=404,
            detail=f"obligation has no occurrence on {due_date.isoformat()}",
        )
    return reconcile(terms, scheduled, [])[0]


def _mark(
    db: Session,
    *,
    owner_id: str,
    actor: str,
    obligation_id: str,
    due_date: date,
    new_status: str,
    today: Optional[date],
) -> ToggleResult:
    occurrence = resolve_occurrence(db, owner_id, obligation_id, due_date)
    result = set_status(db, occurrence, new_status, owner_id=owner_id, actor=actor, today=today)
    if result.outcome != NOTHING_TO_REOPEN:
        ledger_store.commit(db)
    return result


def mark_paid(
    db: Session,
    *,
    owner_id: str,
    actor: str,
    obligation_id: str,
    due_date: date,
    today: Optional[date] = None,
) -> ToggleResult:
    return _mark(
        db,
        owner_id=owner_id,
        actor=actor,
        obligation_id=obligation_id,
        due_date=due_date,
        new_status="paid",
        today=today,
    )


def mark_pending(
    db: Session,
    *,
    owner_id: str,
    actor: str,
    obligation_id: str,
    due_date: date,
    today: Optional[date] = None,
) -> ToggleResult:
    return _mark(
        db,
        owner_id=owner_id,
        actor=actor,
        obligation_id=obligation_id,
        due_date=due_date,
        new_status="pending",
        today=today,
    )
