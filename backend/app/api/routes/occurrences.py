from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_user
from backend.app.api.routes.cashflow import (
    CashFlowTotalsOut,
    OccurrenceOut,
    occurrence_out,
    persistence_unavailable,
    totals_out,
)
from backend.app.db import get_db
from backend.app.models import User
from backend.app.schedule.errors import InvalidObligation, PersistenceError
from backend.app.schedule.money import from_cents
from backend.app.services import payment_service, projection_service

router = APIRouter(prefix="/api/obligations", tags=["occurrences"])


class LedgerEntryOut(BaseModel):
    id: Optional[str] = None
    obligation_id: str
    due_date: date
    amount: Decimal
    status: str
    paid_date: Optional[date] = None


class ToggleOut(BaseModel):
    outcome: str
    occurrence: OccurrenceOut
    entry: Optional[LedgerEntryOut] = None


class ObligationScheduleOut(BaseModel):
    obligation_id: str
    start_date: date
    end_date: date
    complete: bool
    truncated_at: Optional[date] = None
    totals: CashFlowTotalsOut
    occurrences: List[OccurrenceOut]
    orphans: List[LedgerEntryOut]


def _entry_out(entry) -> LedgerEntryOut:
    return LedgerEntryOut(
        id=entry.id,
        obligation_id=entry.obligation_id,
        due_date=entry.due_date,
        amount=from_cents(entry.amount),
        status=entry.status,
        paid_date=entry.paid_date,
    )


def _toggle_out(result: payment_service.ToggleResult) -> ToggleOut:
    return ToggleOut(
        outcome=result.outcome,
        occurrence=occurrence_out(result.occurrence),
        entry=_entry_out(result.entry) if result.entry else None,
    )


@router.get("/{obligation_id}/schedule", response_model=ObligationScheduleOut)
def obligation_schedule(
    obligation_id: str,
    start_date: date = Query(..., description="Inclusive start date (YYYY-MM-DD)"),
    end_date: date = Query(..., description="Inclusive end date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        result = projection_service.obligation_schedule(db, user.id, obligation_id, start_date, end_date)
    except InvalidObligation as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise persistence_unavailable(exc) from exc

    return ObligationScheduleOut(
        obligation_id=result.obligation_id,
        start_date=result.window_start,
        end_date=result.window_end,
        complete=result.complete,
        truncated_at=result.truncated_at,
        totals=totals_out(result.totals),
        occurrences=[occurrence_out(o) for o in result.occurrences],
        orphans=[_entry_out(e) for e in result.orphans],
    )


@router.post("/{obligation_id}/occurrences/{due_date}/paid", response_model=ToggleOut)
def mark_paid(
    obligation_id: str,
    due_date: date,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        result = payment_service.mark_paid(
            db,
            owner_id=user.id,
            actor=user.email,
            obligation_id=obligation_id,
            due_date=due_date,
        )
    except InvalidObligation as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise persistence_unavailable(exc) from exc
    return _toggle_out(result)


@router.post("/{obligation_id}/occurrences/{due_date}/pending", response_model=ToggleOut)
def mark_pending(
    obligation_id: str,
    due_date: date,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        result = payment_service.mark_pending(
            db,
            owner_id=user.id,
            actor=user.email,
            obligation_id=obligation_id,
            due_date=due_date,
        )
    except InvalidObligation as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise persistence_unavailable(exc) from exc
    return _toggle_out(result)
