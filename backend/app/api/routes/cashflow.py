from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_user
from backend.app.db import get_db
from backend.app.models import User
from backend.app.schedule.errors import PersistenceError
from backend.app.schedule.money import from_cents
from backend.app.schedule.records import CashFlowTotals, Occurrence
from backend.app.services import projection_service

router = APIRouter(prefix="/api/cashflow", tags=["cashflow"])


# -------------------------
# Schemas
# -------------------------

class CashFlowTotalsOut(BaseModel):
    revenue: Decimal
    expense: Decimal
    investment: Decimal
    balance: Decimal


class OccurrenceOut(BaseModel):
    obligation_id: str
    counterparty: str
    service_label: str
    kind: str
    due_date: date
    amount: Decimal
    status: str
    paid_date: Optional[date] = None
    persisted: bool
    entry_id: Optional[str] = None


class ProjectionIssueOut(BaseModel):
    obligation_id: str
    error: str


class ProjectionOut(BaseModel):
    owner_id: str
    start_date: date
    end_date: date
    realized_only: bool
    complete: bool
    errors: List[ProjectionIssueOut]
    totals: CashFlowTotalsOut
    occurrences: List[OccurrenceOut]


def totals_out(totals: CashFlowTotals) -> CashFlowTotalsOut:
    return CashFlowTotalsOut(
        revenue=from_cents(totals.revenue),
        expense=from_cents(totals.expense),
        investment=from_cents(totals.investment),
        balance=from_cents(totals.balance),
    )


def occurrence_out(occ: Occurrence) -> OccurrenceOut:
    return OccurrenceOut(
        obligation_id=occ.obligation_id,
        counterparty=occ.counterparty,
        service_label=occ.service_label,
        kind=occ.kind,
        due_date=occ.due_date,
        amount=from_cents(occ.amount),
        status=occ.status,
        paid_date=occ.paid_date,
        persisted=occ.persisted,
        entry_id=occ.entry_id,
    )


def persistence_unavailable(exc: PersistenceError) -> HTTPException:
    return HTTPException(
        status_code=503,
        detail={"error": "persistence_unavailable", "message": str(exc)},
    )


# -------------------------
# Endpoints
# -------------------------

@router.get("/projection", response_model=ProjectionOut)
def projection(
    start_date: date = Query(..., description="Inclusive start date (YYYY-MM-DD)"),
    end_date: date = Query(..., description="Inclusive end date (YYYY-MM-DD)"),
    realized_only: bool = Query(False, description="Count only paid occurrences in totals"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        result = projection_service.project(
            db,
            user.id,
            start_date,
            end_date,
            realized_only=realized_only,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise persistence_unavailable(exc) from exc

    return ProjectionOut(
        owner_id=result.owner_id,
        start_date=result.window_start,
        end_date=result.window_end,
        realized_only=result.realized_only,
        complete=result.complete,
        errors=[ProjectionIssueOut(obligation_id=i.obligation_id, error=i.error) for i in result.errors],
        totals=totals_out(result.totals),
        occurrences=[occurrence_out(o) for o in result.occurrences],
    )
