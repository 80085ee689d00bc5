from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_user
from backend.app.api.routes.cashflow import persistence_unavailable
from backend.app.db import get_db
from backend.app.models import User
from backend.app.schedule.errors import InvalidObligation, PersistenceError
from backend.app.schedule.money import to_cents
from backend.app.services import obligation_service

router = APIRouter(prefix="/api/obligations", tags=["obligations"])

CategoryIn = Literal["recurring", "one_off"]
KindIn = Literal["revenue", "expense", "investment"]
PeriodicityIn = Literal["weekly", "monthly", "annual"]


class ObligationCreateIn(BaseModel):
    counterparty: str = Field(min_length=1, max_length=200)
    service_label: str = Field("", max_length=200)
    category: CategoryIn = "recurring"
    kind: KindIn = "revenue"
    amount: Decimal = Field(gt=0, decimal_places=2)
    start_date: date
    end_date: Optional[date] = None
    periodicity: Optional[PeriodicityIn] = "monthly"
    due_day: Optional[int] = None
    active: bool = True


class ObligationUpdateIn(BaseModel):
    counterparty: Optional[str] = Field(None, min_length=1, max_length=200)
    service_label: Optional[str] = Field(None, max_length=200)
    category: Optional[CategoryIn] = None
    kind: Optional[KindIn] = None
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    periodicity: Optional[PeriodicityIn] = None
    due_day: Optional[int] = None
    active: Optional[bool] = None


class ObligationOut(BaseModel):
    id: str
    owner_id: str
    counterparty: str
    service_label: str
    category: str
    kind: str
    amount: Decimal
    start_date: date
    end_date: Optional[date] = None
    periodicity: Optional[str] = None
    due_day: Optional[int] = None
    active: bool
    created_at: datetime
    updated_at: datetime


def _to_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    fields = dict(payload)
    if "amount" in fields:
        amount = fields.pop("amount")
        fields["amount_cents"] = to_cents(amount) if amount is not None else None
    return fields


@router.post("", response_model=ObligationOut, status_code=201)
def create_obligation(
    payload: ObligationCreateIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        row = obligation_service.create_obligation(
            db,
            owner_id=user.id,
            actor=user.email,
            fields=_to_fields(payload.model_dump()),
        )
    except InvalidObligation as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise persistence_unavailable(exc) from exc
    return ObligationOut(**obligation_service.obligation_to_dict(row))


@router.get("", response_model=List[ObligationOut])
def list_obligations(
    category: Optional[CategoryIn] = Query(None),
    search: Optional[str] = Query(None, description="Matches counterparty or service label"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows = obligation_service.list_obligations(db, user.id, category=category, search=search)
    return [ObligationOut(**obligation_service.obligation_to_dict(r)) for r in rows]


@router.get("/{obligation_id}", response_model=ObligationOut)
def get_obligation(
    obligation_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    row = obligation_service.require_obligation(db, user.id, obligation_id)
    return ObligationOut(**obligation_service.obligation_to_dict(row))


@router.patch("/{obligation_id}", response_model=ObligationOut)
def update_obligation(
    obligation_id: str,
    payload: ObligationUpdateIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    # explicit nulls are kept so end_date can be cleared
    changes = _to_fields(payload.model_dump(exclude_unset=True))
    try:
        row = obligation_service.update_obligation(
            db,
            owner_id=user.id,
            obligation_id=obligation_id,
            actor=user.email,
            changes=changes,
        )
    except InvalidObligation as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise persistence_unavailable(exc) from exc
    return ObligationOut(**obligation_service.obligation_to_dict(row))


@router.delete("/{obligation_id}", status_code=204)
def delete_obligation(
    obligation_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        obligation_service.delete_obligation(
            db,
            owner_id=user.id,
            obligation_id=obligation_id,
            actor=user.email,
        )
    except PersistenceError as exc:
        raise persistence_unavailable(exc) from exc
