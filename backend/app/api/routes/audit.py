from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_user
from backend.app.db import get_db
from backend.app.models import AuditLog, User
from backend.app.services import audit_service

router = APIRouter(prefix="/api/audit", tags=["audit"])

EventTypeIn = Literal[
    "obligation.created",
    "obligation.updated",
    "obligation.deleted",
    "ledger_entry.paid",
    "ledger_entry.reopened",
]


class AuditEventOut(BaseModel):
    id: str
    event_type: str
    actor: str
    obligation_id: Optional[str] = None
    due_date: Optional[date] = None
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    created_at: datetime


class AuditPageOut(BaseModel):
    events: List[AuditEventOut]
    next_cursor: Optional[str] = None


def _event_out(row: AuditLog) -> AuditEventOut:
    return AuditEventOut(
        id=row.id,
        event_type=row.event_type,
        actor=row.actor,
        obligation_id=row.obligation_id,
        due_date=row.due_date,
        before=row.before_state,
        after=row.after_state,
        created_at=row.created_at,
    )


@router.get("", response_model=AuditPageOut)
def audit_history(
    obligation_id: Optional[str] = Query(None),
    event_type: Optional[EventTypeIn] = Query(None),
    cursor: Optional[str] = Query(None, description="Id of the last event on the previous page"),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    events, next_cursor = audit_service.obligation_history(
        db,
        user.id,
        obligation_id=obligation_id,
        event_type=event_type,
        cursor=cursor,
        limit=limit,
    )
    return AuditPageOut(events=[_event_out(e) for e in events], next_cursor=next_cursor)
