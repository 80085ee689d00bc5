from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.models import Appointment, Obligation
from backend.app.services import ledger_store, obligation_service


def appointment_to_dict(row: Appointment) -> Dict[str, Any]:
    return {
        "id": row.id,
        "obligation_id": row.obligation_id,
        "scheduled_for": row.scheduled_for,
        "note": row.note,
        "done": bool(row.done),
        "created_at": row.created_at,
    }


def require_appointment(db: Session, owner_id: str, appointment_id: str) -> Appointment:
    row = db.get(Appointment, appointment_id)
    if not row:
        raise HTTPException(status_code=404, detail="appointment not found")
    obligation = db.get(Obligation, row.obligation_id)
    if not obligation or obligation.owner_id != owner_id:
        raise HTTPException(status_code=404, detail="appointment not found")
    return row


def list_appointments(db: Session, owner_id: str, obligation_id: str) -> List[Appointment]:
    obligation_service.require_obligation(db, owner_id, obligation_id)
    stmt = (
        select(Appointment)
        .where(Appointment.obligation_id == obligation_id)
        .order_by(Appointment.scheduled_for.asc(), Appointment.id.asc())
    )
    return list(db.execute(stmt).scalars().all())


def create_appointment(
    db: Session,
    owner_id: str,
    obligation_id: str,
    *,
    scheduled_for: date,
    note: str = "",
) -> Appointment:
    obligation_service.require_obligation(db, owner_id, obligation_id)
    row = Appointment(
        obligation_id=obligation_id,
        scheduled_for=scheduled_for,
        note=(note or "").strip(),
        done=False,
    )
    db.add(row)
    ledger_store.commit(db)
    db.refresh(row)
    return row


def update_appointment(
    db: Session,
    owner_id: str,
    appointment_id: str,
    *,
    scheduled_for: Optional[date] = None,
    note: Optional[str] = None,
) -> Appointment:
    row = require_appointment(db, owner_id, appointment_id)
    if scheduled_for is not None:
        row.scheduled_for = scheduled_for
    if note is not None:
        row.note = note.strip()
    ledger_store.commit(db)
    db.refresh(row)
    return row


def toggle_done(db: Session, owner_id: str, appointment_id: str) -> Appointment:
    row = require_appointment(db, owner_id, appointment_id)
    row.done = not bool(row.done)
    ledger_store.commit(db)
    db.refresh(row)
    return row


def delete_appointment(db: Session, owner_id: str, appointment_id: str) -> None:
    row = require_appointment(db, owner_id, appointment_id)
    db.delete(row)
    ledger_store.commit(db)


def upcoming_appointments(
    db: Session,
    owner_id: str,
    *,
    today: date,
    limit: int = 5,
) -> List[Appointment]:
    """Appointments on or after today across the owner's obligations, soonest first."""
    stmt = (
        select(Appointment)
        .join(Obligation, Obligation.id == Appointment.obligation_id)
        .where(Obligation.owner_id == owner_id, Appointment.scheduled_for >= today)
        .order_by(Appointment.scheduled_for.asc(), Appointment.id.asc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())
