from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_user
from backend.app.db import get_db
from backend.app.models import User
from backend.app.services import appointment_service

router = APIRouter(prefix="/api", tags=["appointments"])


class AppointmentIn(BaseModel):
    scheduled_for: date
    note: str = Field("", max_length=2000)


class AppointmentUpdateIn(BaseModel):
    scheduled_for: Optional[date] = None
    note: Optional[str] = Field(None, max_length=2000)


class AppointmentOut(BaseModel):
    id: str
    obligation_id: str
    scheduled_for: date
    note: str
    done: bool
    created_at: datetime


@router.get("/obligations/{obligation_id}/appointments", response_model=List[AppointmentOut])
def list_appointments(
    obligation_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows = appointment_service.list_appointments(db, user.id, obligation_id)
    return [AppointmentOut(**appointment_service.appointment_to_dict(r)) for r in rows]


@router.post("/obligations/{obligation_id}/appointments", response_model=AppointmentOut, status_code=201)
def create_appointment(
    obligation_id: str,
    payload: AppointmentIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    row = appointment_service.create_appointment(
        db,
        user.id,
        obligation_id,
        scheduled_for=payload.scheduled_for,
        note=payload.note,
    )
    return AppointmentOut(**appointment_service.appointment_to_dict(row))


@router.get("/appointments/upcoming", response_model=List[AppointmentOut])
def upcoming_appointments(
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows = appointment_service.upcoming_appointments(db, user.id, today=date.today(), limit=limit)
    return [AppointmentOut(**appointment_service.appointment_to_dict(r)) for r in rows]


@router.patch("/appointments/{appointment_id}", response_model=AppointmentOut)
def update_appointment(
    appointment_id: str,
    payload: AppointmentUpdateIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    row = appointment_service.update_appointment(
        db,
        user.id,
        appointment_id,
        scheduled_for=payload.scheduled_for,
        note=payload.note,
    )
    return AppointmentOut(**appointment_service.appointment_to_dict(row))


@router.post("/appointments/{appointment_id}/toggle", response_model=AppointmentOut)
def toggle_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    row = appointment_service.toggle_done(db, user.id, appointment_id)
    return AppointmentOut(**appointment_service.appointment_to_dict(row))


@router.delete("/appointments/{appointment_id}", status_code=204)
def delete_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    appointment_service.delete_appointment(db, user.id, appointment_id)
