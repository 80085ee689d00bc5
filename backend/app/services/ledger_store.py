"""
Persistence collaborator for the schedule engine.

Owns every SQLAlchemy call the engine's read and write paths need and maps
driver failures onto the engine's error vocabulary:
- IntegrityError on a ledger insert -> ConflictingLedgerEntry
- any other SQLAlchemyError        -> PersistenceError
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.models import LedgerEntry, Obligation, utcnow
from backend.app.schedule.errors import ConflictingLedgerEntry, PersistenceError
from backend.app.schedule.records import ObligationTerms, PersistedEntry

logger = logging.getLogger(__name__)

UPDATABLE_ENTRY_FIELDS = ("status", "paid_date", "amount_cents")


# -------------------------
# Row -> engine record
# -------------------------

def obligation_terms(row: Obligation) -> ObligationTerms:
    return ObligationTerms(
        id=row.id,
        owner_id=row.owner_id,
        counterparty=row.counterparty,
        category=row.category,
        kind=row.kind,
        amount=row.amount_cents,
        start_date=row.start_date,
        end_date=row.end_date,
        periodicity=row.periodicity,
        due_day=row.due_day,
        active=bool(row.active),
        service_label=row.service_label or "",
    )


def persisted_entry(row: LedgerEntry) -> PersistedEntry:
    return PersistedEntry(
        id=row.id,
        obligation_id=row.obligation_id,
        due_date=row.due_date,
        amount=row.amount_cents,
        status=row.status,
        paid_date=row.paid_date,
    )


# -------------------------
# Reads
# -------------------------

def list_obligations(db: Session, owner_id: str, *, active_only: bool = False) -> List[Obligation]:
    stmt = select(Obligation).where(Obligation.owner_id == owner_id)
    if active_only:
        stmt = stmt.where(Obligation.active.is_(True))
    stmt = stmt.order_by(Obligation.counterparty.asc(), Obligation.id.asc())
    try:
        return list(db.execute(stmt).scalars().all())
    except SQLAlchemyError as exc:
        raise PersistenceError(f"failed to list obligations for owner {owner_id}") from exc


def list_ledger_entries(
    db: Session,
    obligation_id: str,
    *,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[LedgerEntry]:
    stmt = select(LedgerEntry).where(LedgerEntry.obligation_id == obligation_id)
    if start_date is not None:
        stmt = stmt.where(LedgerEntry.due_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(LedgerEntry.due_date <= end_date)
    stmt = stmt.order_by(LedgerEntry.due_date.asc(), LedgerEntry.id.asc())
    try:
        return list(db.execute(stmt).scalars().all())
    except SQLAlchemyError as exc:
        raise PersistenceError(f"failed to list ledger entries for obligation {obligation_id}") from exc


def get_ledger_entry(db: Session, obligation_id: str, due_date: date) -> Optional[LedgerEntry]:
    stmt = select(LedgerEntry).where(
        LedgerEntry.obligation_id == obligation_id,
        LedgerEntry.due_date == due_date,
    )
    try:
        return db.execute(stmt).scalars().first()
    except SQLAlchemyError as exc:
        raise PersistenceError(
            f"failed to read ledger entry for obligation {obligation_id} on {due_date.isoformat()}"
        ) from exc


# -------------------------
# Writes
# -------------------------

def insert_ledger_entry(
    db: Session,
    *,
    obligation_id: str,
    due_date: date,
    amount_cents: int,
    status: str,
    paid_date: Optional[date],
) -> LedgerEntry:
    row = LedgerEntry(
        obligation_id=obligation_id,
        due_date=due_date,
        amount_cents=amount_cents,
        status=status,
        paid_date=paid_date,
    )
    db.add(row)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictingLedgerEntry(obligation_id, due_date) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError("failed to insert ledger entry") from exc
    return row


def update_ledger_entry(db: Session, entry_id: str, **fields: Any) -> LedgerEntry:
    unknown = set(fields) - set(UPDATABLE_ENTRY_FIELDS)
    if unknown:
        raise ValueError(f"cannot update ledger entry fields: {sorted(unknown)}")

    try:
        row = db.get(LedgerEntry, entry_id)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"failed to read ledger entry {entry_id}") from exc
    if row is None:
        raise PersistenceError(f"ledger entry {entry_id} does not exist")

    for key, value in fields.items():
        setattr(row, key, value)
    row.updated_at = utcnow()
    try:
        db.flush()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"failed to update ledger entry {entry_id}") from exc
    return row


def commit(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError("failed to commit") from exc
