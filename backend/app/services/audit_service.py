"""
Append-only history of obligation edits and ledger entry toggles.

Every write path records one row per change with the before/after snapshot.
Rows outlive the obligation they describe, so obligation_id is not a foreign key.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from backend.app.models import AuditLog

OBLIGATION_CREATED = "obligation.created"
OBLIGATION_UPDATED = "obligation.updated"
OBLIGATION_DELETED = "obligation.deleted"
ENTRY_PAID = "ledger_entry.paid"
ENTRY_REOPENED = "ledger_entry.reopened"

OBLIGATION_EVENTS = {
    "created": OBLIGATION_CREATED,
    "updated": OBLIGATION_UPDATED,
    "deleted": OBLIGATION_DELETED,
}
EVENT_TYPES = (OBLIGATION_CREATED, OBLIGATION_UPDATED, OBLIGATION_DELETED, ENTRY_PAID, ENTRY_REOPENED)

Snapshot = Optional[Dict[str, Any]]


def record_obligation_change(
    db: Session,
    *,
    owner_id: str,
    actor: str,
    obligation_id: str,
    action: str,
    before: Snapshot = None,
    after: Snapshot = None,
) -> AuditLog:
    if action not in OBLIGATION_EVENTS:
        raise ValueError(f"unknown obligation action: {action!r}")
    row = AuditLog(
        owner_id=owner_id,
        actor=actor,
        event_type=OBLIGATION_EVENTS[action],
        obligation_id=obligation_id,
        before_state=before,
        after_state=after,
    )
    db.add(row)
    db.flush()
    return row


def record_entry_toggle(
    db: Session,
    *,
    owner_id: str,
    actor: str,
    obligation_id: str,
    due_date: date,
    new_status: str,
    before: Snapshot,
    after: Snapshot,
) -> AuditLog:
    """before is None when the toggle materialized the entry."""
    row = AuditLog(
        owner_id=owner_id,
        actor=actor,
        event_type=ENTRY_PAID if new_status == "paid" else ENTRY_REOPENED,
        obligation_id=obligation_id,
        due_date=due_date,
        before_state=before,
        after_state=after,
    )
    db.add(row)
    db.flush()
    return row


def _cursor_position(db: Session, owner_id: str, cursor: str) -> Tuple[datetime, str]:
    # cursor is the id of the last event on the previous page
    anchor = db.get(AuditLog, cursor)
    if anchor is None or anchor.owner_id != owner_id:
        raise HTTPException(status_code=400, detail="invalid cursor")
    return anchor.created_at, anchor.id


def obligation_history(
    db: Session,
    owner_id: str,
    *,
    obligation_id: Optional[str] = None,
    event_type: Optional[str] = None,
    cursor: Optional[str] = None,
    limit: int = 100,
) -> Tuple[List[AuditLog], Optional[str]]:
    """Newest first. Returns (events, next_cursor); next_cursor is None on the last page."""
    stmt = select(AuditLog).where(AuditLog.owner_id == owner_id)
    if obligation_id:
        stmt = stmt.where(AuditLog.obligation_id == obligation_id)
    if event_type:
        stmt = stmt.where(AuditLog.event_type == event_type)
    if cursor:
        created_at, anchor_id = _cursor_position(db, owner_id, cursor)
        stmt = stmt.where(
            or_(
                AuditLog.created_at < created_at,
                and_(AuditLog.created_at == created_at, AuditLog.id < anchor_id),
            )
        )
    stmt = stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit + 1)

    events = list(db.execute(stmt).scalars().all())
    if len(events) <= limit:
        return events, None
    page = events[:limit]
    return page, page[-1].id
