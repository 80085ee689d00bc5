from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.models import Obligation, utcnow
from backend.app.schedule.errors import InvalidObligation
from backend.app.schedule.expander import validate_obligation
from backend.app.schedule.money import from_cents
from backend.app.schedule.records import ObligationTerms
from backend.app.services import audit_service, ledger_store

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "counterparty",
    "service_label",
    "category",
    "kind",
    "amount_cents",
    "start_date",
    "end_date",
    "periodicity",
    "due_day",
    "active",
)


def require_obligation(db: Session, owner_id: str, obligation_id: str) -> Obligation:
    row = db.get(Obligation, obligation_id)
    if not row or row.owner_id != owner_id:
        raise HTTPException(status_code=404, detail="obligation not found")
    return row


def normalize_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Storage normalization:
    - one_off: due_day := day(start_date), end_date := start_date, periodicity := monthly
    - monthly/annual without due_day: due_day := day(start_date)
    """
    out = dict(fields)
    start: Optional[date] = out.get("start_date")
    if out.get("counterparty") is not None:
        out["counterparty"] = out["counterparty"].strip()
    if out.get("service_label") is not None:
        out["service_label"] = out["service_label"].strip()

    if out.get("category") == "one_off" and start is not None:
        out["due_day"] = start.day
        out["end_date"] = start
        out["periodicity"] = "monthly"
    elif out.get("periodicity") in ("monthly", "annual") and out.get("due_day") is None and start is not None:
        out["due_day"] = start.day
    return out


def _validated(fields: Dict[str, Any], *, obligation_id: str, owner_id: str) -> Dict[str, Any]:
    normalized = normalize_fields(fields)
    if not normalized.get("counterparty"):
        raise InvalidObligation("counterparty is required")
    validate_obligation(
        ObligationTerms(
            id=obligation_id,
            owner_id=owner_id,
            counterparty=normalized["counterparty"],
            category=normalized.get("category"),
            kind=normalized.get("kind"),
            amount=normalized.get("amount_cents"),
            start_date=normalized.get("start_date"),
            end_date=normalized.get("end_date"),
            periodicity=normalized.get("periodicity"),
            due_day=normalized.get("due_day"),
            active=bool(normalized.get("active", True)),
            service_label=normalized.get("service_label") or "",
        )
    )
    return normalized


def obligation_state(row: Obligation) -> Dict[str, Any]:
    return {
        "counterparty": row.counterparty,
        "service_label": row.service_label,
        "category": row.category,
        "kind": row.kind,
        "amount_cents": row.amount_cents,
        "start_date": row.start_date.isoformat() if row.start_date else None,
        "end_date": row.end_date.isoformat() if row.end_date else None,
        "periodicity": row.periodicity,
        "due_day": row.due_day,
        "active": bool(row.active),
    }


def obligation_to_dict(row: Obligation) -> Dict[str, Any]:
    return {
        "id": row.id,
        "owner_id": row.owner_id,
        "counterparty": row.counterparty,
        "service_label": row.service_label,
        "category": row.category,
        "kind": row.kind,
        "amount": from_cents(row.amount_cents),
        "start_date": row.start_date,
        "end_date": row.end_date,
        "periodicity": row.periodicity,
        "due_day": row.due_day,
        "active": bool(row.active),
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }


def list_obligations(
    db: Session,
    owner_id: str,
    *,
    category: Optional[str] = None,
    search: Optional[str] = None,
) -> List[Obligation]:
    stmt = select(Obligation).where(Obligation.owner_id == owner_id)
    if category:
        stmt = stmt.where(Obligation.category == category)
    rows = db.execute(stmt.order_by(Obligation.counterparty.asc(), Obligation.id.asc())).scalars().all()
    if search:
        needle = search.strip().lower()
        rows = [
            r for r in rows
            if needle in (r.counterparty or "").lower() or needle in (r.service_label or "").lower()
        ]
    return list(rows)


def create_obligation(
    db: Session,
    *,
    owner_id: str,
    actor: str,
    fields: Dict[str, Any],
) -> Obligation:
    fields = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
    fields.setdefault("active", True)
    fields.setdefault("service_label", "")
    normalized = _validated(fields, obligation_id="", owner_id=owner_id)

    row = Obligation(owner_id=owner_id, **normalized)
    db.add(row)
    db.flush()
    audit_service.record_obligation_change(
        db,
        owner_id=owner_id,
        actor=actor,
        obligation_id=row.id,
        action="created",
        after=obligation_state(row),
    )
    ledger_store.commit(db)
    db.refresh(row)
    logger.info("Created %s obligation %s for owner=%s", row.category, row.id, owner_id)
    return row


def update_obligation(
    db: Session,
    *,
    owner_id: str,
    obligation_id: str,
    actor: str,
    changes: Dict[str, Any],
) -> Obligation:
    """
    Apply a partial edit. Existing ledger entries keep their amounts; entries
    whose dates the edited rule no longer generates become orphans.
    """
    row = require_obligation(db, owner_id, obligation_id)
    before = obligation_state(row)

    merged = {field: getattr(row, field) for field in EDITABLE_FIELDS}
    if row.category == "one_off" and changes.get("category") == "recurring":
        # end_date/due_day were pinned to start_date by one_off normalization
        for pinned in ("end_date", "due_day"):
            merged[pinned] = None
    merged.update({k: v for k, v in changes.items() if k in EDITABLE_FIELDS})
    normalized = _validated(merged, obligation_id=row.id, owner_id=owner_id)

    for key, value in normalized.items():
        setattr(row, key, value)
    row.updated_at = utcnow()
    db.flush()
    audit_service.record_obligation_change(
        db,
        owner_id=owner_id,
        actor=actor,
        obligation_id=row.id,
        action="updated",
        before=before,
        after=obligation_state(row),
    )
    ledger_store.commit(db)
    db.refresh(row)
    return row


def delete_obligation(db: Session, *, owner_id: str, obligation_id: str, actor: str) -> None:
    """Deletes the obligation together with its ledger entries and appointments."""
    row = require_obligation(db, owner_id, obligation_id)
    before = obligation_state(row)
    db.delete(row)
    db.flush()
    audit_service.record_obligation_change(
        db,
        owner_id=owner_id,
        actor=actor,
        obligation_id=obligation_id,
        action="deleted",
        before=before,
    )
    ledger_store.commit(db)
