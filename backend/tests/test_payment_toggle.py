from datetime import date

import pytest
from fastapi import HTTPException
from sqlalchemy import func, select

from backend.app.models import AuditLog, LedgerEntry
from backend.app.services import ledger_store, payment_service


def _entry_count(db, obligation_id):
    return db.execute(
        select(func.count()).select_from(LedgerEntry).where(LedgerEntry.obligation_id == obligation_id)
    ).scalar_one()


def test_first_pay_materializes_entry(sqlite_session, owner, make_obligation):
    ob = make_obligation(start_date=date(2024, 1, 10), due_day=10)

    result = payment_service.mark_paid(
        sqlite_session,
        owner_id=owner.id,
        actor=owner.email,
        obligation_id=ob.id,
        due_date=date(2024, 2, 10),
        today=date(2024, 2, 12),
    )

    assert result.outcome == payment_service.CREATED
    assert result.occurrence.persisted is True
    assert result.occurrence.status == "paid"
    assert result.occurrence.paid_date == date(2024, 2, 12)
    assert result.entry.amount == 100000
    assert _entry_count(sqlite_session, ob.id) == 1


def test_second_pay_updates_same_entry(sqlite_session, owner, make_obligation):
    ob = make_obligation(start_date=date(2024, 1, 10), due_day=10)
    kwargs = dict(owner_id=owner.id, actor=owner.email, obligation_id=ob.id, due_date=date(2024, 1, 10))

    first = payment_service.mark_paid(sqlite_session, today=date(2024, 1, 10), **kwargs)
    second = payment_service.mark_paid(sqlite_session, today=date(2024, 1, 11), **kwargs)

    assert second.outcome == payment_service.UPDATED
    assert second.entry.id == first.entry.id
    assert second.entry.paid_date == date(2024, 1, 11)
    assert _entry_count(sqlite_session, ob.id) == 1


def test_reopen_keeps_row_and_clears_paid_date(sqlite_session, owner, make_obligation):
    ob = make_obligation(start_date=date(2024, 1, 10), due_day=10)
    kwargs = dict(owner_id=owner.id, actor=owner.email, obligation_id=ob.id, due_date=date(2024, 1, 10))

    paid = payment_service.mark_paid(sqlite_session, **kwargs)
    reopened = payment_service.mark_pending(sqlite_session, **kwargs)

    assert reopened.outcome == payment_service.UPDATED
    assert reopened.entry.id == paid.entry.id
    assert reopened.occurrence.status == "pending"
    assert reopened.occurrence.paid_date is None
    assert reopened.occurrence.persisted is True

    row = ledger_store.get_ledger_entry(sqlite_session, ob.id, date(2024, 1, 10))
    assert row is not None
    assert row.status == "pending"
    assert row.paid_date is None


def test_reopening_virtual_occurrence_is_a_no_op(sqlite_session, owner, make_obligation):
    ob = make_obligation(start_date=date(2024, 1, 10), due_day=10)

    result = payment_service.mark_pending(
        sqlite_session,
        owner_id=owner.id,
        actor=owner.email,
        obligation_id=ob.id,
        due_date=date(2024, 3, 10),
    )

    assert result.outcome == payment_service.NOTHING_TO_REOPEN
    assert result.entry is None
    assert result.occurrence.persisted is False
    assert _entry_count(sqlite_session, ob.id) == 0


def test_pay_on_date_without_occurrence_is_404(sqlite_session, owner, make_obligation):
    ob = make_obligation(start_date=date(2024, 1, 10), due_day=10)

    with pytest.raises(HTTPException) as excinfo:
        payment_service.mark_paid(
            sqlite_session,
            owner_id=owner.id,
            actor=owner.email,
            obligation_id=ob.id,
            due_date=date(2024, 1, 11),
        )
    assert excinfo.value.status_code == 404
    assert _entry_count(sqlite_session, ob.id) == 0


def test_other_owner_cannot_toggle(sqlite_session, owner, make_obligation):
    ob = make_obligation(start_date=date(2024, 1, 10), due_day=10)

    with pytest.raises(HTTPException) as excinfo:
        payment_service.mark_paid(
            sqlite_session,
            owner_id="someone-else",
            actor="x@example.com",
            obligation_id=ob.id,
            due_date=date(2024, 1, 10),
        )
    assert excinfo.value.status_code == 404


def test_concurrent_first_pay_falls_back_to_update(sqlite_session, owner, make_obligation):
    from backend.app.db import SessionLocal

    ob = make_obligation(start_date=date(2024, 1, 10), due_day=10)
    occurrence = payment_service.resolve_occurrence(sqlite_session, owner.id, ob.id, date(2024, 1, 10))
    assert occurrence.persisted is False
    sqlite_session.commit()

    # another writer materializes the same occurrence first
    other = SessionLocal()
    try:
        other.add(
            LedgerEntry(
                obligation_id=ob.id,
                due_date=date(2024, 1, 10),
                amount_cents=100000,
                status="pending",
                paid_date=None,
            )
        )
        other.commit()
    finally:
        other.close()

    result = payment_service.set_status(
        sqlite_session,
        occurrence,
        "paid",
        owner_id=owner.id,
        actor=owner.email,
        today=date(2024, 1, 15),
    )
    ledger_store.commit(sqlite_session)

    assert result.outcome == payment_service.UPDATED
    assert result.occurrence.status == "paid"
    assert result.occurrence.paid_date == date(2024, 1, 15)
    assert _entry_count(sqlite_session, ob.id) == 1


def test_persisted_amount_is_frozen_after_obligation_edit(sqlite_session, owner, make_obligation):
    ob = make_obligation(start_date=date(2024, 1, 10), due_day=10)
    payment_service.mark_paid(
        sqlite_session,
        owner_id=owner.id,
        actor=owner.email,
        obligation_id=ob.id,
        due_date=date(2024, 1, 10),
    )

    ob.amount_cents = 120000
    sqlite_session.commit()

    paid = payment_service.resolve_occurrence(sqlite_session, owner.id, ob.id, date(2024, 1, 10))
    virtual = payment_service.resolve_occurrence(sqlite_session, owner.id, ob.id, date(2024, 2, 10))
    assert paid.amount == 100000
    assert virtual.amount == 120000


def test_toggles_are_audited(sqlite_session, owner, make_obligation):
    ob = make_obligation(start_date=date(2024, 1, 10), due_day=10)
    kwargs = dict(owner_id=owner.id, actor=owner.email, obligation_id=ob.id, due_date=date(2024, 1, 10))
    payment_service.mark_paid(sqlite_session, **kwargs)
    payment_service.mark_pending(sqlite_session, **kwargs)

    events = sqlite_session.execute(
        select(AuditLog).where(AuditLog.obligation_id == ob.id).order_by(AuditLog.created_at.asc())
    ).scalars().all()
    assert [e.event_type for e in events] == ["ledger_entry.paid", "ledger_entry.reopened"]
    assert events[0].before_state is None
    assert events[0].due_date == date(2024, 1, 10)
    assert events[1].before_state["status"] == "paid"
    assert events[1].after_state["status"] == "pending"


def test_unknown_status_is_rejected(sqlite_session, owner, make_obligation):
    ob = make_obligation()
    occurrence = payment_service.resolve_occurrence(sqlite_session, owner.id, ob.id, date(2024, 1, 1))
    with pytest.raises(ValueError):
        payment_service.set_status(sqlite_session, occurrence, "void", owner_id=owner.id, actor=owner.email)
