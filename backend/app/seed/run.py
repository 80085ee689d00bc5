from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.models import Obligation, User

DEMO_OBLIGATIONS = [
    # counterparty, service_label, category, kind, amount_cents, periodicity, due_day, start offset months
    ("Padaria Central", "Bookkeeping retainer", "recurring", "revenue", 150000, "monthly", 10, 0),
    ("Studio Norte", "Website hosting", "recurring", "revenue", 12000, "monthly", 31, 0),
    ("Office Lease Co", "Office rent", "recurring", "expense", 90000, "monthly", 5, 0),
    ("Cleaning Crew", "Weekly cleaning", "recurring", "expense", 8000, "weekly", None, 0),
    ("Broker Fund", "Index fund contribution", "recurring", "investment", 50000, "monthly", 15, 0),
    ("Domain Registrar", "Domain renewal", "recurring", "expense", 6000, "annual", 1, 0),
    ("Mercado Azul", "Tax setup consult", "one_off", "revenue", 40000, None, None, 1),
]


def _month_start(today: date, offset: int) -> date:
    index = today.year * 12 + (today.month - 1) + offset
    return date(index // 12, index % 12 + 1, 1)


def seed_demo_owner(db: Session, email: str = "demo@example.com", *, today: date | None = None) -> User:
    """Create (or reuse) a demo owner with a small book of obligations. Idempotent per owner."""
    today = today or date.today()
    owner = db.execute(select(User).where(User.email == email)).scalars().first()
    if owner is None:
        owner = User(email=email, name=email.split("@")[0])
        db.add(owner)
        db.flush()

    existing = {
        r.counterparty
        for r in db.execute(select(Obligation).where(Obligation.owner_id == owner.id)).scalars()
    }
    for counterparty, label, category, kind, cents, periodicity, due_day, offset in DEMO_OBLIGATIONS:
        if counterparty in existing:
            continue
        start = _month_start(today, offset)
        if category == "one_off":
            start = start.replace(day=20)
            periodicity, due_day = "monthly", start.day
        db.add(
            Obligation(
                owner_id=owner.id,
                counterparty=counterparty,
                service_label=label,
                category=category,
                kind=kind,
                amount_cents=cents,
                start_date=start,
                end_date=start if category == "one_off" else None,
                periodicity=periodicity,
                due_day=due_day,
                active=True,
            )
        )
    db.commit()
    return owner
