from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Literal, NamedTuple, Optional

# -------------------------
# Vocabulary
# -------------------------

Category = Literal["recurring", "one_off"]
Kind = Literal["revenue", "expense", "investment"]
Periodicity = Literal["weekly", "monthly", "annual"]
Status = Literal["pending", "paid"]

CATEGORIES = ("recurring", "one_off")
KINDS = ("revenue", "expense", "investment")
PERIODICITIES = ("weekly", "monthly", "annual")
STATUSES = ("pending", "paid")


# -------------------------
# Engine records
# -------------------------

@dataclass(frozen=True)
class ObligationTerms:
    """
    The billing/expense rule the engine expands.

    amount is in integer minor units (cents).
    periodicity/end_date/due_day are ignored for one_off obligations.
    """
    id: str
    owner_id: str
    counterparty: str
    category: Category
    kind: Kind
    amount: int
    start_date: date
    end_date: Optional[date] = None
    periodicity: Optional[Periodicity] = None
    due_day: Optional[int] = None
    active: bool = True
    service_label: str = ""


@dataclass(frozen=True)
class PersistedEntry:
    id: Optional[str]
    obligation_id: str
    due_date: date
    amount: int
    status: Status
    paid_date: Optional[date] = None


class ScheduledAmount(NamedTuple):
    due_date: date
    amount: int


@dataclass(frozen=True)
class Occurrence:
    """
    One reconciled occurrence.

    persisted=False means the occurrence is virtual (no ledger entry yet).
    """
    obligation_id: str
    counterparty: str
    service_label: str
    kind: Kind
    due_date: date
    amount: int
    status: Status
    paid_date: Optional[date] = None
    persisted: bool = False
    entry_id: Optional[str] = None


@dataclass(frozen=True)
class CashFlowTotals:
    revenue: int = 0
    expense: int = 0
    investment: int = 0
    balance: int = 0
