from __future__ import annotations

from datetime import date


class InvalidObligation(ValueError):
    pass


class ConflictingLedgerEntry(RuntimeError):
    """A ledger entry already exists for (obligation_id, due_date)."""

    def __init__(self, obligation_id: str, due_date: date):
        super().__init__(f"ledger entry already exists for {obligation_id} on {due_date.isoformat()}")
        self.obligation_id = obligation_id
        self.due_date = due_date


class PersistenceError(RuntimeError):
    pass
