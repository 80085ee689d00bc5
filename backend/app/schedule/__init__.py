"""
Schedule - recurrence-based financial schedule engine.

Responsibility:
- Expand obligation rules into dated monetary occurrences over a window.
- Reconcile generated occurrences against persisted ledger entries.
- Aggregate reconciled occurrences into cash-flow totals.

Design notes:
- Everything in this package is PURE:
  - no database sessions
  - no clock reads
  - no global state mutation
- Same inputs must produce the same outputs (reconciliation relies on it).
"""
