import uuid
from decimal import Decimal

import pytest

pytest.importorskip("httpx")

from backend.app.api.routes import cashflow
from backend.app.schedule.errors import PersistenceError


def _headers():
    return {"X-User-Email": f"cash-{uuid.uuid4().hex[:10]}@example.com"}


def _create(api_client, headers, **overrides):
    payload = {
        "counterparty": "Studio Norte",
        "category": "recurring",
        "kind": "revenue",
        "amount": "1000.00",
        "start_date": "2024-01-10",
        "end_date": "2024-03-10",
        "periodicity": "monthly",
        "due_day": 10,
    }
    payload.update(overrides)
    resp = api_client.post("/api/obligations", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _projection(api_client, headers, **params):
    query = {"start_date": "2024-01-01", "end_date": "2024-12-31"}
    query.update(params)
    return api_client.get("/api/cashflow/projection", params=query, headers=headers)


def test_projection_round_trip(api_client):
    headers = _headers()
    _create(api_client, headers)
    _create(api_client, headers, counterparty="Office Lease Co", kind="expense", amount="400.00", due_day=5,
            start_date="2024-01-05", end_date="2024-01-05", category="one_off")

    resp = _projection(api_client, headers)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["complete"] is True
    assert [o["due_date"] for o in body["occurrences"]] == ["2024-01-05", "2024-01-10", "2024-02-10", "2024-03-10"]
    assert Decimal(body["totals"]["revenue"]) == Decimal("3000.00")
    assert Decimal(body["totals"]["expense"]) == Decimal("400.00")
    assert Decimal(body["totals"]["balance"]) == Decimal("2600.00")


def test_mark_paid_then_pending_via_api(api_client):
    headers = _headers()
    ob = _create(api_client, headers)
    url = f"/api/obligations/{ob['id']}/occurrences/2024-02-10"

    paid = api_client.post(f"{url}/paid", headers=headers)
    assert paid.status_code == 200, paid.text
    assert paid.json()["outcome"] == "created"
    assert paid.json()["occurrence"]["status"] == "paid"

    realized = _projection(api_client, headers, realized_only="true").json()
    assert Decimal(realized["totals"]["revenue"]) == Decimal("1000.00")

    reopened = api_client.post(f"{url}/pending", headers=headers)
    assert reopened.json()["outcome"] == "updated"
    assert reopened.json()["entry"]["paid_date"] is None

    nothing = api_client.post(f"/api/obligations/{ob['id']}/occurrences/2024-03-10/pending", headers=headers)
    assert nothing.status_code == 200
    assert nothing.json()["outcome"] == "nothing_to_reopen"
    assert nothing.json()["entry"] is None


def test_pay_on_non_occurrence_date_is_404(api_client):
    headers = _headers()
    ob = _create(api_client, headers)
    resp = api_client.post(f"/api/obligations/{ob['id']}/occurrences/2024-02-11/paid", headers=headers)
    assert resp.status_code == 404


def test_reversed_window_is_400(api_client):
    resp = _projection(api_client, _headers(), start_date="2024-02-01", end_date="2024-01-01")
    assert resp.status_code == 400


def test_persistence_failure_is_503(api_client, monkeypatch):
    def _boom(*args, **kwargs):
        raise PersistenceError("database unavailable")

    monkeypatch.setattr(cashflow.projection_service, "project", _boom)
    resp = _projection(api_client, _headers())
    assert resp.status_code == 503
    assert resp.json()["detail"]["error"] == "persistence_unavailable"


def test_audit_lists_toggle_events(api_client):
    headers = _headers()
    ob = _create(api_client, headers)
    api_client.post(f"/api/obligations/{ob['id']}/occurrences/2024-01-10/paid", headers=headers)

    resp = api_client.get("/api/audit", params={"event_type": "ledger_entry.paid"}, headers=headers)
    assert resp.status_code == 200
    events = resp.json()["events"]
    assert len(events) == 1
    assert events[0]["due_date"] == "2024-01-10"
    assert events[0]["before"] is None
    assert events[0]["after"]["status"] == "paid"


def test_audit_pages_with_event_id_cursor(api_client):
    headers = _headers()
    ob = _create(api_client, headers)
    for due in ("2024-01-10", "2024-02-10", "2024-03-10"):
        api_client.post(f"/api/obligations/{ob['id']}/occurrences/{due}/paid", headers=headers)

    first = api_client.get("/api/audit", params={"limit": 2}, headers=headers).json()
    assert len(first["events"]) == 2
    assert first["next_cursor"] == first["events"][-1]["id"]

    second = api_client.get("/api/audit", params={"limit": 2, "cursor": first["next_cursor"]}, headers=headers).json()
    assert second["next_cursor"] is None
    seen = [e["id"] for e in first["events"] + second["events"]]
    assert len(seen) == len(set(seen)) == 4
    assert second["events"][-1]["event_type"] == "obligation.created"


def test_audit_rejects_unknown_event_type_and_foreign_cursor(api_client):
    headers = _headers()
    assert api_client.get("/api/audit", params={"event_type": "nope"}, headers=headers).status_code == 422
    assert api_client.get("/api/audit", params={"cursor": "missing-id"}, headers=headers).status_code == 400
