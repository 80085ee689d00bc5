import uuid
from decimal import Decimal

import pytest

pytest.importorskip("httpx")


def _headers():
    return {"X-User-Email": f"api-{uuid.uuid4().hex[:10]}@example.com"}


def _create(api_client, headers, **overrides):
    payload = {
        "counterparty": "Padaria Central",
        "service_label": "Bookkeeping retainer",
        "category": "recurring",
        "kind": "revenue",
        "amount": "1000.00",
        "start_date": "2024-01-10",
        "periodicity": "monthly",
        "due_day": 10,
    }
    payload.update(overrides)
    return api_client.post("/api/obligations", json=payload, headers=headers)


def test_identity_header_is_required(api_client):
    resp = api_client.get("/api/obligations")
    assert resp.status_code == 401


def test_create_get_list_obligation(api_client):
    headers = _headers()
    resp = _create(api_client, headers)
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert Decimal(body["amount"]) == Decimal("1000.00")
    assert body["due_day"] == 10
    assert body["active"] is True

    fetched = api_client.get(f"/api/obligations/{body['id']}", headers=headers)
    assert fetched.status_code == 200
    assert fetched.json()["counterparty"] == "Padaria Central"

    listed = api_client.get("/api/obligations", params={"search": "bookkeeping"}, headers=headers)
    assert [row["id"] for row in listed.json()] == [body["id"]]


def test_one_off_is_normalized_on_create(api_client):
    headers = _headers()
    resp = _create(api_client, headers, category="one_off", start_date="2024-03-20", due_day=None, periodicity=None)
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["due_day"] == 20
    assert body["end_date"] == "2024-03-20"
    assert body["periodicity"] == "monthly"


def test_monthly_without_due_day_takes_start_day(api_client):
    headers = _headers()
    body = _create(api_client, headers, start_date="2024-01-31", due_day=None).json()
    assert body["due_day"] == 31


@pytest.mark.parametrize(
    "overrides",
    [
        {"due_day": 32},
        {"end_date": "2023-12-31"},
        {"periodicity": None},
    ],
)
def test_invalid_obligation_is_422(api_client, overrides):
    resp = _create(api_client, _headers(), **overrides)
    assert resp.status_code == 422


def test_non_positive_or_sub_cent_amount_is_rejected(api_client):
    headers = _headers()
    assert _create(api_client, headers, amount="0").status_code == 422
    assert _create(api_client, headers, amount="10.005").status_code == 422


def test_obligations_are_owner_scoped(api_client):
    created = _create(api_client, _headers()).json()
    resp = api_client.get(f"/api/obligations/{created['id']}", headers=_headers())
    assert resp.status_code == 404


def test_patch_keeps_paid_amount_and_allows_clearing_end_date(api_client):
    headers = _headers()
    created = _create(api_client, headers, end_date="2024-02-10").json()
    paid = api_client.post(f"/api/obligations/{created['id']}/occurrences/2024-01-10/paid", headers=headers)
    assert paid.status_code == 200, paid.text

    resp = api_client.patch(
        f"/api/obligations/{created['id']}",
        json={"amount": "1200.00", "end_date": None},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["end_date"] is None

    schedule = api_client.get(
        f"/api/obligations/{created['id']}/schedule",
        params={"start_date": "2024-01-01", "end_date": "2024-03-31"},
        headers=headers,
    ).json()
    amounts = [Decimal(o["amount"]) for o in schedule["occurrences"]]
    assert amounts == [Decimal("1000.00"), Decimal("1200.00"), Decimal("1200.00")]


def test_delete_obligation_removes_entries(api_client):
    headers = _headers()
    created = _create(api_client, headers).json()
    api_client.post(f"/api/obligations/{created['id']}/occurrences/2024-01-10/paid", headers=headers)

    resp = api_client.delete(f"/api/obligations/{created['id']}", headers=headers)
    assert resp.status_code == 204
    assert api_client.get(f"/api/obligations/{created['id']}", headers=headers).status_code == 404

    audit = api_client.get("/api/audit", params={"obligation_id": created["id"]}, headers=headers).json()
    assert [event["event_type"] for event in audit["events"]] == [
        "obligation.deleted",
        "ledger_entry.paid",
        "obligation.created",
    ]


def test_one_off_switched_to_recurring_drops_pinned_end_date(api_client):
    headers = _headers()
    created = _create(api_client, headers, category="one_off", start_date="2024-03-15", due_day=None).json()
    assert created["end_date"] == "2024-03-15"

    resp = api_client.patch(
        f"/api/obligations/{created['id']}",
        json={"category": "recurring", "periodicity": "monthly"},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["end_date"] is None
    assert body["due_day"] == 15

    schedule = api_client.get(
        f"/api/obligations/{created['id']}/schedule",
        params={"start_date": "2024-01-01", "end_date": "2024-12-31"},
        headers=headers,
    ).json()
    assert len(schedule["occurrences"]) == 10
    assert schedule["occurrences"][0]["due_date"] == "2024-03-15"
    assert schedule["complete"] is True


def test_one_off_switched_to_recurring_keeps_explicit_end_date(api_client):
    headers = _headers()
    created = _create(api_client, headers, category="one_off", start_date="2024-03-15", due_day=None).json()

    body = api_client.patch(
        f"/api/obligations/{created['id']}",
        json={"category": "recurring", "end_date": "2024-05-31", "due_day": 1},
        headers=headers,
    ).json()
    assert body["end_date"] == "2024-05-31"
    assert body["due_day"] == 1
