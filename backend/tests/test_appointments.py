import uuid
from datetime import date, timedelta

import pytest

pytest.importorskip("httpx")


def _headers():
    return {"X-User-Email": f"appt-{uuid.uuid4().hex[:10]}@example.com"}


def _obligation(api_client, headers):
    resp = api_client.post(
        "/api/obligations",
        json={
            "counterparty": "Padaria Central",
            "amount": "150.00",
            "start_date": "2024-01-10",
        },
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_appointment_lifecycle(api_client):
    headers = _headers()
    ob = _obligation(api_client, headers)
    soon = (date.today() + timedelta(days=3)).isoformat()

    created = api_client.post(
        f"/api/obligations/{ob['id']}/appointments",
        json={"scheduled_for": soon, "note": "  quarterly review  "},
        headers=headers,
    )
    assert created.status_code == 201, created.text
    appt = created.json()
    assert appt["note"] == "quarterly review"
    assert appt["done"] is False

    toggled = api_client.post(f"/api/appointments/{appt['id']}/toggle", headers=headers)
    assert toggled.json()["done"] is True

    patched = api_client.patch(f"/api/appointments/{appt['id']}", json={"note": "moved"}, headers=headers)
    assert patched.json()["note"] == "moved"
    assert patched.json()["scheduled_for"] == soon

    listed = api_client.get(f"/api/obligations/{ob['id']}/appointments", headers=headers).json()
    assert [a["id"] for a in listed] == [appt["id"]]

    upcoming = api_client.get("/api/appointments/upcoming", headers=headers).json()
    assert [a["id"] for a in upcoming] == [appt["id"]]

    assert api_client.delete(f"/api/appointments/{appt['id']}", headers=headers).status_code == 204
    assert api_client.get(f"/api/obligations/{ob['id']}/appointments", headers=headers).json() == []


def test_upcoming_skips_past_appointments(api_client):
    headers = _headers()
    ob = _obligation(api_client, headers)
    past = (date.today() - timedelta(days=1)).isoformat()
    api_client.post(f"/api/obligations/{ob['id']}/appointments", json={"scheduled_for": past}, headers=headers)

    assert api_client.get("/api/appointments/upcoming", headers=headers).json() == []


def test_appointments_are_owner_scoped(api_client):
    headers = _headers()
    ob = _obligation(api_client, headers)
    appt = api_client.post(
        f"/api/obligations/{ob['id']}/appointments",
        json={"scheduled_for": "2030-01-01"},
        headers=headers,
    ).json()

    other = _headers()
    assert api_client.post(f"/api/appointments/{appt['id']}/toggle", headers=other).status_code == 404
    assert api_client.get(f"/api/obligations/{ob['id']}/appointments", headers=other).status_code == 404
