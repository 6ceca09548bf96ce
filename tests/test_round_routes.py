from __future__ import annotations

from fastapi.testclient import TestClient

from app.rotation.errors import InvalidPayment
from services.metrics import counter_value
from services.rotation_errors import http_status_for


def _round_url(launched: dict, index: int = 0) -> str:
    tid = launched["tontine"]["id"]
    rid = launched["schedule"]["rounds"][index]["id"]
    return f"/v1/tontines/{tid}/rounds/{rid}"


def _payment_for(client: TestClient, url: str, member_id: str) -> dict:
    r = client.get(url)
    assert r.status_code == 200, r.text
    return next(p for p in r.json()["payments"] if p["member_id"] == member_id)


def test_round_detail(client: TestClient, launched: dict):
    r = client.get(_round_url(launched))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["round_number"] == 1
    assert body["status"] == "current"
    assert body["derived_status"] == "current"
    assert len(body["payments"]) == 3
    assert body["progress"] == {
        "round_id": body["id"],
        "paid_count": 0,
        "total_members": 3,
        "percentage": 0,
        "collected": 0,
        "pot": 150_000,
    }


def test_unknown_round(client: TestClient, launched: dict):
    tid = launched["tontine"]["id"]
    r = client.get(f"/v1/tontines/{tid}/rounds/nope/progress")
    assert r.status_code == 404, r.text
    assert r.json()["detail"] == "ROUND_NOT_FOUND"


def test_declare_then_confirm(client: TestClient, launched: dict):
    url = _round_url(launched)
    member = launched["members"][1]

    r = client.post(f"{url}/payments/declare", json={"member_id": member["id"], "method": "d17", "reference": "D17-88"})
    assert r.status_code == 200, r.text
    declared = r.json()
    assert declared["status"] == "paid"
    assert declared["confirmed_at"] is None

    r = client.post(f"{url}/payments/declare", json={"member_id": member["id"], "method": "d17"})
    assert r.status_code == 409, r.text
    assert r.json()["detail"] == "ALREADY_PAID"

    r = client.post(f"{url}/payments/{declared['id']}/confirm")
    assert r.status_code == 200, r.text
    first = r.json()["confirmed_at"]
    assert first

    r = client.post(f"{url}/payments/{declared['id']}/confirm")
    assert r.status_code == 200, r.text
    assert r.json()["confirmed_at"] == first

    r = client.get(f"{url}/progress")
    assert r.json()["paid_count"] == 1
    assert r.json()["percentage"] == 33
    assert counter_value("payment_events_total", {"event": "declared"}) == 1
    assert counter_value("payment_events_total", {"event": "confirmed"}) == 2


def test_confirm_undeclared(client: TestClient, launched: dict):
    url = _round_url(launched)
    pending = _payment_for(client, url, launched["members"][2]["id"])

    r = client.post(f"{url}/payments/{pending['id']}/confirm")
    assert r.status_code == 409, r.text
    assert r.json()["detail"] == "NOT_DECLARED"


def test_declare_for_stranger(client: TestClient, launched: dict):
    r = client.post(f"{_round_url(launched)}/payments/declare", json={"member_id": "stranger", "method": "cash"})
    assert r.status_code == 404, r.text
    assert r.json()["detail"] == "MEMBER_NOT_IN_ROUND"


def test_declare_blank_method_is_rejected(client: TestClient, launched: dict):
    url = _round_url(launched)
    member = launched["members"][1]

    r = client.post(f"{url}/payments/declare", json={"member_id": member["id"], "method": "   "})
    assert r.status_code == 422, r.text

    payment = _payment_for(client, url, member["id"])
    assert payment["status"] == "pending"

    r = client.post(f"{url}/payments/{payment['id']}/mark-paid", json={"method": "  "})
    assert r.status_code == 422, r.text
    assert _payment_for(client, url, member["id"])["status"] == "pending"


def test_invalid_payment_maps_to_422():
    assert http_status_for(InvalidPayment("payment method is required")) == 422


def test_mark_paid_everyone_fills_the_pot(client: TestClient, launched: dict):
    url = _round_url(launched)
    for member in launched["members"]:
        payment = _payment_for(client, url, member["id"])
        r = client.post(f"{url}/payments/{payment['id']}/mark-paid", json={"method": "cash"})
        assert r.status_code == 200, r.text
        assert r.json()["confirmed_at"]

    progress = client.get(f"{url}/progress").json()
    assert progress["percentage"] == 100
    assert progress["collected"] == progress["pot"]

    r = client.post(f"{url}/payments/{payment['id']}/mark-paid")
    assert r.status_code == 409, r.text
    assert r.json()["detail"] == "ALREADY_PAID"

    kinds = [i["kind"] for i in client.get(f"/v1/tontines/{launched['tontine']['id']}/activity").json()["items"]]
    assert kinds[:3] == ["payment_confirmed"] * 3


def test_round_detail_counts(client: TestClient, launched: dict):
    url = _round_url(launched)
    client.post(f"{url}/payments/declare", json={"member_id": launched["members"][0]["id"], "method": "cash"})

    body = client.get(url).json()
    assert body["counts"] == {"pending": 2, "paid": 1, "late": 0}
    assert body["unconfirmed"] == 1
