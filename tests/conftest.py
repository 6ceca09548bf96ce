# tests/conftest.py

import itertools
from datetime import datetime, timezone
from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient

from app.rotation import roster
from app.rotation.model import Tontine
from app.rotation.store import InMemoryTontineStore
from deps.store import get_store
from main import create_app
from services.metrics import reset_metrics


FIXED_NOW = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


# ---------------------------
# Domain builders
# ---------------------------

def make_tontine(
    *,
    total_members: int = 3,
    frequency: str = "monthly",
    contribution: int = 100_000,
    tontine_id: str = "t-1",
) -> Tontine:
    return Tontine(
        id=tontine_id,
        name="Dourou el Hay",
        contribution=contribution,
        frequency=frequency,
        total_members=total_members,
        created_at=FIXED_NOW,
    )


def fill_roster(tontine: Tontine, names: Optional[list[str]] = None) -> Tontine:
    names = names or [chr(ord("A") + i) for i in range(tontine.total_members)]
    for i, name in enumerate(names, start=1):
        roster.add_member(tontine, name=name, phone=str(i), member_id=name, now=FIXED_NOW)
    return tontine


def counter_ids(prefix: str = "id") -> Callable[[], str]:
    seq = itertools.count(1)
    return lambda: f"{prefix}-{next(seq)}"


# ---------------------------
# Client + store
# ---------------------------

@pytest.fixture(autouse=True)
def _clean_metrics():
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture()
def store() -> InMemoryTontineStore:
    return InMemoryTontineStore()


@pytest.fixture()
def client(store: InMemoryTontineStore) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_store] = lambda: store
    # Needed so tests can assert 500s instead of pytest re-raising server exceptions
    return TestClient(app, raise_server_exceptions=False)


def create_tontine_api(client: TestClient, **overrides) -> dict:
    payload = {
        "name": "Dourou el Hay",
        "contribution": 50_000,
        "frequency": "monthly",
        "total_members": 3,
    }
    payload.update(overrides)
    r = client.post("/v1/tontines", json=payload)
    assert r.status_code == 201, r.text
    return r.json()


def add_member_api(client: TestClient, tontine_id: str, name: str, phone: str) -> dict:
    r = client.post(f"/v1/tontines/{tontine_id}/members", json={"name": name, "phone": phone})
    assert r.status_code == 201, r.text
    return r.json()


@pytest.fixture()
def launched(client: TestClient) -> dict:
    """A 3-member monthly tontine launched on 2024-01-01, via the API."""
    t = create_tontine_api(client)
    members = [
        add_member_api(client, t["id"], name, phone)
        for name, phone in (("Amira", "+21620000001"), ("Bilel", "+21620000002"), ("Chayma", "+21620000003"))
    ]
    r = client.post(f"/v1/tontines/{t['id']}/launch", json={"start_date": "2024-01-01"})
    assert r.status_code == 200, r.text
    return {"tontine": t, "members": members, "schedule": r.json()}
