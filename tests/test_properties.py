from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import SQLModel, create_engine

from landlordos import main as app_main
from landlordos.infra import audit, db


@pytest.fixture()
def property_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    test_engine = create_engine(
        f"sqlite:///{tmp_path / 'property_test.db'}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(audit, "engine", test_engine)
    client = TestClient(app_main.app)
    yield client
    client.close()


def _owner(client: TestClient) -> dict[str, str]:
    response = client.post(
        "/api/auth/register",
        json={"email": "owner@example.com", "password": "owner-pass", "first_name": "O", "last_name": "W"},
    )
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def _create_property(client: TestClient, headers: dict[str, str], address: str, city: str = "Austin") -> str:
    response = client.post(
        "/api/properties",
        json={
            "address": address,
            "city": city,
            "state": "TX",
            "zip_code": "78701",
            "type": "DUPLEX",
            "bedrooms": 3,
            "bathrooms": 2.5,
        },
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["id"]


def _create_tenant(client: TestClient, headers: dict[str, str], email: str) -> str:
    response = client.post(
        "/api/tenants",
        json={"first_name": "Tia", "last_name": "Tenant", "email": email, "phone": "5125550100"},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["id"]


def _create_lease(
    client: TestClient,
    headers: dict[str, str],
    property_id: str,
    tenant_id: str,
    start: str = "2026-01-01",
    end: str = "2026-12-31",
):
    return client.post(
        "/api/leases",
        json={
            "property_id": property_id,
            "tenant_id": tenant_id,
            "start_date": start,
            "end_date": end,
            "monthly_rent": 1500.0,
        },
        headers=headers,
    )


def test_property_crud_pagination_and_search(property_client: TestClient) -> None:
    owner = _owner(property_client)
    first = _create_property(property_client, owner, "10 Oak Ave", city="Austin")
    _create_property(property_client, owner, "20 Pine Rd", city="Dallas")
    _create_property(property_client, owner, "30 Cedar Ln", city="Houston")

    page = property_client.get("/api/properties", params={"page": 1, "limit": 2}, headers=owner).json()
    assert len(page["items"]) == 2
    assert page["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    searched = property_client.get("/api/properties", params={"search": "dallas"}, headers=owner).json()
    assert [item["address"] for item in searched["items"]] == ["20 Pine Rd"]

    updated = property_client.put(f"/api/properties/{first}", json={"bedrooms": 4}, headers=owner)
    assert updated.status_code == 200
    assert updated.json()["bedrooms"] == 4
    assert updated.json()["address"] == "10 Oak Ave"

    invalid = property_client.post(
        "/api/properties",
        json={"address": "x", "city": "y", "state": "Texas", "zip_code": "1", "type": "DUPLEX"},
        headers=owner,
    )
    assert invalid.status_code == 422

    assert property_client.delete(f"/api/properties/{first}", headers=owner).status_code == 204
    assert property_client.get(f"/api/properties/{first}", headers=owner).status_code == 404


def test_property_occupancy_and_delete_guard(property_client: TestClient) -> None:
    owner = _owner(property_client)
    property_id = _create_property(property_client, owner, "10 Oak Ave")
    tenant_id = _create_tenant(property_client, owner, "tia@example.com")
    lease = _create_lease(property_client, owner, property_id, tenant_id)
    assert lease.status_code == 201

    detail = property_client.get(f"/api/properties/{property_id}", headers=owner).json()
    assert detail["is_occupied"] is True
    assert detail["current_tenant"] == "Tia Tenant"
    assert detail["current_rent"] == 1500.0

    blocked = property_client.delete(f"/api/properties/{property_id}", headers=owner)
    assert blocked.status_code == 400

    ended = property_client.put(
        f"/api/leases/{lease.json()['id']}",
        json={"status": "TERMINATED"},
        headers=owner,
    )
    assert ended.status_code == 200
    assert property_client.delete(f"/api/properties/{property_id}", headers=owner).status_code == 204


def test_lease_rules(property_client: TestClient) -> None:
    owner = _owner(property_client)
    property_id = _create_property(property_client, owner, "10 Oak Ave")
    tenant_a = _create_tenant(property_client, owner, "a@example.com")
    tenant_b = _create_tenant(property_client, owner, "b@example.com")

    backwards = _create_lease(property_client, owner, property_id, tenant_a, start="2026-06-01", end="2026-01-01")
    assert backwards.status_code == 400

    first = _create_lease(property_client, owner, property_id, tenant_a)
    assert first.status_code == 201
    lease_id = first.json()["id"]

    overlap = _create_lease(property_client, owner, property_id, tenant_b, start="2026-06-01", end="2027-05-31")
    assert overlap.status_code == 409

    after = _create_lease(property_client, owner, property_id, tenant_b, start="2027-01-01", end="2027-12-31")
    assert after.status_code == 201

    unknown_tenant = _create_lease(property_client, owner, property_id, "missing", start="2028-01-01", end="2028-12-31")
    assert unknown_tenant.status_code == 404

    assert property_client.delete(f"/api/leases/{lease_id}", headers=owner).status_code == 400

    payment = property_client.post(
        f"/api/leases/{lease_id}/payments",
        json={"amount": 1500.0, "due_date": "2026-02-01", "status": "PAID", "paid_date": "2026-02-01"},
        headers=owner,
    )
    assert payment.status_code == 201
    payments = property_client.get(f"/api/leases/{lease_id}/payments", headers=owner).json()
    assert [item["status"] for item in payments] == ["PAID"]

    active = property_client.get("/api/leases", params={"status": "ACTIVE"}, headers=owner).json()
    assert len(active) == 2


def test_tenant_rules(property_client: TestClient) -> None:
    owner = _owner(property_client)
    tenant_id = _create_tenant(property_client, owner, "tia@example.com")

    duplicate = property_client.post(
        "/api/tenants",
        json={"first_name": "Other", "last_name": "Person", "email": "TIA@example.com", "phone": "5125550199"},
        headers=owner,
    )
    assert duplicate.status_code == 409

    other_id = _create_tenant(property_client, owner, "other@example.com")
    clash = property_client.put(f"/api/tenants/{other_id}", json={"email": "tia@example.com"}, headers=owner)
    assert clash.status_code == 409

    property_id = _create_property(property_client, owner, "10 Oak Ave")
    assert _create_lease(property_client, owner, property_id, tenant_id).status_code == 201
    assert property_client.delete(f"/api/tenants/{tenant_id}", headers=owner).status_code == 400
    assert property_client.delete(f"/api/tenants/{other_id}", headers=owner).status_code == 204

    searched = property_client.get("/api/tenants", params={"search": "tia"}, headers=owner).json()
    assert [item["id"] for item in searched] == [tenant_id]
