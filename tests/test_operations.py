from __future__ import annotations

from collections.abc import Generator
from datetime import timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import SQLModel, create_engine

from landlordos import main as app_main
from landlordos.domain.models import today_utc
from landlordos.infra import audit, db


@pytest.fixture()
def ops_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    test_engine = create_engine(
        f"sqlite:///{tmp_path / 'operations_test.db'}",
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


def _register(client: TestClient, email: str = "owner@example.com") -> dict[str, str]:
    response = client.post(
        "/api/auth/register",
        json={"email": email, "password": "owner-pass", "first_name": "O", "last_name": "W"},
    )
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def _create_property(client: TestClient, headers: dict[str, str], address: str = "10 Oak Ave") -> str:
    response = client.post(
        "/api/properties",
        json={"address": address, "city": "Austin", "state": "TX", "zip_code": "78701", "type": "SINGLE_FAMILY"},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["id"]


def _create_task(client: TestClient, headers: dict[str, str], property_id: str, title: str, **extra: object) -> str:
    response = client.post(
        "/api/maintenance",
        json={"property_id": property_id, "title": title, **extra},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["id"]


def test_expense_listing_filters_and_updates(ops_client: TestClient) -> None:
    owner = _register(ops_client)
    p1 = _create_property(ops_client, owner, "1 First St")
    p2 = _create_property(ops_client, owner, "2 Second St")

    seeds = ((p1, "REPAIRS", "2026-03-01"), (p1, "TAXES", "2026-04-01"), (p2, "REPAIRS", "2026-05-01"))
    for property_id, category, day in seeds:
        created = ops_client.post(
            "/api/expenses",
            json={
                "property_id": property_id,
                "description": f"{category} bill",
                "amount": 100.0,
                "category": category,
                "expense_date": day,
            },
            headers=owner,
        )
        assert created.status_code == 201

    everything = ops_client.get("/api/expenses", headers=owner).json()
    assert everything["pagination"]["total"] == 3
    assert [item["expense_date"] for item in everything["items"]] == ["2026-05-01", "2026-04-01", "2026-03-01"]

    repairs = ops_client.get("/api/expenses", params={"category": "REPAIRS", "property_id": p1}, headers=owner).json()
    assert len(repairs["items"]) == 1
    expense_id = repairs["items"][0]["id"]

    updated = ops_client.put(f"/api/expenses/{expense_id}", json={"amount": 250.0}, headers=owner)
    assert updated.status_code == 200
    assert updated.json()["amount"] == 250.0

    assert ops_client.delete(f"/api/expenses/{expense_id}", headers=owner).status_code == 204
    assert ops_client.delete(f"/api/expenses/{expense_id}", headers=owner).status_code == 404


def test_maintenance_orders_by_priority_then_due_date(ops_client: TestClient) -> None:
    owner = _register(ops_client)
    property_id = _create_property(ops_client, owner)

    _create_task(ops_client, owner, property_id, "gutters", priority="LOW", due_date="2026-03-01")
    _create_task(ops_client, owner, property_id, "roof", priority="HIGH", due_date="2026-05-01")
    _create_task(ops_client, owner, property_id, "boiler", priority="URGENT")
    _create_task(ops_client, owner, property_id, "window", priority="HIGH", due_date="2026-04-01")
    _create_task(ops_client, owner, property_id, "fence", priority="HIGH")

    tasks = ops_client.get("/api/maintenance", headers=owner).json()
    assert [task["title"] for task in tasks] == ["boiler", "window", "roof", "fence", "gutters"]

    high = ops_client.get("/api/maintenance", params={"priority": "HIGH"}, headers=owner).json()
    assert len(high) == 3

    task_id = tasks[0]["id"]
    done = ops_client.put(f"/api/maintenance/{task_id}", json={"status": "COMPLETED", "cost": 900.0}, headers=owner)
    assert done.status_code == 200
    assert done.json()["status"] == "COMPLETED"

    pending = ops_client.get("/api/maintenance", params={"status": "PENDING"}, headers=owner).json()
    assert task_id not in {task["id"] for task in pending}

    assert ops_client.delete(f"/api/maintenance/{task_id}", headers=owner).status_code == 204


def test_maintenance_rejects_out_of_scope_property(ops_client: TestClient) -> None:
    owner_a = _register(ops_client, "a@example.com")
    owner_b = _register(ops_client, "b@example.com")
    foreign = _create_property(ops_client, owner_a)

    denied = ops_client.post(
        "/api/maintenance",
        json={"property_id": foreign, "title": "peek"},
        headers=owner_b,
    )
    assert denied.status_code == 403


def test_reminder_lifecycle(ops_client: TestClient) -> None:
    owner = _register(ops_client)
    other = _register(ops_client, "other@example.com")
    property_id = _create_property(ops_client, owner)
    foreign = _create_property(ops_client, other, "99 Far Rd")

    orphan = ops_client.post("/api/reminders", json={"title": "orphan", "due_date": "2026-06-01"}, headers=owner)
    assert orphan.status_code == 400

    cross = ops_client.post(
        "/api/reminders",
        json={"property_id": foreign, "title": "nope", "due_date": "2026-06-01"},
        headers=owner,
    )
    assert cross.status_code == 403

    later = ops_client.post(
        "/api/reminders",
        json={"property_id": property_id, "title": "inspection", "due_date": "2026-08-01"},
        headers=owner,
    )
    sooner = ops_client.post(
        "/api/reminders",
        json={"property_id": property_id, "title": "insurance", "due_date": "2026-07-01"},
        headers=owner,
    )
    assert later.status_code == 201
    assert sooner.status_code == 201

    open_items = ops_client.get("/api/reminders", headers=owner).json()
    assert [item["title"] for item in open_items] == ["insurance", "inspection"]

    completed = ops_client.patch(f"/api/reminders/{sooner.json()['id']}/complete", headers=owner)
    assert completed.status_code == 200
    assert completed.json()["is_completed"] is True

    assert [item["title"] for item in ops_client.get("/api/reminders", headers=owner).json()] == ["inspection"]
    done = ops_client.get("/api/reminders", params={"completed": True}, headers=owner).json()
    assert [item["title"] for item in done] == ["insurance"]

    assert ops_client.delete(f"/api/reminders/{later.json()['id']}", headers=owner).status_code == 204
    assert ops_client.patch(f"/api/reminders/{later.json()['id']}/complete", headers=other).status_code == 404


def test_dashboard_overview(ops_client: TestClient) -> None:
    owner = _register(ops_client)
    today = today_utc()
    occupied = _create_property(ops_client, owner, "1 First St")

    tenant = ops_client.post(
        "/api/tenants",
        json={"first_name": "Tia", "last_name": "Tenant", "email": "tia@example.com", "phone": "5125550100"},
        headers=owner,
    ).json()
    lease = ops_client.post(
        "/api/leases",
        json={
            "property_id": occupied,
            "tenant_id": tenant["id"],
            "start_date": (today - timedelta(days=30)).isoformat(),
            "end_date": (today + timedelta(days=335)).isoformat(),
            "monthly_rent": 1500.0,
        },
        headers=owner,
    )
    assert lease.status_code == 201

    expense = ops_client.post(
        "/api/expenses",
        json={
            "property_id": occupied,
            "description": "plumber",
            "amount": 200.0,
            "category": "REPAIRS",
            "expense_date": today.isoformat(),
        },
        headers=owner,
    )
    assert expense.status_code == 201

    _create_task(ops_client, owner, occupied, "leak", priority="HIGH")
    _create_task(ops_client, owner, occupied, "paint", status="COMPLETED")
    ops_client.post(
        "/api/reminders",
        json={"property_id": occupied, "title": "renewal", "due_date": (today + timedelta(days=3)).isoformat()},
        headers=owner,
    )
    ops_client.post(
        "/api/reminders",
        json={"property_id": occupied, "title": "far off", "due_date": (today + timedelta(days=90)).isoformat()},
        headers=owner,
    )

    overview = ops_client.get("/api/dashboard/overview", headers=owner)
    assert overview.status_code == 200
    body = overview.json()
    assert body["property_count"] == 1
    assert body["active_lease_count"] == 1
    assert body["monthly_rent_income"] == 1500.0
    assert body["monthly_expenses"] == 200.0
    assert body["yearly_expenses"] == 200.0
    assert body["monthly_net_income"] == 1300.0
    assert body["occupancy_rate"] == 100.0
    assert body["pending_maintenance_count"] == 1
    assert [item["title"] for item in body["upcoming_reminders"]] == ["renewal"]
    assert [item["description"] for item in body["recent_expenses"]] == ["plumber"]

    performance = body["property_performance"][0]
    assert performance["net_income"] == 1300.0
    assert performance["profit_margin"] == 86.7


def test_dashboard_is_empty_for_new_organization(ops_client: TestClient) -> None:
    owner = _register(ops_client)
    body = ops_client.get("/api/dashboard/overview", headers=owner).json()
    assert body["property_count"] == 0
    assert body["occupancy_rate"] == 0.0
    assert body["property_performance"] == []


def test_financial_summary_by_month(ops_client: TestClient) -> None:
    owner = _register(ops_client)
    property_id = _create_property(ops_client, owner)
    tenant = ops_client.post(
        "/api/tenants",
        json={"first_name": "Tia", "last_name": "Tenant", "email": "tia@example.com", "phone": "5125550100"},
        headers=owner,
    ).json()
    lease = ops_client.post(
        "/api/leases",
        json={
            "property_id": property_id,
            "tenant_id": tenant["id"],
            "start_date": "2025-01-01",
            "end_date": "2025-12-31",
            "monthly_rent": 1000.0,
        },
        headers=owner,
    ).json()

    payments = (
        {"amount": 1200.0, "due_date": "2025-03-01", "status": "PAID", "paid_date": "2025-03-05"},
        {"amount": 1000.0, "due_date": "2025-04-01", "status": "PENDING"},
    )
    for payment in payments:
        assert ops_client.post(f"/api/leases/{lease['id']}/payments", json=payment, headers=owner).status_code == 201
    for amount, day in ((200.0, "2025-03-10"), (50.0, "2025-07-01"), (75.0, "2024-12-31")):
        created = ops_client.post(
            "/api/expenses",
            json={
                "property_id": property_id,
                "description": "upkeep",
                "amount": amount,
                "category": "REPAIRS",
                "expense_date": day,
            },
            headers=owner,
        )
        assert created.status_code == 201

    response = ops_client.get("/api/dashboard/financial-summary", params={"year": 2025}, headers=owner)
    assert response.status_code == 200
    body = response.json()
    assert body["year"] == 2025
    months = body["monthly_data"]
    assert [item["month"] for item in months] == list(range(1, 13))
    assert months[0]["month_name"] == "January"
    assert months[0]["income"] == 1000.0
    assert months[2] == {"month": 3, "month_name": "March", "income": 1200.0, "expenses": 200.0, "net_income": 1000.0}
    assert months[3]["income"] == 1000.0
    assert months[6]["net_income"] == 950.0
    assert body["totals"] == {"income": 12200.0, "expenses": 250.0, "net_income": 11950.0}

    empty = ops_client.get("/api/dashboard/financial-summary", params={"year": 2030}, headers=owner).json()
    assert empty["totals"] == {"income": 0.0, "expenses": 0.0, "net_income": 0.0}

    assert ops_client.get("/api/dashboard/financial-summary", params={"year": 1200}, headers=owner).status_code == 422
