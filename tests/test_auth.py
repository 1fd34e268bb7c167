from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine, select

from landlordos import main as app_main
from landlordos.domain.models import User
from landlordos.domain.permissions import ALL_PERMISSIONS
from landlordos.infra import audit, db
from landlordos.infra.auth import create_access_token


@pytest.fixture()
def auth_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    test_engine = create_engine(
        f"sqlite:///{tmp_path / 'auth_test.db'}",
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


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _register(client: TestClient, email: str = "owner@example.com", password: str = "owner-pass") -> dict:
    response = client.post(
        "/api/auth/register",
        json={
            "email": email,
            "password": password,
            "first_name": "Olive",
            "last_name": "Owner",
            "organization_name": "Olive Holdings",
        },
    )
    assert response.status_code == 201
    return response.json()


def test_register_returns_owner_token(auth_client: TestClient) -> None:
    body = _register(auth_client)
    assert body["token_type"] == "bearer"
    assert set(body["permissions"]) == set(ALL_PERMISSIONS)
    assert body["assigned_property_ids"] == []

    me = auth_client.get("/api/auth/me", headers=_auth_header(body["access_token"]))
    assert me.status_code == 200
    profile = me.json()
    assert profile["user"]["email"] == "owner@example.com"
    assert profile["organization"]["name"] == "Olive Holdings"
    assert profile["max_role_level"] == 10
    assert [role["name"] for role in profile["roles"]] == ["OWNER"]


def test_register_duplicate_email_conflict(auth_client: TestClient) -> None:
    _register(auth_client)
    response = auth_client.post(
        "/api/auth/register",
        json={"email": "OWNER@example.com", "password": "another", "first_name": "A", "last_name": "B"},
    )
    assert response.status_code == 409


def test_login_and_bad_credentials(auth_client: TestClient) -> None:
    _register(auth_client)
    ok = auth_client.post("/api/auth/login", json={"email": "owner@example.com", "password": "owner-pass"})
    assert ok.status_code == 200
    assert "MANAGE_ORGANIZATION" in ok.json()["permissions"]

    bad = auth_client.post("/api/auth/login", json={"email": "owner@example.com", "password": "wrong"})
    assert bad.status_code == 401

    unknown = auth_client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "x"})
    assert unknown.status_code == 401


def test_inactive_user_is_rejected(auth_client: TestClient) -> None:
    token = _register(auth_client)["access_token"]
    with Session(db.get_engine()) as session:
        user = session.exec(select(User).where(User.email == "owner@example.com")).one()
        user.is_active = False
        session.add(user)
        session.commit()

    assert auth_client.get("/api/auth/me", headers=_auth_header(token)).status_code == 401
    login = auth_client.post("/api/auth/login", json={"email": "owner@example.com", "password": "owner-pass"})
    assert login.status_code == 401
    assert login.json()["detail"] == "account is deactivated"

    wrong_password = auth_client.post("/api/auth/login", json={"email": "owner@example.com", "password": "guess"})
    assert wrong_password.status_code == 401
    assert wrong_password.json()["detail"] == "invalid email or password"


def test_invalid_and_missing_tokens(auth_client: TestClient) -> None:
    assert auth_client.get("/api/auth/me").status_code == 401
    assert auth_client.get("/api/auth/me", headers=_auth_header("not-a-jwt")).status_code == 401

    ghost = create_access_token(user_id="ghost", organization_id="nowhere")
    assert auth_client.get("/api/auth/me", headers=_auth_header(ghost)).status_code == 401


def test_organization_header_mismatch_is_forbidden(auth_client: TestClient) -> None:
    token = _register(auth_client)["access_token"]
    response = auth_client.get(
        "/api/properties",
        headers={**_auth_header(token), "X-Organization-Id": "someone-else"},
    )
    assert response.status_code == 403


def test_profile_update_and_refresh(auth_client: TestClient) -> None:
    token = _register(auth_client)["access_token"]
    updated = auth_client.put(
        "/api/auth/profile",
        json={"first_name": "Olivia", "phone": "5125550100"},
        headers=_auth_header(token),
    )
    assert updated.status_code == 200
    assert updated.json()["first_name"] == "Olivia"
    assert updated.json()["phone"] == "5125550100"

    refreshed = auth_client.post("/api/auth/refresh", headers=_auth_header(token))
    assert refreshed.status_code == 200
    new_token = refreshed.json()["access_token"]
    assert auth_client.get("/api/auth/me", headers=_auth_header(new_token)).status_code == 200
