from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from landlordos.api.deps import require_perm, require_role_level
from landlordos.domain.models import Role
from landlordos.domain.permissions import (
    ALL_PERMISSIONS,
    PERM_ALL,
    SYSTEM_ROLE_TEMPLATES,
    max_role_level,
    resolve_permissions,
)
from landlordos.services.access_service import AccessService, AuthContext, ForbiddenError


def _context(level: int, permissions: set[str] | None = None) -> AuthContext:
    return AuthContext(
        user_id="user-1",
        organization_id="org-1",
        email="user@example.com",
        roles=(),
        permissions=frozenset(permissions or set()),
        assigned_property_ids=frozenset(),
        max_role_level=level,
    )


def test_resolve_permissions_empty() -> None:
    assert resolve_permissions([]) == set()
    assert resolve_permissions(None) == set()


def test_resolve_permissions_is_union_of_roles() -> None:
    roles = [
        {"role": {"permissions": ["READ_PROPERTIES", "READ_TENANTS"]}},
        {"role": {"permissions": {"READ_TENANTS": True, "CREATE_LEASES": True}}},
    ]
    assert resolve_permissions(roles) == {"READ_PROPERTIES", "READ_TENANTS", "CREATE_LEASES"}


def test_resolve_permissions_all_expands_to_catalog() -> None:
    roles = [
        {"role": {"permissions": ["READ_PROPERTIES"]}},
        {"role": {"permissions": {PERM_ALL: True}}},
    ]
    resolved = resolve_permissions(roles)
    assert resolved == set(ALL_PERMISSIONS)
    assert len(resolved) >= 30
    assert {"READ_PROPERTIES", "DELETE_TENANTS", "MANAGE_ORGANIZATION"} <= resolved
    assert PERM_ALL not in resolved


def test_resolve_permissions_skips_malformed_and_inactive_entries() -> None:
    roles = [
        None,
        {"role": None},
        {"role": {"permissions": "READ_PROPERTIES"}},
        {"role": {"permissions": {"READ_LEASES": False, "READ_EXPENSES": True}}},
        {"is_active": False, "role": {"permissions": [PERM_ALL]}},
        SimpleNamespace(is_active=True, role=SimpleNamespace(permissions=["READ_DASHBOARD", 7])),
    ]
    assert resolve_permissions(roles) == {"READ_EXPENSES", "READ_DASHBOARD"}


def test_resolve_permissions_accepts_role_rows() -> None:
    manager = next(item for item in SYSTEM_ROLE_TEMPLATES if item["key"] == "manager")
    role = Role(name="MANAGER", level=7, permissions=manager["permissions"])
    assert resolve_permissions([role]) == set(manager["permissions"])


def test_max_role_level_defaults_to_zero() -> None:
    assert max_role_level([]) == 0
    assert max_role_level([1, 7, None, 5]) == 7


@pytest.mark.parametrize("level", [0, 1, 5, 7, 10])
def test_role_level_gate_boundary(level: int) -> None:
    context = _context(level)
    for required in range(0, level + 1):
        assert require_role_level(required)(context) is context

    with pytest.raises(HTTPException) as exc_info:
        require_role_level(level + 1)(context)
    assert exc_info.value.status_code == 403


def test_permission_gate_rejects_missing_permission() -> None:
    context = _context(7, {"READ_PROPERTIES"})
    assert require_perm("READ_PROPERTIES")(context) is context

    with pytest.raises(HTTPException) as exc_info:
        require_perm("DELETE_PROPERTIES")(context)
    assert exc_info.value.status_code == 403
    assert exc_info.value.detail == "Missing permission: DELETE_PROPERTIES"


def test_role_assignment_requires_strictly_lower_level() -> None:
    service = AccessService()
    coordinator = _context(5)

    with pytest.raises(ForbiddenError):
        service.ensure_can_assign(coordinator, Role(name="MANAGER", level=7))
    with pytest.raises(ForbiddenError):
        service.ensure_can_assign(coordinator, Role(name="PEER", level=5))
    service.ensure_can_assign(coordinator, Role(name="VIEWER", level=1))
