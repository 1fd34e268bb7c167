from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

PERM_ALL = "all"

PERM_DASHBOARD_READ = "READ_DASHBOARD"

PERM_PROPERTIES_READ = "READ_PROPERTIES"
PERM_PROPERTIES_CREATE = "CREATE_PROPERTIES"
PERM_PROPERTIES_UPDATE = "UPDATE_PROPERTIES"
PERM_PROPERTIES_DELETE = "DELETE_PROPERTIES"

PERM_TENANTS_READ = "READ_TENANTS"
PERM_TENANTS_CREATE = "CREATE_TENANTS"
PERM_TENANTS_UPDATE = "UPDATE_TENANTS"
PERM_TENANTS_DELETE = "DELETE_TENANTS"

PERM_LEASES_READ = "READ_LEASES"
PERM_LEASES_CREATE = "CREATE_LEASES"
PERM_LEASES_UPDATE = "UPDATE_LEASES"
PERM_LEASES_DELETE = "DELETE_LEASES"

PERM_EXPENSES_READ = "READ_EXPENSES"
PERM_EXPENSES_CREATE = "CREATE_EXPENSES"
PERM_EXPENSES_UPDATE = "UPDATE_EXPENSES"
PERM_EXPENSES_DELETE = "DELETE_EXPENSES"

PERM_MAINTENANCE_READ = "READ_MAINTENANCE"
PERM_MAINTENANCE_CREATE = "CREATE_MAINTENANCE"
PERM_MAINTENANCE_UPDATE = "UPDATE_MAINTENANCE"
PERM_MAINTENANCE_DELETE = "DELETE_MAINTENANCE"

PERM_REMINDERS_READ = "READ_REMINDERS"
PERM_REMINDERS_CREATE = "CREATE_REMINDERS"
PERM_REMINDERS_UPDATE = "UPDATE_REMINDERS"
PERM_REMINDERS_DELETE = "DELETE_REMINDERS"

PERM_PAYMENTS_READ = "READ_PAYMENTS"
PERM_PAYMENTS_CREATE = "CREATE_PAYMENTS"
PERM_PAYMENTS_UPDATE = "UPDATE_PAYMENTS"
PERM_PAYMENTS_DELETE = "DELETE_PAYMENTS"

PERM_ORGANIZATION_MANAGE = "MANAGE_ORGANIZATION"
PERM_USERS_INVITE = "INVITE_USERS"
PERM_USERS_READ = "READ_USERS"
PERM_USERS_UPDATE = "UPDATE_USERS"
PERM_USERS_DELETE = "DELETE_USERS"
PERM_PROPERTIES_ASSIGN = "ASSIGN_PROPERTIES"
PERM_AUDIT_LOGS_READ = "READ_AUDIT_LOGS"

ALL_PERMISSIONS: tuple[str, ...] = (
    PERM_DASHBOARD_READ,
    PERM_PROPERTIES_READ,
    PERM_PROPERTIES_CREATE,
    PERM_PROPERTIES_UPDATE,
    PERM_PROPERTIES_DELETE,
    PERM_TENANTS_READ,
    PERM_TENANTS_CREATE,
    PERM_TENANTS_UPDATE,
    PERM_TENANTS_DELETE,
    PERM_LEASES_READ,
    PERM_LEASES_CREATE,
    PERM_LEASES_UPDATE,
    PERM_LEASES_DELETE,
    PERM_EXPENSES_READ,
    PERM_EXPENSES_CREATE,
    PERM_EXPENSES_UPDATE,
    PERM_EXPENSES_DELETE,
    PERM_MAINTENANCE_READ,
    PERM_MAINTENANCE_CREATE,
    PERM_MAINTENANCE_UPDATE,
    PERM_MAINTENANCE_DELETE,
    PERM_REMINDERS_READ,
    PERM_REMINDERS_CREATE,
    PERM_REMINDERS_UPDATE,
    PERM_REMINDERS_DELETE,
    PERM_PAYMENTS_READ,
    PERM_PAYMENTS_CREATE,
    PERM_PAYMENTS_UPDATE,
    PERM_PAYMENTS_DELETE,
    PERM_ORGANIZATION_MANAGE,
    PERM_USERS_INVITE,
    PERM_USERS_READ,
    PERM_USERS_UPDATE,
    PERM_USERS_DELETE,
    PERM_PROPERTIES_ASSIGN,
    PERM_AUDIT_LOGS_READ,
)


def _role_permission_field(user_role: Any) -> Any:
    if isinstance(user_role, Mapping):
        if user_role.get("is_active", True) is False:
            return None
        if "permissions" in user_role:
            return user_role.get("permissions")
        role = user_role.get("role")
    else:
        if getattr(user_role, "is_active", True) is False:
            return None
        role = getattr(user_role, "role", user_role)
    if role is None:
        return None
    if isinstance(role, Mapping):
        return role.get("permissions")
    return getattr(role, "permissions", None)


def _iter_granted(field: Any) -> Iterable[str]:
    if isinstance(field, Mapping):
        return [key for key, enabled in field.items() if isinstance(key, str) and enabled]
    if isinstance(field, (list, tuple, set, frozenset)):
        return [item for item in field if isinstance(item, str)]
    return []


def resolve_permissions(active_user_roles: Iterable[Any] | None) -> set[str]:
    """Flatten the permission fields of a user's active roles into one set.

    Each entry is a user-role link (an object or mapping carrying ``role``), a
    bare role, or a mapping with a ``permissions`` key. A role's permissions are
    either a list of names or a ``{name: enabled}`` mapping. Anything else
    contributes nothing. If the union holds ``"all"`` the full catalog is
    returned instead.
    """
    permissions: set[str] = set()
    if not active_user_roles:
        return permissions
    for user_role in active_user_roles:
        if user_role is None:
            continue
        permissions.update(_iter_granted(_role_permission_field(user_role)))
    if PERM_ALL in permissions:
        return set(ALL_PERMISSIONS)
    return permissions


def max_role_level(levels: Iterable[int | None]) -> int:
    return max((level for level in levels if isinstance(level, int)), default=0)


SYSTEM_ROLE_TEMPLATES: tuple[dict[str, Any], ...] = (
    {
        "key": "owner",
        "name": "OWNER",
        "description": "organization owner with full access",
        "level": 10,
        "permissions": {PERM_ALL: True},
    },
    {
        "key": "admin",
        "name": "ADMIN",
        "description": "administrator with every permission except organization settings",
        "level": 9,
        "permissions": [item for item in ALL_PERMISSIONS if item != PERM_ORGANIZATION_MANAGE],
    },
    {
        "key": "manager",
        "name": "MANAGER",
        "description": "property manager with operational access",
        "level": 7,
        "permissions": [
            PERM_DASHBOARD_READ,
            PERM_PROPERTIES_READ,
            PERM_PROPERTIES_UPDATE,
            PERM_TENANTS_READ,
            PERM_TENANTS_CREATE,
            PERM_TENANTS_UPDATE,
            PERM_LEASES_READ,
            PERM_LEASES_CREATE,
            PERM_LEASES_UPDATE,
            PERM_PAYMENTS_READ,
            PERM_PAYMENTS_CREATE,
            PERM_PAYMENTS_UPDATE,
            PERM_EXPENSES_READ,
            PERM_EXPENSES_CREATE,
            PERM_EXPENSES_UPDATE,
            PERM_MAINTENANCE_READ,
            PERM_MAINTENANCE_CREATE,
            PERM_MAINTENANCE_UPDATE,
            PERM_REMINDERS_READ,
            PERM_REMINDERS_CREATE,
            PERM_REMINDERS_UPDATE,
            PERM_USERS_READ,
            PERM_USERS_INVITE,
            PERM_USERS_UPDATE,
            PERM_PROPERTIES_ASSIGN,
            PERM_AUDIT_LOGS_READ,
        ],
    },
    {
        "key": "coordinator",
        "name": "COORDINATOR",
        "description": "operations coordinator with limited access",
        "level": 5,
        "permissions": [
            PERM_DASHBOARD_READ,
            PERM_PROPERTIES_READ,
            PERM_TENANTS_READ,
            PERM_LEASES_READ,
            PERM_PAYMENTS_READ,
            PERM_EXPENSES_READ,
            PERM_MAINTENANCE_READ,
            PERM_MAINTENANCE_CREATE,
            PERM_MAINTENANCE_UPDATE,
            PERM_REMINDERS_READ,
            PERM_REMINDERS_CREATE,
            PERM_REMINDERS_UPDATE,
        ],
    },
    {
        "key": "viewer",
        "name": "VIEWER",
        "description": "read-only access to assigned properties",
        "level": 1,
        "permissions": [
            PERM_DASHBOARD_READ,
            PERM_PROPERTIES_READ,
            PERM_TENANTS_READ,
            PERM_LEASES_READ,
            PERM_PAYMENTS_READ,
        ],
    },
)


def system_role_id(key: str) -> str:
    return f"system-{key}"
