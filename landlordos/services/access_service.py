from __future__ import annotations

from dataclasses import dataclass

from sqlmodel import Session, col, or_, select

from landlordos.domain.models import Organization, Role, User, UserRole
from landlordos.domain.permissions import (
    SYSTEM_ROLE_TEMPLATES,
    max_role_level,
    resolve_permissions,
    system_role_id,
)
from landlordos.infra.db import get_engine
from landlordos.services.property_scope_service import PropertyScope, PropertyScopeService


class AccessError(Exception):
    pass


class AuthError(AccessError):
    pass


class ForbiddenError(AccessError):
    pass


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    organization_id: str
    email: str
    roles: tuple[Role, ...]
    permissions: frozenset[str]
    assigned_property_ids: frozenset[str]
    max_role_level: int

    @property
    def scope(self) -> PropertyScope:
        return PropertyScope(
            organization_id=self.organization_id,
            assigned_property_ids=self.assigned_property_ids,
        )

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions

    def can_assign_level(self, level: int) -> bool:
        return level < self.max_role_level


def ensure_system_roles(session: Session) -> list[Role]:
    existing = {
        item.id: item
        for item in session.exec(select(Role).where(Role.is_system_role == True)).all()  # noqa: E712
    }
    created = False
    for template in SYSTEM_ROLE_TEMPLATES:
        role_id = system_role_id(str(template["key"]))
        if role_id in existing:
            continue
        role = Role(
            id=role_id,
            organization_id=None,
            name=str(template["name"]),
            description=str(template["description"]),
            level=int(template["level"]),
            permissions=template["permissions"],
            is_system_role=True,
        )
        session.add(role)
        existing[role_id] = role
        created = True
    if created:
        session.commit()
    return sorted(existing.values(), key=lambda item: item.level, reverse=True)


def active_roles_for_user(session: Session, organization_id: str, user_id: str) -> list[Role]:
    role_ids = list(
        session.exec(
            select(UserRole.role_id)
            .where(UserRole.organization_id == organization_id)
            .where(UserRole.user_id == user_id)
            .where(UserRole.is_active == True)  # noqa: E712
        ).all()
    )
    if not role_ids:
        return []
    return list(
        session.exec(
            select(Role)
            .where(col(Role.id).in_(role_ids))
            .where(or_(Role.is_system_role == True, Role.organization_id == organization_id))  # noqa: E712
        ).all()
    )


def assignable_role(session: Session, organization_id: str, role_id: str) -> Role | None:
    """Roles visible to an organization: system roles plus its own."""
    role = session.get(Role, role_id)
    if role is None:
        return None
    if role.is_system_role or role.organization_id == organization_id:
        return role
    return None


class AccessService:
    def __init__(self) -> None:
        self._scopes = PropertyScopeService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def build_context(self, session: Session, user: User) -> AuthContext:
        roles = active_roles_for_user(session, user.organization_id, user.id)
        assigned = self._scopes.assigned_property_ids(session, user.organization_id, user.id)
        return AuthContext(
            user_id=user.id,
            organization_id=user.organization_id,
            email=user.email,
            roles=tuple(roles),
            permissions=frozenset(resolve_permissions(roles)),
            assigned_property_ids=frozenset(assigned),
            max_role_level=max_role_level(role.level for role in roles),
        )

    def load_context(self, user_id: str, organization_id: str | None = None) -> AuthContext:
        with self._session() as session:
            user = session.get(User, user_id)
            if user is None or not user.is_active:
                raise AuthError("invalid or inactive user")
            if organization_id is not None and organization_id != user.organization_id:
                raise ForbiddenError("access denied to requested organization")
            if session.get(Organization, user.organization_id) is None:
                raise AuthError("organization not found")
            return self.build_context(session, user)

    def ensure_can_assign(self, context: AuthContext, role: Role) -> None:
        if not context.can_assign_level(role.level):
            raise ForbiddenError("cannot assign role with level equal or higher than your own")
