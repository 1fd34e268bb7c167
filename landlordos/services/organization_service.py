from __future__ import annotations

import secrets
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, or_, select

from landlordos.domain.models import (
    Assignment,
    AssignmentCreate,
    AssignmentRoleType,
    AuditLog,
    InviteUserRequest,
    Organization,
    OrganizationUpdate,
    Property,
    Role,
    RoleCreate,
    User,
    UserRole,
    now_utc,
)
from landlordos.domain.permissions import ALL_PERMISSIONS, resolve_permissions
from landlordos.infra import audit
from landlordos.infra.auth import hash_password
from landlordos.infra.db import get_engine
from landlordos.services.access_service import (
    AccessService,
    AuthContext,
    active_roles_for_user,
    assignable_role,
    ensure_system_roles,
)
from landlordos.services.access_service import ForbiddenError as AccessForbiddenError


class OrganizationError(Exception):
    pass


class NotFoundError(OrganizationError):
    pass


class ConflictError(OrganizationError):
    pass


class ForbiddenError(OrganizationError):
    pass


class ValidationError(OrganizationError):
    pass


class OrganizationService:
    def __init__(self) -> None:
        self._access = AccessService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_member(self, session: Session, organization_id: str, user_id: str) -> User | None:
        statement = select(User).where(User.organization_id == organization_id).where(User.id == user_id)
        return session.exec(statement).first()

    def _get_assignable_role(self, session: Session, context: AuthContext, role_id: str) -> Role:
        ensure_system_roles(session)
        role = assignable_role(session, context.organization_id, role_id)
        if role is None:
            raise ValidationError("invalid role")
        try:
            self._access.ensure_can_assign(context, role)
        except AccessForbiddenError as exc:
            raise ForbiddenError(str(exc)) from exc
        return role

    def _ensure_outranks(self, session: Session, context: AuthContext, user_id: str) -> None:
        target_roles = active_roles_for_user(session, context.organization_id, user_id)
        target_level = max((role.level for role in target_roles), default=0)
        if target_level >= context.max_role_level:
            raise ForbiddenError("cannot manage a user with a role level equal or higher than your own")

    def _scoped_property_ids(self, session: Session, organization_id: str, property_ids: list[str]) -> list[str]:
        wanted = sorted({item for item in property_ids if item})
        if not wanted:
            return []
        found = set(
            session.exec(
                select(Property.id)
                .where(Property.organization_id == organization_id)
                .where(col(Property.id).in_(wanted))
            ).all()
        )
        missing = [item for item in wanted if item not in found]
        if missing:
            raise ValidationError(f"property not found: {', '.join(missing)}")
        return wanted

    def get_organization(self, context: AuthContext) -> dict[str, Any]:
        with self._session() as session:
            organization = session.get(Organization, context.organization_id)
            if organization is None:
                raise NotFoundError("organization not found")
            user_count = session.exec(
                select(func.count()).select_from(User).where(User.organization_id == organization.id)
            ).one()
            property_count = session.exec(
                select(func.count()).select_from(Property).where(Property.organization_id == organization.id)
            ).one()
            active_role_count = session.exec(
                select(func.count())
                .select_from(UserRole)
                .where(UserRole.organization_id == organization.id)
                .where(UserRole.is_active == True)  # noqa: E712
            ).one()
            return {
                "organization": organization,
                "user_count": int(user_count),
                "property_count": int(property_count),
                "active_role_count": int(active_role_count),
            }

    def update_organization(self, context: AuthContext, payload: OrganizationUpdate) -> Organization:
        with self._session() as session:
            organization = session.get(Organization, context.organization_id)
            if organization is None:
                raise NotFoundError("organization not found")
            for field_name in payload.model_fields_set:
                value = getattr(payload, field_name)
                if value is not None:
                    setattr(organization, field_name, value)
            organization.updated_at = now_utc()
            session.add(organization)
            session.commit()
            session.refresh(organization)

        audit.record(
            context.user_id,
            context.organization_id,
            "ORGANIZATION_UPDATED",
            f"updated organization {organization.name}",
            {"fields": sorted(payload.model_fields_set)},
            entity_id=organization.id,
        )
        return organization

    def list_members(self, context: AuthContext) -> list[dict[str, Any]]:
        with self._session() as session:
            users = list(
                session.exec(
                    select(User).where(User.organization_id == context.organization_id).order_by(User.created_at)
                ).all()
            )
            assignments = list(
                session.exec(
                    select(Assignment)
                    .where(Assignment.organization_id == context.organization_id)
                    .where(Assignment.is_active == True)  # noqa: E712
                ).all()
            )
            by_user: dict[str, list[Assignment]] = {}
            for item in assignments:
                by_user.setdefault(item.user_id, []).append(item)
            return [
                {
                    "user": user,
                    "roles": active_roles_for_user(session, context.organization_id, user.id),
                    "assignments": by_user.get(user.id, []),
                }
                for user in users
            ]

    def invite_user(self, context: AuthContext, payload: InviteUserRequest) -> tuple[User, str]:
        email = payload.email.strip().lower()
        with self._session() as session:
            if session.exec(select(User.id).where(User.email == email)).first() is not None:
                raise ConflictError("user with this email already exists")
            role = self._get_assignable_role(session, context, payload.role_id)
            property_ids = self._scoped_property_ids(session, context.organization_id, payload.property_ids)

            temp_password = secrets.token_urlsafe(9)
            user = User(
                organization_id=context.organization_id,
                email=email,
                password_hash=hash_password(temp_password),
                first_name=payload.first_name.strip(),
                last_name=payload.last_name.strip(),
            )
            session.add(user)
            session.flush()
            session.add(
                UserRole(
                    user_id=user.id,
                    role_id=role.id,
                    organization_id=context.organization_id,
                    assigned_by=context.user_id,
                )
            )
            for property_id in property_ids:
                session.add(
                    Assignment(
                        user_id=user.id,
                        property_id=property_id,
                        organization_id=context.organization_id,
                        role_type=AssignmentRoleType.MANAGER,
                        assigned_by=context.user_id,
                    )
                )
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("user with this email already exists") from exc
            session.refresh(user)

        audit.record(
            context.user_id,
            context.organization_id,
            "USER_INVITED",
            f"invited {user.email} as {role.name}",
            {"user_id": user.id, "role_id": role.id, "property_ids": property_ids},
            entity_id=user.id,
        )
        return user, temp_password

    def update_user_role(self, context: AuthContext, user_id: str, role_id: str) -> Role:
        with self._session() as session:
            if self._get_member(session, context.organization_id, user_id) is None:
                raise NotFoundError("user not found")
            if user_id == context.user_id:
                raise ForbiddenError("cannot change your own role")
            role = self._get_assignable_role(session, context, role_id)
            self._ensure_outranks(session, context, user_id)

            current = session.exec(
                select(UserRole)
                .where(UserRole.organization_id == context.organization_id)
                .where(UserRole.user_id == user_id)
                .where(UserRole.is_active == True)  # noqa: E712
            ).all()
            for link in current:
                link.is_active = False
                session.add(link)
            session.add(
                UserRole(
                    user_id=user_id,
                    role_id=role.id,
                    organization_id=context.organization_id,
                    assigned_by=context.user_id,
                )
            )
            session.commit()

        audit.record(
            context.user_id,
            context.organization_id,
            "USER_ROLE_UPDATED",
            f"changed role of user {user_id} to {role.name}",
            {"user_id": user_id, "role_id": role.id, "level": role.level},
            entity_id=user_id,
        )
        return role

    def deactivate_user(self, context: AuthContext, user_id: str) -> User:
        with self._session() as session:
            user = self._get_member(session, context.organization_id, user_id)
            if user is None:
                raise NotFoundError("user not found")
            if user_id == context.user_id:
                raise ForbiddenError("cannot deactivate yourself")
            self._ensure_outranks(session, context, user_id)

            user.is_active = False
            user.updated_at = now_utc()
            session.add(user)
            for link in session.exec(
                select(UserRole).where(UserRole.user_id == user_id).where(UserRole.is_active == True)  # noqa: E712
            ).all():
                link.is_active = False
                session.add(link)
            for assignment in session.exec(
                select(Assignment).where(Assignment.user_id == user_id).where(Assignment.is_active == True)  # noqa: E712
            ).all():
                assignment.is_active = False
                session.add(assignment)
            session.commit()
            session.refresh(user)

        audit.record(
            context.user_id,
            context.organization_id,
            "USER_DEACTIVATED",
            f"deactivated user {user.email}",
            {"user_id": user.id},
            entity_id=user.id,
        )
        return user

    def assign_property(self, context: AuthContext, user_id: str, payload: AssignmentCreate) -> Assignment:
        if user_id == context.user_id:
            raise ForbiddenError("cannot change your own property assignments")
        with self._session() as session:
            if self._get_member(session, context.organization_id, user_id) is None:
                raise NotFoundError("user not found")
            self._ensure_outranks(session, context, user_id)
            self._scoped_property_ids(session, context.organization_id, [payload.property_id])

            assignment = session.exec(
                select(Assignment)
                .where(Assignment.user_id == user_id)
                .where(Assignment.property_id == payload.property_id)
            ).first()
            if assignment is None:
                assignment = Assignment(
                    user_id=user_id,
                    property_id=payload.property_id,
                    organization_id=context.organization_id,
                )
            assignment.role_type = payload.role_type
            assignment.permissions = payload.permissions
            assignment.assigned_by = context.user_id
            assignment.is_active = True
            session.add(assignment)
            session.commit()
            session.refresh(assignment)

        audit.record(
            context.user_id,
            context.organization_id,
            "PROPERTY_ASSIGNED",
            f"assigned property {payload.property_id} to user {user_id}",
            {"user_id": user_id, "property_id": payload.property_id, "role_type": assignment.role_type},
            entity_id=payload.property_id,
        )
        return assignment

    def unassign_property(self, context: AuthContext, user_id: str, property_id: str) -> None:
        if user_id == context.user_id:
            raise ForbiddenError("cannot change your own property assignments")
        with self._session() as session:
            if self._get_member(session, context.organization_id, user_id) is None:
                raise NotFoundError("user not found")
            self._ensure_outranks(session, context, user_id)
            assignment = session.exec(
                select(Assignment)
                .where(Assignment.organization_id == context.organization_id)
                .where(Assignment.user_id == user_id)
                .where(Assignment.property_id == property_id)
                .where(Assignment.is_active == True)  # noqa: E712
            ).first()
            if assignment is None:
                raise NotFoundError("assignment not found")
            assignment.is_active = False
            session.add(assignment)
            session.commit()

        audit.record(
            context.user_id,
            context.organization_id,
            "PROPERTY_UNASSIGNED",
            f"removed property {property_id} from user {user_id}",
            {"user_id": user_id, "property_id": property_id},
            entity_id=property_id,
        )

    def list_roles(self, context: AuthContext) -> list[Role]:
        with self._session() as session:
            ensure_system_roles(session)
            roles = list(
                session.exec(
                    select(Role).where(
                        or_(Role.is_system_role == True, Role.organization_id == context.organization_id)  # noqa: E712
                    )
                ).all()
            )
            return sorted(roles, key=lambda item: (-item.level, item.name))

    def create_role(self, context: AuthContext, payload: RoleCreate) -> Role:
        if not context.can_assign_level(payload.level):
            raise ForbiddenError("cannot create role with level equal or higher than your own")
        requested = resolve_permissions([{"permissions": payload.permissions}])
        unknown = sorted(requested - set(ALL_PERMISSIONS))
        if unknown:
            raise ValidationError(f"unknown permissions: {', '.join(unknown)}")
        if not requested <= context.permissions:
            raise ForbiddenError("cannot grant permissions you do not hold")
        with self._session() as session:
            role = Role(
                organization_id=context.organization_id,
                name=payload.name.strip(),
                description=payload.description,
                level=payload.level,
                permissions=payload.permissions,
                is_system_role=False,
            )
            session.add(role)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("role name already exists in organization") from exc
            session.refresh(role)

        audit.record(
            context.user_id,
            context.organization_id,
            "ROLE_CREATED",
            f"created role {role.name}",
            {"role_id": role.id, "level": role.level},
            entity_id=role.id,
        )
        return role

    def list_audit_logs(
        self,
        context: AuthContext,
        *,
        limit: int = 50,
        offset: int = 0,
        entity_type: str | None = None,
        user_id: str | None = None,
    ) -> tuple[list[AuditLog], int]:
        with self._session() as session:
            statement = select(AuditLog).where(AuditLog.organization_id == context.organization_id)
            count_statement = (
                select(func.count()).select_from(AuditLog).where(AuditLog.organization_id == context.organization_id)
            )
            if entity_type:
                statement = statement.where(AuditLog.entity_type == entity_type.upper())
                count_statement = count_statement.where(AuditLog.entity_type == entity_type.upper())
            if user_id:
                statement = statement.where(AuditLog.user_id == user_id)
                count_statement = count_statement.where(AuditLog.user_id == user_id)
            rows = list(
                session.exec(statement.order_by(col(AuditLog.ts).desc()).offset(offset).limit(limit)).all()
            )
            total = session.exec(count_statement).one()
            return rows, int(total)
