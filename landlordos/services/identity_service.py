from __future__ import annotations

import re
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from landlordos.domain.models import (
    Organization,
    ProfileUpdate,
    RegisterRequest,
    Role,
    User,
    UserRole,
    now_utc,
)
from landlordos.domain.permissions import system_role_id
from landlordos.infra.auth import hash_password
from landlordos.infra.db import get_engine
from landlordos.services.access_service import AccessService, AuthContext, ensure_system_roles


class IdentityError(Exception):
    pass


class NotFoundError(IdentityError):
    pass


class ConflictError(IdentityError):
    pass


class AuthError(IdentityError):
    pass


def _slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "organization"


class IdentityService:
    def __init__(self) -> None:
        self._access = AccessService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _normalize_email(self, email: str) -> str:
        return email.strip().lower()

    def register(self, payload: RegisterRequest) -> tuple[User, AuthContext]:
        email = self._normalize_email(payload.email)
        with self._session() as session:
            if session.exec(select(User.id).where(User.email == email)).first() is not None:
                raise ConflictError("user with this email already exists")
            ensure_system_roles(session)

            org_name = payload.organization_name or f"{payload.first_name} {payload.last_name} Properties"
            organization = Organization(
                name=org_name,
                slug=f"{_slugify(org_name)}-{uuid4().hex[:8]}",
                email=email,
            )
            session.add(organization)
            session.flush()

            user = User(
                organization_id=organization.id,
                email=email,
                password_hash=hash_password(payload.password),
                first_name=payload.first_name.strip(),
                last_name=payload.last_name.strip(),
                phone=payload.phone,
            )
            session.add(user)
            session.flush()

            session.add(
                UserRole(
                    user_id=user.id,
                    role_id=system_role_id("owner"),
                    organization_id=organization.id,
                    assigned_by=user.id,
                )
            )
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("user with this email already exists") from exc
            session.refresh(user)
            return user, self._access.build_context(session, user)

    def login(self, email: str, password: str) -> tuple[User, AuthContext]:
        with self._session() as session:
            user = session.exec(select(User).where(User.email == self._normalize_email(email))).first()
            if user is None or user.password_hash != hash_password(password):
                raise AuthError("invalid email or password")
            if not user.is_active:
                raise AuthError("account is deactivated")
            user.last_login = now_utc()
            session.add(user)
            session.commit()
            session.refresh(user)
            return user, self._access.build_context(session, user)

    def get_profile(self, context: AuthContext) -> tuple[User, Organization, list[Role]]:
        with self._session() as session:
            user = session.get(User, context.user_id)
            organization = session.get(Organization, context.organization_id)
            if user is None or organization is None:
                raise NotFoundError("user not found")
            roles = sorted(context.roles, key=lambda item: item.level, reverse=True)
            return user, organization, roles

    def update_profile(self, context: AuthContext, payload: ProfileUpdate) -> User:
        with self._session() as session:
            user = session.get(User, context.user_id)
            if user is None:
                raise NotFoundError("user not found")
            if payload.first_name is not None:
                user.first_name = payload.first_name.strip()
            if payload.last_name is not None:
                user.last_name = payload.last_name.strip()
            if "phone" in payload.model_fields_set:
                user.phone = payload.phone
            user.updated_at = now_utc()
            session.add(user)
            session.commit()
            session.refresh(user)
            return user
