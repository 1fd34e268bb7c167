from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, or_, select

from landlordos.domain.models import Lease, LeaseStatus, Tenant, TenantCreate, TenantUpdate
from landlordos.infra import audit
from landlordos.infra.db import get_engine
from landlordos.services.access_service import AuthContext
from landlordos.services.property_scope_service import PropertyScopeService


class TenantError(Exception):
    pass


class NotFoundError(TenantError):
    pass


class ConflictError(TenantError):
    pass


class ValidationError(TenantError):
    pass


class TenantService:
    def __init__(self) -> None:
        self._scopes = PropertyScopeService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_scoped_tenant(self, session: Session, context: AuthContext, tenant_id: str) -> Tenant:
        tenant = session.exec(
            select(Tenant).where(self._scopes.tenants_filter(context.scope)).where(Tenant.id == tenant_id)
        ).first()
        if tenant is None:
            raise NotFoundError("tenant not found")
        return tenant

    def _ensure_email_free(
        self,
        session: Session,
        organization_id: str,
        email: str,
        exclude_id: str | None = None,
    ) -> None:
        statement = select(Tenant.id).where(Tenant.organization_id == organization_id).where(Tenant.email == email)
        if exclude_id is not None:
            statement = statement.where(Tenant.id != exclude_id)
        if session.exec(statement).first() is not None:
            raise ConflictError("a tenant with this email already exists in your organization")

    def list_tenants(self, context: AuthContext, *, search: str | None = None) -> list[Tenant]:
        with self._session() as session:
            statement = select(Tenant).where(self._scopes.tenants_filter(context.scope))
            if search:
                pattern = f"%{search.strip().lower()}%"
                statement = statement.where(
                    or_(
                        func.lower(Tenant.first_name).like(pattern),
                        func.lower(Tenant.last_name).like(pattern),
                        func.lower(Tenant.email).like(pattern),
                    )
                )
            return list(session.exec(statement.order_by(col(Tenant.created_at).desc())).all())

    def get_tenant(self, context: AuthContext, tenant_id: str) -> Tenant:
        with self._session() as session:
            return self._get_scoped_tenant(session, context, tenant_id)

    def create_tenant(self, context: AuthContext, payload: TenantCreate) -> Tenant:
        email = payload.email.strip().lower()
        with self._session() as session:
            self._ensure_email_free(session, context.organization_id, email)
            tenant = Tenant(
                organization_id=context.organization_id,
                **payload.model_dump(exclude={"email"}),
                email=email,
            )
            session.add(tenant)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("a tenant with this email already exists in your organization") from exc
            session.refresh(tenant)

        audit.record(
            context.user_id,
            context.organization_id,
            "TENANT_CREATED",
            f"created tenant {tenant.first_name} {tenant.last_name}",
            {"tenant_id": tenant.id, "email": tenant.email},
            entity_id=tenant.id,
        )
        return tenant

    def update_tenant(self, context: AuthContext, tenant_id: str, payload: TenantUpdate) -> Tenant:
        changes = payload.model_dump(exclude_unset=True)
        with self._session() as session:
            tenant = self._get_scoped_tenant(session, context, tenant_id)
            if changes.get("email"):
                changes["email"] = changes["email"].strip().lower()
                self._ensure_email_free(session, context.organization_id, changes["email"], exclude_id=tenant.id)
            for field_name, value in changes.items():
                if value is None and field_name in {"first_name", "last_name", "email", "phone"}:
                    continue
                setattr(tenant, field_name, value)
            session.add(tenant)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("a tenant with this email already exists in your organization") from exc
            session.refresh(tenant)

        audit.record(
            context.user_id,
            context.organization_id,
            "TENANT_UPDATED",
            f"updated tenant {tenant.first_name} {tenant.last_name}",
            {"tenant_id": tenant.id, "fields": sorted(changes)},
            entity_id=tenant.id,
        )
        return tenant

    def delete_tenant(self, context: AuthContext, tenant_id: str) -> None:
        with self._session() as session:
            tenant = self._get_scoped_tenant(session, context, tenant_id)
            active_leases = session.exec(
                select(func.count())
                .select_from(Lease)
                .where(Lease.tenant_id == tenant.id)
                .where(Lease.status == LeaseStatus.ACTIVE)
            ).one()
            if active_leases:
                raise ValidationError("cannot delete tenant with active leases")
            if session.exec(select(Lease.id).where(Lease.tenant_id == tenant.id)).first() is not None:
                raise ValidationError("cannot delete tenant with lease history")
            name = f"{tenant.first_name} {tenant.last_name}"
            session.delete(tenant)
            session.commit()

        audit.record(
            context.user_id,
            context.organization_id,
            "TENANT_DELETED",
            f"deleted tenant {name}",
            {"tenant_id": tenant_id},
            entity_id=tenant_id,
        )
