from __future__ import annotations

import math
from typing import Any

from sqlalchemy import func
from sqlmodel import Session, col, or_, select

from landlordos.domain.models import (
    Assignment,
    Expense,
    Lease,
    LeaseStatus,
    MaintenanceTask,
    Page,
    Payment,
    Property,
    PropertyCreate,
    PropertyInsurance,
    PropertyUpdate,
    Reminder,
    Tenant,
    now_utc,
)
from landlordos.infra import audit
from landlordos.infra.db import get_engine
from landlordos.services.access_service import AuthContext
from landlordos.services.property_scope_service import PropertyScopeService


class PropertyError(Exception):
    pass


class NotFoundError(PropertyError):
    pass


class ValidationError(PropertyError):
    pass


class PropertyService:
    def __init__(self) -> None:
        self._scopes = PropertyScopeService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_scoped_property(self, session: Session, context: AuthContext, property_id: str) -> Property:
        prop = session.exec(
            select(Property).where(self._scopes.properties_filter(context.scope)).where(Property.id == property_id)
        ).first()
        if prop is None:
            raise NotFoundError("property not found")
        return prop

    def _summaries(self, session: Session, rows: list[Property]) -> list[dict[str, Any]]:
        if not rows:
            return []
        ids = [item.id for item in rows]
        active = session.exec(
            select(Lease, Tenant)
            .join(Tenant, col(Tenant.id) == col(Lease.tenant_id))
            .where(col(Lease.property_id).in_(ids))
            .where(Lease.status == LeaseStatus.ACTIVE)
            .order_by(col(Lease.start_date).desc())
        ).all()
        current: dict[str, tuple[Lease, Tenant]] = {}
        for lease, tenant in active:
            current.setdefault(lease.property_id, (lease, tenant))
        expense_counts = dict(
            session.exec(
                select(Expense.property_id, func.count())
                .where(col(Expense.property_id).in_(ids))
                .group_by(Expense.property_id)
            ).all()
        )
        maintenance_counts = dict(
            session.exec(
                select(MaintenanceTask.property_id, func.count())
                .where(col(MaintenanceTask.property_id).in_(ids))
                .group_by(MaintenanceTask.property_id)
            ).all()
        )
        summaries: list[dict[str, Any]] = []
        for prop in rows:
            lease_tenant = current.get(prop.id)
            summary = prop.model_dump()
            summary.update(
                current_tenant=(
                    f"{lease_tenant[1].first_name} {lease_tenant[1].last_name}" if lease_tenant else None
                ),
                current_rent=lease_tenant[0].monthly_rent if lease_tenant else None,
                is_occupied=lease_tenant is not None,
                expense_count=int(expense_counts.get(prop.id, 0)),
                maintenance_count=int(maintenance_counts.get(prop.id, 0)),
            )
            summaries.append(summary)
        return summaries

    def _sole_assignment_holders(self, session: Session, prop: Property) -> set[str]:
        holders = set(
            session.exec(
                select(Assignment.user_id)
                .where(Assignment.organization_id == prop.organization_id)
                .where(Assignment.property_id == prop.id)
                .where(Assignment.is_active == True)  # noqa: E712
            ).all()
        )
        if not holders:
            return set()
        covered = set(
            session.exec(
                select(Assignment.user_id)
                .where(Assignment.organization_id == prop.organization_id)
                .where(col(Assignment.user_id).in_(holders))
                .where(Assignment.property_id != prop.id)
                .where(Assignment.is_active == True)  # noqa: E712
            ).all()
        )
        return holders - covered

    def _delete_children(self, session: Session, property_id: str) -> None:
        lease_ids = list(session.exec(select(Lease.id).where(Lease.property_id == property_id)).all())
        dependents: list[Any] = []
        if lease_ids:
            dependents.extend(session.exec(select(Payment).where(col(Payment.lease_id).in_(lease_ids))).all())
            dependents.extend(session.exec(select(Reminder).where(col(Reminder.lease_id).in_(lease_ids))).all())
        for model in (Reminder, Expense, MaintenanceTask, Assignment, PropertyInsurance):
            dependents.extend(session.exec(select(model).where(model.property_id == property_id)).all())
        for row in dependents:
            session.delete(row)
        session.flush()
        for lease in session.exec(select(Lease).where(Lease.property_id == property_id)).all():
            session.delete(lease)
        session.flush()

    def list_properties(
        self,
        context: AuthContext,
        *,
        page: int = 1,
        limit: int = 10,
        search: str | None = None,
    ) -> tuple[list[dict[str, Any]], Page]:
        with self._session() as session:
            predicate = self._scopes.properties_filter(context.scope)
            statement = select(Property).where(predicate)
            count_statement = select(func.count()).select_from(Property).where(predicate)
            if search:
                pattern = f"%{search.strip().lower()}%"
                search_clause = or_(
                    func.lower(Property.address).like(pattern),
                    func.lower(Property.city).like(pattern),
                    func.lower(Property.state).like(pattern),
                )
                statement = statement.where(search_clause)
                count_statement = count_statement.where(search_clause)
            rows = list(
                session.exec(
                    statement.order_by(col(Property.created_at).desc()).offset((page - 1) * limit).limit(limit)
                ).all()
            )
            total = int(session.exec(count_statement).one())
            pagination = Page(page=page, limit=limit, total=total, pages=math.ceil(total / limit))
            return self._summaries(session, rows), pagination

    def get_property(self, context: AuthContext, property_id: str) -> dict[str, Any]:
        with self._session() as session:
            prop = self._get_scoped_property(session, context, property_id)
            return self._summaries(session, [prop])[0]

    def create_property(self, context: AuthContext, payload: PropertyCreate) -> Property:
        with self._session() as session:
            prop = Property(organization_id=context.organization_id, **payload.model_dump())
            session.add(prop)
            session.commit()
            session.refresh(prop)

        audit.record(
            context.user_id,
            context.organization_id,
            "PROPERTY_CREATED",
            f"created property {prop.address}",
            {"property_id": prop.id, "address": prop.address, "type": prop.type},
            entity_id=prop.id,
        )
        return prop

    def update_property(self, context: AuthContext, property_id: str, payload: PropertyUpdate) -> Property:
        changes = payload.model_dump(exclude_unset=True)
        with self._session() as session:
            prop = self._get_scoped_property(session, context, property_id)
            for field_name, value in changes.items():
                setattr(prop, field_name, value)
            prop.updated_at = now_utc()
            session.add(prop)
            session.commit()
            session.refresh(prop)

        audit.record(
            context.user_id,
            context.organization_id,
            "PROPERTY_UPDATED",
            f"updated property {prop.address}",
            {"property_id": prop.id, "fields": sorted(changes)},
            entity_id=prop.id,
        )
        return prop

    def delete_property(self, context: AuthContext, property_id: str) -> None:
        with self._session() as session:
            prop = self._get_scoped_property(session, context, property_id)
            active_leases = session.exec(
                select(func.count())
                .select_from(Lease)
                .where(Lease.property_id == prop.id)
                .where(Lease.status == LeaseStatus.ACTIVE)
            ).one()
            if active_leases:
                raise ValidationError("cannot delete property with active leases")
            stranded = self._sole_assignment_holders(session, prop)
            if stranded:
                raise ValidationError(
                    f"property is the only assignment of {len(stranded)} user(s); reassign them before deleting"
                )
            address = prop.address
            self._delete_children(session, prop.id)
            session.delete(prop)
            session.commit()

        audit.record(
            context.user_id,
            context.organization_id,
            "PROPERTY_DELETED",
            f"deleted property {address}",
            {"property_id": property_id},
            entity_id=property_id,
        )
