from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import ColumnElement, Select, and_, or_
from sqlmodel import Session, col, select

from landlordos.domain.models import (
    Assignment,
    Expense,
    Lease,
    MaintenanceTask,
    Payment,
    Property,
    Reminder,
    Tenant,
)


def _normalize_ids(values: Iterable[str] | None) -> frozenset[str]:
    if not values:
        return frozenset()
    return frozenset(item.strip() for item in values if isinstance(item, str) and item.strip())


def build_property_scope(
    organization_id: str,
    assigned_property_ids: Iterable[str] | None = None,
) -> ColumnElement[bool]:
    """Predicate over ``Property`` rows visible to a user.

    The organization clause is always present; assignments only narrow it.
    """
    predicate = col(Property.organization_id) == organization_id
    assigned = _normalize_ids(assigned_property_ids)
    if assigned:
        predicate = and_(predicate, col(Property.id).in_(sorted(assigned)))
    return predicate


@dataclass(frozen=True)
class PropertyScope:
    organization_id: str
    assigned_property_ids: frozenset[str] = frozenset()

    def is_restricted(self) -> bool:
        return bool(self.assigned_property_ids)

    def predicate(self) -> ColumnElement[bool]:
        return build_property_scope(self.organization_id, self.assigned_property_ids)

    def property_ids(self) -> Select:
        return select(Property.id).where(self.predicate())

    def allows(self, prop: Property | None) -> bool:
        if prop is None or prop.organization_id != self.organization_id:
            return False
        return not self.assigned_property_ids or prop.id in self.assigned_property_ids

    def allows_property_id(self, session: Session, property_id: str | None) -> bool:
        if not property_id:
            return False
        return self.allows(session.get(Property, property_id))


class PropertyScopeService:
    def make_scope(
        self,
        organization_id: str,
        assigned_property_ids: Iterable[str] | None = None,
    ) -> PropertyScope:
        return PropertyScope(
            organization_id=organization_id,
            assigned_property_ids=_normalize_ids(assigned_property_ids),
        )

    def assigned_property_ids(self, session: Session, organization_id: str, user_id: str) -> list[str]:
        rows = session.exec(
            select(Assignment.property_id)
            .where(Assignment.organization_id == organization_id)
            .where(Assignment.user_id == user_id)
            .where(Assignment.is_active == True)  # noqa: E712
        ).all()
        return sorted(set(rows))

    def resolve_scope(self, session: Session, organization_id: str, user_id: str | None) -> PropertyScope:
        if user_id is None:
            return self.make_scope(organization_id)
        return self.make_scope(
            organization_id,
            self.assigned_property_ids(session, organization_id, user_id),
        )

    def properties_filter(self, scope: PropertyScope) -> ColumnElement[bool]:
        return scope.predicate()

    def leases_filter(self, scope: PropertyScope) -> ColumnElement[bool]:
        return col(Lease.property_id).in_(scope.property_ids())

    def payments_filter(self, scope: PropertyScope) -> ColumnElement[bool]:
        lease_ids = select(Lease.id).where(self.leases_filter(scope))
        return col(Payment.lease_id).in_(lease_ids)

    def expenses_filter(self, scope: PropertyScope) -> ColumnElement[bool]:
        return col(Expense.property_id).in_(scope.property_ids())

    def maintenance_filter(self, scope: PropertyScope) -> ColumnElement[bool]:
        return col(MaintenanceTask.property_id).in_(scope.property_ids())

    def reminders_filter(self, scope: PropertyScope) -> ColumnElement[bool]:
        lease_ids = select(Lease.id).where(self.leases_filter(scope))
        return or_(
            col(Reminder.property_id).in_(scope.property_ids()),
            col(Reminder.lease_id).in_(lease_ids),
        )

    def tenants_filter(self, scope: PropertyScope) -> ColumnElement[bool]:
        organization_clause = col(Tenant.organization_id) == scope.organization_id
        if not scope.is_restricted():
            return organization_clause
        leased_in_scope = (
            select(Lease.id)
            .where(Lease.tenant_id == Tenant.id)
            .where(self.leases_filter(scope))
            .exists()
        )
        return and_(organization_clause, leased_in_scope)
