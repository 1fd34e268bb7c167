from __future__ import annotations

from datetime import date

from sqlmodel import Session, col, select

from landlordos.domain.models import (
    Lease,
    LeaseCreate,
    LeaseStatus,
    LeaseUpdate,
    Payment,
    PaymentCreate,
    Property,
    Reminder,
    Tenant,
)
from landlordos.infra import audit
from landlordos.infra.db import get_engine
from landlordos.services.access_service import AuthContext
from landlordos.services.property_scope_service import PropertyScopeService


class LeaseError(Exception):
    pass


class NotFoundError(LeaseError):
    pass


class ConflictError(LeaseError):
    pass


class ValidationError(LeaseError):
    pass


class LeaseService:
    def __init__(self) -> None:
        self._scopes = PropertyScopeService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_scoped_lease(self, session: Session, context: AuthContext, lease_id: str) -> Lease:
        lease = session.exec(
            select(Lease).where(self._scopes.leases_filter(context.scope)).where(Lease.id == lease_id)
        ).first()
        if lease is None:
            raise NotFoundError("lease not found")
        return lease

    def _ensure_dates(self, start_date: date, end_date: date) -> None:
        if end_date <= start_date:
            raise ValidationError("end date must be after start date")

    def _ensure_no_overlap(
        self,
        session: Session,
        property_id: str,
        start_date: date,
        end_date: date,
        exclude_id: str | None = None,
    ) -> None:
        statement = (
            select(Lease.id)
            .where(Lease.property_id == property_id)
            .where(Lease.status == LeaseStatus.ACTIVE)
            .where(Lease.start_date <= end_date)
            .where(Lease.end_date >= start_date)
        )
        if exclude_id is not None:
            statement = statement.where(Lease.id != exclude_id)
        if session.exec(statement).first() is not None:
            raise ConflictError("property already has an active lease during this period")

    def list_leases(
        self,
        context: AuthContext,
        *,
        status: LeaseStatus | None = None,
        property_id: str | None = None,
    ) -> list[Lease]:
        with self._session() as session:
            statement = select(Lease).where(self._scopes.leases_filter(context.scope))
            if status is not None:
                statement = statement.where(Lease.status == status)
            if property_id is not None:
                statement = statement.where(Lease.property_id == property_id)
            return list(session.exec(statement.order_by(col(Lease.created_at).desc())).all())

    def get_lease(self, context: AuthContext, lease_id: str) -> Lease:
        with self._session() as session:
            return self._get_scoped_lease(session, context, lease_id)

    def create_lease(self, context: AuthContext, payload: LeaseCreate) -> Lease:
        self._ensure_dates(payload.start_date, payload.end_date)
        with self._session() as session:
            prop = session.get(Property, payload.property_id)
            if not context.scope.allows(prop):
                raise NotFoundError("property not found or access denied")
            tenant = session.exec(
                select(Tenant)
                .where(Tenant.organization_id == context.organization_id)
                .where(Tenant.id == payload.tenant_id)
            ).first()
            if tenant is None:
                raise NotFoundError("tenant not found")
            if payload.status == LeaseStatus.ACTIVE:
                self._ensure_no_overlap(session, payload.property_id, payload.start_date, payload.end_date)

            lease = Lease(**payload.model_dump())
            session.add(lease)
            session.commit()
            session.refresh(lease)

        audit.record(
            context.user_id,
            context.organization_id,
            "LEASE_CREATED",
            f"created lease for property {lease.property_id}",
            {
                "lease_id": lease.id,
                "property_id": lease.property_id,
                "tenant_id": lease.tenant_id,
                "monthly_rent": lease.monthly_rent,
            },
            entity_id=lease.id,
        )
        return lease

    def update_lease(self, context: AuthContext, lease_id: str, payload: LeaseUpdate) -> Lease:
        changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
        with self._session() as session:
            lease = self._get_scoped_lease(session, context, lease_id)
            start_date = changes.get("start_date", lease.start_date)
            end_date = changes.get("end_date", lease.end_date)
            self._ensure_dates(start_date, end_date)
            if changes.get("status", lease.status) == LeaseStatus.ACTIVE:
                self._ensure_no_overlap(session, lease.property_id, start_date, end_date, exclude_id=lease.id)
            for field_name, value in changes.items():
                setattr(lease, field_name, value)
            session.add(lease)
            session.commit()
            session.refresh(lease)

        audit.record(
            context.user_id,
            context.organization_id,
            "LEASE_UPDATED",
            f"updated lease {lease.id}",
            {"lease_id": lease.id, "fields": sorted(changes), "status": lease.status},
            entity_id=lease.id,
        )
        return lease

    def delete_lease(self, context: AuthContext, lease_id: str) -> None:
        with self._session() as session:
            lease = self._get_scoped_lease(session, context, lease_id)
            if lease.status == LeaseStatus.ACTIVE:
                raise ValidationError("cannot delete an active lease")
            if session.exec(select(Payment.id).where(Payment.lease_id == lease.id)).first() is not None:
                raise ValidationError("cannot delete lease with associated payments")
            for reminder in session.exec(select(Reminder).where(Reminder.lease_id == lease.id)).all():
                session.delete(reminder)
            session.flush()
            session.delete(lease)
            session.commit()

        audit.record(
            context.user_id,
            context.organization_id,
            "LEASE_DELETED",
            f"deleted lease {lease_id}",
            {"lease_id": lease_id},
            entity_id=lease_id,
        )

    def list_payments(self, context: AuthContext, lease_id: str) -> list[Payment]:
        with self._session() as session:
            lease = self._get_scoped_lease(session, context, lease_id)
            return list(
                session.exec(
                    select(Payment).where(Payment.lease_id == lease.id).order_by(col(Payment.due_date).desc())
                ).all()
            )

    def create_payment(self, context: AuthContext, lease_id: str, payload: PaymentCreate) -> Payment:
        with self._session() as session:
            lease = self._get_scoped_lease(session, context, lease_id)
            payment = Payment(lease_id=lease.id, **payload.model_dump())
            session.add(payment)
            session.commit()
            session.refresh(payment)

        audit.record(
            context.user_id,
            context.organization_id,
            "PAYMENT_CREATED",
            f"recorded payment of {payment.amount} for lease {lease_id}",
            {"payment_id": payment.id, "lease_id": lease_id, "amount": payment.amount, "status": payment.status},
            entity_id=payment.id,
        )
        return payment
