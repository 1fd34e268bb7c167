from __future__ import annotations

from sqlmodel import Session, col, select

from landlordos.domain.models import Lease, Property, Reminder, ReminderCreate
from landlordos.infra import audit
from landlordos.infra.db import get_engine
from landlordos.services.access_service import AuthContext
from landlordos.services.property_scope_service import PropertyScopeService


class ReminderError(Exception):
    pass


class NotFoundError(ReminderError):
    pass


class ForbiddenError(ReminderError):
    pass


class ValidationError(ReminderError):
    pass


class ReminderService:
    def __init__(self) -> None:
        self._scopes = PropertyScopeService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_scoped_reminder(self, session: Session, context: AuthContext, reminder_id: str) -> Reminder:
        reminder = session.exec(
            select(Reminder).where(self._scopes.reminders_filter(context.scope)).where(Reminder.id == reminder_id)
        ).first()
        if reminder is None:
            raise NotFoundError("reminder not found")
        return reminder

    def list_reminders(self, context: AuthContext, *, completed: bool = False) -> list[Reminder]:
        with self._session() as session:
            statement = (
                select(Reminder)
                .where(self._scopes.reminders_filter(context.scope))
                .where(Reminder.is_completed == completed)
                .order_by(col(Reminder.due_date).asc())
            )
            return list(session.exec(statement).all())

    def create_reminder(self, context: AuthContext, payload: ReminderCreate) -> Reminder:
        if not payload.property_id and not payload.lease_id:
            raise ValidationError("reminder needs a property or a lease")
        with self._session() as session:
            if payload.property_id and not context.scope.allows(session.get(Property, payload.property_id)):
                raise ForbiddenError("you do not have permission to create reminders for this property")
            if payload.lease_id:
                lease = session.get(Lease, payload.lease_id)
                if lease is None or not context.scope.allows(session.get(Property, lease.property_id)):
                    raise ForbiddenError("you do not have permission to create reminders for this lease")
            reminder = Reminder(**payload.model_dump())
            session.add(reminder)
            session.commit()
            session.refresh(reminder)

        audit.record(
            context.user_id,
            context.organization_id,
            "REMINDER_CREATED",
            f"created reminder {reminder.title}",
            {"reminder_id": reminder.id, "property_id": reminder.property_id, "lease_id": reminder.lease_id},
            entity_id=reminder.id,
        )
        return reminder

    def complete_reminder(self, context: AuthContext, reminder_id: str) -> Reminder:
        with self._session() as session:
            reminder = self._get_scoped_reminder(session, context, reminder_id)
            reminder.is_completed = True
            session.add(reminder)
            session.commit()
            session.refresh(reminder)

        audit.record(
            context.user_id,
            context.organization_id,
            "REMINDER_COMPLETED",
            f"completed reminder {reminder.title}",
            {"reminder_id": reminder.id},
            entity_id=reminder.id,
        )
        return reminder

    def delete_reminder(self, context: AuthContext, reminder_id: str) -> None:
        with self._session() as session:
            reminder = self._get_scoped_reminder(session, context, reminder_id)
            title = reminder.title
            session.delete(reminder)
            session.commit()

        audit.record(
            context.user_id,
            context.organization_id,
            "REMINDER_DELETED",
            f"deleted reminder {title}",
            {"reminder_id": reminder_id},
            entity_id=reminder_id,
        )
