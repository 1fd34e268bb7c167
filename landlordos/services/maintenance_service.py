from __future__ import annotations

from sqlalchemy import case
from sqlmodel import Session, col, select

from landlordos.domain.models import (
    MaintenancePriority,
    MaintenanceStatus,
    MaintenanceTask,
    MaintenanceTaskCreate,
    MaintenanceTaskUpdate,
)
from landlordos.infra import audit
from landlordos.infra.db import get_engine
from landlordos.services.access_service import AuthContext
from landlordos.services.property_scope_service import PropertyScopeService

PRIORITY_RANK: dict[MaintenancePriority, int] = {
    MaintenancePriority.LOW: 0,
    MaintenancePriority.MEDIUM: 1,
    MaintenancePriority.HIGH: 2,
    MaintenancePriority.URGENT: 3,
}


class MaintenanceError(Exception):
    pass


class NotFoundError(MaintenanceError):
    pass


class ForbiddenError(MaintenanceError):
    pass


class MaintenanceService:
    def __init__(self) -> None:
        self._scopes = PropertyScopeService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_scoped_task(self, session: Session, context: AuthContext, task_id: str) -> MaintenanceTask:
        task = session.exec(
            select(MaintenanceTask)
            .where(self._scopes.maintenance_filter(context.scope))
            .where(MaintenanceTask.id == task_id)
        ).first()
        if task is None:
            raise NotFoundError("maintenance task not found")
        return task

    def list_tasks(
        self,
        context: AuthContext,
        *,
        status: MaintenanceStatus | None = None,
        priority: MaintenancePriority | None = None,
        property_id: str | None = None,
    ) -> list[MaintenanceTask]:
        with self._session() as session:
            statement = select(MaintenanceTask).where(self._scopes.maintenance_filter(context.scope))
            if status is not None:
                statement = statement.where(MaintenanceTask.status == status)
            if priority is not None:
                statement = statement.where(MaintenanceTask.priority == priority)
            if property_id is not None:
                statement = statement.where(MaintenanceTask.property_id == property_id)
            priority_rank = case(
                {item.value: rank for item, rank in PRIORITY_RANK.items()},
                value=col(MaintenanceTask.priority),
                else_=-1,
            )
            statement = statement.order_by(
                priority_rank.desc(),
                col(MaintenanceTask.due_date).is_(None),
                col(MaintenanceTask.due_date).asc(),
            )
            return list(session.exec(statement).all())

    def create_task(self, context: AuthContext, payload: MaintenanceTaskCreate) -> MaintenanceTask:
        with self._session() as session:
            if not context.scope.allows_property_id(session, payload.property_id):
                raise ForbiddenError("you do not have permission to create maintenance tasks for this property")
            task = MaintenanceTask(**payload.model_dump())
            session.add(task)
            session.commit()
            session.refresh(task)

        audit.record(
            context.user_id,
            context.organization_id,
            "MAINTENANCE_CREATED",
            f"created maintenance task {task.title}",
            {"task_id": task.id, "property_id": task.property_id, "priority": task.priority},
            entity_id=task.id,
        )
        return task

    def update_task(self, context: AuthContext, task_id: str, payload: MaintenanceTaskUpdate) -> MaintenanceTask:
        changes = payload.model_dump(exclude_unset=True)
        with self._session() as session:
            task = self._get_scoped_task(session, context, task_id)
            for field_name, value in changes.items():
                if value is None and field_name in {"title", "priority", "status"}:
                    continue
                setattr(task, field_name, value)
            session.add(task)
            session.commit()
            session.refresh(task)

        audit.record(
            context.user_id,
            context.organization_id,
            "MAINTENANCE_UPDATED",
            f"updated maintenance task {task.title}",
            {"task_id": task.id, "fields": sorted(changes), "status": task.status},
            entity_id=task.id,
        )
        return task

    def delete_task(self, context: AuthContext, task_id: str) -> None:
        with self._session() as session:
            task = self._get_scoped_task(session, context, task_id)
            title = task.title
            session.delete(task)
            session.commit()

        audit.record(
            context.user_id,
            context.organization_id,
            "MAINTENANCE_DELETED",
            f"deleted maintenance task {title}",
            {"task_id": task_id},
            entity_id=task_id,
        )
