from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from landlordos.api.deps import CurrentContext, require_perm
from landlordos.domain.models import (
    MaintenancePriority,
    MaintenanceStatus,
    MaintenanceTaskCreate,
    MaintenanceTaskRead,
    MaintenanceTaskUpdate,
)
from landlordos.domain.permissions import (
    PERM_MAINTENANCE_CREATE,
    PERM_MAINTENANCE_DELETE,
    PERM_MAINTENANCE_READ,
    PERM_MAINTENANCE_UPDATE,
)
from landlordos.services.maintenance_service import ForbiddenError, MaintenanceService, NotFoundError

router = APIRouter()


def get_maintenance_service() -> MaintenanceService:
    return MaintenanceService()


Service = Annotated[MaintenanceService, Depends(get_maintenance_service)]


def _handle_maintenance_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ForbiddenError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    raise exc


@router.get(
    "",
    response_model=list[MaintenanceTaskRead],
    dependencies=[Depends(require_perm(PERM_MAINTENANCE_READ))],
)
def list_tasks(
    context: CurrentContext,
    service: Service,
    status_filter: Annotated[MaintenanceStatus | None, Query(alias="status")] = None,
    priority: MaintenancePriority | None = None,
    property_id: str | None = None,
) -> list[MaintenanceTaskRead]:
    rows = service.list_tasks(context, status=status_filter, priority=priority, property_id=property_id)
    return [MaintenanceTaskRead.model_validate(item) for item in rows]


@router.post(
    "",
    response_model=MaintenanceTaskRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_MAINTENANCE_CREATE))],
)
def create_task(payload: MaintenanceTaskCreate, context: CurrentContext, service: Service) -> MaintenanceTaskRead:
    try:
        return MaintenanceTaskRead.model_validate(service.create_task(context, payload))
    except ForbiddenError as exc:
        _handle_maintenance_error(exc)
        raise


@router.put(
    "/{task_id}",
    response_model=MaintenanceTaskRead,
    dependencies=[Depends(require_perm(PERM_MAINTENANCE_UPDATE))],
)
def update_task(
    task_id: str,
    payload: MaintenanceTaskUpdate,
    context: CurrentContext,
    service: Service,
) -> MaintenanceTaskRead:
    try:
        return MaintenanceTaskRead.model_validate(service.update_task(context, task_id, payload))
    except NotFoundError as exc:
        _handle_maintenance_error(exc)
        raise


@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_MAINTENANCE_DELETE))],
)
def delete_task(task_id: str, context: CurrentContext, service: Service) -> None:
    try:
        service.delete_task(context, task_id)
    except NotFoundError as exc:
        _handle_maintenance_error(exc)
        raise
