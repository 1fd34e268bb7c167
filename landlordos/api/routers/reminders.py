from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from landlordos.api.deps import CurrentContext, require_perm
from landlordos.domain.models import ReminderCreate, ReminderRead
from landlordos.domain.permissions import (
    PERM_REMINDERS_CREATE,
    PERM_REMINDERS_DELETE,
    PERM_REMINDERS_READ,
    PERM_REMINDERS_UPDATE,
)
from landlordos.services.reminder_service import ForbiddenError, NotFoundError, ReminderService, ValidationError

router = APIRouter()


def get_reminder_service() -> ReminderService:
    return ReminderService()


Service = Annotated[ReminderService, Depends(get_reminder_service)]


def _handle_reminder_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ForbiddenError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    raise exc


@router.get(
    "",
    response_model=list[ReminderRead],
    dependencies=[Depends(require_perm(PERM_REMINDERS_READ))],
)
def list_reminders(context: CurrentContext, service: Service, completed: bool = False) -> list[ReminderRead]:
    return [ReminderRead.model_validate(item) for item in service.list_reminders(context, completed=completed)]


@router.post(
    "",
    response_model=ReminderRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_REMINDERS_CREATE))],
)
def create_reminder(payload: ReminderCreate, context: CurrentContext, service: Service) -> ReminderRead:
    try:
        return ReminderRead.model_validate(service.create_reminder(context, payload))
    except (ForbiddenError, ValidationError) as exc:
        _handle_reminder_error(exc)
        raise


@router.patch(
    "/{reminder_id}/complete",
    response_model=ReminderRead,
    dependencies=[Depends(require_perm(PERM_REMINDERS_UPDATE))],
)
def complete_reminder(reminder_id: str, context: CurrentContext, service: Service) -> ReminderRead:
    try:
        return ReminderRead.model_validate(service.complete_reminder(context, reminder_id))
    except NotFoundError as exc:
        _handle_reminder_error(exc)
        raise


@router.delete(
    "/{reminder_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_REMINDERS_DELETE))],
)
def delete_reminder(reminder_id: str, context: CurrentContext, service: Service) -> None:
    try:
        service.delete_reminder(context, reminder_id)
    except NotFoundError as exc:
        _handle_reminder_error(exc)
        raise
