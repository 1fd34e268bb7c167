from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from landlordos.api.deps import CurrentContext, require_perm
from landlordos.domain.models import ExpenseCreate, ExpensePage, ExpenseRead, ExpenseUpdate
from landlordos.domain.permissions import (
    PERM_EXPENSES_CREATE,
    PERM_EXPENSES_DELETE,
    PERM_EXPENSES_READ,
    PERM_EXPENSES_UPDATE,
)
from landlordos.services.expense_service import ExpenseService, ForbiddenError, NotFoundError

router = APIRouter()


def get_expense_service() -> ExpenseService:
    return ExpenseService()


Service = Annotated[ExpenseService, Depends(get_expense_service)]


def _handle_expense_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ForbiddenError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    raise exc


@router.get(
    "",
    response_model=ExpensePage,
    dependencies=[Depends(require_perm(PERM_EXPENSES_READ))],
)
def list_expenses(
    context: CurrentContext,
    service: Service,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    category: str | None = None,
    property_id: str | None = None,
) -> ExpensePage:
    try:
        rows, pagination = service.list_expenses(
            context,
            page=page,
            limit=limit,
            category=category,
            property_id=property_id,
        )
    except ForbiddenError as exc:
        _handle_expense_error(exc)
        raise
    return ExpensePage(items=[ExpenseRead.model_validate(item) for item in rows], pagination=pagination)


@router.post(
    "",
    response_model=ExpenseRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_EXPENSES_CREATE))],
)
def create_expense(payload: ExpenseCreate, context: CurrentContext, service: Service) -> ExpenseRead:
    try:
        return ExpenseRead.model_validate(service.create_expense(context, payload))
    except ForbiddenError as exc:
        _handle_expense_error(exc)
        raise


@router.put(
    "/{expense_id}",
    response_model=ExpenseRead,
    dependencies=[Depends(require_perm(PERM_EXPENSES_UPDATE))],
)
def update_expense(
    expense_id: str,
    payload: ExpenseUpdate,
    context: CurrentContext,
    service: Service,
) -> ExpenseRead:
    try:
        return ExpenseRead.model_validate(service.update_expense(context, expense_id, payload))
    except NotFoundError as exc:
        _handle_expense_error(exc)
        raise


@router.delete(
    "/{expense_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_EXPENSES_DELETE))],
)
def delete_expense(expense_id: str, context: CurrentContext, service: Service) -> None:
    try:
        service.delete_expense(context, expense_id)
    except NotFoundError as exc:
        _handle_expense_error(exc)
        raise
