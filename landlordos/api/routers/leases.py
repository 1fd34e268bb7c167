from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from landlordos.api.deps import CurrentContext, require_perm
from landlordos.domain.models import (
    LeaseCreate,
    LeaseRead,
    LeaseStatus,
    LeaseUpdate,
    PaymentCreate,
    PaymentRead,
)
from landlordos.domain.permissions import (
    PERM_LEASES_CREATE,
    PERM_LEASES_DELETE,
    PERM_LEASES_READ,
    PERM_LEASES_UPDATE,
    PERM_PAYMENTS_CREATE,
    PERM_PAYMENTS_READ,
)
from landlordos.services.lease_service import ConflictError, LeaseService, NotFoundError, ValidationError

router = APIRouter()


def get_lease_service() -> LeaseService:
    return LeaseService()


Service = Annotated[LeaseService, Depends(get_lease_service)]


def _handle_lease_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    raise exc


@router.get(
    "",
    response_model=list[LeaseRead],
    dependencies=[Depends(require_perm(PERM_LEASES_READ))],
)
def list_leases(
    context: CurrentContext,
    service: Service,
    status_filter: Annotated[LeaseStatus | None, Query(alias="status")] = None,
    property_id: str | None = None,
) -> list[LeaseRead]:
    rows = service.list_leases(context, status=status_filter, property_id=property_id)
    return [LeaseRead.model_validate(item) for item in rows]


@router.get(
    "/{lease_id}",
    response_model=LeaseRead,
    dependencies=[Depends(require_perm(PERM_LEASES_READ))],
)
def get_lease(lease_id: str, context: CurrentContext, service: Service) -> LeaseRead:
    try:
        return LeaseRead.model_validate(service.get_lease(context, lease_id))
    except NotFoundError as exc:
        _handle_lease_error(exc)
        raise


@router.post(
    "",
    response_model=LeaseRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_LEASES_CREATE))],
)
def create_lease(payload: LeaseCreate, context: CurrentContext, service: Service) -> LeaseRead:
    try:
        return LeaseRead.model_validate(service.create_lease(context, payload))
    except (NotFoundError, ConflictError, ValidationError) as exc:
        _handle_lease_error(exc)
        raise


@router.put(
    "/{lease_id}",
    response_model=LeaseRead,
    dependencies=[Depends(require_perm(PERM_LEASES_UPDATE))],
)
def update_lease(lease_id: str, payload: LeaseUpdate, context: CurrentContext, service: Service) -> LeaseRead:
    try:
        return LeaseRead.model_validate(service.update_lease(context, lease_id, payload))
    except (NotFoundError, ConflictError, ValidationError) as exc:
        _handle_lease_error(exc)
        raise


@router.delete(
    "/{lease_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_LEASES_DELETE))],
)
def delete_lease(lease_id: str, context: CurrentContext, service: Service) -> None:
    try:
        service.delete_lease(context, lease_id)
    except (NotFoundError, ValidationError) as exc:
        _handle_lease_error(exc)
        raise


@router.get(
    "/{lease_id}/payments",
    response_model=list[PaymentRead],
    dependencies=[Depends(require_perm(PERM_PAYMENTS_READ))],
)
def list_payments(lease_id: str, context: CurrentContext, service: Service) -> list[PaymentRead]:
    try:
        return [PaymentRead.model_validate(item) for item in service.list_payments(context, lease_id)]
    except NotFoundError as exc:
        _handle_lease_error(exc)
        raise


@router.post(
    "/{lease_id}/payments",
    response_model=PaymentRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_PAYMENTS_CREATE))],
)
def create_payment(
    lease_id: str,
    payload: PaymentCreate,
    context: CurrentContext,
    service: Service,
) -> PaymentRead:
    try:
        return PaymentRead.model_validate(service.create_payment(context, lease_id, payload))
    except NotFoundError as exc:
        _handle_lease_error(exc)
        raise
