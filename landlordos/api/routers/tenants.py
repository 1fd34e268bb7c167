from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from landlordos.api.deps import CurrentContext, require_perm
from landlordos.domain.models import TenantCreate, TenantRead, TenantUpdate
from landlordos.domain.permissions import (
    PERM_TENANTS_CREATE,
    PERM_TENANTS_DELETE,
    PERM_TENANTS_READ,
    PERM_TENANTS_UPDATE,
)
from landlordos.services.tenant_service import ConflictError, NotFoundError, TenantService, ValidationError

router = APIRouter()


def get_tenant_service() -> TenantService:
    return TenantService()


Service = Annotated[TenantService, Depends(get_tenant_service)]


def _handle_tenant_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    raise exc


@router.get(
    "",
    response_model=list[TenantRead],
    dependencies=[Depends(require_perm(PERM_TENANTS_READ))],
)
def list_tenants(context: CurrentContext, service: Service, search: str | None = None) -> list[TenantRead]:
    return [TenantRead.model_validate(item) for item in service.list_tenants(context, search=search)]


@router.get(
    "/{tenant_id}",
    response_model=TenantRead,
    dependencies=[Depends(require_perm(PERM_TENANTS_READ))],
)
def get_tenant(tenant_id: str, context: CurrentContext, service: Service) -> TenantRead:
    try:
        return TenantRead.model_validate(service.get_tenant(context, tenant_id))
    except NotFoundError as exc:
        _handle_tenant_error(exc)
        raise


@router.post(
    "",
    response_model=TenantRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_TENANTS_CREATE))],
)
def create_tenant(payload: TenantCreate, context: CurrentContext, service: Service) -> TenantRead:
    try:
        return TenantRead.model_validate(service.create_tenant(context, payload))
    except ConflictError as exc:
        _handle_tenant_error(exc)
        raise


@router.put(
    "/{tenant_id}",
    response_model=TenantRead,
    dependencies=[Depends(require_perm(PERM_TENANTS_UPDATE))],
)
def update_tenant(tenant_id: str, payload: TenantUpdate, context: CurrentContext, service: Service) -> TenantRead:
    try:
        return TenantRead.model_validate(service.update_tenant(context, tenant_id, payload))
    except (NotFoundError, ConflictError) as exc:
        _handle_tenant_error(exc)
        raise


@router.delete(
    "/{tenant_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_TENANTS_DELETE))],
)
def delete_tenant(tenant_id: str, context: CurrentContext, service: Service) -> None:
    try:
        service.delete_tenant(context, tenant_id)
    except (NotFoundError, ValidationError) as exc:
        _handle_tenant_error(exc)
        raise
