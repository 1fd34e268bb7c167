from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from landlordos.api.deps import CurrentContext, require_perm
from landlordos.domain.models import (
    PropertyCreate,
    PropertyPage,
    PropertyRead,
    PropertySummaryRead,
    PropertyUpdate,
)
from landlordos.domain.permissions import (
    PERM_PROPERTIES_CREATE,
    PERM_PROPERTIES_DELETE,
    PERM_PROPERTIES_READ,
    PERM_PROPERTIES_UPDATE,
)
from landlordos.services.property_service import NotFoundError, PropertyService, ValidationError

router = APIRouter()


def get_property_service() -> PropertyService:
    return PropertyService()


Service = Annotated[PropertyService, Depends(get_property_service)]


def _handle_property_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    raise exc


@router.get(
    "",
    response_model=PropertyPage,
    dependencies=[Depends(require_perm(PERM_PROPERTIES_READ))],
)
def list_properties(
    context: CurrentContext,
    service: Service,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    search: str | None = None,
) -> PropertyPage:
    rows, pagination = service.list_properties(context, page=page, limit=limit, search=search)
    return PropertyPage(
        items=[PropertySummaryRead.model_validate(item) for item in rows],
        pagination=pagination,
    )


@router.get(
    "/{property_id}",
    response_model=PropertySummaryRead,
    dependencies=[Depends(require_perm(PERM_PROPERTIES_READ))],
)
def get_property(property_id: str, context: CurrentContext, service: Service) -> PropertySummaryRead:
    try:
        return PropertySummaryRead.model_validate(service.get_property(context, property_id))
    except NotFoundError as exc:
        _handle_property_error(exc)
        raise


@router.post(
    "",
    response_model=PropertyRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_PROPERTIES_CREATE))],
)
def create_property(payload: PropertyCreate, context: CurrentContext, service: Service) -> PropertyRead:
    return PropertyRead.model_validate(service.create_property(context, payload))


@router.put(
    "/{property_id}",
    response_model=PropertyRead,
    dependencies=[Depends(require_perm(PERM_PROPERTIES_UPDATE))],
)
def update_property(
    property_id: str,
    payload: PropertyUpdate,
    context: CurrentContext,
    service: Service,
) -> PropertyRead:
    try:
        return PropertyRead.model_validate(service.update_property(context, property_id, payload))
    except NotFoundError as exc:
        _handle_property_error(exc)
        raise


@router.delete(
    "/{property_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_PROPERTIES_DELETE))],
)
def delete_property(property_id: str, context: CurrentContext, service: Service) -> None:
    try:
        service.delete_property(context, property_id)
    except (NotFoundError, ValidationError) as exc:
        _handle_property_error(exc)
        raise
