from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from landlordos.api.deps import CurrentContext, require_any_perm, require_perm, require_role_level
from landlordos.domain.models import (
    AssignmentCreate,
    AssignmentRead,
    AuditLogPage,
    AuditLogRead,
    InviteUserRead,
    InviteUserRequest,
    MemberRead,
    OrganizationDetailRead,
    OrganizationRead,
    OrganizationUpdate,
    RoleCreate,
    RoleRead,
    UserRead,
    UserRoleUpdateRequest,
)
from landlordos.domain.permissions import (
    PERM_AUDIT_LOGS_READ,
    PERM_ORGANIZATION_MANAGE,
    PERM_PROPERTIES_ASSIGN,
    PERM_USERS_DELETE,
    PERM_USERS_INVITE,
    PERM_USERS_READ,
    PERM_USERS_UPDATE,
)
from landlordos.services.organization_service import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    OrganizationService,
    ValidationError,
)

router = APIRouter()


def get_organization_service() -> OrganizationService:
    return OrganizationService()


Service = Annotated[OrganizationService, Depends(get_organization_service)]


def _handle_organization_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, ForbiddenError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    raise exc


@router.get(
    "",
    response_model=OrganizationDetailRead,
    dependencies=[Depends(require_any_perm(PERM_ORGANIZATION_MANAGE, PERM_USERS_READ))],
)
def get_organization(context: CurrentContext, service: Service) -> OrganizationDetailRead:
    try:
        detail = service.get_organization(context)
    except NotFoundError as exc:
        _handle_organization_error(exc)
        raise
    return OrganizationDetailRead(
        organization=OrganizationRead.model_validate(detail["organization"]),
        user_count=detail["user_count"],
        property_count=detail["property_count"],
        active_role_count=detail["active_role_count"],
    )


@router.patch(
    "",
    response_model=OrganizationRead,
    dependencies=[Depends(require_role_level(9))],
)
def update_organization(payload: OrganizationUpdate, context: CurrentContext, service: Service) -> OrganizationRead:
    try:
        organization = service.update_organization(context, payload)
        return OrganizationRead.model_validate(organization)
    except NotFoundError as exc:
        _handle_organization_error(exc)
        raise


@router.get(
    "/users",
    response_model=list[MemberRead],
    dependencies=[Depends(require_perm(PERM_USERS_READ))],
)
def list_members(context: CurrentContext, service: Service) -> list[MemberRead]:
    return [
        MemberRead(
            user=UserRead.model_validate(item["user"]),
            roles=[RoleRead.model_validate(role) for role in item["roles"]],
            assignments=[AssignmentRead.model_validate(row) for row in item["assignments"]],
        )
        for item in service.list_members(context)
    ]


@router.post(
    "/users/invite",
    response_model=InviteUserRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_USERS_INVITE)), Depends(require_role_level(7))],
)
def invite_user(payload: InviteUserRequest, context: CurrentContext, service: Service) -> InviteUserRead:
    try:
        user, temp_password = service.invite_user(context, payload)
        return InviteUserRead(user=UserRead.model_validate(user), temp_password=temp_password)
    except (NotFoundError, ConflictError, ForbiddenError, ValidationError) as exc:
        _handle_organization_error(exc)
        raise


@router.patch(
    "/users/{user_id}/role",
    response_model=RoleRead,
    dependencies=[Depends(require_perm(PERM_USERS_UPDATE)), Depends(require_role_level(7))],
)
def update_user_role(
    user_id: str,
    payload: UserRoleUpdateRequest,
    context: CurrentContext,
    service: Service,
) -> RoleRead:
    try:
        role = service.update_user_role(context, user_id, payload.role_id)
        return RoleRead.model_validate(role)
    except (NotFoundError, ForbiddenError, ValidationError) as exc:
        _handle_organization_error(exc)
        raise


@router.delete(
    "/users/{user_id}",
    response_model=UserRead,
    dependencies=[Depends(require_perm(PERM_USERS_DELETE)), Depends(require_role_level(7))],
)
def deactivate_user(user_id: str, context: CurrentContext, service: Service) -> UserRead:
    try:
        user = service.deactivate_user(context, user_id)
        return UserRead.model_validate(user)
    except (NotFoundError, ForbiddenError) as exc:
        _handle_organization_error(exc)
        raise


@router.post(
    "/users/{user_id}/assignments",
    response_model=AssignmentRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_PROPERTIES_ASSIGN)), Depends(require_role_level(5))],
)
def assign_property(
    user_id: str,
    payload: AssignmentCreate,
    context: CurrentContext,
    service: Service,
) -> AssignmentRead:
    try:
        assignment = service.assign_property(context, user_id, payload)
        return AssignmentRead.model_validate(assignment)
    except (NotFoundError, ForbiddenError, ValidationError) as exc:
        _handle_organization_error(exc)
        raise


@router.delete(
    "/users/{user_id}/assignments/{property_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_PROPERTIES_ASSIGN)), Depends(require_role_level(5))],
)
def unassign_property(user_id: str, property_id: str, context: CurrentContext, service: Service) -> None:
    try:
        service.unassign_property(context, user_id, property_id)
    except (NotFoundError, ForbiddenError) as exc:
        _handle_organization_error(exc)
        raise


@router.get(
    "/roles",
    response_model=list[RoleRead],
    dependencies=[Depends(require_perm(PERM_USERS_READ))],
)
def list_roles(context: CurrentContext, service: Service) -> list[RoleRead]:
    return [RoleRead.model_validate(item) for item in service.list_roles(context)]


@router.post(
    "/roles",
    response_model=RoleRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_ORGANIZATION_MANAGE))],
)
def create_role(payload: RoleCreate, context: CurrentContext, service: Service) -> RoleRead:
    try:
        role = service.create_role(context, payload)
        return RoleRead.model_validate(role)
    except (ConflictError, ForbiddenError, ValidationError) as exc:
        _handle_organization_error(exc)
        raise


@router.get(
    "/audit",
    response_model=AuditLogPage,
    dependencies=[Depends(require_perm(PERM_AUDIT_LOGS_READ)), Depends(require_role_level(7))],
)
def list_audit_logs(
    context: CurrentContext,
    service: Service,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
    entity_type: str | None = None,
    user_id: str | None = None,
) -> AuditLogPage:
    rows, total = service.list_audit_logs(
        context,
        limit=limit,
        offset=offset,
        entity_type=entity_type,
        user_id=user_id,
    )
    return AuditLogPage(
        items=[AuditLogRead.model_validate(item) for item in rows],
        total=total,
        limit=limit,
        offset=offset,
    )
