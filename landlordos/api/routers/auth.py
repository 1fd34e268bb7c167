from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from landlordos.api.deps import CurrentContext
from landlordos.domain.models import (
    LoginRequest,
    OrganizationRead,
    ProfileRead,
    ProfileUpdate,
    RegisterRequest,
    RoleRead,
    TokenResponse,
    UserRead,
)
from landlordos.infra.auth import create_access_token
from landlordos.infra.logging_config import get_logger
from landlordos.services.access_service import AuthContext
from landlordos.services.identity_service import AuthError, ConflictError, IdentityService, NotFoundError

router = APIRouter()
logger = get_logger(__name__)


def get_identity_service() -> IdentityService:
    return IdentityService()


Service = Annotated[IdentityService, Depends(get_identity_service)]


def _handle_identity_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, AuthError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    raise exc


def _token_response(context: AuthContext) -> TokenResponse:
    token = create_access_token(user_id=context.user_id, organization_id=context.organization_id)
    return TokenResponse(
        access_token=token,
        permissions=sorted(context.permissions),
        assigned_property_ids=sorted(context.assigned_property_ids),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, service: Service) -> TokenResponse:
    try:
        _, context = service.register(payload)
        return _token_response(context)
    except (NotFoundError, ConflictError, AuthError) as exc:
        _handle_identity_error(exc)
        raise


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, service: Service) -> TokenResponse:
    try:
        _, context = service.login(payload.email, payload.password)
        return _token_response(context)
    except AuthError as exc:
        logger.warning("login failed for %s: %s", payload.email, exc)
        _handle_identity_error(exc)
        raise


@router.get("/me", response_model=ProfileRead)
def me(context: CurrentContext, service: Service) -> ProfileRead:
    try:
        user, organization, roles = service.get_profile(context)
    except NotFoundError as exc:
        _handle_identity_error(exc)
        raise
    return ProfileRead(
        user=UserRead.model_validate(user),
        organization=OrganizationRead.model_validate(organization),
        roles=[RoleRead.model_validate(item) for item in roles],
        permissions=sorted(context.permissions),
        assigned_property_ids=sorted(context.assigned_property_ids),
        max_role_level=context.max_role_level,
    )


@router.put("/profile", response_model=UserRead)
def update_profile(payload: ProfileUpdate, context: CurrentContext, service: Service) -> UserRead:
    try:
        user = service.update_profile(context, payload)
        return UserRead.model_validate(user)
    except NotFoundError as exc:
        _handle_identity_error(exc)
        raise


@router.post("/refresh", response_model=TokenResponse)
def refresh(context: CurrentContext) -> TokenResponse:
    return _token_response(context)
