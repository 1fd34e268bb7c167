from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, Any

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from landlordos.infra.auth import decode_access_token
from landlordos.infra.logging_config import get_logger
from landlordos.infra.request_context import set_request_context
from landlordos.services.access_service import AccessService, AuthContext, AuthError, ForbiddenError

logger = get_logger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def get_access_service() -> AccessService:
    return AccessService()


def get_current_claims(
    request: Request,
    token: str = Depends(oauth2_scheme),
) -> dict[str, Any]:
    try:
        claims = decode_access_token(token)
    except Exception as exc:
        logger.info("rejected bearer token: %s", exc.__class__.__name__)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
    request.state.claims = claims
    set_request_context(claims.get("organization_id"), claims.get("sub"))
    return claims


def get_current_context(
    request: Request,
    claims: Annotated[dict[str, Any], Depends(get_current_claims)],
    access: Annotated[AccessService, Depends(get_access_service)],
    x_organization_id: Annotated[str | None, Header()] = None,
) -> AuthContext:
    try:
        context = access.load_context(claims["sub"], x_organization_id)
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except ForbiddenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    request.state.auth_context = context
    set_request_context(context.organization_id, context.user_id)
    return context


def require_perm(permission: str) -> Callable[[AuthContext], AuthContext]:
    def _checker(
        context: Annotated[AuthContext, Depends(get_current_context)],
    ) -> AuthContext:
        if not context.has_permission(permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {permission}",
            )
        return context

    return _checker


def require_any_perm(*permissions: str) -> Callable[[AuthContext], AuthContext]:
    expected = [item for item in permissions if item]

    def _checker(
        context: Annotated[AuthContext, Depends(get_current_context)],
    ) -> AuthContext:
        if not expected:
            return context
        if any(context.has_permission(permission) for permission in expected):
            return context
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing any permission: {', '.join(expected)}",
        )

    return _checker


def require_role_level(min_level: int) -> Callable[[AuthContext], AuthContext]:
    def _checker(
        context: Annotated[AuthContext, Depends(get_current_context)],
    ) -> AuthContext:
        if context.max_role_level < min_level:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient role level: requires {min_level}+, current {context.max_role_level}",
            )
        return context

    return _checker


CurrentContext = Annotated[AuthContext, Depends(get_current_context)]
