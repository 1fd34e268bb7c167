from __future__ import annotations

from typing import Any

from sqlmodel import Session

from landlordos.domain.models import AuditLog
from landlordos.infra.db import engine
from landlordos.infra.logging_config import get_logger

logger = get_logger("landlordos.audit")


def _entity_type_from_action(action: str) -> str | None:
    head, sep, _ = action.partition("_")
    return head if sep and head else None


def write_audit_log(
    *,
    organization_id: str,
    user_id: str | None,
    action: str,
    description: str | None = None,
    payload: dict[str, Any] | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
) -> AuditLog:
    log = AuditLog(
        organization_id=organization_id,
        user_id=user_id,
        action=action,
        entity_type=entity_type or _entity_type_from_action(action),
        entity_id=entity_id,
        description=description,
        payload=payload or {},
    )
    with Session(engine, expire_on_commit=False) as session:
        session.add(log)
        session.commit()
    return log


def record(
    user_id: str | None,
    organization_id: str,
    action: str,
    description: str | None = None,
    payload: dict[str, Any] | None = None,
    *,
    entity_type: str | None = None,
    entity_id: str | None = None,
) -> AuditLog | None:
    """Append an audit entry after a mutation has already been committed.

    Failures are logged and swallowed so the triggering request still succeeds.
    """
    try:
        return write_audit_log(
            organization_id=organization_id,
            user_id=user_id,
            action=action,
            description=description,
            payload=payload,
            entity_type=entity_type,
            entity_id=entity_id,
        )
    except Exception:
        logger.exception("audit write failed: action=%s organization=%s", action, organization_id)
        return None
