"""Append-only audit trail."""

import logging
import uuid
from typing import Any, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditAction, AuditLog

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def client_user_agent(request: Request) -> Optional[str]:
    user_agent = request.headers.get("user-agent")
    return user_agent[:512] if user_agent else None


async def record(
    db: AsyncSession,
    request: Request,
    action: AuditAction,
    user_id: Optional[uuid.UUID],
    resource_type: str = "USER",
    resource_id: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> AuditLog:
    """Add an audit entry to the current transaction.

    The entry is committed together with the change it describes.
    """
    entry = AuditLog(
        user_id=user_id,
        action=action.value,
        resource_type=resource_type,
        resource_id=resource_id or (str(user_id) if user_id else None),
        details=details,
        ip_address=client_ip(request),
        user_agent=client_user_agent(request),
    )
    db.add(entry)
    logger.info(
        "Audit event",
        extra={"action": action.value, "user_id": str(user_id) if user_id else None},
    )
    return entry
