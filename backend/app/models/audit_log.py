"""Audit log model."""

import enum
import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Uuid

from app.models import Base, utcnow


class AuditAction(str, enum.Enum):
    USER_REGISTERED = "USER_REGISTERED"
    EMAIL_VERIFIED = "EMAIL_VERIFIED"
    USER_LOGIN = "USER_LOGIN"
    TWO_FACTOR_VERIFIED = "2FA_VERIFIED"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    USER_LOGOUT = "USER_LOGOUT"
    PROFILE_UPDATED = "PROFILE_UPDATED"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"
    PASSWORD_RESET = "PASSWORD_RESET"
    TWO_FACTOR_ENABLED = "2FA_ENABLED"
    TWO_FACTOR_DISABLED = "2FA_DISABLED"


class AuditLog(Base):
    """Append-only record of a security-relevant action."""

    __tablename__ = "audit_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action = Column(String(50), nullable=False, index=True)
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(String(255), nullable=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(512), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
