"""SQLAlchemy models."""

from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC now; columns store naive UTC on every backend."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Import all models so Base.metadata.create_all() picks them up
from app.models.user import User  # noqa: E402, F401
from app.models.session import AuthSession  # noqa: E402, F401
from app.models.audit_log import AuditLog  # noqa: E402, F401
