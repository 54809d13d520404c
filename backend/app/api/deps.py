"""Request authentication and authorization dependencies."""

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    InvalidTokenError,
)
from app.core.security import verify_access_token
from app.models.user import User, UserRole, UserStatus

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity attached to `request.state.user` once a request is authenticated."""

    id: str
    email: str
    role: str
    status: str


def bearer_token(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required")
    return credentials.credentials


async def _authenticate(db: AsyncSession, token: str) -> User:
    payload = verify_access_token(token)
    try:
        user_id = uuid.UUID(payload.user_id)
    except ValueError:
        raise InvalidTokenError("Invalid access token")

    user = await db.get(User, user_id)
    if not user:
        raise AuthenticationError("User not found")
    if user.status != UserStatus.ACTIVE:
        raise AuthenticationError("Account is not active")
    if not user.email_verified:
        raise AuthenticationError("Email not verified")
    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Require a valid access token for an active, verified account."""
    user = await _authenticate(db, bearer_token(credentials))
    request.state.user = AuthenticatedUser(
        id=str(user.id),
        email=user.email,
        role=user.role.value,
        status=user.status.value,
    )
    return user


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Like get_current_user, but anonymous callers simply get None."""
    try:
        return await get_current_user(request, credentials, db)
    except AuthenticationError:
        return None


def require_roles(*roles: UserRole):
    """Dependency factory restricting an endpoint to the given roles."""

    async def check_role(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise AuthorizationError("Insufficient permissions")
        return current_user

    return check_role


require_admin = require_roles(UserRole.ADMIN, UserRole.SUPER_ADMIN)
