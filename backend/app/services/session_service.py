"""Persisted sessions: creation, rotation, revocation."""

import logging
import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AccountInactiveError,
    SessionExpiredError,
    TokenExpiredError,
)
from app.core.security import (
    AuthTokens,
    TokenPayload,
    generate_tokens,
    verify_refresh_token,
)
from app.models import utcnow
from app.models.session import AuthSession
from app.models.user import User

logger = logging.getLogger(__name__)


class RefreshExpiredError(SessionExpiredError):
    """The refresh token outlived its session; the stale row is already gone."""

    def __init__(self, user_id: Optional[uuid.UUID] = None):
        super().__init__("Session expired")
        self.user_id = user_id


def token_payload_for(user: User) -> TokenPayload:
    return TokenPayload(user_id=str(user.id), email=user.email, role=user.role.value)


async def store_session(
    db: AsyncSession,
    user_id: uuid.UUID,
    tokens: AuthTokens,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> AuthSession:
    """Persist a session for a freshly issued token pair."""
    now = utcnow()
    session = AuthSession(
        user_id=user_id,
        token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_at=now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        refresh_expires_at=now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(session)
    await db.flush()
    return session


async def open_session(
    db: AsyncSession,
    user: User,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> AuthTokens:
    """Issue tokens for an authenticated user and persist the session."""
    tokens = generate_tokens(token_payload_for(user))
    await store_session(db, user.id, tokens, ip_address, user_agent)
    return tokens


async def _claim_session(db: AsyncSession, session_id: uuid.UUID) -> bool:
    """Delete a session row; False when another request already removed it."""
    result = await db.execute(delete(AuthSession).where(AuthSession.id == session_id))
    return result.rowcount == 1


async def refresh_session(
    db: AsyncSession,
    refresh_token: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> tuple[User, AuthTokens]:
    """Rotate a session: the presented refresh token is consumed exactly once.

    Raises InvalidTokenError for a bad token, RefreshExpiredError once the
    token or its session has expired, SessionExpiredError when no live
    session backs it, and AccountInactiveError when the owner may no
    longer authenticate.
    """
    try:
        payload = verify_refresh_token(refresh_token)
    except TokenExpiredError:
        # Signature was valid; only the exp claim has passed
        payload = None

    result = await db.execute(
        select(AuthSession).where(AuthSession.refresh_token == refresh_token)
    )
    session = result.scalar_one_or_none()

    if payload is None or (session and session.refresh_expires_at < utcnow()):
        # Lazy expiry: drop the stale row and commit before failing
        user_id = session.user_id if session else None
        if session:
            await _claim_session(db, session.id)
            await db.commit()
        raise RefreshExpiredError(user_id)

    if not session or str(session.user_id) != payload.user_id:
        raise SessionExpiredError("Session expired")

    user = await db.get(User, session.user_id)
    if not user or not user.can_authenticate:
        raise AccountInactiveError("Account is not active")

    if not await _claim_session(db, session.id):
        raise SessionExpiredError("Session expired")

    tokens = await open_session(db, user, ip_address, user_agent)
    logger.debug("Session rotated", extra={"user_id": str(user.id)})
    return user, tokens


async def revoke_session(db: AsyncSession, token: str) -> int:
    """Delete the session bound to an access token; returns rows removed."""
    result = await db.execute(delete(AuthSession).where(AuthSession.token == token))
    return result.rowcount


async def revoke_all_user_sessions(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(delete(AuthSession).where(AuthSession.user_id == user_id))
    return result.rowcount
