"""Session persistence, refresh rotation and logout tests."""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import SessionExpiredError
from app.core.security import AuthTokens, create_access_token, create_refresh_token
from app.models import utcnow
from app.models.audit_log import AuditLog
from app.models.session import AuthSession
from app.models.user import User, UserStatus
from app.services.session_service import (
    RefreshExpiredError,
    refresh_session,
    store_session,
    token_payload_for,
)
from conftest import bearer, login


async def session_count(db: AsyncSession) -> int:
    return (await db.execute(select(func.count()).select_from(AuthSession))).scalar_one()


async def refresh(client: AsyncClient, refresh_token: str):
    return await client.post(
        "/api/auth/refresh-token",
        json={"refreshToken": refresh_token},
    )


@pytest.mark.asyncio
async def test_login_persists_session(
    client: AsyncClient, db_session: AsyncSession, regular_user: User
):
    data = await login(client, "user@test.com")
    session = (await db_session.execute(select(AuthSession))).scalar_one()
    assert session.user_id == regular_user.id
    assert session.token == data["tokens"]["accessToken"]
    assert session.refresh_token == data["tokens"]["refreshToken"]
    assert session.refresh_expires_at > session.expires_at > utcnow()


@pytest.mark.asyncio
async def test_each_login_opens_its_own_session(
    client: AsyncClient, db_session: AsyncSession, regular_user: User
):
    await login(client, "user@test.com")
    await login(client, "user@test.com")
    assert await session_count(db_session) == 2


@pytest.mark.asyncio
async def test_refresh_rotates_tokens(
    client: AsyncClient, db_session: AsyncSession, regular_user: User
):
    """Test token refresh."""
    old = (await login(client, "user@test.com"))["tokens"]

    response = await refresh(client, old["refreshToken"])
    assert response.status_code == 200
    new = response.json()["data"]["tokens"]
    assert new["accessToken"] != old["accessToken"]
    assert new["refreshToken"] != old["refreshToken"]

    session = (await db_session.execute(select(AuthSession))).scalar_one()
    assert session.refresh_token == new["refreshToken"]

    profile = await client.get("/api/auth/profile", headers=bearer(new["accessToken"]))
    assert profile.status_code == 200


@pytest.mark.asyncio
async def test_refresh_token_is_single_use(client: AsyncClient, regular_user: User):
    """Replaying a rotated refresh token fails."""
    old = (await login(client, "user@test.com"))["tokens"]

    first = await refresh(client, old["refreshToken"])
    replay = await refresh(client, old["refreshToken"])
    assert first.status_code == 200
    assert replay.status_code == 401
    assert replay.json()["message"] == "Session expired"


@pytest.mark.asyncio
async def test_refresh_with_access_token(client: AsyncClient, regular_user: User):
    tokens = (await login(client, "user@test.com"))["tokens"]
    response = await refresh(client, tokens["accessToken"])
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid refresh token"


@pytest.mark.asyncio
async def test_refresh_invalid_token(client: AsyncClient):
    """Test refresh with invalid token."""
    response = await refresh(client, "invalid-token")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_expired_session_is_removed(
    client: AsyncClient, db_session: AsyncSession, regular_user: User
):
    """An expired session row is deleted when its refresh token is presented."""
    tokens = (await login(client, "user@test.com"))["tokens"]
    session = (await db_session.execute(select(AuthSession))).scalar_one()
    session.refresh_expires_at = utcnow() - timedelta(seconds=1)
    await db_session.commit()

    response = await refresh(client, tokens["refreshToken"])
    assert response.status_code == 401
    assert response.json()["message"] == "Session expired"
    assert await session_count(db_session) == 0


@pytest.mark.asyncio
async def test_refresh_for_suspended_account(
    client: AsyncClient, db_session: AsyncSession, regular_user: User
):
    tokens = (await login(client, "user@test.com"))["tokens"]
    regular_user.status = UserStatus.SUSPENDED
    await db_session.commit()

    response = await refresh(client, tokens["refreshToken"])
    assert response.status_code == 403
    assert await session_count(db_session) == 1


@pytest.mark.asyncio
async def test_rotation_consumes_session_row(
    client: AsyncClient, db_session: AsyncSession, regular_user: User
):
    """A second claim on the same refresh token finds no session."""
    tokens = (await login(client, "user@test.com"))["tokens"]

    _, rotated = await refresh_session(db_session, tokens["refreshToken"])
    await db_session.commit()
    assert rotated.refresh_token != tokens["refreshToken"]

    with pytest.raises(SessionExpiredError):
        await refresh_session(db_session, tokens["refreshToken"])


@pytest.mark.asyncio
async def test_logout_revokes_session(
    client: AsyncClient, db_session: AsyncSession, regular_user: User
):
    tokens = (await login(client, "user@test.com"))["tokens"]

    response = await client.post("/api/auth/logout", headers=bearer(tokens["accessToken"]))
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Logout successful"}
    assert await session_count(db_session) == 0

    response = await refresh(client, tokens["refreshToken"])
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_logout_keeps_other_sessions(
    client: AsyncClient, db_session: AsyncSession, regular_user: User
):
    first = (await login(client, "user@test.com"))["tokens"]
    second = (await login(client, "user@test.com"))["tokens"]

    await client.post("/api/auth/logout", headers=bearer(first["accessToken"]))
    assert await session_count(db_session) == 1
    assert (await refresh(client, second["refreshToken"])).status_code == 200


@pytest.mark.asyncio
async def test_logout_requires_token(client: AsyncClient):
    response = await client.post("/api/auth/logout")
    assert response.status_code == 401
    assert response.json()["message"] == "Access token required"


async def store_expired_refresh(db: AsyncSession, user: User) -> str:
    """Persist a session whose refresh token has already passed its exp claim."""
    payload = token_payload_for(user)
    tokens = AuthTokens(
        access_token=create_access_token(payload),
        refresh_token=create_refresh_token(payload, expires_delta=timedelta(seconds=-5)),
    )
    await store_session(db, user.id, tokens)
    await db.commit()
    return tokens.refresh_token


@pytest.mark.asyncio
async def test_expired_refresh_token_removes_session(
    client: AsyncClient, db_session: AsyncSession, regular_user: User
):
    """A refresh token past its expiry ends the session and deletes the row."""
    refresh_token = await store_expired_refresh(db_session, regular_user)
    assert await session_count(db_session) == 1

    response = await refresh(client, refresh_token)
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Session expired"}
    assert await session_count(db_session) == 0


@pytest.mark.asyncio
async def test_expired_refresh_is_audited(
    client: AsyncClient, db_session: AsyncSession, regular_user: User
):
    refresh_token = await store_expired_refresh(db_session, regular_user)
    await refresh(client, refresh_token)

    entry = (
        await db_session.execute(select(AuditLog).where(AuditLog.action == "SESSION_EXPIRED"))
    ).scalar_one()
    assert entry.user_id == regular_user.id
    assert entry.details == {"state": "EXPIRED"}


@pytest.mark.asyncio
async def test_expired_refresh_without_session(db_session: AsyncSession, regular_user: User):
    token = create_refresh_token(
        token_payload_for(regular_user), expires_delta=timedelta(seconds=-5)
    )
    with pytest.raises(RefreshExpiredError) as exc_info:
        await refresh_session(db_session, token)
    assert exc_info.value.user_id is None
    assert exc_info.value.status_code == 401
