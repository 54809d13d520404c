"""Registration, login, email verification and profile tests."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import verify_access_token, verify_refresh_token
from app.models.audit_log import AuditLog
from app.models.user import User, UserStatus
from conftest import USER_PASSWORD, bearer, create_user, login


def registration(email: str = "a@x.com", **overrides) -> dict:
    body = {
        "email": email,
        "password": USER_PASSWORD,
        "confirmPassword": USER_PASSWORD,
        "firstName": "Ada",
        "lastName": "Lovelace",
        "acceptTerms": True,
    }
    body.update(overrides)
    return body


async def audit_actions(db: AsyncSession) -> list[str]:
    result = await db.execute(select(AuditLog.action).order_by(AuditLog.created_at))
    return list(result.scalars())


@pytest.mark.asyncio
async def test_register_verify_login_profile(client: AsyncClient, email_service):
    """Full onboarding: register, verify email, log in, read profile."""
    response = await client.post("/api/auth/register", json=registration())
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    user = body["data"]["user"]
    assert user["email"] == "a@x.com"
    assert user["status"] == "PENDING"
    assert user["emailVerified"] is False
    assert "passwordHash" not in user

    token = email_service.verification_tokens["a@x.com"]
    response = await client.post("/api/auth/verify-email", json={"token": token})
    assert response.status_code == 200
    assert response.json()["message"] == "Email verified successfully"

    data = await login(client, "a@x.com")
    assert data["requires2FA"] is False
    assert "tempToken" not in data
    tokens = data["tokens"]
    assert tokens["tokenType"] == "bearer"
    assert verify_access_token(tokens["accessToken"]).email == "a@x.com"
    assert verify_refresh_token(tokens["refreshToken"]).email == "a@x.com"

    response = await client.get("/api/auth/profile", headers=bearer(tokens["accessToken"]))
    assert response.status_code == 200
    profile = response.json()["data"]["user"]
    assert profile["email"] == "a@x.com"
    assert profile["status"] == "ACTIVE"
    assert profile["lastLoginAt"] is not None


@pytest.mark.asyncio
async def test_register_normalizes_email(client: AsyncClient, db_session: AsyncSession):
    response = await client.post("/api/auth/register", json=registration("Mixed@Case.COM"))
    assert response.status_code == 201
    assert response.json()["data"]["user"]["email"] == "mixed@case.com"


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, regular_user: User):
    """Test registration with existing email."""
    response = await client.post("/api/auth/register", json=registration("user@test.com"))
    assert response.status_code == 409
    assert response.json() == {
        "success": False,
        "message": "A user with this email already exists",
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"confirmPassword": "Different1!"}, "Passwords do not match"),
        ({"acceptTerms": False}, "You must accept the terms and conditions"),
    ],
)
async def test_register_validation_messages(client: AsyncClient, overrides, message):
    response = await client.post("/api/auth/register", json=registration(**overrides))
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == message


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"email": "not-an-email"},
        {"password": "short", "confirmPassword": "short"},
        {"firstName": "A"},
        {"phoneNumber": "call me"},
    ],
)
async def test_register_invalid_input(client: AsyncClient, overrides):
    response = await client.post("/api/auth/register", json=registration(**overrides))
    assert response.status_code == 400
    assert response.json()["errors"]


@pytest.mark.asyncio
async def test_register_email_failure_leaves_no_account(
    client: AsyncClient, db_session: AsyncSession, email_service
):
    """A failed verification email aborts the whole registration."""
    email_service.fail = True
    response = await client.post("/api/auth/register", json=registration())
    assert response.status_code == 500
    assert response.json()["success"] is False

    result = await db_session.execute(select(User).where(User.email == "a@x.com"))
    assert result.scalar_one_or_none() is None
    assert await audit_actions(db_session) == []

    email_service.fail = False
    response = await client.post("/api/auth/register", json=registration())
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, regular_user: User):
    """Test login with wrong password."""
    response = await client.post(
        "/api/auth/login",
        json={"email": "user@test.com", "password": "wrongpassword"},
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_login_unknown_email(client: AsyncClient):
    """Unknown accounts get the same answer as a wrong password."""
    response = await client.post(
        "/api/auth/login",
        json={"email": "nobody@test.com", "password": USER_PASSWORD},
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_login_unverified_email(client: AsyncClient, pending_user: User):
    response = await client.post(
        "/api/auth/login",
        json={"email": "pending@test.com", "password": USER_PASSWORD},
    )
    assert response.status_code == 403
    assert response.json()["message"] == "Please verify your email before logging in"


@pytest.mark.asyncio
async def test_login_suspended_account(client: AsyncClient, suspended_user: User):
    response = await client.post(
        "/api/auth/login",
        json={"email": "suspended@test.com", "password": USER_PASSWORD},
    )
    assert response.status_code == 403
    assert response.json()["message"] == "Account has been suspended"


@pytest.mark.asyncio
async def test_login_terminated_account(client: AsyncClient, db_session: AsyncSession):
    await create_user(db_session, "gone@test.com", status=UserStatus.TERMINATED)
    response = await client.post(
        "/api/auth/login",
        json={"email": "gone@test.com", "password": USER_PASSWORD},
    )
    assert response.status_code == 403
    assert response.json()["message"] == "Account has been terminated"


@pytest.mark.asyncio
async def test_login_wrong_password_does_not_reveal_status(
    client: AsyncClient, suspended_user: User
):
    response = await client.post(
        "/api/auth/login",
        json={"email": "suspended@test.com", "password": "wrongpassword"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_verify_email_invalid_token(client: AsyncClient):
    response = await client.post("/api/auth/verify-email", json={"token": "garbage"})
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired verification token"


@pytest.mark.asyncio
async def test_verify_email_rejects_access_token(client: AsyncClient, regular_user: User):
    data = await login(client, "user@test.com")
    response = await client.post(
        "/api/auth/verify-email",
        json={"token": data["tokens"]["accessToken"]},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_verify_email_twice(client: AsyncClient, email_service):
    await client.post("/api/auth/register", json=registration())
    token = email_service.verification_tokens["a@x.com"]

    first = await client.post("/api/auth/verify-email", json={"token": token})
    second = await client.post("/api/auth/verify-email", json={"token": token})
    assert first.status_code == second.status_code == 200
    assert second.json()["message"] == "Email already verified"


@pytest.mark.asyncio
async def test_verify_email_keeps_suspension(
    client: AsyncClient, db_session: AsyncSession, email_service
):
    """Verifying only activates PENDING accounts."""
    await client.post("/api/auth/register", json=registration())
    result = await db_session.execute(select(User).where(User.email == "a@x.com"))
    user = result.scalar_one()
    user.status = UserStatus.SUSPENDED
    await db_session.commit()

    token = email_service.verification_tokens["a@x.com"]
    response = await client.post("/api/auth/verify-email", json={"token": token})
    assert response.status_code == 200
    await db_session.refresh(user)
    assert user.email_verified is True
    assert user.status == UserStatus.SUSPENDED


@pytest.mark.asyncio
async def test_resend_verification(client: AsyncClient, pending_user: User, email_service):
    response = await client.post(
        "/api/auth/resend-verification", json={"email": "pending@test.com"}
    )
    assert response.status_code == 200
    assert "pending@test.com" in email_service.verification_tokens


@pytest.mark.asyncio
async def test_resend_verification_unknown_or_verified(
    client: AsyncClient, regular_user: User, email_service
):
    """Same answer whether or not the address exists."""
    unknown = await client.post("/api/auth/resend-verification", json={"email": "x@test.com"})
    verified = await client.post(
        "/api/auth/resend-verification", json={"email": "user@test.com"}
    )
    assert unknown.status_code == verified.status_code == 200
    assert unknown.json()["message"] == verified.json()["message"]
    assert email_service.verification_tokens == {}


@pytest.mark.asyncio
async def test_update_profile(client: AsyncClient, regular_user: User):
    data = await login(client, "user@test.com")
    response = await client.patch(
        "/api/auth/profile",
        headers=bearer(data["tokens"]["accessToken"]),
        json={"firstName": "Grace", "phoneNumber": "+33612345678"},
    )
    assert response.status_code == 200
    user = response.json()["data"]["user"]
    assert user["firstName"] == "Grace"
    assert user["lastName"] == "User"
    assert user["phoneNumber"] == "+33612345678"


@pytest.mark.asyncio
async def test_update_profile_invalid_phone(client: AsyncClient, regular_user: User):
    data = await login(client, "user@test.com")
    response = await client.patch(
        "/api/auth/profile",
        headers=bearer(data["tokens"]["accessToken"]),
        json={"phoneNumber": "0000"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_audit_trail(client: AsyncClient, db_session: AsyncSession, email_service):
    """Each session transition leaves an audit entry."""
    await client.post("/api/auth/register", json=registration())
    token = email_service.verification_tokens["a@x.com"]
    await client.post("/api/auth/verify-email", json={"token": token})
    data = await login(client, "a@x.com")
    await client.post(
        "/api/auth/refresh-token",
        json={"refreshToken": data["tokens"]["refreshToken"]},
    )

    assert await audit_actions(db_session) == [
        "USER_REGISTERED",
        "EMAIL_VERIFIED",
        "USER_LOGIN",
        "TOKEN_REFRESHED",
    ]
    entry = (
        await db_session.execute(select(AuditLog).where(AuditLog.action == "USER_REGISTERED"))
    ).scalar_one()
    assert entry.details["email"] == "a@x.com"
    assert entry.user_id is not None
