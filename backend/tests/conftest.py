"""Pytest configuration and fixtures."""

import os
import time
from typing import AsyncGenerator, Optional

# Set test env vars before any app import
os.environ.setdefault("JWT_SECRET", "test_access_secret_for_unit_tests_only_0123456789")
os.environ.setdefault("JWT_REFRESH_SECRET", "test_refresh_secret_for_unit_tests_only_9876543210")
os.environ.setdefault("FERNET_KEY", "dnBzLXBvcnRhbC10ZXN0LWZlcm5ldC1rZXktMDAwMDA=")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pyotp
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import get_db
from app.core.rate_limit import limiter
from app.core.security import encrypt_secret, hash_password
from app.main import app
from app.models import Base
from app.models.user import User, UserRole, UserStatus
from app.services.email_service import EmailService, get_email_service

TEST_DATABASE_URL = "sqlite+aiosqlite://"

TOTP_SECRET = "JBSWY3DPEHPK3PXP"
USER_PASSWORD = "Passw0rd!"

# Create test engine
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestSessionLocal = sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


class RecordingEmailService(EmailService):
    """Email service that keeps every token it was asked to send."""

    def __init__(self):
        super().__init__(
            backend="console",
            frontend_url="http://testserver",
            app_name="VPS Seller Portal",
        )
        self.fail = False
        self.sent: list[dict] = []
        self.verification_tokens: dict[str, str] = {}
        self.reset_tokens: dict[str, str] = {}

    async def send_email(self, to_email, subject, html_content, text_content=None) -> bool:
        if self.fail:
            return False
        self.sent.append({"to": to_email, "subject": subject})
        return True

    async def send_verification_email(self, to_email: str, token: str) -> bool:
        self.verification_tokens[to_email] = token
        return await super().send_verification_email(to_email, token)

    async def send_password_reset_email(self, to_email: str, token: str) -> bool:
        self.reset_tokens[to_email] = token
        return await super().send_password_reset_email(to_email, token)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def email_service() -> RecordingEmailService:
    return RecordingEmailService()


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession, email_service: RecordingEmailService
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database and email overrides."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: email_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def rate_limiting():
    """Turn the limiter on for one test with a clean counter store."""
    limiter.reset()
    limiter.enabled = True
    yield limiter
    limiter.enabled = False
    limiter.reset()


async def create_user(
    db: AsyncSession,
    email: str,
    password: str = USER_PASSWORD,
    role: UserRole = UserRole.CUSTOMER,
    status: UserStatus = UserStatus.ACTIVE,
    email_verified: bool = True,
    two_factor_secret: Optional[str] = None,
) -> User:
    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name="Test",
        last_name="User",
        role=role,
        status=status,
        email_verified=email_verified,
        two_factor_secret=encrypt_secret(two_factor_secret) if two_factor_secret else None,
        two_factor_enabled=two_factor_secret is not None,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def login(client: AsyncClient, email: str, password: str = USER_PASSWORD) -> dict:
    """Log in and return the response `data` object."""
    response = await client.post(
        "/api/auth/login",
        json={"email": email, "password": password},
    )
    assert response.status_code == 200, response.text
    return response.json()["data"]


def bearer(access_token: str) -> dict:
    return {"Authorization": f"Bearer {access_token}"}


@pytest_asyncio.fixture
async def regular_user(db_session: AsyncSession) -> User:
    """Active, verified customer."""
    return await create_user(db_session, "user@test.com")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "admin@test.com", role=UserRole.ADMIN)


@pytest_asyncio.fixture
async def pending_user(db_session: AsyncSession) -> User:
    """Registered but email not yet verified."""
    return await create_user(
        db_session,
        "pending@test.com",
        status=UserStatus.PENDING,
        email_verified=False,
    )


@pytest_asyncio.fixture
async def suspended_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "suspended@test.com", status=UserStatus.SUSPENDED)


@pytest_asyncio.fixture
async def two_factor_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "mfa@test.com", two_factor_secret=TOTP_SECRET)


def current_totp(secret: str = TOTP_SECRET) -> str:
    return pyotp.TOTP(secret).now()


def invalid_totp(secret: str = TOTP_SECRET) -> str:
    """A well-formed code that no step in the drift window accepts."""
    totp = pyotp.TOTP(secret)
    now = time.time()
    accepted = {totp.at(now, offset) for offset in range(-3, 4)}
    return next(
        code for code in ("000000", "111111", "222222", "333333") if code not in accepted
    )
