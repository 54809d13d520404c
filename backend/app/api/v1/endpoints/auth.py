"""Authentication endpoints."""

import logging
import uuid

from fastapi import APIRouter, Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import bearer_scheme, bearer_token, get_current_user
from app.core.database import get_db
from app.core.exceptions import (
    AccountInactiveError,
    AuthenticationError,
    ConflictError,
    InternalError,
    InvalidTokenError,
    ValidationError,
)
from app.core.rate_limit import RATE_LIMITS, limiter
from app.core.security import (
    AuthTokens,
    TokenPayload,
    create_2fa_temp_token,
    create_email_verification_token,
    create_password_reset_token,
    decrypt_secret,
    encrypt_secret,
    generate_2fa_qr_code,
    generate_2fa_secret,
    hash_password,
    password_fingerprint,
    verify_2fa_temp_token,
    verify_2fa_token,
    verify_email_verification_token,
    verify_password,
    verify_password_reset_token,
)
from app.models import utcnow
from app.models.audit_log import AuditAction
from app.models.user import User, UserRole, UserStatus
from app.schemas import (
    ApiResponse,
    AuthenticatedData,
    EmailRequest,
    LoginData,
    LoginRequest,
    MessageResponse,
    PasswordChangeRequest,
    PasswordResetConfirm,
    ProfileUpdateRequest,
    RefreshTokenRequest,
    RegisterRequest,
    Tokens,
    TokensData,
    TwoFactorCodeRequest,
    TwoFactorSetupData,
    UserData,
    UserResponse,
    Verify2FARequest,
    VerifyEmailRequest,
)
from app.services import audit_service
from app.services.audit_service import client_ip, client_user_agent
from app.services.email_service import EmailService, get_email_service
from app.services.session_service import (
    RefreshExpiredError,
    open_session,
    refresh_session,
    revoke_all_user_sessions,
    revoke_session,
    token_payload_for,
)
from app.services.session_state import SessionEvent, SessionState, advance

logger = logging.getLogger(__name__)

router = APIRouter()


def _tokens(tokens: AuthTokens) -> Tokens:
    return Tokens(access_token=tokens.access_token, refresh_token=tokens.refresh_token)


def _user_id(payload: TokenPayload) -> uuid.UUID:
    try:
        return uuid.UUID(payload.user_id)
    except ValueError:
        raise InvalidTokenError("Invalid token subject")


def _ensure_can_authenticate(user: User) -> None:
    """Refuse any session transition for accounts that are not active and verified."""
    if user.status == UserStatus.SUSPENDED:
        raise AccountInactiveError("Account has been suspended")
    if user.status == UserStatus.TERMINATED:
        raise AccountInactiveError("Account has been terminated")
    if not user.can_authenticate:
        raise AccountInactiveError("Please verify your email before logging in")


@router.post(
    "/register",
    response_model=ApiResponse[UserData],
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(RATE_LIMITS["auth_register"])
async def register(
    request: Request,
    register_data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
) -> ApiResponse[UserData]:
    """Register a new customer. The account stays PENDING until the email is verified."""
    email = register_data.email.lower()

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise ConflictError("A user with this email already exists")

    user = User(
        email=email,
        password_hash=hash_password(register_data.password),
        first_name=register_data.first_name,
        last_name=register_data.last_name,
        phone_number=register_data.phone_number,
        role=UserRole.CUSTOMER,
        status=UserStatus.PENDING,
        email_verified=False,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A user with this email already exists")

    await audit_service.record(
        db,
        request,
        AuditAction.USER_REGISTERED,
        user.id,
        details={
            "email": user.email,
            "firstName": user.first_name,
            "lastName": user.last_name,
        },
    )

    # Nothing is committed until the verification mail has been handed off
    verification_token = create_email_verification_token(token_payload_for(user))
    if not await email_service.send_verification_email(user.email, verification_token):
        await db.rollback()
        logger.error("Registration aborted: verification email not sent")
        raise InternalError("Unable to send verification email. Please try again later.")

    await db.commit()
    logger.info("User registered", extra={"user_id": str(user.id)})

    return ApiResponse(
        message="Registration successful. Please check your email to verify your account.",
        data=UserData(user=UserResponse.model_validate(user)),
    )


@router.post(
    "/login",
    response_model=ApiResponse[LoginData],
    response_model_exclude_none=True,
)
@limiter.limit(RATE_LIMITS["auth_login"])
async def login(
    request: Request,
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[LoginData]:
    """Authenticate with email and password.

    Accounts with 2FA enabled receive a temporary token for /verify-2fa
    instead of a token pair; no session is stored until the second step.
    """
    result = await db.execute(select(User).where(User.email == login_data.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.password_hash):
        raise AuthenticationError("Invalid email or password")

    _ensure_can_authenticate(user)

    if user.two_factor_enabled:
        state = advance(SessionState.ANONYMOUS, SessionEvent.SECOND_FACTOR_REQUIRED)
        temp_token = create_2fa_temp_token(token_payload_for(user))
        await audit_service.record(
            db,
            request,
            AuditAction.USER_LOGIN,
            user.id,
            details={"email": user.email, "rememberMe": login_data.remember_me, "state": state.value},
        )
        await db.commit()
        return ApiResponse(
            message="Login successful. Please enter your 2FA code.",
            data=LoginData(
                user=UserResponse.model_validate(user),
                requires_2fa=True,
                temp_token=temp_token,
            ),
        )

    state = advance(SessionState.ANONYMOUS, SessionEvent.CREDENTIALS_ACCEPTED)
    tokens = await open_session(db, user, client_ip(request), client_user_agent(request))
    user.last_login_at = utcnow()
    await audit_service.record(
        db,
        request,
        AuditAction.USER_LOGIN,
        user.id,
        details={"email": user.email, "rememberMe": login_data.remember_me, "state": state.value},
    )
    await db.commit()

    return ApiResponse(
        message="Login successful",
        data=LoginData(
            user=UserResponse.model_validate(user),
            tokens=_tokens(tokens),
            requires_2fa=False,
        ),
    )


@router.post("/verify-2fa", response_model=ApiResponse[AuthenticatedData])
@limiter.limit(RATE_LIMITS["auth_2fa"])
async def verify_2fa(
    request: Request,
    data: Verify2FARequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[AuthenticatedData]:
    """Complete a 2FA login with the TOTP code and the temporary token."""
    try:
        payload = verify_2fa_temp_token(data.temp_token)
    except AuthenticationError:
        raise AuthenticationError("Invalid or expired temporary token")

    user = await db.get(User, _user_id(payload))
    if not user or not user.two_factor_enabled or not user.two_factor_secret:
        raise ValidationError("2FA not set up for this account")

    _ensure_can_authenticate(user)

    if not verify_2fa_token(decrypt_secret(user.two_factor_secret), data.token):
        raise AuthenticationError("Invalid 2FA code")

    state = advance(SessionState.AWAITING_SECOND_FACTOR, SessionEvent.SECOND_FACTOR_ACCEPTED)
    tokens = await open_session(db, user, client_ip(request), client_user_agent(request))
    user.last_login_at = utcnow()
    await audit_service.record(
        db, request, AuditAction.TWO_FACTOR_VERIFIED, user.id, details={"state": state.value}
    )
    await db.commit()

    return ApiResponse(
        message="2FA verification successful",
        data=AuthenticatedData(user=UserResponse.model_validate(user), tokens=_tokens(tokens)),
    )


@router.post("/refresh-token", response_model=ApiResponse[TokensData])
@limiter.limit(RATE_LIMITS["auth_refresh"])
async def refresh_token(
    request: Request,
    refresh_data: RefreshTokenRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[TokensData]:
    """Exchange a refresh token for a new pair. The old token stops working."""
    try:
        user, tokens = await refresh_session(
            db,
            refresh_data.refresh_token,
            client_ip(request),
            client_user_agent(request),
        )
    except RefreshExpiredError as exc:
        state = advance(SessionState.AUTHENTICATED, SessionEvent.REFRESH_EXPIRED)
        if exc.user_id is not None:
            await audit_service.record(
                db, request, AuditAction.SESSION_EXPIRED, exc.user_id, details={"state": state.value}
            )
            await db.commit()
        raise

    state = advance(SessionState.AUTHENTICATED, SessionEvent.REFRESHED)
    await audit_service.record(
        db, request, AuditAction.TOKEN_REFRESHED, user.id, details={"state": state.value}
    )
    await db.commit()

    return ApiResponse(
        message="Token refreshed successfully",
        data=TokensData(tokens=_tokens(tokens)),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Revoke the session bound to the presented access token."""
    revoked = await revoke_session(db, bearer_token(credentials))
    state = advance(SessionState.AUTHENTICATED, SessionEvent.LOGGED_OUT)
    await audit_service.record(
        db,
        request,
        AuditAction.USER_LOGOUT,
        current_user.id,
        details={"sessionsRevoked": revoked, "state": state.value},
    )
    await db.commit()
    return MessageResponse(message="Logout successful")


@router.post("/verify-email", response_model=MessageResponse)
async def verify_email(
    request: Request,
    data: VerifyEmailRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Verify email address and activate a pending account."""
    try:
        payload = verify_email_verification_token(data.token)
    except AuthenticationError:
        raise ValidationError("Invalid or expired verification token")

    user = await db.get(User, _user_id(payload))
    if not user or user.email != payload.email:
        raise ValidationError("Invalid verification token")

    if user.email_verified:
        return MessageResponse(message="Email already verified")

    user.email_verified = True
    if user.status == UserStatus.PENDING:
        user.status = UserStatus.ACTIVE
    await audit_service.record(db, request, AuditAction.EMAIL_VERIFIED, user.id)
    await db.commit()

    return MessageResponse(message="Email verified successfully")


@router.post("/resend-verification", response_model=MessageResponse)
@limiter.limit(RATE_LIMITS["auth_password_reset"])
async def resend_verification(
    request: Request,
    data: EmailRequest,
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
) -> MessageResponse:
    """Resend the verification email. Always succeeds to prevent email enumeration."""
    result = await db.execute(select(User).where(User.email == data.email.lower()))
    user = result.scalar_one_or_none()

    if user and not user.email_verified and user.status == UserStatus.PENDING:
        token = create_email_verification_token(token_payload_for(user))
        if not await email_service.send_verification_email(user.email, token):
            logger.warning("Failed to resend verification email", extra={"user_id": str(user.id)})

    return MessageResponse(
        message="If an unverified account exists for this address, a verification email has been sent."
    )


@router.get("/profile", response_model=ApiResponse[UserData])
async def get_profile(
    current_user: User = Depends(get_current_user),
) -> ApiResponse[UserData]:
    """Get current user information."""
    return ApiResponse(data=UserData(user=UserResponse.model_validate(current_user)))


@router.patch("/profile", response_model=ApiResponse[UserData])
async def update_profile(
    request: Request,
    data: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[UserData]:
    """Update first name, last name or phone number."""
    changes = data.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(current_user, field, value)

    if changes:
        await audit_service.record(
            db,
            request,
            AuditAction.PROFILE_UPDATED,
            current_user.id,
            details={"fields": sorted(changes)},
        )
    await db.commit()

    return ApiResponse(
        message="Profile updated",
        data=UserData(user=UserResponse.model_validate(current_user)),
    )


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    request: Request,
    password_data: PasswordChangeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Change the password and sign out every session of the account."""
    if not verify_password(password_data.current_password, current_user.password_hash):
        raise ValidationError("Current password is incorrect")

    current_user.password_hash = hash_password(password_data.new_password)
    revoked = await revoke_all_user_sessions(db, current_user.id)
    await audit_service.record(
        db,
        request,
        AuditAction.PASSWORD_CHANGED,
        current_user.id,
        details={"sessionsRevoked": revoked},
    )
    await db.commit()

    return MessageResponse(message="Password changed successfully. Please log in again.")


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit(RATE_LIMITS["auth_password_reset"])
async def forgot_password(
    request: Request,
    data: EmailRequest,
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
) -> MessageResponse:
    """Request a password reset link. Always returns success to avoid email enumeration."""
    result = await db.execute(select(User).where(User.email == data.email.lower()))
    user = result.scalar_one_or_none()

    if user and user.can_authenticate:
        token = create_password_reset_token(token_payload_for(user), user.password_hash)
        if not await email_service.send_password_reset_email(user.email, token):
            logger.warning("Failed to send password reset email", extra={"user_id": str(user.id)})

    return MessageResponse(
        message="If an account exists for this address, a password reset email has been sent."
    )


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    request: Request,
    data: PasswordResetConfirm,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Reset the password with a token from the forgot-password email."""
    try:
        payload, fingerprint = verify_password_reset_token(data.token)
    except AuthenticationError:
        raise ValidationError("Invalid or expired reset token")

    user = await db.get(User, _user_id(payload))
    if not user or fingerprint != password_fingerprint(user.password_hash):
        raise ValidationError("Invalid or expired reset token")

    _ensure_can_authenticate(user)

    user.password_hash = hash_password(data.password)
    revoked = await revoke_all_user_sessions(db, user.id)
    await audit_service.record(
        db,
        request,
        AuditAction.PASSWORD_RESET,
        user.id,
        details={"sessionsRevoked": revoked},
    )
    await db.commit()

    return MessageResponse(message="Password has been reset. You can now log in.")


@router.post("/2fa/setup", response_model=ApiResponse[TwoFactorSetupData])
async def setup_2fa(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[TwoFactorSetupData]:
    """Generate a TOTP secret. It becomes active once confirmed via /2fa/enable."""
    if current_user.two_factor_enabled:
        raise ConflictError("2FA is already enabled")

    secret = generate_2fa_secret(current_user.email)
    # Replaces any earlier unconfirmed secret
    current_user.two_factor_secret = encrypt_secret(secret.secret)
    await db.commit()

    return ApiResponse(
        message="Scan the QR code with your authenticator app, then confirm with a code.",
        data=TwoFactorSetupData(
            secret=secret.secret,
            otpauth_url=secret.otpauth_url,
            qr_code=generate_2fa_qr_code(secret.otpauth_url),
        ),
    )


@router.post("/2fa/enable", response_model=MessageResponse)
async def enable_2fa(
    request: Request,
    data: TwoFactorCodeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Verify a first code against the pending secret and turn 2FA on."""
    if current_user.two_factor_enabled:
        raise ConflictError("2FA is already enabled")
    if not current_user.two_factor_secret:
        raise ValidationError("2FA setup not initiated")

    if not verify_2fa_token(decrypt_secret(current_user.two_factor_secret), data.token):
        raise ValidationError("Invalid 2FA code")

    current_user.two_factor_enabled = True
    await audit_service.record(db, request, AuditAction.TWO_FACTOR_ENABLED, current_user.id)
    await db.commit()

    return MessageResponse(message="2FA enabled successfully")


@router.post("/2fa/disable", response_model=MessageResponse)
async def disable_2fa(
    request: Request,
    data: TwoFactorCodeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Disable 2FA for current user."""
    if not current_user.two_factor_enabled or not current_user.two_factor_secret:
        raise ValidationError("2FA is not enabled")

    if not verify_2fa_token(decrypt_secret(current_user.two_factor_secret), data.token):
        raise ValidationError("Invalid 2FA code")

    current_user.two_factor_enabled = False
    current_user.two_factor_secret = None
    await audit_service.record(db, request, AuditAction.TWO_FACTOR_DISABLED, current_user.id)
    await db.commit()

    return MessageResponse(message="2FA disabled successfully")
