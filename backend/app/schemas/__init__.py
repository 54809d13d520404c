"""Pydantic schemas."""

from app.schemas.base import ApiResponse, CamelModel, MessageResponse
from app.schemas.user import (
    ProfileUpdateRequest,
    UserData,
    UserResponse,
)
from app.schemas.auth import (
    AuthenticatedData,
    EmailRequest,
    LoginData,
    LoginRequest,
    PasswordChangeRequest,
    PasswordResetConfirm,
    RefreshTokenRequest,
    RegisterRequest,
    Tokens,
    TokensData,
    TwoFactorCodeRequest,
    TwoFactorSetupData,
    Verify2FARequest,
    VerifyEmailRequest,
)
from app.schemas.vps import PriceBreakdown, PriceData, PriceRequest

__all__ = [
    "ApiResponse",
    "CamelModel",
    "MessageResponse",
    "ProfileUpdateRequest",
    "UserData",
    "UserResponse",
    "AuthenticatedData",
    "EmailRequest",
    "LoginData",
    "LoginRequest",
    "PasswordChangeRequest",
    "PasswordResetConfirm",
    "RefreshTokenRequest",
    "RegisterRequest",
    "Tokens",
    "TokensData",
    "TwoFactorCodeRequest",
    "TwoFactorSetupData",
    "Verify2FARequest",
    "VerifyEmailRequest",
    "PriceBreakdown",
    "PriceData",
    "PriceRequest",
]
