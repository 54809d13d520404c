"""Authentication schemas."""

from typing import Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from app.schemas.base import CamelModel
from app.schemas.user import PHONE_PATTERN, UserResponse

TOTP_CODE_PATTERN = r"^\d{6}$"


class RegisterRequest(CamelModel):
    """Schema for registration request."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    confirm_password: str
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    phone_number: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    accept_terms: bool

    @field_validator("accept_terms")
    @classmethod
    def terms_must_be_accepted(cls, v: bool) -> bool:
        if not v:
            raise ValueError("You must accept the terms and conditions")
        return v

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(CamelModel):
    """Schema for login request."""

    email: EmailStr
    password: str
    remember_me: bool = False


class Verify2FARequest(CamelModel):
    """Second login step: TOTP code plus the temporary token from /login."""

    token: str = Field(..., pattern=TOTP_CODE_PATTERN)
    temp_token: str


class RefreshTokenRequest(CamelModel):
    """Schema for refresh token request."""

    refresh_token: str


class VerifyEmailRequest(CamelModel):
    token: str


class EmailRequest(CamelModel):
    """Email-only body for resend-verification and forgot-password."""

    email: EmailStr


class PasswordChangeRequest(CamelModel):
    """Schema for password change request."""

    current_password: str
    new_password: str = Field(..., min_length=8, max_length=128)
    confirm_new_password: str

    @model_validator(mode="after")
    def passwords_match(self) -> "PasswordChangeRequest":
        if self.new_password != self.confirm_new_password:
            raise ValueError("Passwords do not match")
        return self


class PasswordResetConfirm(CamelModel):
    """Schema for password reset confirmation."""

    token: str
    password: str = Field(..., min_length=8, max_length=128)
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self) -> "PasswordResetConfirm":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class TwoFactorCodeRequest(CamelModel):
    token: str = Field(..., pattern=TOTP_CODE_PATTERN)


class Tokens(CamelModel):
    """Schema for token response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginData(CamelModel):
    user: UserResponse
    tokens: Optional[Tokens] = None
    requires_2fa: bool = Field(False, alias="requires2FA")
    temp_token: Optional[str] = None


class AuthenticatedData(CamelModel):
    user: UserResponse
    tokens: Tokens


class TokensData(CamelModel):
    tokens: Tokens


class TwoFactorSetupData(CamelModel):
    """Schema for 2FA setup response."""

    secret: str
    otpauth_url: str
    qr_code: str  # Base64 encoded QR code image
