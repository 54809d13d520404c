"""Security utilities: password hashing, JWT, TOTP, encryption."""

import base64
import hashlib
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from io import BytesIO
from typing import Optional, Union

import bcrypt
import pyotp
import qrcode
from cryptography.fernet import Fernet, InvalidToken
from jose import ExpiredSignatureError, JWTError, jwt

from app.core.config import settings
from app.core.exceptions import InvalidTokenError, TokenExpiredError

# Token "type" claims
ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"
TWO_FACTOR_PENDING_TOKEN = "2fa_pending"
EMAIL_VERIFICATION_TOKEN = "email_verification"
PASSWORD_RESET_TOKEN = "password_reset"


@dataclass(frozen=True)
class TokenPayload:
    """Identity carried by every token."""

    user_id: str
    email: str
    role: str


@dataclass(frozen=True)
class AuthTokens:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class TwoFactorSecret:
    secret: str
    otpauth_url: str


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return bcrypt.checkpw(
        plain_password.encode("utf-8"), hashed_password.encode("utf-8")
    )


def password_fingerprint(password_hash: str) -> str:
    """Short digest of a password hash; changes whenever the password does."""
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:16]


# JWT tokens
def _encode(
    payload: TokenPayload,
    token_type: str,
    secret: str,
    expires_delta: timedelta,
    **extra_claims: str,
) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": payload.user_id,
        "email": payload.email,
        "role": payload.role,
        "type": token_type,
        "iat": now,
        "exp": now + expires_delta,
        "jti": uuid.uuid4().hex,
        **extra_claims,
    }
    return jwt.encode(to_encode, secret, algorithm=settings.ALGORITHM)


def _decode(token: str, secret: str, token_type: str, label: str) -> dict:
    """Decode a token, distinguishing expiry from every other failure."""
    try:
        claims = jwt.decode(token, secret, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpiredError(f"{label} expired")
    except JWTError:
        raise InvalidTokenError(f"Invalid {label.lower()}")

    if claims.get("type") != token_type or not claims.get("sub"):
        raise InvalidTokenError(f"Invalid {label.lower()}")
    return claims


def _payload_from_claims(claims: dict) -> TokenPayload:
    return TokenPayload(
        user_id=str(claims["sub"]),
        email=claims.get("email", ""),
        role=claims.get("role", ""),
    )


def create_access_token(
    payload: TokenPayload,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a JWT access token."""
    return _encode(
        payload,
        ACCESS_TOKEN,
        settings.JWT_SECRET,
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(
    payload: TokenPayload,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a JWT refresh token."""
    return _encode(
        payload,
        REFRESH_TOKEN,
        settings.JWT_REFRESH_SECRET,
        expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def generate_tokens(payload: TokenPayload) -> AuthTokens:
    """Issue an access/refresh token pair for the given identity."""
    return AuthTokens(
        access_token=create_access_token(payload),
        refresh_token=create_refresh_token(payload),
    )


def verify_access_token(token: str) -> TokenPayload:
    return _payload_from_claims(
        _decode(token, settings.JWT_SECRET, ACCESS_TOKEN, "Access token")
    )


def verify_refresh_token(token: str) -> TokenPayload:
    return _payload_from_claims(
        _decode(token, settings.JWT_REFRESH_SECRET, REFRESH_TOKEN, "Refresh token")
    )


def create_2fa_temp_token(payload: TokenPayload) -> str:
    """Temporary credential accepted only by the second-factor endpoint."""
    return _encode(
        payload,
        TWO_FACTOR_PENDING_TOKEN,
        settings.JWT_SECRET,
        timedelta(minutes=settings.TWO_FACTOR_TEMP_TOKEN_EXPIRE_MINUTES),
    )


def verify_2fa_temp_token(token: str) -> TokenPayload:
    return _payload_from_claims(
        _decode(token, settings.JWT_SECRET, TWO_FACTOR_PENDING_TOKEN, "Temporary token")
    )


def create_email_verification_token(payload: TokenPayload) -> str:
    return _encode(
        payload,
        EMAIL_VERIFICATION_TOKEN,
        settings.JWT_SECRET,
        timedelta(hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS),
    )


def verify_email_verification_token(token: str) -> TokenPayload:
    return _payload_from_claims(
        _decode(token, settings.JWT_SECRET, EMAIL_VERIFICATION_TOKEN, "Verification token")
    )


def create_password_reset_token(payload: TokenPayload, password_hash: str) -> str:
    """Reset token bound to the current password; unusable once it changes."""
    return _encode(
        payload,
        PASSWORD_RESET_TOKEN,
        settings.JWT_SECRET,
        timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
        pwd=password_fingerprint(password_hash),
    )


def verify_password_reset_token(token: str) -> tuple[TokenPayload, str]:
    """Return the identity and the password fingerprint the token was bound to."""
    claims = _decode(token, settings.JWT_SECRET, PASSWORD_RESET_TOKEN, "Reset token")
    return _payload_from_claims(claims), claims.get("pwd", "")


# TOTP second factor
def generate_2fa_secret(email: str) -> TwoFactorSecret:
    """Generate a base32 TOTP secret and its provisioning URI."""
    secret = pyotp.random_base32()
    otpauth_url = pyotp.TOTP(secret).provisioning_uri(
        name=email,
        issuer_name=settings.TOTP_ISSUER,
    )
    return TwoFactorSecret(secret=secret, otpauth_url=otpauth_url)


def generate_2fa_qr_code(otpauth_url: str) -> str:
    """Render a provisioning URI as a PNG data URL."""
    qr = qrcode.QRCode(version=1, box_size=10, border=5)
    qr.add_data(otpauth_url)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    qr_base64 = base64.b64encode(buffer.getvalue()).decode()
    return f"data:image/png;base64,{qr_base64}"


def verify_2fa_token(
    secret: str,
    code: str,
    for_time: Optional[Union[int, datetime]] = None,
) -> bool:
    """Check a TOTP code, tolerating TOTP_VALID_WINDOW steps of clock drift."""
    if not code or not code.isdigit():
        return False
    return pyotp.TOTP(secret).verify(
        code,
        for_time=for_time,
        valid_window=settings.TOTP_VALID_WINDOW,
    )


# Fernet encryption for TOTP secrets
def get_fernet() -> Fernet:
    """Get Fernet instance for encryption."""
    return Fernet(settings.FERNET_KEY.encode())


def encrypt_secret(secret: str) -> str:
    """Encrypt a secret using Fernet."""
    return get_fernet().encrypt(secret.encode()).decode()


def decrypt_secret(encrypted: str) -> str:
    """Decrypt a secret using Fernet."""
    try:
        return get_fernet().decrypt(encrypted.encode()).decode()
    except InvalidToken:
        raise ValueError("Stored secret cannot be decrypted with FERNET_KEY")
