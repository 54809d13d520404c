"""Application configuration."""

import os
from typing import List, Union

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

WEAK_SECRETS = {"your-secret-key-change-in-production", "changeme", "secret"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "VPS Seller Portal"
    APP_ENV: str = "development"
    DEBUG: bool = False  # Secure default: disabled
    API_PREFIX: str = "/api"
    FRONTEND_URL: str = "http://localhost:3000"

    # JWT - access and refresh tokens are signed with distinct secrets
    JWT_SECRET: str  # Required - no default
    JWT_REFRESH_SECRET: str  # Required - no default
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    TWO_FACTOR_TEMP_TOKEN_EXPIRE_MINUTES: int = 5
    EMAIL_VERIFICATION_EXPIRE_HOURS: int = 24
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60
    BCRYPT_ROUNDS: int = 12

    # TOTP second factor
    TOTP_ISSUER: str = "VPS Seller Portal"
    TOTP_VALID_WINDOW: int = 2  # steps of 30s tolerated on each side

    # Encryption for TOTP secrets at rest
    FERNET_KEY: str  # Required - no default

    # Database - Credentials must come from environment
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "vpsportal"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "vpsportal"

    # Database pool configuration
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 40
    DB_POOL_RECYCLE: int = 3600

    @field_validator("JWT_SECRET", "JWT_REFRESH_SECRET")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        """Ensure JWT secrets are secure."""
        if len(v) < 32:
            raise ValueError("JWT secrets must be at least 32 characters")
        if v in WEAK_SECRETS:
            raise ValueError("JWT secrets must not be a default/weak value")
        return v

    @field_validator("FERNET_KEY")
    @classmethod
    def validate_fernet_key(cls, v: str) -> str:
        """Ensure FERNET_KEY is valid."""
        if not v or len(v) < 32:
            raise ValueError("FERNET_KEY must be a valid Fernet key (44 characters base64)")
        return v

    @model_validator(mode="after")
    def validate_distinct_secrets(self) -> "Settings":
        if self.JWT_SECRET == self.JWT_REFRESH_SECRET:
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must differ")
        return self

    @property
    def DATABASE_URL(self) -> str:
        """Build async database URL. Uses DATABASE_URL env var if set."""
        external = os.environ.get("DATABASE_URL", "")
        if external:
            return external.replace("postgresql://", "postgresql+asyncpg://")
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def database_is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379

    @property
    def REDIS_URL(self) -> str:
        """Build Redis URL. Uses REDIS_URL env var if set."""
        external = os.environ.get("REDIS_URL", "")
        if external:
            return external
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/0"

    # CORS - Restricted methods and headers
    # Override with comma-separated env var: CORS_ORIGINS=https://mysite.com,https://www.mysite.com
    CORS_ORIGINS: Union[str, List[str]] = "http://localhost:3000,http://127.0.0.1:3000"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    CORS_ALLOWED_METHODS: List[str] = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    CORS_ALLOWED_HEADERS: List[str] = [
        "Authorization",
        "Content-Type",
        "Accept",
        "Origin",
        "X-Requested-With",
    ]

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_STORAGE_URI: str = ""

    @property
    def rate_limit_storage(self) -> str:
        """Limiter storage; falls back to Redis when not set explicitly."""
        return self.RATE_LIMIT_STORAGE_URI or self.REDIS_URL

    # Email
    EMAIL_BACKEND: str = "console"  # "console" or "smtp"
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_EMAIL: str = "noreply@vpsportal.local"
    SMTP_FROM_NAME: str = "VPS Seller Portal"
    SMTP_TLS: bool = True

    @field_validator("EMAIL_BACKEND")
    @classmethod
    def validate_email_backend(cls, v: str) -> str:
        if v not in ("console", "smtp"):
            raise ValueError("EMAIL_BACKEND must be 'console' or 'smtp'")
        return v

    @property
    def email_enabled(self) -> bool:
        """Check if SMTP delivery is configured."""
        return bool(self.SMTP_HOST and self.SMTP_USER)

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.APP_ENV == "production" and not self.DEBUG

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
