"""Application error taxonomy.

Every error carries the HTTP status it maps to and a message that is safe to
show to the client. The handlers in ``app.main`` turn them into the
``{"success": false, "message": ...}`` envelope.
"""

from typing import Any, Optional

from fastapi import status


class AppError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[Any] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class InvalidTokenError(AuthenticationError):
    default_message = "Invalid token"


class TokenExpiredError(AuthenticationError):
    default_message = "Token expired"


class SessionExpiredError(AuthenticationError):
    default_message = "Session expired"


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class AccountInactiveError(AuthorizationError):
    default_message = "Account is not active"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"


class InternalError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"


class NotImplementedFeatureError(AppError):
    status_code = status.HTTP_501_NOT_IMPLEMENTED
    default_message = "Endpoint not yet implemented"
