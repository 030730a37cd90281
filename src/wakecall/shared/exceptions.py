"""
Custom exception classes for the application.
"""

from typing import Any


class AppException(Exception):
    """Base exception for application errors."""

    status_code: int = 400

    def __init__(
        self,
        message: str,
        code: str = "APP_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application exception.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class AuthenticationError(AppException):
    """Raised when authentication fails."""

    status_code = 401

    def __init__(
        self,
        message: str = "Authentication failed",
        code: str = "AUTH_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class TokenExpiredError(AuthenticationError):
    """Raised when a token has expired."""

    def __init__(
        self,
        message: str = "Token has expired",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "TOKEN_EXPIRED", details)


class InvalidTokenError(AuthenticationError):
    """Raised when a token is invalid."""

    def __init__(
        self,
        message: str = "Invalid token",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "INVALID_TOKEN", details)


class OtpError(AppException):
    """Raised when a one-time code cannot be accepted."""

    def __init__(
        self,
        message: str,
        code: str = "OTP_INVALID",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class PermissionDeniedError(AppException):
    """Raised when the caller may not perform an action yet."""

    status_code = 403

    def __init__(
        self,
        message: str,
        code: str = "PERMISSION_DENIED",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class NotFoundError(AppException):
    """Raised when a resource does not exist or is not owned by the caller."""

    status_code = 404

    def __init__(
        self,
        message: str = "Resource not found",
        code: str = "NOT_FOUND",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class ConflictError(AppException):
    """Raised when a resource clashes with existing state."""

    status_code = 409

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class ValidationError(AppException):
    """Raised when business validation fails (distinct from pydantic ValidationError)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "VALIDATION_ERROR", details)

