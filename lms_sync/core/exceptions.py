"""
Custom exceptions for the LMS admin sync client.
Provides a structured error taxonomy plus the user-facing wording the admin shows.
"""

from enum import Enum
from typing import Any

import httpx


class LmsSyncError(Exception):
    """Base exception for all sync client errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class ApiError(LmsSyncError):
    """Raised when the collection API answers with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, error_code=error_code, details=details)


class AuthenticationError(ApiError):
    """Raised when the nonce or session is rejected (401)."""


class PermissionDeniedError(ApiError):
    """Raised when the current user may not perform the action (403)."""


class ResourceNotFoundError(ApiError):
    """Raised when a requested resource does not exist."""


class ValidationError(LmsSyncError):
    """Raised when outgoing resource data fails client-side validation."""

    def __init__(self, errors: list[str], resource: str = "resource") -> None:
        self.errors = errors
        super().__init__(
            f"Validation failed: {', '.join(errors)}",
            details={"resource": resource, "errors": errors},
        )


class NetworkError(LmsSyncError):
    """Raised when the request never produced an HTTP response."""


class RequestTimeoutError(NetworkError):
    """Raised when the request exceeded the configured timeout."""


class ConfigurationError(LmsSyncError):
    """Raised when client configuration is invalid or incomplete."""


class ErrorType(str, Enum):
    """Coarse error classes surfaced to the admin UI."""

    NETWORK = "NETWORK_ERROR"
    API = "API_ERROR"
    VALIDATION = "VALIDATION_ERROR"
    AUTH = "AUTH_ERROR"
    NOT_FOUND = "NOT_FOUND"
    PERMISSION = "PERMISSION_ERROR"
    TIMEOUT = "TIMEOUT_ERROR"
    UNKNOWN = "UNKNOWN_ERROR"


_USER_MESSAGES = {
    ErrorType.NETWORK: "Network error. Please check your connection.",
    ErrorType.API: "Server error. Please try again later.",
    ErrorType.VALIDATION: "Invalid data provided.",
    ErrorType.AUTH: "Authentication required. Please log in.",
    ErrorType.NOT_FOUND: "Resource not found.",
    ErrorType.PERMISSION: "You do not have permission to perform this action.",
    ErrorType.TIMEOUT: "Request timeout. Please try again.",
    ErrorType.UNKNOWN: "An unexpected error occurred.",
}


def classify_error(error: BaseException) -> ErrorType:
    """Map an exception onto an ErrorType."""
    # Order matters: subclasses before their parents
    if isinstance(error, (RequestTimeoutError, httpx.TimeoutException)):
        return ErrorType.TIMEOUT
    if isinstance(error, (NetworkError, httpx.TransportError)):
        return ErrorType.NETWORK
    if isinstance(error, AuthenticationError):
        return ErrorType.AUTH
    if isinstance(error, PermissionDeniedError):
        return ErrorType.PERMISSION
    if isinstance(error, ResourceNotFoundError):
        return ErrorType.NOT_FOUND
    if isinstance(error, ValidationError):
        return ErrorType.VALIDATION
    if isinstance(error, ApiError):
        return ErrorType.API
    return ErrorType.UNKNOWN


def user_message(error: BaseException) -> str:
    """Get the user-friendly message for an exception."""
    return _USER_MESSAGES[classify_error(error)]


def error_message(error: BaseException, fallback: str) -> str:
    """Best human-readable message for an exception, or ``fallback``."""
    message = getattr(error, "message", None) or str(error)
    return message or fallback
