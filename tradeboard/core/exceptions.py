"""
Custom exception classes for the application.
Provides structured error handling with HTTP status code mapping.
"""

from typing import Any


__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ValidationError",
    "StateError",
    "ExternalServiceError",
]


class AppException(Exception):
    """
    Base exception class for all application-specific errors.
    Includes status code and optional detail dictionary.
    """

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(AppException):
    """
    Raised when the caller's identity cannot be established.
    Missing identity headers, unknown user.
    """
    status_code = 401
    default_message = "Unauthorized"


class AuthorizationError(AppException):
    """
    Raised when user lacks permission for an action.
    Valid identity but insufficient role.
    """
    status_code = 403
    default_message = "Permission denied"


class NotFoundError(AppException):
    """
    Raised when a requested resource is not found.
    Trades, users.
    """
    status_code = 404
    default_message = "Resource not found"


class ValidationError(AppException):
    """
    Raised when input validation fails.
    Always raised before any state is mutated.
    """
    status_code = 400
    default_message = "Validation failed"


class StateError(AppException):
    """
    Raised when an operation is invalid for the current lifecycle state.
    Settling a CLOSED trade, deleting a REJECTED trade.
    """
    status_code = 409
    default_message = "Operation not allowed in current state"


class ExternalServiceError(AppException):
    """
    Raised when the market data API is unavailable or returns unusable data.
    5xx responses, timeouts, missing quotes.
    """
    status_code = 502
    default_message = "Market data service error"
