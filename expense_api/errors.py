"""Exception hierarchy shared by the service layer and the HTTP handlers."""
from __future__ import annotations


class ExpenseAPIError(RuntimeError):
    """Base error carrying the HTTP status the API answers with."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ExpenseAPIError):
    """Raised when required input is missing or malformed."""

    status_code = 400


class ConflictError(ValidationError):
    """Raised when a unique field (username, email) is already taken."""

    status_code = 409


class NotFoundError(ExpenseAPIError):
    """Raised when the referenced entity does not exist."""

    status_code = 404


class AuthError(ExpenseAPIError):
    """Raised on bad credentials or an unusable access token."""

    status_code = 401


class ConfigError(ValueError):
    """Raised when a configuration value cannot be interpreted."""


__all__ = [
    "AuthError",
    "ConfigError",
    "ConflictError",
    "ExpenseAPIError",
    "NotFoundError",
    "ValidationError",
]
