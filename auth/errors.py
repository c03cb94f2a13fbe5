"""
auth/errors.py -- Domain exceptions raised by the authentication workflow.

Every exception carries the machine-readable code, the HTTP status and the
field-level details that the API layer renders into the response envelope.
Workflows raise; api/main.py has the single exception handler that converts
them, so route handlers contain no error-formatting code.

An unknown email and a wrong password both raise InvalidCredentialsError.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from typing import Optional


class AuthServiceError(Exception):
    """Base exception for all recoverable service errors."""

    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None, details: Optional[list[dict]] = None):
        self.message = message or self.default_message
        self.details = details or []
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details}


# ============================================
# Client payload errors
# ============================================


class ValidationFailed(AuthServiceError):
    """Payload shape or policy violation. details holds {field, message} items."""

    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid input data"


class UserExistsError(AuthServiceError):
    code = "USER_EXISTS"
    status_code = 409
    default_message = "User with this email already exists"

    def __init__(self) -> None:
        super().__init__(details=[{"field": "email", "message": "Email already registered"}])


# ============================================
# Authentication errors
# ============================================


class InvalidCredentialsError(AuthServiceError):
    code = "INVALID_CREDENTIALS"
    status_code = 401
    default_message = "Invalid email or password"


class MissingAccessTokenError(AuthServiceError):
    code = "UNAUTHORIZED"
    status_code = 401
    default_message = "Access token required"


class InvalidAccessTokenError(AuthServiceError):
    code = "INVALID_TOKEN"
    status_code = 401
    default_message = "Invalid or expired access token"


# ============================================
# Account state errors
# ============================================


class RateLimitExceededError(AuthServiceError):
    code = "RATE_LIMIT_EXCEEDED"
    status_code = 429
    default_message = "Too many failed login attempts. Please try again in 15 minutes."


class EmailNotVerifiedError(AuthServiceError):
    code = "EMAIL_NOT_VERIFIED"
    status_code = 403
    default_message = "Please verify your email address before logging in"


class AccountSuspendedError(AuthServiceError):
    code = "ACCOUNT_SUSPENDED"
    status_code = 403
    default_message = "Your account has been suspended. Please contact support."


class InvalidVerificationTokenError(AuthServiceError):
    """Unknown, expired and already-used tokens all map here."""

    code = "INVALID_TOKEN"
    status_code = 400
    default_message = "Invalid or expired verification token"


# ============================================
# Lookup errors
# ============================================


class UserNotFoundError(AuthServiceError):
    code = "USER_NOT_FOUND"
    status_code = 404
    default_message = "User not found"
