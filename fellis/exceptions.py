"""
Application exceptions.

Each subclass fixes its HTTP status and ``ErrorCode`` as class attributes;
``exception_handlers`` turns any ``FellisError`` into the JSON error
envelope. The SPA localizes messages by error code, so codes are stable
once shipped.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    AUTH_FAILED = "AUTH_FAILED"
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_SESSION_EXPIRED = "AUTH_SESSION_EXPIRED"
    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"

    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_USER_NOT_FOUND = "RESOURCE_USER_NOT_FOUND"

    VALIDATION_FAILED = "VALIDATION_FAILED"
    VALIDATION_INVALID_CONSENT_PURPOSE = "VALIDATION_INVALID_CONSENT_PURPOSE"
    VALIDATION_DUPLICATE_RESOURCE = "VALIDATION_DUPLICATE_RESOURCE"

    DATABASE_ERROR = "DATABASE_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"


class FellisError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code is not None:
            self.error_code = error_code


# Authentication


class AuthenticationError(FellisError):
    """Missing, invalid or expired credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = ErrorCode.AUTH_FAILED

    def __init__(self, message: str = "Not authenticated", details: dict[str, Any] | None = None):
        super().__init__(message, details)


class InvalidCredentialsError(AuthenticationError):
    error_code = ErrorCode.AUTH_INVALID_CREDENTIALS

    def __init__(self):
        super().__init__("Invalid credentials")


class SessionExpiredError(AuthenticationError):
    """The X-Session-Id header names no session, or one past its expiry."""

    error_code = ErrorCode.AUTH_SESSION_EXPIRED

    def __init__(self):
        super().__init__("Session expired")


# Lookups


class ResourceNotFoundError(FellisError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = ErrorCode.RESOURCE_NOT_FOUND

    def __init__(self, resource_type: str, resource_id: Any | None = None):
        if resource_id is None:
            message = f"{resource_type} not found"
        else:
            message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(message, {"resource_type": resource_type, "resource_id": resource_id})


class UserNotFoundError(ResourceNotFoundError):
    error_code = ErrorCode.RESOURCE_USER_NOT_FOUND

    def __init__(self, user_id: Any | None = None):
        super().__init__("User", user_id)


# Input


class ValidationError(FellisError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = ErrorCode.VALIDATION_FAILED

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode | None = None,
    ):
        details = dict(details or {})
        if field:
            details["field"] = field
        super().__init__(message, details, error_code)


class InvalidConsentPurposeError(ValidationError):
    """The purpose is not one of the recognized consent purposes."""

    def __init__(self, purpose: str, allowed: list[str]):
        super().__init__(
            f"Unknown consent purpose '{purpose}'",
            field="purpose",
            details={"purpose": purpose, "allowed_purposes": allowed},
            error_code=ErrorCode.VALIDATION_INVALID_CONSENT_PURPOSE,
        )


class DuplicateResourceError(FellisError):
    status_code = status.HTTP_409_CONFLICT
    error_code = ErrorCode.VALIDATION_DUPLICATE_RESOURCE

    def __init__(self, resource_type: str, field: str, value: Any):
        # the value itself (an email address) stays out of details
        super().__init__(
            f"{resource_type} with {field} '{value}' already exists",
            {"resource_type": resource_type, "field": field},
        )


# Integrations


class ServiceUnavailableError(FellisError):
    """A feature that depends on configuration the deployment lacks."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = ErrorCode.SERVICE_UNAVAILABLE

    def __init__(self, message: str, service: str):
        super().__init__(message, {"service": service})


class ExternalServiceError(FellisError):
    """The Facebook Graph API or an image CDN failed or answered with something unusable."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = ErrorCode.EXTERNAL_SERVICE_ERROR

    def __init__(self, message: str, service: str = "facebook", status_code: int | None = None):
        details: dict[str, Any] = {"service": service}
        if status_code is not None:
            details["upstream_status"] = status_code
        super().__init__(message, details)
