"""
Custom exceptions with error codes.

Two families live here:

- ``APIException`` and subclasses extend FastAPI's HTTPException with
  standardized error codes for consistent API error responses.
- ``AuthError`` is the fixed authentication error taxonomy raised by
  credential providers and the session coordinator. Every member carries a
  user-facing message and converts to the matching ``APIException``.

Example:
    from common.utils import AuthError, AuthErrorCode

    try:
        await coordinator.sign_in(email, password)
    except AuthError as e:
        if e.code is AuthErrorCode.INVALID_CREDENTIALS:
            ...
        raise e.to_api_exception()
"""

from enum import Enum
from typing import Optional, Any, Dict
from fastapi import HTTPException


class APIException(HTTPException):
    """
    Base API exception with error code support.

    Provides consistent error response format across the API.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        code: Optional[str] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Create an API exception.

        Args:
            status_code: HTTP status code
            message: Human-readable error message
            code: Machine-readable error code
            details: Additional error details
            headers: Optional response headers
        """
        detail: Dict[str, Any] = {"message": message}

        if code:
            detail["code"] = code

        if details is not None:
            detail["details"] = details

        super().__init__(
            status_code=status_code,
            detail=detail,
            headers=headers,
        )


class UnauthorizedException(APIException):
    """401 Unauthorized - Missing or invalid authentication."""

    def __init__(
        self,
        message: str = "Unauthorized",
        code: str = "UNAUTHORIZED",
        details: Optional[Any] = None,
    ):
        super().__init__(401, message, code, details)


class ForbiddenException(APIException):
    """403 Forbidden - Valid auth but insufficient permissions."""

    def __init__(
        self,
        message: str = "Forbidden",
        code: str = "FORBIDDEN",
        details: Optional[Any] = None,
    ):
        super().__init__(403, message, code, details)


class ConflictException(APIException):
    """409 Conflict - Resource already exists or state conflict."""

    def __init__(
        self,
        message: str = "Conflict",
        code: str = "CONFLICT",
        details: Optional[Any] = None,
    ):
        super().__init__(409, message, code, details)


class ValidationException(APIException):
    """422 Validation Error - Request validation failed."""

    def __init__(
        self,
        message: str = "Validation error",
        code: str = "VALIDATION_ERROR",
        details: Optional[Any] = None,
        errors: Optional[list] = None,
    ):
        detail_info = details
        if errors:
            detail_info = {"errors": errors, **(details or {})}
        super().__init__(422, message, code, detail_info)


class RateLimitException(APIException):
    """429 Too Many Requests - Rate limit exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        code: str = "RATE_LIMIT_EXCEEDED",
        retry_after: Optional[int] = None,
    ):
        headers = {}
        if retry_after:
            headers["Retry-After"] = str(retry_after)

        super().__init__(
            status_code=429,
            message=message,
            code=code,
            details={"retryAfter": retry_after} if retry_after else None,
            headers=headers if headers else None,
        )


class InternalServerException(APIException):
    """500 Internal Server Error - Unexpected server error."""

    def __init__(
        self,
        message: str = "Internal server error",
        code: str = "INTERNAL_ERROR",
        details: Optional[Any] = None,
    ):
        super().__init__(500, message, code, details)


class ServiceUnavailableException(APIException):
    """503 Service Unavailable - Service temporarily unavailable."""

    def __init__(
        self,
        message: str = "Service unavailable",
        code: str = "SERVICE_UNAVAILABLE",
        retry_after: Optional[int] = None,
    ):
        headers = {}
        if retry_after:
            headers["Retry-After"] = str(retry_after)

        super().__init__(
            status_code=503,
            message=message,
            code=code,
            details={"retryAfter": retry_after} if retry_after else None,
            headers=headers if headers else None,
        )


# ─────────────────────────────────────────────────────────────────
# Authentication error taxonomy
# ─────────────────────────────────────────────────────────────────


class AuthErrorCode(str, Enum):
    """Fixed set of authentication failures surfaced to the UI."""

    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    EMAIL_IN_USE = "EMAIL_IN_USE"
    ACCOUNT_DISABLED = "ACCOUNT_DISABLED"
    RATE_LIMITED = "RATE_LIMITED"
    NETWORK_UNAVAILABLE = "NETWORK_UNAVAILABLE"
    UNKNOWN = "UNKNOWN"


AUTH_ERROR_MESSAGES: Dict[AuthErrorCode, str] = {
    AuthErrorCode.INVALID_CREDENTIALS: "Invalid credentials. Please check your email and password.",
    AuthErrorCode.WEAK_PASSWORD: (
        "Password is too weak. Please use at least 8 characters with both "
        "letters and numbers."
    ),
    AuthErrorCode.EMAIL_IN_USE: "An account with this email already exists. Try signing in instead.",
    AuthErrorCode.ACCOUNT_DISABLED: "This account has been disabled. Please contact support.",
    AuthErrorCode.RATE_LIMITED: "Too many attempts. Please try again later.",
    AuthErrorCode.NETWORK_UNAVAILABLE: (
        "Network error. Please check your internet connection and try again."
    ),
    AuthErrorCode.UNKNOWN: "Something went wrong. Please try again.",
}


class AuthError(Exception):
    """
    Authentication failure from the fixed taxonomy.

    None of these are retried automatically; retry is a user-initiated
    re-submission.

    Attributes:
        code: Taxonomy member
        message: User-facing message
        raw_message: Provider's original error string, if any
    """

    def __init__(
        self,
        code: AuthErrorCode,
        message: Optional[str] = None,
        raw_message: Optional[str] = None,
    ):
        self.code = code
        self.message = message or AUTH_ERROR_MESSAGES[code]
        self.raw_message = raw_message
        super().__init__(self.message)

    @classmethod
    def from_exception(cls, error: Exception) -> "AuthError":
        """Wrap an unexpected exception as UNKNOWN, preserving its text."""
        if isinstance(error, AuthError):
            return error
        return cls(AuthErrorCode.UNKNOWN, raw_message=str(error))

    def to_api_exception(self) -> APIException:
        """Map this error to the HTTP exception the API returns."""
        code = self.code.value
        if self.code is AuthErrorCode.INVALID_CREDENTIALS:
            return UnauthorizedException(self.message, code=code)
        if self.code is AuthErrorCode.WEAK_PASSWORD:
            return ValidationException(self.message, code=code)
        if self.code is AuthErrorCode.EMAIL_IN_USE:
            return ConflictException(self.message, code=code)
        if self.code is AuthErrorCode.ACCOUNT_DISABLED:
            return ForbiddenException(self.message, code=code)
        if self.code is AuthErrorCode.RATE_LIMITED:
            return RateLimitException(self.message, code=code)
        if self.code is AuthErrorCode.NETWORK_UNAVAILABLE:
            return ServiceUnavailableException(self.message, code=code)
        return InternalServerException(
            self.message,
            code=code,
            details={"raw": self.raw_message} if self.raw_message else None,
        )

    def __repr__(self) -> str:
        return f"AuthError(code={self.code.value!r}, raw_message={self.raw_message!r})"
