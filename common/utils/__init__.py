"""
Utilities module - Common helpers for API responses, exceptions, and validation.
"""

from common.utils.responses import success_response
from common.utils.exceptions import (
    APIException,
    UnauthorizedException,
    ForbiddenException,
    ConflictException,
    ValidationException,
    RateLimitException,
    InternalServerException,
    ServiceUnavailableException,
    AuthError,
    AuthErrorCode,
    AUTH_ERROR_MESSAGES,
)
from common.utils.password import validate_password

__all__ = [
    "success_response",
    "APIException",
    "UnauthorizedException",
    "ForbiddenException",
    "ConflictException",
    "ValidationException",
    "RateLimitException",
    "InternalServerException",
    "ServiceUnavailableException",
    "AuthError",
    "AuthErrorCode",
    "AUTH_ERROR_MESSAGES",
    "validate_password",
]
