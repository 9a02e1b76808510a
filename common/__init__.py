"""
Common library for reusable infrastructure components.

This package provides generic modules shared by the application:

- database: Async MongoDB connection with Motor
- auth: Pluggable credential providers (Firebase)
- utils: Standard responses, exceptions, password validation
- config: Base settings class
"""

from common.database import MongoDB
from common.auth import CredentialProvider, FirebaseAuth, Identity, TokenInfo
from common.utils import (
    success_response,
    APIException,
    UnauthorizedException,
    AuthError,
    AuthErrorCode,
    validate_password,
)
from common.config import BaseAppSettings

__all__ = [
    # Database
    "MongoDB",
    # Auth
    "CredentialProvider",
    "FirebaseAuth",
    "Identity",
    "TokenInfo",
    # Utils
    "success_response",
    "APIException",
    "UnauthorizedException",
    "AuthError",
    "AuthErrorCode",
    "validate_password",
    # Config
    "BaseAppSettings",
]
