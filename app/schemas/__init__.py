"""
PlayerPath request/response schemas.
"""

from app.schemas.auth import (
    BatchVideoURLRequest,
    PasswordResetRequest,
    SignInRequest,
    SignUpRequest,
    TokenRefreshRequest,
)

__all__ = [
    "BatchVideoURLRequest",
    "PasswordResetRequest",
    "SignInRequest",
    "SignUpRequest",
    "TokenRefreshRequest",
]
