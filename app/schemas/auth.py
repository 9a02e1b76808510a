"""
Pydantic models for auth and session request validation.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class SignUpRequest(BaseModel):
    """Request body for account creation."""
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1, max_length=128)
    displayName: Optional[str] = Field(None, max_length=100)


class SignInRequest(BaseModel):
    """Request body for email/password sign-in."""
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1, max_length=128)


class PasswordResetRequest(BaseModel):
    """Request body for a password reset email."""
    email: str = Field(..., min_length=3, max_length=254)


class TokenRefreshRequest(BaseModel):
    """Request body for ID token refresh."""
    force: bool = Field(default=False, description="Refresh even if the cached token is valid")


class BatchVideoURLRequest(BaseModel):
    """Request body for batch signed video URLs."""
    folderId: str = Field(..., min_length=1)
    fileNames: List[str] = Field(..., min_length=1)
    expirationHours: Optional[int] = Field(None, ge=1, le=168)
