"""
Session models for PlayerPath.

Matches the Firestore ``users/{uid}`` document and the state the session
coordinator publishes to the UI.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Role(str, Enum):
    """Account type. Unknown values are treated as athlete."""

    ATHLETE = "athlete"
    COACH = "coach"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        if isinstance(value, Role):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.ATHLETE


DEFAULT_ROLE = Role.ATHLETE


class SessionPhase(str, Enum):
    """Position of the session in its lifecycle."""

    SIGNED_OUT = "signed_out"
    SIGNING_UP = "signing_up"
    SIGNING_IN = "signing_in"
    SIGNED_IN_NEW = "signed_in_new"
    SIGNED_IN_EXISTING = "signed_in_existing"
    SIGNING_OUT = "signing_out"


class UserProfile(BaseModel):
    """Remote profile document (``users/{uid}``)."""

    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    role: Role = DEFAULT_ROLE
    display_name: Optional[str] = Field(None, alias="displayName")
    is_premium: bool = Field(False, alias="isPremium")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    @field_validator("role", mode="before")
    @classmethod
    def _parse_role(cls, value: Any) -> Role:
        return Role.parse(value)

    @field_validator("is_premium", mode="before")
    @classmethod
    def _parse_premium(cls, value: Any) -> bool:
        return bool(value)

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "UserProfile":
        """Build a profile from a raw Firestore document dict."""
        return cls.model_validate(data)


@dataclass(frozen=True)
class SessionState:
    """Immutable snapshot of the coordinator's published state."""

    phase: SessionPhase
    uid: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: Role = DEFAULT_ROLE
    is_new_signup: bool = False
    onboarding_complete: bool = False
    profile: Optional[UserProfile] = None
    is_loading: bool = False
    error_message: Optional[str] = None
    profile_error: Optional[str] = None
    pending_invitation_count: int = 0

    @property
    def is_signed_in(self) -> bool:
        return self.uid is not None

    @property
    def needs_onboarding(self) -> bool:
        return self.is_signed_in and not self.onboarding_complete

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API responses (camelCase keys)."""
        profile = self.profile.model_dump(by_alias=True, mode="json") if self.profile else None
        return {
            "phase": self.phase.value,
            "isSignedIn": self.is_signed_in,
            "uid": self.uid,
            "email": self.email,
            "displayName": self.display_name,
            "role": self.role.value,
            "isNewSignup": self.is_new_signup,
            "onboardingComplete": self.onboarding_complete,
            "needsOnboarding": self.needs_onboarding,
            "profile": profile,
            "isLoading": self.is_loading,
            "errorMessage": self.error_message,
            "profileError": self.profile_error,
            "pendingInvitationCount": self.pending_invitation_count,
        }
