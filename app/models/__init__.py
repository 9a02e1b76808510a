"""
PlayerPath models.
"""

from app.models.session import DEFAULT_ROLE, Role, SessionPhase, SessionState, UserProfile

__all__ = [
    "DEFAULT_ROLE",
    "Role",
    "SessionPhase",
    "SessionState",
    "UserProfile",
]
