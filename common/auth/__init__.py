"""
Authentication module - Pluggable credential providers (Firebase).
"""

from common.auth.base import AuthStateListener, CredentialProvider, Identity, TokenInfo
from common.auth.firebase_auth import FirebaseAuth, initialize_firebase_app, map_firebase_error

__all__ = [
    "AuthStateListener",
    "CredentialProvider",
    "Identity",
    "TokenInfo",
    "FirebaseAuth",
    "initialize_firebase_app",
    "map_firebase_error",
]
