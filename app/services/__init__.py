"""
PlayerPath Services.

Session coordinator and the stores and collaborators it reconciles.
"""

from app.services.profile_store import ProfileStore, FirestoreProfileStore
from app.services.local_store import LocalMirror, PreferencesStore, UploadQueue
from app.services.collaborators import BiometricCredentialStore, FirebaseBlobStorage
from app.services.cloud_functions import CloudFunctionError, CloudFunctionsClient
from app.services.signed_url_cache import SignedURLCache, SignedURLError, SignedURLErrorCode
from app.services.profile_loader import ProfileLoader, RetryPolicy
from app.services.session_coordinator import SessionCoordinator

__all__ = [
    "ProfileStore",
    "FirestoreProfileStore",
    "LocalMirror",
    "PreferencesStore",
    "UploadQueue",
    "BiometricCredentialStore",
    "FirebaseBlobStorage",
    "CloudFunctionError",
    "CloudFunctionsClient",
    "SignedURLCache",
    "SignedURLError",
    "SignedURLErrorCode",
    "ProfileLoader",
    "RetryPolicy",
    "SessionCoordinator",
]
