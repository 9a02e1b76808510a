"""
FastAPI Dependencies.

Builds the session coordinator for the application root and exposes it to
routes through ``app.state``.
"""

import logging
from typing import Optional

import httpx
from fastapi import Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from common.auth import CredentialProvider, FirebaseAuth
from common.utils.exceptions import ServiceUnavailableException, UnauthorizedException

from app.config import Settings
from app.services import (
    BiometricCredentialStore,
    CloudFunctionsClient,
    FirebaseBlobStorage,
    FirestoreProfileStore,
    LocalMirror,
    PreferencesStore,
    ProfileLoader,
    ProfileStore,
    RetryPolicy,
    SessionCoordinator,
    SignedURLCache,
    UploadQueue,
)
from app.services.session_coordinator import NOT_SIGNED_IN_MESSAGE

logger = logging.getLogger(__name__)


# =============================================================================
# Construction
# =============================================================================
def build_session_coordinator(
    db: AsyncIOMotorDatabase,
    settings: Settings,
    provider: Optional[CredentialProvider] = None,
    profile_store: Optional[ProfileStore] = None,
    blob_storage: Optional[FirebaseBlobStorage] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> SessionCoordinator:
    """
    Wire the session coordinator and its collaborators.

    Args:
        db: MongoDB database for local persistence
        settings: Application settings
        provider: Credential provider (defaults to Firebase REST auth)
        profile_store: Remote profile store (defaults to Firestore)
        blob_storage: Remote blob storage (defaults to the Firebase bucket if configured)
        http_client: Shared HTTP client for Firebase REST and callable functions

    Returns:
        An unstarted SessionCoordinator
    """
    if provider is None:
        provider = FirebaseAuth(api_key=settings.FIREBASE_API_KEY, http_client=http_client)

    if profile_store is None:
        profile_store = FirestoreProfileStore(
            profiles_collection=settings.PROFILES_COLLECTION,
            invitations_collection=settings.INVITATIONS_COLLECTION,
        )

    if blob_storage is None and settings.FIREBASE_STORAGE_BUCKET:
        blob_storage = FirebaseBlobStorage(prefix_template=settings.USER_BLOB_PREFIX)

    preferences = PreferencesStore(db, settings.PREFERENCES_COLLECTION)

    signed_urls = None
    if settings.FIREBASE_PROJECT_ID:
        async def current_id_token() -> Optional[str]:
            return await coordinator.id_token()

        functions = CloudFunctionsClient(
            project_id=settings.FIREBASE_PROJECT_ID,
            region=settings.FIREBASE_FUNCTIONS_REGION,
            token_provider=current_id_token,
            http_client=http_client,
        )
        signed_urls = SignedURLCache(
            functions,
            refresh_margin_seconds=settings.SIGNED_URL_REFRESH_MARGIN_SECONDS,
            video_expiration_hours=settings.VIDEO_URL_EXPIRATION_HOURS,
            thumbnail_expiration_hours=settings.THUMBNAIL_URL_EXPIRATION_HOURS,
        )
    else:
        logger.warning("FIREBASE_PROJECT_ID not set; signed URLs are disabled")

    coordinator = SessionCoordinator(
        provider=provider,
        profile_store=profile_store,
        preferences=preferences,
        mirror=LocalMirror(db, settings.MIRROR_COLLECTION),
        loader=ProfileLoader(
            profile_store,
            RetryPolicy(
                max_attempts=settings.PROFILE_LOAD_MAX_ATTEMPTS,
                base_delay=settings.PROFILE_LOAD_BASE_DELAY_SECONDS,
            ),
        ),
        biometrics=BiometricCredentialStore(preferences),
        upload_queue=UploadQueue(db, settings.UPLOAD_QUEUE_COLLECTION),
        signed_urls=signed_urls,
        blob_storage=blob_storage,
    )
    return coordinator


# =============================================================================
# Route Dependencies
# =============================================================================
def get_session_coordinator(request: Request) -> SessionCoordinator:
    """Get the coordinator created by the application lifespan."""
    coordinator = getattr(request.app.state, "session_coordinator", None)
    if coordinator is None:
        raise ServiceUnavailableException(
            message="Session service not initialized",
            code="SERVICE_NOT_READY",
        )
    return coordinator


def require_signed_in(
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
) -> SessionCoordinator:
    """Require a signed-in session."""
    if not coordinator.is_signed_in:
        raise UnauthorizedException(message=NOT_SIGNED_IN_MESSAGE, code="NOT_SIGNED_IN")
    return coordinator
