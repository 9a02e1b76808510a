"""
PlayerPath application settings.

Extends the base settings with session-specific configuration.
"""

from common.config import BaseAppSettings


class Settings(BaseAppSettings):
    """PlayerPath-specific settings."""

    # ==========================================================================
    # Profile Loading
    # ==========================================================================
    # Attempts made to read the remote profile before giving up
    PROFILE_LOAD_MAX_ATTEMPTS: int = 5

    # First backoff delay in seconds; each later delay doubles
    PROFILE_LOAD_BASE_DELAY_SECONDS: float = 0.5

    # ==========================================================================
    # Signed URLs
    # ==========================================================================
    # Cached URLs expiring within this margin are fetched again
    SIGNED_URL_REFRESH_MARGIN_SECONDS: int = 300
    VIDEO_URL_EXPIRATION_HOURS: int = 24
    THUMBNAIL_URL_EXPIRATION_HOURS: int = 168

    # ==========================================================================
    # Collections
    # ==========================================================================
    # Firestore
    PROFILES_COLLECTION: str = "users"
    INVITATIONS_COLLECTION: str = "invitations"

    # MongoDB (local persistence)
    PREFERENCES_COLLECTION: str = "devicePreferences"
    MIRROR_COLLECTION: str = "cachedUsers"
    UPLOAD_QUEUE_COLLECTION: str = "pendingUploads"

    # ==========================================================================
    # Storage
    # ==========================================================================
    # Blob prefix for a user's videos; formatted with the uid
    USER_BLOB_PREFIX: str = "athlete_videos/{uid}/"


# Global settings instance
settings = Settings()
