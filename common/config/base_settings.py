"""
Base settings class for environment configuration.

Uses Pydantic Settings for automatic environment variable loading.
Extend this class for application-specific settings.

Example:
    from common.config import BaseAppSettings

    class Settings(BaseAppSettings):
        UPLOAD_QUEUE_COLLECTION: str = "pendingUploads"

    settings = Settings()
    print(settings.FIREBASE_API_KEY)
"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseAppSettings(BaseSettings):
    """
    Base settings class with common configuration options.

    Automatically loads values from environment variables.
    Extend this class for application-specific settings.
    """

    # ==========================================================================
    # Database Settings (local persistence + mirror)
    # ==========================================================================
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "playerpath"

    # ==========================================================================
    # Firebase Settings
    # ==========================================================================
    # Web API key, used by the REST credential provider
    FIREBASE_API_KEY: Optional[str] = None

    # Service account (used for Firestore profiles and Storage blobs)
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_STORAGE_BUCKET: Optional[str] = None

    # Cloud Functions region for callable functions (signed URLs)
    FIREBASE_FUNCTIONS_REGION: str = "us-central1"

    # ==========================================================================
    # Server Settings
    # ==========================================================================
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production
    LOG_LEVEL: str = "INFO"

    # CORS Settings
    CORS_ORIGINS: str = "*"  # Comma-separated origins or "*"
    CORS_ALLOW_CREDENTIALS: bool = True

    # ==========================================================================
    # Pydantic Settings Configuration
    # ==========================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow",  # Allow app-specific settings
        case_sensitive=True,
    )

    def get_cors_origins(self) -> list:
        """Parse CORS_ORIGINS into a list."""
        if self.CORS_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT.lower() == "development"

    def validate_required(self) -> None:
        """
        Validate that required settings are configured.

        Raises:
            ValueError: If required settings are missing
        """
        errors = []

        if not self.FIREBASE_API_KEY:
            errors.append("FIREBASE_API_KEY is required for email/password authentication")

        if not self.FIREBASE_PROJECT_ID and not self.FIREBASE_CREDENTIALS_PATH:
            errors.append(
                "FIREBASE_PROJECT_ID or FIREBASE_CREDENTIALS_PATH is required "
                "for profile storage and signed URLs"
            )

        if errors:
            raise ValueError("Configuration errors:\n- " + "\n- ".join(errors))
