"""
Secondary collaborators cleared on sign-out and account deletion.
"""

import asyncio
import logging

from app.services.local_store import (
    BIOMETRIC_ENABLED_KEY,
    LAST_AUTH_USER_KEY,
    PreferencesStore,
)

logger = logging.getLogger(__name__)


class BiometricCredentialStore:
    """
    Clears the biometric sign-in flags kept for the signed-in account.
    """

    def __init__(self, preferences: PreferencesStore):
        self._preferences = preferences

    async def disable(self) -> None:
        await self._preferences.set(BIOMETRIC_ENABLED_KEY, False)
        await self._preferences.remove(LAST_AUTH_USER_KEY)
        logger.info("Biometric sign-in disabled")


class FirebaseBlobStorage:
    """
    Deletes a user's uploaded videos from Cloud Storage.
    """

    def __init__(self, bucket=None, prefix_template: str = "athlete_videos/{uid}/"):
        """
        Initialize FirebaseBlobStorage.

        Args:
            bucket: google.cloud.storage Bucket; defaults to the Firebase app's bucket
            prefix_template: Blob prefix for a user's files, formatted with ``uid``
        """
        if bucket is None:
            from firebase_admin import storage
            bucket = storage.bucket()
        self._bucket = bucket
        self._prefix_template = prefix_template

    async def delete_user_blobs(self, uid: str) -> int:
        """
        Delete every blob under the user's prefix.

        Individual failures are logged and skipped.

        Returns:
            Number of blobs deleted
        """
        prefix = self._prefix_template.format(uid=uid)
        blobs = await asyncio.to_thread(lambda: list(self._bucket.list_blobs(prefix=prefix)))

        deleted = 0
        for blob in blobs:
            try:
                await asyncio.to_thread(blob.delete)
                deleted += 1
            except Exception as e:
                logger.warning(f"Failed to delete blob {blob.name}: {e}")

        logger.info(f"Deleted {deleted}/{len(blobs)} blobs under {prefix}")
        return deleted
