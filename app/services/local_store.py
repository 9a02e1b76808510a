"""
Local persistence backed by MongoDB.

- PreferencesStore: key-value flags (role, onboarding, session owner, biometrics)
- LocalMirror: one cached user record per identity for offline display
- UploadQueue: pending video uploads, cleared on sign-out
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models import UserProfile

logger = logging.getLogger(__name__)


# Preference keys
USER_ROLE_KEY = "userRole"
ONBOARDING_COMPLETE_KEY = "hasCompletedOnboarding"
SESSION_OWNER_KEY = "sessionOwner"
BIOMETRIC_ENABLED_KEY = "biometric_enabled"
LAST_AUTH_USER_KEY = "lastAuthUserID"


class PreferencesStore:
    """
    Key-value preferences, one document per key: ``{_id: key, value: ...}``.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "devicePreferences"):
        """
        Initialize PreferencesStore.

        Args:
            db: MongoDB database connection
            collection_name: Collection holding preference documents
        """
        self._collection = db[collection_name]

    async def get(self, key: str, default: Any = None) -> Any:
        doc = await self._collection.find_one({"_id": key})
        if not doc:
            return default
        return doc.get("value", default)

    async def set(self, key: str, value: Any) -> None:
        await self._collection.update_one(
            {"_id": key},
            {"$set": {"value": value, "updatedAt": datetime.now(timezone.utc)}},
            upsert=True,
        )

    async def remove(self, *keys: str) -> None:
        if not keys:
            return
        await self._collection.delete_many({"_id": {"$in": list(keys)}})


class LocalMirror:
    """
    Cached copy of the remote user record, keyed by uid.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "cachedUsers"):
        self._collection = db[collection_name]

    async def get(self, uid: str) -> Optional[UserProfile]:
        """Return the mirrored profile for ``uid``, if any."""
        doc = await self._collection.find_one({"_id": uid})
        if not doc:
            return None
        return UserProfile.from_document(doc)

    async def upsert(self, uid: str, profile: UserProfile) -> None:
        """
        Insert or replace the mirror record for ``uid``.

        Args:
            uid: Identity the record belongs to
            profile: Profile fields to mirror
        """
        record = {
            "uid": uid,
            "email": profile.email,
            "displayName": profile.display_name,
            "role": profile.role.value,
            "isPremium": profile.is_premium,
            "lastSyncedAt": datetime.now(timezone.utc),
        }
        update = {"$set": record}
        if profile.created_at is not None:
            record["createdAt"] = profile.created_at
        else:
            update["$setOnInsert"] = {"createdAt": datetime.now(timezone.utc)}

        await self._collection.update_one({"_id": uid}, update, upsert=True)
        logger.debug(f"Local mirror updated for {uid}")

    async def delete(self, uid: str) -> None:
        result = await self._collection.delete_one({"_id": uid})
        logger.debug(f"Local mirror delete for {uid}: {result.deleted_count} removed")


class UploadQueue:
    """
    Pending uploads awaiting connectivity.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "pendingUploads"):
        self._collection = db[collection_name]

    async def clear(self) -> int:
        """Drop every queued upload. Returns the number removed."""
        result = await self._collection.delete_many({})
        logger.info(f"Cleared {result.deleted_count} pending uploads")
        return result.deleted_count
