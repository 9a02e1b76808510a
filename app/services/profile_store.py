"""
Remote profile store backed by Cloud Firestore.

Profiles live at ``users/{uid}``; coach invitations live in ``invitations``
with a lower-cased ``coachEmail`` and a ``status`` field.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from app.models import UserProfile

logger = logging.getLogger(__name__)


class ProfileStore(ABC):
    """Durable remote document store keyed by user ID."""

    @abstractmethod
    async def read_profile(self, uid: str) -> Optional[UserProfile]:
        """Return the profile, or None if no document exists yet."""
        pass

    @abstractmethod
    async def write_profile(self, uid: str, fields: Dict[str, Any]) -> None:
        """Merge ``fields`` into the profile document, creating it if needed."""
        pass

    @abstractmethod
    async def delete_profile(self, uid: str) -> None:
        pass

    @abstractmethod
    async def count_pending_invitations(self, email: str) -> int:
        """Count pending coach invitations addressed to ``email``."""
        pass


class FirestoreProfileStore(ProfileStore):
    """
    Firestore implementation using the Admin SDK's async client.
    """

    def __init__(
        self,
        client=None,
        profiles_collection: str = "users",
        invitations_collection: str = "invitations",
    ):
        """
        Initialize FirestoreProfileStore.

        Args:
            client: AsyncClient; defaults to the default Firebase app's client
            profiles_collection: Collection holding user profiles
            invitations_collection: Collection holding coach invitations
        """
        if client is None:
            from firebase_admin import firestore_async
            client = firestore_async.client()
        self._client = client
        self._profiles_collection = profiles_collection
        self._invitations_collection = invitations_collection

    def _profile_ref(self, uid: str):
        return self._client.collection(self._profiles_collection).document(uid)

    async def read_profile(self, uid: str) -> Optional[UserProfile]:
        snapshot = await self._profile_ref(uid).get()
        if not snapshot.exists:
            logger.debug(f"No profile document for {uid}")
            return None
        return UserProfile.from_document(snapshot.to_dict() or {})

    async def write_profile(self, uid: str, fields: Dict[str, Any]) -> None:
        data = dict(fields)
        if data.get("email"):
            data["email"] = data["email"].lower()
        data["updatedAt"] = firestore.SERVER_TIMESTAMP
        await self._profile_ref(uid).set(data, merge=True)
        logger.info(f"Profile written for {uid}: {sorted(fields)}")

    async def delete_profile(self, uid: str) -> None:
        await self._profile_ref(uid).delete()
        logger.info(f"Profile deleted for {uid}")

    async def count_pending_invitations(self, email: str) -> int:
        query = (
            self._client.collection(self._invitations_collection)
            .where(filter=FieldFilter("coachEmail", "==", email.lower()))
            .where(filter=FieldFilter("status", "==", "pending"))
        )
        count = 0
        async for _ in query.stream():
            count += 1
        logger.info(f"Found {count} pending invitations for coach signup")
        return count
