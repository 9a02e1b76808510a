"""Unit tests for the MongoDB-backed local stores and secondary collaborators."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from app.models import Role, UserProfile
from app.services import BiometricCredentialStore, FirebaseBlobStorage, LocalMirror, PreferencesStore, UploadQueue


# ─────────────────────────────────────────────────────────────────
# PreferencesStore
# ─────────────────────────────────────────────────────────────────


class TestPreferencesStore:
    @pytest.mark.asyncio
    async def test_get_returns_stored_value(self, mock_db, mock_collection):
        mock_collection.find_one.return_value = {"_id": "userRole", "value": "coach"}
        store = PreferencesStore(mock_db)

        assert await store.get("userRole") == "coach"
        mock_collection.find_one.assert_awaited_once_with({"_id": "userRole"})

    @pytest.mark.asyncio
    async def test_get_missing_returns_default(self, mock_db, mock_collection):
        mock_collection.find_one.return_value = None
        store = PreferencesStore(mock_db)

        assert await store.get("hasCompletedOnboarding", False) is False

    @pytest.mark.asyncio
    async def test_set_upserts(self, mock_db, mock_collection):
        store = PreferencesStore(mock_db)

        await store.set("sessionOwner", "uid-1")

        args, kwargs = mock_collection.update_one.await_args
        assert args[0] == {"_id": "sessionOwner"}
        assert args[1]["$set"]["value"] == "uid-1"
        assert kwargs == {"upsert": True}

    @pytest.mark.asyncio
    async def test_remove_many_keys(self, mock_db, mock_collection):
        store = PreferencesStore(mock_db)

        await store.remove("userRole", "sessionOwner")

        mock_collection.delete_many.assert_awaited_once_with({"_id": {"$in": ["userRole", "sessionOwner"]}})

    @pytest.mark.asyncio
    async def test_remove_nothing(self, mock_db, mock_collection):
        store = PreferencesStore(mock_db)

        await store.remove()

        mock_collection.delete_many.assert_not_awaited()


# ─────────────────────────────────────────────────────────────────
# LocalMirror
# ─────────────────────────────────────────────────────────────────


class TestLocalMirror:
    @pytest.mark.asyncio
    async def test_get_parses_record(self, mock_db, mock_collection):
        mock_collection.find_one.return_value = {
            "_id": "uid-1",
            "email": "coach@x.com",
            "role": "coach",
            "displayName": "Coach Carter",
            "isPremium": True,
        }
        mirror = LocalMirror(mock_db)

        profile = await mirror.get("uid-1")

        assert profile.role is Role.COACH
        assert profile.display_name == "Coach Carter"
        assert profile.is_premium is True

    @pytest.mark.asyncio
    async def test_get_missing(self, mock_db, mock_collection):
        mock_collection.find_one.return_value = None
        mirror = LocalMirror(mock_db)

        assert await mirror.get("uid-1") is None

    @pytest.mark.asyncio
    async def test_upsert_without_created_at_sets_on_insert(self, mock_db, mock_collection):
        mirror = LocalMirror(mock_db)

        await mirror.upsert("uid-1", UserProfile(email="a@x.com", role=Role.ATHLETE))

        args, kwargs = mock_collection.update_one.await_args
        assert args[0] == {"_id": "uid-1"}
        assert args[1]["$set"]["role"] == "athlete"
        assert args[1]["$set"]["uid"] == "uid-1"
        assert "createdAt" in args[1]["$setOnInsert"]
        assert kwargs == {"upsert": True}

    @pytest.mark.asyncio
    async def test_upsert_keeps_created_at(self, mock_db, mock_collection):
        created = datetime(2025, 1, 1, tzinfo=timezone.utc)
        mirror = LocalMirror(mock_db)

        await mirror.upsert("uid-1", UserProfile(role=Role.COACH, created_at=created))

        update = mock_collection.update_one.await_args.args[1]
        assert update["$set"]["createdAt"] == created
        assert "$setOnInsert" not in update

    @pytest.mark.asyncio
    async def test_delete(self, mock_db, mock_collection):
        mock_collection.delete_one.return_value = MagicMock(deleted_count=1)
        mirror = LocalMirror(mock_db)

        await mirror.delete("uid-1")

        mock_collection.delete_one.assert_awaited_once_with({"_id": "uid-1"})


# ─────────────────────────────────────────────────────────────────
# UploadQueue
# ─────────────────────────────────────────────────────────────────


class TestUploadQueue:
    @pytest.mark.asyncio
    async def test_clear_returns_count(self, mock_db, mock_collection):
        mock_collection.delete_many.return_value = MagicMock(deleted_count=3)
        queue = UploadQueue(mock_db)

        assert await queue.clear() == 3
        mock_collection.delete_many.assert_awaited_once_with({})


# ─────────────────────────────────────────────────────────────────
# Collaborators
# ─────────────────────────────────────────────────────────────────


class TestBiometricCredentialStore:
    @pytest.mark.asyncio
    async def test_disable_clears_flags(self, preferences):
        preferences.values.update({"biometric_enabled": True, "lastAuthUserID": "uid-1"})
        store = BiometricCredentialStore(preferences)

        await store.disable()

        assert preferences.values["biometric_enabled"] is False
        assert "lastAuthUserID" not in preferences.values


class TestFirebaseBlobStorage:
    @pytest.mark.asyncio
    async def test_deletes_user_prefix_and_skips_failures(self):
        good = MagicMock()
        good.name = "athlete_videos/uid-1/a.mov"
        bad = MagicMock()
        bad.name = "athlete_videos/uid-1/b.mov"
        bad.delete.side_effect = RuntimeError("503")
        bucket = MagicMock()
        bucket.list_blobs.return_value = [good, bad]
        storage = FirebaseBlobStorage(bucket=bucket)

        deleted = await storage.delete_user_blobs("uid-1")

        assert deleted == 1
        bucket.list_blobs.assert_called_once_with(prefix="athlete_videos/uid-1/")
        good.delete.assert_called_once()
