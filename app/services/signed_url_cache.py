"""
Session-scoped cache of signed video and thumbnail URLs.

URLs are generated by callable functions and reused until they come within
the refresh margin of their expiry. The cache is cleared on sign-out.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from app.services.cloud_functions import CloudFunctionError, CloudFunctionsClient

logger = logging.getLogger(__name__)

VIDEO_URL_FUNCTION = "getSignedVideoURL"
THUMBNAIL_URL_FUNCTION = "getSignedThumbnailURL"
BATCH_VIDEO_URL_FUNCTION = "getBatchSignedVideoURLs"

# Server rejects larger batches
MAX_BATCH_SIZE = 50


class SignedURLErrorCode(str, Enum):
    INVALID_RESPONSE = "invalid_response"
    INVALID_EXPIRATION_DATE = "invalid_expiration_date"
    FUNCTION_CALL_FAILED = "function_call_failed"


_SIGNED_URL_MESSAGES = {
    SignedURLErrorCode.INVALID_RESPONSE: "Invalid response from Cloud Function",
    SignedURLErrorCode.INVALID_EXPIRATION_DATE: "Invalid expiration date format",
    SignedURLErrorCode.FUNCTION_CALL_FAILED: "Failed to generate secure URL",
}


class SignedURLError(Exception):
    def __init__(self, code: SignedURLErrorCode, cause: Optional[Exception] = None):
        self.code = code
        self.cause = cause
        message = _SIGNED_URL_MESSAGES[code]
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


@dataclass
class CachedURL:
    url: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def expires_within(self, now: datetime, seconds: float) -> bool:
        return self.expires_at - now <= timedelta(seconds=seconds)


def parse_expiration(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not isinstance(value, str):
        raise SignedURLError(SignedURLErrorCode.INVALID_EXPIRATION_DATE)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise SignedURLError(SignedURLErrorCode.INVALID_EXPIRATION_DATE)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SignedURLCache:
    """
    In-memory TTL cache of signed URLs keyed by folder and file name.
    """

    def __init__(
        self,
        functions: CloudFunctionsClient,
        refresh_margin_seconds: float = 300,
        video_expiration_hours: int = 24,
        thumbnail_expiration_hours: int = 168,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize SignedURLCache.

        Args:
            functions: Callable-functions client used to generate URLs
            refresh_margin_seconds: Cached URLs expiring sooner than this are regenerated
            video_expiration_hours: Default lifetime requested for video URLs
            thumbnail_expiration_hours: Default lifetime requested for thumbnail URLs
            clock: Returns the current UTC time (injectable for tests)
        """
        self._functions = functions
        self._refresh_margin = refresh_margin_seconds
        self._video_hours = video_expiration_hours
        self._thumbnail_hours = thumbnail_expiration_hours
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._cache: Dict[str, CachedURL] = {}

    def __len__(self) -> int:
        return len(self._cache)

    @staticmethod
    def video_key(folder_id: str, file_name: str) -> str:
        return f"video_{folder_id}_{file_name}"

    @staticmethod
    def thumbnail_key(folder_id: str, video_file_name: str) -> str:
        return f"thumbnail_{folder_id}_{video_file_name}"

    def _cached(self, key: str) -> Optional[str]:
        entry = self._cache.get(key)
        if entry and not entry.expires_within(self._clock(), self._refresh_margin):
            logger.debug(f"Using cached URL for {key}")
            return entry.url
        return None

    async def _call(self, name: str, data: Dict[str, Any]) -> Any:
        try:
            return await self._functions.call(name, data)
        except CloudFunctionError as e:
            raise SignedURLError(SignedURLErrorCode.FUNCTION_CALL_FAILED, e)

    def _store(self, key: str, response: Any) -> str:
        if not isinstance(response, dict):
            raise SignedURLError(SignedURLErrorCode.INVALID_RESPONSE)
        url = response.get("signedURL")
        if not isinstance(url, str) or "expiresAt" not in response:
            raise SignedURLError(SignedURLErrorCode.INVALID_RESPONSE)
        self._cache[key] = CachedURL(url=url, expires_at=parse_expiration(response["expiresAt"]))
        return url

    async def get_video_url(
        self,
        file_name: str,
        folder_id: str,
        expiration_hours: Optional[int] = None,
        force_refresh: bool = False,
    ) -> str:
        """
        Get a signed URL for a video, reusing a cached one when still fresh.

        Raises:
            SignedURLError: If the function fails or returns an unusable response
        """
        key = self.video_key(folder_id, file_name)
        if not force_refresh:
            cached = self._cached(key)
            if cached:
                return cached

        response = await self._call(
            VIDEO_URL_FUNCTION,
            {
                "folderID": folder_id,
                "fileName": file_name,
                "expirationHours": expiration_hours or self._video_hours,
            },
        )
        url = self._store(key, response)
        logger.info(f"Generated secure video URL for {file_name}")
        return url

    async def get_thumbnail_url(
        self,
        video_file_name: str,
        folder_id: str,
        expiration_hours: Optional[int] = None,
        force_refresh: bool = False,
    ) -> str:
        """Get a signed URL for a video's thumbnail."""
        key = self.thumbnail_key(folder_id, video_file_name)
        if not force_refresh:
            cached = self._cached(key)
            if cached:
                return cached

        response = await self._call(
            THUMBNAIL_URL_FUNCTION,
            {
                "folderID": folder_id,
                "videoFileName": video_file_name,
                "expirationHours": expiration_hours or self._thumbnail_hours,
            },
        )
        url = self._store(key, response)
        logger.info(f"Generated secure thumbnail URL for {video_file_name}")
        return url

    async def get_batch_video_urls(
        self,
        file_names: List[str],
        folder_id: str,
        expiration_hours: Optional[int] = None,
    ) -> List[Tuple[str, str]]:
        """
        Generate signed URLs for several videos in one folder.

        Entries the function reports an error for are skipped.

        Returns:
            List of (file_name, url) pairs for the URLs that were generated
        """
        results: List[Tuple[str, str]] = []

        for start in range(0, len(file_names), MAX_BATCH_SIZE):
            chunk = file_names[start:start + MAX_BATCH_SIZE]
            response = await self._call(
                BATCH_VIDEO_URL_FUNCTION,
                {
                    "folderID": folder_id,
                    "fileNames": chunk,
                    "expirationHours": expiration_hours or self._video_hours,
                },
            )
            if not isinstance(response, dict) or not isinstance(response.get("urls"), list):
                raise SignedURLError(SignedURLErrorCode.INVALID_RESPONSE)

            for entry in response["urls"]:
                file_name = entry.get("fileName") if isinstance(entry, dict) else None
                if not file_name:
                    continue
                if entry.get("error"):
                    logger.warning(f"Signed URL error for {file_name}: {entry['error']}")
                    continue
                try:
                    url = self._store(self.video_key(folder_id, file_name), entry)
                except SignedURLError as e:
                    logger.warning(f"Skipping signed URL for {file_name}: {e}")
                    continue
                results.append((file_name, url))

        logger.info(f"Generated {len(results)} secure video URLs")
        return results

    def clear(self) -> None:
        self._cache.clear()
        logger.info("Cleared secure URL cache")

    def purge_expired(self) -> int:
        """Drop expired entries. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._cache.items() if entry.is_expired(now)]
        for key in expired:
            del self._cache[key]
        if expired:
            logger.info(f"Removed {len(expired)} expired URLs from cache")
        return len(expired)
