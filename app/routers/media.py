"""
FastAPI router for Media endpoints.

Signed video and thumbnail URLs for the signed-in user, served from the
session's signed-URL cache.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies import require_signed_in
from app.schemas.auth import BatchVideoURLRequest
from app.services import SessionCoordinator, SignedURLCache, SignedURLError
from common.utils import success_response
from common.utils.exceptions import APIException, AuthError, ServiceUnavailableException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/media", tags=["media"])


def _signed_urls(coordinator: SessionCoordinator) -> SignedURLCache:
    if coordinator.signed_urls is None:
        raise ServiceUnavailableException(
            message="Signed URLs are not configured",
            code="SIGNED_URLS_DISABLED",
        )
    return coordinator.signed_urls


def _to_api_exception(error: SignedURLError) -> APIException:
    return APIException(
        status_code=502,
        message=str(error),
        code=f"SIGNED_URL_{error.code.name}",
    )


@router.get("/video-url")
async def get_video_url(
    folderId: str = Query(..., min_length=1),
    fileName: str = Query(..., min_length=1),
    expirationHours: Optional[int] = Query(None, ge=1, le=168),
    forceRefresh: bool = Query(False),
    coordinator: SessionCoordinator = Depends(require_signed_in),
):
    """Get a signed URL for a video."""
    try:
        url = await _signed_urls(coordinator).get_video_url(
            fileName, folderId, expiration_hours=expirationHours, force_refresh=forceRefresh
        )
    except SignedURLError as e:
        logger.warning(f"Signed video URL failed for {fileName}: {e}")
        raise _to_api_exception(e)
    except AuthError as e:
        logger.warning(f"Signed video URL for {fileName} needs a fresh token: {e!r}")
        raise e.to_api_exception()
    return success_response({"fileName": fileName, "url": url})


@router.get("/thumbnail-url")
async def get_thumbnail_url(
    folderId: str = Query(..., min_length=1),
    videoFileName: str = Query(..., min_length=1),
    expirationHours: Optional[int] = Query(None, ge=1, le=720),
    forceRefresh: bool = Query(False),
    coordinator: SessionCoordinator = Depends(require_signed_in),
):
    """Get a signed URL for a video's thumbnail."""
    try:
        url = await _signed_urls(coordinator).get_thumbnail_url(
            videoFileName, folderId, expiration_hours=expirationHours, force_refresh=forceRefresh
        )
    except SignedURLError as e:
        logger.warning(f"Signed thumbnail URL failed for {videoFileName}: {e}")
        raise _to_api_exception(e)
    except AuthError as e:
        logger.warning(f"Signed thumbnail URL for {videoFileName} needs a fresh token: {e!r}")
        raise e.to_api_exception()
    return success_response({"videoFileName": videoFileName, "url": url})


@router.post("/video-urls")
async def get_batch_video_urls(
    body: BatchVideoURLRequest,
    coordinator: SessionCoordinator = Depends(require_signed_in),
):
    """Get signed URLs for several videos in one folder."""
    try:
        results = await _signed_urls(coordinator).get_batch_video_urls(
            body.fileNames, body.folderId, expiration_hours=body.expirationHours
        )
    except SignedURLError as e:
        logger.warning(f"Batch signed URLs failed for folder {body.folderId}: {e}")
        raise _to_api_exception(e)
    except AuthError as e:
        logger.warning(f"Batch signed URLs for folder {body.folderId} need a fresh token: {e!r}")
        raise e.to_api_exception()
    return success_response({
        "urls": [{"fileName": name, "url": url} for name, url in results],
    })
