"""
Pipelines for account lifecycle operations.

Handles the best-effort deletion cascade for the signed-in account.
"""

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

from common.auth import CredentialProvider
from common.utils.exceptions import AuthError

if TYPE_CHECKING:
    from app.services.collaborators import BiometricCredentialStore, FirebaseBlobStorage
    from app.services.local_store import LocalMirror
    from app.services.profile_store import ProfileStore

logger = logging.getLogger(__name__)


async def account_deletion_pipeline(
    uid: str,
    provider: CredentialProvider,
    profile_store: "ProfileStore",
    mirror: "LocalMirror",
    biometrics: Optional["BiometricCredentialStore"] = None,
    blob_storage: Optional["FirebaseBlobStorage"] = None,
) -> Dict[str, Any]:
    """
    Delete everything owned by an account, then the account itself.

    Steps run in order: uploaded videos, remote profile, local mirror record,
    biometric state, credential. A failing step is logged and recorded; the
    remaining steps still run.

    Args:
        uid: Account being deleted (must be the provider's current identity)
        provider: Credential provider holding the signed-in account
        profile_store: Remote profile store
        mirror: Local mirror of user records
        biometrics: Biometric credential store, if configured
        blob_storage: Remote blob storage, if configured

    Returns:
        Dict with per-step outcomes and an ``errors`` list. ``credentialDeleted``
        is the overall success flag.
    """
    logger.info(f"Starting account deletion for {uid}")

    results: Dict[str, Any] = {
        "uid": uid,
        "startTime": datetime.now(timezone.utc).isoformat(),
        "blobsDeleted": 0,
        "profileDeleted": False,
        "mirrorDeleted": False,
        "biometricsCleared": False,
        "credentialDeleted": False,
        "credentialError": None,
        "errors": [],
    }

    def record_failure(step: str, error: Exception) -> None:
        error_msg = f"{step} failed for {uid}: {error}"
        logger.error(error_msg)
        results["errors"].append(error_msg)

    if blob_storage is not None:
        try:
            results["blobsDeleted"] = await blob_storage.delete_user_blobs(uid)
        except Exception as e:
            record_failure("Blob deletion", e)

    try:
        await profile_store.delete_profile(uid)
        results["profileDeleted"] = True
    except Exception as e:
        record_failure("Profile deletion", e)

    try:
        await mirror.delete(uid)
        results["mirrorDeleted"] = True
    except Exception as e:
        record_failure("Local mirror deletion", e)

    if biometrics is not None:
        try:
            await biometrics.disable()
            results["biometricsCleared"] = True
        except Exception as e:
            record_failure("Biometric reset", e)

    try:
        await provider.delete_current_account()
        results["credentialDeleted"] = True
    except Exception as e:
        results["credentialError"] = AuthError.from_exception(e)
        record_failure("Credential deletion", e)

    results["endTime"] = datetime.now(timezone.utc).isoformat()
    logger.info(
        f"Account deletion for {uid} finished. "
        f"Credential deleted: {results['credentialDeleted']}, "
        f"Errors: {len(results['errors'])}"
    )
    return results
