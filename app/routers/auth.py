"""
FastAPI router for Auth endpoints.

Sign-up, sign-in, sign-out, password reset, token refresh and account
deletion, all delegated to the session coordinator.
"""

import logging

from fastapi import APIRouter, Depends

from app.dependencies import get_session_coordinator, require_signed_in
from app.schemas.auth import (
    PasswordResetRequest,
    SignInRequest,
    SignUpRequest,
    TokenRefreshRequest,
)
from app.services import SessionCoordinator
from common.utils import success_response
from common.utils.exceptions import AuthError, InternalServerException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup")
async def sign_up(
    body: SignUpRequest,
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
):
    """
    Create an athlete account.

    The session is signed in on success and onboarding is pending.
    """
    try:
        await coordinator.sign_up(body.email, body.password, body.displayName)
    except AuthError as e:
        raise e.to_api_exception()
    return success_response(coordinator.state.to_dict())


@router.post("/signup/coach")
async def sign_up_as_coach(
    body: SignUpRequest,
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
):
    """
    Create a coach account.

    The response includes the number of pending invitations for the email.
    """
    try:
        await coordinator.sign_up_as_coach(body.email, body.password, body.displayName)
    except AuthError as e:
        raise e.to_api_exception()
    return success_response(coordinator.state.to_dict())


@router.post("/signin")
async def sign_in(
    body: SignInRequest,
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
):
    """Sign in with email and password."""
    try:
        await coordinator.sign_in(body.email, body.password)
    except AuthError as e:
        raise e.to_api_exception()
    return success_response(coordinator.state.to_dict())


@router.post("/signout")
async def sign_out(
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
):
    """Sign out. Succeeds when already signed out."""
    await coordinator.sign_out()
    return success_response(coordinator.state.to_dict(), message="Signed out")


@router.post("/password-reset")
async def password_reset(
    body: PasswordResetRequest,
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
):
    """Send a password reset email."""
    try:
        await coordinator.reset_password(body.email)
    except AuthError as e:
        raise e.to_api_exception()
    return success_response(message="Password reset email sent")


@router.post("/token/refresh")
async def refresh_token(
    body: TokenRefreshRequest,
    coordinator: SessionCoordinator = Depends(require_signed_in),
):
    """Return a valid ID token, refreshing it if needed."""
    try:
        token = await coordinator.refresh_token(force=body.force)
    except AuthError as e:
        raise e.to_api_exception()
    return success_response({
        "idToken": token.id_token,
        "expiresAt": token.expires_at.isoformat() if token.expires_at else None,
    })


@router.delete("/account")
async def delete_account(
    coordinator: SessionCoordinator = Depends(require_signed_in),
):
    """
    Delete the signed-in account and its data.

    Remote videos, the profile and local records are removed first; the
    account is only reported deleted if the credential itself was removed.
    """
    deleted = await coordinator.delete_account()
    report = coordinator.last_deletion_report or {}
    if not deleted:
        error = report.get("credentialError")
        if isinstance(error, AuthError):
            raise error.to_api_exception()
        raise InternalServerException("Account deletion failed", code="ACCOUNT_DELETION_FAILED")

    return success_response(
        {
            "deleted": True,
            "blobsDeleted": report.get("blobsDeleted", 0),
            "errors": report.get("errors", []),
        },
        message="Account deleted",
    )
