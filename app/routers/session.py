"""
FastAPI router for Session endpoints.

Published session state, profile reload and onboarding decisions.
"""

from fastapi import APIRouter, Depends

from app.dependencies import get_session_coordinator, require_signed_in
from app.services import SessionCoordinator
from common.utils import success_response

router = APIRouter(prefix="/session", tags=["session"])


@router.get("")
async def get_session(
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
):
    """Get the current published session state."""
    return success_response(coordinator.state.to_dict())


@router.post("/profile/reload")
async def reload_profile(
    coordinator: SessionCoordinator = Depends(require_signed_in),
):
    """Load the remote profile again, joining any load already running."""
    await coordinator.load_profile()
    return success_response(coordinator.state.to_dict())


@router.post("/onboarding/complete")
async def complete_onboarding(
    coordinator: SessionCoordinator = Depends(require_signed_in),
):
    await coordinator.complete_onboarding()
    return success_response(coordinator.state.to_dict())


@router.post("/onboarding/skip")
async def skip_onboarding(
    coordinator: SessionCoordinator = Depends(require_signed_in),
):
    await coordinator.skip_onboarding()
    return success_response(coordinator.state.to_dict())
