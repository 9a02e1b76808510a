"""
Remote profile loading with bounded exponential backoff.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from app.models import UserProfile
from app.services.profile_store import ProfileStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt budget for profile reads.

    The wait after failed attempt ``n`` (1-based) is ``base_delay * 2 ** (n - 1)``;
    no wait follows the last attempt.
    """

    max_attempts: int = 5
    base_delay: float = 0.5

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (2 ** (attempt - 1))


class ProfileLoader:
    """
    Reads a profile, retrying while it is absent or the read fails.

    Cancellation propagates out of the backoff wait untouched.
    """

    def __init__(
        self,
        store: ProfileStore,
        policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize ProfileLoader.

        Args:
            store: Remote profile store
            policy: Retry policy (defaults to 5 attempts from 0.5s)
            sleep: Awaitable sleep, injectable for tests
        """
        self._store = store
        self._policy = policy or RetryPolicy()
        self._sleep = sleep or asyncio.sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def load(self, uid: str) -> Optional[UserProfile]:
        """
        Load the profile for ``uid``.

        Returns:
            The profile, or None once every attempt found nothing or failed
        """
        attempts = self._policy.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                profile = await self._store.read_profile(uid)
                if profile is not None:
                    if attempt > 1:
                        logger.info(f"Profile for {uid} loaded on attempt {attempt}")
                    return profile
                logger.info(f"Profile for {uid} not found (attempt {attempt}/{attempts})")
            except Exception as e:
                logger.warning(f"Profile read for {uid} failed (attempt {attempt}/{attempts}): {e}")

            if attempt < attempts:
                await self._sleep(self._policy.delay_for(attempt))

        logger.warning(f"Profile for {uid} unavailable after {attempts} attempts")
        return None
