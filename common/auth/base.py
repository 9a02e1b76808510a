"""
Abstract credential provider interface.

Defines the contract that credential providers must implement. The session
coordinator only talks to this interface, so the Firebase implementation can
be swapped for a fake in tests or another identity service later.

Example:
    from common.auth import CredentialProvider, FirebaseAuth

    def get_credential_provider(settings) -> CredentialProvider:
        return FirebaseAuth(api_key=settings.FIREBASE_API_KEY)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Callable


@dataclass
class Identity:
    """A signed-in account as seen by the client."""
    uid: str
    email: Optional[str]
    display_name: Optional[str] = None
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    def expires_within(self, seconds: float) -> bool:
        """True if the ID token expires within ``seconds`` (or has no expiry)."""
        if self.expires_at is None:
            return True
        return self.expires_at - datetime.now(timezone.utc) <= timedelta(seconds=seconds)


@dataclass
class TokenInfo:
    """Result of a token refresh."""
    id_token: str
    refresh_token: Optional[str]
    expires_at: datetime


# Listener receives the new identity, or None after sign-out.
AuthStateListener = Callable[[Optional[Identity]], None]


class CredentialProvider(ABC):
    """
    Abstract credential provider.

    All network-facing methods are async and raise ``AuthError`` on failure.
    Auth-state listeners are plain callables invoked synchronously whenever
    the provider's current identity changes, including changes caused by the
    provider's own ``create_account`` / ``authenticate`` / ``sign_out``.
    Listeners must not block; they are expected to schedule any work.
    """

    @property
    @abstractmethod
    def current_identity(self) -> Optional[Identity]:
        """The identity restored or established by this provider, if any."""
        pass

    @abstractmethod
    async def create_account(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> Identity:
        """
        Create a new account and sign it in.

        Raises:
            AuthError: WEAK_PASSWORD, EMAIL_IN_USE, NETWORK_UNAVAILABLE, ...
        """
        pass

    @abstractmethod
    async def authenticate(self, email: str, password: str) -> Identity:
        """
        Sign in with email and password.

        Raises:
            AuthError: INVALID_CREDENTIALS, ACCOUNT_DISABLED, RATE_LIMITED, ...
        """
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        """Forget the current identity. Never raises for an already signed-out provider."""
        pass

    @abstractmethod
    async def send_password_reset(self, email: str) -> None:
        """Send a password reset email."""
        pass

    @abstractmethod
    async def refresh_token(self, force: bool = False) -> TokenInfo:
        """
        Return a valid ID token for the current identity.

        Args:
            force: Refresh even if the cached token is still valid
        """
        pass

    @abstractmethod
    async def delete_current_account(self) -> None:
        """Delete the signed-in account at the provider."""
        pass

    @abstractmethod
    def add_auth_state_listener(self, listener: AuthStateListener) -> object:
        """Register a listener; returns a handle for removal."""
        pass

    @abstractmethod
    def remove_auth_state_listener(self, handle: object) -> None:
        """Unregister a listener previously added."""
        pass
