"""Shared test fixtures for PlayerPath session tests."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from unittest.mock import AsyncMock, MagicMock

from common.auth import CredentialProvider, Identity, TokenInfo
from common.utils.exceptions import AuthError, AuthErrorCode

from app.models import UserProfile
from app.services import ProfileLoader, ProfileStore, RetryPolicy, SessionCoordinator


# ─────────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────────


class FakeCredentialProvider(CredentialProvider):
    """In-memory credential provider that notifies listeners like Firebase does."""

    def __init__(self):
        self.accounts: Dict[str, Dict[str, Any]] = {}
        self.calls: List[str] = []
        self.gate: Optional[asyncio.Event] = None
        self.delete_error: Optional[Exception] = None
        self.refresh_error: Optional[Exception] = None
        self._identity: Optional[Identity] = None
        self._listeners: Dict[object, Any] = {}
        self._next_uid = 1

    def add_account(self, email: str, password: str, uid: Optional[str] = None, disabled: bool = False) -> str:
        uid = uid or f"uid-{email.split('@')[0]}"
        self.accounts[email.lower()] = {"uid": uid, "password": password, "disabled": disabled}
        return uid

    def restore(self, uid: str, email: str) -> Identity:
        self._identity = self._make_identity(uid, email)
        return self._identity

    @staticmethod
    def _make_identity(uid: str, email: str, display_name: Optional[str] = None) -> Identity:
        return Identity(
            uid=uid,
            email=email,
            display_name=display_name,
            id_token=f"token-{uid}",
            refresh_token=f"refresh-{uid}",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )

    def _set_identity(self, identity: Optional[Identity]) -> None:
        self._identity = identity
        for listener in list(self._listeners.values()):
            listener(identity)

    @property
    def current_identity(self) -> Optional[Identity]:
        return self._identity

    async def create_account(self, email, password, display_name=None) -> Identity:
        self.calls.append("create_account")
        if self.gate is not None:
            await self.gate.wait()
        if email.lower() in self.accounts:
            raise AuthError(AuthErrorCode.EMAIL_IN_USE, raw_message="EMAIL_EXISTS")
        uid = f"uid-{self._next_uid}"
        self._next_uid += 1
        self.accounts[email.lower()] = {"uid": uid, "password": password, "disabled": False}
        identity = self._make_identity(uid, email, display_name)
        self._set_identity(identity)
        return identity

    async def authenticate(self, email, password) -> Identity:
        self.calls.append("authenticate")
        if self.gate is not None:
            await self.gate.wait()
        account = self.accounts.get(email.lower())
        if account is None or account["password"] != password:
            raise AuthError(AuthErrorCode.INVALID_CREDENTIALS, raw_message="INVALID_LOGIN_CREDENTIALS")
        if account["disabled"]:
            raise AuthError(AuthErrorCode.ACCOUNT_DISABLED, raw_message="USER_DISABLED")
        identity = self._make_identity(account["uid"], email)
        self._set_identity(identity)
        return identity

    async def sign_out(self) -> None:
        self.calls.append("sign_out")
        if self._identity is not None:
            self._set_identity(None)

    async def send_password_reset(self, email) -> None:
        self.calls.append("send_password_reset")
        if email.lower() not in self.accounts:
            raise AuthError(AuthErrorCode.INVALID_CREDENTIALS, raw_message="EMAIL_NOT_FOUND")

    async def refresh_token(self, force=False) -> TokenInfo:
        self.calls.append("refresh_token")
        if self.refresh_error is not None:
            raise self.refresh_error
        if self._identity is None:
            raise AuthError(AuthErrorCode.INVALID_CREDENTIALS)
        if force:
            self._identity.id_token = f"{self._identity.id_token}+"
        return TokenInfo(
            id_token=self._identity.id_token,
            refresh_token=self._identity.refresh_token,
            expires_at=self._identity.expires_at,
        )

    async def delete_current_account(self) -> None:
        self.calls.append("delete_current_account")
        if self.delete_error is not None:
            raise self.delete_error
        identity = self._identity
        self.accounts = {k: v for k, v in self.accounts.items() if v["uid"] != identity.uid}
        self._set_identity(None)

    def add_auth_state_listener(self, listener) -> object:
        handle = object()
        self._listeners[handle] = listener
        return handle

    def remove_auth_state_listener(self, handle) -> None:
        self._listeners.pop(handle, None)


class FakeProfileStore(ProfileStore):
    """
    In-memory profile store.

    ``read_script`` entries are consumed one per read before falling back to
    the stored documents; an Exception entry is raised.
    """

    def __init__(self):
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.reads: List[str] = []
        self.writes: List[tuple] = []
        self.deleted: List[str] = []
        self.read_script: List[Any] = []
        self.always_absent = False
        self.pending_invitations: Dict[str, int] = {}

    async def read_profile(self, uid):
        self.reads.append(uid)
        if self.read_script:
            item = self.read_script.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        if self.always_absent or uid not in self.docs:
            return None
        return UserProfile.from_document(self.docs[uid])

    async def write_profile(self, uid, fields):
        self.writes.append((uid, dict(fields)))
        self.docs.setdefault(uid, {}).update(fields)

    async def delete_profile(self, uid):
        self.deleted.append(uid)
        self.docs.pop(uid, None)

    async def count_pending_invitations(self, email):
        return self.pending_invitations.get(email.lower(), 0)


class InMemoryPreferences:
    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self.values: Dict[str, Any] = dict(values or {})

    async def get(self, key, default=None):
        return self.values.get(key, default)

    async def set(self, key, value):
        self.values[key] = value

    async def remove(self, *keys):
        for key in keys:
            self.values.pop(key, None)


class InMemoryMirror:
    def __init__(self):
        self.records: Dict[str, UserProfile] = {}

    async def get(self, uid):
        return self.records.get(uid)

    async def upsert(self, uid, profile):
        self.records[uid] = profile

    async def delete(self, uid):
        self.records.pop(uid, None)


class RecordingSleep:
    """Records backoff delays; optionally parks forever on the Nth wait."""

    def __init__(self, block_at: Optional[int] = None):
        self.delays: List[float] = []
        self.block_at = block_at
        self.blocked = asyncio.Event()

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.block_at is not None and len(self.delays) == self.block_at:
            self.blocked.set()
            await asyncio.Event().wait()
        await asyncio.sleep(0)


async def wait_for_background(coordinator: SessionCoordinator) -> None:
    """Let every background task the coordinator has scheduled finish."""
    for _ in range(10):
        tasks = list(coordinator._tasks)
        if not tasks:
            return
        await asyncio.gather(*tasks, return_exceptions=True)


# ─────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────


@pytest.fixture
def provider():
    return FakeCredentialProvider()


@pytest.fixture
def profile_store():
    return FakeProfileStore()


@pytest.fixture
def preferences():
    return InMemoryPreferences()


@pytest.fixture
def mirror():
    return InMemoryMirror()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def biometrics():
    store = MagicMock()
    store.disable = AsyncMock()
    return store


@pytest.fixture
def upload_queue():
    queue = MagicMock()
    queue.clear = AsyncMock(return_value=0)
    return queue


@pytest.fixture
def signed_urls():
    cache = MagicMock()
    cache.clear = MagicMock()
    return cache


@pytest.fixture
def make_coordinator(provider, profile_store, preferences, mirror, sleep):
    def factory(**overrides) -> SessionCoordinator:
        loader = ProfileLoader(
            profile_store,
            RetryPolicy(max_attempts=5, base_delay=0.01),
            sleep=overrides.pop("sleep", sleep),
        )
        kwargs = dict(
            provider=provider,
            profile_store=profile_store,
            preferences=preferences,
            mirror=mirror,
            loader=loader,
        )
        kwargs.update(overrides)
        return SessionCoordinator(**kwargs)

    return factory


@pytest.fixture
def mock_collection():
    collection = AsyncMock()
    # Motor's find() returns a cursor synchronously (not a coroutine),
    # so use MagicMock for it. Async methods like find_one, update_one,
    # count_documents etc. stay as AsyncMock.
    collection.find = MagicMock()
    return collection


@pytest.fixture
def mock_db(mock_collection):
    db = MagicMock()
    db.__getitem__ = MagicMock(return_value=mock_collection)
    return db
