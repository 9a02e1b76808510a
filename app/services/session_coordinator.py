"""
Session coordinator for PlayerPath.

Owns the single view of who is signed in, which role they have and whether
onboarding is still needed. Reconciles three sources:

- credential provider pushes (sign-in/sign-out notifications)
- remote profile reads and writes
- locally persisted flags and the local user mirror

Every state mutation happens while holding one FIFO ``asyncio.Lock``.
Explicit operations hold it across their credential round trip, and
provider pushes are routed through the same lock, so a push is applied
after the operation that caused it has committed.

Profile loads run as background tasks tagged with the identity generation
they started under. Any identity change bumps the generation; a load that
finishes under an older generation commits nothing.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from common.auth import CredentialProvider, Identity, TokenInfo
from common.utils.exceptions import AuthError, AuthErrorCode
from common.utils.password import validate_password

from app.models import DEFAULT_ROLE, Role, SessionPhase, SessionState, UserProfile
from app.pipelines.account import account_deletion_pipeline
from app.services.collaborators import BiometricCredentialStore, FirebaseBlobStorage
from app.services.local_store import (
    LocalMirror,
    ONBOARDING_COMPLETE_KEY,
    PreferencesStore,
    SESSION_OWNER_KEY,
    USER_ROLE_KEY,
    UploadQueue,
)
from app.services.profile_loader import ProfileLoader
from app.services.profile_store import ProfileStore
from app.services.signed_url_cache import SignedURLCache

logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionState], None]
SignOutHook = Callable[[], Awaitable[None]]

PROFILE_UNAVAILABLE_MESSAGE = "We couldn't load your profile. Some features may be unavailable."
NOT_SIGNED_IN_MESSAGE = "Please sign in to continue."


class SessionCoordinator:
    """
    Authenticated-session coordinator.

    One instance per process, created by the application root and passed to
    whatever needs it.
    """

    def __init__(
        self,
        provider: CredentialProvider,
        profile_store: ProfileStore,
        preferences: PreferencesStore,
        mirror: LocalMirror,
        loader: Optional[ProfileLoader] = None,
        biometrics: Optional[BiometricCredentialStore] = None,
        upload_queue: Optional[UploadQueue] = None,
        signed_urls: Optional[SignedURLCache] = None,
        blob_storage: Optional[FirebaseBlobStorage] = None,
        sign_out_hooks: Optional[List[SignOutHook]] = None,
        password_validator: Callable[[str], Tuple[bool, List[str]]] = validate_password,
    ):
        """
        Initialize SessionCoordinator.

        Args:
            provider: Credential provider
            profile_store: Remote profile store
            preferences: Local key-value preferences
            mirror: Local mirror of user records
            loader: Profile loader (defaults to one over ``profile_store``)
            biometrics: Biometric credential store, cleared on sign-out
            upload_queue: Pending upload queue, cleared on sign-out
            signed_urls: Signed-URL cache, cleared on sign-out
            blob_storage: Remote blob storage, emptied on account deletion
            sign_out_hooks: Extra async callables run on sign-out
            password_validator: Local password strength check
        """
        self._provider = provider
        self._profile_store = profile_store
        self._preferences = preferences
        self._mirror = mirror
        self._loader = loader or ProfileLoader(profile_store)
        self._biometrics = biometrics
        self._upload_queue = upload_queue
        self._signed_urls = signed_urls
        self._blob_storage = blob_storage
        self._sign_out_hooks: List[SignOutHook] = list(sign_out_hooks or [])
        self._validate_password = password_validator

        self._lock = asyncio.Lock()
        self._listener_handle: Optional[object] = None
        self._subscribers: List[SessionListener] = []
        self._tasks: Set[asyncio.Task] = set()
        self._profile_task: Optional[asyncio.Task] = None
        self._profile_task_generation = -1

        # Session state
        self._identity: Optional[Identity] = None
        self._generation = 0
        self._operation: Optional[SessionPhase] = None
        self._role: Role = DEFAULT_ROLE
        self._is_new_signup = False
        self._onboarding_complete = False
        self._profile: Optional[UserProfile] = None
        self._is_loading = False
        self._error_message: Optional[str] = None
        self._profile_error: Optional[str] = None
        self._pending_invitation_count = 0
        self._last_deletion_report: Optional[Dict[str, Any]] = None

    # ─────────────────────────────────────────────────────────────
    # Published state
    # ─────────────────────────────────────────────────────────────

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def is_signed_in(self) -> bool:
        return self._identity is not None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def last_deletion_report(self) -> Optional[Dict[str, Any]]:
        return self._last_deletion_report

    @property
    def signed_urls(self) -> Optional[SignedURLCache]:
        return self._signed_urls

    @property
    def phase(self) -> SessionPhase:
        if self._operation is not None:
            return self._operation
        if self._identity is None:
            return SessionPhase.SIGNED_OUT
        if self._is_new_signup:
            return SessionPhase.SIGNED_IN_NEW
        return SessionPhase.SIGNED_IN_EXISTING

    @property
    def state(self) -> SessionState:
        """Snapshot of the published state."""
        identity = self._identity
        return SessionState(
            phase=self.phase,
            uid=identity.uid if identity else None,
            email=identity.email if identity else None,
            display_name=identity.display_name if identity else None,
            role=self._role,
            is_new_signup=self._is_new_signup,
            onboarding_complete=self._onboarding_complete,
            profile=self._profile,
            is_loading=self._is_loading,
            error_message=self._error_message,
            profile_error=self._profile_error,
            pending_invitation_count=self._pending_invitation_count,
        )

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register a UI observer. It receives a snapshot after every committed
        transition.

        Returns:
            Callable that removes the observer
        """
        self._subscribers.append(listener)

        def unsubscribe() -> None:
            if listener in self._subscribers:
                self._subscribers.remove(listener)

        return unsubscribe

    def add_sign_out_hook(self, hook: SignOutHook) -> None:
        self._sign_out_hooks.append(hook)

    def _publish(self) -> None:
        snapshot = self.state
        for listener in list(self._subscribers):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Session listener failed: {e}")

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """
        Adopt any credential the provider restored and begin listening for
        auth-state changes.
        """
        async with self._lock:
            identity = self._provider.current_identity
            if identity is not None:
                self._adopt_identity(identity)
                await self._restore_session(identity)
                logger.info(f"Session restored for {identity.uid}")
            self._listener_handle = self._provider.add_auth_state_listener(self._on_auth_state_changed)
            self._publish()

        if identity is not None:
            self._start_profile_load(signup=False)

    async def close(self) -> None:
        """Stop listening and cancel background work."""
        if self._listener_handle is not None:
            self._provider.remove_auth_state_listener(self._listener_handle)
            self._listener_handle = None

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Session coordinator closed")

    def _track(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _on_auth_state_changed(self, identity: Optional[Identity]) -> None:
        # Called synchronously by the provider, possibly while an explicit
        # operation holds the lock. The pushed identity may be stale by then;
        # reconcile against the provider's current state instead.
        self._track(self._sync_with_provider())

    async def _sync_with_provider(self) -> None:
        start_load = False
        async with self._lock:
            identity = self._provider.current_identity
            current_uid = self._identity.uid if self._identity else None
            new_uid = identity.uid if identity else None

            if new_uid == current_uid:
                if identity is not None:
                    self._identity = identity
                return

            if identity is None:
                logger.info(f"Provider reported sign-out for {current_uid}")
                await self._teardown()
                return

            logger.info(f"Provider reported identity change to {new_uid}")
            self._cancel_profile_task()
            self._adopt_identity(identity)
            self._is_new_signup = False
            await self._restore_session(identity)
            self._publish()
            start_load = True

        if start_load:
            self._start_profile_load(signup=False)

    # ─────────────────────────────────────────────────────────────
    # Sign up / sign in
    # ─────────────────────────────────────────────────────────────

    async def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> Identity:
        """Create an athlete account and sign it in."""
        return await self._sign_up(email, password, display_name, Role.ATHLETE)

    async def sign_up_as_coach(self, email: str, password: str, display_name: Optional[str] = None) -> Identity:
        """Create a coach account and sign it in."""
        return await self._sign_up(email, password, display_name, Role.COACH)

    async def _sign_up(
        self,
        email: str,
        password: str,
        display_name: Optional[str],
        role: Role,
    ) -> Identity:
        committed = False
        async with self._lock:
            previous_role = self._role
            self._role = role
            self._is_new_signup = True
            self._operation = SessionPhase.SIGNING_UP
            self._is_loading = True
            self._error_message = None
            self._publish()

            try:
                valid, problems = self._validate_password(password)
                if not valid:
                    raise AuthError(AuthErrorCode.WEAK_PASSWORD, raw_message="; ".join(problems))

                identity = await self._provider.create_account(email, password, display_name)

                self._cancel_profile_task()
                self._adopt_identity(identity)
                self._role = role
                self._is_new_signup = True
                self._onboarding_complete = False
                committed = True
                logger.info(f"Account created for {identity.uid} as {role.value}")

                profile = UserProfile(
                    email=email.lower(),
                    role=role,
                    display_name=display_name or identity.display_name,
                    is_premium=False,
                    created_at=datetime.now(timezone.utc),
                )
                self._profile = profile
                await self._save_persisted_flags()
                await self._write_profile(identity.uid, profile)
                # Reassert in case anything touched the role while writing
                self._role = role
                await self._upsert_mirror(identity.uid, profile)

                if role is Role.COACH:
                    await self._cache_pending_invitations(email)

            except asyncio.CancelledError:
                if committed:
                    self._start_profile_load(signup=True)
                else:
                    self._revert_signup(previous_role)
                raise
            except Exception as e:
                if not committed:
                    self._revert_signup(previous_role)
                error = self._record_error("Sign up", e)
                if error is e:
                    raise
                raise error from e
            finally:
                self._operation = None
                self._is_loading = False
                self._publish()

        self._start_profile_load(signup=True)
        return identity

    def _revert_signup(self, previous_role: Role) -> None:
        self._is_new_signup = False
        self._role = previous_role if self._identity is not None else DEFAULT_ROLE

    async def _cache_pending_invitations(self, email: str) -> None:
        try:
            self._pending_invitation_count = await self._profile_store.count_pending_invitations(email)
        except Exception as e:
            logger.warning(f"Failed to check pending invitations: {e}")

    async def sign_in(self, email: str, password: str) -> Identity:
        """
        Sign in with email and password, then load the remote profile.

        The remote role replaces any role cached for this identity.
        """
        async with self._lock:
            self._is_new_signup = False
            self._operation = SessionPhase.SIGNING_IN
            self._is_loading = True
            self._error_message = None
            self._publish()

            try:
                identity = await self._provider.authenticate(email, password)
                self._cancel_profile_task()
                self._adopt_identity(identity)
                self._is_new_signup = False
                await self._restore_session(identity)
                logger.info(f"Signed in {identity.uid}")
            except Exception as e:
                error = self._record_error("Sign in", e)
                if error is e:
                    raise
                raise error from e
            finally:
                self._operation = None
                self._is_loading = False
                self._publish()

        await self.load_profile()
        return identity

    # ─────────────────────────────────────────────────────────────
    # Profile loading
    # ─────────────────────────────────────────────────────────────

    async def load_profile(self) -> Optional[UserProfile]:
        """
        Load the remote profile for the current identity.

        Joins a load already in flight for this identity. An abandoned load
        (sign-out or identity change) returns None without raising.
        """
        task = self._start_profile_load(signup=self._is_new_signup)
        if task is None:
            return None
        await asyncio.wait([task])
        if task.cancelled():
            return None
        return task.result()

    def _start_profile_load(self, signup: bool) -> Optional[asyncio.Task]:
        identity = self._identity
        if identity is None:
            return None

        task = self._profile_task
        if task is not None and not task.done() and self._profile_task_generation == self._generation:
            return task

        self._profile_task_generation = self._generation
        self._profile_task = self._track(
            self._run_profile_load(self._generation, identity.uid, signup)
        )
        return self._profile_task

    def _cancel_profile_task(self) -> None:
        task = self._profile_task
        if task is not None and not task.done():
            logger.debug("Cancelling in-flight profile load")
            task.cancel()
        self._profile_task = None

    async def _run_profile_load(self, generation: int, uid: str, signup: bool) -> Optional[UserProfile]:
        profile = await self._loader.load(uid)

        async with self._lock:
            if generation != self._generation:
                logger.info(f"Discarding stale profile load for {uid}")
                return None

            try:
                if profile is not None:
                    await self._commit_loaded_profile(uid, profile, signup)
                elif signup:
                    await self._commit_synthesized_profile(uid)
                else:
                    self._profile = None
                    self._profile_error = PROFILE_UNAVAILABLE_MESSAGE
            except Exception as e:
                logger.error(f"Failed to commit profile for {uid}: {e}")
                self._profile_error = PROFILE_UNAVAILABLE_MESSAGE

            self._publish()
            return self._profile

    async def _commit_loaded_profile(self, uid: str, profile: UserProfile, signup: bool) -> None:
        write_back = False
        if signup and profile.role != self._role:
            # Remote not caught up with the signup write yet; local role wins
            logger.info(
                f"Remote role {profile.role.value} differs from signup role "
                f"{self._role.value} for {uid}; keeping signup role"
            )
            profile = profile.model_copy(update={"role": self._role})
            write_back = True

        self._profile = profile
        self._role = profile.role
        self._profile_error = None

        await self._save_persisted_flags()
        await self._upsert_mirror(uid, profile)
        if write_back:
            await self._write_profile_fields(uid, {"role": profile.role.value})

    async def _commit_synthesized_profile(self, uid: str) -> None:
        identity = self._identity
        profile = UserProfile(
            email=identity.email.lower() if identity.email else None,
            role=self._role,
            display_name=identity.display_name,
            is_premium=False,
            created_at=datetime.now(timezone.utc),
        )
        logger.warning(f"Creating profile for {uid} from local state after retries were exhausted")
        await self._write_profile(uid, profile)
        self._profile = profile
        self._profile_error = None
        await self._save_persisted_flags()
        await self._upsert_mirror(uid, profile)

    # ─────────────────────────────────────────────────────────────
    # Onboarding / account actions
    # ─────────────────────────────────────────────────────────────

    async def complete_onboarding(self) -> None:
        await self._finish_onboarding("completed")

    async def skip_onboarding(self) -> None:
        await self._finish_onboarding("skipped")

    async def _finish_onboarding(self, outcome: str) -> None:
        async with self._lock:
            if self._identity is None:
                logger.warning(f"Onboarding {outcome} while signed out; ignoring")
                return
            self._onboarding_complete = True
            self._is_new_signup = False
            await self._save_persisted_flags()
            logger.info(f"Onboarding {outcome} for {self._identity.uid}")
            self._publish()

    async def reset_password(self, email: str) -> None:
        """Send a password reset email."""
        async with self._lock:
            self._is_loading = True
            self._error_message = None
            self._publish()
            try:
                await self._provider.send_password_reset(email)
            except Exception as e:
                error = self._record_error("Password reset", e)
                if error is e:
                    raise
                raise error from e
            finally:
                self._is_loading = False
                self._publish()

    async def refresh_token(self, force: bool = False) -> TokenInfo:
        """
        Return a valid ID token for the current identity.

        Raises:
            AuthError: INVALID_CREDENTIALS when signed out, or the provider's error
        """
        async with self._lock:
            if self._identity is None:
                raise AuthError(AuthErrorCode.INVALID_CREDENTIALS, message=NOT_SIGNED_IN_MESSAGE)
            try:
                token = await self._provider.refresh_token(force=force)
            except Exception as e:
                error = AuthError.from_exception(e)
                logger.warning(f"Token refresh failed: {error!r}")
                if error is e:
                    raise
                raise error from e

            restored = self._provider.current_identity
            if restored is not None and restored.uid == self._identity.uid:
                self._identity = restored
            else:
                self._identity.id_token = token.id_token
                self._identity.refresh_token = token.refresh_token
                self._identity.expires_at = token.expires_at
            return token

    async def id_token(self) -> Optional[str]:
        """Current ID token, refreshed if close to expiry. None when signed out."""
        if self._identity is None:
            return None
        token = await self.refresh_token()
        return token.id_token

    # ─────────────────────────────────────────────────────────────
    # Sign out / delete
    # ─────────────────────────────────────────────────────────────

    async def sign_out(self) -> None:
        """
        Sign out and clear all session-scoped data.

        Safe to call when already signed out; nothing changes.
        """
        self._cancel_profile_task()
        async with self._lock:
            if self._identity is None:
                logger.debug("Sign out requested while already signed out")
                return

            uid = self._identity.uid
            await self._teardown()

            try:
                await self._provider.sign_out()
            except Exception as e:
                logger.warning(f"Provider sign-out failed for {uid}: {e}")
            logger.info(f"Signed out {uid}")

    async def delete_account(self) -> bool:
        """
        Delete the signed-in account and everything it owns.

        Returns:
            True if the credential itself was deleted. The session is then
            torn down as on sign-out.
        """
        self._cancel_profile_task()
        async with self._lock:
            if self._identity is None:
                logger.warning("Account deletion requested while signed out")
                return False

            uid = self._identity.uid
            self._is_loading = True
            self._error_message = None
            self._publish()
            try:
                report = await account_deletion_pipeline(
                    uid=uid,
                    provider=self._provider,
                    profile_store=self._profile_store,
                    mirror=self._mirror,
                    biometrics=self._biometrics,
                    blob_storage=self._blob_storage,
                )
            finally:
                self._is_loading = False

            self._last_deletion_report = report
            if not report["credentialDeleted"]:
                error = report["credentialError"] or AuthError(AuthErrorCode.UNKNOWN)
                self._error_message = error.message
                self._publish()
                return False

            await self._teardown()
            logger.info(f"Account {uid} deleted")
            return True

    async def _teardown(self) -> None:
        """
        Clear the session. Caller holds the lock.

        In-memory state is cleared and published before any await.
        """
        self._clear_session_fields()
        self._cancel_profile_task()
        self._operation = SessionPhase.SIGNING_OUT
        self._publish()

        try:
            await self._clear_persisted_flags()
            await self._clear_session_caches()
        finally:
            self._operation = None
            self._publish()

    def _clear_session_fields(self) -> None:
        self._identity = None
        self._generation += 1
        self._role = DEFAULT_ROLE
        self._is_new_signup = False
        self._onboarding_complete = False
        self._profile = None
        self._profile_error = None
        self._error_message = None
        self._pending_invitation_count = 0

    async def _clear_session_caches(self) -> None:
        if self._signed_urls is not None:
            self._signed_urls.clear()

        if self._biometrics is not None:
            try:
                await self._biometrics.disable()
            except Exception as e:
                logger.warning(f"Failed to clear biometric credential: {e}")

        if self._upload_queue is not None:
            try:
                await self._upload_queue.clear()
            except Exception as e:
                logger.warning(f"Failed to clear upload queue: {e}")

        for hook in list(self._sign_out_hooks):
            try:
                await hook()
            except Exception as e:
                logger.warning(f"Sign-out hook failed: {e}")

    # ─────────────────────────────────────────────────────────────
    # Helpers (caller holds the lock)
    # ─────────────────────────────────────────────────────────────

    def _adopt_identity(self, identity: Identity) -> None:
        """Switch to a new identity, dropping everything tied to the old one."""
        self._identity = identity
        self._generation += 1
        self._profile = None
        self._profile_error = None
        self._pending_invitation_count = 0

    async def _restore_session(self, identity: Identity) -> None:
        """Restore persisted flags and the mirrored profile if they belong to ``identity``."""
        self._role = DEFAULT_ROLE
        self._onboarding_complete = False
        try:
            owner = await self._preferences.get(SESSION_OWNER_KEY)
            if owner == identity.uid:
                self._role = Role.parse(await self._preferences.get(USER_ROLE_KEY))
                self._onboarding_complete = bool(await self._preferences.get(ONBOARDING_COMPLETE_KEY, False))
            elif owner is not None:
                logger.info("Ignoring persisted flags written for a different account")
        except Exception as e:
            logger.warning(f"Failed to restore persisted session flags: {e}")

        try:
            cached = await self._mirror.get(identity.uid)
            if cached is not None:
                self._profile = cached
        except Exception as e:
            logger.warning(f"Failed to read local mirror for {identity.uid}: {e}")

    async def _save_persisted_flags(self) -> None:
        if self._identity is None:
            return
        try:
            await self._preferences.set(USER_ROLE_KEY, self._role.value)
            await self._preferences.set(ONBOARDING_COMPLETE_KEY, self._onboarding_complete)
            await self._preferences.set(SESSION_OWNER_KEY, self._identity.uid)
        except Exception as e:
            logger.warning(f"Failed to persist session flags: {e}")

    async def _clear_persisted_flags(self) -> None:
        try:
            await self._preferences.remove(USER_ROLE_KEY, ONBOARDING_COMPLETE_KEY, SESSION_OWNER_KEY)
        except Exception as e:
            logger.warning(f"Failed to clear persisted session flags: {e}")

    @staticmethod
    def _profile_fields(profile: UserProfile) -> Dict[str, Any]:
        fields = {
            "email": profile.email,
            "role": profile.role.value,
            "displayName": profile.display_name,
            "isPremium": profile.is_premium,
        }
        if profile.created_at is not None:
            fields["createdAt"] = profile.created_at
        return {key: value for key, value in fields.items() if value is not None}

    async def _write_profile(self, uid: str, profile: UserProfile) -> None:
        await self._write_profile_fields(uid, self._profile_fields(profile))

    async def _write_profile_fields(self, uid: str, fields: Dict[str, Any]) -> None:
        try:
            await self._profile_store.write_profile(uid, fields)
        except Exception as e:
            # The background profile load reconciles a missed write
            logger.warning(f"Failed to write profile for {uid}: {e}")

    async def _upsert_mirror(self, uid: str, profile: UserProfile) -> None:
        try:
            await self._mirror.upsert(uid, profile)
        except Exception as e:
            logger.warning(f"Failed to update local mirror for {uid}: {e}")

    def _record_error(self, operation: str, error: Exception) -> AuthError:
        auth_error = AuthError.from_exception(error)
        self._error_message = auth_error.message
        logger.warning(f"{operation} failed: {auth_error!r}")
        return auth_error
