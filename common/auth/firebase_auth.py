"""
Firebase Authentication credential provider.

Signs users up and in through the Firebase Auth REST API (Identity Toolkit
and Secure Token endpoints) using the project's Web API key, and maps the
REST error strings onto the ``AuthError`` taxonomy.

The Admin SDK app used by Firestore and Storage is initialized separately via
``initialize_firebase_app``.

Example:
    auth = FirebaseAuth(api_key="AIza...")

    # Create user
    identity = await auth.create_account("user@example.com", "batting42cage")
    print(identity.uid)

    # Sign in with email/password
    identity = await auth.authenticate("user@example.com", "batting42cage")
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional

import httpx

from common.auth.base import AuthStateListener, CredentialProvider, Identity, TokenInfo
from common.utils.exceptions import AuthError, AuthErrorCode

# Load .env for local development
try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass  # dotenv not installed, rely on system environment variables

logger = logging.getLogger(__name__)

# Seconds before expiry at which a cached ID token is treated as stale
TOKEN_EXPIRATION_WARNING_SECONDS = 300

_INVALID_CREDENTIAL_ERRORS = {
    "EMAIL_NOT_FOUND",
    "INVALID_PASSWORD",
    "INVALID_LOGIN_CREDENTIALS",
    "INVALID_EMAIL",
    "MISSING_PASSWORD",
    "MISSING_EMAIL",
    "INVALID_ID_TOKEN",
    "INVALID_REFRESH_TOKEN",
    "USER_NOT_FOUND",
    "TOKEN_EXPIRED",
    "CREDENTIAL_TOO_OLD_LOGIN_AGAIN",
}


def map_firebase_error(message: Optional[str]) -> AuthError:
    """
    Map a Firebase Auth REST error string onto the auth error taxonomy.

    The REST API sometimes appends detail after a colon
    (``"WEAK_PASSWORD : Password should be at least 6 characters"``); only
    the leading code is used for mapping. Unmapped codes become UNKNOWN with
    the raw message preserved.
    """
    raw = message or "Unknown error"
    code = raw.split(":", 1)[0].strip().upper()

    if code in _INVALID_CREDENTIAL_ERRORS:
        return AuthError(AuthErrorCode.INVALID_CREDENTIALS, raw_message=raw)
    if code.startswith("WEAK_PASSWORD"):
        return AuthError(AuthErrorCode.WEAK_PASSWORD, raw_message=raw)
    if code == "EMAIL_EXISTS":
        return AuthError(AuthErrorCode.EMAIL_IN_USE, raw_message=raw)
    if code == "USER_DISABLED":
        return AuthError(AuthErrorCode.ACCOUNT_DISABLED, raw_message=raw)
    if code == "TOO_MANY_ATTEMPTS_TRY_LATER":
        return AuthError(AuthErrorCode.RATE_LIMITED, raw_message=raw)
    return AuthError(AuthErrorCode.UNKNOWN, raw_message=raw)


def _get_firebase_credentials_from_env() -> Optional[Dict[str, Any]]:
    """
    Check if Firebase credentials are present in environment variables.
    Returns credentials dict if all required fields are present, None otherwise.
    """
    required_fields = [
        "PROJECT_ID",
        "PRIVATE_KEY",
        "CLIENT_EMAIL",
    ]

    for field in required_fields:
        if not os.environ.get(field):
            return None

    credentials = {
        "type": os.environ.get("TYPE", "service_account").strip('"').strip(","),
        "project_id": os.environ.get("PROJECT_ID", "").strip('"').strip(","),
        "private_key_id": os.environ.get("PRIVATE_KEY_ID", "").strip('"').strip(","),
        "private_key": os.environ.get("PRIVATE_KEY", "").strip('"').strip(",").replace("\\n", "\n"),
        "client_email": os.environ.get("CLIENT_EMAIL", "").strip('"').strip(","),
        "client_id": os.environ.get("CLIENT_ID", "").strip('"').strip(","),
        "auth_uri": os.environ.get("AUTH_URI", "https://accounts.google.com/o/oauth2/auth").strip('"').strip(","),
        "token_uri": os.environ.get("TOKEN_URI", "https://oauth2.googleapis.com/token").strip('"').strip(","),
        "auth_provider_x509_cert_url": os.environ.get("AUTH_PROVIDER_X509_CERT_URL", "https://www.googleapis.com/oauth2/v1/certs").strip('"').strip(","),
        "client_x509_cert_url": os.environ.get("CLIENT_X509_CERT_URL", "").strip('"').strip(","),
        "universe_domain": os.environ.get("UNIVERSE_DOMAIN", "googleapis.com").strip('"').strip(","),
    }

    return credentials


def initialize_firebase_app(
    credentials_path: Optional[str] = None,
    credentials_dict: Optional[Dict[str, Any]] = None,
    project_id: Optional[str] = None,
    storage_bucket: Optional[str] = None,
):
    """
    Initialize the default Firebase Admin app if not already done.

    Args:
        credentials_path: Path to service account JSON file
        credentials_dict: Service account credentials as dict (alternative to path)
        project_id: Firebase project ID (optional, can be inferred from credentials)
        storage_bucket: Default Cloud Storage bucket name

    Returns:
        The default firebase_admin App
    """
    import firebase_admin
    from firebase_admin import credentials

    if firebase_admin._apps:
        return firebase_admin.get_app()

    if credentials_path:
        cred = credentials.Certificate(credentials_path)
    elif credentials_dict:
        cred = credentials.Certificate(credentials_dict)
    else:
        env_credentials = _get_firebase_credentials_from_env()
        if env_credentials:
            cred = credentials.Certificate(env_credentials)
        else:
            # Use default credentials (for GCP environments)
            cred = credentials.ApplicationDefault()

    options = {}
    if project_id:
        options["projectId"] = project_id
    if storage_bucket:
        options["storageBucket"] = storage_bucket

    logger.info(f"Initializing Firebase app (project={project_id or 'inferred'})")
    return firebase_admin.initialize_app(cred, options)


class FirebaseAuth(CredentialProvider):
    """
    Firebase Auth REST credential provider.

    Holds the current identity for this process and notifies auth-state
    listeners whenever it changes. Handles:
    - Email/password sign-up and sign-in
    - Password reset emails
    - ID token refresh
    - Account deletion
    """

    # Firebase REST API base URLs
    FIREBASE_AUTH_URL = "https://identitytoolkit.googleapis.com/v1/accounts"
    FIREBASE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"

    def __init__(
        self,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        identity: Optional[Identity] = None,
    ):
        """
        Initialize Firebase auth provider.

        Args:
            api_key: Firebase Web API Key (falls back to FIREBASE_API_KEY env var)
            http_client: Shared HTTP client; a short-lived client is used per call if omitted
            timeout: Request timeout in seconds
            identity: Previously established identity to restore
        """
        self._api_key = api_key or os.environ.get("FIREBASE_API_KEY")
        self._http_client = http_client
        self._timeout = timeout
        self._identity = identity
        self._listeners: Dict[object, AuthStateListener] = {}

    # ─────────────────────────────────────────────────────────────
    # Listener management
    # ─────────────────────────────────────────────────────────────

    @property
    def current_identity(self) -> Optional[Identity]:
        return self._identity

    def add_auth_state_listener(self, listener: AuthStateListener) -> object:
        handle = object()
        self._listeners[handle] = listener
        return handle

    def remove_auth_state_listener(self, handle: object) -> None:
        self._listeners.pop(handle, None)

    def _set_identity(self, identity: Optional[Identity]) -> None:
        """Replace the current identity and notify every listener."""
        self._identity = identity
        for listener in list(self._listeners.values()):
            try:
                listener(identity)
            except Exception as e:
                logger.error(f"Auth state listener failed: {e}")

    # ─────────────────────────────────────────────────────────────
    # REST calls
    # ─────────────────────────────────────────────────────────────

    def _require_api_key(self) -> str:
        if not self._api_key:
            raise AuthError(
                AuthErrorCode.UNKNOWN,
                raw_message=(
                    "Firebase API key is required for email/password authentication. "
                    "Set FIREBASE_API_KEY environment variable."
                ),
            )
        return self._api_key

    async def _post(self, url: str, **kwargs: Any) -> Dict[str, Any]:
        """POST to a Firebase REST endpoint, mapping failures to AuthError."""
        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, **kwargs)
        except httpx.TransportError as e:
            logger.warning(f"Firebase request failed: {e}")
            raise AuthError(AuthErrorCode.NETWORK_UNAVAILABLE, raw_message=str(e))

        if response.status_code != 200:
            try:
                error_message = response.json().get("error", {}).get("message", "Unknown error")
            except ValueError:
                error_message = response.text or f"HTTP {response.status_code}"
            logger.info(f"Firebase auth error: {error_message}")
            raise map_firebase_error(error_message)

        return response.json()

    def _accounts_url(self, action: str) -> str:
        return f"{self.FIREBASE_AUTH_URL}:{action}?key={self._require_api_key()}"

    @staticmethod
    def _expiry(expires_in: Any) -> datetime:
        seconds = int(expires_in or 3600)
        return datetime.now(timezone.utc) + timedelta(seconds=seconds)

    def _identity_from_response(self, data: Dict[str, Any]) -> Identity:
        return Identity(
            uid=data.get("localId"),
            email=data.get("email"),
            display_name=data.get("displayName") or None,
            id_token=data.get("idToken"),
            refresh_token=data.get("refreshToken"),
            expires_at=self._expiry(data.get("expiresIn")),
        )

    async def create_account(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> Identity:
        """Create a Firebase user and set its display name."""
        data = await self._post(
            self._accounts_url("signUp"),
            json={"email": email, "password": password, "returnSecureToken": True},
        )
        identity = self._identity_from_response(data)

        if display_name:
            try:
                updated = await self._post(
                    self._accounts_url("update"),
                    json={
                        "idToken": identity.id_token,
                        "displayName": display_name,
                        "returnSecureToken": True,
                    },
                )
                identity.display_name = updated.get("displayName") or display_name
                if updated.get("idToken"):
                    identity.id_token = updated["idToken"]
                    identity.refresh_token = updated.get("refreshToken", identity.refresh_token)
                    identity.expires_at = self._expiry(updated.get("expiresIn"))
            except AuthError as e:
                # The account exists; a missing display name is not worth failing signup over
                logger.warning(f"Failed to set display name for {identity.uid}: {e.raw_message}")

        logger.info(f"Firebase account created: {identity.uid}")
        self._set_identity(identity)
        return identity

    async def authenticate(self, email: str, password: str) -> Identity:
        """Sign in with email and password using the REST API."""
        data = await self._post(
            self._accounts_url("signInWithPassword"),
            json={"email": email, "password": password, "returnSecureToken": True},
        )
        identity = self._identity_from_response(data)
        logger.info(f"Firebase sign-in: {identity.uid}")
        self._set_identity(identity)
        return identity

    async def sign_out(self) -> None:
        """Drop the local identity. Firebase has no server-side sign-out for ID tokens."""
        if self._identity is None:
            return
        logger.info(f"Firebase sign-out: {self._identity.uid}")
        self._set_identity(None)

    async def send_password_reset(self, email: str) -> None:
        """Send a password reset email via sendOobCode."""
        await self._post(
            self._accounts_url("sendOobCode"),
            json={"requestType": "PASSWORD_RESET", "email": email},
        )
        logger.info("Password reset email requested")

    async def refresh_token(self, force: bool = False) -> TokenInfo:
        """Exchange the refresh token for a fresh ID token when needed."""
        identity = self._identity
        if identity is None or not identity.refresh_token:
            raise AuthError(
                AuthErrorCode.INVALID_CREDENTIALS,
                message="Please sign in to continue.",
                raw_message="No user signed in",
            )

        if not force and identity.id_token and not identity.expires_within(TOKEN_EXPIRATION_WARNING_SECONDS):
            return TokenInfo(
                id_token=identity.id_token,
                refresh_token=identity.refresh_token,
                expires_at=identity.expires_at,
            )

        data = await self._post(
            f"{self.FIREBASE_TOKEN_URL}?key={self._require_api_key()}",
            data={"grant_type": "refresh_token", "refresh_token": identity.refresh_token},
        )
        token = TokenInfo(
            id_token=data.get("id_token"),
            refresh_token=data.get("refresh_token", identity.refresh_token),
            expires_at=self._expiry(data.get("expires_in")),
        )
        identity.id_token = token.id_token
        identity.refresh_token = token.refresh_token
        identity.expires_at = token.expires_at
        logger.debug(f"ID token refreshed for {identity.uid}")
        return token

    async def delete_current_account(self) -> None:
        """Delete the signed-in Firebase account."""
        identity = self._identity
        if identity is None:
            raise AuthError(
                AuthErrorCode.INVALID_CREDENTIALS,
                message="Please sign in to continue.",
                raw_message="No user signed in",
            )
        await self._post(self._accounts_url("delete"), json={"idToken": identity.id_token})
        logger.info(f"Firebase account deleted: {identity.uid}")
        self._set_identity(None)
