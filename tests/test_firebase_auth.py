"""Unit tests for the Firebase Auth REST credential provider."""

import json
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs

import httpx
import pytest

from common.auth import FirebaseAuth, Identity
from common.utils.exceptions import AuthError, AuthErrorCode


# ─────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────


def firebase_error(message: str, status: int = 400) -> httpx.Response:
    return httpx.Response(status, json={"error": {"code": status, "message": message}})


def make_auth(handler, identity=None) -> FirebaseAuth:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FirebaseAuth(api_key="test-key", http_client=client, identity=identity)


@pytest.fixture
def requests():
    return []


@pytest.fixture
def signed_in_identity():
    return Identity(
        uid="uid-1",
        email="athlete@x.com",
        id_token="id-old",
        refresh_token="refresh-old",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )


# ─────────────────────────────────────────────────────────────────
# create_account / authenticate
# ─────────────────────────────────────────────────────────────────


class TestCreateAccount:
    @pytest.mark.asyncio
    async def test_creates_account_and_sets_display_name(self, requests):
        def handler(request):
            requests.append(request)
            body = json.loads(request.content)
            if request.url.path.endswith(":signUp"):
                assert body == {"email": "coach@x.com", "password": "batting42cage", "returnSecureToken": True}
                return httpx.Response(200, json={
                    "localId": "uid-9",
                    "email": "coach@x.com",
                    "idToken": "id-1",
                    "refreshToken": "refresh-1",
                    "expiresIn": "3600",
                })
            assert request.url.path.endswith(":update")
            assert body["idToken"] == "id-1"
            assert body["displayName"] == "Coach Carter"
            return httpx.Response(200, json={"localId": "uid-9", "displayName": "Coach Carter"})

        auth = make_auth(handler)
        seen = []
        auth.add_auth_state_listener(seen.append)

        identity = await auth.create_account("coach@x.com", "batting42cage", "Coach Carter")

        assert identity.uid == "uid-9"
        assert identity.display_name == "Coach Carter"
        assert identity.id_token == "id-1"
        assert auth.current_identity is identity
        assert seen == [identity]
        assert [r.url.params["key"] for r in requests] == ["test-key", "test-key"]

    @pytest.mark.asyncio
    async def test_email_exists_maps_to_email_in_use(self):
        auth = make_auth(lambda request: firebase_error("EMAIL_EXISTS"))

        with pytest.raises(AuthError) as exc_info:
            await auth.create_account("dup@x.com", "batting42cage")

        assert exc_info.value.code is AuthErrorCode.EMAIL_IN_USE
        assert auth.current_identity is None

    @pytest.mark.asyncio
    async def test_weak_password_detail_is_stripped(self):
        auth = make_auth(lambda request: firebase_error(
            "WEAK_PASSWORD : Password should be at least 6 characters"
        ))

        with pytest.raises(AuthError) as exc_info:
            await auth.create_account("new@x.com", "abc")

        assert exc_info.value.code is AuthErrorCode.WEAK_PASSWORD

    @pytest.mark.asyncio
    async def test_display_name_failure_keeps_account(self):
        def handler(request):
            if request.url.path.endswith(":signUp"):
                return httpx.Response(200, json={
                    "localId": "uid-2",
                    "email": "new@x.com",
                    "idToken": "id-2",
                    "refreshToken": "refresh-2",
                    "expiresIn": "3600",
                })
            return firebase_error("INVALID_ID_TOKEN")

        auth = make_auth(handler)

        identity = await auth.create_account("new@x.com", "batting42cage", "New Player")

        assert identity.uid == "uid-2"
        assert identity.display_name is None
        assert auth.current_identity is identity


class TestAuthenticate:
    @pytest.mark.asyncio
    async def test_sign_in_with_password(self, requests):
        def handler(request):
            requests.append(request)
            assert request.url.path == "/v1/accounts:signInWithPassword"
            return httpx.Response(200, json={
                "localId": "uid-1",
                "email": "athlete@x.com",
                "displayName": "",
                "idToken": "id-1",
                "refreshToken": "refresh-1",
                "expiresIn": "3600",
                "registered": True,
            })

        auth = make_auth(handler)

        identity = await auth.authenticate("athlete@x.com", "batting42cage")

        assert identity.uid == "uid-1"
        assert identity.display_name is None
        assert not identity.expires_within(300)

    @pytest.mark.asyncio
    async def test_invalid_login_maps_to_invalid_credentials(self):
        auth = make_auth(lambda request: firebase_error("INVALID_LOGIN_CREDENTIALS"))

        with pytest.raises(AuthError) as exc_info:
            await auth.authenticate("athlete@x.com", "nope")

        assert exc_info.value.code is AuthErrorCode.INVALID_CREDENTIALS
        assert exc_info.value.raw_message == "INVALID_LOGIN_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_transport_failure_maps_to_network_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("offline", request=request)

        auth = make_auth(handler)

        with pytest.raises(AuthError) as exc_info:
            await auth.authenticate("athlete@x.com", "batting42cage")

        assert exc_info.value.code is AuthErrorCode.NETWORK_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_non_json_error_body_is_unknown(self):
        auth = make_auth(lambda request: httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(AuthError) as exc_info:
            await auth.authenticate("athlete@x.com", "batting42cage")

        assert exc_info.value.code is AuthErrorCode.UNKNOWN
        assert exc_info.value.raw_message == "Bad Gateway"

    @pytest.mark.asyncio
    async def test_missing_api_key_is_unknown_error(self, monkeypatch):
        monkeypatch.delenv("FIREBASE_API_KEY", raising=False)
        auth = FirebaseAuth(api_key=None)

        with pytest.raises(AuthError) as exc_info:
            await auth.authenticate("athlete@x.com", "batting42cage")

        assert exc_info.value.code is AuthErrorCode.UNKNOWN


# ─────────────────────────────────────────────────────────────────
# sign_out / password reset / delete
# ─────────────────────────────────────────────────────────────────


class TestSessionCalls:
    @pytest.mark.asyncio
    async def test_sign_out_notifies_once(self, signed_in_identity):
        auth = make_auth(lambda request: pytest.fail("no request expected"), identity=signed_in_identity)
        seen = []
        handle = auth.add_auth_state_listener(seen.append)

        await auth.sign_out()
        await auth.sign_out()

        assert seen == [None]
        assert auth.current_identity is None
        auth.remove_auth_state_listener(handle)

    @pytest.mark.asyncio
    async def test_removed_listener_not_notified(self, signed_in_identity):
        auth = make_auth(lambda request: pytest.fail("no request expected"), identity=signed_in_identity)
        seen = []
        handle = auth.add_auth_state_listener(seen.append)
        auth.remove_auth_state_listener(handle)

        await auth.sign_out()

        assert seen == []

    @pytest.mark.asyncio
    async def test_password_reset_request_shape(self, requests):
        def handler(request):
            requests.append(json.loads(request.content))
            assert request.url.path == "/v1/accounts:sendOobCode"
            return httpx.Response(200, json={"email": "athlete@x.com"})

        auth = make_auth(handler)

        await auth.send_password_reset("athlete@x.com")

        assert requests == [{"requestType": "PASSWORD_RESET", "email": "athlete@x.com"}]

    @pytest.mark.asyncio
    async def test_delete_current_account(self, requests, signed_in_identity):
        def handler(request):
            requests.append(json.loads(request.content))
            assert request.url.path == "/v1/accounts:delete"
            return httpx.Response(200, json={})

        auth = make_auth(handler, identity=signed_in_identity)
        seen = []
        auth.add_auth_state_listener(seen.append)

        await auth.delete_current_account()

        assert requests == [{"idToken": "id-old"}]
        assert seen == [None]
        assert auth.current_identity is None

    @pytest.mark.asyncio
    async def test_delete_requires_recent_login(self, signed_in_identity):
        auth = make_auth(lambda request: firebase_error("CREDENTIAL_TOO_OLD_LOGIN_AGAIN"), identity=signed_in_identity)

        with pytest.raises(AuthError) as exc_info:
            await auth.delete_current_account()

        assert exc_info.value.code is AuthErrorCode.INVALID_CREDENTIALS
        assert auth.current_identity is signed_in_identity


# ─────────────────────────────────────────────────────────────────
# refresh_token
# ─────────────────────────────────────────────────────────────────


class TestRefreshToken:
    @pytest.mark.asyncio
    async def test_valid_token_returned_without_request(self, signed_in_identity):
        auth = make_auth(lambda request: pytest.fail("no request expected"), identity=signed_in_identity)

        token = await auth.refresh_token()

        assert token.id_token == "id-old"

    @pytest.mark.asyncio
    async def test_expiring_token_is_refreshed(self, requests, signed_in_identity):
        signed_in_identity.expires_at = datetime.now(timezone.utc) + timedelta(seconds=60)

        def handler(request):
            requests.append(request)
            assert request.url.host == "securetoken.googleapis.com"
            form = parse_qs(request.content.decode())
            assert form == {"grant_type": ["refresh_token"], "refresh_token": ["refresh-old"]}
            return httpx.Response(200, json={
                "id_token": "id-new",
                "refresh_token": "refresh-new",
                "expires_in": "3600",
                "user_id": "uid-1",
            })

        auth = make_auth(handler, identity=signed_in_identity)

        token = await auth.refresh_token()

        assert len(requests) == 1
        assert token.id_token == "id-new"
        assert auth.current_identity.id_token == "id-new"
        assert auth.current_identity.refresh_token == "refresh-new"

    @pytest.mark.asyncio
    async def test_force_refresh(self, requests, signed_in_identity):
        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"id_token": "id-forced", "expires_in": "3600"})

        auth = make_auth(handler, identity=signed_in_identity)

        token = await auth.refresh_token(force=True)

        assert token.id_token == "id-forced"
        assert token.refresh_token == "refresh-old"

    @pytest.mark.asyncio
    async def test_refresh_without_identity(self):
        auth = make_auth(lambda request: pytest.fail("no request expected"))

        with pytest.raises(AuthError) as exc_info:
            await auth.refresh_token()

        assert exc_info.value.code is AuthErrorCode.INVALID_CREDENTIALS
