"""Tests for the local and Firebase identity providers."""
import json

import httpx
import pytest

from archive.backends.firebase_identity import FirebaseIdentityProvider
from archive.backends.local_identity import ACCOUNTS, PASSWORD_RESETS, LocalIdentityProvider
from archive.errors import AuthFailed, BackendError


class TestLocalIdentityProvider:

    @pytest.mark.asyncio
    async def test_sign_up_then_sign_in(self, store):
        provider = LocalIdentityProvider(store)
        created = await provider.sign_up("Pat.Lee@Example.com", "secret1", "Pat Lee")
        assert created.email == "pat.lee@example.com"

        identity = await provider.sign_in("pat.lee@example.com", "secret1")
        assert identity.user_id == created.user_id
        assert identity.display_name == "Pat Lee"

    @pytest.mark.asyncio
    async def test_password_stored_as_argon2_hash(self, store):
        provider = LocalIdentityProvider(store)
        await provider.sign_up("pat@example.com", "secret1", "Pat")

        account = (await store.query(ACCOUNTS)).items[0]
        assert account["passwordHash"].startswith("$argon2")
        assert "salt" not in account
        assert "secret1" not in str(account)

    @pytest.mark.asyncio
    async def test_wrong_password(self, store):
        provider = LocalIdentityProvider(store)
        await provider.sign_up("pat@example.com", "secret1", "Pat")
        with pytest.raises(AuthFailed, match="Invalid email or password"):
            await provider.sign_in("pat@example.com", "wrong-one")

    @pytest.mark.asyncio
    async def test_unknown_email(self, store):
        with pytest.raises(AuthFailed):
            await LocalIdentityProvider(store).sign_in("nobody@example.com", "secret1")

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, store):
        provider = LocalIdentityProvider(store)
        await provider.sign_up("pat@example.com", "secret1", "Pat")
        with pytest.raises(AuthFailed) as exc:
            await provider.sign_up("PAT@example.com", "secret2", "Pat Again")
        assert exc.value.title == "Registration Failed"

    @pytest.mark.asyncio
    async def test_short_password_rejected(self, store):
        with pytest.raises(AuthFailed, match="at least 6"):
            await LocalIdentityProvider(store).sign_up("pat@example.com", "12345", "Pat")

    @pytest.mark.asyncio
    async def test_password_reset_records_token(self, store):
        provider = LocalIdentityProvider(store)
        await provider.sign_up("pat@example.com", "secret1", "Pat")
        await provider.send_password_reset("pat@example.com")
        assert await store.count(PASSWORD_RESETS) == 1

    @pytest.mark.asyncio
    async def test_password_reset_unknown_email(self, store):
        with pytest.raises(AuthFailed, match="no user record"):
            await LocalIdentityProvider(store).send_password_reset("ghost@example.com")


def _firebase(handler) -> FirebaseIdentityProvider:
    return FirebaseIdentityProvider(api_key="test-key", transport=httpx.MockTransport(handler))


class TestFirebaseIdentityProvider:

    @pytest.mark.asyncio
    async def test_sign_up_sets_display_name(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append((request.url.path, request.url.params["key"], json.loads(request.content)))
            if request.url.path.endswith("accounts:signUp"):
                return httpx.Response(200, json={"localId": "fb-1", "email": "pat@example.com", "idToken": "tok"})
            return httpx.Response(200, json={})

        identity = await _firebase(handler).sign_up("pat@example.com", "secret1", "Pat Lee")

        assert identity.user_id == "fb-1"
        assert identity.id_token == "tok"
        assert [c[0] for c in calls] == ["/v1/accounts:signUp", "/v1/accounts:update"]
        assert all(c[1] == "test-key" for c in calls)
        assert calls[1][2]["displayName"] == "Pat Lee"

    @pytest.mark.asyncio
    async def test_sign_in_error_mapped_to_friendly_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": {"message": "INVALID_LOGIN_CREDENTIALS"}})

        with pytest.raises(AuthFailed, match="Invalid email or password"):
            await _firebase(handler).sign_in("pat@example.com", "bad")

    @pytest.mark.asyncio
    async def test_error_detail_after_colon(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": {"message": "WEAK_PASSWORD : Password should be at least 6 characters"}})

        with pytest.raises(AuthFailed, match="WEAK_PASSWORD"):
            await _firebase(handler).sign_up("pat@example.com", "123", "Pat")

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad Gateway")

        with pytest.raises(AuthFailed, match="502"):
            await _firebase(handler).send_password_reset("pat@example.com")

    @pytest.mark.asyncio
    async def test_transport_error_becomes_backend_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(BackendError) as exc:
            await _firebase(handler).sign_in("pat@example.com", "secret1")
        assert not isinstance(exc.value, AuthFailed)

    @pytest.mark.asyncio
    async def test_password_reset_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(json.loads(request.content))
            return httpx.Response(200, json={"email": "pat@example.com"})

        await _firebase(handler).send_password_reset("pat@example.com")
        assert seen == {"requestType": "PASSWORD_RESET", "email": "pat@example.com"}

    def test_api_key_required(self):
        with pytest.raises(ValueError):
            FirebaseIdentityProvider(api_key="")
