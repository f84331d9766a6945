"""
Unit Tests for IdentityProviderClient

Uses httpx.MockTransport so no network is touched.
- Payload parsing (email, display name, role, timestamps)
- Administrative paging
- Self-service restrictions
- HTTP status to error mapping

Run with: pytest tests/test_identity_provider.py -v
"""

import json
from datetime import datetime, timezone

import httpx
import pytest

from identity_sync.clients import IdentityProviderClient, ProviderSnapshotFetcher, identity_from_payload
from identity_sync.errors import (
    AuthorizationError,
    IdentitySyncError,
    NotFoundError,
    TransientNetworkError,
    ValidationError,
)
from identity_sync.models import AccountRole

BASE_URL = "https://idp.test"


def user_payload(user_id, role=None, email=None, first="Test", last="User"):
    payload = {
        "id": user_id,
        "first_name": first,
        "last_name": last,
        "primary_email_address_id": f"idn_{user_id}",
        "email_addresses": [
            {"id": "idn_other", "email_address": "secondary@example.com"},
            {"id": f"idn_{user_id}", "email_address": email or f"{user_id.upper()}@Example.com"},
        ],
        "public_metadata": {"role": role} if role else {},
        "created_at": 1767225600000,
        "last_sign_in_at": "2026-09-30T10:00:00Z",
    }
    return payload


class Recorder:
    """Collects requests and replies from a handler function."""

    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


def make_client(handler, **kwargs):
    recorder = Recorder(handler)
    kwargs.setdefault("secret_key", "sk_test")
    client = IdentityProviderClient(BASE_URL, transport=httpx.MockTransport(recorder), **kwargs)
    return client, recorder


class TestPayloadParsing:

    def test_identity_from_payload(self):
        identity = identity_from_payload(user_payload("user_1", role="admin"))

        assert identity.external_id == "user_1"
        assert identity.email == "user_1@example.com"
        assert identity.display_name == "Test User"
        assert identity.role == AccountRole.ADMINISTRATOR
        assert identity.created_at == datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert identity.last_authenticated_at == datetime(2026, 9, 30, 10, 0, tzinfo=timezone.utc)

    def test_missing_role_defaults_to_standard(self):
        payload = user_payload("user_2")
        payload["private_metadata"] = {"role": "unknown-value"}
        assert identity_from_payload(payload).role == AccountRole.STANDARD

    def test_private_metadata_role_used_when_public_missing(self):
        payload = user_payload("user_3")
        payload["private_metadata"] = {"role": "administrator"}
        assert identity_from_payload(payload).role == AccountRole.ADMINISTRATOR

    def test_display_name_falls_back_to_username(self):
        payload = user_payload("user_4", first=None, last=None)
        payload["username"] = "shopper4"
        assert identity_from_payload(payload).display_name == "shopper4"

    @pytest.mark.parametrize("payload", [{}, {"id": ""}, {"first_name": "No", "last_name": "Id"}, ["user_5"], None])
    def test_user_object_without_id_is_rejected(self, payload):
        with pytest.raises(IdentitySyncError):
            identity_from_payload(payload)

    def test_unparseable_timestamp_is_rejected(self):
        payload = user_payload("user_6")
        payload["last_sign_in_at"] = "yesterday-ish"

        with pytest.raises(IdentitySyncError) as exc_info:
            identity_from_payload(payload)
        assert exc_info.value.external_id == "user_6"


class TestAdministrativePath:

    @pytest.mark.asyncio
    async def test_lists_all_pages(self):
        users = [user_payload(f"user_{i}") for i in range(5)]

        def handler(request):
            offset = int(request.url.params["offset"])
            limit = int(request.url.params["limit"])
            return httpx.Response(200, json=users[offset:offset + limit])

        client, recorder = make_client(handler, page_size=2)
        identities = await client.list_identities()

        assert [i.external_id for i in identities] == [f"user_{i}" for i in range(5)]
        assert [r.url.params["offset"] for r in recorder.requests] == ["0", "2", "4"]
        assert recorder.requests[0].headers["Authorization"] == "Bearer sk_test"

    @pytest.mark.asyncio
    async def test_accepts_wrapped_page_and_dedupes(self):
        pages = {
            "0": {"data": [user_payload("a"), user_payload("b")]},
            "2": {"data": [user_payload("b")]},
        }

        def handler(request):
            return httpx.Response(200, json=pages[request.url.params["offset"]])

        client, _ = make_client(handler, page_size=2)
        identities = await client.list_identities()

        assert [i.external_id for i in identities] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_snapshot_is_exhaustive(self):
        client, _ = make_client(lambda request: httpx.Response(200, json=[]))
        snapshot = await ProviderSnapshotFetcher(client).fetch()
        assert snapshot.exhaustive is True
        assert snapshot.identities == []

    @pytest.mark.asyncio
    async def test_update_role_patches_public_metadata(self):
        def handler(request):
            body = json.loads(request.content)
            return httpx.Response(200, json=user_payload("user_1", role=body["public_metadata"]["role"]))

        client, recorder = make_client(handler)
        updated = await client.update_role("user_1", AccountRole.ADMINISTRATOR)

        request = recorder.requests[0]
        assert request.method == "PATCH"
        assert request.url.path == "/v1/users/user_1/metadata"
        assert json.loads(request.content) == {"public_metadata": {"role": "administrator"}}
        assert updated.role == AccountRole.ADMINISTRATOR

    @pytest.mark.asyncio
    async def test_update_role_rejects_invalid_role_without_request(self):
        client, recorder = make_client(lambda request: httpx.Response(200, json={}))

        with pytest.raises(ValidationError):
            await client.update_role("user_1", "superuser")
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_get_current_identity_not_available(self):
        client, _ = make_client(lambda request: httpx.Response(200, json={}))
        with pytest.raises(AuthorizationError):
            await client.get_current_identity()


class TestSelfServicePath:

    @pytest.fixture
    def me_handler(self):
        def handler(request):
            if request.url.path == "/v1/me" and request.method == "GET":
                return httpx.Response(200, json=user_payload("me"))
            if request.url.path == "/v1/me/metadata":
                body = json.loads(request.content)
                return httpx.Response(200, json=user_payload("me", role=body["public_metadata"]["role"]))
            return httpx.Response(403, json={"errors": ["forbidden"]})
        return handler

    @pytest.mark.asyncio
    async def test_lists_only_self(self, me_handler):
        client, recorder = make_client(me_handler, secret_key=None, session_token="sess_abc")

        snapshot = await ProviderSnapshotFetcher(client).fetch()

        assert [i.external_id for i in snapshot.identities] == ["me"]
        assert snapshot.exhaustive is False
        assert recorder.requests[0].headers["Authorization"] == "Bearer sess_abc"

    @pytest.mark.asyncio
    async def test_update_own_role(self, me_handler):
        client, recorder = make_client(me_handler, secret_key=None, session_token="sess_abc")

        updated = await client.update_role("me", AccountRole.ADMINISTRATOR)

        assert updated.role == AccountRole.ADMINISTRATOR
        assert recorder.requests[-1].url.path == "/v1/me/metadata"

    @pytest.mark.asyncio
    async def test_update_other_role_denied_without_write(self, me_handler):
        client, recorder = make_client(me_handler, secret_key=None, session_token="sess_abc")

        with pytest.raises(AuthorizationError) as exc_info:
            await client.update_role("someone_else", AccountRole.ADMINISTRATOR)

        assert "not accessible" in exc_info.value.message
        assert all(r.method == "GET" for r in recorder.requests)

    @pytest.mark.asyncio
    async def test_get_other_identity_denied(self, me_handler):
        client, _ = make_client(me_handler, secret_key=None, session_token="sess_abc")
        with pytest.raises(AuthorizationError):
            await client.get_identity("someone_else")

    def test_requires_a_credential(self):
        with pytest.raises(AuthorizationError):
            IdentityProviderClient(BASE_URL)


class TestErrorMapping:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error", [
        (401, AuthorizationError),
        (403, AuthorizationError),
        (404, NotFoundError),
        (400, ValidationError),
        (422, ValidationError),
        (429, TransientNetworkError),
        (500, TransientNetworkError),
        (503, TransientNetworkError),
    ])
    async def test_status_mapping(self, status, error):
        client, _ = make_client(lambda request: httpx.Response(status, text="nope"))
        with pytest.raises(error):
            await client.get_identity("user_1")

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client, _ = make_client(handler)
        with pytest.raises(TransientNetworkError):
            await client.list_identities()

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client, _ = make_client(handler)
        with pytest.raises(TransientNetworkError) as exc_info:
            await client.update_role("user_1", AccountRole.STANDARD)
        assert exc_info.value.external_id == "user_1"

    @pytest.mark.asyncio
    async def test_non_json_success_body(self):
        client, _ = make_client(lambda request: httpx.Response(200, text="<html>maintenance</html>"))

        with pytest.raises(IdentitySyncError) as exc_info:
            await client.update_role("user_1", AccountRole.ADMINISTRATOR)
        assert exc_info.value.external_id == "user_1"
        assert "non-JSON" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_listing_item_without_id(self):
        page = {"data": [user_payload("user_1"), {"first_name": "Ghost"}]}
        client, _ = make_client(lambda request: httpx.Response(200, json=page))

        with pytest.raises(IdentitySyncError):
            await client.list_identities()
