"""
Tests for the Twizzit API client against a mocked transport.
"""

from datetime import timedelta

import httpx
import pytest

from shotspot.services.twizzit_client import (
    TwizzitApiError,
    TwizzitAuthError,
    TwizzitClient,
    TwizzitRateLimitError,
)
from shotspot.utils.datetime_utils import utcnow


class FakeTwizzit:
    """Records requests and answers them from a small route table."""

    def __init__(self, routes=None, auth_status=200):
        self.routes = routes or {}
        self.auth_status = auth_status
        self.requests = []
        self.tokens_issued = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/v2/api/authenticate":
            if self.auth_status != 200:
                return httpx.Response(self.auth_status, json={"error": "nope"})
            self.tokens_issued += 1
            return httpx.Response(200, json={"token": f"token-{self.tokens_issued}", "expires_in": 3600})
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json={"error": "not found"})
        return handler(request)


def make_client(fake: FakeTwizzit) -> TwizzitClient:
    return TwizzitClient(
        username="api-user",
        password="api-pass",
        api_endpoint="https://twizzit.test/",
        transport=httpx.MockTransport(fake),
    )


def test_client_requires_credentials():
    with pytest.raises(ValueError, match="username is required"):
        TwizzitClient(username="", password="x")
    with pytest.raises(ValueError, match="password is required"):
        TwizzitClient(username="x", password="")


@pytest.mark.asyncio
async def test_authenticate_posts_form_and_stores_token():
    fake = FakeTwizzit()
    async with make_client(fake) as client:
        token = await client.authenticate()

        assert token == "token-1"
        assert client.token_is_fresh() is True
        auth_request = fake.requests[0]
        assert auth_request.method == "POST"
        assert b"username=api-user" in auth_request.content
        assert client.api_endpoint == "https://twizzit.test"


@pytest.mark.asyncio
async def test_rejected_credentials():
    fake = FakeTwizzit(auth_status=401)
    async with make_client(fake) as client:
        with pytest.raises(TwizzitAuthError) as exc_info:
            await client.authenticate()
        assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_rate_limited_authentication():
    fake = FakeTwizzit(auth_status=429)
    async with make_client(fake) as client:
        with pytest.raises(TwizzitRateLimitError):
            await client.authenticate()


@pytest.mark.asyncio
async def test_token_reused_until_near_expiry():
    fake = FakeTwizzit(routes={"/v2/api/groups": lambda r: httpx.Response(200, json=[{"id": 1, "name": "A"}])})
    async with make_client(fake) as client:
        await client.get_groups()
        await client.get_groups()
        assert fake.tokens_issued == 1

        client.token_expires_at = utcnow() + timedelta(seconds=60)
        await client.get_groups()
        assert fake.tokens_issued == 2


@pytest.mark.asyncio
async def test_unauthorized_call_reauthenticates_once():
    calls = []

    def groups(request):
        calls.append(request.headers["Authorization"])
        if len(calls) == 1:
            return httpx.Response(401)
        return httpx.Response(200, json=[])

    fake = FakeTwizzit(routes={"/v2/api/groups": groups})
    async with make_client(fake) as client:
        assert await client.get_groups() == []

    assert calls == ["Bearer token-1", "Bearer token-2"]


@pytest.mark.asyncio
async def test_repeated_unauthorized_raises():
    fake = FakeTwizzit(routes={"/v2/api/groups": lambda r: httpx.Response(401)})
    async with make_client(fake) as client:
        with pytest.raises(TwizzitAuthError):
            await client.get_groups()


@pytest.mark.asyncio
async def test_server_error_raises_api_error():
    fake = FakeTwizzit(routes={"/v2/api/seasons": lambda r: httpx.Response(503)})
    async with make_client(fake) as client:
        with pytest.raises(TwizzitApiError) as exc_info:
            await client.get_seasons()
        assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_group_contacts_sends_group_id_and_tolerates_non_list():
    seen = {}

    def contacts(request):
        seen["group_id"] = request.url.params.get("group_id")
        return httpx.Response(200, json={"unexpected": "shape"})

    fake = FakeTwizzit(routes={"/v2/api/group-contacts": contacts})
    async with make_client(fake) as client:
        assert await client.get_group_contacts("g-7") == []
        with pytest.raises(ValueError, match="Group ID is required"):
            await client.get_group_contacts("")
    assert seen["group_id"] == "g-7"


@pytest.mark.asyncio
async def test_verify_connection():
    ok = FakeTwizzit(routes={"/v2/api/organizations": lambda r: httpx.Response(200, json=[{"id": 1}])})
    async with make_client(ok) as client:
        assert await client.verify_connection() is True

    bad = FakeTwizzit(auth_status=401)
    async with make_client(bad) as client:
        assert await client.verify_connection() is False
