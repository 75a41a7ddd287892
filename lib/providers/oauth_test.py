"""Tests for the OAuth token provider."""

import asyncio

import httpx
import pytest

from lib.providers.base import ProviderError
from lib.providers.oauth import OAuthTokenProvider

pytestmark = pytest.mark.no_db

TOKEN_URL = "https://api.example-provider.io/v1/oauth/access_token"


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _provider(handler, clock=None) -> OAuthTokenProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OAuthTokenProvider(client, TOKEN_URL, "id", "secret", provider="test", clock=clock or FakeClock())


class TestGetToken:

    @pytest.mark.asyncio
    async def test_lazy_fetch_and_reuse(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"access_token": f"tok{len(calls)}", "expires_in": 3600})

        tokens = _provider(handler)
        assert calls == []
        assert await tokens.get_token() == "tok1"
        assert await tokens.get_token() == "tok1"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_refresh_within_expiry_buffer(self):
        clock = FakeClock()
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"access_token": f"tok{len(calls)}", "expires_in": 3600})

        tokens = _provider(handler, clock)
        assert await tokens.get_token() == "tok1"
        clock.now += 3600 - 61
        assert await tokens.get_token() == "tok1"
        clock.now += 2  # now inside the 60s buffer
        assert await tokens.get_token() == "tok2"

    @pytest.mark.asyncio
    async def test_concurrent_callers_single_refresh(self):
        calls = []

        async def handler(request):
            calls.append(request)
            await asyncio.sleep(0.01)
            return httpx.Response(200, json={"access_token": "shared", "expires_in": 3600})

        tokens = _provider(handler)
        results = await asyncio.gather(*(tokens.get_token() for _ in range(10)))
        assert results == ["shared"] * 10
        assert len(calls) == 1
        assert tokens.refresh_count == 1

    @pytest.mark.asyncio
    async def test_invalidate_forces_refresh(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"access_token": f"tok{len(calls)}"})

        tokens = _provider(handler)
        await tokens.get_token()
        tokens.invalidate()
        assert await tokens.get_token() == "tok2"

    @pytest.mark.asyncio
    async def test_sends_client_credentials(self):
        seen = {}

        def handler(request):
            seen["body"] = request.content.decode()
            return httpx.Response(200, json={"access_token": "t"})

        await _provider(handler).get_token()
        assert '"grant_type":' in seen["body"] and "client_credentials" in seen["body"]

    @pytest.mark.asyncio
    async def test_missing_token_raises(self):
        tokens = _provider(lambda r: httpx.Response(200, json={"error": "nope"}))
        with pytest.raises(ProviderError):
            await tokens.get_token()

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        tokens = _provider(lambda r: httpx.Response(401, json={"error": "bad creds"}))
        with pytest.raises(ProviderError):
            await tokens.get_token()
