"""
Tests for the OAuth token cache.
"""

import asyncio

import httpx
import pytest

from shinypull.errors import AuthError, NetworkError, UpstreamHTTPError
from shinypull.sources.token_cache import EXPIRY_MARGIN_SECONDS, TokenCache

TOKEN_URL = "https://id.example.com/oauth2/token"


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_cache(handler, clock=None, sleeps=None, **kwargs):
    async def sleep(seconds):
        if sleeps is not None:
            sleeps.append(seconds)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TokenCache(
        'twitch', TOKEN_URL, 'client-id', 'client-secret',
        http_client=http_client, clock=clock or FakeClock(), sleep=sleep, **kwargs
    )


class TestTokenCache:
    """Test token caching, expiry and retries."""

    @pytest.mark.asyncio
    async def test_token_is_reused_until_expiry(self):
        """Test a cached token costs zero network calls."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={'access_token': f"token-{len(calls)}", 'expires_in': 3600})

        clock = FakeClock()
        cache = make_cache(handler, clock)

        assert await cache.get_token() == "token-1"
        clock.now += 3600 - EXPIRY_MARGIN_SECONDS - 1
        assert await cache.get_token() == "token-1"
        assert len(calls) == 1

        # Past (expires_in - 300) seconds the token is refreshed
        clock.now += 2
        assert await cache.get_token() == "token-2"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_grant_request_body(self):
        """Test the client-credentials grant is form encoded."""
        seen = {}

        def handler(request):
            seen['body'] = request.content.decode()
            seen['content_type'] = request.headers['content-type']
            return httpx.Response(200, json={'access_token': 'abc', 'expires_in': 3600})

        cache = make_cache(handler)
        await cache.get_token()

        assert 'grant_type=client_credentials' in seen['body']
        assert 'client_id=client-id' in seen['body']
        assert seen['content_type'] == 'application/x-www-form-urlencoded'

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_request(self):
        """Test concurrent get_token calls issue a single grant."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={'access_token': 'shared', 'expires_in': 3600})

        cache = make_cache(handler)
        tokens = await asyncio.gather(*(cache.get_token() for _ in range(5)))

        assert tokens == ['shared'] * 5
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self):
        """Test transient bodies are retried with a fixed delay."""
        responses = [
            httpx.Response(503, text="cannot execute in a read-only transaction"),
            httpx.Response(200, json={'access_token': 'recovered', 'expires_in': 3600}),
        ]
        sleeps = []
        cache = make_cache(lambda request: responses.pop(0), sleeps=sleeps)

        assert await cache.get_token() == 'recovered'
        assert sleeps == [3.0]
        assert cache.requests_made == 2

    @pytest.mark.asyncio
    async def test_transient_retries_are_bounded(self):
        """Test at most two additional attempts are made."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, text="SQLSTATE 40001")

        sleeps = []
        cache = make_cache(handler, sleeps=sleeps)

        with pytest.raises(UpstreamHTTPError) as exc_info:
            await cache.get_token()

        assert len(calls) == 3
        assert sleeps == [3.0, 3.0]
        assert exc_info.value.status == 500

    @pytest.mark.asyncio
    async def test_bad_credentials_fail_immediately(self):
        """Test non-transient 4xx raise AuthError without retrying."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400, json={'message': 'invalid client secret'})

        cache = make_cache(handler)
        with pytest.raises(AuthError):
            await cache.get_token()
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        """Test missing credentials raise AuthError before any request."""
        cache = TokenCache('kick', TOKEN_URL, None, 'secret')
        with pytest.raises(AuthError):
            await cache.get_token()
        assert cache.requests_made == 0

    @pytest.mark.asyncio
    async def test_invalidate_forces_refresh(self):
        """Test invalidate drops the cached token."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={'access_token': f"t{len(calls)}", 'expires_in': 3600})

        cache = make_cache(handler)
        await cache.get_token()
        cache.invalidate()
        assert not cache.is_valid()
        assert await cache.get_token() == 't2'

    @pytest.mark.asyncio
    async def test_connection_failure_is_a_network_error(self):
        """Test a refused connection surfaces as a NetworkError, not an httpx exception."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        cache = make_cache(handler)
        with pytest.raises(NetworkError):
            await cache.get_token()
        assert cache.requests_made == 1
