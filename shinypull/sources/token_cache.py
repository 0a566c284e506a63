"""
OAuth client-credentials token cache shared by the Twitch and Kick clients.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

import httpx
from loguru import logger

from ..errors import AuthError, NetworkError, UpstreamHTTPError, is_transient_upstream_error

# Tokens are considered expired this many seconds before the upstream says so.
EXPIRY_MARGIN_SECONDS = 300


class TokenCache:
    """
    Holds one bearer token and its expiry for a client-credentials grant.

    One instance per OAuth client per process; pass it to the platform
    client that needs it.
    """

    def __init__(
        self,
        platform: str,
        token_url: str,
        client_id: Optional[str],
        client_secret: Optional[str],
        http_client: Optional[httpx.AsyncClient] = None,
        max_retries: int = 2,
        retry_delay: float = 3.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize token cache.

        Args:
            platform: Platform name for errors and logging
            token_url: OAuth token endpoint
            client_id: OAuth client id
            client_secret: OAuth client secret
            http_client: Shared httpx client (created lazily if omitted)
            max_retries: Extra attempts on a transient upstream failure
            retry_delay: Seconds between attempts
            clock: Returns the current time in seconds
            sleep: Awaitable sleep used between attempts
        """
        self.platform = platform
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._http = http_client
        self._owns_http = http_client is None
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()

        self.token: Optional[str] = None
        self.expires_at_ms: float = 0
        self.requests_made = 0

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def is_valid(self) -> bool:
        return self.token is not None and self._now_ms() < self.expires_at_ms

    def invalidate(self) -> None:
        """Drop the cached token (e.g. after an upstream 401)."""
        self.token = None
        self.expires_at_ms = 0

    async def get_token(self) -> str:
        """Return a valid bearer token, requesting a new one only when needed."""
        if self.is_valid():
            return self.token

        async with self._lock:
            # Another caller may have refreshed while we waited.
            if self.is_valid():
                return self.token
            return await self._refresh()

    async def _refresh(self) -> str:
        if not self.client_id or not self.client_secret:
            raise AuthError(
                self.platform,
                f"Missing credentials: CLIENT_ID={bool(self.client_id)}, SECRET={bool(self.client_secret)}",
            )

        if self._http is None:
            self._http = httpx.AsyncClient(timeout=30.0)

        attempts = self.max_retries + 1
        attempt = 0
        while True:
            attempt += 1
            self.requests_made += 1
            try:
                response = await self._http.post(
                    self.token_url,
                    data={
                        'client_id': self.client_id,
                        'client_secret': self.client_secret,
                        'grant_type': 'client_credentials',
                    },
                    headers={'Content-Type': 'application/x-www-form-urlencoded'},
                )
            except httpx.TransportError as e:
                raise NetworkError(self.platform, f"Token request failed: {type(e).__name__}: {e}") from e

            if response.status_code < 400:
                data = response.json()
                token = data.get('access_token')
                if not token:
                    raise AuthError(self.platform, "Token response did not include access_token")
                expires_in = float(data.get('expires_in') or 0)
                self.token = token
                self.expires_at_ms = self._now_ms() + (expires_in - EXPIRY_MARGIN_SECONDS) * 1000
                logger.info(f"{self.platform}: obtained access token (expires in {int(expires_in)}s)")
                return token

            body = response.text
            if is_transient_upstream_error(body) and attempt < attempts:
                logger.warning(
                    f"{self.platform}: transient token failure ({response.status_code}), "
                    f"retrying in {self.retry_delay}s (attempt {attempt}/{attempts})"
                )
                await self._sleep(self.retry_delay)
                continue

            if response.status_code in (400, 401, 403) and not is_transient_upstream_error(body):
                raise AuthError(self.platform, f"Failed to get access token: {response.status_code} - {body}")
            raise UpstreamHTTPError(self.platform, response.status_code, body)

    async def close(self) -> None:
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None
