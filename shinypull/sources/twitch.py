"""
Twitch Helix API client.
"""

import asyncio
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from ..errors import NotFoundError, PlatformError
from ..models.schemas import CreatorSnapshot, Platform
from .base import PlatformClient
from .normalizer import normalize_twitch, normalize_twitch_search
from .token_cache import TokenCache

TWITCH_TOKEN_URL = "https://id.twitch.tv/oauth2/token"
TWITCH_API_BASE = "https://api.twitch.tv/helix"


class TwitchClient(PlatformClient):
    """App-token Helix client; follower counts come from channels/followers."""

    platform = Platform.TWITCH

    def __init__(self, token_cache: TokenCache, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(http_client)
        self.token_cache = token_cache

    @classmethod
    def from_credentials(
        cls,
        client_id: Optional[str],
        client_secret: Optional[str],
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "TwitchClient":
        cache = TokenCache('twitch', TWITCH_TOKEN_URL, client_id, client_secret, http_client=http_client)
        return cls(cache, http_client)

    async def _headers(self) -> Dict[str, str]:
        token = await self.token_cache.get_token()
        return {
            'Client-ID': self.token_cache.client_id,
            'Authorization': f"Bearer {token}",
        }

    async def _get(self, endpoint: str, params: Dict[str, Any], identifier: Optional[str] = None) -> Dict[str, Any]:
        response = await self._send(
            'GET', f"{TWITCH_API_BASE}/{endpoint}", identifier,
            params=params,
            headers=await self._headers(),
        )
        if response.status_code == 401:
            # Token revoked or expired early; the next call fetches a fresh one.
            self.token_cache.invalidate()
        self._raise_for_status(response, identifier)
        return response.json()

    async def _followers(self, broadcaster_id: str, login: str) -> Dict[str, Any]:
        return await self._get('channels/followers', {'broadcaster_id': broadcaster_id, 'first': 1}, login)

    async def _channel_info(self, broadcaster_id: str, login: str) -> Optional[Dict[str, Any]]:
        """Current game for a broadcaster; missing info is not an error."""
        try:
            data = await self._get('channels', {'broadcaster_id': broadcaster_id}, login)
        except PlatformError as e:
            logger.warning(f"twitch: could not load channel info for {login}: {e}")
            return None
        items = data.get('data') or []
        return items[0] if items else None

    async def fetch_profile(self, identifier: str) -> CreatorSnapshot:
        login = identifier.strip().lstrip('@').lower()
        data = await self._get('users', {'login': login}, login)
        users = data.get('data') or []
        if not users:
            raise NotFoundError(self.platform.value, f"User {login} not found", login)

        user = users[0]
        followers = await self._followers(user['id'], login)
        channel_info = await self._channel_info(user['id'], login)
        return normalize_twitch(user, followers, channel_info)

    async def search_profiles(self, query: str, max_results: int = 10) -> List[CreatorSnapshot]:
        """Search channels and look up each result's follower total concurrently."""
        data = await self._get('search/channels', {'query': query, 'first': max(1, min(100, max_results))})
        channels = data.get('data') or []

        async def with_followers(channel: Dict[str, Any]) -> CreatorSnapshot:
            try:
                payload = await self._followers(str(channel['id']), channel['broadcaster_login'])
                total = payload.get('total') or 0
            except PlatformError as e:
                logger.warning(f"twitch: follower lookup failed for {channel['broadcaster_login']}: {e}")
                total = 0
            return normalize_twitch_search(channel, total)

        return list(await asyncio.gather(*(with_followers(channel) for channel in channels)))

    async def close(self) -> None:
        await super().close()
        await self.token_cache.close()
