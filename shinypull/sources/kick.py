"""
Kick public API client.
"""

from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from ..errors import NotFoundError, PlatformError
from ..models.schemas import CreatorSnapshot, Platform
from .base import PlatformClient
from .normalizer import normalize_kick
from .token_cache import TokenCache

KICK_TOKEN_URL = "https://id.kick.com/oauth/token"
KICK_API_BASE = "https://api.kick.com/public/v1"
KICK_BATCH_SIZE = 50


class KickClient(PlatformClient):
    """
    Kick client keyed by channel slug.

    Follower counts are not published; ``active_subscribers_count`` stands in.
    """

    platform = Platform.KICK
    supports_batch = True

    def __init__(self, token_cache: TokenCache, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(http_client)
        self.token_cache = token_cache

    @classmethod
    def from_credentials(
        cls,
        client_id: Optional[str],
        client_secret: Optional[str],
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "KickClient":
        cache = TokenCache('kick', KICK_TOKEN_URL, client_id, client_secret, http_client=http_client)
        return cls(cache, http_client)

    async def _get(self, endpoint: str, params: Any, identifier: Optional[str] = None) -> Dict[str, Any]:
        token = await self.token_cache.get_token()
        response = await self._send(
            'GET', f"{KICK_API_BASE}/{endpoint}", identifier,
            params=params,
            headers={'Authorization': f"Bearer {token}", 'Accept': 'application/json'},
        )
        if response.status_code == 401:
            self.token_cache.invalidate()
        self._raise_for_status(response, identifier)
        return response.json()

    async def _users(self, user_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        """Profile pictures live on the users endpoint, keyed by user id."""
        if not user_ids:
            return {}
        try:
            data = await self._get('users', [('id', user_id) for user_id in user_ids])
        except PlatformError as e:
            logger.warning(f"kick: user lookup failed, using banner images: {e}")
            return {}
        return {str(user['user_id']): user for user in data.get('data') or [] if 'user_id' in user}

    async def fetch_many(self, identifiers: List[str]) -> Dict[str, CreatorSnapshot]:
        """Fetch channels by slug, 50 per request, keyed by lowercased slug."""
        snapshots: Dict[str, CreatorSnapshot] = {}
        slugs = [slug.strip().lstrip('@').lower() for slug in identifiers]
        for start in range(0, len(slugs), KICK_BATCH_SIZE):
            batch = slugs[start:start + KICK_BATCH_SIZE]
            data = await self._get('channels', [('slug', slug) for slug in batch])
            channels = data.get('data') or []
            users = await self._users([str(c['broadcaster_user_id']) for c in channels])
            for channel in channels:
                snapshot = normalize_kick(channel, users.get(str(channel['broadcaster_user_id'])))
                snapshots[snapshot.username.lower()] = snapshot
        return snapshots

    async def fetch_profile(self, identifier: str) -> CreatorSnapshot:
        slug = identifier.strip().lstrip('@').lower()
        channels = await self.fetch_many([slug])
        if slug not in channels:
            raise NotFoundError(self.platform.value, f"Channel {slug} not found", slug)
        return channels[slug]

    async def search_profiles(self, query: str, max_results: int = 1) -> List[CreatorSnapshot]:
        """Kick has no public search; treat the query as an exact slug."""
        try:
            return [await self.fetch_profile(query)]
        except NotFoundError:
            return []

    async def close(self) -> None:
        await super().close()
        await self.token_cache.close()
