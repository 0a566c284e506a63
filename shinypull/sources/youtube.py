"""
YouTube Data API v3 client.
"""

import os
import re
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from ..errors import AuthError, NotFoundError
from ..models.schemas import CreatorSnapshot, Platform
from .base import PlatformClient
from .normalizer import normalize_youtube

YOUTUBE_API_BASE = "https://www.googleapis.com/youtube/v3"
# YouTube accepts up to 50 channel ids per channels.list call.
YOUTUBE_BATCH_SIZE = 50
CHANNEL_ID_PATTERN = re.compile(r'^UC[\w-]{22}$')


class YouTubeClient(PlatformClient):
    """Unauthenticated REST client keyed by an API key."""

    platform = Platform.YOUTUBE
    supports_batch = True

    def __init__(self, api_key: Optional[str] = None, http_client: Optional[httpx.AsyncClient] = None):
        """
        Initialize YouTube client.

        Args:
            api_key: YouTube Data API key (defaults to env var)
            http_client: Shared httpx client
        """
        super().__init__(http_client)
        self.api_key = api_key or os.getenv('YOUTUBE_API_KEY')

    def _require_key(self) -> str:
        if not self.api_key:
            raise AuthError(self.platform.value, "Missing YouTube API key")
        return self.api_key

    async def _get(self, endpoint: str, params: Dict[str, Any], identifier: Optional[str] = None) -> Dict[str, Any]:
        params = {**params, 'key': self._require_key()}
        response = await self._send('GET', f"{YOUTUBE_API_BASE}/{endpoint}", identifier, params=params)
        self._raise_for_status(response, identifier)
        return response.json()

    def identifier_for(self, creator: Dict[str, Any]) -> str:
        return creator['platform_id']

    async def fetch_profile(self, identifier: str) -> CreatorSnapshot:
        """
        Fetch a channel by id (``UC...``) or by @handle.

        Handles that ``forHandle`` cannot resolve fall back to a search and
        the first channel result.
        """
        identifier = identifier.strip()
        if CHANNEL_ID_PATTERN.match(identifier):
            channels = await self.fetch_many([identifier])
            if identifier not in channels:
                raise NotFoundError(self.platform.value, f"Channel {identifier} not found", identifier)
            return channels[identifier]

        handle = identifier.lstrip('@')
        data = await self._get(
            'channels',
            {'part': 'snippet,statistics', 'forHandle': handle},
            identifier,
        )
        items = data.get('items') or []
        if items:
            return normalize_youtube(items[0])

        logger.info(f"youtube: forHandle found nothing for {handle}, falling back to search")
        results = await self.search_profiles(handle, max_results=1)
        if not results:
            raise NotFoundError(self.platform.value, f"Channel {handle} not found", identifier)
        channel_id = results[0].platform_id
        channels = await self.fetch_many([channel_id])
        if channel_id not in channels:
            raise NotFoundError(self.platform.value, f"Channel {handle} not found", identifier)
        return channels[channel_id]

    async def fetch_many(self, identifiers: List[str]) -> Dict[str, CreatorSnapshot]:
        """Fetch channels by id, 50 per request, keyed by channel id."""
        snapshots: Dict[str, CreatorSnapshot] = {}
        for start in range(0, len(identifiers), YOUTUBE_BATCH_SIZE):
            batch = identifiers[start:start + YOUTUBE_BATCH_SIZE]
            data = await self._get('channels', {'part': 'snippet,statistics', 'id': ','.join(batch)})
            for item in data.get('items') or []:
                snapshots[item['id']] = normalize_youtube(item)
        return snapshots

    async def search_profiles(self, query: str, max_results: int = 25) -> List[CreatorSnapshot]:
        """Search channels; results carry identity fields only (no statistics)."""
        limit = max(1, min(YOUTUBE_BATCH_SIZE, max_results))
        data = await self._get(
            'search',
            {'part': 'snippet', 'type': 'channel', 'q': query, 'maxResults': limit},
        )
        results = []
        for item in data.get('items') or []:
            snippet = item.get('snippet') or {}
            channel_id = snippet.get('channelId') or (item.get('id') or {}).get('channelId')
            if not channel_id:
                continue
            results.append(normalize_youtube({
                'id': channel_id,
                'snippet': {
                    'title': snippet.get('channelTitle') or snippet.get('title'),
                    'description': snippet.get('description'),
                    'thumbnails': snippet.get('thumbnails'),
                },
            }))
        return results
