"""
TikTok profile scraper over plain HTTP.

TikTok embeds the full profile (followers, likes, video count) as JSON in a
``__UNIVERSAL_DATA_FOR_REHYDRATION__`` script tag, so no browser is needed.
"""

import json
import re
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from ..errors import NotFoundError, ParseError
from ..models.schemas import CreatorSnapshot, Platform
from ..utils.ua_rotation import ua_rotator
from .base import PlatformClient
from .normalizer import normalize_tiktok

TIKTOK_PROFILE_URL = "https://www.tiktok.com/@{username}"
REHYDRATION_PATTERN = re.compile(
    r'<script\s+id="__UNIVERSAL_DATA_FOR_REHYDRATION__"[^>]*>(.*?)</script>',
    re.DOTALL,
)


def extract_user_info(html: str, username: str) -> Dict[str, Any]:
    """
    Pull ``webapp.user-detail.userInfo`` out of a profile page.

    Raises:
        ParseError: no rehydration script, invalid JSON, or no user info
        NotFoundError: TikTok reports the account does not exist
    """
    match = REHYDRATION_PATTERN.search(html)
    if not match:
        raise ParseError('tiktok', f"No rehydration data found for {username}", username)

    try:
        data = json.loads(match.group(1))
    except json.JSONDecodeError as e:
        raise ParseError('tiktok', f"Failed to parse rehydration JSON for {username}: {e}", username) from e

    detail = (data.get('__DEFAULT_SCOPE__') or {}).get('webapp.user-detail') or {}
    user_info = detail.get('userInfo')
    if not user_info:
        # 10221/10202: user does not exist or is banned
        if detail.get('statusCode') in (10221, 10202):
            raise NotFoundError('tiktok', f"User {username} not found", username)
        raise ParseError('tiktok', f"No user info found for {username}", username)
    return user_info


class TikTokClient(PlatformClient):
    """Fetches profile pages with browser-like headers."""

    platform = Platform.TIKTOK

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, timeout: float = 15.0):
        super().__init__(http_client, timeout=timeout)

    async def fetch_profile(self, identifier: str) -> CreatorSnapshot:
        username = identifier.strip().lstrip('@')
        url = TIKTOK_PROFILE_URL.format(username=username)

        response = await self._send('GET', url, username, headers=ua_rotator.browser_headers('tiktok'))
        self._raise_for_status(response, username)

        user_info = extract_user_info(response.text, username)
        snapshot = normalize_tiktok(user_info, username)
        logger.debug(f"tiktok: {snapshot.username} has {snapshot.followers} followers")
        return snapshot
