"""Platform clients and the factory that wires them from settings."""

from typing import Optional

import httpx

from ..config import Settings
from ..errors import AuthError
from ..models.schemas import Platform
from .base import PlatformClient
from .instagram import InstagramClient
from .kick import KickClient
from .tiktok import TikTokClient
from .token_cache import TokenCache
from .twitch import TwitchClient
from .youtube import YouTubeClient


def build_client(
    platform: Platform,
    settings: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
) -> PlatformClient:
    """
    Create the client for a platform.

    Raises:
        AuthError: the platform needs credentials that are not configured
    """
    platform = Platform(platform)
    if platform == Platform.YOUTUBE:
        if not settings.has_youtube:
            raise AuthError(platform.value, "YOUTUBE_API_KEY is not set")
        return YouTubeClient(settings.youtube_api_key, http_client)
    if platform == Platform.TWITCH:
        if not settings.has_twitch:
            raise AuthError(platform.value, "TWITCH_CLIENT_ID and TWITCH_CLIENT_SECRET are not set")
        return TwitchClient.from_credentials(settings.twitch_client_id, settings.twitch_client_secret, http_client)
    if platform == Platform.KICK:
        if not settings.has_kick:
            raise AuthError(platform.value, "KICK_CLIENT_ID and KICK_CLIENT_SECRET are not set")
        return KickClient.from_credentials(settings.kick_client_id, settings.kick_client_secret, http_client)
    if platform == Platform.TIKTOK:
        return TikTokClient(http_client)
    return InstagramClient()


def platform_configured(platform: Platform, settings: Settings) -> bool:
    """Whether ``build_client`` would succeed for this platform."""
    platform = Platform(platform)
    if platform == Platform.YOUTUBE:
        return settings.has_youtube
    if platform == Platform.TWITCH:
        return settings.has_twitch
    if platform == Platform.KICK:
        return settings.has_kick
    return True


__all__ = [
    "PlatformClient",
    "TokenCache",
    "YouTubeClient",
    "TwitchClient",
    "KickClient",
    "TikTokClient",
    "InstagramClient",
    "build_client",
    "platform_configured",
]
