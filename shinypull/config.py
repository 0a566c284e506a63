"""
Environment-backed settings for maintenance runs.
"""

import os
from typing import Optional

from pydantic import BaseModel

from .errors import ConfigError


def _first_env(*names: str) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


class Settings(BaseModel):
    """Credentials and endpoints read from the environment."""

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    youtube_api_key: Optional[str] = None
    twitch_client_id: Optional[str] = None
    twitch_client_secret: Optional[str] = None
    kick_client_id: Optional[str] = None
    kick_client_secret: Optional[str] = None
    redis_url: str = "redis://localhost:6379/0"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables (VITE_ names accepted as fallbacks)."""
        return cls(
            supabase_url=_first_env("SUPABASE_URL", "VITE_SUPABASE_URL"),
            supabase_key=_first_env("SUPABASE_SERVICE_KEY", "SUPABASE_SERVICE_ROLE_KEY"),
            youtube_api_key=_first_env("YOUTUBE_API_KEY", "VITE_YOUTUBE_API_KEY"),
            twitch_client_id=_first_env("TWITCH_CLIENT_ID", "VITE_TWITCH_CLIENT_ID"),
            twitch_client_secret=_first_env("TWITCH_CLIENT_SECRET", "VITE_TWITCH_CLIENT_SECRET"),
            kick_client_id=_first_env("KICK_CLIENT_ID"),
            kick_client_secret=_first_env("KICK_CLIENT_SECRET"),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    @property
    def has_youtube(self) -> bool:
        return bool(self.youtube_api_key)

    @property
    def has_twitch(self) -> bool:
        return bool(self.twitch_client_id and self.twitch_client_secret)

    @property
    def has_kick(self) -> bool:
        return bool(self.kick_client_id and self.kick_client_secret)

    def require_store(self) -> None:
        """Raise ConfigError unless Supabase credentials are present."""
        if not self.supabase_url or not self.supabase_key:
            raise ConfigError("Supabase URL and service key must be provided")
