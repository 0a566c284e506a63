"""
Exception hierarchy and error classification for the collection pipeline.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(PipelineError):
    """Required configuration is missing or invalid."""


class StorageError(PipelineError):
    """A read or write against the relational store failed."""


class PlatformError(PipelineError):
    """
    Base class for errors raised by a platform client.

    Attributes:
        platform: Platform name (youtube, twitch, kick, tiktok, instagram)
        identifier: Login/slug/channel id being fetched, if any
    """

    def __init__(self, platform: str, message: str, identifier: Optional[str] = None):
        self.platform = platform
        self.identifier = identifier
        self.message = message
        super().__init__(f"[{platform}] {message}")


class AuthError(PlatformError):
    """Bad or missing credentials. Never retried."""


class UpstreamHTTPError(PlatformError):
    """The platform answered with an HTTP status >= 400."""

    def __init__(self, platform: str, status: int, body: str = "", identifier: Optional[str] = None):
        self.status = status
        self.body = body or ""
        super().__init__(platform, f"HTTP {status}: {self.body[:200]}", identifier)

    @property
    def is_transient(self) -> bool:
        return is_transient_upstream_error(self.body)

    @property
    def is_rate_limited(self) -> bool:
        return is_rate_limit_signal(self.status, self.body)


class NetworkError(PlatformError):
    """The request never produced a response (timeout, DNS, refused connection, browser navigation)."""


class ParseError(PlatformError):
    """The page or JSON did not have the expected shape (site structure changed)."""


class NotFoundError(PlatformError):
    """The platform confirms the identifier does not exist."""


TRANSIENT_MARKERS = ("read-only transaction", "SQLSTATE")
RATE_LIMIT_STATUSES = (429, 403)


def is_transient_upstream_error(body: Optional[str]) -> bool:
    """Return True if an error body describes a condition worth retrying."""
    if not body:
        return False
    return any(marker in body for marker in TRANSIENT_MARKERS)


def is_rate_limit_signal(status: Optional[int], body: str = "") -> bool:
    """
    Return True if a response means "stop this batch now".

    Both 429 and 403 count: scrapers get 403 once an IP is blocked.
    """
    return status in RATE_LIMIT_STATUSES


def is_rate_limited(error: BaseException) -> bool:
    """Classify an exception raised while fetching one item."""
    if isinstance(error, UpstreamHTTPError):
        return error.is_rate_limited
    return False
