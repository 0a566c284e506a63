"""
Common interface for platform clients.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from ..errors import NetworkError, NotFoundError, UpstreamHTTPError
from ..models.schemas import CreatorSnapshot, Platform


class PlatformClient(ABC):
    """Fetches one creator's canonical snapshot from a platform."""

    platform: Platform
    supports_batch = False

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        self._http = http_client
        self._owns_http = http_client is None
        self.timeout = timeout

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._http

    @abstractmethod
    async def fetch_profile(self, identifier: str) -> CreatorSnapshot:
        """Fetch one creator by login/slug (YouTube also accepts a channel id)."""

    async def search_profiles(self, query: str, max_results: int = 25) -> List[CreatorSnapshot]:
        """Search creators by free text; not every platform supports this."""
        raise NotImplementedError(f"{self.platform.value} does not support search")

    async def fetch_many(self, identifiers: List[str]) -> Dict[str, CreatorSnapshot]:
        """Fetch several creators in one upstream call, keyed by identifier."""
        raise NotImplementedError(f"{self.platform.value} does not support batch fetch")

    def identifier_for(self, creator: Dict[str, Any]) -> str:
        """Identifier to pass to fetch_profile when refreshing a stored creator."""
        return creator['username']

    async def _send(self, method: str, url: str, identifier: Optional[str] = None, **kwargs: Any) -> httpx.Response:
        """Issue a request, re-raising transport failures as ``NetworkError``."""
        try:
            return await self.http.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.debug(f"{self.platform.value} {method} {url} failed: {type(e).__name__}: {e}")
            raise NetworkError(self.platform.value, f"{type(e).__name__}: {e}", identifier) from e

    def _raise_for_status(self, response: httpx.Response, identifier: Optional[str] = None) -> None:
        """Map HTTP errors onto the pipeline taxonomy."""
        if response.status_code < 400:
            return
        body = response.text
        if response.status_code == 404:
            raise NotFoundError(self.platform.value, f"{identifier or response.url} not found (HTTP 404)", identifier)
        logger.debug(f"{self.platform.value} HTTP {response.status_code} for {response.url}: {body[:200]}")
        raise UpstreamHTTPError(self.platform.value, response.status_code, body, identifier)

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None
