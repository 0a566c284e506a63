"""
Main orchestrator for the collection pipeline.

Wires settings, the repository and platform clients into the runners; the
CLI and the RQ tasks both go through here.
"""

from typing import Iterable, List, Optional

import httpx
from loguru import logger

from .config import Settings
from .integrity.checker import CHECKED_PLATFORMS, IntegrityChecker
from .models.schemas import IntegrityTally, PipelineConfig, Platform, RequestOutcome, RunSummary
from .runners.discovery import DiscoveryRunner, load_candidates
from .runners.refresh import RefreshRunner
from .runners.requests import RequestProcessor
from .sources import build_client, platform_configured
from .sources.base import PlatformClient
from .storage.supabase_client import CreatorRepository


class PipelineOrchestrator:
    """Owns the shared HTTP client and the repository for one process."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        config: Optional[PipelineConfig] = None,
        repository: Optional[CreatorRepository] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            settings: Credentials (defaults to the environment)
            config: Run tunables
            repository: Pre-built repository (defaults to one built from settings)
            http_client: Shared httpx client for every platform client

        Raises:
            ConfigError: Supabase credentials are missing
        """
        self.settings = settings or Settings.from_env()
        self.config = config or PipelineConfig()
        if repository is None:
            self.settings.require_store()
            repository = CreatorRepository(self.settings.supabase_url, self.settings.supabase_key)
        self.repository = repository
        self._owns_http = http_client is None
        self.http = http_client or httpx.AsyncClient(timeout=30.0, follow_redirects=True)

        logger.info("Pipeline orchestrator initialized")

    def client(self, platform: Platform) -> PlatformClient:
        return build_client(Platform(platform), self.settings, self.http)

    async def discover(
        self,
        platform: Platform,
        count: int = 25,
        candidates_file: Optional[str] = None,
        query: Optional[str] = None,
        queue_only: bool = False,
    ) -> RunSummary:
        candidates: Optional[List[str]] = load_candidates(candidates_file) if candidates_file else None
        client = self.client(platform)
        try:
            runner = DiscoveryRunner(client, self.repository, self.config)
            return await runner.run(count, candidates=candidates, query=query, queue_only=queue_only)
        finally:
            await client.close()

    async def refresh(self, platform: Platform, count: int = 50) -> RunSummary:
        client = self.client(platform)
        try:
            return await RefreshRunner(client, self.repository, self.config).run(count)
        finally:
            await client.close()

    def _request_processor(self) -> RequestProcessor:
        return RequestProcessor(self.repository, self.client, self.config)

    async def process_requests(self, count: Optional[int] = None) -> RunSummary:
        processor = self._request_processor()
        try:
            return await processor.process_pending(count)
        finally:
            await processor.close()

    async def submit_request(self, platform: Platform, username: str, instant: bool = False) -> RequestOutcome:
        processor = self._request_processor()
        try:
            if instant:
                return await processor.instant_lookup(platform, username)
            return processor.submit_request(platform, username)
        finally:
            await processor.close()

    async def check_integrity(self, platforms: Iterable[Platform] = CHECKED_PLATFORMS) -> IntegrityTally:
        checker = IntegrityChecker(
            self.repository,
            self.client,
            lambda platform: platform_configured(platform, self.settings),
            self.config,
        )
        return await checker.run(platforms)

    def check_db(self) -> bool:
        healthy = self.repository.health_check()
        if healthy:
            for platform in Platform:
                logger.info(f"  {platform.value}: {self.repository.count_creators(platform)} creators")
        return healthy

    async def close(self):
        """Close the shared HTTP client."""
        if self._owns_http:
            await self.http.aclose()
        logger.info("Pipeline orchestrator closed")
