"""
Refresh stats for the least recently updated creators on a platform.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger

from ..errors import AuthError, NotFoundError, PlatformError, StorageError, is_rate_limited
from ..models.schemas import CreatorSnapshot, PipelineConfig, Platform, RunSummary
from ..sources.base import PlatformClient
from ..storage.supabase_client import CreatorRepository
from ..utils.parsers import today_local

BATCH_SIZE = 50


class RefreshRunner:
    """Re-fetch tracked creators and write today's stat row for each."""

    def __init__(
        self,
        client: PlatformClient,
        repository: CreatorRepository,
        config: Optional[PipelineConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        today: Callable[[], str] = today_local,
    ):
        self.client = client
        self.platform: Platform = client.platform
        self.repository = repository
        self.config = config or PipelineConfig()
        self._sleep = sleep
        self._today = today

    def _delay(self) -> float:
        return self.config.refresh_delay + random.uniform(0, self.config.refresh_jitter)

    def _store(self, snapshot: CreatorSnapshot, recorded_at: str) -> None:
        creator = self.repository.upsert_creator(snapshot)
        self.repository.upsert_daily_stat(creator['id'], snapshot, recorded_at)

    async def run(self, count: int = 50) -> RunSummary:
        """
        Refresh up to ``count`` creators, oldest ``updated_at`` first.

        Stops at the first rate-limit signal; rows already written stay.
        """
        summary = RunSummary(platform=self.platform)
        creators = self.repository.least_recently_updated(self.platform, count)
        recorded_at = self._today()
        logger.info(f"{self.platform.value} refresh: {len(creators)} creator(s) for {recorded_at}")

        if self.client.supports_batch:
            await self._run_batched(creators, recorded_at, summary)
        else:
            await self._run_sequential(creators, recorded_at, summary)

        logger.info(
            f"{self.platform.value} refresh finished: {summary.succeeded} updated, "
            f"{summary.failed} failed{' (stopped early)' if summary.stopped_early else ''}"
        )
        return summary

    async def _run_sequential(self, creators: List[Dict[str, Any]], recorded_at: str, summary: RunSummary) -> None:
        for index, creator in enumerate(creators):
            if index > 0:
                await self._sleep(self._delay())

            identifier = self.client.identifier_for(creator)
            try:
                snapshot = await self.client.fetch_profile(identifier)
                self._store(snapshot, recorded_at)
            except AuthError:
                raise
            except (PlatformError, StorageError) as e:
                summary.record_failure(identifier, e)
                if is_rate_limited(e):
                    summary.stopped_early = True
                    logger.warning(
                        f"{self.platform.value} refresh: rate limited on {identifier}, "
                        f"skipping remaining {len(creators) - index - 1}"
                    )
                    return
                logger.warning(f"{self.platform.value} refresh: {identifier} failed: {e}")
                continue

            summary.record_success(identifier)
            logger.info(f"[{index + 1}/{len(creators)}] {snapshot.username}: {snapshot.followers:,} followers")

    async def _run_batched(self, creators: List[Dict[str, Any]], recorded_at: str, summary: RunSummary) -> None:
        """One upstream call per batch, then the same per-creator write loop."""
        for start in range(0, len(creators), BATCH_SIZE):
            if start > 0:
                await self._sleep(self._delay())

            batch = creators[start:start + BATCH_SIZE]
            identifiers = [self.client.identifier_for(creator) for creator in batch]
            try:
                snapshots = await self.client.fetch_many(identifiers)
            except AuthError:
                raise
            except PlatformError as e:
                for identifier in identifiers:
                    summary.record_failure(identifier, e)
                if is_rate_limited(e):
                    summary.stopped_early = True
                    logger.warning(f"{self.platform.value} refresh: rate limited, stopping batch loop")
                    return
                logger.warning(f"{self.platform.value} refresh: batch of {len(identifiers)} failed: {e}")
                continue

            for identifier in identifiers:
                snapshot = snapshots.get(identifier) or snapshots.get(identifier.lower())
                if snapshot is None:
                    summary.record_failure(
                        identifier,
                        NotFoundError(self.platform.value, f"{identifier} missing from batch response", identifier),
                    )
                    logger.warning(f"{self.platform.value} refresh: {identifier} not returned by API")
                    continue
                try:
                    self._store(snapshot, recorded_at)
                except StorageError as e:
                    summary.record_failure(identifier, e)
                    continue
                summary.record_success(identifier)

            logger.info(
                f"{self.platform.value} refresh: batch {start // BATCH_SIZE + 1} done "
                f"({summary.succeeded}/{len(creators)} updated)"
            )
