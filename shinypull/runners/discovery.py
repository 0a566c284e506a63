"""
Discover creators not yet tracked on a platform and add them.
"""

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, Iterable, List, Optional, Set, Tuple

from loguru import logger

from ..errors import AuthError, PlatformError, StorageError, is_rate_limited
from ..models.schemas import PipelineConfig, Platform, RunSummary
from ..sources.base import PlatformClient
from ..storage.supabase_client import CreatorRepository

# (dedupe key, identifier passed to fetch_profile)
Candidate = Tuple[str, str]


def load_candidates(path: str) -> List[str]:
    """Read one username per line; blank lines and ``#`` comments are skipped."""
    lines = Path(path).read_text(encoding='utf-8').splitlines()
    return [line.strip() for line in lines if line.strip() and not line.strip().startswith('#')]


def fresh_candidates(candidates: Iterable[Candidate], existing: Set[str], count: int) -> List[Candidate]:
    """
    First ``count`` candidates not already tracked.

    Matching is case-insensitive, both against ``existing`` and within the
    candidate list itself.
    """
    seen = set(existing)
    fresh = []
    for key, identifier in candidates:
        lowered = key.strip().lstrip('@').lower()
        if not lowered or lowered in seen:
            continue
        seen.add(lowered)
        fresh.append((lowered, identifier))
        if len(fresh) >= count:
            break
    return fresh


class DiscoveryRunner:
    """Fetch and store creators that are new to one platform."""

    def __init__(
        self,
        client: PlatformClient,
        repository: CreatorRepository,
        config: Optional[PipelineConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.platform: Platform = client.platform
        self.repository = repository
        self.config = config or PipelineConfig()
        self._sleep = sleep

    async def gather_candidates(
        self,
        candidates: Optional[List[str]] = None,
        query: Optional[str] = None,
        count: int = 25,
    ) -> List[Candidate]:
        """
        Build the candidate list.

        Explicit candidates win; otherwise a search query; otherwise the
        usernames already tracked on the other platforms.
        """
        if candidates is not None:
            return [(name, name) for name in candidates]

        if query:
            results = await self.client.search_profiles(query, max_results=count)
            return [
                (snapshot.username, self.client.identifier_for(snapshot.model_dump()))
                for snapshot in results
            ]

        others = [platform for platform in Platform if platform != self.platform]
        return [(name, name) for name in self.repository.cross_platform_usernames(others)]

    async def run(
        self,
        count: int = 25,
        candidates: Optional[List[str]] = None,
        query: Optional[str] = None,
        queue_only: bool = False,
    ) -> RunSummary:
        """
        Discover up to ``count`` new creators.

        Args:
            count: Maximum number of fresh candidates to process
            candidates: Explicit usernames (e.g. from a file)
            query: Free-text search used when no candidates are given
            queue_only: Insert pending creator requests instead of fetching now

        Returns:
            RunSummary; ``stopped_early`` is set when a rate-limit signal ended the run
        """
        summary = RunSummary(platform=self.platform)

        existing = self.repository.existing_usernames(self.platform)
        if queue_only:
            existing |= self.repository.queued_usernames(self.platform)
        pool = await self.gather_candidates(candidates, query, count)
        fresh = fresh_candidates(pool, existing, count)

        logger.info(
            f"{self.platform.value} discovery: {len(existing)} already known, "
            f"{len(pool)} candidates, processing {len(fresh)}"
        )

        if queue_only:
            for username, _ in fresh:
                self.repository.insert_request(self.platform, username)
                summary.record_success(username)
            return summary

        for index, (username, identifier) in enumerate(fresh):
            if index > 0:
                await self._sleep(self.config.discovery_delay)

            try:
                snapshot = await self.client.fetch_profile(identifier)
                creator = self.repository.upsert_creator(snapshot)
                self.repository.upsert_daily_stat(creator['id'], snapshot)
            except AuthError:
                raise
            except (PlatformError, StorageError) as e:
                summary.record_failure(username, e)
                if is_rate_limited(e):
                    summary.stopped_early = True
                    logger.warning(
                        f"{self.platform.value} discovery: rate limited on {username}, "
                        f"stopping with {len(fresh) - index - 1} candidate(s) left"
                    )
                    break
                logger.warning(f"{self.platform.value} discovery: skipping {username}: {e}")
                continue

            summary.record_success(username)
            logger.info(f"[{index + 1}/{len(fresh)}] Added {snapshot.username} ({snapshot.followers:,} followers)")

        logger.info(
            f"{self.platform.value} discovery finished: {summary.succeeded} added, {summary.failed} failed"
        )
        return summary
