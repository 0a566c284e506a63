"""
Read-only integrity run over the top creators of each platform.
"""

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from loguru import logger

from ..errors import AuthError, PlatformError
from ..models.schemas import CheckStatus, IntegrityCheckResult, IntegrityTally, PipelineConfig, Platform
from ..sources.base import PlatformClient
from ..storage.supabase_client import CreatorRepository
from ..utils.parsers import NEW_YORK
from .checks import api_match_checks, history_checks

# Instagram has no live source cheap enough to run on every check.
CHECKED_PLATFORMS = (Platform.YOUTUBE, Platform.TWITCH, Platform.TIKTOK, Platform.KICK)


class IntegrityChecker:
    """
    Validates stored stats for the top N creators per platform.

    Never writes. The exit code of the resulting tally is 1 iff any check
    failed.
    """

    def __init__(
        self,
        repository: CreatorRepository,
        client_factory: Callable[[Platform], PlatformClient],
        is_configured: Callable[[Platform], bool] = lambda platform: True,
        config: Optional[PipelineConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], datetime] = lambda: datetime.now(NEW_YORK),
    ):
        self.repository = repository
        self.client_factory = client_factory
        self.is_configured = is_configured
        self.config = config or PipelineConfig()
        self._sleep = sleep
        self._now = now

    def _record(self, tally: IntegrityTally, platform: Platform, creator: Dict[str, Any],
                check: str, status: CheckStatus, detail: str) -> None:
        result = IntegrityCheckResult(
            platform=platform, username=creator['username'], check=check, status=status, detail=detail,
        )
        tally.record(result)
        message = f"    [{status.value}] {check} {detail}"
        if status == CheckStatus.PASS:
            logger.info(message)
        elif status == CheckStatus.WARN:
            logger.warning(message)
        else:
            logger.error(message)

    async def check_creator(self, tally: IntegrityTally, client: PlatformClient, creator: Dict[str, Any]) -> None:
        platform = client.platform
        logger.info(f"  {creator.get('display_name') or creator['username']} @{creator['username']}")

        history = self.repository.stat_history(creator['id'], self.config.integrity_history_days)
        for check, status, detail in history_checks(platform, history, self._now(), creator.get('created_at')):
            self._record(tally, platform, creator, check, status, detail)

        try:
            live = await client.fetch_profile(client.identifier_for(creator))
        except AuthError:
            raise
        except PlatformError as e:
            self._record(tally, platform, creator, 'API match', CheckStatus.WARN, f"Could not fetch live data: {e}")
            return

        if not history:
            self._record(tally, platform, creator, 'API match', CheckStatus.FAIL, "No stored stats to compare against")
            return

        for check, status, detail in api_match_checks(platform, history[0], live):
            self._record(tally, platform, creator, check, status, detail)

    async def check_platform(self, tally: IntegrityTally, platform: Platform) -> None:
        if not self.is_configured(platform):
            logger.warning(f"{platform.value}: skipped, credentials not configured")
            return

        creators = self.repository.top_by_followers(
            platform, self.config.integrity_top_n, self.config.top_window_days,
        )
        if not creators:
            logger.warning(f"{platform.value}: no creators with recent stats found")
            return

        client = self.client_factory(platform)
        try:
            for creator in creators:
                await self.check_creator(tally, client, creator)
                if platform == Platform.TIKTOK:
                    await self._sleep(self.config.integrity_live_delay)
        finally:
            await client.close()

    async def run(self, platforms: Iterable[Platform] = CHECKED_PLATFORMS) -> IntegrityTally:
        tally = IntegrityTally()
        logger.info(
            f"Data integrity run: top {self.config.integrity_top_n} creators per platform, "
            f"{self._now().strftime('%Y-%m-%d %H:%M')} New York"
        )

        for platform in platforms:
            logger.info(f"{'-' * 20} {platform.value.upper()} {'-' * 20}")
            await self.check_platform(tally, Platform(platform))

        logger.info(f"RESULTS ({tally.total} checks): PASS {tally.passed}, WARN {tally.warned}, FAIL {tally.failed}")
        if tally.failed:
            logger.error(f"{tally.failed} check(s) failed. Investigate before next data collection run.")
        elif tally.warned:
            logger.warning(f"All checks passed with {tally.warned} warning(s).")
        else:
            logger.success(f"All {tally.total} checks passed.")
        return tally
