"""
User-submitted creator requests: submission, instant lookup, and the
background drain of the pending queue.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Dict, Optional

from loguru import logger

from ..errors import AuthError, PlatformError, StorageError, is_rate_limited
from ..models.schemas import (
    CreatorRequest,
    CreatorSnapshot,
    PipelineConfig,
    Platform,
    RequestOutcome,
    RequestStatus,
    RunSummary,
)
from ..sources.base import PlatformClient
from ..storage.supabase_client import CreatorRepository
from ..utils.parsers import normalize_username, today_local

ClientFactory = Callable[[Platform], PlatformClient]


class RequestProcessor:
    """Turns pending ``creator_requests`` rows into tracked creators."""

    def __init__(
        self,
        repository: CreatorRepository,
        client_factory: ClientFactory,
        config: Optional[PipelineConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the processor.

        Args:
            repository: Creator store
            client_factory: Returns the client for a platform; called at most once per platform
            config: Delays, batch size and instant-lookup timeout
            sleep: Awaitable sleep used between requests
        """
        self.repository = repository
        self.client_factory = client_factory
        self.config = config or PipelineConfig()
        self._sleep = sleep
        self._clients: Dict[Platform, PlatformClient] = {}

    def client_for(self, platform: Platform) -> PlatformClient:
        platform = Platform(platform)
        if platform not in self._clients:
            self._clients[platform] = self.client_factory(platform)
        return self._clients[platform]

    def _store(self, snapshot: CreatorSnapshot) -> Dict[str, Any]:
        """Reuse the creator with the same (platform, platform_id) if present, then write today's stats."""
        creator = self.repository.get_creator(snapshot.platform, snapshot.platform_id)
        if creator:
            logger.info(f"[{snapshot.username}] Creator already exists, using existing ID")
        else:
            creator = self.repository.upsert_creator(snapshot)
            logger.info(f"[{snapshot.username}] Creator inserted into database")
        self.repository.upsert_daily_stat(creator['id'], snapshot, today_local())
        return creator

    async def process_pending(self, limit: Optional[int] = None) -> RunSummary:
        """
        Process up to ``limit`` pending requests, oldest first.

        Success marks the request ``completed``; a rate-limit signal puts it
        back to ``pending`` and ends the batch; any other failure marks it
        ``failed`` with the error message.
        """
        summary = RunSummary()
        rows = self.repository.pending_requests(limit or self.config.request_batch_size)
        if not rows:
            logger.info("No pending creator requests")
            return summary

        logger.info(f"Processing {len(rows)} pending creator request(s)")
        for index, row in enumerate(rows):
            if index > 0:
                await self._sleep(random.uniform(self.config.request_delay_min, self.config.request_delay_max))

            request = CreatorRequest.from_row(row)
            label = f"{request.platform.value}/{request.username}"
            self.repository.update_request(request.id, RequestStatus.PROCESSING)

            try:
                snapshot = await self.client_for(request.platform).fetch_profile(request.username)
                self._store(snapshot)
            except AuthError:
                self.repository.update_request(request.id, RequestStatus.PENDING)
                raise
            except (PlatformError, StorageError) as e:
                summary.record_failure(label, e)
                if is_rate_limited(e):
                    self.repository.update_request(request.id, RequestStatus.PENDING)
                    summary.stopped_early = True
                    logger.warning(
                        f"[{request.username}] Rate limited, reverted to pending; "
                        f"skipping remaining {len(rows) - index - 1} request(s)"
                    )
                    break
                self.repository.update_request(request.id, RequestStatus.FAILED, str(e), processed=True)
                logger.error(f"[{request.username}] Request failed: {e}")
                continue
            except Exception as e:
                self.repository.update_request(request.id, RequestStatus.FAILED, str(e), processed=True)
                logger.exception(f"[{request.username}] Unexpected error, request marked failed")
                raise

            self.repository.update_request(request.id, RequestStatus.COMPLETED, processed=True)
            summary.record_success(label)
            logger.info(f"[{request.username}] Completed ({snapshot.followers:,} followers)")

        return summary

    def submit_request(self, platform: Platform, username: str) -> RequestOutcome:
        """
        Queue a creator for the next processing run.

        Raises:
            ValueError: nothing usable remains after normalizing the username
        """
        platform = Platform(platform)
        normalized = normalize_username(username)
        if not normalized:
            raise ValueError("Invalid username format. Only letters, numbers, dots, and underscores allowed.")

        creator = self.repository.find_creator_by_username(platform, normalized)
        if creator:
            return RequestOutcome(
                outcome='exists', platform=platform, username=creator['username'],
                message='This creator is already in our database!', creator=creator,
            )

        pending = self.repository.existing_request(platform, normalized)
        if pending:
            return RequestOutcome(
                outcome='already_pending', platform=platform, username=pending['username'],
                message='This creator was already requested and is being processed.', request=pending,
            )

        request = self.repository.insert_request(platform, normalized)
        return RequestOutcome(
            outcome='queued', platform=platform, username=normalized,
            message=f"Request submitted! We'll add @{normalized} within 24 hours.", request=request,
        )

    async def instant_lookup(self, platform: Platform, username: str) -> RequestOutcome:
        """
        Try to add a TikTok creator right away, falling back to the queue.

        The profile fetch is capped at ``instant_lookup_timeout`` seconds.
        Other platforms go straight to ``submit_request``.
        """
        platform = Platform(platform)
        normalized = normalize_username(username)
        if platform != Platform.TIKTOK or not normalized:
            return self.submit_request(platform, username)

        existing = self.repository.find_creator_by_username(platform, normalized)
        if existing:
            return RequestOutcome(
                outcome='exists', platform=platform, username=existing['username'],
                message='This creator is already in our database!', creator=existing,
            )

        try:
            snapshot = await asyncio.wait_for(
                self.client_for(platform).fetch_profile(normalized),
                timeout=self.config.instant_lookup_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[{normalized}] Instant lookup timed out, queueing request")
            return self.submit_request(platform, normalized)
        except PlatformError as e:
            logger.warning(f"[{normalized}] Instant lookup failed ({e}), queueing request")
            return self.submit_request(platform, normalized)

        creator = self._store(snapshot)
        return RequestOutcome(
            outcome='added', platform=platform, username=snapshot.username,
            message=f"Added @{snapshot.username}!", creator=creator,
        )

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
