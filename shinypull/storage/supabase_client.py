"""
Supabase repository for creators, daily stats, and creator requests.
"""

import time
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

import httpx
from postgrest.exceptions import APIError
from supabase import create_client, Client
from loguru import logger

from ..config import Settings
from ..errors import StorageError, is_transient_upstream_error
from ..models.schemas import CreatorSnapshot, Platform, RequestStatus
from ..utils.parsers import days_ago, today_local

PAGE_SIZE = 1000
# Keeps ``in`` filters well under URL length limits.
ID_CHUNK_SIZE = 200
MAX_DESCRIPTION_LENGTH = 5000


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _value(platform) -> str:
    return Platform(platform).value


def _like_literal(value: str) -> str:
    """Escape LIKE wildcards so ``ilike`` matches the value exactly, ignoring case."""
    return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


class CreatorRepository:
    """All reads and writes against the ``creators``, ``creator_stats`` and ``creator_requests`` tables."""

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        client: Optional[Client] = None,
        max_retries: int = 2,
        retry_delay: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the repository.

        Args:
            url: Supabase URL (defaults to env var)
            key: Supabase service key (defaults to env var)
            client: Pre-built client; skips ``create_client``
            max_retries: Extra attempts when the store reports a transient error
            retry_delay: Seconds between attempts
            sleep: Sleep function used between attempts
        """
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep

        if client is not None:
            self.client = client
            return

        settings = Settings.from_env()
        settings.supabase_url = url or settings.supabase_url
        settings.supabase_key = key or settings.supabase_key
        settings.require_store()

        self.client: Client = create_client(settings.supabase_url, settings.supabase_key)
        logger.info("Supabase client initialized successfully")

    def _execute(self, action: str, build: Callable[[], Any]) -> Any:
        """Run a query, retrying transient failures; anything else becomes StorageError."""
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return build().execute()
            except (APIError, httpx.HTTPError) as e:
                detail = f"{getattr(e, 'message', '') or ''} {e}"
                if is_transient_upstream_error(detail) and attempt < attempts:
                    logger.warning(f"Transient error {action}, retrying in {self.retry_delay}s: {e}")
                    self._sleep(self.retry_delay)
                    continue
                logger.error(f"Error {action}: {e}")
                raise StorageError(f"Error {action}: {e}") from e

    def _paginate(self, action: str, build: Callable[[], Any]) -> List[Dict[str, Any]]:
        """Read every row of a query in pages of PAGE_SIZE."""
        rows: List[Dict[str, Any]] = []
        start = 0
        while True:
            result = self._execute(action, lambda: build().range(start, start + PAGE_SIZE - 1))
            page = result.data or []
            rows.extend(page)
            if len(page) < PAGE_SIZE:
                return rows
            start += PAGE_SIZE

    # Creators

    def upsert_creator(self, snapshot: CreatorSnapshot) -> Dict[str, Any]:
        """
        Insert or update a creator keyed by (platform, platform_id).

        Username and display fields are overwritten; the identity never changes.

        Returns:
            The stored creator row
        """
        row = snapshot.to_creator_row()
        if row.get('description'):
            row['description'] = row['description'][:MAX_DESCRIPTION_LENGTH]
        row['updated_at'] = _utc_now()

        result = self._execute(
            f"upserting creator {snapshot.platform.value}/{snapshot.username}",
            lambda: self.client.table('creators').upsert(row, on_conflict='platform,platform_id'),
        )
        if not result.data:
            raise StorageError(f"Upsert returned no row for {snapshot.platform.value}/{snapshot.username}")
        return result.data[0]

    def get_creator(self, platform: Platform, platform_id: str) -> Optional[Dict[str, Any]]:
        result = self._execute(
            f"getting creator {_value(platform)}/{platform_id}",
            lambda: self.client.table('creators').select('*')
            .eq('platform', _value(platform)).eq('platform_id', platform_id).limit(1),
        )
        return result.data[0] if result.data else None

    def find_creator_by_username(self, platform: Platform, username: str) -> Optional[Dict[str, Any]]:
        """Case-insensitive lookup by current username."""
        result = self._execute(
            f"finding creator {_value(platform)}/{username}",
            lambda: self.client.table('creators').select('*')
            .eq('platform', _value(platform)).ilike('username', _like_literal(username)).limit(1),
        )
        return result.data[0] if result.data else None

    def least_recently_updated(self, platform: Platform, limit: int) -> List[Dict[str, Any]]:
        result = self._execute(
            f"listing stale {_value(platform)} creators",
            lambda: self.client.table('creators').select('*')
            .eq('platform', _value(platform)).order('updated_at').limit(limit),
        )
        return result.data or []

    def existing_usernames(self, platform: Platform) -> Set[str]:
        """Lowercased usernames of every tracked creator on a platform."""
        rows = self._paginate(
            f"listing {_value(platform)} usernames",
            lambda: self.client.table('creators').select('username').eq('platform', _value(platform)),
        )
        return {row['username'].lower() for row in rows if row.get('username')}

    def cross_platform_usernames(self, platforms: Iterable[Platform]) -> List[str]:
        """Usernames tracked on the given platforms, first occurrence wins."""
        values = [_value(platform) for platform in platforms]
        rows = self._paginate(
            f"listing usernames on {', '.join(values)}",
            lambda: self.client.table('creators').select('username').in_('platform', values),
        )
        seen: Set[str] = set()
        usernames = []
        for row in rows:
            username = row.get('username')
            if username and username.lower() not in seen:
                seen.add(username.lower())
                usernames.append(username)
        return usernames

    def all_creators(self, platform: Platform) -> List[Dict[str, Any]]:
        return self._paginate(
            f"listing {_value(platform)} creators",
            lambda: self.client.table('creators')
            .select('id, platform, platform_id, username, display_name, created_at')
            .eq('platform', _value(platform)),
        )

    def top_by_followers(
        self,
        platform: Platform,
        limit: int,
        window_days: int = 14,
        today: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        """
        Creators ranked by the follower count of their latest stat row.

        Only stat rows within ``window_days`` of today count; creators without
        one are left out. Each returned row carries ``followers``.
        """
        creators = self.all_creators(platform)
        if not creators:
            return []

        cutoff = days_ago(window_days, today)
        latest: Dict[Any, Dict[str, Any]] = {}
        ids = [creator['id'] for creator in creators]
        for start in range(0, len(ids), ID_CHUNK_SIZE):
            chunk = ids[start:start + ID_CHUNK_SIZE]
            rows = self._paginate(
                f"reading recent {_value(platform)} stats",
                lambda: self.client.table('creator_stats')
                .select('creator_id, recorded_at, subscribers, followers')
                .in_('creator_id', chunk).gte('recorded_at', cutoff)
                .order('recorded_at', desc=True),
            )
            for row in rows:
                latest.setdefault(row['creator_id'], row)

        ranked = []
        for creator in creators:
            stat = latest.get(creator['id'])
            if stat is None:
                continue
            ranked.append({**creator, 'followers': stat.get('subscribers') or stat.get('followers') or 0})
        ranked.sort(key=lambda c: c['followers'], reverse=True)
        return ranked[:limit]

    def count_creators(self, platform: Optional[Platform] = None) -> int:
        def build():
            query = self.client.table('creators').select('id', count='exact')
            if platform is not None:
                query = query.eq('platform', _value(platform))
            return query.limit(1)

        result = self._execute("counting creators", build)
        return result.count or 0

    # Stats

    def upsert_daily_stat(self, creator_id: Any, snapshot: CreatorSnapshot, recorded_at: Optional[str] = None) -> Dict[str, Any]:
        """
        Write the (creator, day) stat row; a second write on the same day overwrites it.

        Args:
            creator_id: Creator primary key
            snapshot: Counts to store
            recorded_at: YYYY-MM-DD (defaults to today in America/New_York)
        """
        row = snapshot.to_stat_row(creator_id, recorded_at or today_local())
        result = self._execute(
            f"upserting stats for creator {creator_id}",
            lambda: self.client.table('creator_stats').upsert(row, on_conflict='creator_id,recorded_at'),
        )
        return result.data[0] if result.data else row

    def stat_history(self, creator_id: Any, limit: int = 30) -> List[Dict[str, Any]]:
        """Most recent stat rows, newest first."""
        result = self._execute(
            f"reading stat history for creator {creator_id}",
            lambda: self.client.table('creator_stats')
            .select('recorded_at, subscribers, followers, total_views, total_posts')
            .eq('creator_id', creator_id).order('recorded_at', desc=True).limit(limit),
        )
        return result.data or []

    # Requests

    def existing_request(
        self,
        platform: Platform,
        username: str,
        status: RequestStatus = RequestStatus.PENDING,
    ) -> Optional[Dict[str, Any]]:
        result = self._execute(
            f"checking {_value(platform)} request for {username}",
            lambda: self.client.table('creator_requests').select('*')
            .eq('platform', _value(platform)).ilike('username', _like_literal(username))
            .eq('status', RequestStatus(status).value).limit(1),
        )
        return result.data[0] if result.data else None

    def queued_usernames(self, platform: Platform) -> Set[str]:
        """Lowercased usernames with any request row on a platform."""
        rows = self._paginate(
            f"listing queued {_value(platform)} requests",
            lambda: self.client.table('creator_requests').select('username').eq('platform', _value(platform)),
        )
        return {row['username'].lower() for row in rows if row.get('username')}

    def pending_requests(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Oldest pending requests first."""
        result = self._execute(
            "listing pending requests",
            lambda: self.client.table('creator_requests').select('*')
            .eq('status', RequestStatus.PENDING.value).order('created_at').limit(limit),
        )
        return result.data or []

    def insert_request(self, platform: Platform, username: str) -> Dict[str, Any]:
        row = {
            'platform': _value(platform),
            'username': username,
            'status': RequestStatus.PENDING.value,
            'created_at': _utc_now(),
        }
        result = self._execute(
            f"inserting {_value(platform)} request for {username}",
            lambda: self.client.table('creator_requests').insert(row),
        )
        logger.info(f"Queued {_value(platform)} request for {username}")
        return result.data[0] if result.data else row

    def update_request(
        self,
        request_id: Any,
        status: RequestStatus,
        error_message: Optional[str] = None,
        processed: bool = False,
    ) -> None:
        """Move a request to a new status, stamping processed_at for terminal states."""
        changes: Dict[str, Any] = {'status': RequestStatus(status).value, 'error_message': error_message}
        if processed:
            changes['processed_at'] = _utc_now()
        self._execute(
            f"updating request {request_id}",
            lambda: self.client.table('creator_requests').update(changes).eq('id', request_id),
        )

    def health_check(self) -> bool:
        """
        Check if database connection is healthy.

        Returns:
            True if healthy, False otherwise
        """
        try:
            self._execute("running health check", lambda: self.client.table('creators').select('id').limit(1))
        except StorageError as e:
            logger.error(f"Database health check failed: {e}")
            return False
        logger.info("Database health check passed")
        return True
