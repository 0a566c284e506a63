"""
Shared fixtures: in-memory stand-ins for the supabase-py query builder and platform clients.
"""

import copy
import itertools
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

from shinypull.errors import NotFoundError, UpstreamHTTPError
from shinypull.models.schemas import CreatorSnapshot, Platform
from shinypull.sources.base import PlatformClient
from shinypull.storage.supabase_client import CreatorRepository


class FakeResponse:
    def __init__(self, data: List[Dict[str, Any]], count: Optional[int] = None):
        self.data = data
        self.count = count


class FakeQuery:
    """Implements the subset of the postgrest builder the repository uses."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.operation = 'select'
        self.columns = '*'
        self.count_mode = None
        self.filters: List[Callable[[Dict[str, Any]], bool]] = []
        self.orders: List[tuple] = []
        self.limit_value: Optional[int] = None
        self.range_value: Optional[tuple] = None
        self.payload: Any = None
        self.on_conflict: Optional[str] = None

    # builder

    def select(self, columns: str = '*', count: Optional[str] = None):
        self.operation = 'select'
        self.columns = columns
        self.count_mode = count
        return self

    def insert(self, payload):
        self.operation = 'insert'
        self.payload = payload
        return self

    def update(self, payload):
        self.operation = 'update'
        self.payload = payload
        return self

    def upsert(self, payload, on_conflict: Optional[str] = None):
        self.operation = 'upsert'
        self.payload = payload
        self.on_conflict = on_conflict
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def ilike(self, column, pattern):
        # Postgres LIKE: % and _ are wildcards, backslash escapes the next character
        parts = []
        chars = iter(pattern)
        for char in chars:
            if char == '\\':
                parts.append(re.escape(next(chars, '\\')))
            elif char == '%':
                parts.append('.*')
            elif char == '_':
                parts.append('.')
            else:
                parts.append(re.escape(char))
        regex = re.compile('^' + ''.join(parts) + '$', re.IGNORECASE | re.DOTALL)
        self.filters.append(lambda row: row.get(column) is not None and bool(regex.match(str(row[column]))))
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row[column] >= value)
        return self

    def order(self, column, desc: bool = False):
        self.orders.append((column, desc))
        return self

    def limit(self, size):
        self.limit_value = size
        return self

    def range(self, start, end):
        self.range_value = (start, end)
        return self

    # execution

    def execute(self):
        self.db.calls.append((self.table_name, self.operation))
        if self.db.errors:
            raise self.db.errors.pop(0)
        rows = self.db.tables.setdefault(self.table_name, [])
        handler = getattr(self, f"_execute_{self.operation}")
        return handler(rows)

    def _matches(self, row):
        return all(check(row) for check in self.filters)

    def _project(self, row):
        if self.columns.strip() == '*':
            return copy.deepcopy(row)
        keys = [key.strip() for key in self.columns.split(',')]
        return {key: copy.deepcopy(row.get(key)) for key in keys}

    def _execute_select(self, rows):
        matched = [row for row in rows if self._matches(row)]
        for column, desc in reversed(self.orders):
            matched.sort(key=lambda row: (row.get(column) is None, row.get(column) or ''), reverse=desc)
        count = len(matched) if self.count_mode else None
        if self.range_value:
            start, end = self.range_value
            matched = matched[start:end + 1]
        if self.limit_value is not None:
            matched = matched[:self.limit_value]
        return FakeResponse([self._project(row) for row in matched], count)

    def _new_row(self, payload):
        row = dict(payload)
        row.setdefault('id', next(self.db.ids))
        row.setdefault('created_at', self.db.now())
        return row

    def _execute_insert(self, rows):
        payloads = self.payload if isinstance(self.payload, list) else [self.payload]
        inserted = []
        for payload in payloads:
            row = self._new_row(payload)
            rows.append(row)
            inserted.append(copy.deepcopy(row))
        return FakeResponse(inserted)

    def _execute_update(self, rows):
        updated = []
        for row in rows:
            if self._matches(row):
                row.update(self.payload)
                updated.append(copy.deepcopy(row))
        return FakeResponse(updated)

    def _execute_upsert(self, rows):
        keys = [key.strip() for key in (self.on_conflict or 'id').split(',')]
        payloads = self.payload if isinstance(self.payload, list) else [self.payload]
        written = []
        for payload in payloads:
            existing = next((row for row in rows if all(row.get(k) == payload.get(k) for k in keys)), None)
            if existing is None:
                existing = self._new_row(payload)
                rows.append(existing)
            else:
                existing.update(payload)
            written.append(copy.deepcopy(existing))
        return FakeResponse(written)


class FakeSupabase:
    """Stand-in for ``supabase.Client``; tables are plain lists of dicts."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            'creators': [],
            'creator_stats': [],
            'creator_requests': [],
        }
        self.ids = itertools.count(1)
        self.calls: List[tuple] = []
        self.errors: List[Exception] = []
        self.now = lambda: datetime.now(timezone.utc).isoformat()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, name: str) -> List[Dict[str, Any]]:
        return self.tables[name]


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def repository(fake_db):
    return CreatorRepository(client=fake_db, sleep=lambda seconds: None)


@pytest.fixture
def make_snapshot():
    """Build a CreatorSnapshot with sensible defaults."""

    def factory(platform=Platform.TIKTOK, platform_id='1001', username='creator', followers=1000, **extra):
        return CreatorSnapshot(
            platform=platform,
            platform_id=platform_id,
            username=username,
            display_name=extra.pop('display_name', username.title()),
            followers=followers,
            subscribers=extra.pop('subscribers', followers),
            **extra,
        )

    return factory


@pytest.fixture
def no_sleep():
    """Async sleep replacement that records requested delays."""
    delays: List[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays
    return sleep


class FakePlatformClient(PlatformClient):
    """Scripted platform client: ``profiles`` and ``errors`` are keyed by identifier."""

    def __init__(self, platform=Platform.TIKTOK, profiles=None, errors=None, supports_batch=False):
        super().__init__()
        self.platform = platform
        self.supports_batch = supports_batch
        self.profiles: Dict[str, CreatorSnapshot] = profiles or {}
        self.errors: Dict[str, Exception] = errors or {}
        self.search_results: List[CreatorSnapshot] = []
        self.calls: List[str] = []
        self.batch_calls: List[List[str]] = []
        self.closed = False

    async def fetch_profile(self, identifier):
        self.calls.append(identifier)
        if identifier in self.errors:
            raise self.errors[identifier]
        if identifier in self.profiles:
            return self.profiles[identifier]
        raise NotFoundError(self.platform.value, f"{identifier} not found", identifier)

    async def fetch_many(self, identifiers):
        self.batch_calls.append(list(identifiers))
        for identifier in identifiers:
            if identifier in self.errors:
                raise self.errors[identifier]
        return {i: self.profiles[i] for i in identifiers if i in self.profiles}

    async def search_profiles(self, query, max_results=25):
        return self.search_results[:max_results]

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_client():
    return FakePlatformClient


@pytest.fixture
def rate_limit_error():
    """Factory for a 429 upstream error."""

    def factory(platform='tiktok', identifier=None):
        return UpstreamHTTPError(platform, 429, 'Too Many Requests', identifier)

    return factory
