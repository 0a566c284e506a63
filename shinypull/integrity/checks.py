"""
Pure integrity checks over a creator's stored stat history.

Each check returns ``(CheckStatus, detail)``; history rows are
``creator_stats`` dicts ordered newest first.
"""

import math
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple, Union

from ..models.schemas import CheckStatus, CreatorSnapshot, Platform
from ..utils.parsers import NEW_YORK, format_count, local_date, parse_date, parse_timestamp

STALE_HOURS = 48
API_WARN_PCT = 5
API_FAIL_PCT = 15
SWING_WARN_PCT = 30
MAX_GAP_WARN = 3
HISTORY_DAYS = 30

Outcome = Tuple[CheckStatus, str]
Row = Dict[str, Any]


def follower_value(row: Row) -> int:
    """Follower-equivalent count of a stat row (subscribers, else followers)."""
    return row.get('subscribers') or row.get('followers') or 0


def pct_diff(stored: Optional[int], live: Optional[int]) -> float:
    """Absolute divergence of ``stored`` from ``live`` in percent; inf when live is 0/None."""
    if not live:
        return math.inf
    return abs((stored or 0) - live) * 100 / live


def check_staleness(history: List[Row], now: datetime) -> Outcome:
    """Newest row, taken at noon New York time on its date, must be at most 48h old."""
    latest = parse_date(history[0]['recorded_at'])
    recorded = datetime.combine(latest, time(12, 0), tzinfo=NEW_YORK)
    hours_ago = (now - recorded).total_seconds() / 3600
    if hours_ago <= STALE_HOURS:
        return CheckStatus.PASS, f"Last updated {round(hours_ago)}h ago"
    return CheckStatus.FAIL, f"Last updated {round(hours_ago)}h ago (limit: {STALE_HOURS}h)"


def check_zero_values(platform: Platform, history: List[Row]) -> Outcome:
    """
    No 0/null follower counts in the window.

    Kick is exempt: its paid-subscriber count can legitimately be 0.
    """
    if Platform(platform) == Platform.KICK:
        return CheckStatus.PASS, "Skipped: Kick paid subs can legitimately be 0"

    window = history[:HISTORY_DAYS]
    zero_rows = []
    for row in window:
        value = row.get('subscribers')
        if value is None:
            value = row.get('followers')
        if not value:
            zero_rows.append(row['recorded_at'])

    if not zero_rows:
        return CheckStatus.PASS, f"No zero/null rows in last {len(window)} days"
    return CheckStatus.FAIL, f"{len(zero_rows)} row(s) with 0/null: {', '.join(zero_rows[:5])}"


def check_swings(history: List[Row]) -> Outcome:
    """Day-over-day changes above 30% are a warning, never a failure."""
    chronological = list(reversed(history[:HISTORY_DAYS]))
    swings = []
    for previous, current in zip(chronological, chronological[1:]):
        prev_value = follower_value(previous)
        curr_value = follower_value(current)
        if prev_value == 0:
            continue
        change = (curr_value - prev_value) * 100 / prev_value
        if abs(change) > SWING_WARN_PCT:
            swings.append(f"{current['recorded_at']} {'+' if change > 0 else ''}{change:.0f}%")

    if not swings:
        return CheckStatus.PASS, f"No day-over-day swings > {SWING_WARN_PCT}%"
    return CheckStatus.WARN, f"{len(swings)} large swing(s): {', '.join(swings[:3])}"


def longest_gap(
    history: List[Row],
    today: date,
    tracking_start: Optional[date] = None,
    days: int = HISTORY_DAYS,
) -> Tuple[int, Optional[str]]:
    """
    Longest run of missing days in the ``days`` ending at ``today``.

    Days before ``tracking_start`` are not counted. Returns the run length
    and the most recent date of that run.
    """
    recorded = {str(row['recorded_at'])[:10] for row in history[:HISTORY_DAYS]}
    max_gap = 0
    current_gap = 0
    gap_start = None
    worst_start = None

    for offset in range(days):
        day = today - timedelta(days=offset)
        if tracking_start and day < tracking_start:
            continue
        day_str = day.isoformat()
        if day_str in recorded:
            current_gap = 0
            continue
        if current_gap == 0:
            gap_start = day_str
        current_gap += 1
        if current_gap > max_gap:
            max_gap = current_gap
            worst_start = gap_start

    return max_gap, worst_start


def check_gaps(
    history: List[Row],
    today: date,
    created_at: Union[str, datetime, None] = None,
) -> Outcome:
    """0 missing days PASS, 1-3 WARN, more FAIL."""
    created = parse_timestamp(created_at) if created_at else None
    tracking_start = local_date(created) if created else None
    max_gap, start = longest_gap(history, today, tracking_start)

    if max_gap == 0:
        return CheckStatus.PASS, f"No missing days in last {HISTORY_DAYS} days"
    detail = f"{max_gap} consecutive missing day(s) starting {start}"
    if max_gap <= MAX_GAP_WARN:
        return CheckStatus.WARN, detail
    return CheckStatus.FAIL, detail


def check_api_match(stored: Optional[int], live: Optional[int]) -> Outcome:
    """Stored vs live: within 5% PASS, within 15% WARN, else FAIL; live 0/None is a WARN."""
    if not live:
        return CheckStatus.WARN, "Live API returned 0, can't validate"

    diff = pct_diff(stored, live)
    detail = f"stored {format_count(stored or 0)} vs live {format_count(live)} ({diff:.1f}% diff)"
    if diff <= API_WARN_PCT:
        return CheckStatus.PASS, detail
    if diff <= API_FAIL_PCT:
        return CheckStatus.WARN, detail
    return CheckStatus.FAIL, detail


def history_checks(
    platform: Platform,
    history: List[Row],
    now: datetime,
    created_at: Union[str, datetime, None] = None,
) -> List[Tuple[str, CheckStatus, str]]:
    """Run the four history checks; no history fails all four."""
    if not history:
        return [
            ('Staleness', CheckStatus.FAIL, "No stats rows found in database"),
            ('Zero check', CheckStatus.FAIL, "No data to check"),
            ('Swing check', CheckStatus.FAIL, "No data to check"),
            ('Gap check', CheckStatus.FAIL, "No data to check"),
        ]

    return [
        ('Staleness', *check_staleness(history, now)),
        ('Zero check', *check_zero_values(platform, history)),
        ('Swing check', *check_swings(history)),
        ('Gap check', *check_gaps(history, local_date(now), created_at)),
    ]


def api_match_checks(platform: Platform, latest: Row, live: CreatorSnapshot) -> List[Tuple[str, CheckStatus, str]]:
    """
    Compare the newest stored row against a live snapshot.

    YouTube also compares total views; TikTok also compares video count and
    likes (stored in total_views).
    """
    platform = Platform(platform)
    results = [
        ('API match (followers/subs)', *check_api_match(follower_value(latest), live.followers or live.subscribers)),
    ]
    if platform == Platform.YOUTUBE:
        results.append(('API match (total_views)', *check_api_match(latest.get('total_views') or 0, live.total_views)))
    elif platform == Platform.TIKTOK:
        results.append(('API match (video_count)', *check_api_match(latest.get('total_posts') or 0, live.total_posts)))
        results.append(('API match (likes)', *check_api_match(latest.get('total_views') or 0, live.total_views)))
    return results
