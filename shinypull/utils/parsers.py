"""
Data parsing and normalization utilities.
"""

import html
import re
from datetime import date, datetime, timedelta
from typing import Optional, Union
from zoneinfo import ZoneInfo

from loguru import logger

NEW_YORK = ZoneInfo("America/New_York")
MAX_USERNAME_LENGTH = 30
# Fractional seconds directly before the UTC offset (or the end of the string)
FRACTION_PATTERN = re.compile(r'(\.\d+)(?=[+-]\d{2}:\d{2}$|$)')


def parse_human_number(text: str) -> Optional[int]:
    """
    Parse human-readable numbers (1.2M, 5.4K, etc.) to integers.

    Args:
        text: String containing human-readable number

    Returns:
        Parsed integer or None if parsing fails

    Examples:
        "1.2M" -> 1200000
        "345K" -> 345000
        "1,234" -> 1234
        "1.2K followers" -> 1200
    """
    if not text or not isinstance(text, str):
        return None

    # Remove commas and whitespace
    text = text.replace(',', '').strip()

    match = re.search(r'(\d+(?:\.\d+)?)\s*([KMB])?\b', text, re.IGNORECASE)
    if not match:
        return None

    number_str, suffix = match.groups()

    try:
        number = float(number_str)
    except ValueError:
        return None

    # Apply suffix multiplier
    suffix = (suffix or '').upper()
    if suffix == 'K':
        number *= 1000
    elif suffix == 'M':
        number *= 1000000
    elif suffix == 'B':
        number *= 1000000000

    return int(round(number))


def parse_int(value: Union[str, int, float, None], default: int = 0) -> int:
    """Parse API counts that may arrive as strings ("12345") or be missing."""
    if value is None or value == '':
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            logger.warning(f"Could not parse count {value!r}, using {default}")
            return default


def normalize_username(username: str) -> Optional[str]:
    """
    Normalize a user-submitted username.

    Strips a leading @, drops everything outside [A-Za-z0-9._], strips
    leading/trailing dots, lowercases and caps the length.

    Returns:
        Normalized username or None if nothing valid remains
    """
    if not username or not isinstance(username, str):
        return None

    normalized = re.sub(r'^@', '', username.strip())
    normalized = re.sub(r'[^a-zA-Z0-9._]', '', normalized)
    normalized = normalized.strip('.').lower()[:MAX_USERNAME_LENGTH]

    if not re.match(r'^[a-z0-9._]{1,30}$', normalized):
        return None
    return normalized


def decode_html_entities(text: str) -> str:
    """Decode HTML entities (&#064; -> @, &amp; -> &, ...)."""
    if not text:
        return ""
    return html.unescape(text)


def today_local(now: Optional[datetime] = None) -> str:
    """Today's calendar date in America/New_York as YYYY-MM-DD."""
    return local_date(now).isoformat()


def local_date(moment: Optional[datetime] = None) -> date:
    """Calendar date of a moment in America/New_York (naive moments are taken as UTC)."""
    if moment is None:
        moment = datetime.now(NEW_YORK)
    elif moment.tzinfo is None:
        moment = moment.replace(tzinfo=ZoneInfo("UTC"))
    return moment.astimezone(NEW_YORK).date()


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse ISO timestamps returned by Supabase (``Z`` suffix accepted).

    Postgres drops trailing zeros from fractional seconds, so the fraction
    is padded (or trimmed) to six digits before parsing.
    """
    if value is None or isinstance(value, datetime):
        return value
    text = str(value).strip().replace('Z', '+00:00')
    text = FRACTION_PATTERN.sub(lambda m: m.group(1)[:7].ljust(7, '0'), text)
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.warning(f"Unparseable timestamp: {value}")
        return None


def parse_date(value: Union[str, date]) -> date:
    """Parse a YYYY-MM-DD stat date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def days_ago(days: int, today: Optional[date] = None) -> str:
    """The NY-local date ``days`` before today as YYYY-MM-DD."""
    today = today or local_date()
    return (today - timedelta(days=days)).isoformat()


def format_count(n: Optional[int]) -> str:
    """Compact display of a count: 1.2M, 345.0K, 999."""
    if n is None:
        return "0"
    if n >= 1_000_000_000:
        return f"{n / 1_000_000_000:.2f}B"
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 1_000:
        return f"{n / 1_000:.1f}K"
    return f"{n:,}"
