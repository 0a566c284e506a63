"""Utility modules for parsing, dates, and user agent rotation."""

from .ua_rotation import UserAgentRotator, ua_rotator
from .parsers import parse_human_number, parse_int, normalize_username, today_local, local_date

__all__ = [
    "UserAgentRotator",
    "ua_rotator",
    "parse_human_number",
    "parse_int",
    "normalize_username",
    "today_local",
    "local_date",
]
