"""Data integrity checks over stored creator statistics."""

from .checker import CHECKED_PLATFORMS, IntegrityChecker
from .checks import api_match_checks, history_checks, pct_diff

__all__ = ["CHECKED_PLATFORMS", "IntegrityChecker", "api_match_checks", "history_checks", "pct_diff"]
