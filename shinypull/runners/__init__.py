"""Maintenance runs: discovery, refresh, and creator request processing."""

from .discovery import DiscoveryRunner, fresh_candidates, load_candidates
from .refresh import RefreshRunner
from .requests import RequestProcessor

__all__ = ["DiscoveryRunner", "RefreshRunner", "RequestProcessor", "fresh_candidates", "load_candidates"]
