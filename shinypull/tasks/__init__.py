"""Task modules for RQ worker operations."""

from .worker import JOBS, check_integrity, discover_creators, health_check, process_requests, refresh_creators

__all__ = ["JOBS", "check_integrity", "discover_creators", "health_check", "process_requests", "refresh_creators"]
