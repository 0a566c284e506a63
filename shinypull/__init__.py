"""
ShinyPull - creator statistics collection pipeline.

Discovers creators on YouTube, Twitch, Kick, TikTok and Instagram, refreshes
their daily statistics into Supabase, processes user-submitted creator
requests, and verifies the stored time series with integrity checks.
"""

__version__ = "1.0.0"
__author__ = "ShinyPull Team"

from .models.schemas import CreatorSnapshot, Platform
from .storage.supabase_client import CreatorRepository
from .pipeline import PipelineOrchestrator

__all__ = [
    "CreatorSnapshot",
    "Platform",
    "CreatorRepository",
    "PipelineOrchestrator",
]
