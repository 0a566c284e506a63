"""Pydantic models for data validation and serialization."""

from .schemas import (
    CheckStatus,
    CreatorRequest,
    CreatorSnapshot,
    IntegrityCheckResult,
    IntegrityTally,
    PipelineConfig,
    Platform,
    RequestOutcome,
    RequestStatus,
    RunSummary,
)

__all__ = [
    "CheckStatus",
    "CreatorRequest",
    "CreatorSnapshot",
    "IntegrityCheckResult",
    "IntegrityTally",
    "PipelineConfig",
    "Platform",
    "RequestOutcome",
    "RequestStatus",
    "RunSummary",
]
