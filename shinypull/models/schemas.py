"""
Pydantic models for creator snapshots, requests, and integrity results.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class Platform(str, Enum):
    """Platforms tracked by the pipeline."""

    YOUTUBE = "youtube"
    TWITCH = "twitch"
    KICK = "kick"
    TIKTOK = "tiktok"
    INSTAGRAM = "instagram"


class RequestStatus(str, Enum):
    """Lifecycle of a user-submitted creator request."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class CheckStatus(str, Enum):
    """Outcome of one integrity check."""

    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"


class CreatorSnapshot(BaseModel):
    """
    Canonical profile and statistics read from one platform.

    ``followers`` and ``subscribers`` always carry the same
    follower-equivalent value. Per-platform meaning of the generic fields:

    - kick: both hold ``active_subscribers_count`` (paid subscribers)
    - tiktok: ``total_views`` holds the total like count
    """

    platform: Platform
    platform_id: str
    username: str
    display_name: Optional[str] = None
    profile_image: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    country: Optional[str] = None
    followers: int = 0
    subscribers: int = 0
    total_views: int = 0
    total_posts: int = 0
    following: Optional[int] = None
    is_verified: bool = False
    is_live: bool = False
    viewer_count: Optional[int] = None
    broadcaster_type: Optional[str] = None
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("platform_id", "username")
    @classmethod
    def validate_not_blank(cls, v):
        """Identity fields must be non-empty."""
        v = str(v).strip()
        if not v:
            raise ValueError("Identity fields cannot be blank")
        return v

    @field_validator("followers", "subscribers", "total_views", "total_posts", mode="before")
    @classmethod
    def default_missing_counts(cls, v):
        """Missing numeric fields default to 0."""
        if v is None or v == "":
            return 0
        return int(v)

    def to_creator_row(self) -> Dict[str, Any]:
        """Identity and mutable display fields for the ``creators`` table."""
        return {
            "platform": self.platform.value,
            "platform_id": self.platform_id,
            "username": self.username,
            "display_name": self.display_name or self.username,
            "profile_image": self.profile_image,
            "description": self.description,
            "category": self.category,
            "country": self.country,
        }

    def to_stat_row(self, creator_id: Any, recorded_at: str) -> Dict[str, Any]:
        """One ``creator_stats`` row for the given NY-local day."""
        return {
            "creator_id": creator_id,
            "recorded_at": recorded_at,
            "subscribers": self.subscribers,
            "followers": self.followers,
            "total_views": self.total_views,
            "total_posts": self.total_posts,
        }


class CreatorRequest(BaseModel):
    """Row of the ``creator_requests`` table."""

    id: Optional[Any] = None
    platform: Platform
    username: str
    status: RequestStatus = RequestStatus.PENDING
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, v):
        """Username must be present."""
        v = v.strip().lstrip("@")
        if not v:
            raise ValueError("Username cannot be blank")
        return v

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "CreatorRequest":
        return cls(**{k: v for k, v in row.items() if k in cls.model_fields})


class IntegrityCheckResult(BaseModel):
    """Result of one integrity check for one creator."""

    platform: Platform
    username: str
    check: str
    status: CheckStatus
    detail: str = ""


class IntegrityTally(BaseModel):
    """Run-level PASS/WARN/FAIL counters."""

    passed: int = 0
    warned: int = 0
    failed: int = 0
    results: List[IntegrityCheckResult] = Field(default_factory=list)

    def record(self, result: IntegrityCheckResult) -> None:
        self.results.append(result)
        if result.status == CheckStatus.PASS:
            self.passed += 1
        elif result.status == CheckStatus.WARN:
            self.warned += 1
        else:
            self.failed += 1

    @property
    def total(self) -> int:
        return self.passed + self.warned + self.failed

    @property
    def exit_code(self) -> int:
        """Non-zero iff any check failed, regardless of warnings."""
        return 1 if self.failed else 0


class RunSummary(BaseModel):
    """Outcome of one runner invocation."""

    platform: Optional[Platform] = None
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    stopped_early: bool = False
    errors: Dict[str, str] = Field(default_factory=dict)
    processed: List[str] = Field(default_factory=list)

    def record_success(self, identifier: str) -> None:
        self.attempted += 1
        self.succeeded += 1
        self.processed.append(identifier)

    def record_failure(self, identifier: str, error: BaseException) -> None:
        self.attempted += 1
        self.failed += 1
        self.processed.append(identifier)
        self.errors[identifier] = str(error)


class PipelineConfig(BaseModel):
    """Tunables for collection runs."""

    refresh_delay: float = 2.0
    refresh_jitter: float = 0.0
    discovery_delay: float = 2.0
    request_delay_min: float = 5.0
    request_delay_max: float = 8.0
    request_batch_size: int = 10
    instant_lookup_timeout: float = 7.0
    integrity_top_n: int = 5
    integrity_history_days: int = 30
    integrity_live_delay: float = 2.0
    top_window_days: int = 14

    @field_validator(
        "refresh_delay", "refresh_jitter", "discovery_delay",
        "request_delay_min", "request_delay_max", "integrity_live_delay",
    )
    @classmethod
    def validate_delay(cls, v):
        """Validate delay is not negative."""
        if v < 0:
            raise ValueError("Delay must be positive")
        return v

    @field_validator("request_batch_size", "integrity_top_n", "integrity_history_days", "top_window_days")
    @classmethod
    def validate_positive(cls, v):
        """Validate counts are positive."""
        if v <= 0:
            raise ValueError("Value must be positive")
        return v


class RequestOutcome(BaseModel):
    """Result of submitting a creator request or an instant lookup."""

    outcome: str  # added | exists | already_pending | queued
    platform: Platform
    username: str
    message: str = ""
    creator: Optional[Dict[str, Any]] = None
    request: Optional[Dict[str, Any]] = None
