"""Data models for PulseChart."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


@dataclass(frozen=True)
class ArtistSnapshot:
    """One point-in-time observation of an artist's public metrics.

    Numeric fields are None when no provider reported them. Zero is an
    observed value and is kept distinct from None everywhere.
    """

    artist_id: str
    captured_at: datetime
    popularity: Optional[int] = None
    followers: Optional[int] = None
    genres: frozenset[str] = field(default_factory=frozenset)
    audio_features: dict[str, float] = field(default_factory=dict)
    social_mentions: dict[str, float] = field(default_factory=dict)

    def __hash__(self) -> int:
        # Mapping fields are left out; equal snapshots still hash equal
        return hash((self.artist_id, self.captured_at, self.popularity, self.followers, self.genres))

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dict."""
        return {
            "artist_id": self.artist_id,
            "captured_at": self.captured_at.isoformat(),
            "popularity": self.popularity,
            "followers": self.followers,
            "genres": sorted(self.genres),
            "audio_features": dict(self.audio_features),
            "social_mentions": dict(self.social_mentions),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ArtistSnapshot":
        """Build a snapshot from the output of to_dict()."""
        return cls(
            artist_id=data["artist_id"],
            captured_at=datetime.fromisoformat(data["captured_at"]),
            popularity=data.get("popularity"),
            followers=data.get("followers"),
            genres=frozenset(data.get("genres") or ()),
            audio_features=dict(data.get("audio_features") or {}),
            social_mentions=dict(data.get("social_mentions") or {}),
        )


class Classification(str, Enum):
    """Qualitative reading of a momentum score."""

    RISING = "rising"
    DECLINING = "declining"
    STABLE = "stable"


@dataclass(frozen=True)
class MomentumResult:
    """Momentum of one artist over one window, derived from two snapshots."""

    artist_id: str
    momentum_score: float
    window_days: int
    classification: Classification
    recent_captured_at: datetime
    baseline_captured_at: datetime
    delta_popularity: Optional[int] = None
    delta_followers_pct: Optional[float] = None
    per_platform_delta_pct: dict[str, float] = field(default_factory=dict)

    def __hash__(self) -> int:
        return hash(
            (self.artist_id, self.window_days, self.recent_captured_at, self.baseline_captured_at)
        )


@dataclass(frozen=True)
class InsufficientData:
    """Scoring had fewer than two usable snapshots. Unranked, not zero."""

    artist_id: str
    window_days: int
    reason: str


@dataclass(frozen=True)
class IngestionFailure:
    """No provider could resolve the artist. The caller should skip it."""

    artist_id: str
    reason: str
    providers_tried: tuple[str, ...] = ()


class JobState(str, Enum):
    """Lifecycle of one scrape attempt."""

    SUBMITTED = "submitted"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class ProviderJob:
    """Transient state for one provider within one ingestion call."""

    provider_id: str
    target_handle: str
    state: JobState = JobState.SUBMITTED
    attempts_used: int = 0
    handle: Any = None


@dataclass(frozen=True)
class PollStatus:
    """Current state of a provider-side job."""

    done: bool
    data_available: bool = False


class _NotFound:
    """Marker for a provider that confirmed it has no data."""

    _instance: Optional["_NotFound"] = None

    def __new__(cls) -> "_NotFound":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND = _NotFound()


@dataclass(frozen=True)
class LeaderboardEntry:
    """One ranked row of the leaderboard."""

    rank: int
    artist_id: str
    momentum: MomentumResult


@dataclass
class LeaderboardPage:
    """A page of the leaderboard plus whether more rows follow."""

    entries: list[LeaderboardEntry]
    page: int
    page_size: int
    window_days: int
    genres: list[str]
    has_more: bool


@dataclass
class ArtistDetail:
    """Latest snapshot and momentum for one artist."""

    artist_id: str
    latest: Optional[ArtistSnapshot]
    momentum: MomentumResult | InsufficientData
    sparkline: list[Optional[int]] = field(default_factory=list)


@dataclass
class IngestionSummary:
    """Outcome counts for one ingestion pass over many artists."""

    ingested: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    def as_dict(self) -> dict:
        return {
            "ingested": len(self.ingested),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
            "duration_seconds": round(self.duration_seconds, 3),
        }
