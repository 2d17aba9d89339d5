"""Configuration management for PulseChart."""

from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SpotifySettings(BaseSettings):
    """Spotify Web API configuration (client-credentials flow)."""

    model_config = SettingsConfigDict(env_prefix="SPOTIFY_")

    client_id: Optional[str] = Field(default=None, description="Spotify App Client ID")
    client_secret: Optional[str] = Field(
        default=None, description="Spotify App Client Secret"
    )
    market: str = Field(default="US", description="Market used for top tracks")

    # Averaging audio features costs two extra API calls per artist
    include_audio_features: bool = Field(
        default=True,
        description="Attach the mean audio features of the artist's top tracks",
    )
    top_tracks_for_audio: int = Field(
        default=5,
        description="How many top tracks feed the audio feature profile",
    )

    @property
    def enabled(self) -> bool:
        return bool(self.client_id and self.client_secret)


class ApifySettings(BaseSettings):
    """Apify scraping platform configuration."""

    model_config = SettingsConfigDict(env_prefix="APIFY_")

    api_token: Optional[str] = Field(default=None, description="Apify API token")
    base_url: str = Field(
        default="https://api.apify.com/v2",
        description="Apify REST API base URL",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for a single HTTP call to Apify",
    )

    @property
    def enabled(self) -> bool:
        return bool(self.api_token)


class IngestionSettings(BaseSettings):
    """Provider orchestration configuration."""

    model_config = SettingsConfigDict(env_prefix="INGEST_")

    # Providers are consulted in this order; ids match adapter_factory
    provider_priority: list[str] = Field(
        default_factory=lambda: [
            "spotify",
            "tiktok_free",
            "tiktok_official",
            "instagram",
            "youtube",
        ],
        description="Ordered provider ids",
    )

    per_provider_timeout_seconds: float = Field(
        default=120.0,
        description="How long one scrape job may poll before it is abandoned",
    )

    max_attempts_per_provider: int = Field(
        default=2,
        description="Submissions allowed per provider before moving on",
    )

    poll_interval_seconds: float = Field(
        default=5.0,
        description="Delay between status polls of a running job",
    )

    max_workers: int = Field(
        default=4,
        description="Artists ingested concurrently",
    )

    min_ingest_interval_hours: float = Field(
        default=23.0,
        description="Skip artists whose latest snapshot is younger than this",
    )

    run_interval_hours: float = Field(
        default=24.0,
        description="Delay between passes when ingesting continuously",
    )

    @field_validator("max_attempts_per_provider", "max_workers")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value


class ScoringSettings(BaseSettings):
    """Momentum scoring configuration.

    Weights multiply the raw deltas: popularity points, follower growth
    fraction and the mean per-platform growth fraction.
    """

    model_config = SettingsConfigDict(env_prefix="SCORE_")

    popularity_weight: float = Field(
        default=0.1, description="Score per popularity point gained"
    )
    followers_weight: float = Field(
        default=5.0, description="Score per unit of follower growth fraction"
    )
    social_weight: float = Field(
        default=2.0, description="Score per unit of mean social growth fraction"
    )
    platform_weights: dict[str, float] = Field(
        default_factory=dict,
        description="Per-platform multipliers inside the social mean",
    )

    rising_threshold: float = Field(
        default=0.5,
        description="Scores above this are Rising, below its negative Declining",
    )

    default_window_days: int = Field(default=14, description="Default look-back")
    supported_windows: list[int] = Field(
        default_factory=lambda: [1, 7, 14, 30, 60, 90, 180, 365],
        description="Windows accepted at the leaderboard boundary",
    )

    cache_ttl_seconds: float = Field(
        default=300.0, description="Lifetime of a cached momentum result"
    )

    @field_validator("popularity_weight", "followers_weight", "social_weight")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("weights must be non-negative")
        return value

    @field_validator("platform_weights")
    @classmethod
    def _non_negative_platforms(cls, value: dict[str, float]) -> dict[str, float]:
        for platform, weight in value.items():
            if weight < 0:
                raise ValueError(f"weight for {platform} must be non-negative")
        return value

    @field_validator("supported_windows")
    @classmethod
    def _positive_windows(cls, value: list[int]) -> list[int]:
        if not value or any(w < 1 for w in value):
            raise ValueError("supported_windows must be a non-empty list of positive days")
        return sorted(set(value))

    @field_validator("rising_threshold")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("threshold must be positive")
        return value


class StorageSettings(BaseSettings):
    """Local snapshot storage configuration."""

    model_config = SettingsConfigDict(env_prefix="STORE_")

    snapshot_file: str = Field(
        default="snapshots.json", description="Snapshot history file"
    )
    roster_file: str = Field(
        default="roster.json", description="Artists to ingest and their handles"
    )
    retention_days: int = Field(
        default=365,
        description="Snapshots older than this are pruned; must cover the longest window",
    )


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    apify: ApifySettings = Field(default_factory=ApifySettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    # Debug mode
    debug: bool = Field(default=False, description="Enable debug logging")

    @model_validator(mode="after")
    def _retention_covers_windows(self) -> "AppSettings":
        longest = max(self.scoring.supported_windows)
        if self.storage.retention_days < longest:
            raise ValueError(
                f"STORE_RETENTION_DAYS ({self.storage.retention_days}) is shorter than "
                f"the longest supported window ({longest}d)"
            )
        return self


def load_settings() -> AppSettings:
    """Load application settings from environment."""
    return AppSettings()
