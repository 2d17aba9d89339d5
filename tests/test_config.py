"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from pulsechart.config import (
    ApifySettings,
    AppSettings,
    IngestionSettings,
    ScoringSettings,
    SpotifySettings,
    StorageSettings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in [
        "SPOTIFY_CLIENT_ID",
        "SPOTIFY_CLIENT_SECRET",
        "APIFY_API_TOKEN",
        "INGEST_PROVIDER_PRIORITY",
        "INGEST_MAX_ATTEMPTS_PER_PROVIDER",
        "SCORE_POPULARITY_WEIGHT",
        "SCORE_RISING_THRESHOLD",
        "SCORE_SUPPORTED_WINDOWS",
        "STORE_RETENTION_DAYS",
    ]:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    ingestion = IngestionSettings()
    scoring = ScoringSettings()

    assert ingestion.provider_priority[0] == "spotify"
    assert ingestion.max_attempts_per_provider == 2
    assert ingestion.min_ingest_interval_hours == 23
    assert scoring.popularity_weight == 0.1
    assert scoring.followers_weight == 5.0
    assert scoring.social_weight == 2.0
    assert scoring.rising_threshold == 0.5
    assert scoring.default_window_days in scoring.supported_windows


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SCORE_POPULARITY_WEIGHT", "0.3")
    monkeypatch.setenv("INGEST_PROVIDER_PRIORITY", '["tiktok_free", "spotify"]')

    settings = AppSettings()

    assert settings.scoring.popularity_weight == 0.3
    assert settings.ingestion.provider_priority == ["tiktok_free", "spotify"]


def test_provider_enabled_flags(monkeypatch):
    assert not SpotifySettings().enabled
    assert not ApifySettings().enabled

    monkeypatch.setenv("SPOTIFY_CLIENT_ID", "id")
    monkeypatch.setenv("SPOTIFY_CLIENT_SECRET", "secret")
    monkeypatch.setenv("APIFY_API_TOKEN", "tok")

    assert SpotifySettings().enabled
    assert ApifySettings().enabled


def test_negative_weight_rejected():
    with pytest.raises(ValidationError):
        ScoringSettings(followers_weight=-1)


def test_negative_platform_weight_rejected():
    with pytest.raises(ValidationError):
        ScoringSettings(platform_weights={"tiktok": -0.5})


def test_non_positive_threshold_rejected():
    with pytest.raises(ValidationError):
        ScoringSettings(rising_threshold=0)


def test_zero_attempts_rejected(monkeypatch):
    monkeypatch.setenv("INGEST_MAX_ATTEMPTS_PER_PROVIDER", "0")

    with pytest.raises(ValidationError):
        IngestionSettings()


def test_default_retention_covers_longest_window():
    settings = AppSettings()

    assert settings.storage.retention_days >= max(settings.scoring.supported_windows)


def test_retention_shorter_than_a_window_rejected():
    with pytest.raises(ValidationError):
        AppSettings(storage=StorageSettings(retention_days=90))


def test_short_retention_allowed_with_short_windows():
    settings = AppSettings(
        scoring=ScoringSettings(supported_windows=[7, 30, 1]),
        storage=StorageSettings(retention_days=30),
    )

    assert settings.scoring.supported_windows == [1, 7, 30]


def test_empty_windows_rejected():
    with pytest.raises(ValidationError):
        ScoringSettings(supported_windows=[])
