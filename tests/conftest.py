"""Shared fixtures: fake providers, a fake clock and snapshot builders."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from pulsechart.base_adapter import FieldRule, ProviderAdapter, as_count
from pulsechart.config import IngestionSettings, ScoringSettings
from pulsechart.errors import AdapterError
from pulsechart.models import NOT_FOUND, ArtistSnapshot, PollStatus

DAY0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.t = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.t

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += seconds


class FakeAdapter(ProviderAdapter):
    """Scripted provider.

    Each submit() consumes the next behaviour from `script`:
      "timeout"    - poll never completes
      "not_found"  - completes without data
      "error"      - submit raises AdapterError
      "poll_error" - submit succeeds, the first poll raises AdapterError
      dict         - completes with this raw record (after `polls_needed` polls)
    """

    def __init__(self, provider_id: str, table: tuple[FieldRule, ...], script: list, polls_needed: int = 1):
        self._provider_id = provider_id
        self.FIELD_TABLE = table
        self.script = list(script)
        self.polls_needed = polls_needed
        self.submitted: list[str] = []
        self.aborted: list[Any] = []

    @property
    def provider_id(self) -> str:
        return self._provider_id

    def submit(self, target_handle: str, options: Optional[dict] = None) -> dict:
        self.submitted.append(target_handle)
        behaviour = self.script.pop(0) if self.script else "not_found"
        if behaviour == "error":
            raise AdapterError(self.provider_id, "connection reset")
        return {"behaviour": behaviour, "polls": 0}

    def poll_status(self, job_handle: dict) -> PollStatus:
        job_handle["polls"] += 1
        behaviour = job_handle["behaviour"]
        if behaviour == "poll_error":
            raise AdapterError(self.provider_id, "502 Bad Gateway")
        if behaviour == "timeout":
            return PollStatus(done=False)
        if job_handle["polls"] < self.polls_needed:
            return PollStatus(done=False)
        return PollStatus(done=True, data_available=behaviour != "not_found")

    def fetch_result(self, job_handle: dict) -> Any:
        behaviour = job_handle["behaviour"]
        return behaviour if isinstance(behaviour, dict) else NOT_FOUND

    def abort(self, job_handle: dict) -> None:
        self.aborted.append(job_handle)


STREAMING_TABLE = (
    FieldRule("popularity", ("popularity",), as_count),
    FieldRule("followers", ("followers.total", "followerCount"), as_count),
)

TIKTOK_TABLE = (
    FieldRule("social_mentions.tiktok", ("fans", "followersCount"), as_count),
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ingestion_settings():
    return IngestionSettings(
        provider_priority=["a", "b"],
        per_provider_timeout_seconds=10,
        max_attempts_per_provider=2,
        poll_interval_seconds=5,
        max_workers=2,
        min_ingest_interval_hours=23,
    )


@pytest.fixture
def scoring_settings():
    return ScoringSettings(
        popularity_weight=0.1,
        followers_weight=5.0,
        social_weight=2.0,
        rising_threshold=0.5,
    )


def make_snapshot(
    artist_id: str = "artist-1",
    day: float = 0,
    popularity: Optional[int] = None,
    followers: Optional[int] = None,
    genres=(),
    social: Optional[dict] = None,
) -> ArtistSnapshot:
    return ArtistSnapshot(
        artist_id=artist_id,
        captured_at=DAY0 + timedelta(days=day),
        popularity=popularity,
        followers=followers,
        genres=frozenset(genres),
        social_mentions=dict(social or {}),
    )


@pytest.fixture
def snap():
    """Factory fixture for snapshots measured in days after DAY0."""
    return make_snapshot


@pytest.fixture
def provider():
    """Factory fixture: provider(id, kind, script) with kind 'streaming' or 'tiktok'."""

    def _make(provider_id: str, kind: str, script: list, polls_needed: int = 1) -> FakeAdapter:
        table = STREAMING_TABLE if kind == "streaming" else TIKTOK_TABLE
        return FakeAdapter(provider_id, table, script, polls_needed=polls_needed)

    return _make
