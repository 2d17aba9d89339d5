"""Spotify adapter for PulseChart."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests
import spotipy
from spotipy.oauth2 import SpotifyClientCredentials

from .base_adapter import FieldRule, ProviderAdapter, as_count, as_float, as_genres
from .config import SpotifySettings
from .errors import AdapterError
from .models import NOT_FOUND, PollStatus

logger = logging.getLogger(__name__)

AUDIO_FEATURES = (
    "danceability",
    "energy",
    "valence",
    "tempo",
    "acousticness",
    "instrumentalness",
    "speechiness",
    "loudness",
)


def as_popularity(value: Any) -> int:
    popularity = as_count(value)
    if not 0 <= popularity <= 100:
        raise ValueError(f"popularity out of range: {popularity}")
    return popularity


@dataclass
class SpotifyJob:
    """Spotify answers synchronously, so the job is complete on submit."""

    artist_id: str
    record: Optional[dict] = None


class SpotifyAdapter(ProviderAdapter):
    """Reads popularity, followers, genres and an audio profile via spotipy."""

    FIELD_TABLE = (
        FieldRule("popularity", ("popularity",), as_popularity),
        FieldRule("followers", ("followers.total", "follower_count"), as_count),
        FieldRule("genres", ("genres",), as_genres),
    ) + tuple(
        FieldRule(f"audio_features.{name}", (f"audio_profile.{name}",), as_float)
        for name in AUDIO_FEATURES
    )

    def __init__(
        self,
        settings: SpotifySettings,
        client: Optional[spotipy.Spotify] = None,
    ):
        """Initialize the Spotify adapter.

        Args:
            settings: Spotify API configuration.
            client: Pre-built spotipy client (tests, custom auth).
        """
        self.settings = settings
        if client is None:
            auth_manager = SpotifyClientCredentials(
                client_id=settings.client_id,
                client_secret=settings.client_secret,
            )
            client = spotipy.Spotify(auth_manager=auth_manager)
        self._client = client

    @property
    def provider_id(self) -> str:
        return "spotify"

    def submit(self, target_handle: str, options: Optional[dict] = None) -> SpotifyJob:
        artist_id = self.resolve_handle(target_handle)
        job = SpotifyJob(artist_id=artist_id)

        try:
            artist = self._client.artist(artist_id)
        except spotipy.SpotifyException as e:
            if e.http_status in (400, 404):
                logger.info(f"Spotify has no artist {artist_id}")
                return job
            raise AdapterError(self.provider_id, e) from e
        except requests.RequestException as e:
            raise AdapterError(self.provider_id, e) from e

        if not artist:
            return job

        record = dict(artist)
        include_audio = (options or {}).get(
            "include_audio_features", self.settings.include_audio_features
        )
        if include_audio:
            profile = self._audio_profile(artist_id)
            if profile:
                record["audio_profile"] = profile
        job.record = record
        return job

    def poll_status(self, job_handle: SpotifyJob) -> PollStatus:
        return PollStatus(done=True, data_available=job_handle.record is not None)

    def fetch_result(self, job_handle: SpotifyJob) -> Any:
        if job_handle.record is None:
            return NOT_FOUND
        return job_handle.record

    def _audio_profile(self, artist_id: str) -> dict[str, float]:
        """Mean audio features over the artist's top tracks.

        Audio features are optional enrichment; failures only drop them.
        """
        try:
            top = self._client.artist_top_tracks(artist_id, country=self.settings.market)
            track_ids = [
                t["id"]
                for t in (top or {}).get("tracks", [])[: self.settings.top_tracks_for_audio]
                if t.get("id")
            ]
            if not track_ids:
                return {}
            features = [f for f in self._client.audio_features(track_ids) or [] if f]
        except (spotipy.SpotifyException, requests.RequestException) as e:
            logger.warning(f"Audio features unavailable for {artist_id}: {e}")
            return {}

        profile: dict[str, float] = {}
        for name in AUDIO_FEATURES:
            values = [f[name] for f in features if f.get(name) is not None]
            if values:
                profile[name] = sum(values) / len(values)
        return profile
