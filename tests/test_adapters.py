"""Tests for provider adapters and field normalization."""

from unittest.mock import MagicMock

import pytest
import requests
import spotipy

from pulsechart.apify_adapter import ACTORS, ApifyActorAdapter, ApifyRun, extract_handle
from pulsechart.base_adapter import FieldRule, as_count, as_genres, lookup
from pulsechart.config import ApifySettings, SpotifySettings
from pulsechart.errors import AdapterError
from pulsechart.models import NOT_FOUND
from pulsechart.spotify_adapter import SpotifyAdapter

from conftest import FakeAdapter


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


# =============================================================================
# Normalization helpers
# =============================================================================


class TestAsCount:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            (12400, 12400),
            (12400.7, 12400),
            ("12,400", 12400),
            ("1.2M", 1_200_000),
            ("12.5k", 12_500),
            ("0", 0),
        ],
    )
    def test_parses(self, raw, expected):
        assert as_count(raw) == expected

    @pytest.mark.parametrize("raw", [True, "lots", "", [1]])
    def test_rejects(self, raw):
        with pytest.raises(ValueError):
            as_count(raw)


def test_as_genres_lowercases():
    assert as_genres(["Indie Pop", " ", "ROCK"]) == frozenset({"indie pop", "rock"})


def test_lookup_dotted_path():
    assert lookup({"followers": {"total": 5}}, "followers.total") == 5
    assert lookup({"followers": 5}, "followers.total") is None


class TestNormalize:
    @pytest.fixture
    def adapter(self):
        table = (
            FieldRule("followers", ("primary", "fallback"), as_count),
            FieldRule("social_mentions.tiktok", ("fans",), as_count),
        )
        return FakeAdapter("fake", table, [])

    def test_first_present_candidate_wins(self, adapter):
        assert adapter.normalize({"primary": 10, "fallback": 99}) == {"followers": 10}

    def test_falls_back_when_primary_null(self, adapter):
        assert adapter.normalize({"primary": None, "fallback": "1K"}) == {"followers": 1000}

    def test_missing_fields_are_omitted(self, adapter):
        assert adapter.normalize({"unrelated": 1}) == {}

    def test_zero_is_kept(self, adapter):
        assert adapter.normalize({"fans": 0}) == {"social_mentions.tiktok": 0}

    def test_bad_value_raises_adapter_error(self, adapter):
        with pytest.raises(AdapterError) as exc:
            adapter.normalize({"primary": "many"})
        assert exc.value.provider_id == "fake"

    def test_not_found_normalizes_to_nothing(self, adapter):
        assert adapter.normalize(NOT_FOUND) == {}

    def test_metric_families(self, adapter):
        assert adapter.metric_families == frozenset({"followers", "social_mentions.tiktok"})


# =============================================================================
# Apify
# =============================================================================


@pytest.mark.parametrize(
    "value,expected",
    [
        ("@someartist", "someartist"),
        ("someartist", "someartist"),
        ("https://www.tiktok.com/@someartist", "someartist"),
        ("https://www.tiktok.com/@someartist/video/123", "someartist"),
        ("https://www.instagram.com/someartist/", "someartist"),
        ("https://www.youtube.com/channel/UCabc", "UCabc"),
        ("https://www.youtube.com/@someartist", "someartist"),
    ],
)
def test_extract_handle(value, expected):
    assert extract_handle(value) == expected


class TestApifyActorAdapter:
    @pytest.fixture
    def session(self):
        return MagicMock()

    @pytest.fixture
    def adapter(self, session):
        settings = ApifySettings(api_token="tok", base_url="https://api.test/v2")
        return ApifyActorAdapter(ACTORS["tiktok_free"], settings, session=session)

    def test_requires_token(self):
        with pytest.raises(ValueError):
            ApifyActorAdapter(ACTORS["tiktok_free"], ApifySettings(api_token=None))

    def test_submit_starts_actor_run(self, adapter, session):
        session.request.return_value = _response(
            {"data": {"id": "run1", "defaultDatasetId": "ds1"}}
        )

        run = adapter.submit("https://www.tiktok.com/@someartist")

        assert run == ApifyRun(run_id="run1", dataset_id="ds1")
        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert method == "POST"
        assert url == "https://api.test/v2/acts/clockworks~free-tiktok-scraper/runs"
        assert kwargs["json"]["profiles"] == ["https://www.tiktok.com/@someartist"]
        assert kwargs["headers"]["Authorization"] == "Bearer tok"

    def test_submit_without_handle_fails(self, adapter):
        with pytest.raises(AdapterError):
            adapter.submit("  ")

    def test_running_is_not_done(self, adapter, session):
        session.request.return_value = _response({"data": {"status": "RUNNING"}})

        status = adapter.poll_status(ApifyRun("run1", "ds1"))

        assert status.done is False

    def test_succeeded_loads_dataset(self, adapter, session):
        session.request.side_effect = [
            _response({"data": {"status": "SUCCEEDED"}}),
            _response([{"fans": "12.5K"}]),
        ]
        run = ApifyRun("run1", "ds1")

        status = adapter.poll_status(run)

        assert status.done and status.data_available
        assert adapter.normalize(adapter.fetch_result(run)) == {"social_mentions.tiktok": 12500}
        assert session.request.call_args.args[1].endswith("/datasets/ds1/items")

    def test_empty_dataset_is_not_found(self, adapter, session):
        session.request.side_effect = [
            _response({"data": {"status": "SUCCEEDED"}}),
            _response([]),
        ]
        run = ApifyRun("run1", "ds1")

        status = adapter.poll_status(run)

        assert status.done and not status.data_available
        assert adapter.fetch_result(run) is NOT_FOUND

    @pytest.mark.parametrize("state", ["FAILED", "ABORTED", "TIMED-OUT"])
    def test_failed_run_raises(self, adapter, session, state):
        session.request.return_value = _response({"data": {"status": state}})

        with pytest.raises(AdapterError):
            adapter.poll_status(ApifyRun("run1", "ds1"))

    def test_transport_error_becomes_adapter_error(self, adapter, session):
        session.request.side_effect = requests.ConnectionError("reset")

        with pytest.raises(AdapterError) as exc:
            adapter.poll_status(ApifyRun("run1", "ds1"))
        assert exc.value.provider_id == "tiktok_free"

    def test_abort_failure_is_swallowed(self, adapter, session):
        session.request.side_effect = requests.ConnectionError("reset")

        adapter.abort(ApifyRun("run1", "ds1"))

    def test_youtube_channel_input(self):
        spec = ACTORS["youtube"]

        assert spec.build_input("UCabc")["startUrls"] == [
            {"url": "https://www.youtube.com/channel/UCabc"}
        ]
        assert spec.field_table[0].target == "social_mentions.youtube"


# =============================================================================
# Spotify
# =============================================================================


ARTIST = {
    "id": "sp1",
    "name": "Some Artist",
    "popularity": 58,
    "followers": {"href": None, "total": 1100},
    "genres": ["Indie Pop"],
}


class TestSpotifyAdapter:
    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.artist.return_value = dict(ARTIST)
        client.artist_top_tracks.return_value = {"tracks": [{"id": "t1"}, {"id": "t2"}]}
        client.audio_features.return_value = [
            {"energy": 0.6, "tempo": 100.0},
            {"energy": 0.8, "tempo": 120.0},
        ]
        return client

    @pytest.fixture
    def adapter(self, client):
        return SpotifyAdapter(SpotifySettings(client_id="id", client_secret="secret"), client=client)

    def _run(self, adapter, handle="sp1"):
        job = adapter.submit(handle)
        assert adapter.poll_status(job).done
        return adapter.normalize(adapter.fetch_result(job))

    def test_normalizes_artist(self, adapter):
        fields = self._run(adapter)

        assert fields["popularity"] == 58
        assert fields["followers"] == 1100
        assert fields["genres"] == frozenset({"indie pop"})

    def test_audio_profile_is_mean_of_top_tracks(self, adapter):
        fields = self._run(adapter)

        assert fields["audio_features.energy"] == pytest.approx(0.7)
        assert fields["audio_features.tempo"] == pytest.approx(110.0)
        assert "audio_features.valence" not in fields

    def test_audio_failure_keeps_artist(self, adapter, client):
        client.audio_features.side_effect = spotipy.SpotifyException(403, -1, "forbidden")

        fields = self._run(adapter)

        assert fields["popularity"] == 58
        assert not any(key.startswith("audio_features.") for key in fields)

    def test_unknown_artist_is_not_found(self, adapter, client):
        client.artist.side_effect = spotipy.SpotifyException(404, -1, "not found")

        job = adapter.submit("missing")

        assert adapter.poll_status(job).data_available is False
        assert adapter.fetch_result(job) is NOT_FOUND

    def test_server_error_is_adapter_error(self, adapter, client):
        client.artist.side_effect = spotipy.SpotifyException(500, -1, "boom")

        with pytest.raises(AdapterError):
            adapter.submit("sp1")

    def test_out_of_range_popularity_rejected(self, adapter, client):
        client.artist.return_value = dict(ARTIST, popularity=140)

        with pytest.raises(AdapterError):
            self._run(adapter)
