"""Apify actor adapters for social platforms.

Each scraping actor is one table row: the actor id, the platform whose
follower count it reports, how to build its input and which raw fields
may carry that count. Adding an actor means adding a row.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import urlparse

import requests

from .base_adapter import FieldRule, ProviderAdapter, as_count
from .config import ApifySettings
from .errors import AdapterError
from .models import NOT_FOUND, PollStatus

logger = logging.getLogger(__name__)

RUNNING_STATES = {"READY", "RUNNING"}
FAILED_STATES = {"FAILED", "TIMING-OUT", "TIMED-OUT", "ABORTING", "ABORTED"}


def extract_handle(value: str) -> str:
    """Extract a profile handle from a URL, '@handle' or bare handle."""
    value = value.strip()
    parsed = urlparse(value)
    if parsed.scheme and parsed.netloc:
        parts = [p for p in parsed.path.split("/") if p]
        for part in parts:
            if part.startswith("@"):
                return part[1:]
        if parts and parts[0] not in ("channel", "c", "user"):
            return parts[0].lstrip("@")
        if len(parts) > 1:
            return parts[1]
        return ""
    return value.lstrip("@")


def _tiktok_url(handle: str) -> str:
    return f"https://www.tiktok.com/@{handle}"


def _youtube_url(handle: str) -> str:
    if handle.startswith("UC"):
        return f"https://www.youtube.com/channel/{handle}"
    return f"https://www.youtube.com/@{handle}"


@dataclass(frozen=True)
class ActorSpec:
    """Static description of one Apify actor."""

    provider_id: str
    actor_id: str
    platform: str
    build_input: Callable[[str], dict]
    follower_paths: tuple[str, ...]

    @property
    def field_table(self) -> tuple[FieldRule, ...]:
        return (
            FieldRule(f"social_mentions.{self.platform}", self.follower_paths, as_count),
        )


ACTORS: dict[str, ActorSpec] = {
    spec.provider_id: spec
    for spec in (
        ActorSpec(
            provider_id="tiktok_free",
            actor_id="clockworks/free-tiktok-scraper",
            platform="tiktok",
            build_input=lambda h: {
                "profiles": [_tiktok_url(h)],
                "maxProfilesPerQuery": 1,
                "resultsPerPage": 1,
            },
            follower_paths=("fans", "followersCount", "followers", "authorMeta.fans"),
        ),
        ActorSpec(
            provider_id="tiktok_official",
            actor_id="apify/tiktok-scraper",
            platform="tiktok",
            build_input=lambda h: {
                "profiles": [_tiktok_url(h)],
                "resultsPerPage": 1,
                "shouldDownloadVideos": False,
                "shouldDownloadCovers": False,
            },
            follower_paths=("fans", "authorMeta.fans", "followersCount"),
        ),
        ActorSpec(
            provider_id="instagram",
            actor_id="apify/instagram-scraper",
            platform="instagram",
            build_input=lambda h: {
                "directUrls": [f"https://www.instagram.com/{h}/"],
                "resultsType": "details",
                "resultsLimit": 1,
                "searchType": "user",
                "searchLimit": 1,
            },
            follower_paths=(
                "followersCount",
                "followers_count",
                "edge_followed_by.count",
            ),
        ),
        ActorSpec(
            provider_id="youtube",
            actor_id="apify/youtube-scraper",
            platform="youtube",
            build_input=lambda h: {
                "startUrls": [{"url": _youtube_url(h)}],
                "maxResults": 1,
                "scrapeType": "channel",
            },
            follower_paths=(
                "subscriberCount",
                "numberOfSubscribers",
                "channelSubscriberCount",
            ),
        ),
    )
}


@dataclass
class ApifyRun:
    """Job handle for one actor run."""

    run_id: str
    dataset_id: str
    items: Optional[list] = None


class ApifyActorAdapter(ProviderAdapter):
    """Runs one Apify actor through the REST API.

    submit() starts a run, poll_status() reads the run once per call and
    fetch_result() returns the first dataset item.
    """

    def __init__(
        self,
        spec: ActorSpec,
        settings: ApifySettings,
        session: Optional[requests.Session] = None,
    ):
        if not settings.api_token:
            raise ValueError("Apify adapters need APIFY_API_TOKEN")

        self.spec = spec
        self.settings = settings
        self.FIELD_TABLE = spec.field_table
        self._session = session or requests.Session()
        self._base_url = settings.base_url.rstrip("/")

    @property
    def provider_id(self) -> str:
        return self.spec.provider_id

    def resolve_handle(self, target: str) -> str:
        return extract_handle(target)

    def _request(self, method: str, path: str, **kwargs) -> Any:
        """Call the Apify API and return the decoded JSON body."""
        headers = {"Authorization": f"Bearer {self.settings.api_token}"}
        try:
            response = self._session.request(
                method,
                f"{self._base_url}{path}",
                headers=headers,
                timeout=self.settings.request_timeout_seconds,
                **kwargs,
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise AdapterError(self.provider_id, e) from e
        except ValueError as e:
            raise AdapterError(self.provider_id, f"invalid JSON: {e}") from e

    def submit(self, target_handle: str, options: Optional[dict] = None) -> ApifyRun:
        handle = self.resolve_handle(target_handle)
        if not handle:
            raise AdapterError(self.provider_id, f"no handle in {target_handle!r}")

        run_input = self.spec.build_input(handle)
        if options:
            run_input.update(options)

        actor_path = self.spec.actor_id.replace("/", "~")
        logger.debug(f"Starting {self.spec.actor_id} for {handle}")
        body = self._request("POST", f"/acts/{actor_path}/runs", json=run_input)
        try:
            data = body["data"]
            return ApifyRun(run_id=data["id"], dataset_id=data["defaultDatasetId"])
        except (KeyError, TypeError) as e:
            raise AdapterError(self.provider_id, f"unexpected run payload: {e}") from e

    def poll_status(self, job_handle: ApifyRun) -> PollStatus:
        if job_handle.items is not None:
            return PollStatus(done=True, data_available=bool(job_handle.items))

        body = self._request("GET", f"/actor-runs/{job_handle.run_id}")
        status = (body.get("data") or {}).get("status")

        if status in RUNNING_STATES:
            return PollStatus(done=False)
        if status in FAILED_STATES:
            raise AdapterError(self.provider_id, f"run {job_handle.run_id} ended {status}")
        if status != "SUCCEEDED":
            raise AdapterError(self.provider_id, f"unknown run status {status!r}")

        items = self._request(
            "GET",
            f"/datasets/{job_handle.dataset_id}/items",
            params={"clean": "true", "limit": 1, "format": "json"},
        )
        if not isinstance(items, list):
            raise AdapterError(self.provider_id, "dataset items are not a list")
        job_handle.items = items
        return PollStatus(done=True, data_available=bool(items))

    def fetch_result(self, job_handle: ApifyRun) -> Any:
        if not job_handle.items:
            return NOT_FOUND
        item = job_handle.items[0]
        if not isinstance(item, dict):
            raise AdapterError(self.provider_id, "dataset item is not an object")
        return item

    def abort(self, job_handle: ApifyRun) -> None:
        try:
            self._request("POST", f"/actor-runs/{job_handle.run_id}/abort")
        except AdapterError as e:
            logger.warning(f"Failed to abort run {job_handle.run_id}: {e}")
