"""Ingestion orchestrator: drives provider adapters into artist snapshots."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Mapping, Optional

from .base_adapter import ProviderAdapter
from .config import IngestionSettings
from .errors import AdapterError
from .models import (
    NOT_FOUND,
    ArtistSnapshot,
    IngestionFailure,
    IngestionSummary,
    JobState,
    ProviderJob,
)
from .store import SnapshotStore

logger = logging.getLogger(__name__)

_MAPPING_FIELDS = ("audio_features", "social_mentions")


def snapshot_from_fields(
    artist_id: str, captured_at: datetime, fields: Mapping[str, Any]
) -> ArtistSnapshot:
    """Assemble a snapshot from flat normalized fields.

    Keys are snapshot attributes ("followers") or keyed mapping entries
    ("social_mentions.tiktok"). Missing keys stay absent.
    """
    mappings: dict[str, dict[str, float]] = {name: {} for name in _MAPPING_FIELDS}
    for key, value in fields.items():
        if "." in key:
            name, _, sub_key = key.partition(".")
            if name in mappings:
                mappings[name][sub_key] = value
    return ArtistSnapshot(
        artist_id=artist_id,
        captured_at=captured_at,
        popularity=fields.get("popularity"),
        followers=fields.get("followers"),
        genres=frozenset(fields.get("genres") or ()),
        audio_features=mappings["audio_features"],
        social_mentions=mappings["social_mentions"],
    )


class IngestionOrchestrator:
    """Builds one snapshot per artist from an ordered list of providers.

    Providers are tried in priority order. A provider is skipped once every
    metric family it supplies is already filled, so a capture pass collects
    the union of fields across providers while the first provider to report
    a family wins it.
    """

    def __init__(
        self,
        adapters: Iterable[ProviderAdapter],
        settings: IngestionSettings,
        store: Optional[SnapshotStore] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], Any]] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """Initialize the orchestrator.

        Args:
            adapters: Available provider adapters.
            settings: Ingestion configuration.
            store: Where finished snapshots are appended, if anywhere.
            clock: Monotonic clock used for poll deadlines.
            sleep: Waits between polls; a truthy return means stop.
            now: Wall clock used for captured_at.
        """
        self.adapters: dict[str, ProviderAdapter] = {a.provider_id: a for a in adapters}
        self.settings = settings
        self.store = store
        self._clock = clock
        self._now = now

        self._stop_event = threading.Event()
        self._sleep = sleep or self._stop_event.wait
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._running = False

    def _artist_lock(self, artist_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(artist_id, threading.Lock())

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def ingest(
        self,
        artist_id: str,
        target_handles_by_provider: Mapping[str, str],
        provider_priority_order: Optional[list[str]] = None,
        per_provider_timeout: Optional[float] = None,
        max_attempts_per_provider: Optional[int] = None,
    ) -> ArtistSnapshot | IngestionFailure:
        """Capture one snapshot for an artist.

        Families no provider could supply are left absent. Only when no
        provider resolves the artist at all is an IngestionFailure returned.
        """
        order = provider_priority_order or self.settings.provider_priority
        timeout = (
            per_provider_timeout
            if per_provider_timeout is not None
            else self.settings.per_provider_timeout_seconds
        )
        max_attempts = max_attempts_per_provider or self.settings.max_attempts_per_provider

        with self._artist_lock(artist_id):
            fields: dict[str, Any] = {}
            tried: list[str] = []

            for provider_id in order:
                adapter = self.adapters.get(provider_id)
                handle = target_handles_by_provider.get(provider_id)
                if adapter is None or not handle:
                    logger.debug(f"  {provider_id}: not configured for {artist_id}")
                    continue

                if adapter.metric_families.issubset(fields):
                    logger.debug(f"  {provider_id}: families already covered, skipping")
                    continue

                tried.append(provider_id)
                record = self._run_provider(adapter, handle, timeout, max_attempts)
                if not record:
                    continue

                added = [key for key in record if key not in fields]
                for key in added:
                    fields[key] = record[key]
                logger.info(f"  ✓ {provider_id} supplied {', '.join(sorted(added)) or 'nothing new'}")

            if not fields:
                reason = (
                    f"no provider resolved {artist_id}"
                    if tried
                    else f"no configured provider has a handle for {artist_id}"
                )
                logger.warning(f"✗ Ingestion failed: {reason}")
                return IngestionFailure(
                    artist_id=artist_id, reason=reason, providers_tried=tuple(tried)
                )

            snapshot = snapshot_from_fields(artist_id, self._now(), fields)
            if self.store is not None:
                self.store.append(snapshot)
            return snapshot

    def _run_provider(
        self,
        adapter: ProviderAdapter,
        handle: str,
        timeout: float,
        max_attempts: int,
    ) -> Optional[dict]:
        """Run one provider within its attempt budget.

        Returns normalized fields, or None when the provider confirmed it has
        no data, kept failing, or kept timing out.
        """
        job = ProviderJob(provider_id=adapter.provider_id, target_handle=handle)

        while job.attempts_used < max_attempts and not self.stopped:
            job.attempts_used += 1
            try:
                result = self._attempt(adapter, job, timeout)
            except AdapterError as e:
                job.state = JobState.FAILED
                logger.warning(
                    f"  {job.provider_id} attempt {job.attempts_used}/{max_attempts} "
                    f"failed: {e.cause}"
                )
                continue

            if job.state == JobState.TIMED_OUT:
                logger.warning(
                    f"  {job.provider_id} attempt {job.attempts_used}/{max_attempts} "
                    f"timed out after {timeout}s"
                )
                continue

            if result is NOT_FOUND:
                # A confirmed absence is final; retrying only burns quota
                logger.info(f"  {job.provider_id}: no data for {handle}")
                return None
            return result

        logger.warning(f"  {job.provider_id}: giving up after {job.attempts_used} attempt(s)")
        return None

    def _attempt(self, adapter: ProviderAdapter, job: ProviderJob, timeout: float) -> Any:
        """One submit, poll and fetch cycle. Updates job.state."""
        job.state = JobState.SUBMITTED
        job.handle = adapter.submit(job.target_handle)

        job.state = JobState.POLLING
        deadline = self._clock() + timeout
        try:
            while True:
                status = adapter.poll_status(job.handle)
                if status.done:
                    break

                remaining = deadline - self._clock()
                if remaining <= 0:
                    job.state = JobState.TIMED_OUT
                    adapter.abort(job.handle)
                    return None

                if self._sleep(min(self.settings.poll_interval_seconds, remaining)):
                    job.state = JobState.FAILED
                    adapter.abort(job.handle)
                    return None

            if not status.data_available:
                job.state = JobState.SUCCEEDED
                return NOT_FOUND

            raw = adapter.fetch_result(job.handle)
        except AdapterError:
            # The provider-side job may still be running; release it before retrying
            job.state = JobState.FAILED
            adapter.abort(job.handle)
            raise

        job.state = JobState.SUCCEEDED
        if raw is NOT_FOUND:
            return NOT_FOUND
        return adapter.normalize(raw)

    def _recently_ingested(self, artist_id: str) -> bool:
        if self.store is None or self.settings.min_ingest_interval_hours <= 0:
            return False
        latest = self.store.latest(artist_id)
        if latest is None:
            return False
        age = self._now() - latest.captured_at
        return age < timedelta(hours=self.settings.min_ingest_interval_hours)

    def ingest_many(
        self,
        roster: Mapping[str, Mapping[str, str]],
        force: bool = False,
    ) -> IngestionSummary:
        """Ingest many artists concurrently with a bounded worker pool.

        Args:
            roster: artist id -> provider id -> handle.
            force: Ignore the minimum interval between snapshots.

        Returns:
            Counts of ingested, failed and skipped artists.
        """
        summary = IngestionSummary()
        started = self._clock()

        pending: dict[str, Mapping[str, str]] = {}
        for artist_id, handles in roster.items():
            if not force and self._recently_ingested(artist_id):
                logger.info(f"Skipping {artist_id} - ingested recently")
                summary.skipped.append(artist_id)
            else:
                pending[artist_id] = handles

        if pending:
            workers = min(len(pending), self.settings.max_workers)
            logger.info(f"Ingesting {len(pending)} artist(s) with {workers} worker(s)...")
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = {
                    executor.submit(self.ingest, artist_id, handles): artist_id
                    for artist_id, handles in pending.items()
                }
                for future in as_completed(futures):
                    artist_id = futures[future]
                    try:
                        result = future.result()
                    except Exception as e:
                        logger.error(f"Error ingesting {artist_id}: {e}", exc_info=True)
                        summary.failed.append(artist_id)
                        continue

                    if isinstance(result, IngestionFailure):
                        summary.failed.append(artist_id)
                    else:
                        summary.ingested.append(artist_id)

        summary.duration_seconds = self._clock() - started
        logger.info(
            f"Ingestion pass complete: {len(summary.ingested)} ingested, "
            f"{len(summary.failed)} failed, {len(summary.skipped)} skipped "
            f"in {summary.duration_seconds:.1f}s"
        )
        return summary

    def start(
        self,
        load_roster: Callable[[], Mapping[str, Mapping[str, str]]],
        interval_seconds: float,
    ) -> None:
        """Run ingestion passes until stop() is called."""
        logger.info("Starting ingestion loop...")
        logger.info(f"Providers: {list(self.adapters)}")
        logger.info(f"Pass interval: {interval_seconds}s")

        self._running = True
        pass_count = 0
        while self._running and not self.stopped:
            try:
                pass_count += 1
                logger.debug(f"Pass #{pass_count}")
                self.ingest_many(load_roster())
            except KeyboardInterrupt:
                logger.info("Received interrupt signal")
                self.stop()
                break
            except Exception as e:
                logger.error(f"Unexpected error in ingestion loop: {e}", exc_info=True)

            if self._stop_event.wait(interval_seconds):
                break

    def stop(self) -> None:
        """Stop the loop and cancel in-flight polls."""
        logger.info("Stopping ingestion...")
        self._running = False
        self._stop_event.set()
