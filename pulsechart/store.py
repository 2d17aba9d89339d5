"""Snapshot history storage.

The ingestion pass appends snapshots; scoring and ranking only read.
History per artist is kept ordered by captured_at.
"""

import bisect
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional

from .models import ArtistSnapshot

logger = logging.getLogger(__name__)


class SnapshotStore(ABC):
    """Append-only store of artist snapshots."""

    @abstractmethod
    def append(self, snapshot: ArtistSnapshot) -> None:
        """Add a snapshot to the artist's history.

        Raises:
            ValueError: If the snapshot is older than the latest stored one.
        """
        pass

    @abstractmethod
    def query_history(
        self,
        artist_id: str,
        max_results: Optional[int] = None,
        order_by_captured_at_desc: bool = True,
    ) -> list[ArtistSnapshot]:
        """Return an artist's snapshots, newest first by default."""
        pass

    @abstractmethod
    def artist_ids(self) -> list[str]:
        """All artists with at least one snapshot, sorted."""
        pass

    def latest(self, artist_id: str) -> Optional[ArtistSnapshot]:
        history = self.query_history(artist_id, max_results=1)
        return history[0] if history else None

    def latest_at_or_before(
        self, artist_id: str, moment: datetime
    ) -> Optional[ArtistSnapshot]:
        """Most recent snapshot captured at or before `moment`."""
        for snapshot in self.query_history(artist_id):
            if snapshot.captured_at <= moment:
                return snapshot
        return None

    def prune(self, older_than: datetime) -> int:
        """Drop history that no window can use any more. Returns the count.

        Snapshots captured before `older_than` are removed, except each
        artist's latest one at or before it, which stays as the baseline
        for windows reaching back to the cutoff.
        """
        return 0


class InMemorySnapshotStore(SnapshotStore):
    """Thread-safe in-process store."""

    def __init__(self) -> None:
        self._history: dict[str, list[ArtistSnapshot]] = {}
        self._lock = threading.RLock()

    def append(self, snapshot: ArtistSnapshot) -> None:
        with self._lock:
            history = self._history.setdefault(snapshot.artist_id, [])
            if history and snapshot.captured_at < history[-1].captured_at:
                raise ValueError(
                    f"Snapshot for {snapshot.artist_id} at "
                    f"{snapshot.captured_at.isoformat()} is older than the latest "
                    f"({history[-1].captured_at.isoformat()})"
                )
            history.append(snapshot)

    def query_history(
        self,
        artist_id: str,
        max_results: Optional[int] = None,
        order_by_captured_at_desc: bool = True,
    ) -> list[ArtistSnapshot]:
        with self._lock:
            history = list(self._history.get(artist_id, ()))
        if order_by_captured_at_desc:
            history.reverse()
        if max_results is not None:
            history = history[:max_results]
        return history

    def latest_at_or_before(
        self, artist_id: str, moment: datetime
    ) -> Optional[ArtistSnapshot]:
        with self._lock:
            history = self._history.get(artist_id, [])
            index = bisect.bisect_right([s.captured_at for s in history], moment)
            return history[index - 1] if index else None

    def artist_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._history)

    def prune(self, older_than: datetime) -> int:
        removed = 0
        with self._lock:
            for artist_id, history in self._history.items():
                index = bisect.bisect_right([s.captured_at for s in history], older_than)
                if index > 1:
                    self._history[artist_id] = history[index - 1 :]
                    removed += index - 1
        if removed:
            logger.info(f"Pruned {removed} snapshot(s) older than {older_than.isoformat()}")
        return removed


class JsonFileSnapshotStore(InMemorySnapshotStore):
    """In-memory store mirrored to a JSON file after every write."""

    def __init__(self, path: Path):
        super().__init__()
        self._path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return

        with open(self._path) as f:
            data = json.load(f)

        count = 0
        for artist_id, rows in data.get("artists", {}).items():
            snapshots = sorted(
                (ArtistSnapshot.from_dict(row) for row in rows),
                key=lambda s: s.captured_at,
            )
            self._history[artist_id] = snapshots
            count += len(snapshots)
        logger.info(
            f"📦 Loaded {count} snapshot(s) for {len(self._history)} artist(s) "
            f"from {self._path}"
        )

    def _save(self) -> None:
        with self._lock:
            data = {
                "artists": {
                    artist_id: [s.to_dict() for s in history]
                    for artist_id, history in self._history.items()
                },
                "updated_at": datetime.now().isoformat(),
            }
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self._path)
        logger.debug(f"Snapshots saved to {self._path}")

    def append(self, snapshot: ArtistSnapshot) -> None:
        with self._lock:
            super().append(snapshot)
            self._save()

    def prune(self, older_than: datetime) -> int:
        with self._lock:
            removed = super().prune(older_than)
            if removed:
                self._save()
        return removed
