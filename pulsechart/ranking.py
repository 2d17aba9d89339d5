"""Leaderboard ranking by momentum."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Iterable, Optional

from .cache import TTLCache
from .models import InsufficientData, MomentumResult
from .scoring import MomentumEngine
from .store import SnapshotStore

logger = logging.getLogger(__name__)


class LeaderboardRanker:
    """Scores candidate artists and orders them by momentum.

    Reads only the two boundary snapshots per artist, so a ranking pass
    never mutates shared state and repeated calls over unchanged history
    return the same order.
    """

    def __init__(
        self,
        store: SnapshotStore,
        engine: MomentumEngine,
        cache: Optional[TTLCache] = None,
        max_workers: int = 1,
    ):
        self.store = store
        self.engine = engine
        self.cache = cache
        self.max_workers = max_workers

    def momentum_for(
        self, artist_id: str, window_days: int, now: datetime
    ) -> MomentumResult | InsufficientData:
        """Momentum of one artist, served from cache when the boundaries match."""
        recent = self.store.latest_at_or_before(artist_id, now)
        baseline = self.store.latest_at_or_before(
            artist_id, now - timedelta(days=window_days)
        )
        boundaries = [s for s in (baseline, recent) if s is not None]

        def compute() -> MomentumResult | InsufficientData:
            return self.engine.score(boundaries, window_days, now, artist_id=artist_id)

        if self.cache is None or recent is None or baseline is None:
            return compute()

        key = (artist_id, window_days, recent.captured_at, baseline.captured_at)
        return self.cache.wrap(key, compute)

    def known_genres(self, artist_id: str, now: datetime) -> frozenset[str]:
        """Genres from the newest snapshot at or before `now` that reported any.

        A capture pass that missed the genre provider leaves genres empty;
        that means unknown, not genre-less, so older snapshots are consulted.
        """
        for snapshot in self.store.query_history(artist_id):
            if snapshot.captured_at <= now and snapshot.genres:
                return frozenset(g.lower() for g in snapshot.genres)
        return frozenset()

    def _matches(self, artist_id: str, genre_filter: frozenset[str], now: datetime) -> bool:
        if not genre_filter:
            return True
        return bool(self.known_genres(artist_id, now) & genre_filter)

    def rank(
        self,
        candidates: Iterable[str],
        genre_filter: Iterable[str],
        window_days: int,
        limit: Optional[int],
        offset: int = 0,
        *,
        now: datetime,
    ) -> list[tuple[str, MomentumResult]]:
        """Rank candidates by momentum, highest first.

        Args:
            candidates: Artist ids to consider.
            genre_filter: Keep artists sharing at least one genre; empty keeps all.
            window_days: Look-back window.
            limit: Maximum rows returned (None for all).
            offset: Rows skipped from the top.
            now: Reference time.

        Returns:
            (artist_id, MomentumResult) pairs. Ties break on artist id.
        """
        wanted = frozenset(g.strip().lower() for g in genre_filter if g.strip())
        eligible = sorted(a for a in set(candidates) if self._matches(a, wanted, now))

        def score_one(artist_id: str) -> MomentumResult | InsufficientData:
            return self.momentum_for(artist_id, window_days, now)

        if self.max_workers > 1 and len(eligible) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                results = list(executor.map(score_one, eligible))
        else:
            results = [score_one(a) for a in eligible]

        scored = [
            (artist_id, result)
            for artist_id, result in zip(eligible, results)
            if isinstance(result, MomentumResult)
        ]
        unranked = len(eligible) - len(scored)
        if unranked:
            logger.debug(f"{unranked} artist(s) unranked for {window_days}d window")

        scored.sort(key=lambda pair: (-pair[1].momentum_score, pair[0]))
        end = None if limit is None else offset + limit
        return scored[offset:end]
