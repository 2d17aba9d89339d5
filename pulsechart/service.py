"""Read-side entry points: leaderboard pages and artist detail."""

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from .cache import TTLCache
from .config import ScoringSettings
from .models import ArtistDetail, LeaderboardEntry, LeaderboardPage
from .ranking import LeaderboardRanker
from .scoring import MomentumEngine, popularity_series
from .store import SnapshotStore

logger = logging.getLogger(__name__)


class MomentumBoard:
    """Serves the leaderboard and artist detail views from stored history."""

    def __init__(
        self,
        store: SnapshotStore,
        settings: ScoringSettings,
        ranker: Optional[LeaderboardRanker] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.settings = settings
        self.ranker = ranker or LeaderboardRanker(
            store,
            MomentumEngine(settings),
            cache=TTLCache(settings.cache_ttl_seconds),
        )
        self._now = now

    def _window(self, window_days: Optional[int]) -> int:
        window = self.settings.default_window_days if window_days is None else window_days
        if window not in self.settings.supported_windows:
            raise ValueError(
                f"Unsupported window {window}d; choose one of {self.settings.supported_windows}"
            )
        return window

    def leaderboard(
        self,
        genres: Iterable[str] = (),
        window_days: Optional[int] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> LeaderboardPage:
        """One page of artists ranked by momentum.

        Raises:
            ValueError: On an unsupported window or a non-positive page/page_size.
        """
        window = self._window(window_days)
        if page < 1 or page_size < 1:
            raise ValueError("page and page_size must be >= 1")

        genre_list = [g for g in genres if g and g.strip()]
        offset = (page - 1) * page_size
        # One extra row tells whether another page exists
        ranked = self.ranker.rank(
            candidates=self.store.artist_ids(),
            genre_filter=genre_list,
            window_days=window,
            limit=page_size + 1,
            offset=offset,
            now=self._now(),
        )

        entries = [
            LeaderboardEntry(rank=offset + i + 1, artist_id=artist_id, momentum=result)
            for i, (artist_id, result) in enumerate(ranked[:page_size])
        ]
        logger.debug(
            f"Leaderboard page {page} ({window}d, genres={genre_list}): {len(entries)} rows"
        )
        return LeaderboardPage(
            entries=entries,
            page=page,
            page_size=page_size,
            window_days=window,
            genres=genre_list,
            has_more=len(ranked) > page_size,
        )

    def artist_detail(self, artist_id: str, window_days: Optional[int] = None) -> ArtistDetail:
        """Latest snapshot, momentum and popularity sparkline for one artist."""
        window = self._window(window_days)
        now = self._now()
        history = self.store.query_history(artist_id, order_by_captured_at_desc=False)
        return ArtistDetail(
            artist_id=artist_id,
            latest=self.store.latest_at_or_before(artist_id, now),
            momentum=self.ranker.momentum_for(artist_id, window, now),
            sparkline=popularity_series(history, window, now),
        )
