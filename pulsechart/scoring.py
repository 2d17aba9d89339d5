"""Momentum scoring engine.

Momentum compares two boundary snapshots: the latest one at or before
`now` and the latest one at or before `now - window`. The raw deltas are
scaled by configured weights and summed into one signed score.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from .config import ScoringSettings
from .models import ArtistSnapshot, Classification, InsufficientData, MomentumResult


def growth_ratio(recent: Optional[float], baseline: Optional[float]) -> Optional[float]:
    """Fractional change from baseline to recent.

    None when either side is unknown or the baseline is zero.
    """
    if recent is None or baseline is None or baseline == 0:
        return None
    return (recent - baseline) / baseline


def latest_at_or_before(
    history: Iterable[ArtistSnapshot], moment: datetime
) -> Optional[ArtistSnapshot]:
    """Most recent snapshot captured at or before `moment`, in any input order."""
    best: Optional[ArtistSnapshot] = None
    for snapshot in history:
        if snapshot.captured_at <= moment and (
            best is None or snapshot.captured_at >= best.captured_at
        ):
            best = snapshot
    return best


def popularity_series(
    history: Iterable[ArtistSnapshot], window_days: int, now: datetime
) -> list[Optional[int]]:
    """Popularity values inside the window, oldest first. Unknowns stay None."""
    start = now - timedelta(days=window_days)
    in_window = [s for s in history if start <= s.captured_at <= now]
    in_window.sort(key=lambda s: s.captured_at)
    return [s.popularity for s in in_window]


class MomentumEngine:
    """Turns snapshot history into MomentumResults.

    Pure and deterministic: the same two boundary snapshots and settings
    always give the same result.
    """

    def __init__(self, settings: ScoringSettings):
        self.settings = settings

    def classify(self, momentum_score: float) -> Classification:
        threshold = self.settings.rising_threshold
        if momentum_score > threshold:
            return Classification.RISING
        if momentum_score < -threshold:
            return Classification.DECLINING
        return Classification.STABLE

    def combine(
        self,
        delta_popularity: Optional[int],
        delta_followers_pct: Optional[float],
        per_platform_delta_pct: dict[str, float],
    ) -> float:
        """Weighted sum of the available deltas.

        Social growth enters as the mean over platforms, each scaled by its
        platform multiplier, so tracking more platforms does not inflate it.
        """
        s = self.settings
        momentum_score = 0.0
        if delta_popularity is not None:
            momentum_score += s.popularity_weight * delta_popularity
        if delta_followers_pct is not None:
            momentum_score += s.followers_weight * delta_followers_pct
        if per_platform_delta_pct:
            social = sum(
                s.platform_weights.get(platform, 1.0) * delta
                for platform, delta in sorted(per_platform_delta_pct.items())
            ) / len(per_platform_delta_pct)
            momentum_score += s.social_weight * social
        return momentum_score

    def score(
        self,
        history: Sequence[ArtistSnapshot],
        window_days: int,
        now: datetime,
        artist_id: Optional[str] = None,
    ) -> MomentumResult | InsufficientData:
        """Compute momentum for one artist over one window.

        Args:
            history: The artist's snapshots, in either order.
            window_days: Look-back in days (positive).
            now: Reference time; later snapshots are ignored.
            artist_id: Id reported when history is empty.

        Returns:
            A MomentumResult, or InsufficientData when there are not two
            distinct boundary snapshots or they share no comparable signal.
        """
        if window_days < 1:
            raise ValueError(f"window_days must be positive, got {window_days}")

        if artist_id is None:
            artist_id = history[0].artist_id if history else ""
        recent = latest_at_or_before(history, now)
        baseline = latest_at_or_before(history, now - timedelta(days=window_days))

        if recent is None or baseline is None or recent is baseline or recent == baseline:
            return InsufficientData(
                artist_id=artist_id,
                window_days=window_days,
                reason="fewer than two snapshots span the window",
            )

        delta_popularity = None
        if recent.popularity is not None and baseline.popularity is not None:
            delta_popularity = recent.popularity - baseline.popularity

        delta_followers_pct = growth_ratio(recent.followers, baseline.followers)

        per_platform: dict[str, float] = {}
        for platform in sorted(recent.social_mentions.keys() & baseline.social_mentions.keys()):
            ratio = growth_ratio(
                recent.social_mentions[platform], baseline.social_mentions[platform]
            )
            if ratio is not None:
                per_platform[platform] = ratio

        if delta_popularity is None and delta_followers_pct is None and not per_platform:
            return InsufficientData(
                artist_id=artist_id,
                window_days=window_days,
                reason="boundary snapshots share no comparable signal",
            )

        momentum_score = self.combine(delta_popularity, delta_followers_pct, per_platform)
        return MomentumResult(
            artist_id=artist_id,
            momentum_score=momentum_score,
            window_days=window_days,
            classification=self.classify(momentum_score),
            recent_captured_at=recent.captured_at,
            baseline_captured_at=baseline.captured_at,
            delta_popularity=delta_popularity,
            delta_followers_pct=delta_followers_pct,
            per_platform_delta_pct=per_platform,
        )
