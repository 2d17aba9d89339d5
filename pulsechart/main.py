"""Main entry point for PulseChart."""

import argparse
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from .adapter_factory import PROVIDER_PLATFORMS, create_adapters
from .config import AppSettings, load_settings
from .models import ArtistDetail, InsufficientData, LeaderboardPage, MomentumResult
from .orchestrator import IngestionOrchestrator
from .roster import load_roster
from .service import MomentumBoard
from .store import JsonFileSnapshotStore


def setup_logging(debug: bool = False) -> None:
    """Configure logging for the application.

    Args:
        debug: Enable debug level logging.
    """
    level = logging.DEBUG if debug else logging.INFO
    format_str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    logging.basicConfig(
        level=level,
        format=format_str,
        datefmt=date_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from libraries
    logging.getLogger("spotipy").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments.
    """
    parser = argparse.ArgumentParser(
        description="PulseChart - Track artist popularity and rank the fastest risers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pulsechart ingest --once              # One ingestion pass over the roster
  pulsechart ingest --artist ID --force # Re-capture one artist now
  pulsechart leaderboard --days 30      # Top risers over 30 days
  pulsechart leaderboard --genres pop,indie --page 2
  pulsechart artist ID                  # Latest snapshot and momentum

Environment Variables:
  SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET   Spotify app credentials
  APIFY_API_TOKEN                             Apify token for social scrapers

  # Ingestion
  INGEST_PROVIDER_PRIORITY          JSON list of provider ids
  INGEST_PER_PROVIDER_TIMEOUT_SECONDS  Poll budget per job (default: 120)
  INGEST_MAX_ATTEMPTS_PER_PROVIDER  Submissions per provider (default: 2)

  # Scoring
  SCORE_POPULARITY_WEIGHT / SCORE_FOLLOWERS_WEIGHT / SCORE_SOCIAL_WEIGHT
  SCORE_RISING_THRESHOLD            Classification band (default: 0.5)

  # Storage
  STORE_SNAPSHOT_FILE / STORE_ROSTER_FILE
        """,
    )

    parser.add_argument(
        "--debug", "-d", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--http-log",
        action="store_true",
        help="Log all provider HTTP calls to pulsechart_http.log with timing",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    ingest = commands.add_parser("ingest", help="Capture snapshots from providers")
    ingest.add_argument("--artist", help="Only ingest this roster artist id")
    ingest.add_argument(
        "--once",
        "-1",
        action="store_true",
        help="Run one pass and exit (don't loop)",
    )
    ingest.add_argument(
        "--force",
        action="store_true",
        help="Ignore the minimum interval between snapshots",
    )

    board = commands.add_parser("leaderboard", help="Show artists ranked by momentum")
    board.add_argument("--genres", default="", help="Comma-separated genre filter")
    board.add_argument("--days", type=int, help="Window in days")
    board.add_argument("--page", type=int, default=1)
    board.add_argument("--page-size", type=int, default=20)

    artist = commands.add_parser("artist", help="Show one artist's momentum")
    artist.add_argument("artist_id")
    artist.add_argument("--days", type=int, help="Window in days")

    commands.add_parser("status", help="Show configuration and storage status")

    return parser.parse_args(argv)


def _pct(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value * 100:+.1f}%"


def _signed(value: Optional[int]) -> str:
    return "n/a" if value is None else f"{value:+d}"


def _label(result: MomentumResult) -> str:
    return {
        "rising": "📈 Rising",
        "declining": "📉 Declining",
        "stable": "➖ Stable",
    }[result.classification.value]


def print_leaderboard(page: LeaderboardPage) -> None:
    genres = ", ".join(page.genres) or "all genres"
    print(f"\n🏆 Momentum leaderboard - {page.window_days}d, {genres}, page {page.page}")
    print("=" * 72)
    if not page.entries:
        print("No ranked artists (need two snapshots spanning the window).")
    for entry in page.entries:
        m = entry.momentum
        print(
            f"{entry.rank:>4}. {entry.artist_id:<26} {m.momentum_score:+7.2f}  "
            f"{_label(m):<13} pop {_signed(m.delta_popularity):>4}  "
            f"followers {_pct(m.delta_followers_pct)}"
        )
    if page.has_more:
        print(f"\n… more on page {page.page + 1}")
    print()


def print_artist(detail: ArtistDetail) -> None:
    print(f"\n🎤 {detail.artist_id}")
    print("=" * 50)
    latest = detail.latest
    if latest is None:
        print("No snapshots stored for this artist.")
        return

    print(f"Captured:   {latest.captured_at.isoformat()}")
    print(f"Popularity: {latest.popularity if latest.popularity is not None else 'unknown'}")
    print(f"Followers:  {latest.followers if latest.followers is not None else 'unknown'}")
    print(f"Genres:     {', '.join(sorted(latest.genres)) or 'unknown'}")
    for platform, count in sorted(latest.social_mentions.items()):
        print(f"{platform.capitalize() + ':':<11} {count:,.0f}")

    momentum = detail.momentum
    if isinstance(momentum, InsufficientData):
        print(f"\nMomentum ({momentum.window_days}d): no data - {momentum.reason}")
    else:
        print(f"\nMomentum ({momentum.window_days}d): {momentum.momentum_score:+.2f} {_label(momentum)}")
        print(f"  Popularity change: {_signed(momentum.delta_popularity)}")
        print(f"  Follower growth:   {_pct(momentum.delta_followers_pct)}")
        for platform, delta in momentum.per_platform_delta_pct.items():
            print(f"  {platform.capitalize()} growth: {_pct(delta)}")
    if detail.sparkline:
        print(f"  Sparkline: {' '.join('·' if v is None else str(v) for v in detail.sparkline)}")
    print()


def show_status(settings: AppSettings, store: JsonFileSnapshotStore) -> None:
    """Display current status and configuration."""
    print("\n📊 PulseChart Status")
    print("=" * 50)

    print(f"\n🔌 Spotify: {'enabled' if settings.spotify.enabled else 'disabled'}")
    print(f"🔌 Apify:   {'enabled' if settings.apify.enabled else 'disabled'}")
    print(f"   Provider priority: {', '.join(settings.ingestion.provider_priority)}")

    artist_ids = store.artist_ids()
    total = sum(len(store.query_history(a)) for a in artist_ids)
    print(f"\n💾 {total} snapshot(s) for {len(artist_ids)} artist(s) in {settings.storage.snapshot_file}")

    print(f"\n⚙️  Configuration:")
    print(f"   Per-provider timeout: {settings.ingestion.per_provider_timeout_seconds}s")
    print(f"   Attempts per provider: {settings.ingestion.max_attempts_per_provider}")
    print(f"   Default window: {settings.scoring.default_window_days}d")
    print(f"   Rising threshold: ±{settings.scoring.rising_threshold}")
    print()


def run_ingest(args: argparse.Namespace, settings: AppSettings, store) -> int:
    logger = logging.getLogger(__name__)

    adapters = create_adapters(settings, http_logging=args.http_log)
    if not adapters:
        logger.error("No providers configured - set Spotify or Apify credentials")
        return 1

    orchestrator = IngestionOrchestrator(adapters, settings.ingestion, store=store)
    roster_path = Path(settings.storage.roster_file)

    def roster_map():
        roster = load_roster(roster_path)
        return roster.to_ingestion_map(PROVIDER_PLATFORMS, only=args.artist)

    def prune():
        cutoff = datetime.now(timezone.utc) - timedelta(days=settings.storage.retention_days)
        store.prune(cutoff)

    if args.once or args.artist:
        summary = orchestrator.ingest_many(roster_map(), force=args.force)
        prune()
        logger.info(f"Summary: {summary.as_dict()}")
        return 0 if not summary.failed else 2

    try:
        orchestrator.start(
            roster_map, interval_seconds=settings.ingestion.run_interval_hours * 3600
        )
    except KeyboardInterrupt:
        orchestrator.stop()
    prune()
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code.
    """
    args = parse_args(argv)

    # Load configuration
    try:
        settings = load_settings()
    except Exception as e:
        print(f"❌ Configuration error: {e}")
        print("\nMake sure you have configured the required environment variables.")
        return 1

    setup_logging(debug=args.debug or settings.debug)
    logger = logging.getLogger(__name__)

    try:
        store = JsonFileSnapshotStore(Path(settings.storage.snapshot_file))
    except (OSError, ValueError) as e:
        logger.error(f"Failed to open snapshot store: {e}")
        return 1

    try:
        if args.command == "ingest":
            logger.info("📊 PulseChart ingestion starting up...")
            return run_ingest(args, settings, store)

        board = MomentumBoard(store, settings.scoring)

        if args.command == "leaderboard":
            genres = [g.strip() for g in args.genres.split(",") if g.strip()]
            print_leaderboard(
                board.leaderboard(
                    genres=genres,
                    window_days=args.days,
                    page=args.page,
                    page_size=args.page_size,
                )
            )
        elif args.command == "artist":
            print_artist(board.artist_detail(args.artist_id, window_days=args.days))
        elif args.command == "status":
            show_status(settings, store)

    except ValueError as e:
        print(f"❌ {e}")
        return 1

    except KeyboardInterrupt:
        logger.info("Shutting down...")

    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
