"""Stream ingestion entry point.

Wires the configured feed, trend source, store and ranking engine into
an IngestionController and runs it until SIGINT/SIGTERM, or for a single
refresh cycle with ``--once``.
"""

import asyncio
import signal
from typing import Any, Dict, Optional

from trendstream.core.errors import ConfigurationError
from trendstream.core.logging import get_logger, setup_logging
from trendstream.core.settings import Settings, load_settings
from trendstream.core.store import SqlStore, Store
from trendstream.core.wordlists import load_bad_words, load_stopwords
from trendstream.ingestor.controller import IngestionController
from trendstream.ingestor.feed import Feed, HttpStreamFeed, ReplayFeed
from trendstream.ranker.score import RankingEngine
from trendstream.tracker.catalog import TrendCatalog
from trendstream.tracker.sources import TrendSource, create_trend_source

logger = get_logger(__name__)


def build_controller(
    settings: Settings,
    store: Optional[Store] = None,
    feed: Optional[Feed] = None,
    source: Optional[TrendSource] = None,
) -> IngestionController:
    """
    Assemble a controller from settings.

    Word lists are loaded here so a missing list fails before any
    connection is opened.

    Raises:
        ConfigurationError: if a word list cannot be loaded
    """
    stopwords = load_stopwords(settings.stopwords_path)
    bad_words = load_bad_words(settings.bad_words_paths)

    store = store or SqlStore()
    catalog = TrendCatalog(source or create_trend_source(settings), store, stopwords, settings)
    engine = RankingEngine.from_settings(settings, bad_words)

    return IngestionController(settings, feed or HttpStreamFeed(settings), catalog, store, engine)


async def run_ingestion(
    settings: Settings,
    once: bool = False,
    replay_path: Optional[str] = None,
    store: Optional[Store] = None,
    source: Optional[TrendSource] = None,
) -> Dict[str, Any]:
    """
    Run the ingestion controller with signal-driven shutdown.

    Args:
        settings: Validated settings
        once: Stop after one refresh cycle
        replay_path: Replay statuses from this JSONL file instead of the live feed
        store: Store override
        source: Trend source override

    Returns:
        Dictionary with ingestion statistics
    """
    feed = ReplayFeed.from_file(replay_path) if replay_path else None
    controller = build_controller(settings, store=store, feed=feed, source=source)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, controller.stop)
        except (NotImplementedError, RuntimeError):
            # Not available on this platform or outside the main thread
            pass

    try:
        return await controller.run(once=once)
    finally:
        await controller.feed.aclose()
        await controller.catalog.source.aclose()


def run_cli(settings: Settings, once: bool = False, replay_path: Optional[str] = None) -> Dict[str, Any]:
    """Synchronous CLI wrapper for the ingestion controller."""
    return asyncio.run(run_ingestion(settings, once=once, replay_path=replay_path))


def main(argv=None):
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description='Trend-tracking stream ingestion')
    parser.add_argument(
        '--mode',
        choices=['sequential', 'simultaneous'],
        help='Track trends one at a time or all at once (default: from settings)'
    )
    parser.add_argument(
        '--target-samples',
        type=int,
        help='Messages to collect per trend in sequential mode'
    )
    parser.add_argument(
        '--source',
        choices=['location', 'curator'],
        help='Upstream trend source (default: from settings)'
    )
    parser.add_argument(
        '--replay',
        metavar='PATH',
        help='Replay statuses from a JSONL file instead of the live feed'
    )
    parser.add_argument(
        '--once',
        action='store_true',
        help='Run a single refresh cycle and exit'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    args = parser.parse_args(argv)

    overrides = {}
    if args.mode:
        overrides['tracking_mode'] = args.mode
    if args.target_samples is not None:
        overrides['target_sample_count'] = args.target_samples
    if args.source:
        overrides['trend_source'] = args.source

    try:
        settings = load_settings(**overrides)
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return 2

    setup_logging("ingestor", settings)
    if args.verbose:
        import logging
        logging.getLogger('trendstream').setLevel(logging.DEBUG)

    try:
        stats = run_cli(settings, once=args.once, replay_path=args.replay)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    print("\n=== Ingestion Results ===")
    print(f"Runtime: {stats['runtime_seconds']}s")
    print(f"Messages Received: {stats['messages_received']}")
    print(f"Messages Matched: {stats['messages_matched']}")
    print(f"Messages Dropped: {stats['messages_dropped']}")
    print(f"Retweet Originals: {stats['retweet_originals']}")
    print(f"New Authors: {stats['authors_new']}")
    print(f"Trend Switches: {stats['switches']}")
    print(f"Transport Errors: {stats['transport_errors']}")

    if stats['errors']:
        print(f"\nErrors ({len(stats['errors'])}):")
        for error in stats['errors'][:10]:
            print(f"  - {error}")
        if len(stats['errors']) > 10:
            print(f"  ... and {len(stats['errors']) - 10} more")

    return 0 if not stats['errors'] else 1


if __name__ == "__main__":
    exit(main())
