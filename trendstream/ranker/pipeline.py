"""Offline ranking pass over stored messages.

For every stored trend:
- Fetch its messages
- Recompute each message's rank with the selected weighting
- Write the ranks back to the messages table
- With the trust weighting, store one rank row per distinct text
- Log the trend's quality indicator
"""

import asyncio
import time
from typing import Any, Dict, Optional

from trendstream.core.domain import RankRecord
from trendstream.core.errors import ConfigurationError, PersistenceError
from trendstream.core.logging import get_logger, setup_logging
from trendstream.core.settings import Settings, get_settings, load_settings
from trendstream.core.store import SqlStore, Store
from trendstream.core.wordlists import load_bad_words
from trendstream.ranker.quality import estimate_trend_quality
from trendstream.ranker.score import RankingEngine, RankingVariant, dedupe_by_text

logger = get_logger(__name__)


async def run_ranking(
    store: Store,
    settings: Optional[Settings] = None,
    engine: Optional[RankingEngine] = None,
) -> Dict[str, Any]:
    """
    Re-rank the stored messages of every trend.

    Args:
        store: Store holding trends and messages
        settings: Settings selecting the weighting and word lists
        engine: Preconfigured engine; built from settings when omitted

    Returns:
        Dictionary with ranking statistics
    """
    start_time = time.time()
    settings = settings or get_settings()
    if engine is None:
        engine = RankingEngine.from_settings(settings, load_bad_words(settings.bad_words_paths))

    stats = {
        'variant': engine.variant.value,
        'trends_total': 0,
        'trends_ranked': 0,
        'messages_ranked': 0,
        'rank_rows': 0,
        'quality': {},
        'errors': [],
        'runtime_seconds': 0,
    }

    try:
        trends = await store.fetch_trends()
    except PersistenceError as e:
        logger.error(f"Could not load trends: {e}")
        stats['errors'].append(f"Trend load error: {e}")
        trends = []

    stats['trends_total'] = len(trends)
    logger.info(f"Ranking {len(trends)} trends with {engine.variant.value} weights")

    for trend in trends:
        try:
            messages = await store.fetch_messages(trend.id)
            for message in messages:
                message.rank = engine.rank(message, trends)

            await store.update_ranks(messages)

            if engine.variant is RankingVariant.TRUST:
                records = [
                    RankRecord(trend_id=trend.id, message_id=m.record_id, rank=m.rank)
                    for m in dedupe_by_text(messages)
                ]
                await store.insert_ranks(records)
                stats['rank_rows'] += len(records)

        except PersistenceError as e:
            logger.error(f"Ranking failed for trend {trend.name}: {e}")
            stats['errors'].append(f"Trend {trend.id}: {e}")
            continue

        quality = estimate_trend_quality(trend, messages)
        stats['quality'][trend.id] = quality.indicator
        stats['trends_ranked'] += 1
        stats['messages_ranked'] += len(messages)

        if quality.total_messages:
            logger.info(
                f"Trend '{trend.name}': links ratio {quality.link_ratio:.3f}, "
                f"retweets ratio {quality.retweet_ratio:.3f}, news rank {quality.indicator:.3f}",
                extra={"trend_id": trend.id, "messages": quality.total_messages},
            )

    stats['runtime_seconds'] = round(time.time() - start_time, 2)
    logger.info(
        f"Ranking completed in {stats['runtime_seconds']}s: "
        f"{stats['trends_ranked']}/{stats['trends_total']} trends, "
        f"{stats['messages_ranked']} messages"
    )
    return stats


def run_cli(settings: Settings) -> Dict[str, Any]:
    """Synchronous CLI wrapper for the ranking pass."""
    return asyncio.run(run_ranking(SqlStore(), settings))


def main(argv=None):
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description='Rank stored messages per trend')
    parser.add_argument(
        '--variant',
        choices=[v.value for v in RankingVariant],
        help='Ranking weights to apply (default: from settings)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    args = parser.parse_args(argv)

    try:
        overrides = {'ranking_variant': args.variant} if args.variant else {}
        settings = load_settings(**overrides)
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return 2

    setup_logging("ranker", settings)
    if args.verbose:
        import logging
        logging.getLogger('trendstream').setLevel(logging.DEBUG)

    try:
        stats = run_cli(settings)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    print("\n=== Ranking Results ===")
    print(f"Runtime: {stats['runtime_seconds']}s")
    print(f"Variant: {stats['variant']}")
    print(f"Trends Ranked: {stats['trends_ranked']}/{stats['trends_total']}")
    print(f"Messages Ranked: {stats['messages_ranked']}")
    print(f"Rank Rows: {stats['rank_rows']}")

    if stats['errors']:
        print(f"\nErrors ({len(stats['errors'])}):")
        for error in stats['errors'][:10]:
            print(f"  - {error}")
        if len(stats['errors']) > 10:
            print(f"  ... and {len(stats['errors']) - 10} more")

    return 0 if not stats['errors'] else 1


if __name__ == "__main__":
    exit(main())
