"""State of one ingestion run, owned by the control loop."""

import asyncio
import time
from typing import AbstractSet, Any, Dict, Optional

from trendstream.core.domain import Author, Message, Trend
from trendstream.core.settings import Settings
from trendstream.core.store import Store
from trendstream.ranker.score import RankingEngine
from trendstream.tracker.catalog import TrendCatalog
from trendstream.tracker.rate import RateMonitor, RateThresholds

from .authors import AuthorCache
from .batch import BatchWriter


class IngestionSession:
    """
    Everything the control loop and the ingestion worker share.

    The worker mutates the session one message at a time while holding
    ``lock``; the control loop takes the same lock for trend switches,
    refreshes and flushes.
    """

    def __init__(
        self,
        settings: Settings,
        store: Store,
        catalog: TrendCatalog,
        engine: RankingEngine,
        monitor: Optional[RateMonitor] = None,
    ):
        self.settings = settings
        self.store = store
        self.catalog = catalog
        self.engine = engine
        self.monitor = monitor or RateMonitor(RateThresholds.from_settings(settings))

        self.sequential = settings.tracking_mode == "sequential"
        self.current_trend: Optional[Trend] = None

        self.message_batches: Dict[int, BatchWriter[Message]] = {}
        self.user_batch: BatchWriter[Author] = BatchWriter("users", store.insert_users, settings.batch_size)
        self.authors = AuthorCache()
        # Counters of pruned batches, kept for the snapshot
        self.retired_records_flushed = 0
        self.retired_failed_flushes = 0

        self.lock = asyncio.Lock()
        self.switch_requested = asyncio.Event()
        self.started_at = time.time()

        self.stats: Dict[str, Any] = {
            'messages_received': 0,
            'messages_matched': 0,
            'messages_dropped': 0,
            'retweet_originals': 0,
            'authors_new': 0,
            'switches': 0,
            'refreshes': 0,
            'transport_errors': 0,
            'errors': [],
        }

    def message_batch(self, trend_id: int) -> BatchWriter[Message]:
        batch = self.message_batches.get(trend_id)
        if batch is None:
            batch = BatchWriter(f"trend {trend_id} messages", self.store.insert_messages, self.settings.batch_size)
            self.message_batches[trend_id] = batch
        return batch

    def prune_batches(self, active_trend_ids: AbstractSet[int]) -> int:
        """Drop empty batches of trends no longer tracked; returns how many were dropped."""
        stale = [
            trend_id for trend_id, batch in self.message_batches.items()
            if trend_id not in active_trend_ids and not len(batch)
        ]
        for trend_id in stale:
            batch = self.message_batches.pop(trend_id)
            self.retired_records_flushed += batch.records_flushed
            self.retired_failed_flushes += batch.failed_flushes
        return len(stale)

    def pending_records(self) -> int:
        return sum(len(b) for b in self.message_batches.values()) + len(self.user_batch)

    async def flush_all(self) -> bool:
        """Flush every non-empty batch; True when all succeeded."""
        ok = True
        for batch in list(self.message_batches.values()) + [self.user_batch]:
            if len(batch) and not await batch.flush():
                ok = False
        return ok

    def snapshot(self) -> Dict[str, Any]:
        """Counters and state for status reporting."""
        stats = {k: v for k, v in self.stats.items() if k != 'errors'}
        stats.update({
            'mode': self.settings.tracking_mode,
            'current_trend': self.current_trend.name if self.current_trend else None,
            'monitor_state': self.monitor.state.value,
            'trends': len(self.catalog.trends),
            'authors_cached': len(self.authors),
            'pending_records': self.pending_records(),
            'records_flushed': self.retired_records_flushed
            + sum(b.records_flushed for b in self.message_batches.values()),
            'failed_flushes': self.retired_failed_flushes
            + sum(b.failed_flushes for b in self.message_batches.values())
            + self.user_batch.failed_flushes,
            'errors': len(self.stats['errors']),
            'uptime_seconds': round(time.time() - self.started_at, 2),
        })
        return stats
