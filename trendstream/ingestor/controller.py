"""Ingestion control loop.

Two tasks run beside the loop:
- the pump moves feed messages into an unbounded queue, resubscribing
  with capped exponential backoff when the feed fails
- the worker takes messages off the queue and ingests them one at a time

Every transition (trend refresh, trend switch) first quiesces ingestion:
the feed filter is detached, the queue is drained, and only then is the
session mutated under its lock. The filter is re-attached afterwards.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional, Sequence

from trendstream.core.domain import Message, Trend
from trendstream.core.errors import PersistenceError, TransportError
from trendstream.core.logging import get_logger
from trendstream.core.retry import persistent_retry
from trendstream.core.settings import Settings
from trendstream.core.store import Store
from trendstream.ranker.score import RankingEngine
from trendstream.tracker.catalog import TrendCatalog
from trendstream.tracker.rate import MonitorState, SwitchReason

from .feed import Feed
from .session import IngestionSession
from .stream import StreamIngestor

logger = get_logger(__name__)


class IngestionController:
    """Owns the ingestion session and drives refreshes and trend switches."""

    def __init__(
        self,
        settings: Settings,
        feed: Feed,
        catalog: TrendCatalog,
        store: Store,
        engine: RankingEngine,
    ):
        self.settings = settings
        self.feed = feed
        self.catalog = catalog
        self.session = IngestionSession(settings, store, catalog, engine)
        self.ingestor = StreamIngestor(self.session)
        self.queue: "asyncio.Queue[Message]" = asyncio.Queue()
        self._terms: List[str] = []
        self._stop = asyncio.Event()
        self._pump_task: Optional[asyncio.Task] = None
        self._worker_task: Optional[asyncio.Task] = None
        self.running = False

    def stop(self) -> None:
        """Ask the control loop to finish; safe to call from signal handlers."""
        self._stop.set()

    async def run(self, once: bool = False) -> Dict[str, Any]:
        """
        Run refresh cycles until stopped.

        Args:
            once: Run a single cycle, then shut down

        Returns:
            Dictionary with ingestion statistics
        """
        start_time = time.time()
        self.running = True
        self._worker_task = asyncio.create_task(self._work(), name="ingestion-worker")
        self._pump_task = asyncio.create_task(self._pump(), name="feed-pump")

        logger.info(f"Starting ingestion in {self.settings.tracking_mode} mode")
        try:
            while not self._stop.is_set():
                cycle_start = time.monotonic()
                if self.session.sequential:
                    await self._sequential_cycle()
                else:
                    await self._simultaneous_cycle()

                if once:
                    break
                elapsed = time.monotonic() - cycle_start
                await self._wait(self.settings.refresh_interval_seconds - elapsed)
        finally:
            await self._shutdown()

        stats = dict(self.session.stats)
        stats['runtime_seconds'] = round(time.time() - start_time, 2)
        logger.info(
            f"Ingestion finished in {stats['runtime_seconds']}s: "
            f"{stats['messages_matched']}/{stats['messages_received']} messages matched, "
            f"{stats['switches']} switches"
        )
        return stats

    async def _pump(self) -> None:
        async for attempt in persistent_retry(self.settings, (TransportError,), logger):
            with attempt:
                try:
                    async for message in self.feed.subscribe(set(self._terms)):
                        self.queue.put_nowait(message)
                except TransportError as e:
                    self.session.stats['transport_errors'] += 1
                    logger.error(f"Feed failed, resubscribing: {e}")
                    raise
        logger.info("Feed subscription ended")

    async def _work(self) -> None:
        while True:
            message = await self.queue.get()
            try:
                async with self.session.lock:
                    await self.ingestor.ingest(message)
            except Exception as e:
                logger.exception(f"Failed to ingest message {message.message_id}: {e}")
                self.session.stats['errors'].append(f"Message {message.message_id}: {e}")
            finally:
                self.queue.task_done()

    async def _apply_filter(self, terms: Sequence[str]) -> None:
        self._terms = list(terms)
        await self.feed.reset_filter(set(self._terms))

    async def _quiesce(self) -> None:
        """Detach the feed and wait until every queued message is ingested."""
        await self._apply_filter([])
        await self.queue.join()

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True when stopped meanwhile."""
        if seconds <= 0:
            return self._stop.is_set()
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
        return self._stop.is_set()

    async def _wait_for_switch(self) -> Optional[SwitchReason]:
        """Block until the monitor asks to switch, the trend times out, or stop."""
        switch = asyncio.create_task(self.session.switch_requested.wait())
        stopped = asyncio.create_task(self._stop.wait())
        try:
            done, _ = await asyncio.wait(
                {switch, stopped},
                timeout=self.settings.max_seconds_per_trend,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            switch.cancel()
            stopped.cancel()

        if not done:
            async with self.session.lock:
                self.session.monitor.request_switch(SwitchReason.TIMEOUT)
        return self.session.monitor.reason

    async def _refresh(self) -> List[Trend]:
        """Quiesce, flush and rebuild the trend catalog; [] when the refresh fails."""
        await self._quiesce()
        async with self.session.lock:
            await self.session.flush_all()
            try:
                trends = await self.catalog.refresh()
            except (TransportError, PersistenceError) as e:
                logger.error(f"Trend refresh failed, waiting for the next cycle: {e}")
                self.session.stats['errors'].append(f"Trend refresh: {e}")
                return []
            self.session.prune_batches({t.id for t in trends})
            self.session.stats['refreshes'] += 1
        return trends

    async def _sequential_cycle(self) -> None:
        trends = await self._refresh()
        monitor = self.session.monitor

        for position, trend in enumerate(trends):
            if self._stop.is_set():
                break

            async with self.session.lock:
                self.session.current_trend = trend
                self.session.switch_requested.clear()
                if monitor.state is MonitorState.IDLE:
                    monitor.begin(trend.id)
            await self._apply_filter([trend.name])
            logger.info(f"Collecting trend {position + 1}/{len(trends)}: {trend.name}")

            reason = await self._wait_for_switch()
            await self._quiesce()

            has_next = position + 1 < len(trends) and not self._stop.is_set()
            async with self.session.lock:
                logger.info(
                    f"Leaving trend {trend.name} after {monitor.messages_collected} messages "
                    f"({reason.value if reason else 'stopped'})"
                )
                await self.session.flush_all()
                monitor.complete_switch(trends[position + 1].id if has_next else None)
                self.session.current_trend = None
                self.session.stats['switches'] += 1

        async with self.session.lock:
            monitor.complete_switch(None)
        logger.info("Trend cycle complete")

    async def _simultaneous_cycle(self) -> None:
        await self._refresh()
        # On a failed refresh the previous trend set keeps matching
        terms = self.catalog.track_terms()
        if terms:
            await self._apply_filter(terms)
        else:
            logger.warning("No trends to track this cycle")

        await self._wait(self.settings.refresh_interval_seconds)

    async def _shutdown(self) -> None:
        """Stop the feed, drain the queue and flush every batch once."""
        logger.info("Shutting down ingestion")
        try:
            await self.feed.unsubscribe()
        except TransportError as e:
            logger.warning(f"Error while unsubscribing: {e}")

        if self._pump_task is not None:
            self._pump_task.cancel()
            await asyncio.gather(self._pump_task, return_exceptions=True)

        await self.queue.join()
        if self._worker_task is not None:
            self._worker_task.cancel()
            await asyncio.gather(self._worker_task, return_exceptions=True)

        async with self.session.lock:
            if not await self.session.flush_all():
                logger.error(f"Final flush left {self.session.pending_records()} records unsaved")
        self.running = False
