"""Per-message processing: match, rank, batch and observe arrival rate."""

from typing import Tuple

from trendstream.core.domain import UNMATCHED_TREND_ID, Message
from trendstream.core.logging import get_logger

from .session import IngestionSession

logger = get_logger(__name__)


class StreamIngestor:
    """Processes feed messages into the session's batches, one at a time."""

    def __init__(self, session: IngestionSession):
        self.session = session

    def _resolve_trend(self, message: Message) -> Tuple[int, int]:
        session = self.session
        if session.sequential:
            trend = session.current_trend
            if trend is None:
                return UNMATCHED_TREND_ID, 0
            # The feed only delivers the current trend; strength is still measured
            return trend.id, session.catalog.index.strength(message.text, trend.id)
        return session.catalog.matcher.match(message.text)

    async def _store(self, message: Message, trend_id: int, strength: int) -> None:
        message.trend_id = trend_id
        message.match_strength = strength
        message.rank = self.session.engine.rank(message, self.session.catalog.trends)
        await self.session.message_batch(trend_id).add(message)

    async def ingest(self, message: Message) -> bool:
        """
        Handle one message delivered by the feed.

        Returns:
            True when the message was batched, False when it was dropped
        """
        session = self.session
        stats = session.stats
        stats['messages_received'] += 1

        trend_id, strength = self._resolve_trend(message)
        if trend_id == UNMATCHED_TREND_ID:
            if session.settings.unmatched_policy == "drop":
                stats['messages_dropped'] += 1
                logger.debug(f"Dropping unmatched message {message.message_id}")
                return False
        else:
            stats['messages_matched'] += 1

        await self._store(message, trend_id, strength)

        original = message.retweeted
        if original is not None:
            original_strength = strength
            if session.sequential and trend_id != UNMATCHED_TREND_ID:
                original_strength = session.catalog.index.strength(original.text, trend_id)
            await self._store(original, trend_id, original_strength)
            stats['retweet_originals'] += 1

        author = message.author
        if author is not None and session.authors.add(author):
            stats['authors_new'] += 1
            await session.user_batch.add(author)

        if session.sequential and session.monitor.observe(message.timestamp_ms):
            session.switch_requested.set()

        return True
