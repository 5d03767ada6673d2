"""Active trend set, refreshed from an upstream trend source."""
from typing import AbstractSet, List, Tuple

from trendstream.core.domain import Trend
from trendstream.core.errors import PersistenceError, TransportError
from trendstream.core.logging import get_logger
from trendstream.core.retry import bounded_retry
from trendstream.core.settings import Settings
from trendstream.core.store import Store

from .index import KeywordIndex, Matcher, NameMatcher
from .sources import TrendSource
from .tokenizer import parse_keywords

logger = get_logger(__name__)


class TrendCatalog:
    """
    Holds the trends of the current cycle and the matcher built from them.

    ``refresh`` replaces the trend list and rebuilds the keyword index in
    one step, after every remote call has completed, so matching never
    sees a mix of two cycles.
    """

    def __init__(
        self,
        source: TrendSource,
        store: Store,
        stopwords: AbstractSet[str],
        settings: Settings,
    ):
        self.source = source
        self.store = store
        self.stopwords = stopwords
        self.settings = settings
        self.index = KeywordIndex(stopwords)
        self.name_matcher = NameMatcher()
        self._trends: Tuple[Trend, ...] = ()
        self.refresh_count = 0

    @property
    def trends(self) -> Tuple[Trend, ...]:
        return self._trends

    @property
    def matcher(self) -> Matcher:
        if self.settings.matcher == "name":
            return self.name_matcher
        return self.index

    def keywords(self) -> List[str]:
        """Union of all trend keywords in registration order."""
        return self.index.keywords()

    def track_terms(self) -> List[str]:
        """Feed filter terms for tracking every trend at once."""
        if self.settings.matcher == "name":
            return [t.name for t in self._trends]
        return self.keywords()

    async def _fetch_names(self) -> List[str]:
        async for attempt in bounded_retry(self.settings, (TransportError,), logger):
            with attempt:
                return await self.source.fetch_names()

    async def _insert_trend(self, name: str) -> int:
        async for attempt in bounded_retry(self.settings, (PersistenceError,), logger):
            with attempt:
                return await self.store.insert_trend(name)

    async def refresh(self) -> List[Trend]:
        """
        Pull current trends, persist them and rebuild the index.

        Returns:
            The new trend list

        Raises:
            TransportError: if the trend source keeps failing
        """
        names = await self._fetch_names()

        seen = set()
        trends: List[Trend] = []
        for name in names:
            key = name.strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)

            try:
                trend_id = await self._insert_trend(name)
            except PersistenceError as e:
                logger.error(f"Skipping trend '{name}', could not persist it: {e}")
                continue

            keywords = parse_keywords(name, self.stopwords)
            trends.append(Trend(id=trend_id, name=name, keywords=keywords))

        self.index.clear()
        for trend in trends:
            self.index.bulk_put(trend.keywords, trend.id)
        self.name_matcher.reset(trends)
        self._trends = tuple(trends)
        self.refresh_count += 1

        logger.info(
            f"Trend refresh #{self.refresh_count}: {len(trends)} trends, {len(self.index)} keywords",
            extra={"trends": len(trends), "keywords": len(self.index)},
        )
        return trends
