"""Trend matchers: the inverted keyword index and a name matcher."""
from abc import ABC, abstractmethod
from typing import AbstractSet, Dict, Iterable, List, Sequence, Tuple

from trendstream.core.domain import UNMATCHED_TREND_ID, Trend
from trendstream.core.logging import get_logger

from .tokenizer import parse_keywords

logger = get_logger(__name__)

NO_MATCH = (UNMATCHED_TREND_ID, 0)


class Matcher(ABC):
    """Associates free text with a trend."""

    @abstractmethod
    def match(self, text: str) -> Tuple[int, int]:
        """Return ``(trend_id, strength)``; ``(0, 0)`` when nothing matches."""
        pass


class KeywordIndex(Matcher):
    """
    Inverted index from keyword to the trends whose names contain it.

    Matching counts, per trend, the distinct message keywords mapped to it
    and picks the strictly greatest count. Ties go to the trend reached
    first: keywords are scanned in order of first appearance in the text
    and trends under one keyword in registration order.
    """

    def __init__(self, stopwords: AbstractSet[str]):
        self.stopwords = stopwords
        self._entries: Dict[str, Dict[int, None]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, keyword: str) -> bool:
        return keyword in self._entries

    def clear(self) -> None:
        self._entries = {}

    def put(self, keyword: str, trend_id: int) -> None:
        self._entries.setdefault(keyword, {})[trend_id] = None

    def bulk_put(self, keywords: Iterable[str], trend_id: int) -> None:
        for keyword in keywords:
            self.put(keyword, trend_id)

    def keywords(self) -> List[str]:
        """Indexed keywords in registration order."""
        return list(self._entries)

    def trend_ids(self, keyword: str) -> List[int]:
        return list(self._entries.get(keyword, ()))

    def _counts(self, text: str) -> Dict[int, int]:
        counts: Dict[int, int] = {}
        for keyword in parse_keywords(text, self.stopwords):
            for trend_id in self._entries.get(keyword, ()):
                counts[trend_id] = counts.get(trend_id, 0) + 1
        return counts

    def match(self, text: str) -> Tuple[int, int]:
        best_id, best_count = NO_MATCH
        for trend_id, count in self._counts(text).items():
            if count > best_count:
                best_id, best_count = trend_id, count
        return best_id, best_count

    def strength(self, text: str, trend_id: int) -> int:
        """Number of keywords in ``text`` that map to ``trend_id``."""
        return self._counts(text).get(trend_id, 0)


class NameMatcher(Matcher):
    """
    Matches a message to the first trend whose whole name occurs in it.

    Spaces are ignored and case is folded on both sides, so ``"Steve Jobs"``
    matches ``"#stevejobs"``. Strength is always 1 on a match.
    """

    def __init__(self, trends: Sequence[Trend] = ()):
        self.reset(trends)

    def reset(self, trends: Sequence[Trend]) -> None:
        self._names = [(t.id, self._squash(t.name)) for t in trends]

    @staticmethod
    def _squash(text: str) -> str:
        return "".join(text.split()).lower()

    def match(self, text: str) -> Tuple[int, int]:
        squashed = self._squash(text)
        for trend_id, name in self._names:
            if name and name in squashed:
                return trend_id, 1
        return NO_MATCH
