"""Message ranking.

A message's rank is a weighted sum of trust and relevance signals,
scaled by one million and truncated to an integer for storage:

- keyword: match strength against its trend
- link: the message carries a usable link
- retweet: normalized retweet count of original (non-retweet) messages
- follower: log-normalized follower count of the author
- verified: the author is verified
- spam: penalty proportional to the spam density of the text

Two weightings are provided. ``engagement`` emphasizes keyword strength;
``trust`` drops the keyword term and subtracts the spam penalty.
"""

import math
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import AbstractSet, Dict, Iterable, List, Optional, Sequence

from trendstream.core.domain import Message, Trend
from trendstream.core.errors import ConfigurationError
from trendstream.core.logging import get_logger
from trendstream.core.settings import Settings

logger = get_logger(__name__)

RANK_SCALE = 1_000_000
MAX_RETWEET_COUNT = 101
MAX_FOLLOWERS = 15_000_000

# Marks text cut short by a long-post service; its link points at the rest of the text
TRUNCATION_MARKER = "(cont)"


class RankingVariant(str, Enum):
    ENGAGEMENT = "engagement"
    TRUST = "trust"


@dataclass(frozen=True)
class RankWeights:
    keyword: float = 0.0
    link: float = 0.0
    retweet: float = 0.0
    follower: float = 0.0
    verified: float = 0.0
    spam: float = 0.0


ENGAGEMENT_WEIGHTS = RankWeights(keyword=0.5, link=0.05, retweet=0.15, follower=0.1, verified=0.2)
TRUST_WEIGHTS = RankWeights(link=0.1, retweet=0.3, follower=0.2, verified=0.4, spam=1.0)

VARIANT_WEIGHTS = {
    RankingVariant.ENGAGEMENT: ENGAGEMENT_WEIGHTS,
    RankingVariant.TRUST: TRUST_WEIGHTS,
}


def has_usable_link(message: Message) -> bool:
    """True when the message links out and is not a truncated post."""
    return message.has_link and TRUNCATION_MARKER not in message.text.lower()


def spam_density(
    text: str,
    trend_id: int,
    trend_name: Optional[str],
    trends: Sequence[Trend],
    bad_words: AbstractSet[str],
) -> float:
    """
    Fraction of ``text`` attributable to low-signal content.

    Counts the characters of other trends' names found in the text,
    of hashtags other than the message's own trend name, and of bad
    words. The result is capped at 1.0; empty text scores 0.
    """
    if not text:
        return 0.0

    lowered = text.lower()
    uninteresting = 0

    for trend in trends:
        if trend.id != trend_id and trend.name and trend.name.lower() in lowered:
            uninteresting += len(trend.name)

    own_name = (trend_name or "").strip().lower()
    for word in text.split():
        normalized = word.strip().lower()
        if word.startswith("#") and normalized != own_name:
            uninteresting += len(word)
        if normalized in bad_words:
            uninteresting += len(word)

    return min(1.0, uninteresting / len(text))


def dedupe_by_text(messages: Iterable[Message]) -> List[Message]:
    """Keep the highest-ranked message per distinct text; the first wins ties."""
    best: Dict[str, Message] = {}
    for message in messages:
        current = best.get(message.text)
        if current is None or message.rank > current.rank:
            best[message.text] = message
    return list(best.values())


class RankingEngine:
    """Computes deterministic integer ranks for messages."""

    def __init__(
        self,
        variant: RankingVariant = RankingVariant.ENGAGEMENT,
        weights: Optional[RankWeights] = None,
        max_retweet_count: int = MAX_RETWEET_COUNT,
        max_followers: int = MAX_FOLLOWERS,
        bad_words: AbstractSet[str] = frozenset(),
    ):
        self.variant = RankingVariant(variant)
        self.weights = weights or VARIANT_WEIGHTS[self.variant]
        self.max_retweet_count = max_retweet_count
        self.log_max_followers = math.log(max_followers)
        self.bad_words = bad_words

    @classmethod
    def from_settings(cls, settings: Settings, bad_words: AbstractSet[str] = frozenset()) -> "RankingEngine":
        variant = RankingVariant(settings.ranking_variant)
        weights = VARIANT_WEIGHTS[variant]
        if settings.ranking_weights:
            known = {f.name for f in fields(RankWeights)}
            unknown = set(settings.ranking_weights) - known
            if unknown:
                raise ConfigurationError(f"Unknown ranking weights: {sorted(unknown)}")
            weights = replace(weights, **settings.ranking_weights)

        logger.debug(f"Ranking with {variant.value} weights {weights}")
        return cls(
            variant=variant,
            weights=weights,
            max_retweet_count=settings.max_retweet_count,
            max_followers=settings.max_followers,
            bad_words=bad_words,
        )

    def score(self, message: Message, trends: Sequence[Trend] = ()) -> float:
        """Unscaled weighted score of ``message`` within the active trends."""
        w = self.weights
        total = w.keyword * message.match_strength

        if has_usable_link(message):
            total += w.link

        # A retweet's count belongs to the original message
        retweets = 0 if message.is_retweet else max(message.retweet_count, 0)
        total += w.retweet * (retweets / self.max_retweet_count)

        if message.num_followers > 0:
            total += w.follower * (math.log(message.num_followers) / self.log_max_followers)

        if message.is_verified:
            total += w.verified

        if w.spam:
            trend_name = next((t.name for t in trends if t.id == message.trend_id), None)
            density = spam_density(message.text, message.trend_id, trend_name, trends, self.bad_words)
            total -= w.spam * density

        return total

    def rank(self, message: Message, trends: Sequence[Trend] = ()) -> int:
        """Score scaled to an integer, truncated toward zero."""
        return int(RANK_SCALE * self.score(message, trends))
