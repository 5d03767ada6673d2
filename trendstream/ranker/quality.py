"""Per-trend newsworthiness indicator, used for reporting."""
from dataclasses import dataclass
from typing import Sequence

from trendstream.core.domain import Message, Trend

from .score import has_usable_link

HASHTAG_PENALTY = 0.05


@dataclass
class TrendQuality:
    trend_id: int
    trend_name: str
    total_messages: int
    messages_with_links: int
    retweets: int
    link_ratio: float
    retweet_ratio: float
    hashtag_penalty: float
    indicator: float


def estimate_trend_quality(trend: Trend, messages: Sequence[Message]) -> TrendQuality:
    """
    Combine link and retweet ratios of positively ranked messages.

    ``indicator = link_ratio + retweet_ratio - hashtag_penalty`` where the
    penalty applies to trend names starting with ``#``. Both ratios are 0
    for a trend without messages.
    """
    total = len(messages)
    with_links = sum(1 for m in messages if m.rank > 0 and has_usable_link(m))
    retweets = sum(1 for m in messages if m.rank > 0 and m.is_retweet)

    link_ratio = with_links / total if total else 0.0
    retweet_ratio = retweets / total if total else 0.0
    penalty = HASHTAG_PENALTY if trend.name.startswith("#") else 0.0

    return TrendQuality(
        trend_id=trend.id,
        trend_name=trend.name,
        total_messages=total,
        messages_with_links=with_links,
        retweets=retweets,
        link_ratio=link_ratio,
        retweet_ratio=retweet_ratio,
        hashtag_penalty=penalty,
        indicator=link_ratio + retweet_ratio - penalty,
    )
