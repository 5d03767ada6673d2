"""Message ranking and trend quality estimation."""

from .quality import TrendQuality, estimate_trend_quality
from .score import (
    ENGAGEMENT_WEIGHTS,
    TRUST_WEIGHTS,
    RankingEngine,
    RankingVariant,
    RankWeights,
    dedupe_by_text,
    has_usable_link,
    spam_density,
)

__all__ = [
    'TrendQuality',
    'estimate_trend_quality',
    'ENGAGEMENT_WEIGHTS',
    'TRUST_WEIGHTS',
    'RankingEngine',
    'RankingVariant',
    'RankWeights',
    'dedupe_by_text',
    'has_usable_link',
    'spam_density',
]
