"""Trend tracking: keyword extraction, matching, catalog refresh and rate monitoring."""

from .catalog import TrendCatalog
from .index import KeywordIndex, Matcher, NameMatcher
from .rate import MonitorState, RateMonitor, RateThresholds, SwitchReason
from .tokenizer import parse_keywords

__all__ = [
    'TrendCatalog',
    'KeywordIndex',
    'Matcher',
    'NameMatcher',
    'MonitorState',
    'RateMonitor',
    'RateThresholds',
    'SwitchReason',
    'parse_keywords',
]
