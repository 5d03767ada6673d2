"""Arrival-rate state machine deciding when to move to the next trend.

Each trend is collected until enough samples arrive or messages slow
down: more than ``consecutive_slow_limit`` gaps above the low threshold
in a row, or ``consecutive_very_slow_limit`` gaps above the high
threshold in a row. Either way a trend finishes in bounded time even
under sparse traffic.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from trendstream.core.logging import get_logger
from trendstream.core.settings import Settings

logger = get_logger(__name__)


class MonitorState(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    SWITCH_REQUESTED = "switch_requested"


class SwitchReason(str, Enum):
    SAMPLE_TARGET = "sample_target"
    SLOW_ARRIVALS = "slow_arrivals"
    VERY_SLOW_ARRIVALS = "very_slow_arrivals"
    TIMEOUT = "timeout"


@dataclass
class RateThresholds:
    low_threshold_ms: int = 2000
    high_threshold_ms: int = 15000
    consecutive_slow_limit: int = 10
    consecutive_very_slow_limit: int = 2
    target_sample_count: int = 1000

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateThresholds":
        return cls(
            low_threshold_ms=settings.low_threshold_ms,
            high_threshold_ms=settings.high_threshold_ms,
            consecutive_slow_limit=settings.consecutive_slow_limit,
            consecutive_very_slow_limit=settings.consecutive_very_slow_limit,
            target_sample_count=settings.target_sample_count,
        )


class RateMonitor:
    """Tracks inter-arrival gaps for the trend being collected."""

    def __init__(self, thresholds: Optional[RateThresholds] = None):
        self.thresholds = thresholds or RateThresholds()
        self.state = MonitorState.IDLE
        self.trend_id = 0
        self.reason: Optional[SwitchReason] = None
        self._reset_counters(None)

    def _reset_counters(self, started_at_ms: Optional[int]) -> None:
        self.time_of_last_message = started_at_ms
        self.over_threshold_count = 0
        self.over_high_threshold_count = 0
        self.messages_collected = 0

    def begin(self, trend_id: int, started_at_ms: Optional[int] = None) -> None:
        """
        Start collecting a trend with fresh counters.

        When ``started_at_ms`` is None the first arrival only sets the
        baseline and its gap is not classified.
        """
        self.trend_id = trend_id
        self.reason = None
        self.state = MonitorState.COLLECTING
        self._reset_counters(started_at_ms)

    def observe(self, timestamp_ms: int) -> bool:
        """
        Record one arrival.

        Args:
            timestamp_ms: Creation time of the message in epoch milliseconds

        Returns:
            True when this arrival requests a switch
        """
        if self.state is not MonitorState.COLLECTING:
            return False

        t = self.thresholds
        if self.time_of_last_message is not None:
            gap = timestamp_ms - self.time_of_last_message
            if gap > t.high_threshold_ms:
                self.over_threshold_count += 1
                self.over_high_threshold_count += 1
            elif gap > t.low_threshold_ms:
                self.over_threshold_count += 1
            else:
                self.over_threshold_count = 0
                self.over_high_threshold_count = 0
        self.time_of_last_message = timestamp_ms

        self.messages_collected += 1

        if self.messages_collected >= t.target_sample_count:
            self.request_switch(SwitchReason.SAMPLE_TARGET)
        elif self.over_threshold_count > t.consecutive_slow_limit:
            self.request_switch(SwitchReason.SLOW_ARRIVALS)
        elif self.over_high_threshold_count >= t.consecutive_very_slow_limit:
            self.request_switch(SwitchReason.VERY_SLOW_ARRIVALS)

        return self.state is MonitorState.SWITCH_REQUESTED

    def request_switch(self, reason: SwitchReason) -> None:
        if self.state is not MonitorState.COLLECTING:
            return
        self.state = MonitorState.SWITCH_REQUESTED
        self.reason = reason
        logger.info(
            f"Switch requested for trend {self.trend_id}: {reason.value} "
            f"after {self.messages_collected} messages"
        )

    def complete_switch(self, next_trend_id: Optional[int] = None) -> None:
        """Reset counters and collect ``next_trend_id``, or go idle."""
        if next_trend_id is None:
            self.state = MonitorState.IDLE
            self.trend_id = 0
            self.reason = None
            self._reset_counters(None)
        else:
            self.begin(next_trend_id)
