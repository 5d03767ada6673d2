"""Tests for the arrival-rate state machine."""

import pytest

from trendstream.tracker.rate import MonitorState, RateMonitor, RateThresholds, SwitchReason


@pytest.fixture
def monitor():
    m = RateMonitor(RateThresholds(target_sample_count=1000))
    m.begin(trend_id=1)
    return m


def feed(monitor, timestamps):
    """Observe every timestamp; return the 1-based arrivals that requested a switch."""
    return [i for i, ts in enumerate(timestamps, 1) if monitor.observe(ts)]


class TestRateMonitor:
    """Tests for RateMonitor transitions."""

    def test_starts_idle(self):
        m = RateMonitor()
        assert m.state is MonitorState.IDLE
        assert m.observe(1000) is False

    def test_steady_arrivals_never_switch(self, monitor):
        assert feed(monitor, [i * 1000 for i in range(10)]) == []
        assert monitor.state is MonitorState.COLLECTING
        assert monitor.over_threshold_count == 0

    def test_two_very_slow_gaps_switch_on_second(self, monitor):
        switched = feed(monitor, [0, 16_000, 32_000])
        assert switched == [3]
        assert monitor.state is MonitorState.SWITCH_REQUESTED
        assert monitor.reason is SwitchReason.VERY_SLOW_ARRIVALS

    def test_first_gap_measured_from_start_time(self):
        m = RateMonitor()
        m.begin(trend_id=1, started_at_ms=0)
        assert m.observe(16_000) is False
        assert m.over_high_threshold_count == 1
        assert m.observe(32_001) is True

    def test_first_arrival_without_start_time_sets_baseline(self, monitor):
        monitor.observe(10**12)
        assert monitor.over_threshold_count == 0
        assert monitor.messages_collected == 1

    def test_switch_exactly_at_target(self):
        m = RateMonitor(RateThresholds(target_sample_count=5))
        m.begin(trend_id=1)
        assert feed(m, [0, 100, 200, 300, 400]) == [5]
        assert m.reason is SwitchReason.SAMPLE_TARGET

    def test_eleven_slow_gaps_switch(self, monitor):
        timestamps = [i * 3000 for i in range(12)]
        assert feed(monitor, timestamps) == [12]
        assert monitor.over_threshold_count == 11
        assert monitor.reason is SwitchReason.SLOW_ARRIVALS

    def test_ten_slow_gaps_do_not_switch(self, monitor):
        assert feed(monitor, [i * 3000 for i in range(11)]) == []

    def test_fast_gap_resets_both_counters(self, monitor):
        assert feed(monitor, [0, 16_000, 16_500, 33_000]) == []
        assert monitor.over_high_threshold_count == 1

    def test_gaps_equal_to_thresholds_do_not_exceed_them(self, monitor):
        feed(monitor, [0, 2000])
        assert monitor.over_threshold_count == 0

        feed(monitor, [17_000])
        assert monitor.over_threshold_count == 1
        assert monitor.over_high_threshold_count == 0

    def test_very_slow_gap_counts_as_slow(self, monitor):
        feed(monitor, [0, 15_001])
        assert monitor.over_threshold_count == 1
        assert monitor.over_high_threshold_count == 1

    def test_no_observation_after_switch_requested(self, monitor):
        feed(monitor, [0, 16_000, 32_000])
        collected = monitor.messages_collected
        assert monitor.observe(33_000) is False
        assert monitor.messages_collected == collected

    def test_complete_switch_to_next_trend_resets(self, monitor):
        feed(monitor, [0, 16_000, 32_000])
        monitor.complete_switch(next_trend_id=2)

        assert monitor.state is MonitorState.COLLECTING
        assert monitor.trend_id == 2
        assert monitor.messages_collected == 0
        assert monitor.over_threshold_count == 0
        assert monitor.over_high_threshold_count == 0
        assert monitor.reason is None

    def test_complete_switch_without_trends_goes_idle(self, monitor):
        monitor.request_switch(SwitchReason.TIMEOUT)
        assert monitor.reason is SwitchReason.TIMEOUT
        monitor.complete_switch(None)
        assert monitor.state is MonitorState.IDLE
        assert monitor.reason is None

    def test_thresholds_from_settings(self, settings):
        thresholds = RateThresholds.from_settings(settings)
        assert thresholds.low_threshold_ms == 2000
        assert thresholds.high_threshold_ms == 15000
        assert thresholds.consecutive_slow_limit == 10
        assert thresholds.consecutive_very_slow_limit == 2
