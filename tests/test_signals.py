"""
Tests for Signal Collection Module

Tests buffer pruning, ordering, lifetime counters and pain clamping.
"""

import pytest
from datetime import datetime, timedelta
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from crisis_engine.signals import SignalCollector, BehaviorBuffers

T0 = datetime(2026, 1, 1, 12, 0, 0)


class TestBufferPruning:
    """Timestamp buffers keep only their retention window."""

    def setup_method(self):
        self.collector = SignalCollector()

    def test_clicks_pruned_after_60_seconds(self):
        """A click older than 60s is dropped on the next write."""
        self.collector.track_click(T0)
        self.collector.track_click(T0 + timedelta(seconds=61))

        assert self.collector.buffers.click_timestamps == [T0 + timedelta(seconds=61)]

    def test_clicks_pruned_on_read(self):
        """Reads prune too, even without new writes."""
        self.collector.track_click(T0)

        assert self.collector.recent_clicks(T0 + timedelta(seconds=59)) == [T0]
        assert self.collector.recent_clicks(T0 + timedelta(seconds=61)) == []
        assert self.collector.buffers.click_timestamps == []

    def test_errors_kept_for_300_seconds(self):
        """Errors survive inside the 5-minute window."""
        self.collector.track_error(T0)

        assert len(self.collector.recent_errors(T0 + timedelta(seconds=299))) == 1
        assert len(self.collector.recent_errors(T0 + timedelta(seconds=301))) == 0

    def test_help_requests_kept_for_300_seconds(self):
        self.collector.track_help_request(T0)

        assert len(self.collector.recent_help_requests(T0 + timedelta(seconds=200))) == 1
        assert len(self.collector.recent_help_requests(T0 + timedelta(seconds=400))) == 0

    def test_narrower_window_filter(self):
        """The within argument narrows a read without dropping entries."""
        self.collector.track_error(T0)
        self.collector.track_error(T0 + timedelta(seconds=100))
        now = T0 + timedelta(seconds=120)

        assert len(self.collector.recent_errors(now, within=timedelta(seconds=60))) == 1
        assert len(self.collector.recent_errors(now)) == 2

    def test_out_of_order_timestamps_stay_sorted(self):
        """Late-arriving events are inserted in order."""
        self.collector.track_click(T0 + timedelta(seconds=5))
        self.collector.track_click(T0 + timedelta(seconds=1))
        self.collector.track_click(T0 + timedelta(seconds=3))

        clicks = self.collector.buffers.click_timestamps
        assert clicks == sorted(clicks)
        assert len(clicks) == 3

    def test_late_event_outside_window_dropped(self):
        """A late click older than the window behind the newest one is not kept."""
        self.collector.track_click(T0 + timedelta(seconds=120))
        self.collector.track_click(T0)

        assert self.collector.buffers.click_timestamps == [T0 + timedelta(seconds=120)]

    def test_late_error_outside_window_dropped(self):
        self.collector.track_error(T0 + timedelta(seconds=400))
        self.collector.track_error(T0)

        assert self.collector.buffers.error_timestamps == [T0 + timedelta(seconds=400)]
        assert self.collector.buffers.error_count == 2

    def test_buffer_never_spans_more_than_window(self):
        for offset in (90, 10, 75, 0, 130, 40):
            self.collector.track_click(T0 + timedelta(seconds=offset))

        clicks = self.collector.buffers.click_timestamps
        assert clicks == sorted(clicks)
        assert clicks[-1] - clicks[0] <= timedelta(seconds=60)


class TestCounters:
    """Lifetime counters only grow until an explicit reset."""

    def setup_method(self):
        self.collector = SignalCollector()

    def test_help_count_outlives_window(self):
        """help_request_count is not windowed."""
        for i in range(3):
            self.collector.track_help_request(T0 + timedelta(seconds=i))
        self.collector.recent_help_requests(T0 + timedelta(hours=1))

        assert self.collector.buffers.help_request_count == 3
        assert self.collector.buffers.help_request_timestamps == []

    def test_back_navigation_count(self):
        for _ in range(4):
            self.collector.track_back_navigation(T0)

        assert self.collector.buffers.back_navigation_count == 4

    def test_time_on_page_accumulates(self):
        self.collector.track_time_on_page(30)
        self.collector.track_time_on_page(45.5)

        assert self.collector.buffers.time_on_page_seconds == pytest.approx(75.5)

    def test_invalid_time_on_page_ignored(self):
        """Negative, NaN and non-numeric durations are ignored."""
        self.collector.track_time_on_page(-10)
        self.collector.track_time_on_page(float("nan"))
        self.collector.track_time_on_page("soon")

        assert self.collector.buffers.time_on_page_seconds == 0.0

    def test_huge_or_infinite_time_on_page_ignored(self):
        """Durations too large for a float never raise."""
        self.collector.track_time_on_page(30)
        self.collector.track_time_on_page(10 ** 400)
        self.collector.track_time_on_page(float("inf"))

        assert self.collector.buffers.time_on_page_seconds == 30.0

    def test_reset_clears_everything(self):
        self.collector.track_click(T0)
        self.collector.track_error(T0)
        self.collector.track_back_navigation(T0)
        self.collector.update_pain_level(6)

        self.collector.reset()

        assert self.collector.buffers == BehaviorBuffers()
        assert self.collector.pain_level == 0.0


class TestPainLevel:
    """Out-of-range pain is clamped, never rejected."""

    def setup_method(self):
        self.collector = SignalCollector()

    def test_in_range_value_kept(self):
        assert self.collector.update_pain_level(5.5) == 5.5
        assert self.collector.pain_level == 5.5

    def test_above_range_clamped(self):
        assert self.collector.update_pain_level(15) == 10.0

    def test_below_range_clamped(self):
        assert self.collector.update_pain_level(-3) == 0.0

    def test_nan_becomes_zero(self):
        assert self.collector.update_pain_level(float("nan")) == 0.0

    def test_non_numeric_becomes_zero(self):
        self.collector.update_pain_level(7)
        assert self.collector.update_pain_level("very bad") == 0.0

    def test_huge_int_clamped(self):
        """An int too large for a float is clamped, never raised."""
        assert self.collector.update_pain_level(10 ** 400) == 10.0
        assert self.collector.update_pain_level(-(10 ** 400)) == 0.0

    def test_infinity_clamped(self):
        assert self.collector.update_pain_level(float("inf")) == 10.0

    def test_default_is_zero(self):
        assert self.collector.pain_level == 0.0
