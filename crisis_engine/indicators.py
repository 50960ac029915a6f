"""
Stress Indicator Module

Derives normalized stress indicators from the collector's buffers.
Pure functions over a point-in-time snapshot - nothing here mutates
collector state beyond the pruning that every buffer read performs.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any
from enum import Enum
import math

from .signals import SignalCollector


# Windows used by the individual indicators
COGNITIVE_WINDOW = timedelta(seconds=60)
ERRATIC_WINDOW = timedelta(seconds=30)
ERROR_RATE_WINDOW = timedelta(seconds=300)

MIN_CLICKS_FOR_VARIANCE = 3
VARIANCE_NORMALIZER = 10000.0  # ms^2
ERRORS_FOR_FULL_RATE = 10.0
TIME_ON_PAGE_NORMALIZER = 600.0  # seconds; 10 minutes counts as full load


class StressTrend(Enum):
    """Direction of overall stress, banded from the blended score."""
    IMPROVING = "improving"  # score < 0.3
    STABLE = "stable"
    WORSENING = "worsening"  # score > 0.6


@dataclass
class StressIndicators:
    """Snapshot of the independently computed stress dimensions."""
    pain_level: float = 0.0              # 0-10, reported by the user
    cognitive_load: float = 0.0          # 0-1
    input_erratic_behavior: float = 0.0  # 0-1, click interval variance
    error_rate: float = 0.0              # 0-1
    frustration_markers: float = 0.0     # 0-1, back navigation + help
    time_spent_on_tasks: float = 0.0     # minutes on page, not scored

    def normalized(self) -> Dict[str, float]:
        """The five scored indicators on a 0-1 scale."""
        return {
            "pain_level": self.pain_level / 10,
            "cognitive_load": self.cognitive_load,
            "input_erratic_behavior": self.input_erratic_behavior,
            "error_rate": self.error_rate,
            "frustration_markers": self.frustration_markers,
        }

    def to_dict(self) -> Dict[str, float]:
        return {
            "pain_level": round(self.pain_level, 2),
            "cognitive_load": round(self.cognitive_load, 3),
            "input_erratic_behavior": round(self.input_erratic_behavior, 3),
            "error_rate": round(self.error_rate, 3),
            "frustration_markers": round(self.frustration_markers, 3),
            "time_spent_on_tasks": round(self.time_spent_on_tasks, 2),
        }


DEFAULT_BASELINE = StressIndicators(
    pain_level=3.0,
    cognitive_load=0.3,
    input_erratic_behavior=0.2,
    error_rate=0.1,
    frustration_markers=0.1,
    time_spent_on_tasks=1.0,
)


@dataclass
class StressMetrics:
    """Current indicators plus the carried-forward baseline and trend."""
    current: StressIndicators = field(default_factory=StressIndicators)
    baseline: StressIndicators = field(default_factory=lambda: replace(DEFAULT_BASELINE))
    trend: StressTrend = StressTrend.STABLE
    last_updated: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current": self.current.to_dict(),
            "baseline": self.baseline.to_dict(),
            "trend": self.trend.value,
            "last_updated": self.last_updated.isoformat(),
        }


def classify_trend(overall_stress: float) -> StressTrend:
    """Band the blended score into a trend label."""
    if overall_stress > 0.6:
        return StressTrend.WORSENING
    elif overall_stress < 0.3:
        return StressTrend.IMPROVING
    return StressTrend.STABLE


def _unit(value: float) -> float:
    """Clamp to [0, 1]; NaN collapses to 0."""
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


def population_variance(values: List[float]) -> float:
    """Population variance; 0 for an empty list."""
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


class IndicatorCalculator:
    """
    Computes the five scored indicators from a SignalCollector.

    Formulas:
    - cognitive_load = errors_60s*0.2 + help_60s*0.3 + time_on_page_norm*0.1
    - input_erratic_behavior = var(click intervals in last 30s, ms) / 10000
    - error_rate = errors_300s / 10
    - frustration_markers = back_nav_total*0.1 + help_total*0.2
    All capped at 1.0; empty windows yield 0.
    """

    def calculate_cognitive_load(self, collector: SignalCollector, now: datetime) -> float:
        recent_errors = len(collector.recent_errors(now, within=COGNITIVE_WINDOW))
        recent_help = len(collector.recent_help_requests(now, within=COGNITIVE_WINDOW))
        time_on_page = _unit(collector.buffers.time_on_page_seconds / TIME_ON_PAGE_NORMALIZER)

        return _unit(recent_errors * 0.2 + recent_help * 0.3 + time_on_page * 0.1)

    def calculate_input_erratic_behavior(self, collector: SignalCollector, now: datetime) -> float:
        recent = collector.recent_clicks(now, within=ERRATIC_WINDOW)
        if len(recent) < MIN_CLICKS_FOR_VARIANCE:
            return 0.0

        intervals = [
            (recent[i] - recent[i - 1]).total_seconds() * 1000
            for i in range(1, len(recent))
        ]
        return _unit(population_variance(intervals) / VARIANCE_NORMALIZER)

    def calculate_error_rate(self, collector: SignalCollector, now: datetime) -> float:
        recent_errors = len(collector.recent_errors(now, within=ERROR_RATE_WINDOW))
        return _unit(recent_errors / ERRORS_FOR_FULL_RATE)

    def calculate_frustration_markers(self, collector: SignalCollector) -> float:
        buffers = collector.buffers
        return _unit(buffers.back_navigation_count * 0.1 + buffers.help_request_count * 0.2)

    def calculate_task_time(self, collector: SignalCollector) -> float:
        """Minutes on page."""
        return max(0.0, collector.buffers.time_on_page_seconds / 60)

    def calculate(
        self,
        collector: SignalCollector,
        current_time: Optional[datetime] = None
    ) -> StressIndicators:
        """Compute a full indicator snapshot at the given time."""
        now = current_time or datetime.now()

        pain = collector.pain_level
        if math.isnan(pain):
            pain = 0.0

        return StressIndicators(
            pain_level=max(0.0, min(10.0, pain)),
            cognitive_load=self.calculate_cognitive_load(collector, now),
            input_erratic_behavior=self.calculate_input_erratic_behavior(collector, now),
            error_rate=self.calculate_error_rate(collector, now),
            frustration_markers=self.calculate_frustration_markers(collector),
            time_spent_on_tasks=self.calculate_task_time(collector),
        )
