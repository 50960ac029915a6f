"""
Behavioral Signal Collection Module

Captures raw interaction events (clicks, errors, help requests, back
navigation, reported pain) into bounded rolling buffers.
No evaluation happens here - collection is decoupled from scoring.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any
from bisect import insort, bisect_left
from enum import Enum
import logging
import math

logger = logging.getLogger(__name__)


class SignalType(Enum):
    """Raw interaction events the collector understands."""
    CLICK = "click"
    ERROR = "error"
    HELP_REQUEST = "help_request"
    BACK_NAVIGATION = "back_navigation"
    PAIN_UPDATE = "pain_update"
    TIME_ON_PAGE = "time_on_page"


# Retention windows per timestamp buffer
CLICK_WINDOW = timedelta(seconds=60)
ERROR_WINDOW = timedelta(seconds=300)
HELP_REQUEST_WINDOW = timedelta(seconds=300)

MIN_PAIN_LEVEL = 0.0
MAX_PAIN_LEVEL = 10.0


@dataclass
class BehaviorBuffers:
    """Rolling windows and lifetime counters for one collector."""
    click_timestamps: List[datetime] = field(default_factory=list)
    error_timestamps: List[datetime] = field(default_factory=list)
    help_request_timestamps: List[datetime] = field(default_factory=list)

    # Lifetime counters, cleared only by an explicit reset
    back_navigation_count: int = 0
    help_request_count: int = 0
    error_count: int = 0
    time_on_page_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "click_timestamps": [t.isoformat() for t in self.click_timestamps],
            "error_timestamps": [t.isoformat() for t in self.error_timestamps],
            "help_request_timestamps": [t.isoformat() for t in self.help_request_timestamps],
            "back_navigation_count": self.back_navigation_count,
            "help_request_count": self.help_request_count,
            "error_count": self.error_count,
            "time_on_page_seconds": round(self.time_on_page_seconds, 1),
        }


def _prune(timestamps: List[datetime], window: timedelta, now: datetime) -> None:
    """
    Drop entries older than the window, in place. List must be sorted.

    The window is measured from the newest entry when it is later than
    now, so a late-arriving stale event is dropped on insert.
    """
    if timestamps:
        now = max(now, timestamps[-1])
    del timestamps[:bisect_left(timestamps, now - window)]


def parse_float(value: Any) -> Optional[float]:
    """Parse a numeric input; None when it cannot be read as a float."""
    try:
        return float(value)
    except OverflowError:
        return math.inf if value > 0 else -math.inf
    except (TypeError, ValueError):
        return None


class SignalCollector:
    """
    Collects interaction telemetry for a single engine instance.

    Every write appends to the matching buffer and prunes it; every read
    prunes before returning, so buffers never hold stale entries.
    """

    def __init__(self):
        self.buffers = BehaviorBuffers()
        self.pain_level: float = 0.0

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    @staticmethod
    def _record(timestamps: List[datetime], window: timedelta, timestamp: Optional[datetime]):
        now = timestamp or datetime.now()
        insort(timestamps, now)
        _prune(timestamps, window, now)

    def track_click(self, timestamp: Optional[datetime] = None):
        """Record a click."""
        self._record(self.buffers.click_timestamps, CLICK_WINDOW, timestamp)

    def track_error(self, timestamp: Optional[datetime] = None):
        """Record an input or navigation error."""
        self._record(self.buffers.error_timestamps, ERROR_WINDOW, timestamp)
        self.buffers.error_count += 1

    def track_help_request(self, timestamp: Optional[datetime] = None):
        """Record a help request."""
        self._record(self.buffers.help_request_timestamps, HELP_REQUEST_WINDOW, timestamp)
        self.buffers.help_request_count += 1

    def track_back_navigation(self, timestamp: Optional[datetime] = None):
        """Record a back navigation (escape, back button, undo)."""
        self.buffers.back_navigation_count += 1

    def track_time_on_page(self, seconds: float):
        """Accumulate time spent on the current page."""
        value = parse_float(seconds)
        if value is None or not math.isfinite(value) or value < 0:
            logger.warning(f"Ignoring invalid time on page: {seconds!r}")
            return
        self.buffers.time_on_page_seconds += value

    def update_pain_level(self, level: float) -> float:
        """
        Set the reported pain level used by the next evaluation.

        Out-of-range values are clamped to [0, 10] rather than rejected;
        NaN and non-numeric input count as 0. Returns the stored value.
        """
        value = parse_float(level)
        if value is None or math.isnan(value):
            logger.warning(f"Unreadable pain level {level!r}, using 0")
            value = 0.0

        clamped = max(MIN_PAIN_LEVEL, min(MAX_PAIN_LEVEL, value))
        if clamped != value:
            logger.warning(f"Pain level {value} out of range, clamped to {clamped}")

        self.pain_level = clamped
        return clamped

    # ------------------------------------------------------------------
    # Reads (each read prunes first)
    # ------------------------------------------------------------------

    @staticmethod
    def _recent(
        timestamps: List[datetime],
        window: timedelta,
        now: Optional[datetime],
        within: Optional[timedelta]
    ) -> List[datetime]:
        now = now or datetime.now()
        _prune(timestamps, window, now)
        if within is None:
            return list(timestamps)
        cutoff = now - within
        return [t for t in timestamps if t >= cutoff]

    def recent_clicks(self, now: Optional[datetime] = None, within: Optional[timedelta] = None) -> List[datetime]:
        """Clicks inside the retention window, or a narrower one."""
        return self._recent(self.buffers.click_timestamps, CLICK_WINDOW, now, within)

    def recent_errors(self, now: Optional[datetime] = None, within: Optional[timedelta] = None) -> List[datetime]:
        return self._recent(self.buffers.error_timestamps, ERROR_WINDOW, now, within)

    def recent_help_requests(self, now: Optional[datetime] = None, within: Optional[timedelta] = None) -> List[datetime]:
        return self._recent(self.buffers.help_request_timestamps, HELP_REQUEST_WINDOW, now, within)

    def reset(self):
        """Clear all buffers, counters and the reported pain level."""
        self.buffers = BehaviorBuffers()
        self.pain_level = 0.0
