"""
Stress Scorer Module

Fuses stress indicators into one weighted overall score, bands it into
a severity level, and independently emits per-indicator triggers.
Fixed, documented weights - nothing is learned.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Optional, Tuple, ClassVar, Any
from enum import Enum

from .indicators import StressIndicators


class SeverityLevel(Enum):
    """Severity bands of the blended stress score."""
    MILD = "mild"          # < 0.40
    MODERATE = "moderate"  # 0.40 - 0.59
    SEVERE = "severe"      # 0.60 - 0.79
    CRITICAL = "critical"  # >= 0.80


class TriggerType(Enum):
    """Kinds of explainable threshold crossings."""
    PAIN_SPIKE = "pain_spike"
    COGNITIVE_FOG = "cognitive_fog"
    RAPID_INPUT = "rapid_input"
    ERROR_PATTERN = "error_pattern"
    EMOTIONAL_DISTRESS = "emotional_distress"


# Weights of each indicator in the overall score (sum to 1.0)
INDICATOR_WEIGHTS: Dict[str, float] = {
    "pain_level": 0.30,
    "cognitive_load": 0.25,
    "input_erratic_behavior": 0.20,
    "error_rate": 0.15,
    "frustration_markers": 0.10,
}

# Fixed trigger thresholds for indicators without a configurable one
RAPID_INPUT_THRESHOLD = 0.7
ERROR_PATTERN_THRESHOLD = 0.3
EMOTIONAL_DISTRESS_THRESHOLD = 0.5

SEVERITY_BANDS: List[Tuple[float, SeverityLevel]] = [
    (0.8, SeverityLevel.CRITICAL),
    (0.6, SeverityLevel.SEVERE),
    (0.4, SeverityLevel.MODERATE),
]


@dataclass(frozen=True)
class CrisisTrigger:
    """Base of the trigger variants. Use a subclass, never this directly."""
    trigger_type: ClassVar[TriggerType]

    value: float       # normalized 0-1
    threshold: float   # normalized 0-1
    timestamp: datetime
    context: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.trigger_type.value,
            "value": round(self.value, 3),
            "threshold": round(self.threshold, 3),
            "timestamp": self.timestamp.isoformat(),
            "context": self.context,
        }


@dataclass(frozen=True)
class PainSpike(CrisisTrigger):
    trigger_type: ClassVar[TriggerType] = TriggerType.PAIN_SPIKE


@dataclass(frozen=True)
class CognitiveFog(CrisisTrigger):
    trigger_type: ClassVar[TriggerType] = TriggerType.COGNITIVE_FOG


@dataclass(frozen=True)
class RapidInput(CrisisTrigger):
    trigger_type: ClassVar[TriggerType] = TriggerType.RAPID_INPUT


@dataclass(frozen=True)
class ErrorPattern(CrisisTrigger):
    trigger_type: ClassVar[TriggerType] = TriggerType.ERROR_PATTERN


@dataclass(frozen=True)
class EmotionalDistress(CrisisTrigger):
    trigger_type: ClassVar[TriggerType] = TriggerType.EMOTIONAL_DISTRESS


TRIGGER_CLASSES: Dict[TriggerType, type] = {
    cls.trigger_type: cls
    for cls in (PainSpike, CognitiveFog, RapidInput, ErrorPattern, EmotionalDistress)
}


@dataclass
class StressScore:
    """Complete stress assessment at a point in time."""
    overall: float  # 0.0 - 1.0
    severity: SeverityLevel
    timestamp: datetime
    indicators: StressIndicators
    contributions: List[Tuple[str, float]] = field(default_factory=list)  # (indicator, contribution)
    triggers: List[CrisisTrigger] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": round(self.overall, 3),
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "indicators": self.indicators.to_dict(),
            "contributions": [
                {"indicator": name, "contribution": round(c, 3)}
                for name, c in self.contributions
            ],
            "triggers": [t.to_dict() for t in self.triggers],
        }


class StressScorer:
    """
    Calculates the overall stress score and detects triggers.

    Formula:
    overall = pain/10*0.3 + cognitive*0.25 + erratic*0.2
              + error_rate*0.15 + frustration*0.1

    Severity reflects the blended score; triggers explain why. The two
    are computed independently and both surfaced.
    """

    def __init__(
        self,
        pain_threshold: float = 7.0,
        cognitive_load_threshold: float = 0.6
    ):
        """
        Args:
            pain_threshold: Pain level (0-10) that fires a pain_spike
            cognitive_load_threshold: Load (0-1) that fires cognitive_fog
        """
        self.pain_threshold = pain_threshold
        self.cognitive_load_threshold = cognitive_load_threshold

    def calculate_contributions(self, indicators: StressIndicators) -> List[Tuple[str, float]]:
        """Weighted contribution of each indicator, largest first."""
        normalized = indicators.normalized()
        contributions = [
            (name, normalized[name] * weight)
            for name, weight in INDICATOR_WEIGHTS.items()
        ]
        contributions.sort(key=lambda x: x[1], reverse=True)
        return contributions

    def calculate_overall(self, indicators: StressIndicators) -> float:
        total = sum(c for _, c in self.calculate_contributions(indicators))
        return max(0.0, min(1.0, total))

    def get_severity(self, overall: float) -> SeverityLevel:
        """Determine severity band, evaluated high to low."""
        for floor, level in SEVERITY_BANDS:
            if overall >= floor:
                return level
        return SeverityLevel.MILD

    def detect_triggers(
        self,
        indicators: StressIndicators,
        current_time: Optional[datetime] = None
    ) -> List[CrisisTrigger]:
        """Emit one trigger per indicator that crossed its threshold."""
        now = current_time or datetime.now()
        normalized = indicators.normalized()

        checks = [
            (PainSpike, "pain_level", self.pain_threshold / 10,
             f"Pain level: {indicators.pain_level:g}/10"),
            (CognitiveFog, "cognitive_load", self.cognitive_load_threshold,
             "High cognitive load detected"),
            (RapidInput, "input_erratic_behavior", RAPID_INPUT_THRESHOLD,
             "Erratic input patterns detected"),
            (ErrorPattern, "error_rate", ERROR_PATTERN_THRESHOLD,
             "High error rate detected"),
            (EmotionalDistress, "frustration_markers", EMOTIONAL_DISTRESS_THRESHOLD,
             "Signs of frustration detected"),
        ]
        return [
            cls(value=normalized[name], threshold=threshold, timestamp=now, context=context)
            for cls, name, threshold, context in checks
            if normalized[name] >= threshold
        ]

    def score(
        self,
        indicators: StressIndicators,
        current_time: Optional[datetime] = None
    ) -> StressScore:
        """
        Score an indicator snapshot.

        Args:
            indicators: Snapshot from the IndicatorCalculator
            current_time: Reference time (defaults to now)

        Returns:
            StressScore with overall value, severity, contributions and triggers
        """
        now = current_time or datetime.now()
        overall = self.calculate_overall(indicators)

        return StressScore(
            overall=overall,
            severity=self.get_severity(overall),
            timestamp=now,
            indicators=indicators,
            contributions=self.calculate_contributions(indicators),
            triggers=self.detect_triggers(indicators, now),
        )
