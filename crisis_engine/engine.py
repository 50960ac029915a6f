"""
Crisis Detection Engine

The orchestrator that ties the crisis layers together:
1. Signal collector (event-driven ingestion)
2. Indicator calculator
3. Stress scorer
4. Crisis state machine
5. Emergency mode controller

Pipeline per tick: buffers → indicators → score/severity → state
transition → (optional) preference override. This is the single
integration point for hosts.
"""

from dataclasses import replace
from datetime import datetime
from typing import Optional, List, Dict, Any, Callable, Mapping, Union
from enum import Enum
import logging
import math

from .config import CrisisDetectionConfig
from .signals import SignalCollector, SignalType, parse_float
from .indicators import IndicatorCalculator, StressMetrics, classify_trend
from .scorer import StressScorer, StressScore, SeverityLevel
from .states import (
    CrisisStateMachine,
    CrisisState,
    CrisisSession,
    CrisisPhase,
    CrisisResponse,
    ResponseType,
    SessionOutcome,
)
from .emergency import EmergencyModeController, PreferenceStore, EMERGENCY_PREFERENCES

logger = logging.getLogger(__name__)


class CrisisEvent(Enum):
    """Lifecycle events hosts can subscribe to."""
    CRISIS_STARTED = "crisis_started"
    CRISIS_RESOLVED = "crisis_resolved"
    EMERGENCY_ACTIVATED = "emergency_activated"
    EMERGENCY_DEACTIVATED = "emergency_deactivated"


# Adaptation bundles per crisis level, consumed by visual components
UI_ADAPTATIONS: Dict[str, Dict[str, Any]] = {
    "none": {
        "show_adaptations": False,
        "message": None,
        "actions": [],
    },
    "mild": {
        "show_adaptations": True,
        "message": "We notice you might be feeling stressed. Take your time.",
        "actions": ["pause", "simplify"],
    },
    "moderate": {
        "show_adaptations": True,
        "message": "This seems overwhelming right now. Would you like to simplify or take a break?",
        "actions": ["pause", "simplify", "save"],
    },
    "severe": {
        "show_adaptations": True,
        "message": "We want to support you. Consider taking a break or reaching out for help.",
        "actions": ["pause", "help", "emergency", "save"],
    },
    "critical": {
        "show_adaptations": True,
        "message": "Your safety is most important. Here are immediate resources.",
        "actions": ["emergency", "help", "save"],
    },
}


class CrisisDetectionEngine:
    """
    Crisis/stress detection and adaptive-response engine.

    Tracking calls only record events; nothing is evaluated until
    evaluate() runs (normally from a CrisisMonitor tick). All state is
    owned by this instance - run one engine per tab or user.
    """

    def __init__(
        self,
        preference_store: PreferenceStore,
        config: Union[CrisisDetectionConfig, Mapping[str, Any], None] = None,
        current_time: Optional[datetime] = None
    ):
        if isinstance(config, CrisisDetectionConfig):
            self.config = config
        else:
            self.config = CrisisDetectionConfig.from_overrides(config)

        now = current_time or datetime.now()

        # Initialize all subsystems
        self.collector = SignalCollector()
        self.calculator = IndicatorCalculator()
        self.scorer = StressScorer(
            pain_threshold=self.config.pain_threshold,
            cognitive_load_threshold=self.config.cognitive_load_threshold,
        )
        self.state_machine = CrisisStateMachine(
            stress_threshold=self.config.stress_threshold,
            current_time=now,
        )
        self.emergency = EmergencyModeController(
            preference_store,
            self.config.emergency_mode,
        )

        self.stress_metrics = StressMetrics(last_updated=now)
        self.last_score: Optional[StressScore] = None
        self._callbacks: Dict[CrisisEvent, List[Callable]] = {
            event: [] for event in CrisisEvent
        }
        self._response_counter = 0

        # Relay state machine phase changes to engine events
        self.state_machine.register_callback(CrisisPhase.ACTIVE, self._on_crisis_started)
        self.state_machine.register_callback(CrisisPhase.IDLE, self._on_crisis_resolved)

    # ------------------------------------------------------------------
    # Event-driven ingestion
    # ------------------------------------------------------------------

    def track_click(self, timestamp: Optional[datetime] = None):
        self.collector.track_click(timestamp)

    def track_error(self, timestamp: Optional[datetime] = None):
        self.collector.track_error(timestamp)
        self._record_user_action(SignalType.ERROR)

    def track_help_request(self, timestamp: Optional[datetime] = None):
        self.collector.track_help_request(timestamp)
        self._record_user_action(SignalType.HELP_REQUEST)

    def track_back_navigation(self, timestamp: Optional[datetime] = None):
        self.collector.track_back_navigation(timestamp)
        self._record_user_action(SignalType.BACK_NAVIGATION)

    def track_time_on_page(self, seconds: float):
        self.collector.track_time_on_page(seconds)

    def update_pain_level(self, level: float) -> float:
        """Record a reported pain level (clamped to 0-10) on the current snapshot."""
        stored = self.collector.update_pain_level(level)
        self.stress_metrics.current = replace(self.stress_metrics.current, pain_level=stored)
        self._record_user_action(SignalType.PAIN_UPDATE)
        return stored

    def _record_user_action(self, signal: SignalType):
        session = self.state_machine.current_session
        if session is not None:
            session.user_actions.append(signal.value)

    # ------------------------------------------------------------------
    # Timer-driven evaluation
    # ------------------------------------------------------------------

    def evaluate(self, current_time: Optional[datetime] = None) -> Optional[StressScore]:
        """
        Run one full evaluation tick.

        Runs synchronously to completion:
        1. Compute indicators from the buffers
        2. Score and band them, detect triggers
        3. Update the crisis state machine
        4. Auto-activate emergency mode at critical severity

        Returns None when detection is disabled.
        """
        if not self.config.enabled:
            return None

        now = current_time or datetime.now()

        indicators = self.calculator.calculate(self.collector, now)
        score = self.scorer.score(indicators, now)
        self.last_score = score

        self.state_machine.update(score, now)

        self.stress_metrics = StressMetrics(
            current=indicators,
            baseline=self.stress_metrics.baseline,
            trend=classify_trend(score.overall),
            last_updated=now,
        )

        if self.emergency.should_auto_activate(
            self.is_in_crisis,
            score.severity,
            self.config.auto_activate_emergency_mode,
        ):
            self.activate_emergency_mode(current_time=now)

        logger.debug(
            f"Crisis tick: stress={score.overall:.3f} severity={score.severity.value} "
            f"triggers={len(score.triggers)} in_crisis={self.is_in_crisis}"
        )
        return score

    # ------------------------------------------------------------------
    # Caller actions
    # ------------------------------------------------------------------

    def resolve_crisis(
        self,
        outcome: Union[SessionOutcome, str] = SessionOutcome.RESOLVED,
        feedback: Optional[str] = None,
        current_time: Optional[datetime] = None
    ) -> Optional[CrisisSession]:
        """
        Close the open crisis session. No-op when none is open.

        Returns the closed session, or None.
        """
        return self.state_machine.resolve(self._coerce_outcome(outcome), feedback, current_time)

    @staticmethod
    def _coerce_outcome(outcome: Union[SessionOutcome, str]) -> SessionOutcome:
        try:
            value = SessionOutcome(outcome)
        except ValueError:
            logger.warning(f"Unknown crisis outcome {outcome!r}, recording as resolved")
            return SessionOutcome.RESOLVED
        if value == SessionOutcome.ONGOING:
            logger.warning("Cannot resolve a crisis as ongoing, recording as resolved")
            return SessionOutcome.RESOLVED
        return value

    def activate_emergency_mode(self, current_time: Optional[datetime] = None) -> bool:
        """Force the emergency preference bundle."""
        was_active = self.emergency.is_active
        ok = self.emergency.activate(current_time)
        if ok and not was_active:
            self._record_emergency_response(current_time or datetime.now())
            self._emit(CrisisEvent.EMERGENCY_ACTIVATED)
        return ok

    def deactivate_emergency_mode(self) -> bool:
        """Write the fixed fallback preferences."""
        was_active = self.emergency.is_active
        ok = self.emergency.deactivate()
        if ok and was_active:
            self._emit(CrisisEvent.EMERGENCY_DEACTIVATED)
        return ok

    def _record_emergency_response(self, now: datetime):
        session = self.state_machine.current_session
        if session is None:
            return
        self._response_counter += 1
        session.responses.append(CrisisResponse(
            id=f"{session.id}_response_{self._response_counter}",
            response_type=ResponseType.UI_ADAPTATION,
            priority="critical",
            timestamp=now,
            action={"preferences": dict(EMERGENCY_PREFERENCES)},
            trigger=session.triggers[0] if session.triggers else None,
        ))

    def rate_response(self, response_id: str, effectiveness: float) -> bool:
        """
        Attach user feedback (0-1) to a response in the open session.

        Out-of-range ratings are clamped; NaN and non-numeric ratings are
        ignored. Returns True when a rating was stored.
        """
        value = parse_float(effectiveness)
        if value is None or math.isnan(value):
            logger.warning(f"Ignoring unreadable response rating {effectiveness!r}")
            return False

        session = self.state_machine.current_session
        if session is None:
            return False
        for response in session.responses:
            if response.id == response_id:
                response.effectiveness = max(0.0, min(1.0, value))
                return True
        return False

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def register_callback(self, event: CrisisEvent, callback: Callable[["CrisisDetectionEngine"], None]):
        """Register a callback for a lifecycle event."""
        self._callbacks[event].append(callback)

    def detach_callbacks(self):
        """Drop every registered host callback."""
        for callbacks in self._callbacks.values():
            callbacks.clear()

    def _emit(self, event: CrisisEvent):
        for callback in list(self._callbacks[event]):
            try:
                callback(self)
            except Exception as e:
                logger.error(f"Crisis {event.value} callback error: {e}")

    def _on_crisis_started(self, state: CrisisState, session: Optional[CrisisSession]):
        self._emit(CrisisEvent.CRISIS_STARTED)

    def _on_crisis_resolved(self, state: CrisisState, session: Optional[CrisisSession]):
        self._emit(CrisisEvent.CRISIS_RESOLVED)

    # ------------------------------------------------------------------
    # Read-only derived state
    # ------------------------------------------------------------------

    @property
    def crisis_state(self) -> CrisisState:
        return self.state_machine.state

    @property
    def is_in_crisis(self) -> bool:
        return self.state_machine.state.is_in_crisis

    @property
    def crisis_severity(self) -> SeverityLevel:
        return self.state_machine.state.severity

    @property
    def overall_stress_level(self) -> float:
        """Blended stress (0-1) of the current snapshot."""
        return self.scorer.calculate_overall(self.stress_metrics.current)

    @property
    def current_session(self) -> Optional[CrisisSession]:
        return self.state_machine.current_session

    @property
    def session_history(self) -> List[CrisisSession]:
        return list(self.state_machine.session_history)

    @property
    def crisis_level(self) -> str:
        """'none' outside a crisis, otherwise the severity value."""
        if not self.is_in_crisis:
            return "none"
        return self.crisis_severity.value

    def get_ui_adaptations(self) -> Dict[str, Any]:
        """
        Adaptation bundle for the current crisis level.

        While emergency mode is on, the emergency settings that shape the
        simplified interface are included under emergency_settings.
        """
        adaptations = dict(UI_ADAPTATIONS[self.crisis_level])
        adaptations["actions"] = list(adaptations["actions"])
        adaptations["crisis_level"] = self.crisis_level
        adaptations["emergency_mode"] = self.emergency.is_active
        adaptations["emergency_settings"] = (
            self.emergency.get_interface_settings() if self.emergency.is_active else None
        )
        return adaptations

    def reset(self, current_time: Optional[datetime] = None):
        """
        Clear buffers, counters and crisis state.

        An open session is closed as resolved and kept in history, and
        emergency mode is switched off. The episode counter carries over.
        """
        now = current_time or datetime.now()
        self.state_machine.reset(now)
        if self.emergency.is_active:
            self.deactivate_emergency_mode()
        self.collector.reset()
        self.stress_metrics = StressMetrics(last_updated=now)
        self.last_score = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_in_crisis": self.is_in_crisis,
            "crisis_severity": self.crisis_severity.value,
            "crisis_level": self.crisis_level,
            "overall_stress_level": round(self.overall_stress_level, 3),
            "crisis_state": self.crisis_state.to_dict(),
            "stress_metrics": self.stress_metrics.to_dict(),
            "current_session": self.current_session.to_dict() if self.current_session else None,
            "emergency_mode": self.emergency.is_active,
        }
