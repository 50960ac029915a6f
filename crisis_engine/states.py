"""
Crisis State Machine Module

Tracks the transition between "no crisis" and an active crisis session.
Latching design: the tick only ever flips Idle -> Active automatically;
Active -> Idle happens solely through an explicit resolve call.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Callable, Any
from collections import deque
from enum import Enum
import logging

from .scorer import StressScore, SeverityLevel, CrisisTrigger

logger = logging.getLogger(__name__)


class CrisisPhase(Enum):
    """
    States of the crisis state machine.

    State flow:
    IDLE → ACTIVE → (resolve_crisis) → IDLE
    """
    IDLE = "idle"      # not in crisis, no open session
    ACTIVE = "active"  # in crisis, exactly one open session


class SessionOutcome(Enum):
    """How a crisis session ended."""
    ONGOING = "ongoing"
    RESOLVED = "resolved"
    ESCALATED = "escalated"
    TRANSFERRED = "transferred"


class ResponseType(Enum):
    """Kinds of responses the system made during a crisis."""
    UI_ADAPTATION = "ui_adaptation"
    NOTIFICATION = "notification"
    CONTACT_EMERGENCY = "contact_emergency"
    SAVE_DATA = "save_data"
    PROVIDE_RESOURCES = "provide_resources"


EFFECTIVE_RESPONSE_THRESHOLD = 0.5


@dataclass
class CrisisResponse:
    """A response made while a session was open."""
    id: str
    response_type: ResponseType
    priority: str
    timestamp: datetime
    action: Dict[str, Any] = field(default_factory=dict)
    trigger: Optional[CrisisTrigger] = None
    completed: bool = True
    effectiveness: Optional[float] = None  # user feedback 0-1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.response_type.value,
            "priority": self.priority,
            "timestamp": self.timestamp.isoformat(),
            "action": self.action,
            "trigger": self.trigger.to_dict() if self.trigger else None,
            "completed": self.completed,
            "effectiveness": self.effectiveness,
        }


@dataclass
class CrisisSession:
    """Lifetime record of one continuous Active period."""
    id: str
    start_time: datetime
    triggers: List[CrisisTrigger] = field(default_factory=list)
    responses: List[CrisisResponse] = field(default_factory=list)
    user_actions: List[str] = field(default_factory=list)
    outcome: SessionOutcome = SessionOutcome.ONGOING
    duration: float = 0.0  # seconds, finalized on resolve
    effective_interventions: List[str] = field(default_factory=list)
    end_time: Optional[datetime] = None
    user_feedback: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "triggers": [t.to_dict() for t in self.triggers],
            "responses": [r.to_dict() for r in self.responses],
            "user_actions": list(self.user_actions),
            "outcome": self.outcome.value,
            "duration": round(self.duration, 1),
            "effective_interventions": list(self.effective_interventions),
            "user_feedback": self.user_feedback,
        }


@dataclass
class CrisisState:
    """Current crisis state surfaced to callers."""
    is_in_crisis: bool
    severity: SeverityLevel
    triggers: List[CrisisTrigger]
    detected_at: datetime
    duration: float = 0.0  # seconds
    previous_episodes: int = 0

    @property
    def phase(self) -> CrisisPhase:
        return CrisisPhase.ACTIVE if self.is_in_crisis else CrisisPhase.IDLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_in_crisis": self.is_in_crisis,
            "severity": self.severity.value,
            "triggers": [t.to_dict() for t in self.triggers],
            "detected_at": self.detected_at.isoformat(),
            "duration": round(self.duration, 1),
            "previous_episodes": self.previous_episodes,
        }


@dataclass
class StateTransition:
    """Record of a phase change."""
    from_phase: CrisisPhase
    to_phase: CrisisPhase
    timestamp: datetime
    reason: str
    overall_stress: float
    session_id: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "from_phase": self.from_phase.value,
            "to_phase": self.to_phase.value,
            "timestamp": self.timestamp.isoformat(),
            "reason": self.reason,
            "overall_stress": round(self.overall_stress, 3),
            "session_id": self.session_id,
        }


class CrisisStateMachine:
    """
    State machine for crisis detection.

    Key rules:
    1. Enter ACTIVE when any trigger fired or the score reached the threshold
    2. ACTIVE latches - score dips never leave it
    3. Exactly one session per ACTIVE period
    4. previous_episodes counts IDLE → ACTIVE transitions
    """

    def __init__(
        self,
        stress_threshold: float = 0.7,
        max_history: int = 10,
        current_time: Optional[datetime] = None
    ):
        self.stress_threshold = stress_threshold
        self.state = CrisisState(
            is_in_crisis=False,
            severity=SeverityLevel.MILD,
            triggers=[],
            detected_at=current_time or datetime.now(),
        )
        self.current_session: Optional[CrisisSession] = None
        self.session_history: deque[CrisisSession] = deque(maxlen=max_history)
        self.transition_history: List[StateTransition] = []
        self.last_overall: float = 0.0
        self._callbacks: Dict[CrisisPhase, List[Callable]] = {
            phase: [] for phase in CrisisPhase
        }

    @property
    def phase(self) -> CrisisPhase:
        return self.state.phase

    def register_callback(
        self,
        phase: CrisisPhase,
        callback: Callable[[CrisisState, Optional[CrisisSession]], None]
    ):
        """Register a callback fired when entering a phase."""
        self._callbacks[phase].append(callback)

    def clear_callbacks(self):
        for callbacks in self._callbacks.values():
            callbacks.clear()

    def should_enter_crisis(self, score: StressScore) -> bool:
        return bool(score.triggers) or score.overall >= self.stress_threshold

    def update(
        self,
        score: StressScore,
        current_time: Optional[datetime] = None
    ) -> Optional[StateTransition]:
        """
        Apply one evaluation tick.

        Args:
            score: Stress score computed for this tick
            current_time: Reference time (defaults to score timestamp)

        Returns:
            StateTransition if the machine entered ACTIVE, None otherwise
        """
        now = current_time or score.timestamp
        self.last_overall = score.overall

        # Triggers are rebuilt every tick, never accumulated
        self.state.triggers = list(score.triggers)
        self.state.severity = score.severity

        if self.state.is_in_crisis:
            self.state.duration = max(0.0, (now - self.state.detected_at).total_seconds())
            return None

        if not self.should_enter_crisis(score):
            self.state.duration = 0.0
            return None

        return self._enter_crisis(score, now)

    def _enter_crisis(self, score: StressScore, now: datetime) -> StateTransition:
        self.state.is_in_crisis = True
        self.state.detected_at = now
        self.state.duration = 0.0
        self.state.previous_episodes += 1

        self.current_session = CrisisSession(
            id=f"crisis_{int(now.timestamp() * 1000)}",
            start_time=now,
            triggers=list(score.triggers),
        )

        transition = StateTransition(
            from_phase=CrisisPhase.IDLE,
            to_phase=CrisisPhase.ACTIVE,
            timestamp=now,
            reason=self._get_entry_reason(score),
            overall_stress=score.overall,
            session_id=self.current_session.id,
        )
        self.transition_history.append(transition)

        logger.info(
            f"Crisis started ({transition.reason}), severity={score.severity.value}, "
            f"episode={self.state.previous_episodes}"
        )
        self._fire(CrisisPhase.ACTIVE)
        return transition

    def _get_entry_reason(self, score: StressScore) -> str:
        """Generate human-readable entry reason."""
        if score.triggers:
            kinds = ", ".join(t.trigger_type.value for t in score.triggers)
            return f"Triggers fired: {kinds}"
        return f"Stress threshold crossed ({score.overall:.2f})"

    def resolve(
        self,
        outcome: SessionOutcome = SessionOutcome.RESOLVED,
        feedback: Optional[str] = None,
        current_time: Optional[datetime] = None
    ) -> Optional[CrisisSession]:
        """
        Close the open session and return to IDLE.

        Returns the closed session, or None when nothing was open.
        """
        if self.current_session is None:
            logger.debug("resolve called with no open crisis session, ignoring")
            return None

        now = current_time or datetime.now()
        session = self.current_session
        session.end_time = now
        session.outcome = outcome
        session.duration = max(0.0, (now - session.start_time).total_seconds())
        session.user_feedback = feedback
        session.effective_interventions = [
            r.id for r in session.responses
            if r.effectiveness is not None and r.effectiveness >= EFFECTIVE_RESPONSE_THRESHOLD
        ]

        self.session_history.append(session)
        self.current_session = None

        self.state.is_in_crisis = False
        self.state.triggers = []
        self.state.duration = 0.0

        self.transition_history.append(StateTransition(
            from_phase=CrisisPhase.ACTIVE,
            to_phase=CrisisPhase.IDLE,
            timestamp=now,
            reason=f"Resolved as {outcome.value}",
            overall_stress=self.last_overall,
            session_id=session.id,
        ))

        logger.info(f"Crisis session {session.id} resolved as {outcome.value} after {session.duration:.0f}s")
        self._fire(CrisisPhase.IDLE, session)
        return session

    def _fire(self, phase: CrisisPhase, session: Optional[CrisisSession] = None):
        for callback in self._callbacks[phase]:
            try:
                callback(self.state, session or self.current_session)
            except Exception as e:
                logger.error(f"Crisis state callback error: {e}")

    def reset(self, current_time: Optional[datetime] = None):
        """
        Return to a fresh IDLE state.

        An open session is closed and kept in history first. The episode
        counter carries over.
        """
        now = current_time or datetime.now()
        if self.current_session is not None:
            self.resolve(SessionOutcome.RESOLVED, current_time=now)

        self.state = CrisisState(
            is_in_crisis=False,
            severity=SeverityLevel.MILD,
            triggers=[],
            detected_at=now,
            previous_episodes=self.state.previous_episodes,
        )
        self.last_overall = 0.0
