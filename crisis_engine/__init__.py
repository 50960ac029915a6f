"""
Crisis Engine - Stress Detection & Adaptive Response

A deterministic, tunable heuristic engine that turns low-level interaction
telemetry into a bounded stress score, tracks crisis sessions, and applies
interface-simplification overrides.

Layers:
1. Signal Collector (raw events, rolling buffers) - signals.py
2. Indicator Calculator (normalized indicators) - indicators.py
3. Stress Scorer (weighted fusion, severity, triggers) - scorer.py
4. Crisis State Machine (latching sessions) - states.py
5. Emergency Mode Controller (preference overrides) - emergency.py

Runtime:
6. Configuration (pydantic, env) - config.py
7. Engine (orchestrator) - engine.py
8. Monitor (asyncio timer) - monitor.py
"""

from .signals import (
    SignalCollector,
    BehaviorBuffers,
    SignalType,
)

from .indicators import (
    IndicatorCalculator,
    StressIndicators,
    StressMetrics,
    StressTrend,
    DEFAULT_BASELINE,
)

from .scorer import (
    StressScorer,
    StressScore,
    SeverityLevel,
    TriggerType,
    CrisisTrigger,
    PainSpike,
    CognitiveFog,
    RapidInput,
    ErrorPattern,
    EmotionalDistress,
    INDICATOR_WEIGHTS,
)

from .states import (
    CrisisStateMachine,
    CrisisState,
    CrisisSession,
    CrisisResponse,
    CrisisPhase,
    SessionOutcome,
    ResponseType,
    StateTransition,
)

from .emergency import (
    EmergencyModeController,
    EmergencyModeConfig,
    PreferenceStore,
    InMemoryPreferenceStore,
    EMERGENCY_PREFERENCES,
    FALLBACK_PREFERENCES,
)

from .config import (
    CrisisDetectionConfig,
    Sensitivity,
    SENSITIVITY_PROFILES,
    load_config_from_env,
)

from .engine import (
    CrisisDetectionEngine,
    CrisisEvent,
    UI_ADAPTATIONS,
)

from .monitor import CrisisMonitor

__version__ = "0.1.0"
__all__ = [
    # Signals
    "SignalCollector",
    "BehaviorBuffers",
    "SignalType",
    # Indicators
    "IndicatorCalculator",
    "StressIndicators",
    "StressMetrics",
    "StressTrend",
    "DEFAULT_BASELINE",
    # Scorer
    "StressScorer",
    "StressScore",
    "SeverityLevel",
    "TriggerType",
    "CrisisTrigger",
    "PainSpike",
    "CognitiveFog",
    "RapidInput",
    "ErrorPattern",
    "EmotionalDistress",
    "INDICATOR_WEIGHTS",
    # States
    "CrisisStateMachine",
    "CrisisState",
    "CrisisSession",
    "CrisisResponse",
    "CrisisPhase",
    "SessionOutcome",
    "ResponseType",
    "StateTransition",
    # Emergency mode
    "EmergencyModeController",
    "EmergencyModeConfig",
    "PreferenceStore",
    "InMemoryPreferenceStore",
    "EMERGENCY_PREFERENCES",
    "FALLBACK_PREFERENCES",
    # Config
    "CrisisDetectionConfig",
    "Sensitivity",
    "SENSITIVITY_PROFILES",
    "load_config_from_env",
    # Engine
    "CrisisDetectionEngine",
    "CrisisEvent",
    "UI_ADAPTATIONS",
    "CrisisMonitor",
]
