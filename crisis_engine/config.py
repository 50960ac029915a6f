"""
Crisis Detection Configuration

Static thresholds and weights, overridable by the caller or through
CRISIS_* environment variables. Malformed values fall back to the
documented defaults instead of breaking the evaluation loop.
"""

import os
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from .emergency import EmergencyModeConfig

logger = logging.getLogger(__name__)


class Sensitivity(str, Enum):
    """How eagerly the detector fires."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Thresholds derived from an explicit sensitivity
SENSITIVITY_PROFILES: Dict[Sensitivity, Dict[str, float]] = {
    Sensitivity.LOW: {
        "pain_threshold": 9.0,
        "cognitive_load_threshold": 0.7,
        "stress_threshold": 0.8,
    },
    Sensitivity.MEDIUM: {
        "pain_threshold": 8.0,
        "cognitive_load_threshold": 0.6,
        "stress_threshold": 0.7,
    },
    Sensitivity.HIGH: {
        "pain_threshold": 7.0,
        "cognitive_load_threshold": 0.5,
        "stress_threshold": 0.6,
    },
}

ENV_PREFIX = "CRISIS_"
ENV_FIELDS = (
    "enabled",
    "sensitivity",
    "monitoring_interval_ms",
    "pain_threshold",
    "stress_threshold",
    "cognitive_load_threshold",
    "auto_activate_emergency_mode",
)


class CrisisDetectionConfig(BaseModel):
    """Settings for one crisis detection engine."""
    enabled: bool = True
    sensitivity: Sensitivity = Sensitivity.MEDIUM
    monitoring_interval_ms: int = Field(10000, gt=0)
    pain_threshold: float = Field(7.0, ge=0.0, le=10.0, allow_inf_nan=False)
    stress_threshold: float = Field(0.7, ge=0.0, le=1.0, allow_inf_nan=False)
    cognitive_load_threshold: float = Field(0.6, ge=0.0, le=1.0, allow_inf_nan=False)
    auto_activate_emergency_mode: bool = True
    emergency_mode: EmergencyModeConfig = Field(default_factory=EmergencyModeConfig)

    @model_validator(mode="before")
    @classmethod
    def apply_sensitivity_profile(cls, data: Any) -> Any:
        """
        Fill thresholds from the sensitivity profile.

        Only applies when sensitivity was given explicitly, and only to
        thresholds the caller left unset.
        """
        if not isinstance(data, dict) or data.get("sensitivity") is None:
            return data
        try:
            profile = SENSITIVITY_PROFILES[Sensitivity(data["sensitivity"])]
        except ValueError:
            return data  # reported by field validation
        return {**profile, **data}

    @property
    def monitoring_interval_seconds(self) -> float:
        return self.monitoring_interval_ms / 1000

    @classmethod
    def from_overrides(cls, overrides: Optional[Mapping[str, Any]] = None) -> "CrisisDetectionConfig":
        """
        Build a config from caller overrides, dropping invalid fields.

        Never raises: every rejected field is logged and replaced by its
        default.
        """
        data = dict(overrides or {})
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            rejected = {str(err["loc"][0]) for err in e.errors() if err.get("loc")}
            logger.warning(
                f"Invalid crisis config fields {sorted(rejected)}, falling back to defaults"
            )

        cleaned = {k: v for k, v in data.items() if k not in rejected}
        try:
            return cls.model_validate(cleaned)
        except ValidationError as e:
            logger.error(f"Crisis config still invalid after cleanup, using defaults: {e}")
            return cls()


def load_config_from_env(env_dir: Optional[Path] = None) -> CrisisDetectionConfig:
    """
    Load configuration from CRISIS_* environment variables.

    Reads .env.local first (local development), then .env as fallback.
    """
    base = env_dir or Path.cwd()
    env_local = base / ".env.local"
    env_file = base / ".env"

    if env_local.exists():
        load_dotenv(env_local)
    elif env_file.exists():
        load_dotenv(env_file)

    overrides: Dict[str, Any] = {}
    for name in ENV_FIELDS:
        value = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if value is not None and value != "":
            overrides[name] = value

    return CrisisDetectionConfig.from_overrides(overrides)
