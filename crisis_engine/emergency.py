"""
Emergency Mode Controller

Applies and reverts a fixed bundle of interface-simplification
preference overrides. The controller only ever writes to the external
preference store; it never reads its own writes back as an oracle.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any, Protocol
import logging

from pydantic import BaseModel, Field

from .scorer import SeverityLevel

logger = logging.getLogger(__name__)


# Forced overrides while emergency mode is on
EMERGENCY_PREFERENCES: Dict[str, Any] = {
    "simplified_mode": True,
    "show_memory_aids": True,
    "auto_save": True,
    "touch_target_size": "extra-large",
    "confirmation_level": "high",
    "show_comfort_prompts": True,
    "show_progress": True,
}

# Fixed fallback written on deactivation (no pre-activation snapshot)
FALLBACK_PREFERENCES: Dict[str, Any] = {
    "simplified_mode": False,
    "touch_target_size": "large",
    "confirmation_level": "standard",
}


class EmergencyModeConfig(BaseModel):
    """Emergency mode settings."""
    enabled: bool = True
    auto_activate: bool = True
    simplification_level: str = Field("moderate", pattern="^(minimal|moderate|maximum)$")
    essential_functions_only: bool = False
    emergency_contacts_visible: bool = True
    auto_save_frequency: int = Field(30, gt=0)  # seconds
    timeout_extensions: bool = True


class PreferenceStore(Protocol):
    """What the engine needs from the host's settings object."""

    @property
    def preferences(self) -> Dict[str, Any]: ...

    def update_preferences(self, partial: Dict[str, Any]) -> None: ...


@dataclass
class InMemoryPreferenceStore:
    """Dict-backed preference store for tests and local runs."""
    values: Dict[str, Any] = field(default_factory=dict)
    write_count: int = 0

    @property
    def preferences(self) -> Dict[str, Any]:
        return dict(self.values)

    def update_preferences(self, partial: Dict[str, Any]) -> None:
        self.values.update(partial)
        self.write_count += 1


class EmergencyModeController:
    """
    Writes emergency and fallback preference bundles.

    Key rules:
    1. activate() always overwrites the full bundle (idempotent)
    2. deactivate() writes the fixed fallback, not a snapshot
    3. Store errors are logged, never retried or raised
    """

    def __init__(
        self,
        store: PreferenceStore,
        config: Optional[EmergencyModeConfig] = None
    ):
        self.store = store
        self.config = config or EmergencyModeConfig()
        self.is_active = False
        self.activated_at: Optional[datetime] = None
        self.activation_count = 0

    def _write(self, bundle: Dict[str, Any]) -> bool:
        try:
            self.store.update_preferences(dict(bundle))
        except Exception as e:
            logger.error(f"Preference store write failed: {e}")
            return False
        return True

    def activate(self, current_time: Optional[datetime] = None) -> bool:
        """Apply the emergency bundle. Returns True when the write went through."""
        if not self._write(EMERGENCY_PREFERENCES):
            return False

        if not self.is_active:
            self.is_active = True
            self.activated_at = current_time or datetime.now()
            self.activation_count += 1
            logger.info("Emergency mode activated")
        return True

    def deactivate(self) -> bool:
        """Write the fallback bundle. Returns True when the write went through."""
        if not self._write(FALLBACK_PREFERENCES):
            return False

        if self.is_active:
            logger.info("Emergency mode deactivated")
        self.is_active = False
        self.activated_at = None
        return True

    def get_interface_settings(self) -> Dict[str, Any]:
        """Settings the host uses to render the simplified interface."""
        return self.config.model_dump(exclude={"enabled", "auto_activate"})

    def should_auto_activate(
        self,
        is_in_crisis: bool,
        severity: SeverityLevel,
        auto_activate_enabled: bool
    ) -> bool:
        """Auto-activation only fires for an active crisis at critical severity."""
        return (
            is_in_crisis
            and auto_activate_enabled
            and self.config.enabled
            and self.config.auto_activate
            and severity == SeverityLevel.CRITICAL
        )
