"""
Tests for Emergency Mode Controller

Tests bundle writes, the fixed fallback, auto-activation gating and
store failure handling.
"""

import pytest
from datetime import datetime
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from pydantic import ValidationError

from crisis_engine.scorer import SeverityLevel
from crisis_engine.emergency import (
    EmergencyModeController, EmergencyModeConfig, InMemoryPreferenceStore,
    EMERGENCY_PREFERENCES, FALLBACK_PREFERENCES
)

T0 = datetime(2026, 1, 1, 12, 0, 0)


class FailingStore:
    """Preference store whose writes always blow up."""

    def __init__(self):
        self.attempts = 0

    @property
    def preferences(self):
        return {}

    def update_preferences(self, partial):
        self.attempts += 1
        raise IOError("settings backend unavailable")


class TestActivation:
    """Applying and reverting the bundles."""

    def setup_method(self):
        self.store = InMemoryPreferenceStore(values={"theme": "dark", "touch_target_size": "medium"})
        self.controller = EmergencyModeController(self.store)

    def test_activate_writes_full_bundle(self):
        assert self.controller.activate(T0) is True

        for key, value in EMERGENCY_PREFERENCES.items():
            assert self.store.preferences[key] == value
        assert self.store.preferences["theme"] == "dark"
        assert self.controller.is_active is True
        assert self.controller.activated_at == T0

    def test_activate_is_idempotent(self):
        """Repeated activation rewrites the same values."""
        self.controller.activate(T0)
        first = self.store.preferences
        self.controller.activate(T0)

        assert self.store.preferences == first
        assert self.store.write_count == 2
        assert self.controller.activation_count == 1

    def test_deactivate_writes_fixed_fallback(self):
        """The fallback never restores the pre-activation values."""
        self.controller.activate(T0)
        assert self.controller.deactivate() is True

        prefs = self.store.preferences
        for key, value in FALLBACK_PREFERENCES.items():
            assert prefs[key] == value
        assert prefs["touch_target_size"] == "large"
        assert self.controller.is_active is False
        assert self.controller.activated_at is None

    def test_deactivate_without_activation_still_writes(self):
        self.controller.deactivate()

        assert self.store.preferences["simplified_mode"] is False
        assert self.store.write_count == 1


class TestStoreFailures:
    """Store errors are logged, never raised or retried."""

    def setup_method(self):
        self.store = FailingStore()
        self.controller = EmergencyModeController(self.store)

    def test_activate_failure_returns_false(self):
        assert self.controller.activate(T0) is False
        assert self.controller.is_active is False
        assert self.store.attempts == 1

    def test_deactivate_failure_returns_false(self):
        assert self.controller.deactivate() is False
        assert self.store.attempts == 1

    def test_failure_is_logged(self, caplog):
        with caplog.at_level("ERROR", logger="crisis_engine.emergency"):
            self.controller.activate(T0)

        assert "settings backend unavailable" in caplog.text


class TestAutoActivation:
    """Only critical severity inside a crisis auto-activates."""

    def setup_method(self):
        self.controller = EmergencyModeController(InMemoryPreferenceStore())

    def test_critical_in_crisis(self):
        assert self.controller.should_auto_activate(True, SeverityLevel.CRITICAL, True) is True

    @pytest.mark.parametrize("severity", [
        SeverityLevel.MILD, SeverityLevel.MODERATE, SeverityLevel.SEVERE
    ])
    def test_lower_severities_never_auto_activate(self, severity):
        assert self.controller.should_auto_activate(True, severity, True) is False

    def test_not_in_crisis(self):
        assert self.controller.should_auto_activate(False, SeverityLevel.CRITICAL, True) is False

    def test_engine_switch_off(self):
        assert self.controller.should_auto_activate(True, SeverityLevel.CRITICAL, False) is False

    def test_emergency_config_disabled(self):
        controller = EmergencyModeController(
            InMemoryPreferenceStore(),
            EmergencyModeConfig(enabled=False),
        )

        assert controller.should_auto_activate(True, SeverityLevel.CRITICAL, True) is False

    def test_emergency_config_auto_off(self):
        controller = EmergencyModeController(
            InMemoryPreferenceStore(),
            EmergencyModeConfig(auto_activate=False),
        )

        assert controller.should_auto_activate(True, SeverityLevel.CRITICAL, True) is False


class TestEmergencyModeConfig:
    """Validation of the emergency settings."""

    def test_defaults(self):
        config = EmergencyModeConfig()

        assert config.enabled is True
        assert config.simplification_level == "moderate"
        assert config.auto_save_frequency == 30

    def test_rejects_unknown_simplification_level(self):
        with pytest.raises(ValidationError):
            EmergencyModeConfig(simplification_level="extreme")

    def test_rejects_non_positive_auto_save_frequency(self):
        with pytest.raises(ValidationError):
            EmergencyModeConfig(auto_save_frequency=0)

    def test_interface_settings(self):
        """Only the settings that shape the interface are handed out."""
        controller = EmergencyModeController(
            InMemoryPreferenceStore(),
            EmergencyModeConfig(simplification_level="maximum", essential_functions_only=True),
        )

        settings = controller.get_interface_settings()

        assert settings == {
            "simplification_level": "maximum",
            "essential_functions_only": True,
            "emergency_contacts_visible": True,
            "auto_save_frequency": 30,
            "timeout_extensions": True,
        }
