"""
Tests for risk-tier configuration.
"""

import pytest

from project_health.settings import (
    HealthConfig,
    InvalidThresholdsError,
    RiskThresholds,
)


class TestRiskThresholds:

    def test_defaults(self):
        thresholds = RiskThresholds()
        assert (thresholds.low, thresholds.medium, thresholds.high) == (0.2, 0.3, 0.5)
        assert thresholds.medium_from == 0.2
        assert thresholds.high_from == 0.5

    def test_must_sum_to_one(self):
        with pytest.raises(InvalidThresholdsError) as exc_info:
            RiskThresholds(low=0.2, medium=0.3, high=0.4)
        assert exc_info.value.high == 0.4

    def test_must_be_non_negative(self):
        with pytest.raises(InvalidThresholdsError):
            RiskThresholds(low=-0.1, medium=0.6, high=0.5)

    def test_is_a_value_error(self):
        with pytest.raises(ValueError):
            RiskThresholds(low=1, medium=1, high=1)


class TestHealthConfig:

    def test_defaults(self):
        assert HealthConfig.to_dict() == {
            "thresholds": {"low": 0.2, "medium": 0.3, "high": 0.5, "medium_from": 0.2, "high_from": 0.5},
            "zero_progress_multiplier": 1.2,
            "log_level": "INFO",
        }

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("PROJECT_HEALTH_RISK_LOW", "0.25")
        monkeypatch.setenv("PROJECT_HEALTH_RISK_MEDIUM", "0.25")
        monkeypatch.setenv("PROJECT_HEALTH_ZERO_PROGRESS_MULTIPLIER", "1.5")
        monkeypatch.setenv("PROJECT_HEALTH_LOG_LEVEL", "debug")
        HealthConfig.reset()

        thresholds = HealthConfig.get_thresholds()
        assert thresholds.low == 0.25
        assert thresholds.high_from == 0.5
        assert HealthConfig.get_zero_progress_multiplier() == 1.5
        assert HealthConfig.get_config().log_level == "DEBUG"

    def test_invalid_env_values_are_ignored(self, monkeypatch):
        monkeypatch.setenv("PROJECT_HEALTH_RISK_LOW", "0.9")
        monkeypatch.setenv("PROJECT_HEALTH_ZERO_PROGRESS_MULTIPLIER", "lots")
        monkeypatch.setenv("PROJECT_HEALTH_LOG_LEVEL", "LOUD")
        HealthConfig.reset()

        assert HealthConfig.get_thresholds() == RiskThresholds()
        assert HealthConfig.get_zero_progress_multiplier() == 1.2
        assert HealthConfig.get_config().log_level == "INFO"

    def test_set_thresholds(self):
        HealthConfig.set_thresholds(0.1, 0.4, 0.5)
        assert HealthConfig.get_thresholds().medium_from == 0.1

    def test_set_invalid_thresholds_keeps_previous(self):
        with pytest.raises(InvalidThresholdsError):
            HealthConfig.set_thresholds(0.5, 0.5, 0.5)
        assert HealthConfig.get_thresholds() == RiskThresholds()
