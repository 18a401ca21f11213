"""
Project Health Engine - Configuration
=====================================

Risk-tier policy and engine tunables.

The three risk tiers partition [0, 1] into contiguous bands that are used
both for bucketing items and for the arc widths of the dashboard gauges:

    [0, low)              -> Low
    [low, low + medium)   -> Medium
    [low + medium, 1]     -> High

Uso:
    from project_health.settings import HealthConfig

    thresholds = HealthConfig.get_thresholds()
    if score >= thresholds.high_from:
        ...

Configuração via variáveis de ambiente:
    PROJECT_HEALTH_RISK_LOW=0.2
    PROJECT_HEALTH_RISK_MEDIUM=0.3
    PROJECT_HEALTH_RISK_HIGH=0.5
    PROJECT_HEALTH_ZERO_PROGRESS_MULTIPLIER=1.2
    PROJECT_HEALTH_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


DEFAULT_RISK_LOW = 0.2
DEFAULT_RISK_MEDIUM = 0.3
DEFAULT_RISK_HIGH = 0.5
DEFAULT_ZERO_PROGRESS_MULTIPLIER = 1.2


class InvalidThresholdsError(ValueError):
    """Raised when a risk-tier triple does not partition [0, 1]."""
    def __init__(self, message: str, low: float, medium: float, high: float):
        super().__init__(message)
        self.low = low
        self.medium = medium
        self.high = high


# ═══════════════════════════════════════════════════════════════════════════════
# RISK THRESHOLDS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RiskThresholds:
    """
    Widths of the Low / Medium / High risk bands.

    Attributes:
        low: Width of the Low band (scores below it are Low)
        medium: Width of the Medium band
        high: Width of the High band
    """
    low: float = DEFAULT_RISK_LOW
    medium: float = DEFAULT_RISK_MEDIUM
    high: float = DEFAULT_RISK_HIGH

    def __post_init__(self):
        for value in (self.low, self.medium, self.high):
            if value < 0:
                raise InvalidThresholdsError(
                    f"Risk tiers must be non-negative, got {self.low}/{self.medium}/{self.high}",
                    self.low, self.medium, self.high,
                )
        total = self.low + self.medium + self.high
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise InvalidThresholdsError(
                f"Risk tiers must sum to 1.0, got {total}",
                self.low, self.medium, self.high,
            )

    @property
    def medium_from(self) -> float:
        """Lowest score that is at least Medium."""
        return self.low

    @property
    def high_from(self) -> float:
        """Lowest score that is High."""
        return self.low + self.medium

    def to_dict(self) -> Dict[str, Any]:
        return {
            'low': self.low,
            'medium': self.medium,
            'high': self.high,
            'medium_from': self.medium_from,
            'high_from': self.high_from,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# SETTINGS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class HealthSettings:
    """Engine settings. Defaults are the production policy."""
    thresholds: RiskThresholds = field(default_factory=RiskThresholds)
    zero_progress_multiplier: float = DEFAULT_ZERO_PROGRESS_MULTIPLIER
    log_level: str = "INFO"


class HealthConfig:
    """
    Singleton para gestão da configuração do engine.

    Carrega configuração de variáveis de ambiente ou usa defaults.
    """

    _instance: Optional[HealthSettings] = None

    @classmethod
    def _load_from_env(cls) -> HealthSettings:
        """Carrega configuração de variáveis de ambiente."""
        settings = HealthSettings()

        tiers = {}
        env_mapping = {
            "PROJECT_HEALTH_RISK_LOW": "low",
            "PROJECT_HEALTH_RISK_MEDIUM": "medium",
            "PROJECT_HEALTH_RISK_HIGH": "high",
        }
        for env_var, attr_name in env_mapping.items():
            value = os.environ.get(env_var)
            if value:
                try:
                    tiers[attr_name] = float(value)
                except ValueError:
                    logger.warning(f"Invalid value for {env_var}: {value}")

        if tiers:
            try:
                settings.thresholds = RiskThresholds(
                    low=tiers.get('low', settings.thresholds.low),
                    medium=tiers.get('medium', settings.thresholds.medium),
                    high=tiers.get('high', settings.thresholds.high),
                )
                logger.info(f"Risk thresholds = {settings.thresholds.to_dict()}")
            except InvalidThresholdsError as e:
                logger.warning(f"Ignoring risk thresholds from environment: {e}")

        multiplier = os.environ.get("PROJECT_HEALTH_ZERO_PROGRESS_MULTIPLIER")
        if multiplier:
            try:
                settings.zero_progress_multiplier = float(multiplier)
            except ValueError:
                logger.warning(f"Invalid value for PROJECT_HEALTH_ZERO_PROGRESS_MULTIPLIER: {multiplier}")

        log_level = os.environ.get("PROJECT_HEALTH_LOG_LEVEL")
        if log_level:
            if log_level.upper() in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
                settings.log_level = log_level.upper()
            else:
                logger.warning(f"Invalid value for PROJECT_HEALTH_LOG_LEVEL: {log_level}")

        return settings

    @classmethod
    def get_config(cls) -> HealthSettings:
        """Obtém configuração atual."""
        if cls._instance is None:
            cls._instance = cls._load_from_env()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset para recarregar config."""
        cls._instance = None

    @classmethod
    def get_thresholds(cls) -> RiskThresholds:
        return cls.get_config().thresholds

    @classmethod
    def get_zero_progress_multiplier(cls) -> float:
        return cls.get_config().zero_progress_multiplier

    @classmethod
    def set_thresholds(cls, low: float, medium: float, high: float) -> RiskThresholds:
        """
        Define thresholds em runtime (para testes/tuning).

        Raises:
            InvalidThresholdsError: if the triple does not partition [0, 1]
        """
        thresholds = RiskThresholds(low=low, medium=medium, high=high)
        cls.get_config().thresholds = thresholds
        logger.info(f"Risk thresholds set to {thresholds.to_dict()}")
        return thresholds

    @classmethod
    def to_dict(cls) -> Dict[str, Any]:
        """Exporta configuração como dict."""
        config = cls.get_config()
        return {
            "thresholds": config.thresholds.to_dict(),
            "zero_progress_multiplier": config.zero_progress_multiplier,
            "log_level": config.log_level,
        }
