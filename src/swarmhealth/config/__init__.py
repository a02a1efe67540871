"""Configuration management module."""

from .defaults import get_default_health_config, get_default_settings
from .manager import ConfigManager, ValidationResult
from .settings import DiscoveryConfig, EngineSettings, HealthConfig

__all__ = [
    "ConfigManager",
    "DiscoveryConfig",
    "EngineSettings",
    "HealthConfig",
    "ValidationResult",
    "get_default_health_config",
    "get_default_settings",
]
