"""Configuration settings models."""

from pydantic import BaseModel, Field, field_validator

from ..engines.probe_models import DiscoveryConfig
from ..storage.models import HealthConfig

LOGGING_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class EngineSettings(BaseModel):
    """Persisted settings for the health engine and its CLI."""

    health: HealthConfig = Field(default_factory=HealthConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    logging_level: str = "INFO"

    @field_validator("logging_level")
    @classmethod
    def validate_logging_level(cls, v: str) -> str:
        """Validate logging level."""
        level = v.upper()
        if level not in LOGGING_LEVELS:
            raise ValueError(f"Logging level must be one of: {', '.join(LOGGING_LEVELS)}")
        return level


__all__ = ["DiscoveryConfig", "EngineSettings", "HealthConfig"]
