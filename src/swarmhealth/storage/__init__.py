"""Health result models and caching."""

from .cache import HealthCache
from .models import (
    HealthConfig,
    HealthHint,
    HealthResult,
    MeasurementSource,
    StatusTier,
    TorrentCandidate,
)

__all__ = [
    # Core models
    "HealthConfig",
    "HealthHint",
    "HealthResult",
    "MeasurementSource",
    "StatusTier",
    "TorrentCandidate",
    # Cache
    "HealthCache",
]
