"""
SwarmHealth - Torrent Swarm Health Engine

Estimates how many peers are serving each candidate torrent by probing the
BitTorrent DHT, merges the measurement with index-supplied hints, and ranks
the candidates so the best source can be picked before streaming.
"""

__version__ = "0.1.0"

from .engines.health_engine import EnhanceOptions, HealthEngine
from .storage.cache import HealthCache
from .storage.models import (
    HealthConfig,
    HealthResult,
    MeasurementSource,
    StatusTier,
    TorrentCandidate,
)

__all__ = [
    "EnhanceOptions",
    "HealthCache",
    "HealthConfig",
    "HealthEngine",
    "HealthResult",
    "MeasurementSource",
    "StatusTier",
    "TorrentCandidate",
]
