"""Swarm health engine implementations."""

from .classifier import Classification, build_result, classify, status_emoji
from .discovery_alerts import AlertKind, AlertTranslator, RoutedAlert
from .discovery_session import (
    DiscoveryBackend,
    DiscoverySession,
    LibtorrentBackend,
    LibtorrentDiscoverySession,
)
from .health_engine import EnhanceOptions, HealthEngine
from .merger import MergeDecision, estimate_seeds, merge
from .probe_models import (
    DiscoveryConfig,
    DiscoveryError,
    InvalidIdentifierError,
    PeerEvent,
    PeerEventKind,
    ProbeOutcome,
    ProbeProtocolError,
    ProbeSuccess,
    ProbeTimeout,
    SwarmHealthError,
)
from .prober import SwarmProber
from .ranker import RankedPair, extract_quality, extract_size_bytes, quality_rank, rank
from .scheduler import BatchReport, BatchScheduler

__all__ = [
    # Engine
    "EnhanceOptions",
    "HealthEngine",
    # Components
    "BatchReport",
    "BatchScheduler",
    "Classification",
    "MergeDecision",
    "SwarmProber",
    "build_result",
    "classify",
    "estimate_seeds",
    "merge",
    "status_emoji",
    # Ranking
    "RankedPair",
    "extract_quality",
    "extract_size_bytes",
    "quality_rank",
    "rank",
    # Discovery
    "AlertKind",
    "AlertTranslator",
    "DiscoveryBackend",
    "DiscoveryConfig",
    "DiscoverySession",
    "LibtorrentBackend",
    "LibtorrentDiscoverySession",
    "PeerEvent",
    "PeerEventKind",
    "RoutedAlert",
    # Outcomes and errors
    "DiscoveryError",
    "InvalidIdentifierError",
    "ProbeOutcome",
    "ProbeProtocolError",
    "ProbeSuccess",
    "ProbeTimeout",
    "SwarmHealthError",
]
