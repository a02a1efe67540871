"""
Merging of live probe outcomes with hints from external torrent indexes.

Trust policy: a live measurement beats a stale external hint, but a stale
hint beats having no data at all.
"""

import logging
import math
from typing import NamedTuple

from ..storage.models import HealthHint, MeasurementSource
from .probe_models import ProbeOutcome, ProbeProtocolError, ProbeSuccess, ProbeTimeout

logger = logging.getLogger(__name__)

DEFAULT_SEED_RATIO = 0.3


class MergeDecision(NamedTuple):
    """Trusted numbers chosen by the merger."""

    seeds: int
    peers: int
    source: MeasurementSource
    failed: bool = False  # probing failed and nothing could stand in for it


def estimate_seeds(peer_count: int, seed_ratio: float = DEFAULT_SEED_RATIO) -> int:
    """
    Estimate how many of the reached peers are seeds.

    The wire protocol cannot cheaply tell seeds from leechers without
    exchanging bitfields, so this is an approximation rather than a protocol
    fact: ``max(1, floor(peer_count * seed_ratio))`` for a non-empty swarm.

    Args:
        peer_count: Distinct peers reached
        seed_ratio: Assumed share of seeds among reached peers

    Returns:
        Estimated seed count
    """
    if peer_count <= 0:
        return 0
    return max(1, math.floor(peer_count * seed_ratio))


def merge(
    outcome: ProbeOutcome | None,
    hint: HealthHint | None,
    seed_ratio: float = DEFAULT_SEED_RATIO,
) -> MergeDecision:
    """
    Choose which source to trust for a candidate.

    Args:
        outcome: Probe outcome, or None when live probing was skipped
        hint: Seeds/peers reported by an external index, if any
        seed_ratio: Seed share used to estimate seeds from peers

    Returns:
        The trusted seeds, peers and their provenance
    """
    if outcome is None:
        if hint is not None and hint.seeds > 0:
            return MergeDecision(hint.seeds, hint.peers, MeasurementSource.HINT_ONLY)
        return MergeDecision(0, 0, MeasurementSource.NO_DATA)

    if isinstance(outcome, ProbeSuccess):
        return MergeDecision(
            estimate_seeds(outcome.peer_count, seed_ratio),
            outcome.peer_count,
            MeasurementSource.LIVE_PROBE,
        )

    if isinstance(outcome, ProbeTimeout) and outcome.peer_count_so_far > 0:
        # Fewer peers than the early-exit bar, but still a live measurement
        return MergeDecision(
            estimate_seeds(outcome.peer_count_so_far, seed_ratio),
            outcome.peer_count_so_far,
            MeasurementSource.LIVE_PROBE,
        )

    failed = isinstance(outcome, ProbeProtocolError)
    if hint is not None and hint.seeds > 0:
        source = (
            MeasurementSource.PROBE_ERROR_FALLBACK
            if failed
            else MeasurementSource.PROBE_TIMEOUT_FALLBACK
        )
        logger.debug(f"Probe inconclusive, trusting hint of {hint.seeds} seeds")
        return MergeDecision(hint.seeds, hint.peers, source)

    return MergeDecision(0, 0, MeasurementSource.NO_DATA, failed=failed)
