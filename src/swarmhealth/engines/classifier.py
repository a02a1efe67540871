"""Seed count classification into priority scores and status tiers."""

from typing import NamedTuple

from ..storage.models import HealthResult, MeasurementSource, StatusTier

# (minimum seeds, priority score, status tier), highest band first
CLASSIFICATION_BANDS = (
    (50, 5, StatusTier.EXCELLENT),
    (20, 4, StatusTier.VERY_GOOD),
    (10, 3, StatusTier.GOOD),
    (5, 2, StatusTier.FAIR),
    # Swarms with a handful of seeds still stream; they are not rated "poor".
    (1, 1, StatusTier.GOOD),
    (0, 0, StatusTier.DEAD),
)

STATUS_EMOJIS = {
    StatusTier.EXCELLENT: "🔥",
    StatusTier.VERY_GOOD: "✅",
    StatusTier.GOOD: "⚠️",
    StatusTier.FAIR: "🟡",
    StatusTier.POOR: "🔴",
    StatusTier.DEAD: "❌",
    StatusTier.ERROR: "⚠️",
}


class Classification(NamedTuple):
    """Priority score and status tier for a seed count."""

    priority_score: int
    status_tier: StatusTier


def classify(seeds: int) -> Classification:
    """
    Classify a seed count.

    Args:
        seeds: Trusted seed estimate

    Returns:
        Priority score (0-5) and status tier

    Raises:
        ValueError: If seeds is negative
    """
    if seeds < 0:
        raise ValueError("Seed count must be non-negative")

    for minimum, priority, tier in CLASSIFICATION_BANDS:
        if seeds >= minimum:
            return Classification(priority, tier)

    raise AssertionError("unreachable: the last band matches zero")


def build_result(
    identifier: str,
    seeds: int,
    peers: int,
    source: MeasurementSource,
    duration_ms: int = 0,
    failed: bool = False,
) -> HealthResult:
    """
    Assemble a health result, classifying the seed count.

    Args:
        identifier: Torrent identifier
        seeds: Trusted seed estimate
        peers: Observed or reported peer count
        source: Measurement provenance
        duration_ms: Time spent producing the result
        failed: Whether probing failed without fallback data

    Returns:
        Immutable health result
    """
    priority, tier = classify(seeds)
    if failed and seeds == 0:
        tier = StatusTier.ERROR

    return HealthResult(
        identifier=identifier,
        seeds=seeds,
        peers=peers,
        priority_score=priority,
        status_tier=tier,
        healthy=seeds > 0,
        measurement_source=source,
        probe_duration_ms=duration_ms,
    )


def status_emoji(tier: StatusTier) -> str:
    """Return a display emoji for a status tier."""
    return STATUS_EMOJIS.get(tier, "❓")
