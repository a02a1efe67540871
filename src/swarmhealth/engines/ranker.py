"""Ranking of health-checked torrent candidates."""

from collections.abc import Sequence
import logging
import re

from ..storage.models import HealthResult, TorrentCandidate

logger = logging.getLogger(__name__)

# Best first; 4K and UHD share the 2160p rung
QUALITY_LADDER = ("2160p", "1080p", "720p", "480p", "360p")
QUALITY_ALIASES = {"4k": "2160p", "uhd": "2160p"}
UNRANKED_QUALITY = len(QUALITY_LADDER)

QUALITY_PATTERN = re.compile(r"(?<![a-z0-9])(2160p|1080p|720p|480p|360p|4k|uhd)(?![a-z0-9])", re.IGNORECASE)
SIZE_PATTERN = re.compile(r"(\d+(?:[.,]\d+)?)\s*(TiB|GiB|MiB|KiB|TB|GB|MB|KB)\b", re.IGNORECASE)

UNIT_BYTES = {
    "kb": 1024,
    "mb": 1024**2,
    "gb": 1024**3,
    "tb": 1024**4,
}

RankedPair = tuple[TorrentCandidate, HealthResult]


def extract_quality(name: str) -> str | None:
    """
    Extract the video quality tag from a release name.

    Args:
        name: Display name such as "Movie.2019.1080p.WEB.mkv"

    Returns:
        Normalized quality ("2160p", "1080p", ...) or None if unrecognized
    """
    match = QUALITY_PATTERN.search(name)
    if not match:
        return None

    tag = match.group(1).lower()
    return QUALITY_ALIASES.get(tag, tag)


def quality_rank(name: str) -> int:
    """Position on the quality ladder; unrecognized qualities rank last."""
    quality = extract_quality(name)
    return QUALITY_LADDER.index(quality) if quality else UNRANKED_QUALITY


def extract_size_bytes(text: str | None) -> int | None:
    """
    Extract a declared size from free text.

    Args:
        text: Text such as "1.5 GB" or "Movie.720p.[900MB].mkv"

    Returns:
        Size in bytes, or None if no size is present
    """
    if not text:
        return None

    match = SIZE_PATTERN.search(text)
    if not match:
        return None

    value = float(match.group(1).replace(",", "."))
    unit = match.group(2).lower().replace("i", "")
    return int(value * UNIT_BYTES[unit])


def declared_size(candidate: TorrentCandidate) -> int | None:
    """Size declared by the index, falling back to the display name."""
    size = extract_size_bytes(candidate.size)
    if size is None:
        size = extract_size_bytes(candidate.display_name)
    return size


def _sort_key(pair: RankedPair) -> tuple[int, int, int, int]:
    candidate, health = pair
    size = declared_size(candidate)
    return (
        -health.priority_score,
        -health.seeds,
        quality_rank(candidate.display_name),
        -size if size is not None else 1,  # unknown sizes after every known size
    )


def rank(pairs: Sequence[RankedPair]) -> list[RankedPair]:
    """
    Order candidates from most to least preferable.

    Keys, in order: priority score, seeds, quality tier and declared size.
    The sort is stable, so full ties keep their input order.

    Args:
        pairs: Candidates paired with their health results

    Returns:
        The same pairs, reordered
    """
    ranked = sorted(pairs, key=_sort_key)
    logger.debug(f"Ranked {len(ranked)} candidates")
    return ranked
