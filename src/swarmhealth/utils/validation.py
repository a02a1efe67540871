"""Magnet link parsing and validation utilities."""

import base64
from dataclasses import dataclass, field
import re
from urllib.parse import parse_qs, urlparse

BTIH_HEX_PATTERN = re.compile(r"^[0-9a-fA-F]{40}$")
BTIH_BASE32_PATTERN = re.compile(r"^[A-Za-z2-7]{32}$")
BTMH_PATTERN = re.compile(r"^1220[0-9a-fA-F]{64}$")  # sha2-256 multihash


@dataclass(frozen=True)
class MagnetInfo:
    """Fields of a magnet URI relevant to swarm probing."""

    info_hash: str  # lower-case hex (v1) or multihash (v2)
    display_name: str | None = None
    trackers: tuple[str, ...] = field(default_factory=tuple)


def _base32_to_hex(value: str) -> str:
    return base64.b32decode(value.upper()).hex()


def parse_magnet(uri: str) -> MagnetInfo:
    """
    Parse a BitTorrent magnet URI.

    Args:
        uri: Magnet URI

    Returns:
        Parsed magnet information

    Raises:
        ValueError: If the URI is not a magnet link with a BitTorrent info-hash
    """
    parsed = urlparse(uri.strip())
    if parsed.scheme.lower() != "magnet":
        raise ValueError("Not a magnet URI")

    params = parse_qs(parsed.query)
    info_hash = None

    for topic in params.get("xt", []):
        lowered = topic.lower()
        if lowered.startswith("urn:btih:"):
            value = topic[len("urn:btih:"):]
            if BTIH_HEX_PATTERN.match(value):
                info_hash = value.lower()
            elif BTIH_BASE32_PATTERN.match(value):
                info_hash = _base32_to_hex(value)
            else:
                raise ValueError(f"Malformed btih info-hash: {value}")
            break
        if lowered.startswith("urn:btmh:"):
            value = topic[len("urn:btmh:"):]
            if not BTMH_PATTERN.match(value):
                raise ValueError(f"Malformed btmh info-hash: {value}")
            info_hash = value.lower()
            break

    if info_hash is None:
        raise ValueError("Magnet URI has no BitTorrent exact topic (xt)")

    names = params.get("dn")
    return MagnetInfo(
        info_hash=info_hash,
        display_name=names[0] if names else None,
        trackers=tuple(params.get("tr", [])),
    )


def is_magnet_uri(uri: str) -> bool:
    """
    Check if a string is a usable magnet URI.

    Args:
        uri: String to check

    Returns:
        True if the string parses as a BitTorrent magnet link
    """
    try:
        parse_magnet(uri)
        return True
    except ValueError:
        return False
