"""Tests for magnet parsing and helpers."""

import base64

import pytest

from swarmhealth.utils.helpers import format_bytes, format_duration_ms, shorten_identifier
from swarmhealth.utils.validation import is_magnet_uri, parse_magnet

HEX_HASH = "c9e15763f722f23e98a29decdfae341b98d53056"


def test_parse_hex_magnet():
    """Test a standard v1 magnet with name and trackers."""
    info = parse_magnet(
        f"magnet:?xt=urn:btih:{HEX_HASH.upper()}&dn=Big+Movie&tr=udp%3A%2F%2Ftracker.example%3A80"
    )

    assert info.info_hash == HEX_HASH
    assert info.display_name == "Big Movie"
    assert info.trackers == ("udp://tracker.example:80",)


def test_parse_base32_magnet():
    """Test base32 info-hashes are converted to hex."""
    encoded = base64.b32encode(bytes.fromhex(HEX_HASH)).decode()
    info = parse_magnet(f"magnet:?xt=urn:btih:{encoded}")
    assert info.info_hash == HEX_HASH


def test_parse_v2_magnet():
    """Test a BitTorrent v2 multihash topic."""
    digest = "1220" + "ab" * 32
    assert parse_magnet(f"magnet:?xt=urn:btmh:{digest}").info_hash == digest


@pytest.mark.parametrize(
    "uri",
    [
        "",
        "http://example.com",
        "magnet:?dn=nothing",
        "magnet:?xt=urn:btih:1234",
        "magnet:?xt=urn:btmh:1220abcd",
    ],
)
def test_parse_rejects_malformed(uri):
    """Test malformed magnets raise ValueError."""
    with pytest.raises(ValueError):
        parse_magnet(uri)
    assert not is_magnet_uri(uri)


def test_is_magnet_uri():
    """Test a valid magnet is recognised."""
    assert is_magnet_uri(f"magnet:?xt=urn:btih:{HEX_HASH}")


def test_format_helpers():
    """Test human-readable formatting."""
    assert format_bytes(0) == "0 B"
    assert format_bytes(1536) == "1.5 KB"
    assert format_duration_ms(850) == "850ms"
    assert format_duration_ms(4200) == "4.2s"
    assert format_duration_ms(None) == "Unknown"


def test_shorten_identifier():
    """Test long identifiers are truncated for logs."""
    long_id = "magnet:?xt=urn:btih:" + HEX_HASH * 3
    short = shorten_identifier(long_id, 30)

    assert len(short) == 30
    assert short.endswith("...")
    assert shorten_identifier("short") == "short"
