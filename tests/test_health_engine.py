"""Tests for the health engine facade."""

import pytest

from swarmhealth.engines.health_engine import EnhanceOptions, HealthEngine
from swarmhealth.storage.cache import HealthCache
from swarmhealth.storage.models import MeasurementSource, TorrentCandidate

from .conftest import make_magnet


@pytest.mark.asyncio
async def test_enhance_ranks_results(backend, health_config):
    """Test the healthiest swarm comes first."""
    dead = make_magnet(300)
    hinted = make_magnet(301)
    live = make_magnet(302)
    backend.script_peers(live, 2, delay_ms=5)
    engine = HealthEngine(health_config, backend=backend)

    results = await engine.enhance(
        [
            TorrentCandidate(identifier=dead),
            TorrentCandidate(identifier=hinted, hint_seeds=60, hint_peers=10),
            TorrentCandidate(identifier=live),
        ],
        EnhanceOptions(timeout_ms=200, concurrency=3),
    )

    assert [r.identifier for r in results] == [hinted, live, dead]
    assert [r.measurement_source for r in results] == [
        MeasurementSource.PROBE_TIMEOUT_FALLBACK,
        MeasurementSource.LIVE_PROBE,
        MeasurementSource.NO_DATA,
    ]
    assert results[0].priority_score == 5


@pytest.mark.asyncio
async def test_enhance_is_idempotent_within_ttl(backend, health_config):
    """Test a second call is served entirely from the cache."""
    candidates = []
    for i in range(4):
        magnet = make_magnet(310 + i)
        backend.script_peers(magnet, 2 + i, delay_ms=5)
        candidates.append(TorrentCandidate(identifier=magnet, display_name=f"Movie.{i}.1080p"))
    engine = HealthEngine(health_config, backend=backend)

    first = await engine.enhance(candidates)
    probes = len(backend.opened)
    second = await engine.enhance(candidates)

    assert len(backend.opened) == probes
    assert all(r.measurement_source is MeasurementSource.CACHE for r in second)
    assert [(r.identifier, r.seeds, r.priority_score, r.status_tier) for r in first] == [
        (r.identifier, r.seeds, r.priority_score, r.status_tier) for r in second
    ]


@pytest.mark.asyncio
async def test_skip_health_check_uses_hints(backend, health_config):
    """Test skip mode never opens a discovery session."""
    candidates = [
        TorrentCandidate(identifier=make_magnet(320), display_name="A.720p", hint_seeds=3),
        TorrentCandidate(identifier=make_magnet(321), display_name="B.1080p", hint_seeds=55),
    ]
    engine = HealthEngine(health_config, backend=backend)

    results = await engine.enhance(candidates, EnhanceOptions(skip_health_check=True))

    assert backend.opened == []
    assert [r.seeds for r in results] == [55, 3]
    assert all(r.measurement_source is MeasurementSource.HINT_ONLY for r in results)


@pytest.mark.asyncio
async def test_skip_health_check_from_config(backend, health_config):
    """Test the configured skip flag applies when the call leaves it unset."""
    config = health_config.model_copy(update={"skip_health_check": True})
    engine = HealthEngine(config, backend=backend)

    await engine.enhance([TorrentCandidate(identifier=make_magnet(325))])

    assert backend.opened == []


@pytest.mark.asyncio
async def test_enhance_pairs_fills_display_name_from_magnet(backend, health_config):
    """Test the magnet's dn parameter names unnamed candidates."""
    magnet = make_magnet(330, name="Some.Movie.2160p")
    engine = HealthEngine(health_config, backend=backend)

    pairs = await engine.enhance_pairs(
        [TorrentCandidate(identifier=magnet)], EnhanceOptions(skip_health_check=True)
    )

    candidate, result = pairs[0]
    assert candidate.display_name == "Some.Movie.2160p"
    assert result.identifier == magnet


@pytest.mark.asyncio
async def test_enhance_empty(backend, health_config):
    """Test an empty candidate list."""
    engine = HealthEngine(health_config, backend=backend)
    assert await engine.enhance([]) == []


@pytest.mark.asyncio
async def test_shared_cache_between_engines(backend, health_config):
    """Test engines sharing a cache reuse each other's measurements."""
    magnet = make_magnet(340)
    backend.script_peers(magnet, 2, delay_ms=5)
    cache = HealthCache()
    candidates = [TorrentCandidate(identifier=magnet)]

    await HealthEngine(health_config, cache=cache, backend=backend).enhance(candidates)
    results = await HealthEngine(health_config, cache=cache, backend=backend).enhance(candidates)

    assert results[0].measurement_source is MeasurementSource.CACHE
    assert len(backend.opened) == 1


@pytest.mark.asyncio
async def test_context_manager_shuts_down_backend(backend, health_config):
    """Test leaving the context closes the backend."""
    async with HealthEngine(health_config, backend=backend) as engine:
        await engine.enhance([TorrentCandidate(identifier=make_magnet(350))])

    assert backend.shutdown_calls == 1


def test_enhance_options_validation():
    """Test out-of-range options are rejected."""
    with pytest.raises(ValueError):
        EnhanceOptions(concurrency=0)
    with pytest.raises(ValueError):
        EnhanceOptions(timeout_ms=0)
