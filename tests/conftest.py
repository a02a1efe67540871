"""Shared fixtures: in-memory discovery backends and a controllable clock."""

import asyncio

import pytest

from swarmhealth.engines.discovery_session import DiscoverySession
from swarmhealth.engines.probe_models import DiscoveryError, PeerEvent
from swarmhealth.storage.models import HealthConfig


def make_magnet(number: int, name: str | None = None) -> str:
    """Build a valid magnet URI with a distinct 40-hex info-hash."""
    magnet = f"magnet:?xt=urn:btih:{number:040x}"
    if name:
        magnet += f"&dn={name}"
    return magnet


class FakeClock:
    """Epoch-millisecond clock advanced by hand."""

    def __init__(self, start_ms: float = 1_700_000_000_000.0) -> None:
        self.now = start_ms

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeBackend:
    """
    Discovery backend replaying scripted peer events.

    Each identifier can be scripted with ``(delay_ms, event)`` pairs that are
    published on the session once it opens. Identifiers without a script see
    no events at all, so their probes run into the deadline.
    """

    def __init__(self) -> None:
        self.scripts: dict[str, list[tuple[float, PeerEvent]]] = {}
        self.open_errors: dict[str, Exception] = {}
        self.fail_all: Exception | None = None
        self.opened: list[str] = []
        self.sessions: list[DiscoverySession] = []
        self.shutdown_calls = 0
        self.session_class = DiscoverySession

    def script(self, identifier: str, *events: tuple[float, PeerEvent]) -> None:
        self.scripts[identifier] = list(events)

    def script_peers(self, identifier: str, count: int, delay_ms: float = 10.0) -> None:
        """Script ``count`` distinct peers arriving ``delay_ms`` apart."""
        self.script(
            identifier,
            *(
                ((i + 1) * delay_ms, PeerEvent.connected(f"10.0.0.{i + 1}:6881"))
                for i in range(count)
            ),
        )

    async def open_session(self, identifier: str) -> DiscoverySession:
        self.opened.append(identifier)
        if self.fail_all is not None:
            raise self.fail_all
        if identifier in self.open_errors:
            raise self.open_errors[identifier]

        session = self.session_class(identifier)
        loop = asyncio.get_running_loop()
        for delay_ms, event in self.scripts.get(identifier, []):
            loop.call_later(delay_ms / 1000, session.publish, event)

        self.sessions.append(session)
        return session

    async def shutdown(self) -> None:
        self.shutdown_calls += 1

    @property
    def all_released(self) -> bool:
        return all(session.released for session in self.sessions)


@pytest.fixture
def backend() -> FakeBackend:
    """Fake discovery backend."""
    return FakeBackend()


@pytest.fixture
def clock() -> FakeClock:
    """Hand-driven epoch-millisecond clock."""
    return FakeClock()


@pytest.fixture
def health_config() -> HealthConfig:
    """Health configuration with fast timings for tests."""
    return HealthConfig(
        timeout_ms=300,
        inter_chunk_delay_ms=0,
        safety_margin_ms=200,
    )


@pytest.fixture
def unreachable_backend(backend: FakeBackend) -> FakeBackend:
    """Backend on which every session fails to open."""
    backend.fail_all = DiscoveryError("network unreachable")
    return backend
