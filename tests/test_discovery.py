"""Tests for discovery sessions and libtorrent alert routing."""

import pytest

from swarmhealth.engines import discovery_session
from swarmhealth.engines.discovery_alerts import AlertKind, AlertTranslator, handle_key
from swarmhealth.engines.discovery_session import (
    DiscoverySession,
    LibtorrentBackend,
    LibtorrentDiscoverySession,
)
from swarmhealth.engines.probe_models import (
    DiscoveryConfig,
    DiscoveryError,
    PeerEvent,
    PeerEventKind,
)

INFO_HASH = "ab" * 20


class FakeHandle:
    """Stand-in for a libtorrent torrent_handle."""

    def __init__(self, info_hash: str = INFO_HASH, valid: bool = True) -> None:
        self._info_hash = info_hash
        self._valid = valid

    def is_valid(self) -> bool:
        return self._valid

    def info_hash(self) -> str:
        return self._info_hash


class FakeAlert:
    """Stand-in for a libtorrent alert, matched by ``alert_type``."""

    def __init__(self, alert_type: str, message: str = "", **attrs) -> None:
        self.alert_type = alert_type
        self._message = message or alert_type
        for name, value in attrs.items():
            setattr(self, name, value)

    def message(self) -> str:
        return self._message


class FakeLtSession:
    """Stand-in for a running libtorrent session."""

    def __init__(self, listening: bool = True) -> None:
        self.listening = listening
        self.removed: list[FakeHandle] = []

    def is_listening(self) -> bool:
        return self.listening

    def remove_torrent(self, handle: FakeHandle) -> None:
        self.removed.append(handle)


def test_translate_peer_connect():
    """Test peer connections become events keyed by info-hash."""
    alert = FakeAlert("peer_connect_alert", handle=FakeHandle(), endpoint=("1.2.3.4", 51413))

    routed = AlertTranslator().translate(alert)

    assert routed is not None
    assert routed.kind is AlertKind.PEER_CONNECT
    assert routed.info_hash == INFO_HASH
    assert routed.event == PeerEvent.connected("1.2.3.4:51413")


def test_translate_torrent_error_fails_session():
    """Test torrent errors become session failures."""
    alert = FakeAlert("torrent_error_alert", "disk full", handle=FakeHandle())

    routed = AlertTranslator().translate(alert)

    assert routed is not None
    assert routed.event is not None
    assert routed.event.kind is PeerEventKind.SESSION_FAILED
    assert routed.event.reason == "disk full"


def test_translate_ignores_unknown_and_invalid():
    """Test irrelevant alerts and invalid handles are dropped."""
    translator = AlertTranslator()

    assert translator.translate(FakeAlert("state_update_alert")) is None
    assert translator.translate(FakeAlert("peer_connect_alert", handle=FakeHandle(valid=False))) is None
    assert translator.translated_count == 0


def test_translate_session_level_alert():
    """Test listen failures are not tied to a torrent."""
    routed = AlertTranslator().translate(FakeAlert("listen_failed_alert", "port in use"))

    assert routed is not None
    assert routed.kind is AlertKind.LISTEN_FAILED
    assert routed.info_hash is None
    assert routed.event is None


def test_endpoint_falls_back_to_peer_id():
    """Test peers without an address stay distinct by peer id."""
    alert = FakeAlert("peer_connect_alert", handle=FakeHandle(), pid="-qB4500-abcdef")

    routed = AlertTranslator().translate(alert)

    assert routed is not None
    assert routed.event is not None
    assert routed.event.endpoint == "-qB4500-abcdef"


def test_handle_key_invalid():
    """Test a missing or invalid handle has no key."""
    assert handle_key(None) is None
    assert handle_key(FakeHandle(valid=False)) is None
    assert handle_key(FakeHandle()) == INFO_HASH


@pytest.mark.asyncio
async def test_session_queue_overflow_keeps_failures():
    """Test a full queue drops peer events but never a failure."""
    session = DiscoverySession("id", queue_size=2)

    assert session.publish(PeerEvent.connected("a:1"))
    assert session.publish(PeerEvent.connected("b:1"))
    assert not session.publish(PeerEvent.connected("c:1"))
    assert session.publish(PeerEvent.failed("gone"))

    assert session.dropped_events == 1
    assert (await session.next_event()).endpoint == "b:1"
    assert (await session.next_event()).kind is PeerEventKind.SESSION_FAILED


@pytest.mark.asyncio
async def test_session_release_is_idempotent():
    """Test close and abort release resources exactly once."""
    releases = []

    class CountingSession(DiscoverySession):
        def _on_release(self) -> None:
            releases.append(self.identifier)

    session = CountingSession("id")
    await session.close()
    await session.close()
    session.abort()

    assert releases == ["id"]
    assert session.released
    assert not session.publish(PeerEvent.connected("a:1"))


@pytest.mark.asyncio
async def test_backend_without_libtorrent(monkeypatch):
    """Test a missing libtorrent surfaces as a discovery error."""
    monkeypatch.setattr(discovery_session, "lt", None)
    backend = LibtorrentBackend()

    with pytest.raises(DiscoveryError):
        await backend.open_session("magnet:?xt=urn:btih:" + INFO_HASH)
    assert not backend.is_running()


@pytest.mark.asyncio
async def test_backend_routes_alerts_to_sessions():
    """Test the dispatcher delivers peer events to the matching session."""
    backend = LibtorrentBackend()
    backend.session = FakeLtSession()
    handle = FakeHandle()
    session = LibtorrentDiscoverySession(backend, "magnet", INFO_HASH, handle, 8)
    backend._sessions[INFO_HASH] = session

    backend._dispatch(FakeAlert("peer_connect_alert", handle=handle, endpoint=("5.6.7.8", 1)))
    backend._dispatch(FakeAlert("peer_connect_alert", handle=FakeHandle("cd" * 20), ip=("9.9.9.9", 2)))

    event = await session.next_event()
    assert event.endpoint == "5.6.7.8:1"
    assert session._events.empty()

    await session.close()
    assert backend.active_sessions == 0
    assert backend.session.removed == [handle]


@pytest.mark.asyncio
async def test_backend_listen_failure_fails_open_sessions():
    """Test losing every listen socket fails sessions and blocks new ones."""
    backend = LibtorrentBackend()
    backend.session = FakeLtSession(listening=False)
    session = LibtorrentDiscoverySession(backend, "magnet", INFO_HASH, FakeHandle(), 8)
    backend._sessions[INFO_HASH] = session

    backend._dispatch(FakeAlert("listen_failed_alert", "address in use"))

    event = await session.next_event()
    assert event.kind is PeerEventKind.SESSION_FAILED
    with pytest.raises(DiscoveryError):
        await backend.open_session("magnet:?xt=urn:btih:" + INFO_HASH)


@pytest.mark.asyncio
async def test_backend_shutdown_releases_sessions():
    """Test shutdown aborts every open session."""
    backend = LibtorrentBackend()
    fake = FakeLtSession()
    fake.pause = lambda: None
    backend.session = fake
    session = LibtorrentDiscoverySession(backend, "magnet", INFO_HASH, FakeHandle(), 8)
    backend._sessions[INFO_HASH] = session

    await backend.shutdown()

    assert session.released
    assert not backend.is_running()


class FakeAddTorrentParams:
    """Stand-in for libtorrent add_torrent_params."""

    def __init__(self) -> None:
        self.save_path = ""
        self.trackers = ["udp://tracker.example:1337"]
        self.flags = 0


class FakeTorrentFlags:
    upload_mode = 1
    auto_managed = 2
    paused = 4


class FakeLibtorrent:
    """Stand-in for the libtorrent module used by ``open_session``."""

    torrent_flags = FakeTorrentFlags

    @staticmethod
    def parse_magnet_uri(uri: str) -> FakeAddTorrentParams:
        return FakeAddTorrentParams()


@pytest.mark.asyncio
async def test_invalid_handle_is_removed_from_session(monkeypatch, tmp_path):
    """Test a torrent whose handle is invalid is not left in the session."""
    monkeypatch.setattr(discovery_session, "lt", FakeLibtorrent)
    backend = LibtorrentBackend(DiscoveryConfig(save_directory=tmp_path))
    fake = FakeLtSession()
    handle = FakeHandle(valid=False)
    added: list[FakeAddTorrentParams] = []

    def add_torrent(params: FakeAddTorrentParams) -> FakeHandle:
        added.append(params)
        return handle

    fake.add_torrent = add_torrent
    backend.session = fake

    with pytest.raises(DiscoveryError):
        await backend.open_session("magnet:?xt=urn:btih:" + INFO_HASH)

    assert fake.removed == [handle]
    assert added[0].trackers == []
    assert backend.active_sessions == 0


@pytest.mark.asyncio
async def test_duplicate_swarm_keeps_existing_torrent(monkeypatch, tmp_path):
    """Test a second open of the same swarm leaves the first one's torrent alone."""
    monkeypatch.setattr(discovery_session, "lt", FakeLibtorrent)
    backend = LibtorrentBackend(DiscoveryConfig(save_directory=tmp_path))
    fake = FakeLtSession()
    handle = FakeHandle()
    fake.add_torrent = lambda params: handle
    backend.session = fake
    existing = LibtorrentDiscoverySession(backend, "magnet", INFO_HASH, handle, 8)
    backend._sessions[INFO_HASH] = existing

    with pytest.raises(DiscoveryError):
        await backend.open_session("magnet:?xt=urn:btih:" + INFO_HASH)

    assert fake.removed == []
    assert not existing.released
