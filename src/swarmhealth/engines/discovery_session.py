"""DHT discovery sessions backed by libtorrent."""

import asyncio
import logging
from typing import Any, Protocol

try:
    import libtorrent as lt
except ImportError:
    # Handle case where libtorrent is not available
    lt = None

from .discovery_alerts import AlertKind, AlertTranslator, handle_key
from .probe_models import (
    DiscoveryConfig,
    DiscoveryError,
    InvalidIdentifierError,
    PeerEvent,
    PeerEventKind,
)

logger = logging.getLogger(__name__)

ALERT_CATEGORY_NAMES = ("error", "peer", "connect", "status", "dht", "port_mapping")


class DiscoverySession:
    """
    Peer discovery scoped to one torrent identifier.

    Events are delivered through a bounded queue consumed by a single prober.
    ``close()`` is the orderly teardown; ``abort()`` releases resources
    synchronously and is safe to call from a timer callback. Both are
    idempotent and resources are released exactly once.
    """

    def __init__(self, identifier: str, info_hash: str = "", queue_size: int = 64) -> None:
        self.identifier = identifier
        self.info_hash = info_hash
        self._events: asyncio.Queue[PeerEvent] = asyncio.Queue(maxsize=queue_size)
        self._closing = False
        self._released = False
        self.dropped_events = 0

    @property
    def released(self) -> bool:
        """Whether the session's resources have been freed."""
        return self._released

    def publish(self, event: PeerEvent) -> bool:
        """
        Queue an event for the prober.

        Args:
            event: Event to deliver

        Returns:
            True if the event was queued
        """
        if self._closing or self._released:
            return False

        try:
            self._events.put_nowait(event)
            return True
        except asyncio.QueueFull:
            if event.kind is PeerEventKind.SESSION_FAILED:
                # failures must reach the prober; displace the oldest event
                self._events.get_nowait()
                self._events.put_nowait(event)
                return True
            self.dropped_events += 1
            return False

    async def next_event(self) -> PeerEvent:
        """Wait for the next event."""
        return await self._events.get()

    async def close(self) -> None:
        """Tear down the session."""
        if self._closing:
            return
        self._closing = True
        await self._release()

    def abort(self) -> None:
        """Release the session immediately, even if a close is in progress."""
        self._closing = True
        self._release_now()

    async def _release(self) -> None:
        self._release_now()

    def _release_now(self) -> None:
        if self._released:
            return
        self._released = True
        self._on_release()

    def _on_release(self) -> None:
        """Free backend resources. Subclasses override."""


class DiscoveryBackend(Protocol):
    """Opens discovery sessions for torrent identifiers."""

    async def open_session(self, identifier: str) -> DiscoverySession:
        """
        Open a discovery session.

        Raises:
            DiscoveryError: If the session cannot be established
        """
        ...

    async def shutdown(self) -> None:
        """Release all backend resources."""
        ...


class LibtorrentDiscoverySession(DiscoverySession):
    """Discovery session for one torrent added to the shared libtorrent session."""

    def __init__(
        self,
        backend: "LibtorrentBackend",
        identifier: str,
        info_hash: str,
        handle: Any,
        queue_size: int,
    ) -> None:
        super().__init__(identifier, info_hash, queue_size)
        self._backend = backend
        self.handle = handle

    def _on_release(self) -> None:
        self._backend._release_session(self)


class LibtorrentBackend:
    """
    Manages the shared libtorrent session used for swarm probing.

    The session runs DHT and LSD only; trackers are stripped from every
    magnet and torrents are added in upload mode so no payload is requested
    or written. A single pump task routes alerts to the per-torrent sessions.
    """

    def __init__(self, config: DiscoveryConfig | None = None) -> None:
        """
        Initialize the backend. The libtorrent session starts lazily.

        Args:
            config: Discovery configuration settings
        """
        self.config = config or DiscoveryConfig()
        self.session: Any | None = None
        self._sessions: dict[str, LibtorrentDiscoverySession] = {}
        self._translator = AlertTranslator()
        self._pump_task: asyncio.Task[None] | None = None
        self._start_lock = asyncio.Lock()
        self._listen_error: str | None = None

        logger.info("LibtorrentBackend initialized with config")

    @property
    def active_sessions(self) -> int:
        """Number of open discovery sessions."""
        return len(self._sessions)

    def is_running(self) -> bool:
        """Check if the libtorrent session is running."""
        return self.session is not None

    async def start_session(self) -> None:
        """
        Start the libtorrent session if it is not already running.

        Raises:
            DiscoveryError: If libtorrent is missing or the session fails to start
        """
        async with self._start_lock:
            if self.session is not None:
                return

            if lt is None:
                raise DiscoveryError(
                    "libtorrent is not available. Install with: pip install libtorrent"
                )

            try:
                logger.info("Starting libtorrent discovery session")
                self.session = lt.session(self.create_settings_pack())
                self.add_dht_bootstrap_nodes()
                self.config.save_directory.mkdir(parents=True, exist_ok=True)
                self._listen_error = None
                self._pump_task = asyncio.create_task(self._pump_alerts())
                logger.info("Libtorrent discovery session started")
            except Exception as e:
                logger.error(f"Failed to start libtorrent session: {e}")
                self.session = None
                raise DiscoveryError(f"Failed to start session: {e}") from e

    def create_settings_pack(self) -> dict[str, Any]:
        """
        Create the libtorrent settings dictionary from configuration.

        Returns:
            Settings dictionary for the libtorrent session
        """
        if lt is None:
            raise DiscoveryError("libtorrent is not available")

        settings: dict[str, Any] = {
            "listen_interfaces": self.config.listen_interfaces,
            "user_agent": self.config.user_agent,
            # Decentralized discovery only
            "enable_dht": True,
            "enable_lsd": self.config.enable_lsd,
            "enable_upnp": False,
            "enable_natpmp": False,
            "dht_bootstrap_nodes": ",".join(self.config.dht_bootstrap_nodes),
            # Connection limits
            "connections_limit": self.config.connections_limit,
            "handshake_timeout": self.config.handshake_timeout,
            # Alerts
            "alert_queue_size": self.config.alert_queue_size,
            "alert_mask": self._alert_mask(),
        }

        logger.debug("Settings created successfully")
        return settings

    def add_dht_bootstrap_nodes(self) -> None:
        """Add configured DHT bootstrap nodes to the session."""
        if not self.session:
            raise RuntimeError("Session not initialized")

        added = 0
        for node in self.config.dht_bootstrap_nodes:
            host, _, port_str = node.rpartition(":")
            try:
                self.session.add_dht_node((host, int(port_str)))
                added += 1
                logger.debug(f"Added DHT bootstrap node: {host}:{port_str}")
            except (ValueError, TypeError, RuntimeError) as e:
                logger.warning(f"Failed to add bootstrap node {node}: {e}")

        if added == 0:
            raise DiscoveryError("No DHT bootstrap node could be added")

        logger.info(f"Added {added} DHT bootstrap nodes")

    async def open_session(self, identifier: str) -> DiscoverySession:
        """
        Add a magnet to the session and start collecting its peer events.

        Args:
            identifier: Magnet URI

        Returns:
            Discovery session for the identifier

        Raises:
            InvalidIdentifierError: If libtorrent rejects the magnet
            DiscoveryError: If the session is unusable
        """
        await self.start_session()
        if self._listen_error is not None:
            raise DiscoveryError(f"Discovery session not listening: {self._listen_error}")

        try:
            params = lt.parse_magnet_uri(identifier)
        except Exception as e:
            raise InvalidIdentifierError(f"Malformed magnet link: {e}") from e

        params.save_path = str(self.config.save_directory)
        params.trackers = []  # never block on tracker announces
        params.flags |= lt.torrent_flags.upload_mode
        params.flags &= ~lt.torrent_flags.auto_managed
        params.flags &= ~lt.torrent_flags.paused

        try:
            handle = self.session.add_torrent(params)
        except Exception as e:
            raise DiscoveryError(f"Failed to add torrent: {e}") from e

        key = handle_key(handle)
        if key is None:
            try:
                self.session.remove_torrent(handle)
            except Exception as e:
                logger.warning(f"Failed to remove invalid torrent handle: {e}")
            raise DiscoveryError("libtorrent returned an invalid torrent handle")
        if key in self._sessions:
            raise DiscoveryError(f"Swarm {key} is already being probed")

        discovery = LibtorrentDiscoverySession(
            self, identifier, key, handle, self.config.event_queue_size
        )
        self._sessions[key] = discovery
        logger.debug(f"Opened discovery session for {key}")
        return discovery

    async def shutdown(self) -> None:
        """Stop the alert pump, release every session and pause libtorrent."""
        if self.session is None:
            return

        logger.info("Stopping libtorrent discovery session")

        if self._pump_task and not self._pump_task.done():
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass

        for discovery in list(self._sessions.values()):
            discovery.publish(PeerEvent.failed("discovery backend shut down"))
            discovery.abort()

        try:
            self.session.pause()
        except Exception as e:
            logger.error(f"Error pausing libtorrent session: {e}")
        finally:
            self.session = None
            self._pump_task = None

        logger.info("Libtorrent discovery session stopped")

    def _release_session(self, discovery: LibtorrentDiscoverySession) -> None:
        """Remove a probe's torrent from libtorrent."""
        self._sessions.pop(discovery.info_hash, None)

        if self.session is None:
            return

        try:
            self.session.remove_torrent(discovery.handle)
            logger.debug(f"Removed probe torrent {discovery.info_hash}")
        except Exception as e:
            logger.warning(f"Failed to remove probe torrent {discovery.info_hash}: {e}")

    def _alert_mask(self) -> int:
        mask = 0
        for name in ALERT_CATEGORY_NAMES:
            category = getattr(lt.alert_category, name, None)
            if category is not None:
                mask |= int(category)
        return mask

    async def _pump_alerts(self) -> None:
        """Route libtorrent alerts to open discovery sessions."""
        logger.debug("Starting alert pump")

        try:
            while self.session is not None:
                for alert in self.session.pop_alerts():
                    try:
                        self._dispatch(alert)
                    except Exception as e:
                        logger.error(f"Error processing alert {type(alert).__name__}: {e}")

                await asyncio.sleep(self.config.alert_poll_interval)

        except asyncio.CancelledError:
            logger.debug("Alert pump cancelled")
            raise

    def _dispatch(self, alert: Any) -> None:
        routed = self._translator.translate(alert)
        if routed is None:
            return

        if routed.kind is AlertKind.LISTEN_FAILED:
            logger.warning(f"Listen failed: {routed.message}")
            if self.session is not None and not self.session.is_listening():
                self._listen_error = routed.message
                for discovery in list(self._sessions.values()):
                    discovery.publish(PeerEvent.failed(routed.message))
        elif routed.kind is AlertKind.LISTEN_SUCCEEDED:
            self._listen_error = None
            logger.debug(f"Listening: {routed.message}")
        elif routed.kind is AlertKind.DHT_BOOTSTRAP:
            logger.info("DHT bootstrap complete")
        elif routed.kind is AlertKind.DHT_ERROR:
            logger.warning(f"DHT error: {routed.message}")
        elif routed.event is not None and routed.info_hash is not None:
            discovery = self._sessions.get(routed.info_hash)
            if discovery is not None:
                discovery.publish(routed.event)
