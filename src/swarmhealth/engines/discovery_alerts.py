"""Translation of libtorrent alerts into peer events for probing."""

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any

from .probe_models import PeerEvent

logger = logging.getLogger(__name__)


class AlertKind(Enum):
    """libtorrent alerts the discovery layer reacts to."""

    PEER_CONNECT = "peer_connect"
    PEER_DISCONNECT = "peer_disconnect"
    TORRENT_ERROR = "torrent_error"
    METADATA_FAILED = "metadata_failed"
    LISTEN_FAILED = "listen_failed"
    LISTEN_SUCCEEDED = "listen_succeeded"
    DHT_BOOTSTRAP = "dht_bootstrap"
    DHT_ERROR = "dht_error"


# Alerts that concern one torrent rather than the whole session
TORRENT_SCOPED = frozenset(
    {
        AlertKind.PEER_CONNECT,
        AlertKind.PEER_DISCONNECT,
        AlertKind.TORRENT_ERROR,
        AlertKind.METADATA_FAILED,
    }
)


@dataclass(frozen=True)
class RoutedAlert:
    """A translated alert with its routing key."""

    kind: AlertKind
    info_hash: str | None  # routing key for torrent-scoped alerts
    event: PeerEvent | None  # None for session-level alerts
    message: str


def handle_key(handle: Any) -> str | None:
    """
    Derive the routing key of a torrent handle.

    Args:
        handle: libtorrent torrent_handle

    Returns:
        Hex info-hash string, or None if the handle is invalid
    """
    try:
        if handle is None or not handle.is_valid():
            return None

        if hasattr(handle, "info_hashes"):
            hashes = handle.info_hashes()
            if not hashes.v1.is_all_zeros():
                return str(hashes.v1)
            return str(hashes.v2)

        return str(handle.info_hash())
    except Exception as e:
        logger.debug(f"Could not extract info-hash from handle: {e}")
        return None


class AlertTranslator:
    """
    Converts libtorrent alerts into routed peer events.

    Real alerts are matched by class name; objects carrying an ``alert_type``
    attribute are matched by that value instead, which lets tests feed
    lightweight stand-ins.
    """

    def __init__(self) -> None:
        self._alert_type_mappings = self._create_alert_type_mappings()
        self._translated = 0

    @property
    def translated_count(self) -> int:
        """Number of alerts translated so far."""
        return self._translated

    def translate(self, alert: Any) -> RoutedAlert | None:
        """
        Translate one libtorrent alert.

        Args:
            alert: libtorrent alert object

        Returns:
            Routed alert, or None for alerts the discovery layer ignores
        """
        kind = self._alert_type_mappings.get(self._alert_name(alert))
        if kind is None:
            return None

        message = self._get_alert_message(alert)
        info_hash = None
        event = None

        if kind in TORRENT_SCOPED:
            info_hash = handle_key(getattr(alert, "handle", None))
            if info_hash is None:
                logger.debug(f"Dropping {kind.value} alert without a valid handle")
                return None

            if kind is AlertKind.PEER_CONNECT:
                event = PeerEvent.connected(self._extract_endpoint(alert))
            elif kind is AlertKind.PEER_DISCONNECT:
                event = PeerEvent.disconnected(self._extract_endpoint(alert))
            else:
                event = PeerEvent.failed(message)

        self._translated += 1
        return RoutedAlert(kind=kind, info_hash=info_hash, event=event, message=message)

    def _create_alert_type_mappings(self) -> dict[str, AlertKind]:
        """Create mappings from libtorrent alert class names to AlertKind."""
        return {
            "peer_connect_alert": AlertKind.PEER_CONNECT,
            "peer_disconnected_alert": AlertKind.PEER_DISCONNECT,
            "torrent_error_alert": AlertKind.TORRENT_ERROR,
            "metadata_failed_alert": AlertKind.METADATA_FAILED,
            "listen_failed_alert": AlertKind.LISTEN_FAILED,
            "listen_succeeded_alert": AlertKind.LISTEN_SUCCEEDED,
            "dht_bootstrap_alert": AlertKind.DHT_BOOTSTRAP,
            "dht_error_alert": AlertKind.DHT_ERROR,
        }

    def _alert_name(self, alert: Any) -> str:
        if hasattr(alert, "alert_type"):
            return str(alert.alert_type)
        return type(alert).__name__

    def _get_alert_message(self, alert: Any) -> str:
        """Get message from libtorrent alert."""
        try:
            if hasattr(alert, "message"):
                return str(alert.message())
            elif hasattr(alert, "what"):
                return str(alert.what())
            else:
                return type(alert).__name__
        except Exception:
            return f"Alert: {type(alert).__name__}"

    def _extract_endpoint(self, alert: Any) -> str:
        """Format the remote endpoint of a peer alert as ``ip:port``."""
        endpoint = getattr(alert, "endpoint", None) or getattr(alert, "ip", None)
        if isinstance(endpoint, tuple) and len(endpoint) >= 2:
            return f"{endpoint[0]}:{endpoint[1]}"
        if endpoint:
            return str(endpoint)

        # Without an address, fall back to the peer id so peers stay distinct
        pid = getattr(alert, "pid", None)
        return str(pid) if pid is not None else f"unknown-{id(alert)}"
