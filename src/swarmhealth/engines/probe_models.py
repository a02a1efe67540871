"""Swarm probing data models, outcome types and discovery configuration."""

from enum import Enum
from pathlib import Path
import tempfile
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ============================================================================
# Errors
# ============================================================================


class SwarmHealthError(Exception):
    """Base class for swarm health errors."""


class DiscoveryError(SwarmHealthError):
    """A discovery session could not be established or has failed."""


class InvalidIdentifierError(DiscoveryError):
    """The torrent identifier is not a usable magnet link."""


# ============================================================================
# Peer Events
# ============================================================================


class PeerEventKind(Enum):
    """Events a discovery session reports to its prober."""

    PEER_CONNECTED = "peer_connected"
    PEER_DISCONNECTED = "peer_disconnected"
    SESSION_FAILED = "session_failed"


class PeerEvent(BaseModel):
    """One event from a discovery session."""

    model_config = ConfigDict(frozen=True)

    kind: PeerEventKind
    endpoint: str | None = None  # "ip:port" for peer events
    reason: str | None = None  # failure description for SESSION_FAILED

    @classmethod
    def connected(cls, endpoint: str) -> "PeerEvent":
        return cls(kind=PeerEventKind.PEER_CONNECTED, endpoint=endpoint)

    @classmethod
    def disconnected(cls, endpoint: str) -> "PeerEvent":
        return cls(kind=PeerEventKind.PEER_DISCONNECTED, endpoint=endpoint)

    @classmethod
    def failed(cls, reason: str) -> "PeerEvent":
        return cls(kind=PeerEventKind.SESSION_FAILED, reason=reason)


# ============================================================================
# Probe Outcomes
# ============================================================================


class ProbeSuccess(BaseModel):
    """The early-exit peer threshold was reached before the deadline."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["success"] = "success"
    peer_count: int = Field(ge=1)
    duration_ms: int = Field(ge=0, default=0)


class ProbeTimeout(BaseModel):
    """The deadline passed without reaching the peer threshold."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["timeout"] = "timeout"
    peer_count_so_far: int = Field(ge=0, default=0)
    duration_ms: int = Field(ge=0, default=0)


class ProbeProtocolError(BaseModel):
    """The discovery session could not be established or failed early."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["protocol_error"] = "protocol_error"
    reason: str
    duration_ms: int = Field(ge=0, default=0)


ProbeOutcome = Annotated[
    Union[ProbeSuccess, ProbeTimeout, ProbeProtocolError],
    Field(discriminator="kind"),
]


# ============================================================================
# Discovery Configuration
# ============================================================================


class DiscoveryConfig(BaseModel):
    """Configuration of the shared DHT discovery session."""

    # Session settings
    listen_interfaces: str = "0.0.0.0:6881,[::]:6881"
    dht_bootstrap_nodes: list[str] = Field(
        default_factory=lambda: [
            "router.bittorrent.com:6881",
            "dht.transmissionbt.com:6881",
            "router.utorrent.com:6881",
            "dht.libtorrent.org:25401",
        ]
    )
    enable_lsd: bool = True  # Local Service Discovery

    # Network settings
    user_agent: str = "SwarmHealth/0.1"
    connections_limit: int = Field(ge=1, default=200)
    handshake_timeout: int = Field(ge=1, default=10)  # seconds

    # Alert settings
    alert_queue_size: int = Field(ge=100, default=2000)
    alert_poll_interval: float = Field(gt=0.0, le=1.0, default=0.05)  # seconds
    event_queue_size: int = Field(ge=2, default=64)

    # Metadata scratch directory; nothing is written in upload mode
    save_directory: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "swarmhealth"
    )

    @field_validator("listen_interfaces")
    @classmethod
    def validate_listen_interfaces(cls, v: str) -> str:
        """Validate listen interfaces format."""
        for interface in v.split(","):
            if ":" not in interface.strip():
                raise ValueError("Listen interface must be in format 'ip:port'")
        return v

    @field_validator("dht_bootstrap_nodes")
    @classmethod
    def validate_bootstrap_nodes(cls, v: list[str]) -> list[str]:
        """Validate bootstrap nodes are host:port pairs."""
        for node in v:
            host, _, port = node.rpartition(":")
            if not host or not port.isdigit():
                raise ValueError(f"Bootstrap node must be in format 'host:port': {node}")
        return v

