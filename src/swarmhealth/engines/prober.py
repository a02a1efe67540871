"""Swarm prober: bounded-time peer counting over a DHT discovery session."""

import asyncio
import logging
import time

from ..storage.models import HealthConfig
from ..utils.helpers import elapsed_ms
from ..utils.logging import ProbeLoggerAdapter, get_probe_logger
from ..utils.validation import parse_magnet
from .discovery_session import DiscoveryBackend, DiscoverySession
from .probe_models import (
    DiscoveryError,
    PeerEventKind,
    ProbeOutcome,
    ProbeProtocolError,
    ProbeSuccess,
    ProbeTimeout,
)

logger = logging.getLogger(__name__)

MIN_CLOSE_GRACE_S = 0.5


class SwarmProber:
    """
    Estimates swarm liveness by counting distinct peers reached over the DHT.

    A probe resolves as soon as ``early_exit_peers`` distinct peers have
    connected, immediately when the session fails before any peer arrives,
    and otherwise at the deadline. Every failure is reported as an outcome;
    only task cancellation propagates, after the session has been torn down.
    """

    def __init__(self, backend: DiscoveryBackend, config: HealthConfig | None = None) -> None:
        """
        Initialize the prober.

        Args:
            backend: Backend that opens discovery sessions
            config: Health configuration (early-exit threshold, safety margin)
        """
        self.backend = backend
        self.config = config or HealthConfig()
        self.probes_started = 0

    async def probe(self, identifier: str, timeout_ms: int) -> ProbeOutcome:
        """
        Probe the swarm behind a torrent identifier.

        Args:
            identifier: Magnet URI
            timeout_ms: Time allowed for reaching the early-exit threshold

        Returns:
            ProbeSuccess, ProbeTimeout or ProbeProtocolError
        """
        started = time.monotonic()
        self.probes_started += 1

        try:
            magnet = parse_magnet(identifier)
        except ValueError as e:
            log = get_probe_logger(identifier)
            log.warning(f"Rejecting malformed identifier: {e}")
            return ProbeProtocolError(
                reason=f"Malformed identifier: {e}", duration_ms=elapsed_ms(started)
            )

        log = get_probe_logger(identifier, magnet.info_hash)

        try:
            session = await self.backend.open_session(identifier)
        except DiscoveryError as e:
            log.warning(f"Discovery session unavailable: {e}")
            return ProbeProtocolError(reason=str(e), duration_ms=elapsed_ms(started))
        except Exception as e:
            log.error(f"Unexpected error opening discovery session: {e}")
            return ProbeProtocolError(reason=str(e), duration_ms=elapsed_ms(started))

        # Guarantees teardown even if the deadline below fires late
        safety_s = (timeout_ms + self.config.safety_margin_ms) / 1000
        safety_handle = asyncio.get_running_loop().call_later(
            safety_s, self._force_teardown, session, log
        )

        peers: set[str] = set()
        try:
            outcome = await asyncio.wait_for(
                self._watch(session, peers, started), timeout=timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            outcome = ProbeTimeout(
                peer_count_so_far=len(peers), duration_ms=elapsed_ms(started)
            )
        except Exception as e:
            log.error(f"Probe failed unexpectedly: {e}")
            outcome = ProbeProtocolError(reason=str(e), duration_ms=elapsed_ms(started))
        finally:
            await self._teardown(session, log)
            safety_handle.cancel()

        if isinstance(outcome, ProbeSuccess):
            peer_count = outcome.peer_count
        elif isinstance(outcome, ProbeTimeout):
            peer_count = outcome.peer_count_so_far
        else:
            peer_count = 0
        log.log_outcome(outcome.kind, peer_count, outcome.duration_ms)
        return outcome

    async def _watch(
        self, session: DiscoverySession, peers: set[str], started: float
    ) -> ProbeOutcome:
        """Consume session events until the probe can resolve early."""
        while True:
            event = await session.next_event()

            if event.kind is PeerEventKind.PEER_CONNECTED and event.endpoint:
                peers.add(event.endpoint)
                if len(peers) >= self.config.early_exit_peers:
                    return ProbeSuccess(
                        peer_count=len(peers), duration_ms=elapsed_ms(started)
                    )

            elif event.kind is PeerEventKind.SESSION_FAILED:
                reason = event.reason or "discovery session failed"
                if not peers:
                    return ProbeProtocolError(reason=reason, duration_ms=elapsed_ms(started))
                # No further peers can arrive; the partial count stands
                return ProbeTimeout(
                    peer_count_so_far=len(peers), duration_ms=elapsed_ms(started)
                )

    async def _teardown(self, session: DiscoverySession, log: ProbeLoggerAdapter) -> None:
        grace = max(self.config.safety_margin_ms / 1000, MIN_CLOSE_GRACE_S)
        try:
            await asyncio.wait_for(session.close(), timeout=grace)
        except asyncio.TimeoutError:
            log.warning("Discovery session close timed out, aborting")
            session.abort()
        except asyncio.CancelledError:
            session.abort()
            raise
        except Exception as e:
            log.warning(f"Error closing discovery session: {e}")
            session.abort()

    def _force_teardown(self, session: DiscoverySession, log: ProbeLoggerAdapter) -> None:
        if not session.released:
            log.warning("Safety timeout reached, aborting discovery session")
            session.abort()
