"""Health engine: checks, merges and ranks torrent candidates."""

from collections.abc import Sequence
import logging
from types import TracebackType

from pydantic import BaseModel, Field

from ..storage.cache import HealthCache
from ..storage.models import HealthConfig, HealthResult, TorrentCandidate
from ..utils.validation import parse_magnet
from .discovery_session import DiscoveryBackend, LibtorrentBackend
from .probe_models import DiscoveryConfig
from .prober import SwarmProber
from .ranker import RankedPair, rank
from .scheduler import BatchScheduler

logger = logging.getLogger(__name__)


class EnhanceOptions(BaseModel):
    """Per-call overrides; unset fields fall back to the engine's HealthConfig."""

    timeout_ms: int | None = Field(default=None, ge=1, le=120000)
    concurrency: int | None = Field(default=None, ge=1, le=50)
    skip_health_check: bool | None = None


class HealthEngine:
    """
    Estimates swarm health for candidate torrents and ranks them.

    The engine owns one discovery backend and one cache for its lifetime, so
    repeated calls within the cache TTL reuse earlier measurements.
    """

    def __init__(
        self,
        health_config: HealthConfig | None = None,
        discovery_config: DiscoveryConfig | None = None,
        cache: HealthCache | None = None,
        backend: DiscoveryBackend | None = None,
    ) -> None:
        """
        Initialize the health engine.

        Args:
            health_config: Probe, batch and cache settings
            discovery_config: libtorrent session settings, used by the default backend
            cache: Health cache to share, created from health_config if omitted
            backend: Discovery backend, a LibtorrentBackend if omitted
        """
        self.config = health_config or HealthConfig()
        self.cache = cache or HealthCache(
            ttl_ms=self.config.cache_ttl_ms,
            max_entries=self.config.cache_max_entries,
        )
        self.backend = backend or LibtorrentBackend(discovery_config)
        self.prober = SwarmProber(self.backend, self.config)
        self.scheduler = BatchScheduler(self.prober, self.cache, self.config)

        logger.info("HealthEngine initialized")

    async def enhance(
        self,
        candidates: Sequence[TorrentCandidate],
        options: EnhanceOptions | None = None,
    ) -> list[HealthResult]:
        """
        Check and rank candidates.

        Args:
            candidates: Candidate torrents for the same content
            options: Per-call overrides

        Returns:
            One health result per candidate, best first
        """
        pairs = await self.enhance_pairs(candidates, options)
        return [result for _, result in pairs]

    async def enhance_pairs(
        self,
        candidates: Sequence[TorrentCandidate],
        options: EnhanceOptions | None = None,
    ) -> list[RankedPair]:
        """
        Check and rank candidates, keeping each paired with its result.

        Args:
            candidates: Candidate torrents for the same content
            options: Per-call overrides

        Returns:
            (candidate, result) pairs, best first
        """
        options = options or EnhanceOptions()
        skip = (
            options.skip_health_check
            if options.skip_health_check is not None
            else self.config.skip_health_check
        )

        if not candidates:
            return []

        named = [self._with_display_name(candidate) for candidate in candidates]
        if skip:
            logger.info(f"Health check skipped for {len(named)} torrents, using hints")

        results = await self.scheduler.run_batch(
            named,
            concurrency=options.concurrency or self.config.concurrency,
            timeout_ms=options.timeout_ms or self.config.timeout_ms,
            skip_probe=skip,
        )
        return rank(list(zip(named, results)))

    async def aclose(self) -> None:
        """Shut down the discovery backend."""
        await self.backend.shutdown()
        logger.info("HealthEngine closed")

    async def __aenter__(self) -> "HealthEngine":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    @staticmethod
    def _with_display_name(candidate: TorrentCandidate) -> TorrentCandidate:
        """Fill an empty display name from the magnet's dn parameter."""
        if candidate.display_name:
            return candidate

        try:
            magnet = parse_magnet(candidate.identifier)
        except ValueError:
            return candidate

        if not magnet.display_name:
            return candidate
        return candidate.model_copy(update={"display_name": magnet.display_name})
