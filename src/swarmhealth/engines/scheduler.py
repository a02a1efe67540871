"""Batch scheduling of swarm probes with caching and bounded concurrency."""

import asyncio
from collections import Counter
from collections.abc import Sequence
import logging
import time

from pydantic import BaseModel, Field

from ..storage.cache import HealthCache
from ..storage.models import HealthConfig, HealthResult, TorrentCandidate
from ..utils.helpers import elapsed_ms, shorten_identifier
from .classifier import build_result
from .merger import merge
from .prober import SwarmProber
from .probe_models import ProbeOutcome, ProbeProtocolError

logger = logging.getLogger(__name__)


class BatchReport(BaseModel):
    """Summary of one batch run."""

    total: int = Field(ge=0)
    healthy: int = Field(ge=0)
    probed: int = Field(ge=0)
    duration_ms: int = Field(ge=0)
    sources: dict[str, int] = Field(default_factory=dict)
    budget_exhausted: bool = False

    @property
    def average_ms(self) -> float:
        """Mean wall-clock time per candidate."""
        return self.duration_ms / self.total if self.total else 0.0


class BatchScheduler:
    """
    Runs health checks for a list of candidates.

    Candidates are processed in chunks of ``concurrency``; each chunk runs
    concurrently and completes before the next one starts. Results are written
    into pre-sized slots, so output order always matches input order. One
    candidate failing never fails the batch.
    """

    def __init__(
        self,
        prober: SwarmProber,
        cache: HealthCache,
        config: HealthConfig | None = None,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            prober: Prober used on cache misses
            cache: Shared health cache
            config: Health configuration (chunk pause, batch budget, seed ratio)
        """
        self.prober = prober
        self.cache = cache
        self.config = config or HealthConfig()
        self.last_report: BatchReport | None = None

    async def run_batch(
        self,
        candidates: Sequence[TorrentCandidate],
        concurrency: int | None = None,
        timeout_ms: int | None = None,
        skip_probe: bool = False,
    ) -> list[HealthResult]:
        """
        Check the health of every candidate.

        Args:
            candidates: Candidates to check
            concurrency: Maximum probes in flight (chunk size)
            timeout_ms: Per-probe timeout
            skip_probe: Derive results from hints only, without cache or probing

        Returns:
            One result per candidate, in input order
        """
        concurrency = concurrency or self.config.concurrency
        timeout_ms = timeout_ms or self.config.timeout_ms
        if concurrency < 1:
            raise ValueError("Concurrency must be at least 1")

        started = time.monotonic()
        results: list[HealthResult | None] = [None] * len(candidates)
        inflight: dict[str, asyncio.Task[ProbeOutcome]] = {}
        budget_exhausted = False
        probed_before = self.prober.probes_started

        logger.info(
            f"Checking health of {len(candidates)} torrents "
            f"(concurrency={concurrency}, timeout={timeout_ms}ms)",
            extra={"batch_size": len(candidates)},
        )

        try:
            for chunk_start in range(0, len(candidates), concurrency):
                chunk = range(chunk_start, min(chunk_start + concurrency, len(candidates)))

                probe_timeout: int | None = None
                if not skip_probe:
                    probe_timeout = self._clamp_to_budget(timeout_ms, started)
                    if probe_timeout is None and not budget_exhausted:
                        budget_exhausted = True
                        logger.warning(
                            f"Batch budget exhausted, {len(candidates) - chunk_start} "
                            "torrents fall back to hints"
                        )

                chunk_results = await asyncio.gather(
                    *(
                        self._check_slot(candidates[i], probe_timeout, inflight)
                        for i in chunk
                    )
                )
                for i, result in zip(chunk, chunk_results):
                    results[i] = result

                is_last_chunk = chunk.stop >= len(candidates)
                if (
                    not is_last_chunk
                    and probe_timeout is not None
                    and self.config.inter_chunk_delay_ms > 0
                ):
                    await asyncio.sleep(self.config.inter_chunk_delay_ms / 1000)
        except asyncio.CancelledError:
            await self._cancel_inflight(inflight)
            raise

        final = [result for result in results if result is not None]
        self.last_report = self._report(
            final,
            elapsed_ms(started),
            self.prober.probes_started - probed_before,
            budget_exhausted,
        )
        return final

    async def _check_slot(
        self,
        candidate: TorrentCandidate,
        probe_timeout: int | None,
        inflight: dict[str, asyncio.Task[ProbeOutcome]],
    ) -> HealthResult:
        """Produce the result for one slot; never raises."""
        started = time.monotonic()
        try:
            return await self._check_candidate(candidate, probe_timeout, inflight, started)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                f"Health check failed for {shorten_identifier(candidate.identifier)}: {e}",
                exc_info=True,
            )
            decision = merge(
                ProbeProtocolError(reason=str(e), duration_ms=elapsed_ms(started)),
                candidate.hint(),
                self.config.seed_ratio,
            )
            return build_result(
                candidate.identifier,
                decision.seeds,
                decision.peers,
                decision.source,
                elapsed_ms(started),
                failed=decision.failed,
            )

    async def _check_candidate(
        self,
        candidate: TorrentCandidate,
        probe_timeout: int | None,
        inflight: dict[str, asyncio.Task[ProbeOutcome]],
        started: float,
    ) -> HealthResult:
        hint = candidate.hint()

        if probe_timeout is None:
            decision = merge(None, hint, self.config.seed_ratio)
            return build_result(
                candidate.identifier,
                decision.seeds,
                decision.peers,
                decision.source,
                elapsed_ms(started),
            )

        cached = self.cache.get(candidate.identifier)
        if cached is not None:
            logger.debug(f"Cache hit for {shorten_identifier(candidate.identifier)}")
            return cached.as_cached(elapsed_ms(started))

        # Duplicate identifiers within a batch share one probe
        task = inflight.get(candidate.identifier)
        if task is None:
            task = asyncio.ensure_future(
                self.prober.probe(candidate.identifier, probe_timeout)
            )
            inflight[candidate.identifier] = task
        outcome = await asyncio.shield(task)

        decision = merge(outcome, hint, self.config.seed_ratio)
        result = build_result(
            candidate.identifier,
            decision.seeds,
            decision.peers,
            decision.source,
            elapsed_ms(started),
            failed=decision.failed,
        )
        self.cache.put(candidate.identifier, result)
        return result

    async def _cancel_inflight(self, inflight: dict[str, asyncio.Task[ProbeOutcome]]) -> None:
        """Cancel shielded probes and wait for their sessions to be torn down."""
        pending = [task for task in inflight.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.info(f"Batch cancelled, stopping {len(pending)} probes")
            await asyncio.gather(*inflight.values(), return_exceptions=True)

    def _clamp_to_budget(self, timeout_ms: int, started: float) -> int | None:
        """Per-probe timeout within the remaining batch budget, None once spent."""
        budget = self.config.batch_budget_ms
        if budget is None:
            return timeout_ms

        remaining = budget - elapsed_ms(started)
        if remaining <= 0:
            return None
        return min(timeout_ms, remaining)

    def _report(
        self,
        results: list[HealthResult],
        duration_ms: int,
        probed: int,
        budget_exhausted: bool,
    ) -> BatchReport:
        sources = Counter(result.measurement_source.value for result in results)
        report = BatchReport(
            total=len(results),
            healthy=sum(1 for result in results if result.healthy),
            probed=probed,
            duration_ms=duration_ms,
            sources=dict(sources),
            budget_exhausted=budget_exhausted,
        )

        logger.info(
            f"Health check completed in {duration_ms}ms "
            f"(avg {report.average_ms:.0f}ms per torrent): "
            f"{report.healthy}/{report.total} healthy, {probed} probed",
            extra={"batch_size": report.total, "duration_ms": duration_ms},
        )
        for index, result in enumerate(results, start=1):
            logger.debug(
                f"{index}. {result.status_tier.value} - {result.seeds} seeds "
                f"({result.probe_duration_ms}ms, {result.measurement_source.value})",
                extra={"measurement_source": result.measurement_source.value},
            )
        return report
