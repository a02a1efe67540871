"""Time-bounded in-memory cache of swarm health results."""

from collections.abc import Callable
import logging
import threading
import time

from .models import HealthResult

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 5 * 60 * 1000
DEFAULT_SHARDS = 16


def _epoch_ms() -> float:
    return time.time() * 1000


class _Shard:
    """One lock-protected slice of the cache."""

    __slots__ = ("lock", "entries")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        # identifier -> (result, written_at_epoch_ms); tuples are never mutated
        self.entries: dict[str, tuple[HealthResult, float]] = {}


class HealthCache:
    """
    Process-scoped cache of the last measured health per identifier.

    Entries expire lazily: a read older than the TTL is reported absent and
    dropped. Writes replace the whole entry, so readers never observe a
    partially written result. The key space is split into shards, each with
    its own lock, so operations on different identifiers rarely contend.
    """

    def __init__(
        self,
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], float] | None = None,
        shards: int = DEFAULT_SHARDS,
        max_entries: int | None = None,
    ) -> None:
        """
        Initialize the health cache.

        Args:
            ttl_ms: Entry lifetime in milliseconds
            clock: Callable returning the current epoch time in milliseconds
            shards: Number of independently locked shards
            max_entries: Optional bound on the total entry count; each shard evicts
                its oldest write once its share is full
        """
        if ttl_ms < 0:
            raise ValueError("TTL must be non-negative")
        if shards < 1:
            raise ValueError("Shard count must be at least 1")
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        # Shard shares are floored so their sum never exceeds max_entries
        if max_entries is not None:
            shards = min(shards, max_entries)

        self.ttl_ms = ttl_ms
        self._clock = clock or _epoch_ms
        self._shards = [_Shard() for _ in range(shards)]
        self._max_entries_per_shard = (
            max_entries // shards if max_entries is not None else None
        )

        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._expirations = 0

        logger.debug(f"HealthCache initialized (ttl={ttl_ms}ms, shards={shards})")

    def get(self, identifier: str) -> HealthResult | None:
        """
        Look up a fresh result.

        Args:
            identifier: Torrent identifier

        Returns:
            The cached result, or None when absent or expired
        """
        shard = self._shard_for(identifier)
        now = self._clock()
        expired = False

        with shard.lock:
            entry = shard.entries.get(identifier)
            if entry is not None and now - entry[1] >= self.ttl_ms:
                del shard.entries[identifier]
                entry = None
                expired = True

        self._record(hit=entry is not None, expired=expired)
        return entry[0] if entry is not None else None

    def put(self, identifier: str, result: HealthResult) -> None:
        """
        Store a result, replacing any previous entry.

        Args:
            identifier: Torrent identifier
            result: Result to store
        """
        shard = self._shard_for(identifier)
        entry = (result, self._clock())

        with shard.lock:
            shard.entries.pop(identifier, None)
            shard.entries[identifier] = entry
            if (
                self._max_entries_per_shard is not None
                and len(shard.entries) > self._max_entries_per_shard
            ):
                # dicts keep insertion order, the first key is the oldest write
                oldest = next(iter(shard.entries))
                del shard.entries[oldest]

    def purge_expired(self) -> int:
        """
        Drop every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        removed = 0

        for shard in self._shards:
            with shard.lock:
                stale = [
                    key
                    for key, (_, written_at) in shard.entries.items()
                    if now - written_at >= self.ttl_ms
                ]
                for key in stale:
                    del shard.entries[key]
            removed += len(stale)

        if removed:
            logger.debug(f"Purged {removed} expired health entries")
        with self._stats_lock:
            self._expirations += removed
        return removed

    def clear(self) -> None:
        """Remove all entries."""
        for shard in self._shards:
            with shard.lock:
                shard.entries.clear()
        logger.debug("HealthCache cleared")

    def stats(self) -> dict[str, int]:
        """
        Get cache statistics.

        Returns:
            Dictionary with hits, misses, expirations and current size
        """
        with self._stats_lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "expirations": self._expirations,
                "size": len(self),
            }

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.entries)
        return total

    def __contains__(self, identifier: object) -> bool:
        return isinstance(identifier, str) and self.get(identifier) is not None

    def _shard_for(self, identifier: str) -> _Shard:
        return self._shards[hash(identifier) % len(self._shards)]

    def _record(self, hit: bool, expired: bool) -> None:
        with self._stats_lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1
            if expired:
                self._expirations += 1
