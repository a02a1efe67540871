"""Data models for torrent candidates and swarm health results."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_PRIORITY_SCORE = 5


class StatusTier(Enum):
    """Human-readable health tier derived from a seed count."""

    DEAD = "dead"
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"
    VERY_GOOD = "very-good"
    EXCELLENT = "excellent"
    ERROR = "error"


class MeasurementSource(Enum):
    """Provenance of a health result. Diagnostic only, never ranked on."""

    CACHE = "cache"
    LIVE_PROBE = "live-probe"
    PROBE_TIMEOUT_FALLBACK = "probe-timeout-fallback"
    PROBE_ERROR_FALLBACK = "probe-error-fallback"
    HINT_ONLY = "hint-only"
    NO_DATA = "no-data"


class HealthHint(BaseModel):
    """Seed/peer numbers reported by an external torrent index."""

    model_config = ConfigDict(frozen=True)

    seeds: int = Field(ge=0)
    peers: int = Field(ge=0)


class TorrentCandidate(BaseModel):
    """One candidate source for a piece of content."""

    identifier: str  # magnet URI
    display_name: str = ""
    hint_seeds: int | None = None
    hint_peers: int | None = None
    hint_leeches: int | None = None  # some indexes report leechers, not peers
    size: str | None = None  # declared size text, e.g. "1.5 GB"

    @field_validator("identifier")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        """Validate identifier is not blank."""
        if not v.strip():
            raise ValueError("Identifier cannot be empty")
        return v.strip()

    @field_validator("hint_seeds", "hint_peers", "hint_leeches")
    @classmethod
    def validate_hint_counts(cls, v: int | None) -> int | None:
        """Validate hint counts are non-negative."""
        if v is not None and v < 0:
            raise ValueError("Hint counts must be non-negative")
        return v

    def hint(self) -> HealthHint | None:
        """
        Build the external hint for this candidate.

        Returns:
            The hint, or None when the index reported no seed count
        """
        if self.hint_seeds is None:
            return None

        peers = self.hint_peers if self.hint_peers is not None else self.hint_leeches
        return HealthHint(seeds=self.hint_seeds, peers=peers or 0)


class HealthResult(BaseModel):
    """Measured (or estimated) health of one torrent identifier."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    seeds: int = Field(ge=0)
    peers: int = Field(ge=0)
    priority_score: int = Field(ge=0, le=MAX_PRIORITY_SCORE)
    status_tier: StatusTier
    healthy: bool
    measurement_source: MeasurementSource
    probe_duration_ms: int = Field(ge=0, default=0)

    @model_validator(mode="after")
    def validate_health_consistency(self) -> "HealthResult":
        """Validate derived fields agree with the seed count."""
        if self.healthy != (self.seeds > 0):
            raise ValueError("healthy must be true exactly when seeds > 0")

        if self.seeds == 0 and self.priority_score != 0:
            raise ValueError("A result without seeds cannot have a priority")

        return self

    def as_cached(self, duration_ms: int = 0) -> "HealthResult":
        """Return a copy tagged as served from the cache."""
        return self.model_copy(
            update={
                "measurement_source": MeasurementSource.CACHE,
                "probe_duration_ms": duration_ms,
            }
        )


class HealthConfig(BaseModel):
    """Probe, batch and cache configuration."""

    # Probe settings
    timeout_ms: int = Field(ge=1, le=120_000, default=8000)
    early_exit_peers: int = Field(ge=1, default=2)
    seed_ratio: float = Field(gt=0.0, le=1.0, default=0.3)  # heuristic, see estimate_seeds
    safety_margin_ms: int = Field(ge=0, default=2000)

    # Batch settings
    concurrency: int = Field(ge=1, le=50, default=3)
    inter_chunk_delay_ms: int = Field(ge=0, default=1000)
    batch_budget_ms: int | None = None  # None = unbounded
    skip_health_check: bool = False

    # Cache settings
    cache_ttl_ms: int = Field(ge=0, default=5 * 60 * 1000)
    cache_max_entries: int | None = None  # None = unbounded

    @field_validator("batch_budget_ms", "cache_max_entries")
    @classmethod
    def validate_optional_limits(cls, v: int | None) -> int | None:
        """Validate optional limits are positive."""
        if v is not None and v <= 0:
            raise ValueError("Limits must be positive when set")
        return v
