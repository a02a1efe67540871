"""Default configuration values."""

from .settings import DiscoveryConfig, EngineSettings, HealthConfig


def get_default_health_config() -> HealthConfig:
    """
    Get default probe, batch and cache configuration.

    Returns:
        Default health configuration
    """
    return HealthConfig(
        timeout_ms=8000,
        early_exit_peers=2,
        seed_ratio=0.3,
        safety_margin_ms=2000,
        concurrency=3,
        inter_chunk_delay_ms=1000,
        batch_budget_ms=None,  # Unbounded
        skip_health_check=False,
        cache_ttl_ms=5 * 60 * 1000,
        cache_max_entries=None,  # Unbounded
    )


def get_default_settings() -> EngineSettings:
    """
    Get default engine settings.

    Returns:
        Default settings with the stock DHT discovery configuration
    """
    return EngineSettings(
        health=get_default_health_config(),
        discovery=DiscoveryConfig(),
        logging_level="INFO",
    )
