"""Configuration manager implementation."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from .defaults import get_default_settings
from .settings import EngineSettings

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

ENV_PREFIX = "SWARMHEALTH_"

# Environment variable suffix -> dotted settings path
ENV_MAPPINGS = {
    "TIMEOUT_MS": "health.timeout_ms",
    "EARLY_EXIT_PEERS": "health.early_exit_peers",
    "SEED_RATIO": "health.seed_ratio",
    "SAFETY_MARGIN_MS": "health.safety_margin_ms",
    "CONCURRENCY": "health.concurrency",
    "INTER_CHUNK_DELAY_MS": "health.inter_chunk_delay_ms",
    "BATCH_BUDGET_MS": "health.batch_budget_ms",
    "SKIP_HEALTH_CHECK": "health.skip_health_check",
    "CACHE_TTL_MS": "health.cache_ttl_ms",
    "CACHE_MAX_ENTRIES": "health.cache_max_entries",
    "LISTEN_INTERFACES": "discovery.listen_interfaces",
    "DHT_BOOTSTRAP_NODES": "discovery.dht_bootstrap_nodes",
    "ENABLE_LSD": "discovery.enable_lsd",
    "USER_AGENT": "discovery.user_agent",
    "SAVE_DIRECTORY": "discovery.save_directory",
    "LOGGING_LEVEL": "logging_level",
}


class ValidationResult(Generic[T]):
    """Result of configuration validation."""

    def __init__(
        self, is_valid: bool, config: T | None = None, errors: list[str] | None = None
    ):
        self.is_valid = is_valid
        self.config = config
        self.errors = errors or []


def _convert_env_value(env_suffix: str, env_value: str) -> Any:
    """Convert an environment string to the type of its settings field."""
    if env_suffix.endswith(("_MS", "_PEERS", "_ENTRIES", "CONCURRENCY")):
        return int(env_value)
    if env_suffix.endswith(("_CHECK", "_LSD")):
        return env_value.lower() in ("true", "1", "yes", "on")
    if env_suffix.endswith("_RATIO"):
        return float(env_value)
    if env_suffix.endswith("_NODES"):
        return [node.strip() for node in env_value.split(",") if node.strip()]
    if env_suffix.endswith("_DIRECTORY"):
        return Path(env_value)
    return env_value


class ConfigManager:
    """Manages engine settings with type safety and validation."""

    def __init__(self, config_dir: Path | None = None) -> None:
        """
        Initialize configuration manager.

        Args:
            config_dir: Optional custom configuration directory
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "swarmhealth"

        self.config_dir = config_dir
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.settings_file = self.config_dir / "settings.json"

        self._settings: EngineSettings | None = None

        logger.info(f"ConfigManager initialized with config dir: {config_dir}")

    def _apply_env_overrides(self, config_dict: dict[str, Any]) -> dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        for env_suffix, config_path in ENV_MAPPINGS.items():
            env_var = ENV_PREFIX + env_suffix
            env_value = os.getenv(env_var)

            if env_value is None:
                continue

            # Navigate to parent of target key
            keys = config_path.split(".")
            current = config_dict
            for key in keys[:-1]:
                if key not in current or current[key] is None:
                    current[key] = {}
                current = current[key]

            try:
                current[keys[-1]] = _convert_env_value(env_suffix, env_value)
                logger.debug(f"Applied environment override: {env_var}={env_value}")
            except (ValueError, TypeError) as e:
                logger.warning(f"Invalid environment variable {env_var}={env_value}: {e}")

        return config_dict

    def _load_config_file(self, file_path: Path, config_class: type[T]) -> T | None:
        """Load configuration from JSON file with validation."""
        if not file_path.exists():
            return None

        try:
            with file_path.open(encoding="utf-8") as f:
                config_dict = json.load(f)

            config_dict = self._apply_env_overrides(config_dict)

            config = config_class.model_validate(config_dict)
            logger.debug(f"Loaded configuration from {file_path}")
            return config

        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Failed to load configuration from {file_path}: {e}")
            return None
        except OSError as e:
            logger.error(f"Unexpected error loading configuration from {file_path}: {e}")
            return None

    def _save_config_file(self, file_path: Path, config: BaseModel) -> bool:
        """Save configuration to JSON file."""
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            config_dict = config.model_dump(mode="json")

            with file_path.open("w", encoding="utf-8") as f:
                json.dump(config_dict, f, indent=2, ensure_ascii=False)

            logger.debug(f"Saved configuration to {file_path}")
            return True

        except OSError as e:
            logger.error(f"Failed to save configuration to {file_path}: {e}")
            return False

    def get_settings(self) -> EngineSettings:
        """
        Get engine settings.

        Loads ``settings.json`` on first use. When the file is missing or
        invalid, defaults (with environment overrides) are used and written
        back so the user has a file to edit.

        Returns:
            Engine settings object
        """
        if self._settings is None:
            self._settings = self._load_config_file(self.settings_file, EngineSettings)

            if self._settings is None:
                config_dict = get_default_settings().model_dump()
                config_dict = self._apply_env_overrides(config_dict)
                self._settings = EngineSettings.model_validate(config_dict)

                self._save_config_file(self.settings_file, get_default_settings())
                logger.info("Created default settings")
            else:
                logger.info("Loaded settings from file")

        return self._settings

    def update_settings(self, settings: EngineSettings) -> None:
        """
        Update and persist engine settings.

        Args:
            settings: New engine settings

        Raises:
            ValueError: If the settings fail validation
            RuntimeError: If the settings file cannot be written
        """
        validation_result = self.validate_config(settings)
        if not validation_result.is_valid:
            raise ValueError(f"Invalid configuration: {validation_result.errors}")

        if self._save_config_file(self.settings_file, settings):
            self._settings = settings
            logger.info("Settings updated")
        else:
            raise RuntimeError("Failed to save settings")

    def validate_config(self, config: T) -> ValidationResult[T]:
        """
        Validate configuration object.

        Args:
            config: Configuration object to validate

        Returns:
            ValidationResult with validation status and any errors
        """
        try:
            validated_config = config.model_validate(config.model_dump())
            return ValidationResult(is_valid=True, config=validated_config)
        except ValidationError as e:
            errors = [
                f"{'.'.join(map(str, error['loc']))}: {error['msg']}"
                for error in e.errors()
            ]
            return ValidationResult(is_valid=False, errors=errors)

    def reset_to_defaults(self) -> None:
        """Reset settings to defaults."""
        self._settings = get_default_settings()
        if not self._save_config_file(self.settings_file, self._settings):
            raise RuntimeError("Failed to save default settings")
        logger.info("Reset settings to defaults")
