"""Configuration management for crate-catalog.

Supports loading configuration from:
1. Default values
2. Config file (<data-dir>/config.yaml)
3. Environment variables (for CI builds pinning a version)

Configuration precedence: env vars > config file > defaults
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .logging import get_logger
from .versions import DEFAULT_LIBRARY, LIBRARIES

logger = get_logger("config")

# Fixed layout under the data directory
DEFAULT_DATA_DIR = Path(".crate-catalog")
CACHE_DIRNAME = "cache"
SOURCES_DIRNAME = "sources"
GENERATED_DIRNAME = "generated"
CONFIG_FILENAME = "config.yaml"

MAX_CONFIG_SIZE = 1024 * 1024  # 1MB


class ConfigError(Exception):
    """Configuration error."""

    pass


@dataclass
class TargetConfig:
    """Which library and release to catalog."""

    library: str = DEFAULT_LIBRARY
    version: str | None = None  # None selects the library's current release

    def validate(self) -> None:
        """Validate configuration.

        Unknown versions are not rejected here: they surface as FetchError
        when the release is resolved, before any download starts.
        """
        if self.library not in LIBRARIES:
            raise ConfigError(
                f"Unknown library '{self.library}'. Must be one of: {sorted(LIBRARIES)}"
            )

    def resolved_version(self) -> str:
        if self.version:
            return self.version
        return LIBRARIES[self.library].current_release().version


@dataclass
class FetchConfig:
    """Archive download settings."""

    timeout: float | None = None  # Seconds; None blocks until the server answers

    def validate(self) -> None:
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError(f"fetch timeout must be > 0, got {self.timeout}")


@dataclass
class OutputConfig:
    """Where generated catalog modules are written."""

    output_dir: Path | None = None  # None means <data-dir>/generated

    def resolve(self, data_dir: Path) -> Path:
        return self.output_dir or data_dir / GENERATED_DIRNAME


@dataclass
class Config:
    """Main configuration container."""

    target: TargetConfig = field(default_factory=TargetConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def validate(self) -> None:
        """Validate all configuration."""
        self.target.validate()
        self.fetch.validate()


def load_config(config_path: Path | None = None, data_dir: Path | None = None) -> Config:
    """
    Load configuration from file and environment.

    Args:
        config_path: Explicit path to config file (optional)
        data_dir: Data directory to look for config.yaml (optional)

    Returns:
        Validated Config object
    """
    config = Config()

    if config_path is None and data_dir is not None:
        config_path = data_dir / CONFIG_FILENAME

    if config_path and config_path.exists():
        try:
            config = _load_config_file(config_path)
            logger.debug("Loaded config from %s", config_path)
        except (OSError, yaml.YAMLError, ValueError, ConfigError) as e:
            logger.warning("Failed to load config from %s: %s", config_path, e)
            config = Config()

    config = _apply_env_overrides(config)

    config.validate()

    return config


def _load_config_file(config_path: Path) -> Config:
    """Load configuration from YAML file."""
    size = config_path.stat().st_size
    if size > MAX_CONFIG_SIZE:
        raise ConfigError(f"Config file too large: {size} > {MAX_CONFIG_SIZE}")

    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return Config()

    if not isinstance(data, dict):
        raise ConfigError("Config file must be a YAML mapping")

    allowed_keys = {"target", "fetch", "output"}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        logger.warning("Unknown config keys ignored: %s", unknown_keys)

    target_data = _section(data, "target")
    version = target_data.get("version")
    target = TargetConfig(
        library=str(target_data.get("library", DEFAULT_LIBRARY)),
        # YAML reads 0.10 as a float; versions are always strings here
        version=str(version) if version is not None else None,
    )

    fetch_data = _section(data, "fetch")
    timeout = fetch_data.get("timeout")
    fetch = FetchConfig(timeout=float(timeout) if timeout is not None else None)

    output_data = _section(data, "output")
    output_dir = output_data.get("output_dir")
    output = OutputConfig(output_dir=Path(output_dir) if output_dir else None)

    return Config(target=target, fetch=fetch, output=output)


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return section


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    env_library = os.environ.get("CRATE_CATALOG_LIBRARY")
    if env_library:
        config.target.library = env_library
        logger.debug("Using library from env: %s", env_library)

    env_version = os.environ.get("CRATE_CATALOG_VERSION")
    if env_version:
        config.target.version = env_version
        logger.debug("Using version from env: %s", env_version)

    env_timeout = os.environ.get("CRATE_CATALOG_FETCH_TIMEOUT")
    if env_timeout:
        try:
            config.fetch.timeout = float(env_timeout)
        except ValueError:
            logger.warning("Invalid CRATE_CATALOG_FETCH_TIMEOUT: %s", env_timeout)

    return config


def save_config(config: Config, config_path: Path) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Configuration to save
        config_path: Path to write config file
    """
    data = {
        "target": {
            "library": config.target.library,
            "version": config.target.version,
        },
        "fetch": {
            "timeout": config.fetch.timeout,
        },
        "output": {
            "output_dir": str(config.output.output_dir) if config.output.output_dir else None,
        },
    }

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    logger.info("Saved config to %s", config_path)
