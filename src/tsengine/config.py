"""Configuration loading for engine runs.

Example config file (engine.yaml):

    engine:
      max_workers: 4        # 0 = evaluate lazily on the reading thread
      var_resolution: 1000  # Target size of the value-at-risk distribution
    lookup:
      before_first: "clamp" # clamp | raise
    logging:
      level: "INFO"
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from tsengine.exceptions import ConfigError
from tsengine.types import EngineConfig

# Valid log levels
VALID_LOG_LEVELS = frozenset(["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"])

# Valid policies for dates before the first sample
VALID_LOOKUP_POLICIES = frozenset(["clamp", "raise"])


def _section(raw_config: dict[str, Any], key: str) -> dict[str, Any]:
    """Return an optional mapping section of the config.

    :raises ConfigError: If the section is present but not a mapping.
    """
    section = raw_config.get(key) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return section


def parse_engine_config(raw_config: dict[str, Any]) -> EngineConfig:
    """Validate a raw configuration mapping.

    :param raw_config: Parsed YAML content.
    :returns: Validated EngineConfig object.
    :raises ConfigError: If any value is invalid.
    """
    if not isinstance(raw_config, dict):
        raise ConfigError("Configuration must be a YAML mapping")

    defaults = EngineConfig()

    # Parse engine (optional)
    raw_engine = _section(raw_config, "engine")

    max_workers = raw_engine.get("max_workers", defaults.max_workers)
    if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 0:
        raise ConfigError("'engine.max_workers' must be a non-negative integer")

    var_resolution = raw_engine.get("var_resolution", defaults.var_resolution)
    if isinstance(var_resolution, bool) or not isinstance(var_resolution, int) or var_resolution < 2:
        raise ConfigError("'engine.var_resolution' must be an integer of at least 2")

    # Parse lookup (optional)
    raw_lookup = _section(raw_config, "lookup")

    before_first = raw_lookup.get("before_first", defaults.lookup_before_first)
    if before_first not in VALID_LOOKUP_POLICIES:
        raise ConfigError(
            f"Invalid lookup policy '{before_first}'. "
            f"Valid options: {sorted(VALID_LOOKUP_POLICIES)}"
        )

    # Parse logging (optional)
    raw_logging = _section(raw_config, "logging")

    log_level = str(raw_logging.get("level", defaults.log_level)).upper()
    if log_level not in VALID_LOG_LEVELS:
        raise ConfigError(
            f"Invalid log level '{log_level}'. "
            f"Valid options: {sorted(VALID_LOG_LEVELS)}"
        )

    return EngineConfig(
        max_workers=max_workers,
        var_resolution=var_resolution,
        lookup_before_first=before_first,
        log_level=log_level,
    )


def load_engine_config(config_path: str | Path) -> EngineConfig:
    """Parse and validate an engine configuration file.

    :param config_path: Path to YAML configuration file.
    :returns: Validated EngineConfig object.
    :raises ConfigError: If file cannot be read or config is invalid.
    """
    config_path = Path(config_path)

    try:
        with open(config_path) as f:
            raw_config = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {config_path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file: {e}") from e

    # An empty file means all defaults
    if raw_config is None:
        raw_config = {}

    return parse_engine_config(raw_config)


__all__ = ["VALID_LOG_LEVELS", "VALID_LOOKUP_POLICIES", "parse_engine_config", "load_engine_config"]
