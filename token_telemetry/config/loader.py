"""
Configuration management and loading.

Handles application settings read from a YAML file.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Set

import yaml

CONFIG_ENV_VAR = "TOKEN_TELEMETRY_CONFIG"
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class DatabaseConfig:
    """Location of the transaction ledger."""
    path: str = "token_telemetry.db"


@dataclass(frozen=True)
class ApiConfig:
    """Pagination bounds for the transactions endpoint."""
    default_limit: int = 100
    max_limit: int = 1000

    def __post_init__(self):
        """Validate pagination bounds."""
        if self.max_limit < 1:
            raise ValueError("max_limit must be >= 1")
        if not 1 <= self.default_limit <= self.max_limit:
            raise ValueError("default_limit must be between 1 and max_limit")


@dataclass(frozen=True)
class SummaryConfig:
    """Summary aggregation options."""
    top_models: int = 10

    def __post_init__(self):
        """Validate breakdown size."""
        if self.top_models < 1:
            raise ValueError("top_models must be >= 1")


@dataclass(frozen=True)
class StreamingConfig:
    """Rate estimator tuning."""
    sample_interval_ms: int = 200
    window_ms: int = 2000
    chars_per_token: int = 4
    min_final_duration: float = 0.5

    def __post_init__(self):
        """Validate estimator timings."""
        if self.sample_interval_ms <= 0:
            raise ValueError("sample_interval_ms must be > 0")
        if self.window_ms <= self.sample_interval_ms:
            raise ValueError("window_ms must be greater than sample_interval_ms")
        if self.chars_per_token <= 0:
            raise ValueError("chars_per_token must be > 0")
        if self.min_final_duration < 0:
            raise ValueError("min_final_duration cannot be negative")


@dataclass(frozen=True)
class PreferencesConfig:
    """Where the display preference is persisted."""
    path: str = "~/.token_telemetry/preferences.yaml"


@dataclass(frozen=True)
class Settings:
    """Complete application configuration."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    summary: SummaryConfig = field(default_factory=SummaryConfig)
    streaming: StreamingConfig = field(default_factory=StreamingConfig)
    preferences: PreferencesConfig = field(default_factory=PreferencesConfig)
    log_level: str = "INFO"


def default_settings() -> Settings:
    """Settings used when no configuration file is given."""
    return Settings()


def load_settings(path: Optional[str] = None) -> Settings:
    """Load and validate settings from a YAML file.

    Every section is optional; unknown keys are rejected so a typo never
    silently falls back to a default.

    Args:
        path: Path to YAML configuration file. ``None`` returns the defaults.

    Returns:
        Validated Settings object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    if path is None:
        return default_settings()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return default_settings()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration root must be a dictionary")

    allowed_top_keys = {'database', 'api', 'summary', 'streaming', 'preferences', 'logging'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    database = _section(raw_config, 'database', {'path'})
    api = _section(raw_config, 'api', {'default_limit', 'max_limit'})
    summary = _section(raw_config, 'summary', {'top_models'})
    streaming = _section(
        raw_config,
        'streaming',
        {'sample_interval_ms', 'window_ms', 'chars_per_token', 'min_final_duration'},
    )
    preferences = _section(raw_config, 'preferences', {'path'})
    logging_section = _section(raw_config, 'logging', {'level'})

    log_level = str(logging_section.get('level', 'INFO')).upper()
    if log_level not in _LOG_LEVELS:
        raise ValueError(f"'logging.level' must be one of: {sorted(_LOG_LEVELS)}")

    return Settings(
        database=DatabaseConfig(**_strings(database, 'database')),
        api=ApiConfig(**_integers(api, 'api')),
        summary=SummaryConfig(**_integers(summary, 'summary')),
        streaming=_parse_streaming(streaming),
        preferences=PreferencesConfig(**_strings(preferences, 'preferences')),
        log_level=log_level,
    )


def _section(raw_config: Dict, name: str, allowed: Set[str]) -> Dict[str, Any]:
    """Extract one optional section and reject unknown keys in it."""
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    unknown_keys = set(data.keys()) - allowed
    if unknown_keys:
        raise ValueError(f"Unknown keys in {name}: {unknown_keys}")
    return data


def _integers(data: Dict[str, Any], path: str) -> Dict[str, int]:
    for key, value in data.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"'{key}' in {path} must be an integer")
    return data


def _strings(data: Dict[str, Any], path: str) -> Dict[str, str]:
    for key, value in data.items():
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"'{key}' in {path} must be a non-empty string")
    return data


def _parse_streaming(data: Dict[str, Any]) -> StreamingConfig:
    """Parse and validate the streaming section.

    Raises:
        ValueError: If a value has the wrong type or range
    """
    duration = data.get('min_final_duration', StreamingConfig.min_final_duration)
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        raise ValueError("'min_final_duration' in streaming must be a number")

    integers = _integers(
        {k: v for k, v in data.items() if k != 'min_final_duration'}, 'streaming'
    )
    return StreamingConfig(min_final_duration=float(duration), **integers)
