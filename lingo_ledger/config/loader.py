"""
Configuration management and loading.

Handles application settings and environment variables.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..core.aggregation import DEFAULT_IDLE_CUTOFF_SECONDS
from ..core.catalog import DEFAULT_MODEL_ID, MODEL_CATALOG
from ..core.service import DEFAULT_MAX_COMMENT_LENGTH
from ..storage.db import DEFAULT_DB_PATH

CONFIG_ENV_VAR = "LINGO_LEDGER_CONFIG"


@dataclass(frozen=True)
class DatabaseConfig:
    """Where analytics are stored."""
    path: str = DEFAULT_DB_PATH

    def __post_init__(self):
        if not self.path:
            raise ValueError("database path cannot be empty")


@dataclass(frozen=True)
class ModelsConfig:
    """Model used when no selection has been stored."""
    default: str = DEFAULT_MODEL_ID

    def __post_init__(self):
        if self.default not in MODEL_CATALOG:
            raise ValueError(f"Unknown default model: {self.default}")


@dataclass(frozen=True)
class AnalyticsConfig:
    idle_cutoff_seconds: float = DEFAULT_IDLE_CUTOFF_SECONDS

    def __post_init__(self):
        if self.idle_cutoff_seconds <= 0:
            raise ValueError("idle_cutoff_seconds must be > 0")


@dataclass(frozen=True)
class FeedbackConfig:
    max_comment_length: int = DEFAULT_MAX_COMMENT_LENGTH

    def __post_init__(self):
        if self.max_comment_length <= 0:
            raise ValueError("max_comment_length must be > 0")


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    database: DatabaseConfig
    models: ModelsConfig
    analytics: AnalyticsConfig
    feedback: FeedbackConfig


def default_app_config() -> AppConfig:
    """Configuration used when no file is given."""
    return AppConfig(
        database=DatabaseConfig(),
        models=ModelsConfig(),
        analytics=AnalyticsConfig(),
        feedback=FeedbackConfig()
    )


def resolve_config_path(path: Optional[str] = None) -> Optional[str]:
    """Explicit path, else the LINGO_LEDGER_CONFIG environment variable."""
    return path or os.environ.get(CONFIG_ENV_VAR) or None


def load_app_config(path: str) -> AppConfig:
    """Load and validate application configuration from YAML file.

    Every section is optional and falls back to its defaults, but
    unknown sections or keys are rejected so typos never go unnoticed.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'database', 'models', 'analytics', 'feedback'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    database_data = _section(raw_config, 'database', {'path'})
    models_data = _section(raw_config, 'models', {'default'})
    analytics_data = _section(raw_config, 'analytics', {'idle_cutoff_seconds'})
    feedback_data = _section(raw_config, 'feedback', {'max_comment_length'})

    database = DatabaseConfig()
    if 'path' in database_data:
        if not isinstance(database_data['path'], str):
            raise ValueError("'database.path' must be a string")
        database = DatabaseConfig(path=database_data['path'])

    models = ModelsConfig()
    if 'default' in models_data:
        if not isinstance(models_data['default'], str):
            raise ValueError("'models.default' must be a string")
        models = ModelsConfig(default=models_data['default'])

    analytics = AnalyticsConfig()
    if 'idle_cutoff_seconds' in analytics_data:
        cutoff = analytics_data['idle_cutoff_seconds']
        if isinstance(cutoff, bool) or not isinstance(cutoff, (int, float)):
            raise ValueError("'analytics.idle_cutoff_seconds' must be a number")
        analytics = AnalyticsConfig(idle_cutoff_seconds=float(cutoff))

    feedback = FeedbackConfig()
    if 'max_comment_length' in feedback_data:
        length = feedback_data['max_comment_length']
        if isinstance(length, bool) or not isinstance(length, int):
            raise ValueError("'feedback.max_comment_length' must be an integer")
        feedback = FeedbackConfig(max_comment_length=length)

    return AppConfig(
        database=database,
        models=models,
        analytics=analytics,
        feedback=feedback
    )


def _section(raw_config: Dict[str, Any], name: str, allowed_keys: set) -> Dict[str, Any]:
    """Return a validated config section, empty if absent.

    Raises:
        ValueError: If the section is not a mapping or has unknown keys
    """
    data = raw_config.get(name)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")

    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown {name} keys: {unknown_keys}")
    return data
