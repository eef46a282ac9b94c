"""
Configuration management for the transactional sink.

Settings are merged from:
- config/default.yaml
- an optional user configuration file
- environment variables
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from txnsink.producer.config import (
    BOOTSTRAP_SERVERS_CONFIG,
    TRANSACTION_TIMEOUT_CONFIG,
)


class Config:
    """Configuration manager for the transactional sink."""

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_file: Path to configuration file. If None, only defaults
                and environment overrides apply.
        """
        self._config: Dict[str, Any] = {}
        self._load_default_config()

        if config_file:
            self._load_config_file(config_file)

        self._apply_env_overrides()

    def _load_default_config(self) -> None:
        """Load default configuration."""
        default_config_path = Path(__file__).parent.parent.parent / "config" / "default.yaml"
        if default_config_path.exists():
            self._load_config_file(str(default_config_path))

    def _load_config_file(self, config_file: str) -> None:
        """
        Load configuration from YAML file.

        Args:
            config_file: Path to YAML configuration file
        """
        with open(config_file, "r") as f:
            file_config = yaml.safe_load(f) or {}
            self._config = self._deep_merge(self._config, file_config)

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        if servers := os.getenv("TXNSINK_BOOTSTRAP_SERVERS"):
            self.set("producer", {
                **(self.get("producer") or {}),
                BOOTSTRAP_SERVERS_CONFIG: servers,
            })

        if timeout := os.getenv("TXNSINK_TRANSACTION_TIMEOUT_MS"):
            self.set("producer", {
                **(self.get("producer") or {}),
                TRANSACTION_TIMEOUT_CONFIG: int(timeout),
            })

        if log_level := os.getenv("TXNSINK_LOG_LEVEL"):
            self.set("logging.level", log_level)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Producer property names contain dots themselves, so read them
        through producer_properties() rather than through this method.

        Args:
            key: Configuration key in dot notation (e.g., "logging.level")
            default: Default value if key not found

        Returns:
            Configuration value
        """
        value = self._config
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Configuration key in dot notation
            value: Value to set
        """
        keys = key.split(".")
        config = self._config
        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]
        config[keys[-1]] = value

    def producer_properties(self) -> Dict[str, Any]:
        """
        Get the producer property bundle handed to the committer.

        Returns:
            Copy of the ``producer`` section, keyed by property name
        """
        return dict(self._config.get("producer") or {})

    def to_dict(self) -> Dict[str, Any]:
        """Get entire configuration as dictionary."""
        return self._config.copy()


_config: Optional[Config] = None


def get_config(config_file: Optional[str] = None) -> Config:
    """
    Get global configuration instance.

    Args:
        config_file: Optional configuration file path

    Returns:
        Configuration instance
    """
    global _config
    if _config is None:
        _config = Config(config_file)
    return _config


def reset_config() -> None:
    """Reset global configuration (mainly for testing)."""
    global _config
    _config = None
