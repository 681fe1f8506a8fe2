"""Configuration management for entity-graph using YAML files."""

import os
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger()

CONFIG_DIR_NAME = ".entity-graph"

DEFAULTS: dict[str, Any] = {
    "backend": "sqlite",
    "sqlite.path": f"{CONFIG_DIR_NAME}/entities.db",
    "sqlite.busy_timeout_ms": 5000,
    "store.lock_stripes": 64,
}


def global_config_dir() -> Path:
    """Directory of the user-level config, overridable with ENTITY_GRAPH_HOME."""
    home = os.environ.get("ENTITY_GRAPH_HOME")
    return Path(home) if home else Path.home() / CONFIG_DIR_NAME


class Config:
    """Configuration manager using YAML file storage.

    Local config lives in .entity-graph/config.yaml under the current
    directory, global config in ~/.entity-graph/config.yaml. Reads look at
    local config, then global config, then the built-in defaults.
    """

    def __init__(self, use_global: bool = False, config_dir: Path | None = None) -> None:
        """Initialize configuration manager.

        Args:
            use_global: If True, use global config only. If False, use local config with global fallback.
            config_dir: Custom directory to store config file (overrides use_global)
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
        elif use_global:
            self.config_dir = global_config_dir()
        else:
            self.config_dir = Path.cwd() / CONFIG_DIR_NAME
        self.is_global = use_global
        self.config_file = self.config_dir / "config.yaml"

        self._config: dict[str, Any] = self._read(self.config_file)

        self._global_config: dict[str, Any] = {}
        if not self.is_global:
            global_file = global_config_dir() / "config.yaml"
            if global_file != self.config_file:
                try:
                    self._global_config = self._read(global_file)
                except ValueError as e:
                    logger.warning("Failed to load global config", error=str(e))

        logger.debug("Config initialized", config_file=str(self.config_file), is_global=self.is_global)

    @staticmethod
    def _read(config_file: Path) -> dict[str, Any]:
        """Load one YAML file, empty if it does not exist."""
        if not config_file.exists():
            logger.debug("Config file does not exist", config_file=str(config_file))
            return {}

        try:
            with open(config_file) as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to load config", config_file=str(config_file), error=str(e))
            raise ValueError(f"Failed to load config from {config_file}: {e}") from e

        if not isinstance(config, dict):
            raise ValueError(f"Config file {config_file} must contain a mapping")
        logger.debug("Config loaded", config_file=str(config_file), keys=list(config.keys()))
        return config

    def _save(self) -> None:
        """Save configuration to YAML file."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.config_file, "w") as f:
                yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False)
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to save config", error=str(e))
            raise ValueError(f"Failed to save config to {self.config_file}: {e}") from e
        logger.debug("Config saved", config_file=str(self.config_file))

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value.

        Args:
            key: Configuration key
            default: Returned when the key is set nowhere, including the built-in defaults

        Returns:
            Configuration value or default
        """
        if key in self._config:
            return self._config[key]
        if not self.is_global and key in self._global_config:
            return self._global_config[key]
        return DEFAULTS.get(key, default)

    def get_int(self, key: str, default: int | None = None) -> int | None:
        """Get a configuration value as an integer."""
        value = self.get(key, default)
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Config value {key}={value!r} is not an integer") from e

    def set(self, key: str, value: str) -> None:
        logger.debug("Setting config value", key=key)
        self._config[key] = value
        self._save()

    def unset(self, key: str) -> None:
        logger.debug("Unsetting config value", key=key)
        if key in self._config:
            del self._config[key]
            self._save()

    def list(self) -> dict[str, Any]:
        """List settings explicitly stored, merged local over global for local config."""
        if self.is_global:
            return self._config.copy()
        merged = self._global_config.copy()
        merged.update(self._config)
        return merged


def get_config(use_global: bool = False) -> Config:
    """Get a configuration instance.

    Args:
        use_global: If True, return global config. If False, return local config with global fallback.

    Returns:
        Config instance
    """
    return Config(use_global=use_global)
