"""
Configuration loader with environment variable support.

Loads configuration from YAML files with hierarchical overrides:
1. config/default.yaml (base configuration)
2. config/{APEX_ENV}.yaml (environment-specific)
3. Environment variables (APEX_*)
"""

import os
from pathlib import Path
from typing import Any

import yaml

ENV_PREFIX = "APEX_"

# Environment variables that select the config layer rather than a value in it.
_RESERVED_ENV = {"APEX_ENV"}


class Config:
    """
    Hierarchical configuration loader.

    Load order (later overrides earlier):
    1. default.yaml
    2. {APEX_ENV}.yaml (development, production, etc.)
    3. Environment variables (APEX_*)

    Environment variable names map onto nested keys by their first
    underscore only, so ``APEX_BACKEND_REST_URL`` sets
    ``config['backend']['rest_url']``.

    Usage:
        config = Config()
        kind = config.get('backend.kind', 'sqlite')
        # or
        kind = config['backend']['kind']
    """

    def __init__(self, config_dir: Path | None = None):
        """
        Initialize configuration loader.

        Args:
            config_dir: Path to configuration directory. Defaults to project config/
        """
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent.parent / "config"
        self.config_dir = Path(config_dir)
        self.env = os.getenv("APEX_ENV", "development")
        self._config = self._load_config()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Build a config from an in-memory dictionary (no files, no env)."""
        config = cls.__new__(cls)
        config.config_dir = Path(".")
        config.env = "test"
        config._config = dict(data)
        return config

    def _load_config(self) -> dict[str, Any]:
        """Load and merge configuration files."""
        config: dict[str, Any] = {}

        default_path = self.config_dir / "default.yaml"
        if default_path.exists():
            with open(default_path, encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}

        env_path = self.config_dir / f"{self.env}.yaml"
        if env_path.exists():
            with open(env_path, encoding="utf-8") as f:
                env_config = yaml.safe_load(f) or {}
                config = self._deep_merge(config, env_config)

        config = self._apply_env_overrides(config)

        return config

    def _deep_merge(self, base: dict, override: dict) -> dict:
        """Deep merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self, config: dict) -> dict:
        """
        Apply APEX_* environment variables.

        Example: APEX_BACKEND_KIND=rest -> config['backend']['kind'] = 'rest'
        """
        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX) or key in _RESERVED_ENV:
                continue
            path = key[len(ENV_PREFIX) :].lower().split("_", 1)
            self._set_nested(config, path, self._parse_value(value))
        return config

    def _set_nested(self, d: dict, keys: list, value: Any) -> None:
        """Set a nested dictionary value."""
        for key in keys[:-1]:
            d = d.setdefault(key, {})
        d[keys[-1]] = value

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "false"):
            return value.lower() == "true"
        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            pass
        return value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Dot-separated path like 'backend.kind' or 'recording.max_lean'
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value: Any = self._config
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
            if value is None:
                return default
        return value

    def __getitem__(self, key: str) -> Any:
        """Get top-level configuration section."""
        return self._config.get(key, {})

    @property
    def as_dict(self) -> dict[str, Any]:
        """Return configuration as dictionary."""
        return self._config.copy()

    @property
    def data_dir(self) -> Path:
        """Directory for local state (database, preferences, exports)."""
        configured = self.get("storage.data_dir")
        if configured:
            return Path(configured).expanduser()
        return Path.home() / "Apex"

    @property
    def exports_dir(self) -> Path:
        """Where GPX files and share cards are written, relative to data_dir unless absolute."""
        return self.data_dir / Path(self.get("storage.exports_dir") or "exports").expanduser()

    @property
    def preferences_path(self) -> Path:
        return self.data_dir / self.get("storage.preferences_file", "preferences.json")

    def reload(self) -> None:
        """Reload configuration from files, picking up a changed APEX_ENV."""
        self.env = os.getenv("APEX_ENV", self.env)
        self._config = self._load_config()
