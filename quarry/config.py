"""
Config system - Layered typed configuration with validation.

Database instances are described by a ``databases`` section; each key is an
instance name and each value a mapping of ``DatabaseConfig`` fields.

    databases:
      default:
        url: sqlite:///app.db
        log_queries: true
        cache_results: 60
"""

from typing import Any, Dict, Optional, get_args, get_origin
from dataclasses import dataclass, field, fields
from pathlib import Path
import json
import os
import types

from .faults import ConfigInvalidFault, ConfigMissingFault


@dataclass
class DatabaseConfig:
    """Connection and behaviour settings for one named database instance."""

    url: str = "sqlite:///:memory:"
    username: Optional[str] = None
    password: Optional[str] = None
    persistent: bool = False
    log_queries: bool = False
    # Max age in seconds for cached SELECT results; 0 disables the cache
    cache_results: int = 0
    cache_statements: bool = True
    cache_backend: str = "memory"
    cache_options: Dict[str, Any] = field(default_factory=dict)
    charset: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], name: str = "default") -> "DatabaseConfig":
        """Build a validated config, raising ConfigInvalidFault on bad values."""
        # "dsn" is accepted as a synonym for "url"
        if "dsn" in data:
            data = dict(data)
            dsn = data.pop("dsn")
            data.setdefault("url", dsn)

        kwargs = {}
        known = {f.name for f in fields(cls)}
        for key in data:
            if key not in known:
                raise ConfigInvalidFault(f"databases.{name}.{key}", "unknown option")

        for field_info in fields(cls):
            if field_info.name not in data:
                continue
            value = data[field_info.name]
            if not _check_type(value, field_info.type):
                raise ConfigInvalidFault(
                    f"databases.{name}.{field_info.name}",
                    f"expected {field_info.type}, got {type(value).__name__}",
                )
            kwargs[field_info.name] = value

        config = cls(**kwargs)
        if config.cache_results < 0:
            raise ConfigInvalidFault(f"databases.{name}.cache_results", "must be >= 0")
        return config

    @property
    def driver(self) -> str:
        """Driver name derived from the URL scheme."""
        scheme = self.url.split(":", 1)[0].lower()
        if "+" in scheme:
            scheme = scheme.split("+", 1)[0]
        if scheme in ("postgres", "postgresql"):
            return "postgresql"
        return scheme


def _check_type(value: Any, expected_type: Any) -> bool:
    """Basic type checking for dataclass fields."""
    origin = get_origin(expected_type)
    if origin is types.UnionType or str(origin) == "typing.Union":
        if value is None:
            return True
        args = [a for a in get_args(expected_type) if a is not type(None)]
        return any(_check_type(value, a) for a in args)

    if origin:
        return isinstance(value, origin)

    if expected_type is Any:
        return True
    # bool is an int subclass; don't let True pass as a max age
    if expected_type is int and isinstance(value, bool):
        return False
    try:
        return isinstance(value, expected_type)
    except TypeError:
        return True


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources with precedence:
    overrides > environment variables > .env file > config files
    """

    def __init__(self, env_prefix: str = "QUARRY_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[list[str]] = None,
        env_prefix: str = "QUARRY_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from multiple sources with proper merge strategy.

        Merge order (later overrides earlier):
        1. Config files (JSON or YAML, glob patterns supported)
        2. .env file entries carrying the prefix
        3. Environment variables (QUARRY_* prefix)
        4. Manual overrides

        Args:
            paths: List of config file paths
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)

        Returns:
            Configured ConfigLoader instance
        """
        loader = cls(env_prefix=env_prefix)

        for pattern in paths or []:
            loader._load_from_files(pattern)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env()

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    def _load_from_files(self, pattern: str):
        """Load config from JSON or YAML files."""
        from glob import glob

        for path_str in sorted(glob(pattern)):
            path = Path(path_str)
            if path.suffix == ".json":
                self._load_json_file(path)
            elif path.suffix in (".yaml", ".yml"):
                self._load_yaml_file(path)

    def _load_json_file(self, path: Path):
        """Load config from JSON file."""
        with open(path) as f:
            data = json.load(f)
            self._merge_dict(self.config_data, data)

    def _load_yaml_file(self, path: Path):
        """Load config from YAML file."""
        import yaml
        with open(path) as f:
            data = yaml.safe_load(f)
            if data:
                self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: str):
        """Load prefixed entries from a .env file."""
        from dotenv import dotenv_values

        env_path = Path(path)
        if not env_path.exists():
            return

        for key, value in dotenv_values(env_path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self):
        """Load config from environment variables."""
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert QUARRY_DATABASES__DEFAULT__URL to a nested dict."""
        key = key[len(self.env_prefix):]

        # Split by double underscore for nested keys
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def database_names(self) -> list[str]:
        return list(self.get("databases", {}) or {})

    def database_config(self, name: str = "default") -> DatabaseConfig:
        """
        Get the validated configuration for one database instance.

        Raises:
            ConfigMissingFault: no ``databases.<name>`` section exists
            ConfigInvalidFault: a field has the wrong type or is unknown
        """
        data = self.get(f"databases.{name}")
        if data is None:
            raise ConfigMissingFault(f"databases.{name}")
        if isinstance(data, str):
            data = {"url": data}
        if not isinstance(data, dict):
            raise ConfigInvalidFault(f"databases.{name}", "expected a mapping or URL string")
        return DatabaseConfig.from_dict(data, name=name)

    def to_dict(self) -> dict:
        """Export all config as dictionary."""
        return self.config_data.copy()
