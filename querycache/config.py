"""
QueryCache — Layered configuration.

Loads and merges configuration from multiple sources with precedence
(later overrides earlier):

1. Built-in defaults
2. Config files (JSON or YAML)
3. ``.env`` file (``QC_`` prefixed keys)
4. Environment variables (``QC_`` prefix)
5. Manual overrides

Nested keys use a double underscore: ``QC_STORES__REDIS__URL``
becomes ``{"stores": {"redis": {"url": ...}}}``.
"""

from __future__ import annotations

import copy
import json
import logging
import os
from dataclasses import dataclass, field
from glob import glob
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dotenv import dotenv_values

from .core import KeyFormat
from .faults import CacheConfigFault
from .key_builder import DEFAULT_PREFIX

logger = logging.getLogger("querycache.config")


DEFAULT_CACHE_CONFIG: Dict[str, Any] = {
    "default_store": "memory",
    "prefix": DEFAULT_PREFIX,
    "key_format": "hashed",
    "default_ttl": None,
    "base_tags": [],
    "log_level": "WARNING",
    "stores": {
        "memory": {
            "driver": "memory",
            "max_size": 10000,
            "capacity_warning_threshold": 0.85,
        },
    },
}


@dataclass
class QueryCacheConfig:
    """
    Query cache configuration.

    ``default_ttl`` of None leaves caching opt-in per query; any other
    value enables caching for every query built from this config.
    """
    default_store: str = "memory"
    prefix: str = DEFAULT_PREFIX
    key_format: KeyFormat = KeyFormat.HASHED
    default_ttl: Optional[int] = None
    base_tags: Tuple[str, ...] = ()
    stores: Dict[str, Dict[str, Any]] = field(
        default_factory=lambda: copy.deepcopy(DEFAULT_CACHE_CONFIG["stores"])
    )
    log_level: str = "WARNING"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_store": self.default_store,
            "prefix": self.prefix,
            "key_format": self.key_format.value,
            "default_ttl": self.default_ttl,
            "base_tags": list(self.base_tags),
            "stores": copy.deepcopy(self.stores),
            "log_level": self.log_level,
        }


class ConfigLoader:
    """
    Loads and merges query cache configuration from multiple sources.
    """

    def __init__(self, env_prefix: str = "QC_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[List[str]] = None,
        env_prefix: str = "QC_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from all sources.

        Args:
            paths: Config file paths (glob patterns supported)
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)
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

    def _load_from_files(self, pattern: str) -> None:
        for path_str in sorted(glob(pattern)):
            path = Path(path_str)
            if path.suffix == ".json":
                self._load_json_file(path)
            elif path.suffix in (".yaml", ".yml"):
                self._load_yaml_file(path)
            else:
                logger.warning(f"Ignoring config file with unknown format: {path}")

    def _load_json_file(self, path: Path) -> None:
        with open(path) as f:
            data = json.load(f)
        if data:
            self._merge_dict(self.config_data, data)

    def _load_yaml_file(self, path: Path) -> None:
        import yaml
        with open(path) as f:
            data = yaml.safe_load(f)
        if data:
            self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: str) -> None:
        if not Path(path).exists():
            logger.debug(f"No .env file at {path}")
            return
        for key, value in dotenv_values(path).items():
            if key.startswith(self.env_prefix) and value is not None:
                self._set_nested(key, value)

    def _load_from_env(self) -> None:
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str) -> None:
        """Convert QC_STORES__REDIS__URL to a nested dict entry."""
        key = key[len(self.env_prefix):]
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

    def _merge_dict(self, target: dict, source: dict) -> None:
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current: Any = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def get_cache_config(self) -> Dict[str, Any]:
        """
        Cache configuration merged over the defaults.

        Top-level keys (``QC_DEFAULT_STORE``) apply first; a
        ``query_cache`` section, when present, overrides them.
        """
        merged = copy.deepcopy(DEFAULT_CACHE_CONFIG)
        top_level = {k: v for k, v in self.config_data.items() if k in DEFAULT_CACHE_CONFIG}
        self._merge_dict(merged, copy.deepcopy(top_level))

        section = self.get("query_cache", {})
        if isinstance(section, dict) and section:
            self._merge_dict(merged, copy.deepcopy(section))
        return merged


def build_cache_config(config_dict: Dict[str, Any]) -> QueryCacheConfig:
    """
    Build and validate a ``QueryCacheConfig`` from a dictionary.

    Raises:
        CacheConfigFault: on invalid values
    """
    merged = copy.deepcopy(DEFAULT_CACHE_CONFIG)
    ConfigLoader()._merge_dict(merged, config_dict)

    try:
        key_format = KeyFormat(merged["key_format"])
    except ValueError:
        raise CacheConfigFault(f"key_format must be one of {[f.value for f in KeyFormat]}")

    stores = merged["stores"]
    if not isinstance(stores, dict) or not stores:
        raise CacheConfigFault("at least one store must be configured")
    for name, settings in stores.items():
        if not isinstance(settings, dict):
            raise CacheConfigFault(f"store '{name}' settings must be a mapping")

    default_store = merged["default_store"]
    if default_store not in stores:
        raise CacheConfigFault(f"default_store '{default_store}' is not among stores {sorted(stores)}")

    default_ttl = merged["default_ttl"]
    if default_ttl is not None and not isinstance(default_ttl, int):
        raise CacheConfigFault(f"default_ttl must be an integer number of seconds, got {default_ttl!r}")

    log_level = str(merged["log_level"]).upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise CacheConfigFault(f"log_level must be a logging level name, got {merged['log_level']!r}")

    base_tags = merged["base_tags"]
    if isinstance(base_tags, str):
        base_tags = [t.strip() for t in base_tags.split(",") if t.strip()]

    return QueryCacheConfig(
        default_store=default_store,
        prefix=str(merged["prefix"]),
        key_format=key_format,
        default_ttl=default_ttl,
        base_tags=tuple(base_tags),
        stores=stores,
        log_level=log_level,
    )
