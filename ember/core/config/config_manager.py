"""
Game table configuration backed by YAML files.

Features:
- Hierarchical config access with dot notation (e.g. 'daily_reward.base_amount')
- Recursive loading of every *.yaml / *.yml file under the config directory
- Deep merge of files into one tree, so tables can be split across files
- Performance metrics tracking

Every balance number and lookup table the engines consume lives in YAML:
materials, tools, mining zones, blueprints, jobs, lootboxes, missions,
leveling curve, daily rewards and the persistence/lock tunables.
"""

from __future__ import annotations

import copy
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ember.core.config.config import Config
from ember.core.exceptions import ConfigurationError
from ember.core.logging.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


def _deep_merge(target: Dict[str, Any], source: Dict[str, Any]) -> None:
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = value


class ConfigManager:
    """
    Class-level YAML configuration registry.

    The tree is loaded lazily on first access and kept for the process
    lifetime; `clear_cache()` forces a reload (used by tests).
    """

    _cache: Dict[str, Any] = {}
    _initialized: bool = False
    _config_dir: Optional[Path] = None
    _files_loaded: List[str] = []

    _metrics = {
        "gets": 0,
        "cache_hits": 0,
        "cache_misses": 0,
        "files_loaded": 0,
        "total_get_time_ms": 0.0,
    }

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> None:
        """
        Recursively load all YAML config files from `config_dir` into cache.

        Raises:
            ConfigurationError: If a file is not valid YAML or its top level
                is not a mapping.
        """
        if not config_dir.exists():
            logger.warning(
                f"{config_dir} not found, skipping YAML loading",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(
            list(config_dir.rglob("*.yaml")) + list(config_dir.rglob("*.yml"))
        )
        if not yaml_files:
            logger.info(f"No YAML config files found in {config_dir}")
            return

        for yaml_file in yaml_files:
            relative = str(yaml_file.relative_to(config_dir))
            try:
                with open(yaml_file, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(relative, f"invalid YAML: {e}") from e

            if not data:
                continue
            if not isinstance(data, dict):
                raise ConfigurationError(relative, "top level must be a mapping")

            _deep_merge(cls._cache, data)
            cls._files_loaded.append(relative)
            logger.debug(f"Loaded YAML config: {relative}")

        cls._metrics["files_loaded"] = len(cls._files_loaded)
        logger.info(
            f"Loaded {len(cls._files_loaded)} YAML config files from {config_dir}",
            extra={"yaml_count": len(cls._files_loaded), "total_keys": len(cls._cache)},
        )

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """
        Load (or reload) the YAML tree.

        Args:
            config_dir: Directory to scan; defaults to `Config.CONFIG_DIR`.
        """
        cls._cache = {}
        cls._files_loaded = []
        cls._config_dir = Path(config_dir) if config_dir else Config.CONFIG_DIR
        cls._load_yaml_configs(cls._config_dir)
        cls._initialized = True

    # =========================================================================
    # PUBLIC METHODS
    # =========================================================================

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve config value by dot notation path.

        Args:
            key: Dot-notation config path (e.g., 'daily_reward.base_amount')
            default: Default value if key not found

        Returns:
            Config value or default. Mappings and lists are returned as
            deep copies so callers cannot mutate the shared tree.

        Example:
            >>> ConfigManager.get('daily_reward.base_amount')
            150
            >>> ConfigManager.get('core.locks.lease_seconds', 10)
            10
        """
        start_time = time.perf_counter()
        cls._metrics["gets"] += 1

        if not cls._initialized:
            cls.initialize()

        value: Any = cls._cache
        for part in key.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                value = _MISSING
                break

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        cls._metrics["total_get_time_ms"] += elapsed_ms

        if value is _MISSING or value is None:
            cls._metrics["cache_misses"] += 1
            return default

        cls._metrics["cache_hits"] += 1
        if isinstance(value, (dict, list)):
            return copy.deepcopy(value)
        return value

    @classmethod
    def require(cls, key: str) -> Any:
        """
        Like `get`, but a missing key is a configuration error.

        Raises:
            ConfigurationError: If the key is absent.
        """
        value = cls.get(key, _MISSING)
        if value is _MISSING:
            raise ConfigurationError(key, "required key is missing")
        return value

    @classmethod
    def clear_cache(cls) -> None:
        """Clear memory cache and reset initialization state."""
        cls._cache = {}
        cls._files_loaded = []
        cls._initialized = False
        logger.debug("ConfigManager cache cleared")

    @classmethod
    def get_all_keys(cls) -> List[str]:
        """Get list of all top-level config keys."""
        if not cls._initialized:
            cls.initialize()
        return list(cls._cache.keys())

    # =========================================================================
    # METRICS & MONITORING
    # =========================================================================

    @classmethod
    def get_metrics(cls) -> Dict[str, Any]:
        total_gets = cls._metrics["gets"]
        cache_hit_rate = (
            (cls._metrics["cache_hits"] / total_gets * 100) if total_gets > 0 else 0.0
        )
        avg_get_time = (
            cls._metrics["total_get_time_ms"] / total_gets if total_gets > 0 else 0.0
        )
        return {
            "gets": total_gets,
            "cache_hits": cls._metrics["cache_hits"],
            "cache_misses": cls._metrics["cache_misses"],
            "cache_hit_rate": round(cache_hit_rate, 2),
            "files_loaded": cls._metrics["files_loaded"],
            "avg_get_time_ms": round(avg_get_time, 4),
            "initialized": cls._initialized,
            "config_dir": str(cls._config_dir) if cls._config_dir else None,
        }

    @classmethod
    def reset_metrics(cls) -> None:
        cls._metrics = {
            "gets": 0,
            "cache_hits": 0,
            "cache_misses": 0,
            "files_loaded": len(cls._files_loaded),
            "total_get_time_ms": 0.0,
        }
