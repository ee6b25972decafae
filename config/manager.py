"""YAML-backed configuration manager.

Configuration is layered: the packaged ``defaults.yaml`` is loaded first and a
user file, if any, is deep-merged on top of it. Values are addressed with
dotted keys such as ``backtesting.rolling_origin.horizon``.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
ENV_VAR = "FORECAST_BACKTEST_CONFIG"

_AGGREGATIONS = ("mean", "median", "trimmed_mean")


class ConfigurationError(Exception):
    """Raised when a configuration file cannot be read or parsed."""


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Malformed YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping at top level")
    return data


class ConfigurationManager:
    """Layered configuration with dotted-key access."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None, use_env: bool = True):
        """
        Parameters
        ----------
        config_path : str or Path, optional
            User configuration file merged over the defaults
        use_env : bool
            Whether to fall back to the FORECAST_BACKTEST_CONFIG environment
            variable when ``config_path`` is not given
        """
        self.loaded_files: List[Path] = [DEFAULTS_PATH]
        self._data = _load_yaml(DEFAULTS_PATH)

        if config_path is None and use_env:
            config_path = os.environ.get(ENV_VAR) or None

        if config_path is not None:
            path = Path(config_path)
            self._data = _deep_merge(self._data, _load_yaml(path))
            self.loaded_files.append(path)
            logger.info("Loaded configuration override from %s", path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Look up a dotted key; missing intermediate sections return ``default``."""
        node: Any = self._data
        for part in key_path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def as_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)

    def get_backtesting_config(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data.get("backtesting", {}))

    def get_model_config(self, name: str) -> Dict[str, Any]:
        """Keyword arguments for a model variant (empty dict when unknown)."""
        section = self._data.get("models", {}).get(name) or {}
        return copy.deepcopy(section)

    def validate_configuration(self) -> Dict[str, List[str]]:
        """
        Check value ranges and types.

        Returns
        -------
        Dict[str, List[str]]
            Section name -> list of problems; empty when the configuration is valid
        """
        errors: Dict[str, List[str]] = {}

        rolling = self.get("backtesting.rolling_origin", {}) or {}
        for key in ("initial_window", "horizon", "step"):
            value = rolling.get(key)
            if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value <= 0):
                errors.setdefault("backtesting.rolling_origin", []).append(
                    f"{key} must be a positive integer, got {value!r}")

        evaluation = self.get("backtesting.evaluation", {}) or {}
        aggregation = evaluation.get("aggregation")
        if aggregation is not None and str(aggregation).lower() not in _AGGREGATIONS:
            errors.setdefault("backtesting.evaluation", []).append(
                f"aggregation must be one of {_AGGREGATIONS}, got {aggregation!r}")
        for level in evaluation.get("confidence_levels", []) or []:
            if not isinstance(level, (int, float)) or not 0 < level < 100:
                errors.setdefault("backtesting.evaluation", []).append(
                    f"confidence level {level!r} must lie strictly between 0 and 100")

        models = self._data.get("models", {})
        if not isinstance(models, dict):
            errors.setdefault("models", []).append("models must be a mapping of model name to parameters")

        return errors

    def get_configuration_summary(self) -> Dict[str, Any]:
        return {
            "loaded_configs": [str(p) for p in self.loaded_files],
            "models": sorted((self._data.get("models") or {}).keys()),
            "rolling_origin": self.get("backtesting.rolling_origin", {}),
            "log_level": self.get("logging.level", "INFO"),
        }


_instance: Optional[ConfigurationManager] = None


def get_config(config_path: Optional[Union[str, Path]] = None, reload: bool = False) -> ConfigurationManager:
    """
    Return the shared configuration manager.

    A new manager is built on first use, when ``reload`` is set, or when an
    explicit ``config_path`` is given.
    """
    global _instance
    if _instance is None or reload or config_path is not None:
        _instance = ConfigurationManager(config_path)
    return _instance
