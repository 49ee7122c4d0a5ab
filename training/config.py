"""
Plan Configuration: Tunable coaching constants loaded from YAML.

Phase ratios, mileage progression, taper schedules and the adaptation rule
table are empirical values. They live in ``training/data/plan_rules.yaml``
and can be overridden per deployment without touching code.

Usage:
    config = load_config()
    config.get("mileage.increase_rate.moderate")   # 0.10

    # Override a subset
    config = load_config("my_rules.yaml")
"""

import copy
import logging
import os
from dataclasses import dataclass, field
from functools import reduce
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).parent / "data" / "plan_rules.yaml"
CONFIG_ENV_VAR = "TRAINING_PLAN_CONFIG"


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge override into a copy of base, recursing into nested dicts."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return data


@dataclass
class PlanConfig:
    """
    Resolved configuration tree with dotted-key lookup.

    Values are plain Python types straight from YAML.
    """

    rules: Dict[str, Any] = field(default_factory=dict)
    source: Optional[str] = None

    def get(self, key: Optional[str] = None, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Dot-separated key (e.g., "mileage.taper_schedules")
            default: Returned when the key is not present

        Returns:
            The value, or the whole tree when key is None
        """
        if key is None:
            return self.rules
        try:
            return reduce(lambda d, k: d[k], key.split("."), self.rules)
        except (KeyError, TypeError):
            return default

    def require(self, key: str) -> Any:
        """Get a value that must exist in the rules."""
        value = self.get(key)
        if value is None:
            raise KeyError(f"Missing required config key: {key}")
        return value

    def with_overrides(self, overrides: Dict[str, Any]) -> 'PlanConfig':
        """Return a new config with overrides merged over these rules."""
        return PlanConfig(rules=_deep_merge(self.rules, overrides), source=self.source)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return copy.deepcopy(self.rules)


def load_config(path: Optional[str] = None) -> PlanConfig:
    """
    Load plan rules, merging an optional override file over the defaults.

    Args:
        path: Override YAML file. Falls back to $TRAINING_PLAN_CONFIG.

    Returns:
        PlanConfig with the merged rule tree
    """
    rules = _read_yaml(DEFAULT_RULES_PATH)
    source = str(DEFAULT_RULES_PATH)

    override_path = path or os.environ.get(CONFIG_ENV_VAR)
    if override_path:
        override_file = Path(override_path)
        if not override_file.exists():
            raise FileNotFoundError(f"Config override not found: {override_file}")
        rules = _deep_merge(rules, _read_yaml(override_file))
        source = str(override_file)
        logger.info("Loaded plan rules override from %s", override_file)
    else:
        logger.debug("Loaded default plan rules from %s", DEFAULT_RULES_PATH)

    return PlanConfig(rules=rules, source=source)


_default_config: Optional[PlanConfig] = None


def get_default_config() -> PlanConfig:
    """Cached default configuration (defaults plus any env override)."""
    global _default_config
    if _default_config is None:
        _default_config = load_config()
    return _default_config


def reset_default_config() -> None:
    """Drop the cached configuration so the next call reloads it."""
    global _default_config
    _default_config = None
