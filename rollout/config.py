"""
Rollout configuration.

Every input of a rollout lives on one RolloutConfig; nothing is read from
global state by the controller.
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional
import logging

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_ALIAS = "live"
DEFAULT_STEP = 0.1
DEFAULT_TICK_INTERVAL = 1.0


@dataclass
class RolloutConfig:
    """Parameters of a single alias rollout."""
    target: str                        # Function name or ARN
    candidate: str                     # Version being promoted in
    alias: str = DEFAULT_ALIAS
    step: float = DEFAULT_STEP
    tick_interval: float = DEFAULT_TICK_INTERVAL  # Seconds between ticks
    call_timeout: Optional[float] = None  # None waits indefinitely
    region: Optional[str] = None
    profile: Optional[str] = None
    max_attempts: Optional[int] = None  # botocore retry attempts

    def validate(self) -> "RolloutConfig":
        """Raise ConfigError if the rollout cannot make forward progress."""
        if not self.target:
            raise ConfigError("target function is required")
        if not self.candidate:
            raise ConfigError("candidate version is required")
        if not self.alias:
            raise ConfigError("alias name must not be empty")
        if not 0 < self.step <= 1:
            raise ConfigError(f"step must be in (0, 1], got {self.step}")
        if self.tick_interval < 0:
            raise ConfigError(f"tick interval must be >= 0, got {self.tick_interval}")
        if self.call_timeout is not None and self.call_timeout <= 0:
            raise ConfigError(f"call timeout must be > 0, got {self.call_timeout}")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ConfigError(f"max attempts must be >= 1, got {self.max_attempts}")
        return self

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RolloutConfig":
        """Build a config from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(sorted(unknown))}")
        values = {}
        for key, value in data.items():
            if value is None:
                values[key] = None
                continue
            kind = FIELD_TYPES[key]
            if isinstance(value, bool) or not isinstance(value, (str, int, float)):
                raise ConfigError(f"{key} must be a {kind.__name__}, got {value!r}")
            try:
                values[key] = kind(value)
            except ValueError as e:
                raise ConfigError(f"{key} must be a {kind.__name__}, got {value!r}") from e

        try:
            return cls(**values)
        except TypeError as e:
            raise ConfigError(str(e)) from e


FIELD_TYPES = {
    "target": str,
    "candidate": str,
    "alias": str,
    "step": float,
    "tick_interval": float,
    "call_timeout": float,
    "region": str,
    "profile": str,
    "max_attempts": int,
}


def load_config_file(path: Path | str) -> Dict[str, Any]:
    """Load rollout settings from a YAML file."""
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")

    logger.debug(f"Loaded rollout settings from {path}: {sorted(data)}")
    return data


def build_config(file_values: Dict[str, Any], overrides: Dict[str, Any]) -> RolloutConfig:
    """
    Merge file values with explicit overrides and validate.

    Overrides whose value is None are treated as unset, so command-line
    flags only win when they were actually given.
    """
    merged = dict(file_values)
    merged.update({k: v for k, v in overrides.items() if v is not None})
    return RolloutConfig.from_dict(merged).validate()
