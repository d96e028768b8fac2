# Alias Rollout Module
"""
Time-stepped canary rollouts for Lambda aliases.
"""

from .config import RolloutConfig
from .controller import RolloutController, RolloutPhase, RolloutState
from .errors import ConfigError, RolloutCancelled, RolloutError, RoutingError
from .routing import InMemoryRouter, LambdaAliasRouter, RoutingService

__all__ = [
    "RolloutConfig",
    "RolloutController",
    "RolloutPhase",
    "RolloutState",
    "ConfigError",
    "RolloutCancelled",
    "RolloutError",
    "RoutingError",
    "InMemoryRouter",
    "LambdaAliasRouter",
    "RoutingService",
]

__version__ = "1.0.0"
