"""
Rollout errors.
"""

from typing import Optional


class RolloutError(Exception):
    """Base class for every rollout failure."""
    pass


class ConfigError(RolloutError, ValueError):
    """Raised for invalid rollout parameters, before any routing call."""
    pass


class RoutingError(RolloutError):
    """Raised when a routing service call fails."""

    def __init__(self, message: str, operation: str = "", code: Optional[str] = None):
        super().__init__(message)
        self.operation = operation
        self.code = code


class RolloutCancelled(RolloutError):
    """Raised when the cancellation signal fires during a rollout."""
    pass
