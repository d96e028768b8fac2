"""
Monitoring Module for alias rollouts.

Prometheus instrumentation for rollout progress and routing calls.

Quick Start:
    from monitoring import MetricsRegistry, start_metrics_server

    registry = start_metrics_server(port=9102)
    controller = RolloutController(router, config, metrics=registry)
"""

from monitoring.prometheus_metrics import (
    MetricsRegistry,
    MetricType,
    MetricDefinition,
    ROLLOUT_PHASES,
    start_metrics_server,
)

__all__ = [
    "MetricsRegistry",
    "MetricType",
    "MetricDefinition",
    "ROLLOUT_PHASES",
    "start_metrics_server",
]

__version__ = "1.0.0"
